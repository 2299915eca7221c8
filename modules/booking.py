import math
import time
import calendar
import datetime
import logging
import streamlit as st
from pydantic import ValidationError
from config import api
from api_client import ApiError, unwrap_list
from models.booking_model import Booking, BookingRequest
from utils import sanitize_input, parse_datetime, format_date, format_currency, show_retry_screen

logger = logging.getLogger(__name__)

MS_PER_DAY = 1000 * 60 * 60 * 24

# Daily add-on prices
INSURANCE_DAILY_RATES = {"basic": 0, "premium": 15, "comprehensive": 25}
PROTECTION_DAILY_RATE = 10
ROADSIDE_DAILY_RATE = 5

WIZARD_STEPS = ["Trip details", "Driver information", "Protection", "Review & pay"]
STATUS_TABS = ["all", "pending", "approved", "active", "completed", "cancelled"]
MAX_CELL_BOOKINGS = 3


def _rental_days(pickup_date, return_date):
    start = parse_datetime(pickup_date)
    end = parse_datetime(return_date)
    if not start or not end:
        return 0
    return math.ceil((end - start).total_seconds() * 1000 / MS_PER_DAY)


def calculate_trip_details(pickup_date, return_date, daily_rate, insurance_type="basic",
                           additional_protection=False, roadside_assistance=False):
    """Price breakdown for the booking wizard, or None for a non-positive duration."""
    days = _rental_days(pickup_date, return_date)
    if days <= 0:
        return None
    base_price = days * (daily_rate or 0)
    insurance_cost = days * INSURANCE_DAILY_RATES.get(insurance_type, 0)
    protection_cost = days * PROTECTION_DAILY_RATE if additional_protection else 0
    assistance_cost = days * ROADSIDE_DAILY_RATE if roadside_assistance else 0
    return {
        "days": days,
        "base_price": base_price,
        "insurance_cost": insurance_cost,
        "protection_cost": protection_cost,
        "assistance_cost": assistance_cost,
        "total": base_price + insurance_cost + protection_cost + assistance_cost,
    }


def validate_trip_details(data):
    errors = {}
    if not data.get("pickup_date"):
        errors["pickup_date"] = "Pickup date is required"
    if not data.get("return_date"):
        errors["return_date"] = "Return date is required"
    if not data.get("pickup_location"):
        errors["pickup_location"] = "Pickup location is required"
    if not data.get("return_location"):
        errors["return_location"] = "Return location is required"
    if "pickup_date" not in errors and "return_date" not in errors:
        pickup = parse_datetime(data["pickup_date"])
        return_date = parse_datetime(data["return_date"])
        if pickup is None or return_date is None:
            errors["return_date"] = "Invalid date"
        elif return_date <= pickup:
            errors["return_date"] = "Return date must be after pickup date"
    return errors


def validate_driver_license(data, today=None):
    errors = {}
    if not (data.get("driver_license_number") or "").strip():
        errors["driver_license_number"] = "License number is required"
    expiry = parse_datetime(data.get("driver_license_expiry"))
    if expiry is None:
        errors["driver_license_expiry"] = "License expiry date is required"
    else:
        today = today or datetime.date.today()
        if expiry.date() < today:
            errors["driver_license_expiry"] = "Driver's license has expired"
    if not (data.get("driver_license_front_url") or "").strip():
        errors["driver_license_front_url"] = "Front image of the license is required"
    if not (data.get("driver_license_back_url") or "").strip():
        errors["driver_license_back_url"] = "Back image of the license is required"
    return errors


def _status_of(booking):
    if isinstance(booking, dict):
        return (booking.get("booking_status") or "").lower()
    return booking.status_key


def filter_bookings_by_status(bookings, status_key):
    if status_key == "all":
        return list(bookings)
    return [b for b in bookings if _status_of(b) == status_key]


def count_bookings_by_status(bookings):
    counts = {key: 0 for key in STATUS_TABS}
    counts["all"] = len(bookings)
    for booking in bookings:
        status = _status_of(booking)
        if status == "rejected":
            counts["cancelled"] += 1
        elif status in counts:
            counts[status] += 1
    return counts


def booking_actions(status):
    status = (status or "").lower()
    actions = ["view"]
    if status == "pending":
        actions.append("cancel")
    if status in ("pending", "approved"):
        actions.append("pay")
        actions.append("mpesa")
        actions.append("extend")
    if status == "completed":
        actions.append("review")
    return actions


def _pickup_of(booking):
    value = booking.get("pickup_date") if isinstance(booking, dict) else booking.pickup_date
    return parse_datetime(value)


def bookings_for_day(bookings, year, month, day):
    matches = []
    for booking in bookings:
        pickup = _pickup_of(booking)
        if pickup and pickup.year == year and pickup.month == month and pickup.day == day:
            matches.append(booking)
    return matches


def build_month_grid(year, month, bookings):
    """Sunday-first weeks for a month; blank cells are None.

    Each day cell is {"day": n, "bookings": [...]}.
    """
    first_weekday, days_in_month = calendar.monthrange(year, month)
    leading = (first_weekday + 1) % 7
    cells = [None] * leading
    for day in range(1, days_in_month + 1):
        cells.append({"day": day, "bookings": bookings_for_day(bookings, year, month, day)})
    while len(cells) % 7:
        cells.append(None)
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


def shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def search_bookings(bookings, term):
    term = (term or "").strip().lower()
    if not term:
        return list(bookings)
    results = []
    for b in bookings:
        haystack = " ".join(str(v) for v in (
            b.booking_id, b.user_name, b.user_email, b.vehicle_manufacturer,
            b.vehicle_model, b.booking_status, b.pickup_location,
        ) if v)
        if term in haystack.lower():
            results.append(b)
    return results


def build_receipt_text(booking):
    lines = [
        "RentWheels booking receipt",
        "=" * 30,
        f"Booking ID: {booking.booking_id}",
        f"Vehicle: {booking.vehicle_manufacturer or ''} {booking.vehicle_model or ''}".rstrip(),
        f"Pickup: {format_date(booking.pickup_date)} at {booking.pickup_location or '-'}",
        f"Return: {format_date(booking.return_date)} at {booking.return_location or '-'}",
        f"Insurance: {booking.insurance_type or 'basic'}",
        f"Additional protection: {'yes' if booking.additional_protection else 'no'}",
        f"Roadside assistance: {'yes' if booking.roadside_assistance else 'no'}",
        f"Status: {booking.booking_status}",
        f"Total: {format_currency(booking.total_amount)}",
    ]
    return "\n".join(lines) + "\n"


def parse_bookings(items):
    bookings = []
    for item in items:
        try:
            bookings.append(Booking.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed booking record: {e}")
    return bookings


def _booking_id_from(response):
    if not isinstance(response, dict):
        return None
    for container in (response, response.get("booking") or {}, response.get("data") or {}):
        if isinstance(container, dict):
            booking_id = container.get("booking_id") or container.get("id")
            if booking_id:
                return booking_id
    return None


# REST calls
def create_booking(request):
    logger.info(f"Creating booking for vehicle {request.vehicle_id} by user {request.user_id}")
    response = api.post("/bookings", json=request.model_dump())
    return _booking_id_from(response), response


def fetch_my_bookings():
    return parse_bookings(unwrap_list(api.get("/bookings/my-bookings"), "bookings"))


def fetch_all_bookings():
    return parse_bookings(unwrap_list(api.get("/bookings"), "bookings"))


def fetch_booking(booking_id):
    payload = api.get(f"/bookings/{booking_id}")
    if isinstance(payload, dict) and "booking" in payload:
        payload = payload["booking"]
    return Booking.model_validate(payload)


def cancel_booking(booking_id):
    logger.info(f"Cancelling booking {booking_id}")
    return api.delete(f"/bookings/{booking_id}")


def extend_booking(booking, new_return_date):
    current = parse_datetime(booking.return_date)
    new_date = parse_datetime(new_return_date)
    if current and new_date and new_date.date() <= current.date():
        raise ValueError("New return date must be after the current return date")
    logger.info(f"Extending booking {booking.booking_id} to {new_return_date}")
    return api.put(f"/bookings/{booking.booking_id}/extend",
                   json={"new_return_date": new_date.date().isoformat() if new_date else new_return_date})


# Booking wizard
def _wizard_state():
    if "booking_wizard" not in st.session_state:
        st.session_state["booking_wizard"] = {"step": 0, "data": {}}
    return st.session_state["booking_wizard"]


def _as_date(value, offset_days=0):
    parsed = parse_datetime(value)
    if parsed:
        return parsed.date()
    return datetime.date.today() + datetime.timedelta(days=offset_days)


def _show_errors(errors):
    for field, message in errors.items():
        st.error(f"{field.replace('_', ' ').capitalize()}: {message}")


def booking_wizard(user):
    from modules.routes import current_param, navigate
    from modules.vehicle import fetch_vehicle, fetch_locations

    vehicle_id = current_param("vehicle_id")
    if not vehicle_id:
        st.info("Choose a vehicle to start a booking.")
        if st.button("Browse vehicles"):
            navigate("/vehicles")
        return

    try:
        vehicle = fetch_vehicle(vehicle_id)
    except ApiError as e:
        logger.error(f"Error loading vehicle {vehicle_id} for booking: {e}")
        show_retry_screen("We couldn't load this vehicle. Please try again.", "wizard_vehicle")
        return

    wizard = _wizard_state()
    if wizard["data"].get("vehicle_id") != vehicle.vehicle_id:
        today = datetime.date.today()
        wizard["step"] = 0
        wizard["data"] = {
            "vehicle_id": vehicle.vehicle_id,
            "pickup_date": current_param("pickup") or today.isoformat(),
            "return_date": current_param("ret") or (today + datetime.timedelta(days=1)).isoformat(),
            "pickup_location": vehicle.current_location or "",
            "return_location": vehicle.current_location or "",
            "insurance_type": "basic",
            "additional_protection": False,
            "roadside_assistance": True,
        }
    data = wizard["data"]
    step = wizard["step"]

    st.header(f"Book {vehicle.display_name}")
    st.progress((step + 1) / len(WIZARD_STEPS), text=f"Step {step + 1} of {len(WIZARD_STEPS)}: {WIZARD_STEPS[step]}")

    if step == 0:
        locations = fetch_locations()
        with st.form("trip_details_form"):
            pickup = st.date_input("Pickup date", _as_date(data["pickup_date"]))
            return_date = st.date_input("Return date", _as_date(data["return_date"], 1))
            options = list(locations)
            for loc in (data["pickup_location"], data["return_location"]):
                if loc and loc not in options:
                    options.insert(0, loc)
            pickup_location = st.selectbox("Pickup location", options,
                                           index=options.index(data["pickup_location"]) if data["pickup_location"] in options else 0)
            return_location = st.selectbox("Return location", options,
                                           index=options.index(data["return_location"]) if data["return_location"] in options else 0)
            submitted = st.form_submit_button("Next")
        if submitted:
            data.update(pickup_date=pickup.isoformat(), return_date=return_date.isoformat(),
                        pickup_location=pickup_location, return_location=return_location)
            errors = validate_trip_details(data)
            if errors:
                _show_errors(errors)
            else:
                wizard["step"] = 1
                st.rerun()

    elif step == 1:
        with st.form("driver_info_form"):
            number = sanitize_input(st.text_input("Driver's license number", data.get("driver_license_number", "")))
            expiry_default = parse_datetime(data.get("driver_license_expiry")) or datetime.datetime.now()
            expiry = st.date_input("License expiry date", expiry_default.date())
            front = st.text_input("License front image URL", data.get("driver_license_front_url", ""))
            back = st.text_input("License back image URL", data.get("driver_license_back_url", ""))
            col1, col2 = st.columns(2)
            back_clicked = col1.form_submit_button("Back")
            submitted = col2.form_submit_button("Next")
        if back_clicked:
            wizard["step"] = 0
            st.rerun()
        if submitted:
            data.update(driver_license_number=number.strip(), driver_license_expiry=expiry.isoformat(),
                        driver_license_front_url=front.strip(), driver_license_back_url=back.strip())
            errors = validate_driver_license(data)
            if errors:
                _show_errors(errors)
            else:
                wizard["step"] = 2
                st.rerun()

    elif step == 2:
        with st.form("protection_form"):
            insurance_type = st.radio(
                "Insurance", list(INSURANCE_DAILY_RATES),
                index=list(INSURANCE_DAILY_RATES).index(data["insurance_type"]),
                format_func=lambda k: f"{k.capitalize()} (+{format_currency(INSURANCE_DAILY_RATES[k])}/day)",
            )
            protection = st.checkbox(f"Additional protection (+{format_currency(PROTECTION_DAILY_RATE)}/day)",
                                     value=data["additional_protection"])
            roadside = st.checkbox(f"Roadside assistance (+{format_currency(ROADSIDE_DAILY_RATE)}/day)",
                                   value=data["roadside_assistance"])
            col1, col2 = st.columns(2)
            back_clicked = col1.form_submit_button("Back")
            submitted = col2.form_submit_button("Next")
        if back_clicked:
            wizard["step"] = 1
            st.rerun()
        if submitted:
            data.update(insurance_type=insurance_type, additional_protection=protection, roadside_assistance=roadside)
            wizard["step"] = 3
            st.rerun()

    else:
        details = calculate_trip_details(data["pickup_date"], data["return_date"], vehicle.rental_rate,
                                         data["insurance_type"], data["additional_protection"],
                                         data["roadside_assistance"])
        if details is None:
            st.error("Return date must be after pickup date.")
            wizard["step"] = 0
            return
        st.subheader("Review your booking")
        st.write(f"**Vehicle:** {vehicle.display_name}")
        st.write(f"**Pickup:** {format_date(data['pickup_date'])} at {data['pickup_location']}")
        st.write(f"**Return:** {format_date(data['return_date'])} at {data['return_location']}")
        st.write(f"Base price ({details['days']} day(s)): {format_currency(details['base_price'])}")
        st.write(f"Insurance ({data['insurance_type']}): {format_currency(details['insurance_cost'])}")
        if details["protection_cost"]:
            st.write(f"Additional protection: {format_currency(details['protection_cost'])}")
        if details["assistance_cost"]:
            st.write(f"Roadside assistance: {format_currency(details['assistance_cost'])}")
        st.markdown(f"### Total: {format_currency(details['total'])}")

        col1, col2 = st.columns(2)
        if col1.button("Back"):
            wizard["step"] = 2
            st.rerun()
        if col2.button("Confirm booking", type="primary"):
            try:
                request = BookingRequest(
                    user_id=user["user_id"],
                    booking_date=datetime.datetime.now().isoformat(timespec="seconds"),
                    total_amount=details["total"],
                    **{k: v for k, v in data.items() if k in BookingRequest.model_fields},
                )
            except ValidationError as e:
                logger.error(f"Invalid booking payload: {e}")
                st.error("Some booking details are missing. Please review the previous steps.")
                return
            try:
                booking_id, _ = create_booking(request)
            except ApiError as e:
                logger.error(f"Error creating booking: {e}")
                st.error(f"Could not create booking: {e.message}")
                return
            st.session_state.pop("booking_wizard", None)
            st.success("Booking created! Awaiting confirmation.")
            time.sleep(1)
            if booking_id:
                navigate(f"/booking-confirmation/{booking_id}")
            navigate("/my-bookings")


# My bookings
def _render_booking_row(booking, user):
    from modules.routes import navigate
    from modules.payment import start_checkout, start_mpesa
    from modules.review import review_form

    vehicle_name = f"{booking.vehicle_manufacturer or ''} {booking.vehicle_model or ''}".strip() or f"Vehicle #{booking.vehicle_id}"
    actions = booking_actions(booking.booking_status)
    with st.container(border=True):
        col1, col2 = st.columns([3, 2])
        with col1:
            st.markdown(f"**{vehicle_name}** · Booking #{booking.booking_id}")
            st.caption(f"{format_date(booking.pickup_date)} → {format_date(booking.return_date)} · "
                       f"{booking.pickup_location or '-'}")
            st.write(f"Status: **{booking.booking_status}** · Total: {format_currency(booking.total_amount)}")
        with col2:
            buttons = st.columns(len(actions))
            for col, action in zip(buttons, actions):
                key = f"{action}_{booking.booking_id}"
                if action == "view" and col.button("View", key=key):
                    navigate(f"/booking-confirmation/{booking.booking_id}")
                elif action == "cancel" and col.button("Cancel", key=key):
                    try:
                        cancel_booking(booking.booking_id)
                    except ApiError as e:
                        st.error(f"Could not cancel booking: {e.message}")
                    else:
                        st.toast(f"Booking #{booking.booking_id} cancelled.")
                        st.rerun()
                elif action == "pay" and col.button("Pay", key=key):
                    start_checkout(booking)
                elif action == "mpesa" and col.button("M-Pesa", key=key):
                    start_mpesa(booking)
                elif action in ("extend", "review") and col.button(action.capitalize(), key=key):
                    st.session_state["booking_panel"] = (action, booking.booking_id)

        panel = st.session_state.get("booking_panel")
        if panel == ("extend", booking.booking_id):
            current = parse_datetime(booking.return_date) or datetime.datetime.now()
            new_date = st.date_input("New return date", current.date() + datetime.timedelta(days=1),
                                     key=f"extend_date_{booking.booking_id}")
            if st.button("Confirm extension", key=f"confirm_extend_{booking.booking_id}"):
                try:
                    extend_booking(booking, new_date)
                except ValueError as e:
                    st.error(str(e))
                except ApiError as e:
                    st.error(f"Could not extend booking: {e.message}")
                else:
                    st.session_state["booking_panel"] = None
                    st.toast(f"Booking #{booking.booking_id} extended to {format_date(new_date)}.")
                    st.rerun()
        elif panel == ("review", booking.booking_id):
            review_form(booking)


def my_bookings(user):
    from modules.routes import current_param

    st.subheader("My Bookings")
    if current_param("payment_success") == "true":
        st.success(f"Payment received for booking #{current_param('booking_id', '')}. Thank you!")

    try:
        bookings = fetch_my_bookings()
    except ApiError as e:
        logger.error(f"Error loading bookings for user {user.get('user_id')}: {e}")
        show_retry_screen("We couldn't load your bookings. Please try again.", "my_bookings")
        return

    counts = count_bookings_by_status(bookings)
    tabs = st.tabs([f"{key.capitalize()} ({counts[key]})" for key in STATUS_TABS])
    for tab, key in zip(tabs, STATUS_TABS):
        with tab:
            selected = filter_bookings_by_status(bookings, key)
            if not selected:
                st.write("No bookings here yet.")
            for booking in selected:
                if key == "all":
                    _render_booking_row(booking, user)
                else:
                    # Rows are rendered with actions once, under the "All" tab
                    st.write(f"#{booking.booking_id} · {booking.vehicle_manufacturer or ''} {booking.vehicle_model or ''} · "
                             f"{format_date(booking.pickup_date)} → {format_date(booking.return_date)} · "
                             f"{format_currency(booking.total_amount)}")


def booking_calendar(user):
    st.subheader("Booking Calendar")
    today = datetime.date.today()
    year, month = st.session_state.get("calendar_month", (today.year, today.month))

    col1, col2, col3 = st.columns([1, 3, 1])
    if col1.button("◀ Previous"):
        st.session_state["calendar_month"] = shift_month(year, month, -1)
        st.rerun()
    col2.markdown(f"### {calendar.month_name[month]} {year}")
    if col3.button("Next ▶"):
        st.session_state["calendar_month"] = shift_month(year, month, 1)
        st.rerun()

    try:
        bookings = fetch_my_bookings()
    except ApiError as e:
        logger.error(f"Error loading calendar bookings for user {user.get('user_id')}: {e}")
        show_retry_screen("We couldn't load your bookings. Please try again.", "calendar")
        return

    header = st.columns(7)
    for col, name in zip(header, ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        col.markdown(f"**{name}**")
    for week in build_month_grid(year, month, bookings):
        cols = st.columns(7)
        for col, cell in zip(cols, week):
            if cell is None:
                col.write("")
                continue
            lines = [f"**{cell['day']}**"]
            for booking in cell["bookings"][:MAX_CELL_BOOKINGS]:
                lines.append(f"🚗 {booking.vehicle_model or booking.vehicle_manufacturer or '#' + str(booking.booking_id)}")
            extra = len(cell["bookings"]) - MAX_CELL_BOOKINGS
            if extra > 0:
                lines.append(f"+{extra} more")
            col.markdown("  \n".join(lines))


def booking_confirmation(booking_id):
    from modules.routes import navigate

    try:
        booking = fetch_booking(booking_id)
    except ApiError as e:
        logger.error(f"Error loading booking {booking_id}: {e}")
        show_retry_screen("We couldn't load this booking. Please try again.", f"booking_{booking_id}")
        return

    st.header("Booking Confirmation")
    st.success(f"Booking #{booking.booking_id} is {booking.booking_status.lower()}.")
    st.write(f"**Vehicle:** {booking.vehicle_manufacturer or ''} {booking.vehicle_model or ''}")
    st.write(f"**Pickup:** {format_date(booking.pickup_date)} at {booking.pickup_location or '-'}")
    st.write(f"**Return:** {format_date(booking.return_date)} at {booking.return_location or '-'}")
    st.write(f"**Insurance:** {booking.insurance_type or 'basic'}")
    st.write(f"**Total:** {format_currency(booking.total_amount)}")

    st.download_button("Download receipt", build_receipt_text(booking),
                       file_name=f"booking_{booking.booking_id}_receipt.txt", mime="text/plain")
    if st.button("Go to my bookings"):
        navigate("/my-bookings")


# Admin
def manage_bookings():
    st.subheader("Booking Management")
    try:
        bookings = fetch_all_bookings()
    except ApiError as e:
        logger.error(f"Error loading all bookings: {e}")
        show_retry_screen("We couldn't load bookings. Please try again.", "admin_bookings")
        return

    col1, col2 = st.columns([3, 1])
    search_term = col1.text_input("Search bookings (customer, email, vehicle, status)")
    status_key = col2.selectbox("Status", STATUS_TABS + ["rejected"], format_func=str.capitalize)

    filtered = filter_bookings_by_status(search_bookings(bookings, search_term), status_key)
    if not filtered:
        st.write("No bookings match.")
        return

    for booking in filtered:
        cols = st.columns([0.8, 2, 2, 2, 1.2, 1.2, 1])
        cols[0].write(f"#{booking.booking_id}")
        cols[1].write(booking.user_name or f"User #{booking.user_id}")
        cols[2].write(f"{booking.vehicle_manufacturer or ''} {booking.vehicle_model or ''}")
        cols[3].write(f"{format_date(booking.pickup_date)} → {format_date(booking.return_date)}")
        cols[4].write(format_currency(booking.total_amount))
        cols[5].write(booking.booking_status)
        if cols[6].button("Details", key=f"admin_booking_{booking.booking_id}"):
            st.session_state["admin_booking_details"] = booking.booking_id

    selected_id = st.session_state.get("admin_booking_details")
    selected = next((b for b in bookings if b.booking_id == selected_id), None)
    if selected:
        st.subheader(f"Booking #{selected.booking_id}")
        for key, value in selected.model_dump().items():
            if value not in (None, ""):
                st.write(f"**{key.replace('_', ' ').capitalize()}:** {value}")
        if st.button("Close"):
            st.session_state["admin_booking_details"] = None
            st.rerun()
