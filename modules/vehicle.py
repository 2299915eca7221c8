import math
import time
import random
import logging
import datetime
import streamlit as st
from pydantic import ValidationError
from config import api, FILTER_DEBOUNCE_SECONDS
from api_client import ApiError, unwrap_list
from models.vehicle_model import Vehicle, VehicleCreate, VehicleUpdate
from utils import sanitize_input, parse_datetime, format_currency, show_retry_screen

logger = logging.getLogger(__name__)

MS_PER_DAY = 1000 * 60 * 60 * 24
QUOTE_INSURANCE_FEE = 15
QUOTE_TAX_RATE = 0.08

FILTER_KEYS = ["location", "manufacturer", "fuel_type", "price_range", "search", "status"]
DEFAULT_LOCATIONS = ["Nairobi", "Mombasa", "Kisumu", "Nakuru", "Eldoret", "Thika"]
MANUFACTURERS = ["Toyota", "BMW", "Mercedes", "Audi", "Ford", "Nissan", "Honda", "Mazda", "Subaru"]
FUEL_TYPES = ["Petrol", "Diesel", "Electric", "Hybrid"]
TRANSMISSIONS = ["Automatic", "Manual"]
VEHICLE_TYPES = ["four-wheeler", "two-wheeler"]
PRICE_RANGES = ["0-50", "50-100", "100-200", "200+"]
VEHICLE_STATUSES = ["available", "rented", "maintenance"]


def empty_filters():
    return {key: "" for key in FILTER_KEYS}


def build_vehicle_query(filters):
    """Query parameters for GET /vehicles, without empty values."""
    return {k: v for k, v in filters.items() if v not in (None, "")}


def count_active_filters(filters):
    return sum(1 for value in filters.values() if value not in (None, ""))


def parse_price_range(value):
    """'50-100' -> (50, 100), '200+' -> (200, None), '' -> None."""
    if not value:
        return None
    value = value.strip()
    try:
        if value.endswith("+"):
            return float(value[:-1]), None
        low, _, high = value.partition("-")
        return float(low), float(high) if high else None
    except ValueError:
        return None


def price_range_label(value):
    bounds = parse_price_range(value)
    if bounds is None:
        return value or "Any price"
    low, high = bounds
    if high is None:
        return f"${low:g}+"
    if not low:
        return f"Under ${high:g}"
    return f"${low:g} - ${high:g}"


def debounce_filters(state, filters, now, delay=FILTER_DEBOUNCE_SECONDS):
    """Debounce the filter object.

    Returns (new_state, committed_filters, wait_seconds). Filters are only
    committed once they have not changed for `delay` seconds; wait_seconds is
    how long until the pending change may be committed (0 when settled),
    never more than `delay`.
    """
    filters = dict(filters)
    if state is None:
        new_state = {"pending": filters, "changed_at": now, "committed": filters}
        return new_state, dict(filters), 0

    new_state = dict(state)
    if filters != state["pending"]:
        new_state["pending"] = filters
        new_state["changed_at"] = now

    if new_state["pending"] == new_state["committed"]:
        return new_state, dict(new_state["committed"]), 0

    elapsed = now - new_state["changed_at"]
    if elapsed >= delay:
        new_state["committed"] = dict(new_state["pending"])
        return new_state, dict(new_state["committed"]), 0
    return new_state, dict(new_state["committed"]), min(delay, delay - elapsed)


def vehicle_status_stats(vehicles):
    stats = {"available": 0, "rented": 0, "maintenance": 0, "total": len(vehicles)}
    for vehicle in vehicles:
        status = vehicle.get("status") if isinstance(vehicle, dict) else vehicle.status
        if status:
            stats[status] = stats.get(status, 0) + 1
    return stats


def calculate_rental_quote(pickup_date, return_date, daily_rate):
    """Price a rental: per-day subtotal, flat insurance and 8% tax.

    Returns None when the dates are missing or do not span a positive
    number of days.
    """
    start = parse_datetime(pickup_date)
    end = parse_datetime(return_date)
    if not start or not end:
        return None
    diff_ms = (end - start).total_seconds() * 1000
    days = math.ceil(diff_ms / MS_PER_DAY)
    if days <= 0:
        return None

    rate = daily_rate or 0
    subtotal = days * rate
    insurance = QUOTE_INSURANCE_FEE
    tax = round(subtotal * QUOTE_TAX_RATE, 2)
    total = round(subtotal + insurance + tax, 2)
    return {"days": days, "subtotal": subtotal, "insurance": insurance, "tax": tax, "total": total}


def parse_vehicles(items):
    vehicles = []
    for item in items:
        try:
            vehicles.append(Vehicle.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed vehicle record: {e}")
    return vehicles


def pick_related_vehicles(vehicles, current_id, limit=5, rng=None):
    others = [v for v in vehicles if v.vehicle_id != current_id]
    rng = rng or random
    return rng.sample(others, min(limit, len(others)))


# REST calls
def fetch_vehicles(filters=None):
    payload = api.get("/vehicles", params=build_vehicle_query(filters or {}))
    items = unwrap_list(payload, "vehicles")
    total = payload.get("total", len(items)) if isinstance(payload, dict) else len(items)
    return parse_vehicles(items), total


def fetch_vehicle(vehicle_id):
    payload = api.get(f"/vehicles/{vehicle_id}")
    if isinstance(payload, dict) and "vehicle" in payload:
        payload = payload["vehicle"]
    return Vehicle.model_validate(payload)


def fetch_locations():
    try:
        locations = unwrap_list(api.get("/vehicles/locations"), "locations")
    except ApiError as e:
        logger.warning(f"Could not load vehicle locations: {e}")
        return DEFAULT_LOCATIONS
    return [loc for loc in locations if isinstance(loc, str)] or DEFAULT_LOCATIONS


def fetch_specifications():
    return unwrap_list(api.get("/vehicles/specifications"), "specifications")


def create_vehicle(request):
    logger.info(f"Creating vehicle {request.manufacturer} {request.model}")
    return api.post("/vehicles", json=request.model_dump(exclude_none=True))


def update_vehicle(vehicle_id, request):
    logger.info(f"Updating vehicle {vehicle_id}")
    return api.put(f"/vehicles/{vehicle_id}", json=request.model_dump(exclude_none=True))


def set_vehicle_availability(vehicle_id, availability):
    logger.info(f"Setting availability of vehicle {vehicle_id} to {availability}")
    return api.patch(f"/vehicles/{vehicle_id}/availability", json={"availability": availability})


def delete_vehicle(vehicle_id):
    logger.info(f"Deleting vehicle {vehicle_id}")
    return api.delete(f"/vehicles/{vehicle_id}")


# Views
def _vehicle_caption(vehicle):
    spec = vehicle.specification
    parts = [str(spec.year or ""), spec.fuel_type or "", spec.transmission or ""]
    if spec.seating_capacity:
        parts.append(f"{spec.seating_capacity} seats")
    return " · ".join(p for p in parts if p)


def render_vehicle_card(vehicle, key_prefix="vehicle"):
    from modules.routes import navigate
    with st.container(border=True):
        if vehicle.specification.image_url:
            st.image(vehicle.specification.image_url, use_container_width=True)
        st.markdown(f"**{vehicle.display_name}**")
        st.caption(_vehicle_caption(vehicle))
        st.write(f"📍 {vehicle.current_location or '-'}")
        st.write(f"{format_currency(vehicle.rental_rate)} / day")
        if vehicle.availability:
            st.success("Available")
        else:
            st.warning("Unavailable")
        if st.button("View details", key=f"{key_prefix}_{vehicle.vehicle_id}"):
            navigate(f"/vehicles/{vehicle.vehicle_id}")


def _filter_widgets(filters, locations):
    cols = st.columns(6)
    with cols[0]:
        filters["location"] = st.selectbox("Location", [""] + locations,
                                           format_func=lambda v: v or "All locations", key="filter_location")
    with cols[1]:
        filters["manufacturer"] = st.selectbox("Manufacturer", [""] + MANUFACTURERS,
                                               format_func=lambda v: v or "All makes", key="filter_manufacturer")
    with cols[2]:
        filters["fuel_type"] = st.selectbox("Fuel type", [""] + FUEL_TYPES,
                                            format_func=lambda v: v or "Any fuel", key="filter_fuel_type")
    with cols[3]:
        filters["price_range"] = st.selectbox("Price", [""] + PRICE_RANGES,
                                              format_func=price_range_label, key="filter_price_range")
    with cols[4]:
        filters["status"] = st.selectbox("Status", [""] + VEHICLE_STATUSES,
                                         format_func=lambda v: v.capitalize() if v else "Any status", key="filter_status")
    with cols[5]:
        filters["search"] = sanitize_input(st.text_input("Search", key="filter_search")).strip()
    return filters


def search_vehicles():
    st.subheader("Browse Vehicles")
    locations = fetch_locations()
    filters = _filter_widgets(empty_filters(), locations)

    active = count_active_filters(filters)
    if active:
        chips = []
        for key, value in filters.items():
            if not value:
                continue
            label = price_range_label(value) if key == "price_range" else value
            chips.append(f"`{key.replace('_', ' ').capitalize()}: {label}`")
        st.caption(f"{active} active filter(s): " + " ".join(chips))
        if st.button("Clear filters"):
            for key in FILTER_KEYS:
                st.session_state.pop(f"filter_{key}", None)
            st.rerun()

    debounce_state, committed, wait = debounce_filters(
        st.session_state.get("vehicle_filter_debounce"), filters, time.monotonic()
    )
    st.session_state["vehicle_filter_debounce"] = debounce_state

    try:
        vehicles, total = fetch_vehicles(committed)
    except ApiError as e:
        logger.error(f"Error loading vehicles: {e}")
        show_retry_screen("We couldn't load vehicles. Please try again.", "vehicles")
        return

    stats = vehicle_status_stats([v.model_dump() for v in vehicles])
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Vehicles", total)
    c2.metric("Available", stats["available"])
    c3.metric("Rented", stats["rented"])
    c4.metric("Maintenance", stats["maintenance"])

    if not vehicles:
        st.info("No vehicles match your filters.")
    else:
        for start in range(0, len(vehicles), 3):
            cols = st.columns(3)
            for col, vehicle in zip(cols, vehicles[start:start + 3]):
                with col:
                    render_vehicle_card(vehicle, key_prefix="listing")

    if wait > 0:
        # Re-run once the pending filter change has settled
        time.sleep(wait)
        st.rerun()


def vehicle_details(vehicle_id):
    from modules.routes import navigate
    from modules.review import fetch_vehicle_reviews, render_review_list
    from local_storage import get_auth_state, is_authenticated

    try:
        vehicle = fetch_vehicle(vehicle_id)
    except ApiError as e:
        logger.error(f"Error loading vehicle {vehicle_id}: {e}")
        show_retry_screen("We couldn't load this vehicle. Please try again.", f"vehicle_{vehicle_id}")
        return

    if st.button("← Back to vehicles"):
        navigate("/vehicles")

    spec = vehicle.specification
    st.header(vehicle.display_name)
    col1, col2 = st.columns([3, 2])
    with col1:
        if spec.image_url:
            st.image(spec.image_url, use_container_width=True)
        st.write(f"**Year:** {spec.year or '-'}")
        st.write(f"**Fuel type:** {spec.fuel_type or '-'}")
        st.write(f"**Transmission:** {spec.transmission or '-'}")
        st.write(f"**Seats:** {spec.seating_capacity or '-'}")
        st.write(f"**Color:** {spec.color or '-'}")
        st.write(f"**Location:** {vehicle.current_location or '-'}")
        if vehicle.feature_list:
            st.write("**Features:** " + ", ".join(vehicle.feature_list))

    with col2:
        st.subheader(f"{format_currency(vehicle.rental_rate)} / day")
        today = datetime.date.today()
        pickup = st.date_input("Pickup date", today, min_value=today, key="detail_pickup")
        return_date = st.date_input("Return date", today + datetime.timedelta(days=1), min_value=today, key="detail_return")

        quote = calculate_rental_quote(pickup, return_date, vehicle.rental_rate)
        if quote:
            st.write(f"{format_currency(vehicle.rental_rate)} × {quote['days']} day(s): {format_currency(quote['subtotal'])}")
            st.write(f"Insurance: {format_currency(quote['insurance'])}")
            st.write(f"Tax (8%): {format_currency(quote['tax'])}")
            st.markdown(f"**Total: {format_currency(quote['total'])}**")
        else:
            st.caption("Choose a return date after the pickup date to see a quote.")

        if not vehicle.availability:
            st.warning("This vehicle is currently unavailable.")
        elif st.button("Book now", type="primary", disabled=quote is None):
            if not is_authenticated(get_auth_state()):
                st.session_state["after_login"] = f"/vehicles/{vehicle.vehicle_id}"
                navigate("/login")
            navigate("/bookings/new", vehicle_id=vehicle.vehicle_id,
                     pickup=pickup.isoformat(), ret=return_date.isoformat())

    st.subheader("Reviews")
    try:
        render_review_list(fetch_vehicle_reviews(vehicle.vehicle_id))
    except ApiError as e:
        logger.warning(f"Could not load reviews for vehicle {vehicle_id}: {e}")
        st.caption("Reviews are unavailable right now.")

    try:
        others, _ = fetch_vehicles({})
    except ApiError as e:
        logger.warning(f"Could not load related vehicles: {e}")
        return
    related = pick_related_vehicles(others, vehicle.vehicle_id)
    if related:
        st.subheader("You may also like")
        cols = st.columns(len(related))
        for col, other in zip(cols, related):
            with col:
                render_vehicle_card(other, key_prefix="related")


def _vehicle_form(key, locations):
    with st.form(key=key):
        col1, col2 = st.columns(2)
        with col1:
            manufacturer = sanitize_input(st.text_input("Manufacturer"))
            model = sanitize_input(st.text_input("Model"))
            year = st.number_input("Year", min_value=1990, max_value=datetime.date.today().year + 1, value=2022)
            fuel_type = st.selectbox("Fuel type", FUEL_TYPES)
            transmission = st.selectbox("Transmission", TRANSMISSIONS)
            seating_capacity = st.number_input("Seats", min_value=1, max_value=60, value=5)
        with col2:
            rental_rate = st.number_input("Daily rate (USD)", min_value=0.0, value=50.0, step=5.0)
            current_location = st.selectbox("Location", locations)
            vehicle_type = st.selectbox("Vehicle type", VEHICLE_TYPES)
            color = sanitize_input(st.text_input("Color"))
            features = sanitize_input(st.text_input("Features (comma separated)"))
            image_url = st.text_input("Image URL")
        availability = st.checkbox("Available for booking", value=True)
        submit = st.form_submit_button("Add Vehicle")

    if not submit:
        return None
    return {
        "manufacturer": manufacturer,
        "model": model,
        "year": int(year),
        "fuel_type": fuel_type,
        "transmission": transmission,
        "seating_capacity": int(seating_capacity),
        "rental_rate": rental_rate,
        "current_location": current_location,
        "vehicle_type": vehicle_type,
        "color": color or None,
        "features": features or None,
        "image_url": image_url.strip() or None,
        "availability": availability,
    }


def manage_vehicles():
    st.subheader("Vehicle Management")
    locations = fetch_locations()

    with st.expander("Add a vehicle"):
        data = _vehicle_form("add_vehicle_form", locations)
        if data is not None:
            try:
                request = VehicleCreate(**data)
            except ValidationError as e:
                for err in e.errors():
                    st.error(f"{err['loc'][0]}: {err['msg']}")
            else:
                try:
                    create_vehicle(request)
                except ApiError as e:
                    st.error(f"Could not add vehicle: {e.message}")
                else:
                    st.success("Vehicle added successfully!")
                    st.rerun()

    try:
        vehicles, _ = fetch_vehicles({})
    except ApiError as e:
        logger.error(f"Error loading vehicles for admin: {e}")
        show_retry_screen("We couldn't load vehicles. Please try again.", "admin_vehicles")
        return

    search = st.text_input("Search vehicles (make, model or location)").strip().lower()
    if search:
        vehicles = [
            v for v in vehicles
            if search in v.display_name.lower() or search in (v.current_location or "").lower()
        ]

    with st.expander("Specification catalogue"):
        try:
            specifications = fetch_specifications()
        except ApiError as e:
            logger.warning(f"Could not load vehicle specifications: {e}")
            st.caption("Specifications are unavailable right now.")
        else:
            if specifications:
                st.dataframe(specifications, hide_index=True)
            else:
                st.caption("No specifications recorded yet.")

    st.caption(f"{len(vehicles)} vehicle(s)")
    for vehicle in vehicles:
        cols = st.columns([3, 1, 1, 1])
        with cols[0]:
            state = "available" if vehicle.availability else "unavailable"
            st.write(f"**{vehicle.display_name}** ({vehicle.specification.year or '-'}) · "
                     f"{format_currency(vehicle.rental_rate)}/day · {vehicle.current_location or '-'} · {state}")
        with cols[1]:
            if st.button("Edit", key=f"edit_vehicle_{vehicle.vehicle_id}"):
                st.session_state['editing_vehicle_id'] = vehicle.vehicle_id
        with cols[2]:
            label = "Mark unavailable" if vehicle.availability else "Mark available"
            if st.button(label, key=f"toggle_vehicle_{vehicle.vehicle_id}"):
                try:
                    set_vehicle_availability(vehicle.vehicle_id, not vehicle.availability)
                except ApiError as e:
                    st.error(f"Could not update availability: {e.message}")
                else:
                    st.rerun()
        with cols[3]:
            if st.button("Delete", key=f"delete_vehicle_{vehicle.vehicle_id}"):
                try:
                    delete_vehicle(vehicle.vehicle_id)
                except ApiError as e:
                    st.error(f"Could not delete vehicle: {e.message}")
                else:
                    st.success(f"{vehicle.display_name} deleted.")
                    st.rerun()

    editing_vehicle_id = st.session_state.get('editing_vehicle_id')
    if editing_vehicle_id:
        vehicle_to_edit = next((v for v in vehicles if v.vehicle_id == editing_vehicle_id), None)
        if vehicle_to_edit:
            edit_vehicle(vehicle_to_edit, locations)
        else:
            st.error("Vehicle to edit was not found.")
            st.session_state['editing_vehicle_id'] = None


def edit_vehicle(vehicle, locations):
    st.subheader(f"Edit {vehicle.display_name}")
    options = list(locations)
    if vehicle.current_location and vehicle.current_location not in options:
        options.insert(0, vehicle.current_location)

    with st.form(key=f"edit_vehicle_form_{vehicle.vehicle_id}"):
        rental_rate = st.number_input("Daily rate (USD)", min_value=0.0, value=float(vehicle.rental_rate), step=5.0)
        current_location = st.selectbox(
            "Location", options,
            index=options.index(vehicle.current_location) if vehicle.current_location in options else 0,
        )
        availability = st.checkbox("Available for booking", value=vehicle.availability)
        submit = st.form_submit_button("Save")

    if submit:
        if rental_rate <= 0:
            st.error("Rental rate must be greater than 0.")
            return
        try:
            update_vehicle(vehicle.vehicle_id, VehicleUpdate(
                rental_rate=rental_rate,
                current_location=current_location,
                availability=availability,
            ))
        except ApiError as e:
            st.error(f"Could not update vehicle: {e.message}")
            return
        st.success("Vehicle updated successfully!")
        st.session_state['editing_vehicle_id'] = None
        st.rerun()
