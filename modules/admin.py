import datetime
import logging
import pandas as pd
import streamlit as st
from pydantic import ValidationError
from config import api
from api_client import ApiError, unwrap_list
from models.settings_model import PlatformSettings, CANCELLATION_POLICIES
from models.user_model import User, RegisterRequest, UserUpdate
from modules.booking import fetch_all_bookings, manage_bookings
from modules.payment import manage_payments
from modules.review import moderate_reviews
from modules.support import manage_tickets
from modules.vehicle import fetch_vehicles, manage_vehicles
from utils import sanitize_input, parse_datetime, format_currency, format_date, show_retry_screen

logger = logging.getLogger(__name__)

MENU = ["Overview", "Users", "Vehicles", "Bookings", "Payments", "Reviews", "Support", "Settings"]
SECTION_PATHS = {
    "Overview": "/admin",
    "Users": "/admin/users",
    "Vehicles": "/admin/vehicles",
    "Bookings": "/admin/bookings",
    "Payments": "/admin/payments",
    "Reviews": "/admin/reviews",
    "Support": "/admin/support",
    "Settings": "/admin/settings",
}
REVENUE_STATUSES = ("completed",)
ACTIVE_STATUSES = ("confirmed", "active")
SETTINGS_KEY = "platform_settings"


def summarize_overview(users, vehicles, bookings, today=None):
    today = today or datetime.date.today()
    revenue = sum(b.total_amount for b in bookings if b.status_key in REVENUE_STATUSES)
    new_users = 0
    for u in users:
        created = parse_datetime(u.created_at)
        if created and created.date() == today:
            new_users += 1
    return {
        "total_users": len(users),
        "total_vehicles": len(vehicles),
        "available_vehicles": sum(1 for v in vehicles if v.availability),
        "total_bookings": len(bookings),
        "active_bookings": sum(1 for b in bookings if b.status_key in ACTIVE_STATUSES),
        "pending_bookings": sum(1 for b in bookings if b.status_key == "pending"),
        "total_revenue": revenue,
        "new_users_today": new_users,
    }


def monthly_revenue(bookings):
    rows = []
    for b in bookings:
        if b.status_key not in REVENUE_STATUSES:
            continue
        when = parse_datetime(b.booking_date or b.created_at or b.pickup_date)
        if when:
            rows.append({"Month": when.strftime("%Y-%m"), "Revenue": b.total_amount})
    if not rows:
        return pd.DataFrame(columns=["Month", "Revenue"])
    df = pd.DataFrame(rows)
    return df.groupby("Month", as_index=False)["Revenue"].sum().sort_values(by="Month")


def status_breakdown(bookings):
    counts = {}
    for b in bookings:
        status = b.status_key.capitalize() or "Unknown"
        counts[status] = counts.get(status, 0) + 1
    return pd.DataFrame({"Status": list(counts), "Bookings": list(counts.values())})


def filter_users(users, search="", role="all"):
    term = (search or "").strip().lower()
    result = []
    for u in users:
        if role != "all" and u.user_type != role:
            continue
        if term and not any(term in (value or "").lower() for value in (u.full_name, u.email, u.phone_number)):
            continue
        result.append(u)
    return result


# REST calls
def fetch_users():
    users = []
    for item in unwrap_list(api.get("/users"), "users"):
        try:
            users.append(User.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed user record: {e}")
    return users


def create_user(request, user_type="customer"):
    logger.info(f"Creating {user_type} account for {request.email}")
    return api.post("/users", json={**request.model_dump(mode="json"), "user_type": user_type})


def update_user(user_id, request):
    logger.info(f"Updating user {user_id}")
    return api.put(f"/users/{user_id}", json=request.model_dump(mode="json", exclude_none=True))


def toggle_user_role(user):
    new_type = "customer" if user.user_type == "admin" else "admin"
    logger.info(f"Changing user {user.user_id} role to {new_type}")
    api.patch(f"/user/user-status/{user.user_id}", json={"user_type": new_type})
    return new_type


def delete_user(user_id):
    logger.info(f"Deleting user {user_id}")
    return api.delete(f"/users/{user_id}")


# Views
def admin_dashboard(user, section="Overview"):
    st.subheader("Administration")
    index = MENU.index(section) if section in MENU else 0
    choice = st.sidebar.selectbox("Admin menu", MENU, index=index, key=f"menu_admin_{section}")
    if choice != section:
        from modules.routes import navigate
        navigate(SECTION_PATHS[choice])

    if choice == "Overview":
        view_overview()
    elif choice == "Users":
        manage_users(user)
    elif choice == "Vehicles":
        manage_vehicles()
    elif choice == "Bookings":
        manage_bookings()
    elif choice == "Payments":
        manage_payments()
    elif choice == "Reviews":
        moderate_reviews()
    elif choice == "Support":
        manage_tickets()
    elif choice == "Settings":
        settings_page()


def view_overview():
    st.subheader("Overview")
    try:
        users = fetch_users()
        vehicles, _ = fetch_vehicles({})
        bookings = fetch_all_bookings()
    except ApiError as e:
        logger.error(f"Error loading admin overview: {e}")
        show_retry_screen("We couldn't load the dashboard. Please try again.", "overview")
        return

    summary = summarize_overview(users, vehicles, bookings)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Users", summary["total_users"], delta=f"+{summary['new_users_today']} today")
    c2.metric("Vehicles", summary["total_vehicles"], delta=f"{summary['available_vehicles']} available", delta_color="off")
    c3.metric("Bookings", summary["total_bookings"], delta=f"{summary['pending_bookings']} pending", delta_color="off")
    c4.metric("Revenue", format_currency(summary["total_revenue"]))

    st.subheader("Monthly revenue")
    revenue_df = monthly_revenue(bookings)
    if not revenue_df.empty:
        st.line_chart(revenue_df.set_index("Month"))
    else:
        st.write("No revenue recorded yet.")

    st.subheader("Bookings by status")
    status_df = status_breakdown(bookings)
    if not status_df.empty:
        st.bar_chart(status_df.set_index("Status"))

    st.subheader("Recent bookings")
    recent = sorted(bookings, key=lambda b: b.created_at or b.booking_date or "", reverse=True)[:5]
    for b in recent:
        st.write(f"#{b.booking_id} · {b.user_name or '-'} · {b.vehicle_manufacturer or ''} {b.vehicle_model or ''} · "
                 f"{format_currency(b.total_amount)} · {b.booking_status}")


def manage_users(current_user):
    from modules.auth import validation_messages

    st.subheader("User Management")

    with st.expander("Add a user"):
        with st.form(key="create_user_form"):
            col1, col2 = st.columns(2)
            first_name = sanitize_input(col1.text_input("First name"))
            last_name = sanitize_input(col2.text_input("Last name"))
            email = sanitize_input(st.text_input("Email"))
            phone_number = sanitize_input(st.text_input("Phone number"))
            password = st.text_input("Temporary password", type="password")
            user_type = st.selectbox("Role", ["customer", "admin"])
            submit = st.form_submit_button("Create user")
        if submit:
            try:
                request = RegisterRequest(first_name=first_name, last_name=last_name, email=email,
                                          phone_number=phone_number, password=password)
            except ValidationError as e:
                for field, message in validation_messages(e).items():
                    st.error(f"{field.replace('_', ' ').capitalize()}: {message}")
            else:
                try:
                    create_user(request, user_type)
                except ApiError as e:
                    st.error(f"Could not create user: {e.message}")
                else:
                    st.toast(f"User {email} created.")
                    st.rerun()

    try:
        users = fetch_users()
    except ApiError as e:
        logger.error(f"Error loading users: {e}")
        show_retry_screen("We couldn't load users. Please try again.", "users")
        return

    col1, col2 = st.columns([3, 1])
    search = col1.text_input("Search users (name, email or phone)")
    role = col2.selectbox("Role", ["all", "customer", "admin"], format_func=str.capitalize)
    filtered = filter_users(users, search, role)
    st.caption(f"{len(filtered)} of {len(users)} user(s)")

    for u in filtered:
        cols = st.columns([2.5, 2.5, 1, 1, 1, 1])
        cols[0].write(f"**{u.full_name}**")
        cols[1].write(u.email)
        cols[2].write(u.user_type)
        is_self = u.user_id == current_user.get("user_id")
        if cols[3].button("Edit", key=f"edit_user_{u.user_id}"):
            st.session_state["editing_user_id"] = u.user_id
        label = "Make customer" if u.is_admin else "Make admin"
        if cols[4].button(label, key=f"role_user_{u.user_id}", disabled=is_self):
            try:
                new_type = toggle_user_role(u)
            except ApiError as e:
                st.error(f"Could not change role: {e.message}")
            else:
                st.toast(f"{u.full_name} is now {new_type}.")
                st.rerun()
        if cols[5].button("Delete", key=f"delete_user_{u.user_id}", disabled=is_self):
            try:
                delete_user(u.user_id)
            except ApiError as e:
                st.error(f"Could not delete user: {e.message}")
            else:
                st.toast(f"{u.full_name} deleted.")
                st.rerun()

    editing_user_id = st.session_state.get("editing_user_id")
    if editing_user_id:
        user_to_edit = next((u for u in users if u.user_id == editing_user_id), None)
        if user_to_edit:
            edit_user(user_to_edit)
        else:
            st.error("User to edit was not found.")
            st.session_state["editing_user_id"] = None


def edit_user(user):
    from modules.auth import validation_messages

    st.subheader(f"Edit {user.full_name}")
    st.caption(f"Member since {format_date(user.created_at)}")
    with st.form(key=f"edit_user_form_{user.user_id}"):
        col1, col2 = st.columns(2)
        first_name = sanitize_input(col1.text_input("First name", user.first_name))
        last_name = sanitize_input(col2.text_input("Last name", user.last_name))
        email = sanitize_input(st.text_input("Email", user.email))
        phone_number = sanitize_input(st.text_input("Phone number", user.phone_number or ""))
        address = sanitize_input(st.text_input("Address", user.address or ""))
        col3, col4 = st.columns(2)
        submit = col3.form_submit_button("Save")
        cancel = col4.form_submit_button("Cancel")

    if cancel:
        st.session_state["editing_user_id"] = None
        st.rerun()
    if submit:
        try:
            request = UserUpdate(first_name=first_name.strip() or None, last_name=last_name.strip() or None,
                                 email=email.strip() or None, phone_number=phone_number.strip() or None,
                                 address=address.strip() or None)
        except ValidationError as e:
            for field, message in validation_messages(e).items():
                st.error(f"{field.replace('_', ' ').capitalize()}: {message}")
            return
        try:
            update_user(user.user_id, request)
        except ApiError as e:
            st.error(f"Could not update user: {e.message}")
            return
        st.session_state["editing_user_id"] = None
        st.success("User updated successfully!")
        st.rerun()


def load_settings():
    if SETTINGS_KEY not in st.session_state:
        st.session_state[SETTINGS_KEY] = PlatformSettings().model_dump()
    return st.session_state[SETTINGS_KEY]


def save_settings(values):
    """Validate and store the settings; returns {field: message} on failure."""
    from modules.auth import validation_messages
    try:
        settings = PlatformSettings.model_validate(values)
    except ValidationError as e:
        return validation_messages(e)
    st.session_state[SETTINGS_KEY] = settings.model_dump()
    logger.info("Platform settings updated")
    return {}


def reset_settings():
    st.session_state[SETTINGS_KEY] = PlatformSettings().model_dump()
    logger.info("Platform settings reset to defaults")


def settings_page():
    st.subheader("Platform Settings")
    current = load_settings()
    with st.form(key="settings_form"):
        st.markdown("**Company**")
        company_name = st.text_input("Company name", current["company_name"])
        support_email = st.text_input("Support email", current["support_email"])
        support_phone = st.text_input("Support phone", current["support_phone"])
        address = st.text_input("Address", current["address"])
        st.markdown("**Business rules**")
        col1, col2 = st.columns(2)
        currency = col1.text_input("Currency", current["currency"])
        timezone = col2.text_input("Timezone", current["timezone"])
        tax_rate = col1.number_input("Tax rate (%)", value=float(current["tax_rate"]), step=0.5)
        security_deposit = col2.number_input("Security deposit", value=float(current["security_deposit"]), step=500.0)
        cancellation_policy = st.selectbox("Cancellation policy", CANCELLATION_POLICIES,
                                           index=CANCELLATION_POLICIES.index(current["cancellation_policy"]))
        session_timeout = st.number_input("Session timeout (minutes)", value=int(current["session_timeout"]), step=5)
        maintenance_mode = st.checkbox("Maintenance mode", value=current["maintenance_mode"])
        col3, col4 = st.columns(2)
        submit = col3.form_submit_button("Save settings")
        reset = col4.form_submit_button("Reset to defaults")

    if reset:
        reset_settings()
        st.toast("Settings restored to defaults.")
        st.rerun()
    if submit:
        errors = save_settings({
            "company_name": company_name,
            "support_email": support_email,
            "support_phone": support_phone,
            "address": address,
            "currency": currency,
            "timezone": timezone,
            "tax_rate": tax_rate,
            "security_deposit": security_deposit,
            "cancellation_policy": cancellation_policy,
            "session_timeout": int(session_timeout),
            "maintenance_mode": maintenance_mode,
        })
        if errors:
            for field, message in errors.items():
                st.error(f"{field.replace('_', ' ').capitalize()}: {message}")
        else:
            st.success("Settings saved.")
