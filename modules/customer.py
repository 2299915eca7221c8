import logging
import streamlit as st
from pydantic import ValidationError
from config import api
from api_client import ApiError
from local_storage import update_session_profile
from models.user_model import UserUpdate
from modules.booking import my_bookings, booking_calendar
from modules.review import my_reviews
from modules.support import support_page
from modules.vehicle import search_vehicles
from utils import sanitize_input

logger = logging.getLogger(__name__)

MENU = ["Browse vehicles", "My bookings", "Calendar", "Profile", "Support", "My reviews"]


def update_profile(user_id, request):
    """PUT /users/:id and return the fields that changed on the server."""
    updates = request.model_dump(exclude_none=True)
    response = api.put(f"/users/{user_id}", json=updates)
    if isinstance(response, dict):
        user = response.get("user") or response.get("userInfo")
        if isinstance(user, dict):
            return {k: v for k, v in user.items() if k in UserUpdate.model_fields or k == "updated_at"}
    return updates


def validate_password_change(current_password, new_password, confirm_password):
    if not current_password:
        return "Current password is required"
    if len(new_password or "") < 6:
        return "New password must be at least 6 characters"
    if new_password != confirm_password:
        return "New passwords do not match"
    return None


def change_password(current_password, new_password):
    return api.put("/users/change-password",
                   json={"current_password": current_password, "new_password": new_password})


def customer_dashboard(user, cookie_manager):
    st.subheader(f"Welcome back, {user.get('first_name', '')}!")
    choice = st.sidebar.selectbox("Customer menu", MENU, key="menu_customer")

    if choice == "Browse vehicles":
        search_vehicles()
    elif choice == "My bookings":
        my_bookings(user)
    elif choice == "Calendar":
        booking_calendar(user)
    elif choice == "Profile":
        profile_page(user, cookie_manager)
    elif choice == "Support":
        support_page(user)
    elif choice == "My reviews":
        my_reviews()


def profile_page(user, cookie_manager):
    from modules.auth import validation_messages

    st.subheader("My Profile")
    with st.form(key="profile_form"):
        col1, col2 = st.columns(2)
        first_name = sanitize_input(col1.text_input("First name", user.get("first_name", "")))
        last_name = sanitize_input(col2.text_input("Last name", user.get("last_name", "")))
        email = sanitize_input(st.text_input("Email", user.get("email", "")))
        phone_number = sanitize_input(st.text_input("Phone number", user.get("phone_number") or ""))
        address = sanitize_input(st.text_input("Address", user.get("address") or ""))
        submit = st.form_submit_button("Save changes")

    if submit:
        try:
            request = UserUpdate(
                first_name=first_name.strip() or None,
                last_name=last_name.strip() or None,
                email=email.strip() or None,
                phone_number=phone_number.strip() or None,
                address=address.strip() or None,
            )
        except ValidationError as e:
            for field, message in validation_messages(e).items():
                st.error(f"{field.replace('_', ' ').capitalize()}: {message}")
            return
        try:
            updates = update_profile(user["user_id"], request)
        except ApiError as e:
            logger.error(f"Profile update failed for user {user.get('user_id')}: {e}")
            st.error(f"Could not update profile: {e.message}")
            return
        update_session_profile(cookie_manager, updates)
        st.success("Profile updated successfully!")
        st.rerun()

    st.subheader("Change Password")
    with st.form(key="password_form"):
        current_password = st.text_input("Current password", type="password")
        new_password = st.text_input("New password", type="password")
        confirm_password = st.text_input("Confirm new password", type="password")
        submit_password = st.form_submit_button("Change password")

    if submit_password:
        error = validate_password_change(current_password, new_password, confirm_password)
        if error:
            st.error(error)
            return
        try:
            change_password(current_password, new_password)
        except ApiError as e:
            logger.warning(f"Password change failed for user {user.get('user_id')}: {e}")
            st.error(f"Could not change password: {e.message}")
            return
        st.success("Password changed successfully!")
