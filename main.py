import time
import logging
import streamlit as st
st.set_page_config(page_title="RentWheels", page_icon="🚗", layout="wide")

from streamlit_cookies_manager import EncryptedCookieManager
from config import COOKIE_PASSWORD, COOKIE_PREFIX
from api_client import ApiError
from local_storage import hydrate_auth_state, get_auth_state, is_authenticated
from modules.routes import ROUTES, match_route, current_path, navigate
from modules.auth import login, register, logout, resolve_redirect
from modules.admin import admin_dashboard
from modules.booking import my_bookings, booking_wizard, booking_confirmation
from modules.customer import customer_dashboard
from modules.payment import payment_callback
from modules.vehicle import search_vehicles, vehicle_details, fetch_vehicles, render_vehicle_card

logger = logging.getLogger(__name__)

ADMIN_SECTIONS = {
    "/admin": "Overview",
    "/admin/users": "Users",
    "/admin/vehicles": "Vehicles",
    "/admin/bookings": "Bookings",
    "/admin/payments": "Payments",
    "/admin/reviews": "Reviews",
    "/admin/support": "Support",
    "/admin/settings": "Settings",
}


def home_page():
    st.title("Drive your next adventure")
    st.write("Browse our fleet, pick your dates and book in minutes.")
    if st.button("Browse vehicles", type="primary"):
        navigate("/vehicles")

    try:
        vehicles, _ = fetch_vehicles({})
    except ApiError as e:
        logger.warning(f"Could not load featured vehicles: {e}")
        return
    featured = [v for v in vehicles if v.availability][:6]
    if featured:
        st.subheader("Featured vehicles")
        for start in range(0, len(featured), 3):
            cols = st.columns(3)
            for col, vehicle in zip(cols, featured[start:start + 3]):
                with col:
                    render_vehicle_card(vehicle, key_prefix="featured")


def sidebar(auth, cookie_manager):
    st.sidebar.title("RentWheels")
    if st.sidebar.button("Home", key="nav_home"):
        navigate("/")
    if st.sidebar.button("Vehicles", key="nav_vehicles"):
        navigate("/vehicles")

    if is_authenticated(auth):
        user = auth["user"]
        st.sidebar.caption(f"Signed in as {user.get('first_name', '')} {user.get('last_name', '')}")
        if user.get("user_type") == "admin":
            if st.sidebar.button("Admin console", key="nav_admin"):
                navigate("/admin")
        else:
            if st.sidebar.button("Dashboard", key="nav_dashboard"):
                navigate("/dashboard")
            if st.sidebar.button("My bookings", key="nav_my_bookings"):
                navigate("/my-bookings")
        if st.sidebar.button("Sign out", key="nav_logout"):
            logout(cookie_manager)
    else:
        if st.sidebar.button("Sign in", key="nav_login"):
            navigate("/login")
        if st.sidebar.button("Register", key="nav_register"):
            navigate("/register")


def render_page(pattern, params, auth, cookie_manager):
    user = auth.get("user") or {}
    if pattern == "/":
        home_page()
    elif pattern == "/vehicles":
        search_vehicles()
    elif pattern == "/vehicles/:id":
        vehicle_details(params["id"])
    elif pattern == "/login":
        login(cookie_manager)
    elif pattern == "/register":
        register()
    elif pattern == "/dashboard":
        customer_dashboard(user, cookie_manager)
    elif pattern == "/my-bookings":
        my_bookings(user)
    elif pattern == "/bookings/new":
        booking_wizard(user)
    elif pattern == "/booking-confirmation/:id":
        booking_confirmation(params["id"])
    elif pattern == "/payment/callback":
        payment_callback()
    elif pattern in ADMIN_SECTIONS:
        admin_dashboard(user, ADMIN_SECTIONS[pattern])


def main():
    cookie_manager = EncryptedCookieManager(prefix=COOKIE_PREFIX, password=COOKIE_PASSWORD)
    if not cookie_manager.ready():
        with st.spinner("Loading..."):
            time.sleep(1)
        st.stop()

    auth = hydrate_auth_state(cookie_manager)
    pattern, params = match_route(current_path())

    redirect = resolve_redirect(ROUTES[pattern], auth)
    if redirect and redirect != pattern:
        logger.info(f"Redirecting from {pattern} to {redirect}")
        navigate(redirect)

    sidebar(get_auth_state(), cookie_manager)
    render_page(pattern, params, auth, cookie_manager)


if __name__ == '__main__':
    main()
