import time
import logging
import streamlit as st
from pydantic import ValidationError
from config import api
from api_client import ApiError
from local_storage import is_authenticated, login_session, logout_session
from models.user_model import RegisterRequest
from modules.routes import navigate, ADMIN, CUSTOMER, PUBLIC
from utils import sanitize_input

logger = logging.getLogger(__name__)


# Route guards: return the path to redirect to, or None when access is allowed
def admin_route_redirect(auth):
    if not is_authenticated(auth):
        return "/login"
    user_type = auth["user"].get("user_type")
    if user_type != "admin":
        # Customers go back to their own dashboard
        if user_type == "customer":
            return "/dashboard"
        return "/login"
    return None


def customer_route_redirect(auth):
    if not is_authenticated(auth):
        return "/login"
    user_type = auth["user"].get("user_type")
    if user_type != "customer":
        if user_type == "admin":
            return "/admin"
        return "/login"
    return None


def public_route_redirect(auth):
    """Signed-in users never see the login/register pages."""
    if is_authenticated(auth):
        user_type = auth["user"].get("user_type")
        if user_type == "admin":
            return "/admin"
        if user_type == "customer":
            return "/dashboard"
        return "/"
    return None


GUARDS = {
    ADMIN: admin_route_redirect,
    CUSTOMER: customer_route_redirect,
    PUBLIC: public_route_redirect,
}


def resolve_redirect(guard_kind, auth):
    guard = GUARDS.get(guard_kind)
    if guard is None:
        return None
    return guard(auth)


def home_path_for(user):
    if not user:
        return "/"
    return "/admin" if user.get("user_type") == "admin" else "/dashboard"


def validation_messages(error):
    """Map a pydantic ValidationError to {field: message}."""
    messages = {}
    for err in error.errors():
        field = str(err["loc"][0]) if err.get("loc") else "form"
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.setdefault(field, message)
    return messages


def login_user(email, password):
    """POST /auth/login and return (user, token)."""
    response = api.post("/auth/login", json={"email": email, "password": password}) or {}
    token = response.get("token")
    user = response.get("userInfo")
    if not token or not user:
        raise ApiError("Invalid login response from server")
    return user, token


def register_user(request):
    return api.post("/auth/register", json=request.model_dump(mode="json"))


def login(cookie_manager):
    st.subheader("Sign In")
    with st.form(key="login_form"):
        email = sanitize_input(st.text_input("Email"))
        password = st.text_input("Password", type="password")
        submit = st.form_submit_button("Sign In")

    if submit:
        if not email or not password:
            st.error("Please enter your email and password.")
            return
        try:
            user, token = login_user(email.strip(), password)
        except ApiError as e:
            logger.warning(f"Login failed for {email}: {e}")
            st.error(e.message or "Invalid email or password.")
            return
        login_session(cookie_manager, user, token)
        st.success(f"Welcome back, {user.get('first_name', '')}!")
        time.sleep(0.5)
        navigate(st.session_state.pop("after_login", None) or home_path_for(user))

    st.write("Don't have an account?")
    if st.button("Create an account"):
        navigate("/register")


def register():
    st.subheader("Create Account")
    with st.form(key="register_form"):
        col1, col2 = st.columns(2)
        with col1:
            first_name = sanitize_input(st.text_input("First name"))
        with col2:
            last_name = sanitize_input(st.text_input("Last name"))
        email = sanitize_input(st.text_input("Email"))
        phone_number = sanitize_input(st.text_input("Phone number"))
        password = st.text_input("Password", type="password")
        confirm_password = st.text_input("Confirm password", type="password")
        submit = st.form_submit_button("Register")

    if submit:
        if password != confirm_password:
            st.error("Passwords do not match.")
            return
        try:
            request = RegisterRequest(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone_number=phone_number,
                password=password,
            )
        except ValidationError as e:
            for field, message in validation_messages(e).items():
                st.error(f"{field.replace('_', ' ').capitalize()}: {message}")
            return

        try:
            register_user(request)
        except ApiError as e:
            logger.warning(f"Registration failed for {email}: {e}")
            st.error(f"Registration failed: {e.message}")
            return
        st.success("Registration successful! Redirecting to sign in...")
        time.sleep(1.5)
        navigate("/login")

    if st.button("Already have an account? Sign in"):
        navigate("/login")


def logout(cookie_manager):
    logout_session(cookie_manager)
    st.success("Signed out successfully!")
    time.sleep(0.5)
    navigate("/")
