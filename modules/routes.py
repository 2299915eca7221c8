import logging
import streamlit as st

logger = logging.getLogger(__name__)

PUBLIC = "public"      # only for visitors that are not signed in
OPEN = "open"          # anyone
CUSTOMER = "customer"
ADMIN = "admin"

# path pattern -> guard kind
ROUTES = {
    "/": OPEN,
    "/vehicles": OPEN,
    "/vehicles/:id": OPEN,
    "/login": PUBLIC,
    "/register": PUBLIC,
    "/dashboard": CUSTOMER,
    "/my-bookings": CUSTOMER,
    "/bookings/new": CUSTOMER,
    "/booking-confirmation/:id": CUSTOMER,
    "/payment/callback": CUSTOMER,
    "/admin": ADMIN,
    "/admin/users": ADMIN,
    "/admin/vehicles": ADMIN,
    "/admin/bookings": ADMIN,
    "/admin/payments": ADMIN,
    "/admin/reviews": ADMIN,
    "/admin/support": ADMIN,
    "/admin/settings": ADMIN,
}


def _split(path):
    return [part for part in (path or "").split("?")[0].split("/") if part]


def match_route(path):
    """Return (pattern, params) for a path; unknown paths resolve to '/'."""
    parts = _split(path)
    for pattern in ROUTES:
        pattern_parts = _split(pattern)
        if len(pattern_parts) != len(parts):
            continue
        params = {}
        for expected, actual in zip(pattern_parts, parts):
            if expected.startswith(":"):
                params[expected[1:]] = actual
            elif expected != actual:
                break
        else:
            return pattern, params
    return "/", {}


def current_path():
    return st.query_params.get("page", "/")


def current_param(name, default=None):
    return st.query_params.get(name, default)


def navigate(path, **params):
    """Move to another page, carrying optional query parameters."""
    logger.debug(f"Navigating to {path}")
    st.query_params.clear()
    st.query_params["page"] = path
    for key, value in params.items():
        if value is not None:
            st.query_params[key] = str(value)
    st.rerun()
