import datetime
import json
import logging
import streamlit as st
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# Cookie key for the persisted auth slice
AUTH_STORAGE_KEY = "persist:auth"
SESSION_KEY = "auth"
PERSISTED_FIELDS = ("token", "isAuthenticated", "user")


def initial_auth_state():
    return {"token": None, "isAuthenticated": False, "user": None}


# Reducers: always return a new state dict
def set_credentials(state, user, token):
    new_state = dict(state)
    new_state["user"] = dict(user) if user else None
    new_state["token"] = token
    new_state["isAuthenticated"] = True
    return new_state


def clear_credentials(state):
    new_state = dict(state)
    new_state.update(initial_auth_state())
    return new_state


def update_user_profile(state, updates):
    """Merge updated fields into the stored user; no-op when logged out."""
    if not state.get("user"):
        return state
    new_state = dict(state)
    new_state["user"] = {**state["user"], **updates}
    return new_state


def is_authenticated(state):
    return bool(state.get("isAuthenticated") and state.get("user"))


def is_token_expired(token, now=None):
    """Check the exp claim of a JWT without verifying it.

    Opaque (non-JWT) tokens are never considered expired here; the backend
    rejects them when they are no longer valid.
    """
    if not token:
        return True
    raw = token.strip().strip('"')
    if raw.lower().startswith("bearer "):
        raw = raw[7:]
    try:
        claims = jwt.get_unverified_claims(raw)
    except JWTError:
        return False
    exp = claims.get("exp")
    if exp is None:
        return False
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return datetime.datetime.fromtimestamp(exp, tz=datetime.timezone.utc) <= now


def serialize_auth_state(state):
    return json.dumps({k: state.get(k) for k in PERSISTED_FIELDS})


def deserialize_auth_state(raw):
    if not raw:
        return initial_auth_state()
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Persisted auth state is not valid JSON, ignoring it.")
        return initial_auth_state()
    if not isinstance(data, dict):
        return initial_auth_state()
    state = initial_auth_state()
    state.update({k: data.get(k) for k in PERSISTED_FIELDS if k in data})
    state["isAuthenticated"] = bool(state.get("isAuthenticated"))
    return state


# Session helpers (st.session_state + cookie)
def get_auth_state():
    state = st.session_state.get(SESSION_KEY)
    if state is None:
        state = initial_auth_state()
        st.session_state[SESSION_KEY] = state
    return state


def get_token():
    return get_auth_state().get("token")


def get_current_user():
    return get_auth_state().get("user")


def persist_auth_state(cookie_manager, state):
    if cookie_manager is None:
        return
    cookie_manager[AUTH_STORAGE_KEY] = serialize_auth_state(state)
    cookie_manager.save()


def hydrate_auth_state(cookie_manager):
    """Load the persisted slice into the session (once per session)."""
    if st.session_state.get(SESSION_KEY) is not None:
        return st.session_state[SESSION_KEY]

    state = deserialize_auth_state(cookie_manager.get(AUTH_STORAGE_KEY))
    if state.get("token") and is_token_expired(state["token"]):
        logger.info("Persisted session token has expired, clearing credentials.")
        state = clear_credentials(state)
        persist_auth_state(cookie_manager, state)
    st.session_state[SESSION_KEY] = state
    return state


def login_session(cookie_manager, user, token):
    state = set_credentials(get_auth_state(), user, token)
    st.session_state[SESSION_KEY] = state
    persist_auth_state(cookie_manager, state)
    logger.info(f"User {user.get('user_id')} signed in.")
    return state


def logout_session(cookie_manager):
    user = get_current_user() or {}
    state = clear_credentials(get_auth_state())
    st.session_state[SESSION_KEY] = state
    persist_auth_state(cookie_manager, state)
    logger.info(f"User {user.get('user_id')} signed out.")
    return state


def update_session_profile(cookie_manager, updates):
    state = update_user_profile(get_auth_state(), updates)
    st.session_state[SESSION_KEY] = state
    persist_auth_state(cookie_manager, state)
    return state
