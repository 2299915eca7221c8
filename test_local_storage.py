import json
import time
from jose import jwt
import local_storage
from local_storage import (
    AUTH_STORAGE_KEY,
    clear_credentials,
    deserialize_auth_state,
    hydrate_auth_state,
    initial_auth_state,
    is_authenticated,
    is_token_expired,
    login_session,
    logout_session,
    set_credentials,
    update_session_profile,
    update_user_profile,
)

USER = {"user_id": 7, "first_name": "Jane", "user_type": "customer"}


class FakeCookies(dict):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.saved = 0

    def save(self):
        self.saved += 1


def make_token(seconds_from_now):
    return jwt.encode({"sub": "7", "exp": int(time.time()) + seconds_from_now}, "secret", algorithm="HS256")


def test_reducers_return_new_state():
    state = initial_auth_state()
    signed_in = set_credentials(state, USER, "tok")
    assert state["isAuthenticated"] is False
    assert signed_in == {"token": "tok", "isAuthenticated": True, "user": USER}
    assert is_authenticated(signed_in)
    assert clear_credentials(signed_in) == initial_auth_state()


def test_update_user_profile_merges_fields():
    state = set_credentials(initial_auth_state(), USER, "tok")
    updated = update_user_profile(state, {"first_name": "Janet"})
    assert updated["user"]["first_name"] == "Janet"
    assert updated["user"]["user_id"] == 7
    assert state["user"]["first_name"] == "Jane"


def test_update_user_profile_without_user_is_noop():
    state = initial_auth_state()
    assert update_user_profile(state, {"first_name": "X"}) is state


def test_token_expiry():
    assert is_token_expired(make_token(-60))
    assert not is_token_expired(make_token(3600))
    assert not is_token_expired("opaque-session-token")
    assert is_token_expired(None)


def test_deserialize_tolerates_garbage():
    assert deserialize_auth_state("not json") == initial_auth_state()
    assert deserialize_auth_state(json.dumps([1, 2])) == initial_auth_state()
    assert deserialize_auth_state(None) == initial_auth_state()


def test_login_and_logout_persist_cookie(session_state):
    cookies = FakeCookies()
    login_session(cookies, USER, "tok")
    assert session_state[local_storage.SESSION_KEY]["token"] == "tok"
    assert json.loads(cookies[AUTH_STORAGE_KEY])["user"]["user_id"] == 7

    logout_session(cookies)
    assert json.loads(cookies[AUTH_STORAGE_KEY]) == initial_auth_state()
    assert cookies.saved == 2


def test_hydrate_restores_valid_session(session_state):
    token = make_token(3600)
    cookies = FakeCookies({AUTH_STORAGE_KEY: json.dumps({"token": token, "isAuthenticated": True, "user": USER})})
    state = hydrate_auth_state(cookies)
    assert state["token"] == token
    assert is_authenticated(state)
    assert cookies.saved == 0


def test_hydrate_discards_expired_token(session_state):
    cookies = FakeCookies({AUTH_STORAGE_KEY: json.dumps({"token": make_token(-60), "isAuthenticated": True, "user": USER})})
    state = hydrate_auth_state(cookies)
    assert state == initial_auth_state()
    assert json.loads(cookies[AUTH_STORAGE_KEY]) == initial_auth_state()


def test_update_session_profile(session_state):
    cookies = FakeCookies()
    login_session(cookies, USER, "tok")
    update_session_profile(cookies, {"phone_number": "0700"})
    assert session_state[local_storage.SESSION_KEY]["user"]["phone_number"] == "0700"
    assert json.loads(cookies[AUTH_STORAGE_KEY])["user"]["phone_number"] == "0700"
