import pytest
import streamlit as st


class FakeApi:
    """Stands in for config.api: records calls and replays canned responses."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def _reply(self, method, path, **kwargs):
        self.calls.append((method, path, kwargs))
        result = self.responses.get((method, path))
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, path, params=None):
        return self._reply("GET", path, params=params)

    def post(self, path, json=None):
        return self._reply("POST", path, json=json)

    def put(self, path, json=None):
        return self._reply("PUT", path, json=json)

    def patch(self, path, json=None):
        return self._reply("PATCH", path, json=json)

    def delete(self, path):
        return self._reply("DELETE", path)


@pytest.fixture
def session_state(monkeypatch):
    state = {}
    monkeypatch.setattr(st, "session_state", state)
    return state
