import pytest
import requests
from unittest.mock import MagicMock, patch
from api_client import ApiClient, ApiError, clean_params, normalize_token, unwrap_list


def make_response(status_code=200, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = "Bad Request" if status_code == 400 else "OK"
    response.content = b"{}" if body is not None else text.encode()
    response.text = text
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


def test_clean_params_drops_empty_values():
    assert clean_params({"location": "", "status": None, "page": 1, "available": True}) == {"page": 1, "available": "true"}
    assert clean_params(None) == {}


@pytest.mark.parametrize("raw, expected", [
    ("abc", "abc"),
    ('"abc"', "abc"),
    ("Bearer abc", "abc"),
    ('"Bearer abc"', "abc"),
    ("", None),
    (None, None),
])
def test_normalize_token(raw, expected):
    assert normalize_token(raw) == expected


def test_unwrap_list():
    assert unwrap_list([1, 2]) == [1, 2]
    assert unwrap_list({"vehicles": [1]}, "vehicles") == [1]
    assert unwrap_list({"data": [3]}, "vehicles") == [3]
    assert unwrap_list({"message": "ok"}) == []
    assert unwrap_list(None) == []


def test_request_sends_bearer_token_once():
    client = ApiClient("http://localhost:3000/api/", timeout=5, token_provider=lambda: '"Bearer abc"')
    with patch("api_client.requests.request", return_value=make_response(body={"ok": True})) as mock_request:
        result = client.get("/vehicles", params={"location": "Nairobi", "search": ""})

    assert result == {"ok": True}
    args, kwargs = mock_request.call_args
    assert args == ("GET", "http://localhost:3000/api/vehicles")
    assert kwargs["headers"]["Authorization"] == "Bearer abc"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["params"] == {"location": "Nairobi"}
    assert kwargs["timeout"] == 5


def test_request_without_token_has_no_authorization_header():
    client = ApiClient("http://api", token_provider=lambda: None)
    with patch("api_client.requests.request", return_value=make_response(body=[])) as mock_request:
        client.post("/auth/login", json={"email": "a@b.c"})
    headers = mock_request.call_args.kwargs["headers"]
    assert "Authorization" not in headers
    assert mock_request.call_args.kwargs["json"] == {"email": "a@b.c"}


def test_error_response_uses_backend_message():
    client = ApiClient("http://api")
    with patch("api_client.requests.request", return_value=make_response(400, {"message": "Vehicle not available"})):
        with pytest.raises(ApiError) as excinfo:
            client.post("/bookings", json={})
    assert excinfo.value.message == "Vehicle not available"
    assert excinfo.value.status_code == 400
    assert str(excinfo.value) == "Vehicle not available (HTTP 400)"


def test_error_response_without_json_body():
    client = ApiClient("http://api")
    with patch("api_client.requests.request", return_value=make_response(400, text="Bad gateway text")):
        with pytest.raises(ApiError) as excinfo:
            client.get("/vehicles")
    assert excinfo.value.message == "Bad gateway text"


def test_transport_error_becomes_api_error():
    client = ApiClient("http://api")
    with patch("api_client.requests.request", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(ApiError) as excinfo:
            client.delete("/bookings/1")
    assert excinfo.value.status_code is None


def test_empty_response_returns_none():
    client = ApiClient("http://api")
    response = make_response(204, text="")
    with patch("api_client.requests.request", return_value=response):
        assert client.delete("/bookings/1") is None
