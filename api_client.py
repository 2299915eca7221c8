import logging
import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error returned by the REST backend (a connection error when status_code is None)."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self):
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


def clean_params(params):
    """Drop empty filter values so they never reach the query string."""
    if not params:
        return {}
    cleaned = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        cleaned[key] = value
    return cleaned


def normalize_token(token):
    """Strip quotes and any existing 'Bearer ' prefix from a stored token."""
    if not token:
        return None
    token = token.strip().strip('"')
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token or None


def unwrap_list(payload, *keys):
    """Return the list inside a response that may or may not be wrapped."""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys + ("data",):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _error_message(response):
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "Request failed", None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message), body
    return response.reason or "Request failed", body


class ApiClient:
    def __init__(self, base_url, timeout=15, token_provider=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token_provider = token_provider

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        token = normalize_token(self.token_provider()) if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def url_for(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method, path, params=None, json=None):
        url = self.url_for(path)
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                params=clean_params(params),
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError("Unable to reach the server. Please check your connection.") from e

        if not response.ok:
            message, body = _error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, status_code=response.status_code, payload=body)

        logger.debug(f"{method} {path} -> {response.status_code}")
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path, params=None):
        return self.request("GET", path, params=params)

    def post(self, path, json=None):
        return self.request("POST", path, json=json)

    def put(self, path, json=None):
        return self.request("PUT", path, json=json)

    def patch(self, path, json=None):
        return self.request("PATCH", path, json=json)

    def delete(self, path):
        return self.request("DELETE", path)
