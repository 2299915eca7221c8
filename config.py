import os
from dotenv import load_dotenv
import logging
from api_client import ApiClient

# Load environment variables from .env
load_dotenv()

# REST backend
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3000/api")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))

# Cookie used to persist the auth slice in the browser
COOKIE_PASSWORD = os.getenv("COOKIE_PASSWORD", "rentwheels-storefront")
COOKIE_PREFIX = os.getenv("COOKIE_PREFIX", "rentwheels/")

# Vehicle listing filters are only sent after being stable this long
FILTER_DEBOUNCE_SECONDS = float(os.getenv("FILTER_DEBOUNCE_SECONDS", "0.5"))

# Detailed logging configuration
LOG_FILE = os.getenv("LOG_FILE", "system.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    filename=LOG_FILE,
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def _current_token():
    from local_storage import get_token
    return get_token()


# Shared client; the token is read from the current session on every request
api = ApiClient(API_BASE_URL, timeout=REQUEST_TIMEOUT, token_provider=_current_token)
