import re
import html
import datetime


def sanitize_input(input_string):
    """Strip HTML tags and escape special characters in user input."""
    if not input_string:
        return ""
    # Remove HTML tags
    sanitized_string = re.sub('<[^<]+?>', '', input_string)
    # Escape remaining special characters as HTML entities
    sanitized_string = html.escape(sanitized_string)
    return sanitized_string


def parse_datetime(value):
    """Parse an ISO date/datetime string (or date object) returned by the API."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        return None


def format_date(value):
    parsed = parse_datetime(value)
    return parsed.strftime("%b %d, %Y") if parsed else "-"


def format_datetime(value):
    parsed = parse_datetime(value)
    return parsed.strftime("%b %d, %I:%M %p") if parsed else "-"


def format_currency(amount):
    try:
        return f"${float(amount):,.2f}"
    except (TypeError, ValueError):
        return "$0.00"


def show_retry_screen(message, key):
    """Generic failure screen: error message plus a button that reloads the page."""
    import streamlit as st
    st.error(message)
    if st.button("Try Again", key=f"retry_{key}"):
        st.rerun()
