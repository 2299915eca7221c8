import random
import contextlib
import pytest
import streamlit as st
import modules.vehicle as vehicle_module
from conftest import FakeApi
from models.vehicle_model import Vehicle
from modules.vehicle import (
    build_vehicle_query,
    calculate_rental_quote,
    count_active_filters,
    debounce_filters,
    edit_vehicle,
    empty_filters,
    fetch_vehicles,
    parse_price_range,
    pick_related_vehicles,
    price_range_label,
    vehicle_status_stats,
)


def make_vehicle(vehicle_id, **overrides):
    data = {
        "vehicle_id": vehicle_id,
        "rental_rate": 45,
        "availability": True,
        "current_location": "Nairobi",
        "specification": {"manufacturer": "Toyota", "model": "Camry", "year": 2022},
    }
    data.update(overrides)
    return data


# Quote
def test_quote_for_three_days():
    quote = calculate_rental_quote("2024-03-15", "2024-03-18", 45)
    assert quote["days"] == 3
    assert quote["subtotal"] == 135
    assert quote["insurance"] == 15
    assert quote["tax"] == pytest.approx(10.80)
    assert quote["total"] == pytest.approx(160.80)


def test_quote_rounds_partial_days_up():
    quote = calculate_rental_quote("2024-03-15T10:00:00", "2024-03-16T12:00:00", 30)
    assert quote["days"] == 2
    assert quote["subtotal"] == 60


@pytest.mark.parametrize("pickup, ret", [
    ("2024-03-15", "2024-03-15"),
    ("2024-03-18", "2024-03-15"),
    (None, "2024-03-15"),
    ("2024-03-15", ""),
])
def test_no_quote_without_a_positive_duration(pickup, ret):
    assert calculate_rental_quote(pickup, ret, 45) is None


# Filters
def test_build_vehicle_query_drops_empty_values():
    filters = empty_filters()
    filters.update(location="Nairobi", price_range="50-100")
    assert build_vehicle_query(filters) == {"location": "Nairobi", "price_range": "50-100"}


def test_count_active_filters():
    filters = empty_filters()
    assert count_active_filters(filters) == 0
    filters.update(fuel_type="Diesel", search="camry")
    assert count_active_filters(filters) == 2


def test_parse_price_range():
    assert parse_price_range("50-100") == (50, 100)
    assert parse_price_range("200+") == (200, None)
    assert parse_price_range("") is None
    assert parse_price_range("cheap") is None
    assert parse_price_range("cheap+") is None
    assert parse_price_range("-5") is None


def test_price_range_label():
    assert price_range_label("0-50") == "Under $50"
    assert price_range_label("50-100") == "$50 - $100"
    assert price_range_label("200+") == "$200+"
    assert price_range_label("") == "Any price"
    assert price_range_label("cheap+") == "cheap+"


def test_debounce_commits_first_filters_immediately():
    filters = empty_filters()
    state, committed, wait = debounce_filters(None, filters, now=10.0, delay=0.5)
    assert committed == filters
    assert wait == 0
    assert state["committed"] == filters


def test_debounce_holds_changes_until_stable():
    initial = empty_filters()
    state, _, _ = debounce_filters(None, initial, now=10.0, delay=0.5)

    changed = dict(initial, location="Mombasa")
    state, committed, wait = debounce_filters(state, changed, now=20.0, delay=0.5)
    assert committed == initial
    assert wait == pytest.approx(0.5)

    state, committed, wait = debounce_filters(state, changed, now=20.3, delay=0.5)
    assert committed == initial
    assert wait == pytest.approx(0.2)

    state, committed, wait = debounce_filters(state, changed, now=20.5, delay=0.5)
    assert committed == changed
    assert wait == 0


def test_debounce_restarts_window_on_every_change():
    initial = empty_filters()
    state, _, _ = debounce_filters(None, initial, now=0.0, delay=0.5)
    state, _, _ = debounce_filters(state, dict(initial, search="c"), now=1.0, delay=0.5)
    state, committed, wait = debounce_filters(state, dict(initial, search="ca"), now=1.4, delay=0.5)
    assert committed == initial
    assert wait == pytest.approx(0.5)


def test_debounce_wait_never_exceeds_window():
    initial = empty_filters()
    state, _, _ = debounce_filters(None, initial, now=5.0, delay=0.5)
    state, _, _ = debounce_filters(state, dict(initial, search="c"), now=5.0, delay=0.5)
    # a clock reading earlier than the last change
    state, committed, wait = debounce_filters(state, dict(initial, search="c"), now=3.0, delay=0.5)
    assert committed == initial
    assert wait == pytest.approx(0.5)

def test_vehicle_status_stats():
    vehicles = [
        make_vehicle(1, status="available"),
        make_vehicle(2, status="available"),
        make_vehicle(3, status="rented"),
        make_vehicle(4, status="maintenance"),
    ]
    assert vehicle_status_stats(vehicles) == {"available": 2, "rented": 1, "maintenance": 1, "total": 4}


# REST
def test_fetch_vehicles_sends_only_active_filters(monkeypatch):
    api = FakeApi({("GET", "/vehicles"): {
        "vehicles": [make_vehicle(1), {"rental_rate": 10}],
        "total": 7, "page": 1, "limit": 10,
    }})
    monkeypatch.setattr(vehicle_module, "api", api)

    vehicles, total = fetch_vehicles(dict(empty_filters(), manufacturer="Toyota"))

    assert total == 7
    assert [v.vehicle_id for v in vehicles] == [1]
    assert vehicles[0].display_name == "Toyota Camry"
    assert api.calls == [("GET", "/vehicles", {"params": {"manufacturer": "Toyota"}})]


def test_related_vehicles_exclude_current_and_cap_at_five():
    vehicles = [Vehicle.model_validate(make_vehicle(i)) for i in range(1, 9)]
    related = pick_related_vehicles(vehicles, current_id=3, rng=random.Random(0))
    assert len(related) == 5
    assert all(v.vehicle_id != 3 for v in related)


def test_edit_vehicle_saves_changes(monkeypatch):
    api = FakeApi()
    monkeypatch.setattr(vehicle_module, "api", api)
    monkeypatch.setattr("streamlit.session_state", {"editing_vehicle_id": 1})
    monkeypatch.setattr("streamlit.subheader", lambda x: None)
    monkeypatch.setattr("streamlit.form", lambda key: contextlib.nullcontext())
    monkeypatch.setattr("streamlit.number_input", lambda label, min_value=None, value=None, step=None: value)
    monkeypatch.setattr("streamlit.selectbox", lambda label, options, index=0: options[index])
    monkeypatch.setattr("streamlit.checkbox", lambda label, value=False: value)
    monkeypatch.setattr("streamlit.form_submit_button", lambda label: True)
    monkeypatch.setattr("streamlit.success", lambda x: None)
    monkeypatch.setattr("streamlit.error", lambda x: pytest.fail(x))
    monkeypatch.setattr("streamlit.rerun", lambda: None)

    vehicle = Vehicle.model_validate(make_vehicle(1, current_location="Kisumu"))
    edit_vehicle(vehicle, ["Nairobi", "Mombasa"])

    assert api.calls == [("PUT", "/vehicles/1", {"json": {
        "rental_rate": 45.0,
        "availability": True,
        "current_location": "Kisumu",
    }})]
    assert st.session_state["editing_vehicle_id"] is None
