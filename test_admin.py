import datetime
import modules.admin as admin_module
from conftest import FakeApi
from models.booking_model import Booking
from models.settings_model import PlatformSettings
from models.user_model import User
from models.vehicle_model import Vehicle
from modules.admin import (
    SETTINGS_KEY,
    fetch_users,
    filter_users,
    load_settings,
    monthly_revenue,
    reset_settings,
    save_settings,
    status_breakdown,
    summarize_overview,
    toggle_user_role,
)

TODAY = datetime.date(2024, 3, 15)


def make_users():
    return [
        User(user_id=1, first_name="Ada", last_name="Admin", email="ada@rentwheels.co.ke",
             user_type="admin", created_at="2024-01-01T08:00:00Z"),
        User(user_id=2, first_name="Jane", last_name="Wanjiru", email="jane@example.com",
             phone_number="+254700123456", created_at="2024-03-15T09:30:00Z"),
        User(user_id=3, first_name="Otieno", last_name="Odhiambo", email="otieno@example.com",
             created_at="2024-03-14T12:00:00Z"),
    ]


def make_bookings():
    return [
        Booking(booking_id=1, total_amount=100, booking_status="Completed", booking_date="2024-02-10"),
        Booking(booking_id=2, total_amount=200, booking_status="approved", booking_date="2024-03-01"),
        Booking(booking_id=3, total_amount=50, booking_status="Approved", booking_date="2024-03-05"),
        Booking(booking_id=4, total_amount=80, booking_status="Pending", booking_date="2024-03-06"),
        Booking(booking_id=5, total_amount=70, booking_status="Cancelled", booking_date="2024-03-07"),
    ]


def test_summarize_overview():
    vehicles = [Vehicle(vehicle_id=1, availability=True), Vehicle(vehicle_id=2, availability=False)]
    summary = summarize_overview(make_users(), vehicles, make_bookings(), today=TODAY)
    assert summary == {
        "total_users": 3,
        "total_vehicles": 2,
        "available_vehicles": 1,
        "total_bookings": 5,
        "active_bookings": 0,
        "pending_bookings": 1,
        "total_revenue": 100,
        "new_users_today": 1,
    }


def test_monthly_revenue_groups_by_month():
    bookings = make_bookings() + [
        Booking(booking_id=6, total_amount=40, booking_status="completed", booking_date="2024-03-09"),
        Booking(booking_id=7, total_amount=60, booking_status="Completed", booking_date="2024-03-20"),
    ]
    df = monthly_revenue(bookings)
    assert df["Month"].tolist() == ["2024-02", "2024-03"]
    assert df["Revenue"].tolist() == [100, 100]


def test_only_completed_bookings_earn_revenue():
    bookings = [
        Booking(booking_id=1, total_amount=100, booking_status="Active", booking_date="2024-03-01"),
        Booking(booking_id=2, total_amount=50, booking_status="Approved", booking_date="2024-03-02"),
    ]
    summary = summarize_overview([], [], bookings, today=TODAY)
    assert summary["active_bookings"] == 1
    assert summary["total_revenue"] == 0
    assert monthly_revenue(bookings).empty


def test_confirmed_bookings_count_as_active():
    bookings = [Booking(booking_id=1, booking_status="Confirmed"), Booking(booking_id=2, booking_status="active")]
    assert summarize_overview([], [], bookings, today=TODAY)["active_bookings"] == 2


def test_monthly_revenue_empty():
    assert monthly_revenue([]).empty


def test_status_breakdown():
    df = status_breakdown(make_bookings())
    counts = dict(zip(df["Status"], df["Bookings"]))
    assert counts == {"Completed": 1, "Approved": 2, "Pending": 1, "Cancelled": 1}


def test_filter_users_by_search_and_role():
    users = make_users()
    assert [u.user_id for u in filter_users(users, "wanjiru")] == [2]
    assert [u.user_id for u in filter_users(users, "+2547")] == [2]
    assert [u.user_id for u in filter_users(users, "", "admin")] == [1]
    assert [u.user_id for u in filter_users(users, "example.com", "customer")] == [2, 3]
    assert filter_users(users, "ada", "customer") == []


def test_fetch_users_skips_malformed_records(monkeypatch):
    api = FakeApi({("GET", "/users"): [{"user_id": 1, "email": "a@b.c"}, {"email": "missing-id"}]})
    monkeypatch.setattr(admin_module, "api", api)
    assert [u.user_id for u in fetch_users()] == [1]


def test_toggle_user_role(monkeypatch):
    api = FakeApi()
    monkeypatch.setattr(admin_module, "api", api)
    customer = make_users()[1]

    assert toggle_user_role(customer) == "admin"
    assert api.calls == [("PATCH", "/user/user-status/2", {"json": {"user_type": "admin"}})]

    assert toggle_user_role(make_users()[0]) == "customer"


def test_settings_defaults(session_state):
    settings = load_settings()
    assert settings["company_name"] == "RentWheels Kenya"
    assert settings == PlatformSettings().model_dump()


def test_save_settings_reports_invalid_fields(session_state):
    values = dict(load_settings(), tax_rate=150, support_email="nope")
    errors = save_settings(values)
    assert set(errors) == {"tax_rate", "support_email"}
    assert session_state[SETTINGS_KEY]["tax_rate"] == 16


def test_save_and_reset_settings(session_state):
    assert save_settings(dict(load_settings(), company_name="RentWheels Mombasa", maintenance_mode=True)) == {}
    assert session_state[SETTINGS_KEY]["company_name"] == "RentWheels Mombasa"
    reset_settings()
    assert session_state[SETTINGS_KEY]["company_name"] == "RentWheels Kenya"
