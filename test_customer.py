import pytest
import modules.customer as customer_module
import modules.review as review_module
import modules.support as support_module
from pydantic import ValidationError
from conftest import FakeApi
from models.support_model import SupportTicketRequest
from models.review_model import Review, ReviewRequest
from models.user_model import UserUpdate
from modules.customer import change_password, update_profile, validate_password_change
from modules.review import average_rating, fetch_vehicle_reviews, filter_reviews, stars
from modules.support import create_ticket, fetch_my_tickets


def test_password_change_validation():
    assert validate_password_change("", "secret1", "secret1") == "Current password is required"
    assert validate_password_change("old", "123", "123") == "New password must be at least 6 characters"
    assert validate_password_change("old", "secret1", "secret2") == "New passwords do not match"
    assert validate_password_change("old", "secret1", "secret1") is None


def test_change_password_endpoint(monkeypatch):
    api = FakeApi()
    monkeypatch.setattr(customer_module, "api", api)
    change_password("old", "secret1")
    assert api.calls == [("PUT", "/users/change-password",
                          {"json": {"current_password": "old", "new_password": "secret1"}})]


def test_update_profile_prefers_server_copy(monkeypatch):
    api = FakeApi({("PUT", "/users/7"): {"user": {"user_id": 7, "first_name": "Janet", "password": "x"}}})
    monkeypatch.setattr(customer_module, "api", api)

    updates = update_profile(7, UserUpdate(first_name="Janet", address=None))

    assert api.calls[0][2] == {"json": {"first_name": "Janet"}}
    assert updates == {"first_name": "Janet"}


def test_update_profile_falls_back_to_sent_fields(monkeypatch):
    monkeypatch.setattr(customer_module, "api", FakeApi({("PUT", "/users/7"): {"message": "updated"}}))
    assert update_profile(7, UserUpdate(phone_number="0700")) == {"phone_number": "0700"}


def test_damage_report_needs_booking():
    with pytest.raises(ValidationError):
        SupportTicketRequest(subject="Scratch", description="Rear bumper", type="damage_report")
    ticket = SupportTicketRequest(subject="Scratch", description="Rear bumper", type="damage_report", booking_id=4)
    assert ticket.booking_id == 4


def test_create_and_list_tickets(monkeypatch):
    api = FakeApi({("GET", "/tickets/my-tickets"): {"tickets": [
        {"ticket_id": 1, "subject": "Help", "status": "Open"},
        {"subject": "no id"},
    ]}})
    monkeypatch.setattr(support_module, "api", api)

    create_ticket(SupportTicketRequest(subject="Help", description="Where is my car?"))
    assert api.calls[0] == ("POST", "/tickets", {"json": {
        "subject": "Help", "description": "Where is my car?", "type": "general_inquiry",
    }})
    assert [t.ticket_id for t in fetch_my_tickets()] == [1]


def test_review_rating_bounds():
    with pytest.raises(ValidationError):
        ReviewRequest(booking_id=1, vehicle_id=2, rating=6)
    assert ReviewRequest(booking_id=1, vehicle_id=2, rating=5).rating == 5


def test_vehicle_reviews_only_approved(monkeypatch):
    api = FakeApi({("GET", "/reviews/vehicle/3"): [
        {"review_id": 1, "rating": 5, "is_approved": True},
        {"review_id": 2, "rating": 1, "is_approved": False},
        {"review_id": 3, "rating": 4},
    ]})
    monkeypatch.setattr(review_module, "api", api)
    reviews = fetch_vehicle_reviews(3)
    assert [r.review_id for r in reviews] == [1, 3]
    assert average_rating(reviews) == 4.5


def test_review_helpers():
    reviews = [Review(review_id=1, rating=4, is_approved=True), Review(review_id=2, rating=2)]
    assert [r.review_id for r in filter_reviews(reviews, "pending")] == [2]
    assert [r.review_id for r in filter_reviews(reviews, "approved")] == [1]
    assert average_rating([]) is None
    assert stars(3) == "★★★☆☆"
    assert Review(review_id=9).author == "Anonymous"
