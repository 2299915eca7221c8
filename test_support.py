import pytest
import modules.support as support_module
from conftest import FakeApi
from models.support_model import SupportTicket
from modules.admin import MENU, SECTION_PATHS
from modules.routes import ADMIN, ROUTES, match_route
from modules.support import count_tickets_by_status, fetch_all_tickets, filter_tickets, update_ticket


def make_tickets():
    return [
        SupportTicket(ticket_id=1, subject="Scratch on door", description="Passenger side",
                      type="damage_report", status="Open", user_name="John Doe", booking_id=1),
        SupportTicket(ticket_id=2, subject="Charged twice", description="Booking 1234",
                      status="In Progress", user_email="sarah@example.com"),
        SupportTicket(ticket_id=3, subject="Great service", description="Thanks!", status="resolved"),
    ]


@pytest.fixture
def fake_api(monkeypatch):
    api = FakeApi()
    monkeypatch.setattr(support_module, "api", api)
    return api


def test_fetch_all_tickets(fake_api):
    fake_api.responses[("GET", "/tickets")] = {"success": True, "tickets": [
        {"ticket_id": 4, "subject": "App down", "status": "Open"},
        {"subject": "missing id"},
    ]}
    assert [t.ticket_id for t in fetch_all_tickets()] == [4]
    assert fake_api.calls[0][:2] == ("GET", "/tickets")


def test_update_ticket_sends_status_and_notes(fake_api):
    update_ticket(2, "Resolved", "  Duplicate charge refunded ")
    assert fake_api.calls == [("PATCH", "/tickets/2", {"json": {
        "status": "Resolved", "admin_notes": "Duplicate charge refunded",
    }})]


def test_update_ticket_rejects_unknown_status(fake_api):
    with pytest.raises(ValueError):
        update_ticket(2, "escalated")
    assert fake_api.calls == []


def test_filter_tickets_by_status_and_term():
    tickets = make_tickets()
    assert [t.ticket_id for t in filter_tickets(tickets, "In Progress")] == [2]
    assert [t.ticket_id for t in filter_tickets(tickets, "Resolved")] == [3]
    assert [t.ticket_id for t in filter_tickets(tickets, "all", "john")] == [1]
    assert [t.ticket_id for t in filter_tickets(tickets, "all", "sarah@")] == [2]
    assert filter_tickets(tickets, "Closed") == []


def test_count_tickets_by_status():
    assert count_tickets_by_status(make_tickets()) == {
        "open": 1, "in_progress": 1, "resolved": 1, "closed": 0,
    }


def test_support_section_is_an_admin_route():
    assert "Support" in MENU
    assert SECTION_PATHS["Support"] == "/admin/support"
    assert ROUTES["/admin/support"] == ADMIN
    assert match_route("/admin/support") == ("/admin/support", {})
