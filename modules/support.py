import logging
import streamlit as st
from pydantic import ValidationError
from config import api
from api_client import ApiError, unwrap_list
from models.support_model import SupportTicket, SupportTicketRequest, TICKET_TYPES, TICKET_STATUSES
from utils import sanitize_input, format_date, show_retry_screen

logger = logging.getLogger(__name__)


def create_ticket(request):
    logger.info(f"Creating {request.type} support ticket")
    return api.post("/tickets", json=request.model_dump(exclude_none=True))


def fetch_my_tickets():
    tickets = []
    for item in unwrap_list(api.get("/tickets/my-tickets"), "tickets"):
        try:
            tickets.append(SupportTicket.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed ticket record: {e}")
    return tickets


def support_page(user):
    from modules.auth import validation_messages
    from modules.booking import fetch_my_bookings

    st.subheader("Support")
    try:
        bookings = fetch_my_bookings()
    except ApiError as e:
        logger.warning(f"Could not load bookings for support form: {e}")
        bookings = []

    with st.form(key="support_ticket_form"):
        ticket_type = st.selectbox("Type", TICKET_TYPES, format_func=lambda t: t.replace("_", " ").capitalize())
        booking = st.selectbox("Related booking", [None] + bookings,
                               format_func=lambda b: "None" if b is None else
                               f"#{b.booking_id} · {b.vehicle_manufacturer or ''} {b.vehicle_model or ''}")
        subject = sanitize_input(st.text_input("Subject"))
        description = sanitize_input(st.text_area("Description"))
        submit = st.form_submit_button("Submit ticket")

    if submit:
        try:
            request = SupportTicketRequest(
                subject=subject,
                description=description,
                type=ticket_type,
                booking_id=booking.booking_id if booking else None,
            )
        except ValidationError as e:
            for field, message in validation_messages(e).items():
                st.error(f"{field.replace('_', ' ').capitalize()}: {message}")
        else:
            try:
                create_ticket(request)
            except ApiError as e:
                st.error(f"Could not submit ticket: {e.message}")
            else:
                st.success("Ticket submitted. Our team will get back to you soon.")

    st.subheader("My tickets")
    try:
        tickets = fetch_my_tickets()
    except ApiError as e:
        logger.error(f"Error loading tickets for user {user.get('user_id')}: {e}")
        show_retry_screen("We couldn't load your tickets. Please try again.", "tickets")
        return
    if not tickets:
        st.write("You have no support tickets.")
    for ticket in tickets:
        with st.expander(f"{ticket.subject} · {ticket.status} · {format_date(ticket.created_at)}"):
            st.write(ticket.description)
            if ticket.booking_id:
                st.caption(f"Booking #{ticket.booking_id}")
            if ticket.admin_notes:
                st.info(f"Support: {ticket.admin_notes}")


# Admin
def _status_key(status):
    return (status or "").strip().lower().replace(" ", "_")


def fetch_all_tickets():
    tickets = []
    for item in unwrap_list(api.get("/tickets"), "tickets"):
        try:
            tickets.append(SupportTicket.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed ticket record: {e}")
    return tickets


def filter_tickets(tickets, status="all", term=""):
    """Tickets matching a status key ("open", "in_progress", ...) and a free-text term."""
    term = (term or "").strip().lower()
    results = []
    for t in tickets:
        if status != "all" and t.status_key != _status_key(status):
            continue
        haystack = " ".join(str(v) for v in (t.ticket_id, t.subject, t.description, t.user_name, t.user_email) if v)
        if term and term not in haystack.lower():
            continue
        results.append(t)
    return results


def count_tickets_by_status(tickets):
    counts = {_status_key(s): 0 for s in TICKET_STATUSES}
    for t in tickets:
        if t.status_key in counts:
            counts[t.status_key] += 1
    return counts


def update_ticket(ticket_id, status, admin_notes=""):
    if status not in TICKET_STATUSES:
        raise ValueError(f"Unknown ticket status: {status}")
    logger.info(f"Updating ticket {ticket_id} status to {status}")
    return api.patch(f"/tickets/{ticket_id}", json={"status": status, "admin_notes": (admin_notes or "").strip()})


def manage_tickets():
    st.subheader("Support Tickets")
    try:
        tickets = fetch_all_tickets()
    except ApiError as e:
        logger.error(f"Error loading support tickets: {e}")
        show_retry_screen("We couldn't load support tickets. Please try again.", "admin_tickets")
        return

    counts = count_tickets_by_status(tickets)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total", len(tickets))
    c2.metric("Open", counts["open"])
    c3.metric("In progress", counts["in_progress"])
    c4.metric("Resolved", counts["resolved"])

    col1, col2 = st.columns([2, 1])
    term = sanitize_input(col1.text_input("Search tickets by user, subject or content"))
    status = col2.selectbox("Status", ["all"] + TICKET_STATUSES, format_func=lambda s: "All" if s == "all" else s)

    filtered = filter_tickets(tickets, status, term)
    if not filtered:
        st.write("No support tickets found.")
        return

    for ticket in filtered:
        who = ticket.user_name or ticket.user_email or f"User #{ticket.user_id}"
        with st.expander(f"#{ticket.ticket_id} · {ticket.subject} · {ticket.status} · {who}"):
            st.caption(f"{ticket.type.replace('_', ' ').capitalize()} · opened {format_date(ticket.created_at)}")
            st.write(ticket.description)
            if ticket.booking_id:
                st.caption(f"Booking #{ticket.booking_id}")
            with st.form(key=f"ticket_form_{ticket.ticket_id}"):
                current = TICKET_STATUSES.index(ticket.status) if ticket.status in TICKET_STATUSES else 0
                new_status = st.selectbox("Status", TICKET_STATUSES, index=current, key=f"ticket_status_{ticket.ticket_id}")
                notes = sanitize_input(st.text_area("Admin notes", ticket.admin_notes or "", key=f"ticket_notes_{ticket.ticket_id}"))
                submit = st.form_submit_button("Update ticket")
            if submit:
                try:
                    update_ticket(ticket.ticket_id, new_status, notes)
                except ApiError as e:
                    st.error(f"Could not update ticket: {e.message}")
                else:
                    st.toast(f"Ticket #{ticket.ticket_id} marked {new_status}.")
                    st.rerun()
