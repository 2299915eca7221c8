import logging
import datetime
from io import BytesIO
import pandas as pd
import streamlit as st
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from pydantic import ValidationError
from config import api
from api_client import ApiError, unwrap_list
from models.payment_model import Payment, PaymentStats, PAYMENT_STATUSES
from utils import format_currency, format_datetime, show_retry_screen

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ["stripe", "mpesa", "card", "cash"]
PAYMENT_COLUMNS = ["Payment ID", "Booking ID", "Customer", "Email", "Amount", "Status", "Method", "Transaction", "Date"]


def create_checkout_session(booking):
    """Ask the backend for a hosted checkout session and return its URL."""
    payload = booking.model_dump() if hasattr(booking, "model_dump") else dict(booking)
    booking_id = payload.get("booking_id")
    logger.info(f"Creating checkout session for booking {booking_id}")
    response = api.post("/payments/create-intent", json=payload)
    session = response.get("session") if isinstance(response, dict) else None
    url = session.get("url") if isinstance(session, dict) else None
    if not url:
        logger.error(f"Checkout response for booking {booking_id} carried no session URL")
        raise ApiError("Invalid checkout response", payload=response)
    return url


def parse_payment_callback(params):
    """Return (ok, booking_id, message) from the checkout return parameters."""
    status = params.get("status")
    booking_id = params.get("booking_id")
    if status == "success":
        return True, booking_id, "Payment successful! Your booking is being processed."
    if status == "cancelled":
        return False, booking_id, "Payment was cancelled. You can try again from My Bookings."
    return False, booking_id, "Payment failed. Please try again."


def redirect_to_checkout(url):
    st.markdown(f'<meta http-equiv="refresh" content="0; url={url}">', unsafe_allow_html=True)
    st.info("Redirecting you to the secure checkout page...")
    st.link_button("Continue to checkout", url, type="primary")


def start_checkout(booking):
    try:
        url = create_checkout_session(booking)
    except ApiError as e:
        logger.error(f"Checkout failed for booking {getattr(booking, 'booking_id', None)}: {e}")
        st.error(f"Could not start payment: {e.message}")
        return
    redirect_to_checkout(url)


def payment_callback():
    from modules.routes import navigate

    ok, booking_id, message = parse_payment_callback(dict(st.query_params))
    st.header("Payment")
    if ok:
        st.success(message)
        logger.info(f"Payment completed for booking {booking_id}")
        if st.button("View my bookings", type="primary"):
            navigate("/my-bookings", payment_success="true", booking_id=booking_id)
    else:
        st.error(message)
        logger.warning(f"Payment not completed for booking {booking_id}")
        if st.button("Back to my bookings"):
            navigate("/my-bookings")


def initiate_mpesa_payment(booking):
    """Send an STK push for the booking; True when the backend accepted it."""
    booking_id = getattr(booking, "booking_id", None)
    amount = getattr(booking, "total_amount", None)
    if isinstance(booking, dict):
        booking_id, amount = booking.get("booking_id"), booking.get("total_amount")
    logger.info(f"Initiating M-Pesa payment for booking {booking_id}")
    response = api.post("/payments/mpesa-payment", json={"booking_id": booking_id, "amount": amount})
    return bool(isinstance(response, dict) and response.get("success"))


def start_mpesa(booking):
    try:
        accepted = initiate_mpesa_payment(booking)
    except ApiError as e:
        logger.error(f"M-Pesa payment failed for booking {getattr(booking, 'booking_id', None)}: {e}")
        st.error(f"Payment failed: {e.message}")
        return
    if accepted:
        st.success("M-Pesa payment initiated! Check your phone.")
    else:
        st.error("M-Pesa payment failed")


# Admin
def build_payment_filters(status="", method="", date_from=None, date_to=None, search=""):
    return {
        "payment_status": status,
        "payment_method": method,
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "search": (search or "").strip(),
    }


def fetch_payments(filters=None):
    items = unwrap_list(api.get("/payments", params=filters or {}), "payments")
    payments = []
    for item in items:
        try:
            payments.append(Payment.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed payment record: {e}")
    return payments


def fetch_payment_stats():
    payload = api.get("/payments/stats") or {}
    if isinstance(payload, dict) and "stats" in payload:
        payload = payload["stats"]
    return PaymentStats.model_validate(payload)


def update_payment_status(payment_id, status):
    if status not in PAYMENT_STATUSES:
        raise ValueError(f"Unknown payment status: {status}")
    logger.info(f"Updating payment {payment_id} status to {status}")
    return api.put(f"/payments/{payment_id}/status", json={"payment_status": status})


def refund_payment(payment_id, reason):
    if not reason or not reason.strip():
        raise ValueError("A refund reason is required")
    logger.info(f"Refunding payment {payment_id}")
    return api.post("/payments/refund", json={"payment_id": payment_id, "refund_reason": reason.strip()})


def payments_dataframe(payments):
    rows = [[
        p.payment_id,
        p.booking_id,
        p.user_name or "",
        p.user_email or "",
        p.amount,
        p.payment_status,
        p.payment_method or "",
        p.transaction_id or "",
        format_datetime(p.created_at),
    ] for p in payments]
    return pd.DataFrame(rows, columns=PAYMENT_COLUMNS)


def export_payments_to_excel(payments_df, stats=None):
    output = BytesIO()
    workbook = Workbook()

    bold_font = Font(bold=True)
    center_alignment = Alignment(horizontal="center")
    border = Border(left=Side(style='thin'),
                    right=Side(style='thin'),
                    top=Side(style='thin'),
                    bottom=Side(style='thin'))

    def write_sheet(sheet, df):
        for r in dataframe_to_rows(df, index=False, header=True):
            sheet.append(r)
        for cell in sheet["1:1"]:
            cell.font = bold_font
            cell.alignment = center_alignment
        for row in sheet.iter_rows():
            for cell in row:
                cell.border = border

    sheet_payments = workbook.active
    sheet_payments.title = "Payments"
    write_sheet(sheet_payments, payments_df)

    if stats is not None:
        stats_df = pd.DataFrame(
            [(k.replace("_", " ").capitalize(), v) for k, v in stats.model_dump().items()],
            columns=["Metric", "Value"],
        )
        write_sheet(workbook.create_sheet("Summary"), stats_df)

    workbook.save(output)
    return output.getvalue()


def export_payments_to_csv(payments_df):
    return payments_df.to_csv(index=False).encode("utf-8")


def manage_payments():
    st.subheader("Payment Management")

    try:
        stats = fetch_payment_stats()
    except ApiError as e:
        logger.warning(f"Could not load payment stats: {e}")
        stats = None
    if stats:
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Total revenue", format_currency(stats.total_revenue))
        c2.metric("This month", format_currency(stats.monthly_revenue))
        c3.metric("Completed / pending", f"{stats.completed_payments} / {stats.pending_payments}")
        c4.metric("Refunded", format_currency(stats.refunded_amount))

    col1, col2, col3, col4 = st.columns(4)
    status = col1.selectbox("Status", [""] + PAYMENT_STATUSES, format_func=lambda v: v or "All")
    method = col2.selectbox("Method", [""] + PAYMENT_METHODS, format_func=lambda v: v.capitalize() if v else "All")
    start_date = col3.date_input("From", datetime.date.today() - datetime.timedelta(days=30))
    end_date = col4.date_input("To", datetime.date.today())
    search = st.text_input("Search (customer, email or transaction)")

    filters = build_payment_filters(status, method, start_date, end_date, search)
    try:
        payments = fetch_payments(filters)
    except ApiError as e:
        logger.error(f"Error loading payments: {e}")
        show_retry_screen("We couldn't load payments. Please try again.", "payments")
        return

    df = payments_dataframe(payments)
    if df.empty:
        st.write("No payments match these filters.")
        return
    st.dataframe(df, hide_index=True)

    col1, col2 = st.columns(2)
    col1.download_button("Export to Excel", export_payments_to_excel(df, stats), file_name="payments.xlsx",
                         mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    col2.download_button("Export to CSV", export_payments_to_csv(df), file_name="payments.csv", mime="text/csv")

    st.subheader("Update a payment")
    selected = st.selectbox("Payment", payments,
                            format_func=lambda p: f"#{p.payment_id} · {p.user_name or '-'} · {format_currency(p.amount)} · {p.payment_status}")
    tab_status, tab_refund = st.tabs(["Change status", "Refund"])
    with tab_status:
        new_status = st.selectbox("New status", PAYMENT_STATUSES,
                                  index=PAYMENT_STATUSES.index(selected.payment_status) if selected.payment_status in PAYMENT_STATUSES else 0)
        if st.button("Save status"):
            try:
                update_payment_status(selected.payment_id, new_status)
            except ApiError as e:
                st.error(f"Could not update payment: {e.message}")
            else:
                st.toast(f"Payment #{selected.payment_id} marked {new_status}.")
                st.rerun()
    with tab_refund:
        if selected.payment_status != "Completed":
            st.caption("Only completed payments can be refunded.")
        else:
            reason = st.text_area("Refund reason")
            if st.button("Refund payment"):
                try:
                    refund_payment(selected.payment_id, reason)
                except ValueError as e:
                    st.error(str(e))
                except ApiError as e:
                    st.error(f"Refund failed: {e.message}")
                else:
                    st.toast(f"Payment #{selected.payment_id} refunded.")
                    st.rerun()
