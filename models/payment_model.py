from pydantic import BaseModel
from typing import Optional

PAYMENT_STATUSES = ["Pending", "Completed", "Failed", "Refunded"]


class Payment(BaseModel):
    payment_id: int
    booking_id: Optional[int] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    amount: float = 0
    payment_status: str = "Pending"
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: Optional[str] = None
    booking_status: Optional[str] = None
    vehicle_model: Optional[str] = None


class PaymentStats(BaseModel):
    total_revenue: float = 0
    completed_payments: int = 0
    pending_payments: int = 0
    failed_payments: int = 0
    refunded_amount: float = 0
    today_revenue: float = 0
    monthly_revenue: float = 0
