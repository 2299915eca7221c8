from pydantic import BaseModel, field_validator, model_validator
from typing import Optional

TICKET_TYPES = ["general_inquiry", "damage_report", "technical_issue"]
TICKET_STATUSES = ["Open", "In Progress", "Resolved", "Closed"]


class SupportTicketRequest(BaseModel):
    subject: str
    description: str
    type: str = "general_inquiry"
    booking_id: Optional[int] = None

    @field_validator('subject', 'description')
    def must_not_be_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('This field is required')
        return v.strip()

    @field_validator('type')
    def known_type(cls, v):
        if v not in TICKET_TYPES:
            raise ValueError(f'Ticket type must be one of {", ".join(TICKET_TYPES)}')
        return v

    @model_validator(mode='after')
    def damage_report_needs_booking(self):
        # booking_id defaults to None, so this cannot be a field validator
        if self.type == 'damage_report' and self.booking_id is None:
            raise ValueError('Damage reports must reference a booking')
        return self


class SupportTicket(BaseModel):
    ticket_id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    subject: str = ""
    description: str = ""
    type: str = "general_inquiry"
    status: str = "Open"
    booking_id: Optional[int] = None
    admin_notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def status_key(self):
        return (self.status or "").strip().lower().replace(" ", "_")
