from pydantic import BaseModel, Field
from typing import Optional


class ReviewRequest(BaseModel):
    booking_id: int
    vehicle_id: int
    rating: int = Field(ge=1, le=5)
    comment: str = ""


class Review(BaseModel):
    review_id: int
    booking_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    user_id: Optional[int] = None
    rating: int = 0
    comment: str = ""
    is_approved: bool = False
    admin_notes: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    vehicle_name: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def author(self):
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Anonymous"
