from pydantic import BaseModel
from typing import Optional


class BookingRequest(BaseModel):
    user_id: int
    vehicle_id: int
    pickup_location: str
    return_location: str
    pickup_date: str
    return_date: str
    booking_date: str
    total_amount: float
    driver_license_number: str
    driver_license_expiry: str
    driver_license_front_url: str
    driver_license_back_url: str
    insurance_type: str = "basic"
    additional_protection: bool = False
    roadside_assistance: bool = True
    booking_status: str = "Pending"

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 7,
                "vehicle_id": 3,
                "pickup_location": "Nairobi",
                "return_location": "Nairobi",
                "pickup_date": "2024-03-15",
                "return_date": "2024-03-18",
                "booking_date": "2024-03-10T09:00:00",
                "total_amount": 150.0,
                "driver_license_number": "DL-123456",
                "driver_license_expiry": "2027-01-31",
                "driver_license_front_url": "https://cdn.example.com/dl/front.jpg",
                "driver_license_back_url": "https://cdn.example.com/dl/back.jpg",
                "insurance_type": "basic",
                "additional_protection": False,
                "roadside_assistance": True,
                "booking_status": "Pending"
            }
        }


class Booking(BaseModel):
    booking_id: int
    user_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    pickup_location: Optional[str] = None
    return_location: Optional[str] = None
    pickup_date: Optional[str] = None
    return_date: Optional[str] = None
    booking_date: Optional[str] = None
    total_amount: float = 0
    driver_license_number: Optional[str] = None
    driver_license_expiry: Optional[str] = None
    driver_license_front_url: Optional[str] = None
    driver_license_back_url: Optional[str] = None
    insurance_type: Optional[str] = None
    additional_protection: bool = False
    roadside_assistance: bool = False
    booking_status: str = "Pending"
    verified_by_admin: bool = False
    admin_notes: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    vehicle_manufacturer: Optional[str] = None
    vehicle_model: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def status_key(self):
        return (self.booking_status or "").lower()
