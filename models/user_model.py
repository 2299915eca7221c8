from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional


class User(BaseModel):
    user_id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: Optional[str] = None
    address: Optional[str] = None
    user_type: str = "customer"
    profile_picture: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self):
        return self.user_type == "admin"


class RegisterRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone_number: str
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Jane",
                "last_name": "Wanjiru",
                "email": "jane.wanjiru@example.com",
                "phone_number": "+254700123456",
                "password": "strong_password"
            }
        }

    @field_validator('first_name', 'last_name', 'phone_number')
    def must_not_be_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('This field is required')
        return v.strip()

    @field_validator('password')
    def password_min_length(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters')
        return v


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    user_type: Optional[str] = None

    @field_validator('user_type')
    def known_user_type(cls, v):
        if v is not None and v not in ("customer", "admin"):
            raise ValueError('User type must be customer or admin')
        return v
