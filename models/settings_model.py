from pydantic import BaseModel, EmailStr, Field

CANCELLATION_POLICIES = ["flexible", "moderate", "strict"]


class PlatformSettings(BaseModel):
    company_name: str = "RentWheels Kenya"
    support_email: EmailStr = "support@rentwheels.co.ke"
    support_phone: str = "+254 700 123 456"
    address: str = "123 Moi Avenue, Nairobi, Kenya"
    timezone: str = "Africa/Nairobi"
    currency: str = "KES"
    tax_rate: float = Field(default=16, ge=0, le=100)
    security_deposit: float = Field(default=5000, ge=0)
    cancellation_policy: str = "flexible"
    session_timeout: int = Field(default=30, ge=5, le=1440)
    maintenance_mode: bool = False
