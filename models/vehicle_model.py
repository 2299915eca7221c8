from pydantic import BaseModel, Field, field_validator
from typing import Optional


class VehicleSpecification(BaseModel):
    vehicle_spec_id: Optional[int] = None
    manufacturer: str = ""
    model: str = ""
    year: Optional[int] = None
    fuel_type: Optional[str] = None
    engine_capacity: Optional[float] = None
    transmission: Optional[str] = None
    seating_capacity: Optional[int] = None
    color: Optional[str] = None
    features: Optional[str] = None
    vehicle_type: Optional[str] = None
    image_url: Optional[str] = None


class Vehicle(BaseModel):
    vehicle_id: int
    vehicle_spec_id: Optional[int] = None
    rental_rate: float = 0
    availability: bool = False
    current_location: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    specification: VehicleSpecification = Field(default_factory=VehicleSpecification)

    @property
    def display_name(self):
        return f"{self.specification.manufacturer} {self.specification.model}".strip()

    @property
    def feature_list(self):
        if not self.specification.features:
            return []
        return [f.strip() for f in self.specification.features.split(",") if f.strip()]


class VehicleCreate(BaseModel):
    rental_rate: float
    current_location: str
    availability: bool = True
    manufacturer: str
    model: str
    year: int
    fuel_type: str
    transmission: str
    seating_capacity: int
    engine_capacity: Optional[float] = None
    color: Optional[str] = None
    features: Optional[str] = None
    vehicle_type: str = "four-wheeler"
    image_url: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "rental_rate": 45.0,
                "current_location": "Nairobi",
                "manufacturer": "Toyota",
                "model": "Camry",
                "year": 2022,
                "fuel_type": "Petrol",
                "transmission": "Automatic",
                "seating_capacity": 5,
                "vehicle_type": "four-wheeler"
            }
        }

    @field_validator('rental_rate')
    def rate_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError('Rental rate must be greater than 0')
        return v

    @field_validator('manufacturer', 'model', 'current_location')
    def must_not_be_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('This field is required')
        return v.strip()


class VehicleUpdate(BaseModel):
    rental_rate: Optional[float] = None
    availability: Optional[bool] = None
    current_location: Optional[str] = None
