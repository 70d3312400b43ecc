from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


WASTE_TYPES = (
    "E-Waste", "Wet-Waste", "Dry-Waste", "PET-Waste",
    "Plastic", "Metal", "Paper/Cardboard", "Glass", "Textiles",
)


def _normalize_waste_types(values: list[str]) -> list[str]:
    unknown = [v for v in values if v not in WASTE_TYPES]
    if unknown:
        raise ValueError(f"Unknown waste types: {', '.join(unknown)}")
    return sorted(set(values), key=WASTE_TYPES.index)


class Company(BaseModel):
    id: str
    company_name: str
    location: str
    contact_number: str
    waste_types_accepted: list[str]
    price_per_kg: Decimal
    description: str = ""
    buyer_id: str
    is_active: bool = True
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def accepts(self, waste_type: str) -> bool:
        return waste_type in self.waste_types_accepted


class CreateCompanyRequest(BaseModel):
    company_name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    waste_types_accepted: list[str] = Field(..., min_length=1)
    price_per_kg: Decimal = Field(..., gt=0)
    description: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "company_name": "GreenCycle Recyclers",
            "location": "Pune",
            "contact_number": "9876543210",
            "waste_types_accepted": ["Plastic", "Metal"],
            "price_per_kg": "12.50",
            "description": "Weekday pickups across the city",
        }
    })

    @field_validator("waste_types_accepted")
    @classmethod
    def check_waste_types(cls, value: list[str]) -> list[str]:
        return _normalize_waste_types(value)


class UpdateCompanyRequest(BaseModel):
    price_per_kg: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None
    waste_types_accepted: Optional[list[str]] = Field(default=None, min_length=1)

    @field_validator("waste_types_accepted")
    @classmethod
    def check_waste_types(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return None if value is None else _normalize_waste_types(value)


class Authorization(str, Enum):
    ALL = "All"
    AUTHORIZED = "Authorized"
    EXPIRED = "Expired"


class Recycler(BaseModel):
    name: str
    location: str
    notes: str = ""

    @property
    def authorization_expired(self) -> bool:
        return "expired" in self.notes.lower()
