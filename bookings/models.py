import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from ledger.models import LedgerEntry


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "done":
                return cls.COMPLETED
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


class Actor(str, Enum):
    SELLER = "seller"
    BUYER = "buyer"


TIME_SLOTS = (
    "09:00 AM", "10:00 AM", "11:00 AM", "12:00 PM",
    "01:00 PM", "02:00 PM", "03:00 PM", "04:00 PM",
    "05:00 PM", "06:00 PM",
)


class Booking(BaseModel):
    id: str
    seller_user_id: str
    company_id: str
    company_name: str
    buyer_id: str
    waste_type: str
    quantity: Optional[Decimal] = None
    date: dt.date
    time_slot: str
    location: str = ""
    mobile_number: str = ""
    status: BookingStatus = BookingStatus.PENDING
    timestamp: dt.datetime

    model_config = ConfigDict(from_attributes=True)

    def roles_of(self, user_id: str) -> set[Actor]:
        roles = set()
        if user_id == self.seller_user_id:
            roles.add(Actor.SELLER)
        if user_id == self.buyer_id:
            roles.add(Actor.BUYER)
        return roles


class CreateBookingRequest(BaseModel):
    company_id: str
    waste_type: str
    date: dt.date
    time_slot: str
    quantity: Optional[Decimal] = Field(default=None, gt=0, description="Estimated weight in kg")
    location: str = ""
    mobile_number: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "company_id": "3f1c2a9e0b7d4e51a2c8f0d9b6e7a1c4",
            "waste_type": "Plastic",
            "date": "2026-10-21",
            "time_slot": "10:00 AM",
            "quantity": "4.5",
            "location": "Baner, Pune",
            "mobile_number": "9876543210",
        }
    })

    @field_validator("time_slot")
    @classmethod
    def check_time_slot(cls, value: str) -> str:
        if value not in TIME_SLOTS:
            raise ValueError(f"time_slot must be one of {', '.join(TIME_SLOTS)}")
        return value


class BookingResponse(BaseModel):
    booking: Booking
    ledger_entry: Optional[LedgerEntry] = None
    message: str


class BookingStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0


class ClearBookingsResponse(BaseModel):
    deleted: int
