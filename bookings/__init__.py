"""
Pickup bookings

This module provides:
- Booking creation against an active company
- Seller view (my bookings) and buyer view (pickup requests) of one record set
- Status lifecycle: Pending -> Confirmed/Cancelled -> Completed
- Green-coin award on completion, at most once per booking
"""

from .models import (
    Actor,
    Booking,
    BookingStatus,
    BookingStats,
    CreateBookingRequest,
    TIME_SLOTS,
)
from .guard import InvalidTransition, StatusTransitionGuard, TRANSITIONS
from .service import BookingService, BookingNotFound

__all__ = [
    "Actor",
    "Booking",
    "BookingStatus",
    "BookingStats",
    "CreateBookingRequest",
    "TIME_SLOTS",
    "InvalidTransition",
    "StatusTransitionGuard",
    "TRANSITIONS",
    "BookingService",
    "BookingNotFound",
]
