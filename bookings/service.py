from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog

from core.config import Settings
from core.errors import NotFound, InvalidRequest, PermissionDenied, require_user
from companies import CompanyService
from docstore import InMemoryDocumentStore, Subscription
from ledger import LedgerService

from .guard import StatusTransitionGuard
from .models import (
    Booking,
    BookingStatus,
    BookingResponse,
    BookingStats,
    CreateBookingRequest,
)


log = structlog.get_logger(__name__)

BOOKINGS = "bookings"


class BookingNotFound(NotFound):
    pass


def _to_booking(snapshot) -> Booking:
    return Booking(id=snapshot.id, **snapshot.data)


class BookingService:
    """Pickup bookings and their status lifecycle.

    Sellers see their own bookings; buyers see the same records as pickup
    requests against the companies they own. Completing a booking awards the
    seller green coins in the same store transaction as the status write.
    """

    def __init__(
        self,
        store: Optional[InMemoryDocumentStore] = None,
        settings: Optional[Settings] = None,
        companies: Optional[CompanyService] = None,
        ledger: Optional[LedgerService] = None,
        guard: Optional[StatusTransitionGuard] = None,
    ):
        self.store = store or InMemoryDocumentStore()
        self.settings = settings or Settings()
        self.companies = companies or CompanyService(self.store)
        self.ledger = ledger or LedgerService(self.store, self.settings)
        self.guard = guard or StatusTransitionGuard()

    def create(self, user_id: str, request: CreateBookingRequest) -> Booking:
        require_user(user_id)
        company = self.companies.get(request.company_id)
        if not company.is_active:
            raise InvalidRequest(f"{company.company_name} is not accepting pickups")
        if not company.accepts(request.waste_type):
            raise InvalidRequest(f"{company.company_name} does not accept {request.waste_type}")

        today = date.today()
        last_day = today + timedelta(days=self.settings.max_booking_days_ahead)
        if not today <= request.date <= last_day:
            raise InvalidRequest(f"Pickup date must be between {today} and {last_day}")

        data = {
            **request.model_dump(),
            "company_name": company.company_name,
            "buyer_id": company.buyer_id,
            "seller_user_id": user_id,
            "status": BookingStatus.PENDING.value,
            "timestamp": datetime.now(timezone.utc),
        }
        booking_id = self.store.add(BOOKINGS, data)
        log.info("booking_created", booking_id=booking_id, seller_user_id=user_id, company_id=company.id)
        return Booking(id=booking_id, **data)

    def get(self, booking_id: str) -> Booking:
        snapshot = self.store.get(BOOKINGS, booking_id)
        if snapshot is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return _to_booking(snapshot)

    def view(self, user_id: str, booking_id: str) -> Booking:
        require_user(user_id)
        booking = self.get(booking_id)
        if not booking.roles_of(user_id):
            raise PermissionDenied("Only the seller or the company owner can see this booking")
        return booking

    def list_for_seller(self, user_id: str, status: Optional[BookingStatus] = None) -> list[Booking]:
        require_user(user_id)
        return [_to_booking(s) for s in self._seller_query(user_id, status).get()]

    def list_pickup_requests(self, buyer_id: str, status: Optional[BookingStatus] = None) -> list[Booking]:
        require_user(buyer_id)
        return [_to_booking(s) for s in self._pickup_query(buyer_id, status).get()]

    def watch_seller_bookings(self, user_id: str) -> Subscription:
        require_user(user_id)
        return self._seller_query(user_id).subscribe(
            lambda snapshots: [_to_booking(s) for s in snapshots]
        )

    def watch_pickup_requests(self, buyer_id: str) -> Subscription:
        """Live pickup requests addressed to the buyer.

        Bookings against companies the buyer creates later show up too.
        """
        require_user(buyer_id)
        return self._pickup_query(buyer_id).subscribe(lambda snapshots: [_to_booking(s) for s in snapshots])

    @staticmethod
    def status_counts(bookings: Iterable[Booking]) -> BookingStats:
        stats = BookingStats()
        for booking in bookings:
            stats.total += 1
            name = booking.status.value.lower()
            setattr(stats, name, getattr(stats, name) + 1)
        return stats

    def transition(self, user_id: str, booking_id: str, target: BookingStatus) -> BookingResponse:
        require_user(user_id)
        ledger_entry = None

        with self.store.transaction():
            booking = self.get(booking_id)
            actor = self.guard.check(booking, target, user_id)
            self.store.update(BOOKINGS, booking_id, {"status": target.value})
            if self.guard.awards_coins(target):
                award = self.ledger.award(
                    booking.seller_user_id,
                    booking.id,
                    waste_type=booking.waste_type,
                    description=f"Pickup completed - {booking.company_name}",
                )
                ledger_entry = award.entry

        log.info(
            "booking_status_changed",
            booking_id=booking_id,
            from_status=booking.status.value,
            to_status=target.value,
            actor=actor.value,
        )
        message = f"Booking {target.value.lower()}"
        if ledger_entry is not None:
            message += f"; seller earned {ledger_entry.coins_delta} green coin{'s' if ledger_entry.coins_delta != 1 else ''}"
        return BookingResponse(booking=self.get(booking_id), ledger_entry=ledger_entry, message=message)

    def confirm(self, user_id: str, booking_id: str) -> BookingResponse:
        return self.transition(user_id, booking_id, BookingStatus.CONFIRMED)

    def cancel(self, user_id: str, booking_id: str) -> BookingResponse:
        return self.transition(user_id, booking_id, BookingStatus.CANCELLED)

    def complete(self, user_id: str, booking_id: str) -> BookingResponse:
        return self.transition(user_id, booking_id, BookingStatus.COMPLETED)

    def clear_for_seller(self, user_id: str) -> int:
        require_user(user_id)
        batch = self.store.batch()
        for snapshot in self._seller_query(user_id).get():
            batch.delete(BOOKINGS, snapshot.id)
        deleted = batch.commit()
        log.info("bookings_cleared", seller_user_id=user_id, deleted=deleted)
        return deleted

    def _seller_query(self, user_id: str, status: Optional[BookingStatus] = None):
        query = self.store.collection(BOOKINGS).where("seller_user_id", "==", user_id)
        if status is not None:
            query = query.where("status", "==", status.value)
        return query.order_by("timestamp", descending=True)

    def _pickup_query(self, buyer_id: str, status: Optional[BookingStatus] = None):
        query = self.store.collection(BOOKINGS).where("buyer_id", "==", buyer_id)
        if status is not None:
            query = query.where("status", "==", status.value)
        return query.order_by("timestamp", descending=True)
