"""
Unit Tests for pickup bookings

Tests cover:
1. Booking creation rules
2. Status lifecycle (every legal and illegal move)
3. Coin award on completion, on both completion paths
4. Seller and buyer views of the same bookings
5. Batch clear and live subscriptions
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pydantic import ValidationError

from core.config import Settings
from core.errors import InvalidRequest, NotAuthenticated, PermissionDenied, RemoteWriteFailure
from docstore import InMemoryDocumentStore
from companies import CompanyService, CreateCompanyRequest
from ledger import LedgerService
from bookings.guard import InvalidTransition, StatusTransitionGuard, TRANSITIONS
from bookings.models import Actor, BookingStatus, CreateBookingRequest
from bookings.service import BOOKINGS, BookingService, BookingNotFound


SELLER_ID = "seller-001"
OTHER_SELLER_ID = "seller-002"
BUYER_ID = "buyer-001"
OTHER_BUYER_ID = "buyer-002"
STRANGER_ID = "stranger-001"


def build_service(store=None, settings=None) -> BookingService:
    store = store or InMemoryDocumentStore()
    settings = settings or Settings()
    companies = CompanyService(store)
    ledger = LedgerService(store, settings)
    return BookingService(store, settings, companies, ledger)


def add_company(service: BookingService, buyer_id: str = BUYER_ID, **overrides):
    values = {
        "company_name": "GreenCycle Recyclers",
        "location": "Pune",
        "contact_number": "9876543210",
        "waste_types_accepted": ["Plastic", "Metal"],
        "price_per_kg": Decimal("12.50"),
    }
    values.update(overrides)
    return service.companies.create(buyer_id, CreateCompanyRequest(**values))


def booking_request(company_id: str, **overrides) -> CreateBookingRequest:
    values = {
        "company_id": company_id,
        "waste_type": "Plastic",
        "date": date.today() + timedelta(days=1),
        "time_slot": "10:00 AM",
        "quantity": Decimal("4.5"),
        "location": "Baner, Pune",
        "mobile_number": "9876543210",
    }
    values.update(overrides)
    return CreateBookingRequest(**values)


def new_booking(service: BookingService, seller_id: str = SELLER_ID, company=None):
    company = company or add_company(service)
    return service.create(seller_id, booking_request(company.id))


def booking_in(service: BookingService, status: BookingStatus):
    """Create a booking and drive it to ``status`` along legal edges."""
    booking = new_booking(service)
    if status == BookingStatus.CONFIRMED:
        service.confirm(BUYER_ID, booking.id)
    elif status == BookingStatus.COMPLETED:
        service.confirm(BUYER_ID, booking.id)
        service.complete(BUYER_ID, booking.id)
    elif status == BookingStatus.CANCELLED:
        service.cancel(SELLER_ID, booking.id)
    return service.get(booking.id)


class TestCreateBooking:
    def test_create_booking(self):
        service = build_service()
        company = add_company(service)

        booking = service.create(SELLER_ID, booking_request(company.id))

        assert booking.status == BookingStatus.PENDING
        assert booking.seller_user_id == SELLER_ID
        assert booking.buyer_id == BUYER_ID
        assert booking.company_name == "GreenCycle Recyclers"
        assert service.get(booking.id) == booking

    def test_requires_user(self):
        service = build_service()
        company = add_company(service)

        with pytest.raises(NotAuthenticated):
            service.create(None, booking_request(company.id))

    def test_inactive_company_rejected(self):
        service = build_service()
        company = add_company(service)
        service.companies.toggle_active(BUYER_ID, company.id)

        with pytest.raises(InvalidRequest):
            service.create(SELLER_ID, booking_request(company.id))

    def test_unaccepted_waste_type_rejected(self):
        service = build_service()
        company = add_company(service)

        with pytest.raises(InvalidRequest):
            service.create(SELLER_ID, booking_request(company.id, waste_type="Glass"))

    def test_past_date_rejected(self):
        service = build_service()
        company = add_company(service)

        with pytest.raises(InvalidRequest):
            service.create(SELLER_ID, booking_request(company.id, date=date.today() - timedelta(days=1)))

    def test_date_too_far_ahead_rejected(self):
        service = build_service(settings=Settings(max_booking_days_ahead=30))
        company = add_company(service)

        service.create(SELLER_ID, booking_request(company.id, date=date.today() + timedelta(days=30)))
        with pytest.raises(InvalidRequest):
            service.create(SELLER_ID, booking_request(company.id, date=date.today() + timedelta(days=31)))

    def test_unknown_time_slot_rejected(self):
        with pytest.raises(ValidationError):
            booking_request("c1", time_slot="08:00 AM")

    def test_missing_booking(self):
        with pytest.raises(BookingNotFound):
            build_service().get("missing")


LEGAL_MOVES = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED, Actor.BUYER),
    (BookingStatus.PENDING, BookingStatus.CANCELLED, Actor.BUYER),
    (BookingStatus.PENDING, BookingStatus.CANCELLED, Actor.SELLER),
    (BookingStatus.PENDING, BookingStatus.COMPLETED, Actor.SELLER),
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED, Actor.BUYER),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED, Actor.BUYER),
}

ALL_MOVES = [
    (source, target, actor)
    for source in BookingStatus
    for target in BookingStatus
    for actor in Actor
]

ACTOR_IDS = {Actor.SELLER: SELLER_ID, Actor.BUYER: BUYER_ID}


class TestStatusLifecycle:
    """Every (from, to, actor) combination either succeeds or raises InvalidTransition."""

    def test_transition_table_matches_lifecycle(self):
        table = {
            (source, target, actor)
            for (source, target), actors in TRANSITIONS.items()
            for actor in actors
        }
        assert table == LEGAL_MOVES

    @pytest.mark.parametrize("source,target,actor", ALL_MOVES)
    def test_move(self, source, target, actor):
        service = build_service()
        booking = booking_in(service, source)

        if (source, target, actor) in LEGAL_MOVES:
            response = service.transition(ACTOR_IDS[actor], booking.id, target)
            assert response.booking.status == target
        else:
            with pytest.raises(InvalidTransition):
                service.transition(ACTOR_IDS[actor], booking.id, target)
            assert service.get(booking.id).status == source

    def test_stranger_cannot_touch_booking(self):
        service = build_service()
        booking = new_booking(service)

        with pytest.raises(PermissionDenied):
            service.cancel(STRANGER_ID, booking.id)
        with pytest.raises(PermissionDenied):
            service.view(STRANGER_ID, booking.id)

        assert service.get(booking.id).status == BookingStatus.PENDING

    def test_other_buyer_cannot_confirm(self):
        service = build_service()
        booking = new_booking(service)

        with pytest.raises(PermissionDenied):
            service.confirm(OTHER_BUYER_ID, booking.id)

    def test_done_is_an_alias_for_completed(self):
        assert BookingStatus("Done") is BookingStatus.COMPLETED
        assert BookingStatus("completed") is BookingStatus.COMPLETED
        assert BookingStatus.COMPLETED.is_terminal
        assert not BookingStatus.CONFIRMED.is_terminal

    def test_allowed_targets(self):
        service = build_service()
        booking = new_booking(service)
        guard = StatusTransitionGuard()

        assert set(guard.allowed_targets(booking, SELLER_ID)) == {
            BookingStatus.CANCELLED, BookingStatus.COMPLETED,
        }
        assert set(guard.allowed_targets(booking, BUYER_ID)) == {
            BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
        }
        assert guard.allowed_targets(booking, STRANGER_ID) == []


class TestCompletionAward:
    def test_buyer_completion_awards_seller(self):
        service = build_service()
        booking = new_booking(service)
        service.confirm(BUYER_ID, booking.id)

        response = service.complete(BUYER_ID, booking.id)

        assert response.ledger_entry is not None
        assert response.ledger_entry.related_booking_id == booking.id
        assert response.ledger_entry.waste_type == "Plastic"
        assert service.ledger.get_wallet(SELLER_ID).coins == 1
        assert service.ledger.get_wallet(BUYER_ID).coins == 0

    def test_seller_done_awards_seller(self):
        service = build_service()
        booking = new_booking(service)

        response = service.complete(SELLER_ID, booking.id)

        assert response.booking.status == BookingStatus.COMPLETED
        assert service.ledger.get_wallet(SELLER_ID).coins == 1

    def test_completion_cannot_award_twice(self):
        service = build_service()
        booking = new_booking(service)
        service.complete(SELLER_ID, booking.id)

        with pytest.raises(InvalidTransition):
            service.complete(SELLER_ID, booking.id)
        # A retried award for the same booking is a no-op too
        service.ledger.award(SELLER_ID, booking.id)

        assert service.ledger.get_wallet(SELLER_ID).coins == 1
        assert service.ledger.verify(SELLER_ID).consistent

    def test_cancel_awards_nothing(self):
        service = build_service()
        booking = new_booking(service)

        response = service.cancel(BUYER_ID, booking.id)

        assert response.ledger_entry is None
        assert service.ledger.get_wallet(SELLER_ID).coins == 0

    def test_failed_award_keeps_booking_open(self):
        """Test that the status write is undone when the award cannot be logged."""

        class FailingLogStore(InMemoryDocumentStore):
            def set(self, path, doc_id, data, merge=False):
                if path.endswith("/transactions"):
                    raise RemoteWriteFailure("transactions write failed")
                super().set(path, doc_id, data, merge)

        service = build_service(store=FailingLogStore())
        booking = new_booking(service)
        service.confirm(BUYER_ID, booking.id)

        with pytest.raises(RemoteWriteFailure):
            service.complete(BUYER_ID, booking.id)

        assert service.get(booking.id).status == BookingStatus.CONFIRMED
        assert service.ledger.get_wallet(SELLER_ID).coins == 0


class TestViews:
    def test_seller_sees_own_bookings_newest_first(self):
        service = build_service()
        company = add_company(service)
        first = service.create(SELLER_ID, booking_request(company.id))
        second = service.create(SELLER_ID, booking_request(company.id))
        service.create(OTHER_SELLER_ID, booking_request(company.id))
        service.store.update(BOOKINGS, first.id, {"timestamp": datetime(2026, 1, 1, tzinfo=timezone.utc)})
        service.store.update(BOOKINGS, second.id, {"timestamp": datetime(2026, 1, 2, tzinfo=timezone.utc)})

        bookings = service.list_for_seller(SELLER_ID)

        assert [b.id for b in bookings] == [second.id, first.id]

    def test_seller_status_filter(self):
        service = build_service()
        company = add_company(service)
        kept = service.create(SELLER_ID, booking_request(company.id))
        dropped = service.create(SELLER_ID, booking_request(company.id))
        service.cancel(SELLER_ID, dropped.id)

        pending = service.list_for_seller(SELLER_ID, BookingStatus.PENDING)

        assert [b.id for b in pending] == [kept.id]

    def test_pickup_requests_follow_company_ownership(self):
        service = build_service()
        mine = add_company(service)
        theirs = add_company(service, buyer_id=OTHER_BUYER_ID, company_name="Metro Scrap")
        booking = new_booking(service, company=mine)
        new_booking(service, company=theirs)

        requests = service.list_pickup_requests(BUYER_ID)

        assert [r.id for r in requests] == [booking.id]
        assert service.view(BUYER_ID, booking.id).id == booking.id

    def test_buyer_without_companies_has_no_requests(self):
        service = build_service()
        new_booking(service)

        assert service.list_pickup_requests(STRANGER_ID) == []
        assert service.watch_pickup_requests(STRANGER_ID).latest() == []

    def test_requests_stay_visible_after_company_delete(self):
        """Test that the buyer still sees every booking they are allowed to change."""
        service = build_service()
        booking = new_booking(service)
        service.companies.delete(BUYER_ID, booking.company_id)

        assert [r.id for r in service.list_pickup_requests(BUYER_ID)] == [booking.id]

        service.confirm(BUYER_ID, booking.id)

        assert service.list_pickup_requests(BUYER_ID, BookingStatus.CONFIRMED)[0].id == booking.id

    def test_seller_and_buyer_views_stay_consistent(self):
        service = build_service()
        booking = new_booking(service)

        service.confirm(BUYER_ID, booking.id)

        assert service.list_for_seller(SELLER_ID)[0].status == BookingStatus.CONFIRMED
        assert service.list_pickup_requests(BUYER_ID)[0].status == BookingStatus.CONFIRMED

    def test_status_counts(self):
        service = build_service()
        company = add_company(service)
        for _ in range(3):
            service.create(SELLER_ID, booking_request(company.id))
        bookings = service.list_for_seller(SELLER_ID)
        service.confirm(BUYER_ID, bookings[0].id)
        service.cancel(SELLER_ID, bookings[1].id)

        stats = service.status_counts(service.list_for_seller(SELLER_ID))

        assert stats.total == 3
        assert stats.pending == 1
        assert stats.confirmed == 1
        assert stats.cancelled == 1
        assert stats.completed == 0


class TestClearAndWatch:
    def test_clear_leaves_no_bookings_for_seller(self):
        service = build_service()
        company = add_company(service)
        for _ in range(3):
            service.create(SELLER_ID, booking_request(company.id))
        other = service.create(OTHER_SELLER_ID, booking_request(company.id))

        deleted = service.clear_for_seller(SELLER_ID)

        assert deleted == 3
        assert service.list_for_seller(SELLER_ID) == []
        assert [b.id for b in service.list_for_seller(OTHER_SELLER_ID)] == [other.id]

    def test_clear_with_nothing_to_delete(self):
        assert build_service().clear_for_seller(SELLER_ID) == 0

    def test_watch_seller_bookings(self):
        service = build_service()
        company = add_company(service)
        sub = service.watch_seller_bookings(SELLER_ID)
        assert sub.latest() == []

        booking = service.create(SELLER_ID, booking_request(company.id))
        assert [b.id for b in sub.latest()] == [booking.id]

        service.cancel(SELLER_ID, booking.id)
        assert sub.latest()[0].status == BookingStatus.CANCELLED

        service.clear_for_seller(SELLER_ID)
        assert sub.latest() == []
        sub.close()

    def test_watch_pickup_requests(self):
        service = build_service()
        company = add_company(service)
        sub = service.watch_pickup_requests(BUYER_ID)
        assert sub.latest() == []

        booking = service.create(SELLER_ID, booking_request(company.id))

        assert [b.id for b in sub.latest()] == [booking.id]

    def test_watch_pickup_requests_before_any_company(self):
        service = build_service()
        sub = service.watch_pickup_requests(BUYER_ID)
        assert sub.latest() == []

        company = add_company(service)
        booking = service.create(SELLER_ID, booking_request(company.id))

        assert [b.id for b in sub.latest()] == [booking.id]

    def test_watch_pickup_requests_picks_up_new_company(self):
        service = build_service()
        add_company(service)
        sub = service.watch_pickup_requests(BUYER_ID)
        sub.latest()

        second = add_company(service, company_name="GreenCycle East")
        booking = service.create(SELLER_ID, booking_request(second.id))

        assert [b.id for b in sub.latest()] == [booking.id]
        assert [b.id for b in service.list_pickup_requests(BUYER_ID)] == [booking.id]
