from core.errors import MarketplaceError, PermissionDenied

from .models import Actor, Booking, BookingStatus


class InvalidTransition(MarketplaceError):
    pass


# (from, to) -> who may make the move
TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[Actor]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({Actor.BUYER}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({Actor.SELLER, Actor.BUYER}),
    (BookingStatus.PENDING, BookingStatus.COMPLETED): frozenset({Actor.SELLER}),
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): frozenset({Actor.BUYER}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset({Actor.BUYER}),
}

AWARDING_STATUSES = frozenset({BookingStatus.COMPLETED})


class StatusTransitionGuard:
    def __init__(self, transitions=None):
        self.transitions = TRANSITIONS if transitions is None else transitions

    def allowed_targets(self, booking: Booking, user_id: str) -> list[BookingStatus]:
        roles = booking.roles_of(user_id)
        return [
            target for (source, target), actors in self.transitions.items()
            if source == booking.status and roles & actors
        ]

    def check(self, booking: Booking, target: BookingStatus, user_id: str) -> Actor:
        """Return the role the move is made in, or raise.

        Strangers get PermissionDenied before the lifecycle is consulted.
        """
        roles = booking.roles_of(user_id)
        if not roles:
            raise PermissionDenied("Only the seller or the company owner can change this booking")

        if booking.status.is_terminal:
            raise InvalidTransition(f"Booking is already {booking.status.value}")

        actors = self.transitions.get((booking.status, target), frozenset())
        permitted = roles & actors
        if not permitted:
            as_roles = "/".join(sorted(r.value for r in roles))
            raise InvalidTransition(
                f"Cannot move booking from {booking.status.value} to {target.value} as {as_roles}"
            )
        # Prefer the buyer role when a user owns both sides.
        return Actor.BUYER if Actor.BUYER in permitted else Actor.SELLER

    def awards_coins(self, target: BookingStatus) -> bool:
        return target in AWARDING_STATUSES
