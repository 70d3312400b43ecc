from typing import Iterable, Optional

from core.errors import NotFound
from .models import Voucher


class VoucherNotFound(NotFound):
    pass


DEFAULT_VOUCHERS = (
    Voucher(
        title="Amazon Pay Rs.50",
        brand="Amazon",
        coin_cost=10,
        description="Rs.50 Amazon Pay balance",
    ),
    Voucher(
        title="Flipkart Rs.100",
        brand="Flipkart",
        coin_cost=20,
        description="Rs.100 Flipkart gift card",
    ),
    Voucher(
        title="Swiggy 20% Off",
        brand="Swiggy",
        coin_cost=8,
        description="20% off your next food order, up to Rs.100",
    ),
    Voucher(
        title="Zomato Free Delivery",
        brand="Zomato",
        coin_cost=5,
        description="Free delivery on one order",
    ),
    Voucher(
        title="Tree Plantation",
        brand="Green India",
        coin_cost=3,
        description="Plant a sapling in your name",
    ),
)


class VoucherCatalog:
    """Read-only voucher catalog, keyed by title."""

    def __init__(self, vouchers: Optional[Iterable[Voucher]] = None):
        self._vouchers = {
            v.title: v for v in (DEFAULT_VOUCHERS if vouchers is None else vouchers)
        }

    def list(self) -> list[Voucher]:
        return sorted(self._vouchers.values(), key=lambda v: (v.coin_cost, v.title))

    def get(self, title: str) -> Voucher:
        voucher = self._vouchers.get(title)
        if voucher is None:
            raise VoucherNotFound(f"Voucher {title!r} not found")
        return voucher
