"""
Green-Coin Reward Ledger

This module provides:
- Per-user wallet with coin and cash balances
- Append-only transaction log (balance always equals the log sum)
- Idempotent coin awards keyed by booking id
- Voucher purchases from a fixed catalog
- Coin-to-cash exchange
"""

from .models import (
    TransactionKind,
    Wallet,
    LedgerEntry,
    Voucher,
    PurchasedVoucher,
)
from .service import (
    LedgerService,
    LedgerServiceError,
    InsufficientCoins,
    BelowMinimumExchange,
)
from .vouchers import VoucherCatalog, VoucherNotFound

__all__ = [
    "TransactionKind",
    "Wallet",
    "LedgerEntry",
    "Voucher",
    "PurchasedVoucher",
    "LedgerService",
    "LedgerServiceError",
    "InsufficientCoins",
    "BelowMinimumExchange",
    "VoucherCatalog",
    "VoucherNotFound",
]
