from datetime import datetime, timezone
from typing import Optional

import structlog

from core.config import Settings
from core.errors import MarketplaceError, InvalidRequest, require_user
from docstore import InMemoryDocumentStore, collection_path

from .models import (
    TransactionKind,
    Wallet,
    LedgerEntry,
    Voucher,
    PurchasedVoucher,
    LedgerResponse,
    PurchaseResponse,
    ExchangeResponse,
    LedgerHistoryResponse,
    MonthlyCoins,
    WalletStatistics,
    LedgerAudit,
)
from .vouchers import VoucherCatalog


log = structlog.get_logger(__name__)

WALLETS = "wallet"


def transactions_path(user_id: str) -> str:
    return collection_path(WALLETS, user_id, "transactions")


def purchased_vouchers_path(user_id: str) -> str:
    return collection_path(WALLETS, user_id, "purchased_vouchers")


class LedgerServiceError(MarketplaceError):
    pass


class InsufficientCoins(LedgerServiceError):
    pass


class BelowMinimumExchange(LedgerServiceError):
    pass


class LedgerService:
    """Green-coin wallet for each user.

    The wallet document holds the coin and cash balances; the ``transactions``
    sub-collection is the append-only log. Every flow that moves coins writes
    both inside one store transaction, so the coin balance always equals the
    sum of ``coins_delta`` over the log.
    """

    def __init__(
        self,
        store: Optional[InMemoryDocumentStore] = None,
        settings: Optional[Settings] = None,
        catalog: Optional[VoucherCatalog] = None,
    ):
        self.store = store or InMemoryDocumentStore()
        self.settings = settings or Settings()
        self.catalog = catalog or VoucherCatalog()

    def get_wallet(self, user_id: str) -> Wallet:
        require_user(user_id)
        snapshot = self.store.get(WALLETS, user_id)
        if snapshot is None:
            return Wallet(user_id=user_id)
        return Wallet(
            user_id=user_id,
            coins=snapshot.get("coins", 0),
            cash_balance=snapshot.get("cash_balance", 0),
        )

    def award(
        self,
        user_id: str,
        booking_id: str,
        amount: Optional[int] = None,
        waste_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> LedgerResponse:
        require_user(user_id)
        if amount is None:
            amount = self.settings.coins_per_pickup
        if amount <= 0:
            raise InvalidRequest("Award amount must be positive")

        with self.store.transaction():
            existing = self.store.get(transactions_path(user_id), booking_id)
            if existing:
                return LedgerResponse(
                    wallet=self.get_wallet(user_id),
                    entry=LedgerEntry(id=existing.id, **existing.data),
                    message="Coins already awarded for this booking (idempotent return)",
                )

            self._ensure_wallet(user_id)
            new_balance = self.store.increment(WALLETS, user_id, "coins", amount)
            entry = self._append(
                user_id,
                kind=TransactionKind.EARNED,
                coins_delta=amount,
                balance_after=new_balance,
                related_booking_id=booking_id,
                waste_type=waste_type,
                description=description or "Pickup completed",
                entry_id=booking_id,
            )

        log.info("coins_awarded", user_id=user_id, booking_id=booking_id, amount=amount, balance=new_balance)
        return LedgerResponse(
            wallet=self.get_wallet(user_id),
            entry=entry,
            message=f"Awarded {amount} green coin{'s' if amount != 1 else ''}",
        )

    def purchase_voucher(self, user_id: str, voucher: Voucher) -> PurchaseResponse:
        require_user(user_id)

        with self.store.transaction():
            wallet = self.get_wallet(user_id)
            if wallet.coins < voucher.coin_cost:
                raise InsufficientCoins(
                    f"Insufficient coins: have {wallet.coins}, need {voucher.coin_cost}"
                )

            new_balance = self.store.increment(WALLETS, user_id, "coins", -voucher.coin_cost)
            entry = self._append(
                user_id,
                kind=TransactionKind.REDEEMED,
                coins_delta=-voucher.coin_cost,
                balance_after=new_balance,
                description=f"Voucher: {voucher.title}",
            )
            purchased = PurchasedVoucher(**voucher.model_dump(), purchased_at=entry.timestamp)
            # Keyed by title: buying the same voucher again replaces the record.
            self.store.set(purchased_vouchers_path(user_id), voucher.title, purchased.model_dump())

        log.info("voucher_purchased", user_id=user_id, title=voucher.title, cost=voucher.coin_cost, balance=new_balance)
        return PurchaseResponse(
            wallet=self.get_wallet(user_id),
            entry=entry,
            voucher=purchased,
            message=f"Purchased {voucher.title}",
        )

    def purchase_voucher_by_title(self, user_id: str, title: str) -> PurchaseResponse:
        require_user(user_id)
        return self.purchase_voucher(user_id, self.catalog.get(title))

    def exchange(self, user_id: str, coins_to_exchange: int) -> ExchangeResponse:
        require_user(user_id)
        minimum = self.settings.min_exchange_coins
        if coins_to_exchange < minimum:
            raise BelowMinimumExchange(f"Minimum exchange is {minimum} coins")

        rate = self.settings.coins_per_cash_unit
        with self.store.transaction():
            wallet = self.get_wallet(user_id)
            if coins_to_exchange > wallet.coins:
                raise InsufficientCoins(
                    f"Insufficient coins: have {wallet.coins}, need {coins_to_exchange}"
                )

            cash = coins_to_exchange // rate
            new_balance = self.store.increment(WALLETS, user_id, "coins", -coins_to_exchange)
            self.store.increment(WALLETS, user_id, "cash_balance", cash)
            entry = self._append(
                user_id,
                kind=TransactionKind.EXCHANGED,
                coins_delta=-coins_to_exchange,
                balance_after=new_balance,
                description=f"Exchanged for {cash} cash",
            )

        log.info("coins_exchanged", user_id=user_id, coins=coins_to_exchange, cash=cash, balance=new_balance)
        return ExchangeResponse(
            wallet=self.get_wallet(user_id),
            entry=entry,
            coins_exchanged=coins_to_exchange,
            cash_credited=cash,
            message=f"Exchanged {coins_to_exchange} coins for {cash} cash",
        )

    def list_purchased_vouchers(self, user_id: str) -> list[PurchasedVoucher]:
        require_user(user_id)
        snapshots = (
            self.store.collection(purchased_vouchers_path(user_id))
            .order_by("purchased_at", descending=True)
            .get()
        )
        return [PurchasedVoucher(**s.data) for s in snapshots]

    def list_transactions(self, user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        require_user(user_id)
        all_entries = self._entries(user_id)
        all_entries.sort(key=lambda e: e.timestamp, reverse=True)
        paginated = all_entries[offset:offset + limit]

        return LedgerHistoryResponse(
            user_id=user_id,
            entries=paginated,
            total_count=len(all_entries),
            current_balance=self.get_wallet(user_id).coins,
        )

    def statistics(self, user_id: str) -> WalletStatistics:
        """Coins earned per calendar month, oldest month first."""
        require_user(user_id)
        per_month: dict[str, int] = {}
        for entry in self._entries(user_id):
            if entry.kind != TransactionKind.EARNED:
                continue
            month = entry.timestamp.strftime("%Y-%m")
            per_month[month] = per_month.get(month, 0) + entry.coins_delta

        total = sum(per_month.values())
        months = [
            MonthlyCoins(month=month, coins=coins, share=coins / total if total else 0.0)
            for month, coins in sorted(per_month.items())
        ]
        return WalletStatistics(user_id=user_id, total_coins=total, months=months)

    def verify(self, user_id: str) -> LedgerAudit:
        require_user(user_id)
        entries = self._entries(user_id)
        stored = self.get_wallet(user_id).coins
        from_log = sum(e.coins_delta for e in entries)
        audit = LedgerAudit(
            user_id=user_id,
            stored_balance=stored,
            log_balance=from_log,
            entry_count=len(entries),
            consistent=stored == from_log,
        )
        if not audit.consistent:
            log.warning("ledger_inconsistent", user_id=user_id, stored=stored, log_balance=from_log)
        return audit

    def _ensure_wallet(self, user_id: str) -> None:
        if not self.store.exists(WALLETS, user_id):
            self.store.set(WALLETS, user_id, {"coins": 0, "cash_balance": 0})

    def _append(self, user_id: str, entry_id: Optional[str] = None, **fields) -> LedgerEntry:
        data = {
            "user_id": user_id,
            "related_booking_id": None,
            "waste_type": None,
            "timestamp": datetime.now(timezone.utc),
            **fields,
        }
        path = transactions_path(user_id)
        if entry_id is None:
            entry_id = self.store.add(path, data)
        else:
            self.store.set(path, entry_id, data)
        return LedgerEntry(id=entry_id, **data)

    def _entries(self, user_id: str) -> list[LedgerEntry]:
        return [
            LedgerEntry(id=s.id, **s.data)
            for s in self.store.collection(transactions_path(user_id)).get()
        ]
