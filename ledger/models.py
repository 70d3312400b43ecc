from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class TransactionKind(str, Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"
    EXCHANGED = "exchanged"


class Wallet(BaseModel):
    user_id: str
    coins: int = Field(default=0, ge=0)
    cash_balance: int = Field(default=0, ge=0)


class LedgerEntry(BaseModel):
    id: str
    user_id: str
    kind: TransactionKind
    coins_delta: int
    balance_after: int
    related_booking_id: Optional[str] = None
    waste_type: Optional[str] = None
    description: str = ""
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class Voucher(BaseModel):
    title: str
    description: str = ""
    coin_cost: int = Field(..., gt=0)
    brand: str


class PurchasedVoucher(Voucher):
    purchased_at: datetime


class PurchaseVoucherRequest(BaseModel):
    title: str = Field(..., description="Catalog title of the voucher to buy")


class ExchangeRequest(BaseModel):
    coins: int = Field(..., description="Green coins to convert into cash")

    model_config = ConfigDict(json_schema_extra={
        "example": {"coins": 12}
    })


class LedgerResponse(BaseModel):
    wallet: Wallet
    entry: Optional[LedgerEntry] = None
    message: str


class PurchaseResponse(LedgerResponse):
    voucher: PurchasedVoucher


class ExchangeResponse(LedgerResponse):
    coins_exchanged: int
    cash_credited: int


class LedgerHistoryResponse(BaseModel):
    user_id: str
    entries: list[LedgerEntry]
    total_count: int
    current_balance: int


class MonthlyCoins(BaseModel):
    month: str = Field(..., description="Calendar month as YYYY-MM")
    coins: int
    share: float


class WalletStatistics(BaseModel):
    user_id: str
    total_coins: int
    months: list[MonthlyCoins]


class LedgerAudit(BaseModel):
    user_id: str
    stored_balance: int
    log_balance: int
    entry_count: int
    consistent: bool
