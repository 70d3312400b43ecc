from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accounts.models import (
    RegisterRequest,
    SignInRequest,
    TokenResponse,
    PasswordResetRequest,
    PasswordResetConfirm,
    MessageResponse,
    UserProfile,
    UpdateProfileRequest,
    ProfilePictureRequest,
)
from bookings.models import (
    Booking,
    BookingStatus,
    BookingResponse,
    BookingStats,
    ClearBookingsResponse,
    CreateBookingRequest,
)
from companies.models import Authorization, Company, CreateCompanyRequest, Recycler, UpdateCompanyRequest
from core.context import AppContext
from ledger.models import (
    Wallet,
    Voucher,
    PurchasedVoucher,
    PurchaseVoucherRequest,
    ExchangeRequest,
    LedgerHistoryResponse,
    PurchaseResponse,
    ExchangeResponse,
    WalletStatistics,
    LedgerAudit,
)

bearer_scheme = HTTPBearer(auto_error=False)

router = APIRouter()


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def current_user_id(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    context: AppContext = Depends(get_context),
) -> Optional[str]:
    """The signed-in user's id, or None when no bearer token was sent.

    Services raise NotAuthenticated themselves when they need a user.
    """
    if creds is None or creds.scheme.lower() != "bearer":
        return None
    return context.auth.verify_token(creds.credentials)


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "waste-pickup-marketplace"}


# Accounts

@router.post("/auth/register", response_model=UserProfile, status_code=status.HTTP_201_CREATED, tags=["Accounts"])
def register(request: RegisterRequest, context: AppContext = Depends(get_context)) -> UserProfile:
    return context.auth.register(request)


@router.post("/auth/sign-in", response_model=TokenResponse, tags=["Accounts"])
def sign_in(request: SignInRequest, context: AppContext = Depends(get_context)) -> TokenResponse:
    return context.auth.sign_in(request.email, request.password)


@router.post("/auth/password-reset", response_model=MessageResponse, tags=["Accounts"])
def request_password_reset(request: PasswordResetRequest, context: AppContext = Depends(get_context)) -> MessageResponse:
    context.auth.request_password_reset(request.email)
    return MessageResponse(message="If the address is registered, a reset link has been sent")


@router.post("/auth/password-reset/confirm", response_model=MessageResponse, tags=["Accounts"])
def confirm_password_reset(request: PasswordResetConfirm, context: AppContext = Depends(get_context)) -> MessageResponse:
    context.auth.reset_password(request.token, request.new_password)
    return MessageResponse(message="Password updated")


@router.get("/profile", response_model=UserProfile, tags=["Accounts"])
def get_profile(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> UserProfile:
    return context.auth.get_profile(user_id)


@router.patch("/profile", response_model=UserProfile, tags=["Accounts"])
def update_profile(
    request: UpdateProfileRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> UserProfile:
    return context.auth.update_profile(user_id, request)


@router.put("/profile/picture", response_model=UserProfile, tags=["Accounts"])
def set_profile_picture(
    request: ProfilePictureRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> UserProfile:
    return context.auth.set_profile_picture(user_id, request.url)


# Companies

@router.get("/companies", response_model=list[Company], tags=["Companies"])
def list_active_companies(
    q: Optional[str] = None,
    waste_type: Optional[str] = None,
    context: AppContext = Depends(get_context),
) -> list[Company]:
    return context.companies.list_active(query=q, waste_type=waste_type)


@router.get("/companies/mine", response_model=list[Company], tags=["Companies"])
def list_my_companies(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> list[Company]:
    return context.companies.list_for_buyer(user_id)


@router.post("/companies", response_model=Company, status_code=status.HTTP_201_CREATED, tags=["Companies"])
def create_company(
    request: CreateCompanyRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> Company:
    return context.companies.create(user_id, request)


@router.get("/recyclers", response_model=list[Recycler], tags=["Companies"])
def list_recyclers(
    q: Optional[str] = None,
    authorization: Authorization = Authorization.ALL,
    context: AppContext = Depends(get_context),
) -> list[Recycler]:
    return context.recyclers.list(query=q, authorization=authorization)


@router.get("/companies/{company_id}", response_model=Company, tags=["Companies"])
def get_company(company_id: str, context: AppContext = Depends(get_context)) -> Company:
    return context.companies.get(company_id)


@router.patch("/companies/{company_id}", response_model=Company, tags=["Companies"])
def update_company(
    company_id: str,
    request: UpdateCompanyRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> Company:
    return context.companies.update(user_id, company_id, request)


@router.post("/companies/{company_id}/toggle-active", response_model=Company, tags=["Companies"])
def toggle_company(
    company_id: str,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> Company:
    return context.companies.toggle_active(user_id, company_id)


@router.delete("/companies/{company_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Companies"])
def delete_company(
    company_id: str,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> Response:
    context.companies.delete(user_id, company_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Bookings

@router.post("/bookings", response_model=Booking, status_code=status.HTTP_201_CREATED, tags=["Bookings"])
def create_booking(
    request: CreateBookingRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> Booking:
    return context.bookings.create(user_id, request)


@router.get("/bookings", response_model=list[Booking], tags=["Bookings"])
def list_my_bookings(
    status_filter: Optional[BookingStatus] = Query(default=None, alias="status"),
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> list[Booking]:
    return context.bookings.list_for_seller(user_id, status_filter)


@router.get("/bookings/stats", response_model=BookingStats, tags=["Bookings"])
def my_booking_stats(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> BookingStats:
    return context.bookings.status_counts(context.bookings.list_for_seller(user_id))


@router.delete("/bookings", response_model=ClearBookingsResponse, tags=["Bookings"])
def clear_my_bookings(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> ClearBookingsResponse:
    return ClearBookingsResponse(deleted=context.bookings.clear_for_seller(user_id))


@router.get("/bookings/{booking_id}", response_model=Booking, tags=["Bookings"])
def get_booking(
    booking_id: str,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> Booking:
    return context.bookings.view(user_id, booking_id)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
def confirm_booking(
    booking_id: str,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> BookingResponse:
    return context.bookings.confirm(user_id, booking_id)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
def cancel_booking(
    booking_id: str,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> BookingResponse:
    return context.bookings.cancel(user_id, booking_id)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse, tags=["Bookings"])
def complete_booking(
    booking_id: str,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> BookingResponse:
    return context.bookings.complete(user_id, booking_id)


@router.get("/pickup-requests", response_model=list[Booking], tags=["Bookings"])
def list_pickup_requests(
    status_filter: Optional[BookingStatus] = Query(default=None, alias="status"),
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> list[Booking]:
    return context.bookings.list_pickup_requests(user_id, status_filter)


@router.get("/pickup-requests/stats", response_model=BookingStats, tags=["Bookings"])
def pickup_request_stats(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> BookingStats:
    return context.bookings.status_counts(context.bookings.list_pickup_requests(user_id))


# Wallet

@router.get("/vouchers", response_model=list[Voucher], tags=["Wallet"])
def list_vouchers(context: AppContext = Depends(get_context)) -> list[Voucher]:
    return context.ledger.catalog.list()


@router.get("/wallet", response_model=Wallet, tags=["Wallet"])
def get_wallet(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> Wallet:
    return context.ledger.get_wallet(user_id)


@router.get("/wallet/transactions", response_model=LedgerHistoryResponse, tags=["Wallet"])
def get_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> LedgerHistoryResponse:
    return context.ledger.list_transactions(user_id, limit, offset)


@router.get("/wallet/statistics", response_model=WalletStatistics, tags=["Wallet"])
def get_statistics(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> WalletStatistics:
    return context.ledger.statistics(user_id)


@router.get("/wallet/verify", response_model=LedgerAudit, tags=["Wallet"])
def verify_wallet(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> LedgerAudit:
    return context.ledger.verify(user_id)


@router.get("/wallet/vouchers", response_model=list[PurchasedVoucher], tags=["Wallet"])
def list_purchased_vouchers(user_id: Optional[str] = Depends(current_user_id), context: AppContext = Depends(get_context)) -> list[PurchasedVoucher]:
    return context.ledger.list_purchased_vouchers(user_id)


@router.post("/wallet/vouchers/purchase", response_model=PurchaseResponse, tags=["Wallet"])
def purchase_voucher(
    request: PurchaseVoucherRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> PurchaseResponse:
    return context.ledger.purchase_voucher_by_title(user_id, request.title)


@router.post("/wallet/exchange", response_model=ExchangeResponse, tags=["Wallet"])
def exchange_coins(
    request: ExchangeRequest,
    user_id: Optional[str] = Depends(current_user_id),
    context: AppContext = Depends(get_context),
) -> ExchangeResponse:
    return context.ledger.exchange(user_id, request.coins)
