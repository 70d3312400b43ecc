from dataclasses import dataclass
from typing import Optional

from accounts import AuthService
from bookings import BookingService
from companies import CompanyService, RecyclerDirectory
from docstore import InMemoryDocumentStore
from ledger import LedgerService, VoucherCatalog

from .config import Settings


@dataclass
class AppContext:
    """Every collaborator a request handler needs, built once and passed down."""

    settings: Settings
    store: InMemoryDocumentStore
    auth: AuthService
    companies: CompanyService
    ledger: LedgerService
    bookings: BookingService
    recyclers: RecyclerDirectory

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        store: Optional[InMemoryDocumentStore] = None,
        catalog: Optional[VoucherCatalog] = None,
    ) -> "AppContext":
        settings = settings or Settings()
        store = store or InMemoryDocumentStore()
        companies = CompanyService(store)
        ledger = LedgerService(store, settings, catalog)
        return cls(
            settings=settings,
            store=store,
            auth=AuthService(store, settings),
            companies=companies,
            ledger=ledger,
            bookings=BookingService(store, settings, companies, ledger),
            recyclers=RecyclerDirectory(),
        )
