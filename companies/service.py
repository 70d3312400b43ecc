from datetime import datetime, timezone
from typing import Optional

import structlog

from core.errors import NotFound, PermissionDenied, require_user
from docstore import InMemoryDocumentStore, Subscription

from .models import Company, CreateCompanyRequest, UpdateCompanyRequest


log = structlog.get_logger(__name__)

COMPANIES = "companies"


class CompanyNotFound(NotFound):
    pass


def _to_company(snapshot) -> Company:
    return Company(id=snapshot.id, **snapshot.data)


class CompanyService:
    def __init__(self, store: Optional[InMemoryDocumentStore] = None):
        self.store = store or InMemoryDocumentStore()

    def create(self, user_id: str, request: CreateCompanyRequest) -> Company:
        require_user(user_id)
        data = {
            **request.model_dump(),
            "buyer_id": user_id,
            "is_active": True,
            "created_at": datetime.now(timezone.utc),
        }
        company_id = self.store.add(COMPANIES, data)
        log.info("company_created", company_id=company_id, buyer_id=user_id)
        return Company(id=company_id, **data)

    def get(self, company_id: str) -> Company:
        snapshot = self.store.get(COMPANIES, company_id)
        if snapshot is None:
            raise CompanyNotFound(f"Company {company_id} not found")
        return _to_company(snapshot)

    def update(self, user_id: str, company_id: str, request: UpdateCompanyRequest) -> Company:
        self._owned(user_id, company_id)
        changes = request.model_dump(exclude_none=True)
        if changes:
            self.store.update(COMPANIES, company_id, changes)
            log.info("company_updated", company_id=company_id, fields=sorted(changes))
        return self.get(company_id)

    def toggle_active(self, user_id: str, company_id: str) -> Company:
        company = self._owned(user_id, company_id)
        self.store.update(COMPANIES, company_id, {"is_active": not company.is_active})
        log.info("company_toggled", company_id=company_id, is_active=not company.is_active)
        return self.get(company_id)

    def delete(self, user_id: str, company_id: str) -> None:
        self._owned(user_id, company_id)
        self.store.delete(COMPANIES, company_id)
        log.info("company_deleted", company_id=company_id, buyer_id=user_id)

    def list_for_buyer(self, user_id: str) -> list[Company]:
        require_user(user_id)
        snapshots = (
            self.store.collection(COMPANIES)
            .where("buyer_id", "==", user_id)
            .order_by("created_at", descending=True)
            .get()
        )
        return [_to_company(s) for s in snapshots]

    def list_active(self, query: Optional[str] = None, waste_type: Optional[str] = None) -> list[Company]:
        """Active companies, newest first, optionally matched on name/location and waste type."""
        base = self.store.collection(COMPANIES).where("is_active", "==", True)
        if waste_type:
            base = base.where("waste_types_accepted", "array_contains", waste_type)
        companies = [_to_company(s) for s in base.order_by("created_at", descending=True).get()]
        if query:
            needle = query.casefold()
            companies = [
                c for c in companies
                if needle in c.company_name.casefold() or needle in c.location.casefold()
            ]
        return companies

    def watch_active(self) -> Subscription:
        query = (
            self.store.collection(COMPANIES)
            .where("is_active", "==", True)
            .order_by("created_at", descending=True)
        )
        return query.subscribe(lambda snapshots: [_to_company(s) for s in snapshots])

    def _owned(self, user_id: str, company_id: str) -> Company:
        require_user(user_id)
        company = self.get(company_id)
        if company.buyer_id != user_id:
            raise PermissionDenied("Only the company owner can change this company")
        return company
