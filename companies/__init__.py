"""
Recycling companies listed by buyers.

Companies are soft-deleted by switching ``is_active`` off and hard-deleted
on explicit delete. Only the owning buyer may change a company.

Also holds the fixed directory of authorized e-waste recyclers.
"""

from .models import (
    Authorization,
    Company,
    CreateCompanyRequest,
    Recycler,
    UpdateCompanyRequest,
    WASTE_TYPES,
)
from .recyclers import RecyclerDirectory
from .service import CompanyService, CompanyNotFound

__all__ = [
    "Authorization",
    "Company",
    "CreateCompanyRequest",
    "Recycler",
    "UpdateCompanyRequest",
    "WASTE_TYPES",
    "RecyclerDirectory",
    "CompanyService",
    "CompanyNotFound",
]
