"""
Partnered company registry.

Companies are registered by name, unique ignoring case. Placements link
to a registered company when one matches the placement's company name,
and company admin accounts register their company on creation when it is
missing. The directory view merges the registry with the companies named
on company admin accounts, so a company with a representative but no
registry row still shows up.
"""

from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import BaseModel

from ..db.models import AdminRole, Company
from ..errors import InvalidStateError, NotFoundError
from ..notifications import NotificationType
from .base import Component
from .models import CreateCompanyRequest, parse_request

logger = structlog.get_logger(__name__)


class Representative(BaseModel):
    admin_id: str
    name: str
    email: str


class DirectoryEntry(BaseModel):
    name: str
    company_id: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    registered: bool = False
    representatives: List[Representative] = []


class CompanyRegistry(Component):

    def create(self, payload: Union[CreateCompanyRequest, Dict[str, Any]]) -> Company:
        """
        Register a company.

        Raises:
            ConflictError: A company with the same name (ignoring case) exists
            ValidationError: Payload is malformed
        """
        request = parse_request(CreateCompanyRequest, payload)
        with self.store.transaction():
            company = self.store.insert_company(request.model_dump())
        logger.info("Company registered", company_id=company.id, name=company.name)
        self._notify(NotificationType.COMPANY_REGISTERED, company_id=company.id, name=company.name)
        return company

    def get(self, company_id: str) -> Company:
        company = self.store.get_company(company_id)
        if company is None:
            raise NotFoundError("Company not found", {"company_id": company_id})
        return company

    def list_partnered(self) -> List[Company]:
        return self.store.list_companies(partnered_only=True)

    def delete(self, company_id: str) -> Company:
        """
        Remove a company from the registry.

        A company that placed students stays: their placement records point
        at it.

        Raises:
            NotFoundError: Unknown company
            InvalidStateError: Students are placed with the company
        """
        with self.store.transaction():
            company = self.get(company_id)
            placed = self.store.count_students_at_company(company_id)
            if placed:
                raise InvalidStateError("Company has placed students and cannot be removed",
                                        {"company_id": company_id, "students": placed})
            self.store.delete_company(company_id)
        logger.info("Company removed", company_id=company_id, name=company.name)
        self._notify(NotificationType.COMPANY_REMOVED, company_id=company_id, name=company.name)
        return company

    def directory(self) -> List[DirectoryEntry]:
        """Registered companies merged with the companies of active company admins, keyed by lowercased name."""
        entries: Dict[str, DirectoryEntry] = {}
        for company in self.store.list_companies():
            entries[company.name.casefold()] = DirectoryEntry(
                name=company.name, company_id=company.id, email=company.email,
                website=company.website, phone=company.phone, registered=True,
            )
        for admin in self.store.list_admins(role=AdminRole.COMPANY_ADMIN.value):
            if not admin.is_active or not admin.company:
                continue
            entry = entries.setdefault(admin.company.casefold(),
                                       DirectoryEntry(name=admin.company, email=admin.email))
            entry.representatives.append(Representative(admin_id=admin.id, name=admin.name, email=admin.email))
        return sorted(entries.values(), key=lambda e: e.name.casefold())
