# SPDX-License-Identifier: Apache-2.0

"""
Service catalog contract and administration rules.

The catalog tells the amount policy which benefit types are loans and what
fixed amount each allowance pays. StaticServiceCatalog holds the default
offering; services/stores.py provides the MongoDB-backed catalog.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ValidationError

from models.entities import BenefitService, UserContext
from models.enums import BenefitType, ServiceKind
from models.requests import CreateServiceRequest, UpdateServiceRequest
from .audit_trail import service_created_entry, service_toggled_entry, service_updated_entry
from .results import DomainErrorCode, WorkflowResult


DEFAULT_FIXED_AMOUNTS = {
    BenefitType.MARRIAGE_ALLOWANCE: 50000,
    BenefitType.BIRTH_ALLOWANCE: 25000,
    BenefitType.DEATH_ALLOWANCE: 75000,
}


def default_services() -> List[BenefitService]:
    """Default service offering of the mutuelle."""
    return [
        BenefitService(
            benefit_type=BenefitType.MARRIAGE_ALLOWANCE,
            name="Allocation Mariage",
            description="Aide financière pour les frais de mariage",
            kind=ServiceKind.ALLOCATION,
            default_amount=DEFAULT_FIXED_AMOUNTS[BenefitType.MARRIAGE_ALLOWANCE],
            conditions=["Être membre depuis au moins 6 mois", "Fournir un certificat de mariage"],
        ),
        BenefitService(
            benefit_type=BenefitType.BIRTH_ALLOWANCE,
            name="Allocation Naissance",
            description="Aide financière pour l'arrivée d'un nouveau-né",
            kind=ServiceKind.ALLOCATION,
            default_amount=DEFAULT_FIXED_AMOUNTS[BenefitType.BIRTH_ALLOWANCE],
            conditions=["Être membre actif", "Fournir un acte de naissance"],
        ),
        BenefitService(
            benefit_type=BenefitType.DEATH_ALLOWANCE,
            name="Allocation Décès",
            description="Aide financière pour les frais funéraires",
            kind=ServiceKind.ALLOCATION,
            default_amount=DEFAULT_FIXED_AMOUNTS[BenefitType.DEATH_ALLOWANCE],
            conditions=["Être membre ou ayant droit", "Fournir un acte de décès"],
        ),
        BenefitService(
            benefit_type=BenefitType.SOCIAL_LOAN,
            name="Prêt Social",
            description="Prêt pour les urgences sociales",
            kind=ServiceKind.LOAN,
            conditions=["Être membre depuis au moins 1 an", "Avoir un garant", "Remboursement sur 12 mois"],
        ),
        BenefitService(
            benefit_type=BenefitType.ECONOMIC_LOAN,
            name="Prêt Économique",
            description="Prêt pour les activités génératrices de revenus",
            kind=ServiceKind.LOAN,
            conditions=["Être membre depuis au moins 2 ans", "Présenter un business plan", "Remboursement sur 24 mois"],
        ),
    ]


class ServiceCatalog:
    """Read-side contract consumed by the amount policy."""

    def get_fixed_amount(self, benefit_type) -> int:
        """Fixed amount paid for an allowance; raises LookupError if unknown."""
        raise NotImplementedError

    def is_loan_type(self, benefit_type) -> bool:
        raise NotImplementedError

    def is_available(self, benefit_type) -> bool:
        """Whether members may currently request this benefit type."""
        raise NotImplementedError


class StaticServiceCatalog(ServiceCatalog):
    """In-memory catalog, by default holding the standard offering."""

    def __init__(self, services: Optional[List[BenefitService]] = None):
        self._services: Dict[BenefitType, BenefitService] = {
            BenefitType(service.benefit_type): service
            for service in (services if services is not None else default_services())
        }

    def _service(self, benefit_type) -> BenefitService:
        benefit_type = BenefitType(benefit_type)
        if benefit_type not in self._services:
            raise LookupError(f"No service configured for {benefit_type.value}")
        return self._services[benefit_type]

    def get_fixed_amount(self, benefit_type) -> int:
        service = self._service(benefit_type)
        if service.default_amount is None:
            raise LookupError(f"{service.benefit_type} has no fixed amount")
        return service.default_amount

    def is_loan_type(self, benefit_type) -> bool:
        return ServiceKind(self._service(benefit_type).kind) == ServiceKind.LOAN

    def is_available(self, benefit_type) -> bool:
        service = self._services.get(BenefitType(benefit_type))
        return service is not None and service.is_active


def create_service(data: CreateServiceRequest, actor: UserContext, now: datetime) -> WorkflowResult:
    """Create a catalog entry (administrators only)."""
    if not actor.is_administrator:
        return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)

    try:
        service = BenefitService(
            **data.model_dump(),
            created_at=now,
            updated_at=now,
            created_by=actor.user_id,
            updated_by=actor.user_id
        )
    except ValidationError as e:
        return WorkflowResult.failure(
            DomainErrorCode.VALIDATION_FAILED, [error["msg"] for error in e.errors()]
        )

    return WorkflowResult.ok(service, service_created_entry(service, actor, now))


def update_service(
    service: BenefitService,
    data: UpdateServiceRequest,
    actor: UserContext,
    now: datetime
) -> WorkflowResult:
    """Update the descriptive fields and amount of a catalog entry."""
    if not actor.is_administrator:
        return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)

    try:
        updated = BenefitService.model_validate({
            **service.model_dump(),
            **data.model_dump(exclude_unset=True, exclude_none=True),
            "updated_at": now,
            "updated_by": actor.user_id,
        })
    except ValidationError as e:
        return WorkflowResult.failure(
            DomainErrorCode.VALIDATION_FAILED, [error["msg"] for error in e.errors()]
        )

    return WorkflowResult.ok(updated, service_updated_entry(updated, actor, now))


def toggle_service(service: BenefitService, actor: UserContext, now: datetime) -> WorkflowResult:
    """Flip a catalog entry between active and inactive."""
    if not actor.is_administrator:
        return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)

    updated = service.model_copy(deep=True)
    updated.is_active = not service.is_active
    updated.update_timestamp(actor.user_id, now)

    return WorkflowResult.ok(updated, service_toggled_entry(updated, actor, now))
