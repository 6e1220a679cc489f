# SPDX-License-Identifier: Apache-2.0

"""
Audit entry builders.

Every mutating decision of the platform produces exactly one AuditEntry built
here. Entries are plain values; persisting them is the job of an
AuditRecorder (see services/audit.py).
"""

from datetime import datetime
from typing import Optional

from models.entities import (
    AuditEntry, BenefitRequest, BenefitService, FamilyMember, UserContext
)
from models.enums import AuditSeverity, BenefitType, LifecycleAction, Relation


MODULE_REQUESTS = "Demandes"
MODULE_FAMILY = "Famille"
MODULE_SERVICES = "Services"

BENEFIT_LABELS = {
    BenefitType.MARRIAGE_ALLOWANCE: "Allocation Mariage",
    BenefitType.BIRTH_ALLOWANCE: "Allocation Naissance",
    BenefitType.DEATH_ALLOWANCE: "Allocation Décès",
    BenefitType.SOCIAL_LOAN: "Prêt Social",
    BenefitType.ECONOMIC_LOAN: "Prêt Économique",
}

RELATION_LABELS = {
    Relation.SPOUSE_HUSBAND: "Époux",
    Relation.SPOUSE_WIFE: "Épouse",
    Relation.CHILD: "Enfant",
    Relation.FATHER: "Père",
    Relation.MOTHER: "Mère",
    Relation.STEP_FATHER: "Beau-père",
    Relation.STEP_MOTHER: "Belle-mère",
}

TRANSITION_AUDIT = {
    LifecycleAction.ACCEPT: ("Demande acceptée", AuditSeverity.SUCCESS, "acceptée"),
    LifecycleAction.VALIDATE: ("Demande validée", AuditSeverity.SUCCESS, "validée"),
    LifecycleAction.REJECT: ("Demande rejetée", AuditSeverity.WARNING, "rejetée"),
}


class AuditRecorder:
    """Append-only sink for audit entries."""

    def record(self, entry: AuditEntry, session=None) -> str:
        """Persist the entry and return its ID; raise if it cannot be stored."""
        raise NotImplementedError


def benefit_label(benefit_type) -> str:
    return BENEFIT_LABELS[BenefitType(benefit_type)]


def relation_label(relation) -> str:
    return RELATION_LABELS[Relation(relation)]


def format_amount(amount: Optional[int]) -> str:
    """Format an FCFA amount with space thousands separators."""
    if amount is None:
        return "-"
    return f"{amount:,} FCFA".replace(",", " ")


def build_entry(
    actor: Optional[UserContext],
    action: str,
    details: str,
    severity: AuditSeverity,
    module: str,
    entity: Optional[str] = None,
    entity_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> AuditEntry:
    """
    Build an audit entry for an action performed by an actor.

    A missing actor records the action as performed by the system.
    """
    data = dict(
        action=action,
        details=details,
        severity=severity,
        module=module,
        entity=entity,
        entity_id=entity_id,
    )
    if actor is not None:
        data.update(user_id=actor.user_id, user_name=actor.name, ip_address=actor.ip_address)
    if now is not None:
        data["timestamp"] = now
    return AuditEntry(**data)


def request_submitted_entry(request: BenefitRequest, actor: UserContext, now: datetime) -> AuditEntry:
    details = (
        f"Demande {benefit_label(request.benefit_type)} pour {request.beneficiary.name} "
        f"({format_amount(request.amount)})"
    )
    return build_entry(
        actor, "Nouvelle demande", details, AuditSeverity.INFO, MODULE_REQUESTS,
        entity="benefit_request", entity_id=request.id, now=now
    )


def request_transition_entry(
    request: BenefitRequest,
    action: LifecycleAction,
    actor: UserContext,
    now: datetime
) -> AuditEntry:
    """Entry for an accept, validate or reject decision on a request."""
    label, severity, verb = TRANSITION_AUDIT[LifecycleAction(action)]
    details = (
        f"Demande {benefit_label(request.benefit_type)} de {request.member_name} "
        f"({format_amount(request.amount)}) {verb} par {actor.name}"
    )
    if request.comment:
        details = f"{details} - {request.comment}"
    return build_entry(
        actor, label, details, severity, MODULE_REQUESTS,
        entity="benefit_request", entity_id=request.id, now=now
    )


def _family_entry(action: str, verb: str, record: FamilyMember, actor: UserContext, now: datetime) -> AuditEntry:
    details = f"{relation_label(record.relation)} {record.full_name} {verb} (membre {record.owner_id})"
    return build_entry(
        actor, action, details, AuditSeverity.INFO, MODULE_FAMILY,
        entity="family_member", entity_id=record.id, now=now
    )


def family_member_added_entry(record: FamilyMember, actor: UserContext, now: datetime) -> AuditEntry:
    return _family_entry("Membre de famille ajouté", "ajouté(e)", record, actor, now)


def family_member_updated_entry(record: FamilyMember, actor: UserContext, now: datetime) -> AuditEntry:
    return _family_entry("Membre de famille modifié", "modifié(e)", record, actor, now)


def family_member_removed_entry(record: FamilyMember, actor: UserContext, now: datetime) -> AuditEntry:
    return _family_entry("Membre de famille supprimé", "supprimé(e)", record, actor, now)


def service_created_entry(service: BenefitService, actor: UserContext, now: datetime) -> AuditEntry:
    return build_entry(
        actor, "Service créé", f"Service {service.name} créé", AuditSeverity.INFO, MODULE_SERVICES,
        entity="service", entity_id=service.id, now=now
    )


def service_updated_entry(service: BenefitService, actor: UserContext, now: datetime) -> AuditEntry:
    return build_entry(
        actor, "Service modifié", f"Service {service.name} modifié", AuditSeverity.INFO, MODULE_SERVICES,
        entity="service", entity_id=service.id, now=now
    )


def service_toggled_entry(service: BenefitService, actor: UserContext, now: datetime) -> AuditEntry:
    state = "activé" if service.is_active else "désactivé"
    return build_entry(
        actor, "Statut service modifié", f"Service {service.name} {state}", AuditSeverity.INFO,
        MODULE_SERVICES, entity="service", entity_id=service.id, now=now
    )
