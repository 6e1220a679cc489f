# SPDX-License-Identifier: Apache-2.0

"""
Benefit request lifecycle.

This module contains pure functions for request submission, the role-gated
status transitions and the role-scoped views of requests. Every successful
operation returns the new request state together with the audit entry that
must be committed with it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from models.base import utc_now
from models.entities import (
    BankTransferPayment, Beneficiary, BenefitRequest, ChequePayment, FamilyMember,
    MobileMoneyPayment, UserContext, MEMBER_RELATION
)
from models.enums import BenefitType, LifecycleAction, MemberRole, RequestStatus
from models.requests import SubmitBenefitRequest
from .amounts import resolve_amount
from .audit_trail import request_submitted_entry, request_transition_entry
from .catalog import ServiceCatalog
from .recency import is_event_claimable
from .results import DomainErrorCode, ValidationResult, WorkflowResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """One legal move of the request state machine."""
    source: RequestStatus
    action: LifecycleAction
    role: MemberRole
    target: RequestStatus
    requires_comment: bool = False


TRANSITIONS = (
    Transition(RequestStatus.PENDING, LifecycleAction.ACCEPT, MemberRole.CONTROLLER, RequestStatus.ACCEPTED),
    Transition(RequestStatus.PENDING, LifecycleAction.REJECT, MemberRole.CONTROLLER, RequestStatus.REJECTED,
               requires_comment=True),
    Transition(RequestStatus.ACCEPTED, LifecycleAction.VALIDATE, MemberRole.ADMINISTRATOR, RequestStatus.VALIDATED),
    Transition(RequestStatus.ACCEPTED, LifecycleAction.REJECT, MemberRole.ADMINISTRATOR, RequestStatus.REJECTED,
               requires_comment=True),
)


def find_transition(status, action, role) -> Optional[Transition]:
    """Look up the transition for a status, action and actor role."""
    status = RequestStatus(status)
    action = LifecycleAction(action)
    role = MemberRole(role)
    for transition in TRANSITIONS:
        if transition.source == status and transition.action == action and transition.role == role:
            return transition
    return None


def available_actions(request: BenefitRequest, actor: UserContext) -> List[LifecycleAction]:
    """Actions the actor may legally perform on the request right now."""
    return [
        transition.action for transition in TRANSITIONS
        if transition.source == RequestStatus(request.status)
        and transition.role == MemberRole(actor.role)
    ]


def validate_payment(payment) -> ValidationResult:
    """Check that the payment instructions carry the fields their method needs."""
    errors = []

    if isinstance(payment, MobileMoneyPayment):
        if not (payment.subscription_number or "").strip():
            errors.append("Le numéro d'abonnement est requis pour Mobile Money")
        if not (payment.subscriber_name or "").strip():
            errors.append("Le nom de l'abonné est requis pour Mobile Money")
    elif isinstance(payment, BankTransferPayment):
        if not (payment.account_number or "").strip():
            errors.append("Le compte bancaire est requis pour le virement")
        if not (payment.account_name or "").strip():
            errors.append("Le nom du compte est requis pour le virement")
    elif not isinstance(payment, ChequePayment):
        raise ValueError(f"Unhandled payment method: {type(payment).__name__}")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)


def resolve_beneficiary(
    actor: UserContext,
    beneficiary_id: Optional[str],
    family: Iterable[FamilyMember]
) -> Optional[Beneficiary]:
    """
    Resolve the beneficiary of a request.

    The member themselves when no ID (or their own ID) is given, otherwise one
    of their registered family members. Returns None for an unknown ID.
    """
    if not beneficiary_id or beneficiary_id == actor.user_id:
        return Beneficiary(id=actor.user_id, name=actor.name, relation=MEMBER_RELATION)

    for record in family:
        if record.id == beneficiary_id:
            return Beneficiary(id=record.id, name=record.full_name, relation=record.relation)

    return None


def submit_request(
    data: SubmitBenefitRequest,
    actor: UserContext,
    family: List[FamilyMember],
    catalog: ServiceCatalog,
    now: datetime,
    ceilings: Optional[Dict[BenefitType, int]] = None
) -> WorkflowResult:
    """
    Create a pending benefit request for the acting member.

    Args:
        data: Submission payload
        actor: Submitting member
        family: The member's registered family members
        catalog: Service catalog for availability and amounts
        now: Submission time
        ceilings: Loan ceilings override

    Returns:
        WorkflowResult with the new request and its audit entry, or the
        violated rule
    """
    if not actor.is_member:
        return WorkflowResult.failure(DomainErrorCode.ILLEGAL_TRANSITION)

    benefit_type = BenefitType(data.benefit_type)

    if not catalog.is_available(benefit_type):
        return WorkflowResult.failure(DomainErrorCode.SERVICE_UNAVAILABLE)

    beneficiary = resolve_beneficiary(actor, data.beneficiary_id, family)
    if beneficiary is None:
        return WorkflowResult.failure(
            DomainErrorCode.VALIDATION_FAILED, ["Le bénéficiaire est requis"]
        )

    payment_check = validate_payment(data.payment)
    if not payment_check.is_valid:
        return WorkflowResult.failure(DomainErrorCode.INVALID_PAYMENT, payment_check.errors)

    resolution = resolve_amount(benefit_type, data.amount, catalog, ceilings)
    if not resolution.success:
        return WorkflowResult.failure(resolution.error_code)

    if not is_event_claimable(benefit_type, data.event_date, now):
        return WorkflowResult.failure(DomainErrorCode.EVENT_NOT_CLAIMABLE)

    request = BenefitRequest(
        member_id=actor.user_id,
        member_name=actor.name,
        benefit_type=benefit_type,
        beneficiary=beneficiary,
        amount=resolution.amount,
        event_date=None if benefit_type.is_loan else data.event_date,
        payment=data.payment,
        justification_document=data.justification_document,
        status=RequestStatus.PENDING,
        submitted_at=now,
        created_at=now,
        updated_at=now,
        created_by=actor.user_id,
        updated_by=actor.user_id
    )

    logger.info("Benefit request submitted", extra={
        "request_id": request.id,
        "member_id": actor.user_id,
        "benefit_type": benefit_type.value,
        "amount": request.amount
    })

    return WorkflowResult.ok(request, request_submitted_entry(request, actor, now))


def apply_transition(
    request: BenefitRequest,
    action,
    actor: UserContext,
    comment: Optional[str] = None,
    now: Optional[datetime] = None
) -> WorkflowResult:
    """
    Apply a lifecycle action to a request.

    Wrong state, wrong role or a repeated action yields ILLEGAL_TRANSITION; a
    rejection without a non-blank comment yields COMMENT_REQUIRED. The input
    request is never modified.
    """
    action = LifecycleAction(action)
    transition = None
    if action != LifecycleAction.SUBMIT:
        transition = find_transition(request.status, action, actor.role)

    if transition is None:
        logger.warning("Illegal transition attempted", extra={
            "request_id": request.id,
            "status": RequestStatus(request.status).value,
            "action": action.value,
            "role": MemberRole(actor.role).value
        })
        return WorkflowResult.failure(DomainErrorCode.ILLEGAL_TRANSITION)

    comment = (comment or "").strip() or None
    if transition.requires_comment and comment is None:
        return WorkflowResult.failure(DomainErrorCode.COMMENT_REQUIRED)

    now = now or utc_now()
    updates = {
        "status": transition.target.value,
        "version": request.version + 1,
        "updated_at": now,
        "updated_by": actor.user_id,
    }
    if transition.role == MemberRole.CONTROLLER:
        updates.update(controller_id=actor.user_id, controller_name=actor.name, processed_at=now)
    else:
        updates.update(administrator_id=actor.user_id, administrator_name=actor.name, decided_at=now)
    if comment is not None:
        updates["comment"] = comment

    updated = BenefitRequest.model_validate({**request.model_dump(), **updates})

    logger.info("Benefit request transitioned", extra={
        "request_id": request.id,
        "from_status": transition.source.value,
        "to_status": transition.target.value,
        "actor_id": actor.user_id
    })

    return WorkflowResult.ok(updated, request_transition_entry(updated, action, actor, now))


def accept_request(request: BenefitRequest, actor: UserContext, comment: Optional[str] = None,
                   now: Optional[datetime] = None) -> WorkflowResult:
    return apply_transition(request, LifecycleAction.ACCEPT, actor, comment, now)


def reject_request(request: BenefitRequest, actor: UserContext, comment: Optional[str] = None,
                   now: Optional[datetime] = None) -> WorkflowResult:
    return apply_transition(request, LifecycleAction.REJECT, actor, comment, now)


def validate_request(request: BenefitRequest, actor: UserContext, comment: Optional[str] = None,
                     now: Optional[datetime] = None) -> WorkflowResult:
    return apply_transition(request, LifecycleAction.VALIDATE, actor, comment, now)


def can_view_request(request: BenefitRequest, actor: UserContext) -> bool:
    """
    Role-scoped visibility.

    Members see their own requests, controllers see all of them,
    administrators see accepted requests plus the ones they decided.
    """
    role = MemberRole(actor.role)
    if role == MemberRole.MEMBER:
        return request.member_id == actor.user_id
    if role == MemberRole.CONTROLLER:
        return True
    if role == MemberRole.ADMINISTRATOR:
        return (
            RequestStatus(request.status) == RequestStatus.ACCEPTED
            or request.administrator_id == actor.user_id
        )
    raise ValueError(f"Unhandled role: {role}")


def visible_requests(requests: Iterable[BenefitRequest], actor: UserContext) -> List[BenefitRequest]:
    """Filter requests down to the actor's view."""
    return [request for request in requests if can_view_request(request, actor)]
