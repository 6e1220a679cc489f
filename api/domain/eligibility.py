# SPDX-License-Identifier: Apache-2.0

"""
Family eligibility rules.

Decides which relations a member may register and in what cardinality. All
functions work on an owner-scoped snapshot of FamilyMember records passed in
by the caller; none of them filter by owner or touch storage.
"""

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from models.entities import FamilyMember, UserContext
from models.enums import CardinalityClass, Relation
from models.requests import FamilyMemberData, FamilyMemberUpdate
from .audit_trail import (
    family_member_added_entry, family_member_removed_entry, family_member_updated_entry
)
from .results import DomainErrorCode, ValidationResult, WorkflowResult

logger = logging.getLogger(__name__)


MAX_CHILDREN = 6

CLASS_CAPACITY = {
    CardinalityClass.SPOUSE: 1,
    CardinalityClass.FATHER: 1,
    CardinalityClass.MOTHER: 1,
    CardinalityClass.STEP_FATHER: 1,
    CardinalityClass.STEP_MOTHER: 1,
    CardinalityClass.CHILD: MAX_CHILDREN,
}


def cardinality_class(relation) -> CardinalityClass:
    """Map a relation to the class whose cap it counts against."""
    relation = Relation(relation)
    if relation in (Relation.SPOUSE_HUSBAND, Relation.SPOUSE_WIFE):
        return CardinalityClass.SPOUSE
    if relation == Relation.CHILD:
        return CardinalityClass.CHILD
    if relation == Relation.FATHER:
        return CardinalityClass.FATHER
    if relation == Relation.MOTHER:
        return CardinalityClass.MOTHER
    if relation == Relation.STEP_FATHER:
        return CardinalityClass.STEP_FATHER
    if relation == Relation.STEP_MOTHER:
        return CardinalityClass.STEP_MOTHER
    raise ValueError(f"Unhandled relation: {relation}")


def _same_class(
    existing: Iterable[FamilyMember],
    klass: CardinalityClass,
    exclude_member_id: Optional[str]
) -> List[FamilyMember]:
    return [
        record for record in existing
        if record.id != exclude_member_id and cardinality_class(record.relation) == klass
    ]


def can_assign_relation(
    existing: Iterable[FamilyMember],
    owner_id: str,
    relation,
    exclude_member_id: Optional[str] = None
) -> bool:
    """
    Check whether one more record with `relation` fits the owner's family.

    Args:
        existing: Family members already registered for the owner
        owner_id: Owning member ID (the snapshot must already be scoped to it)
        relation: Relation to add or move a record to
        exclude_member_id: Record being edited, left out of the count

    Returns:
        True when the relation's class is below its cap
    """
    klass = cardinality_class(relation)
    count = len(_same_class(existing, klass, exclude_member_id))
    allowed = count < CLASS_CAPACITY[klass]

    logger.debug("Relation eligibility checked", extra={
        "owner_id": owner_id,
        "relation": Relation(relation).value,
        "class_count": count,
        "allowed": allowed
    })

    return allowed


def slot_key(
    relation,
    existing: Iterable[FamilyMember],
    exclude_member_id: Optional[str] = None
) -> Optional[str]:
    """
    Storage slot for a record with `relation`.

    Singleton classes use the class name; children take the lowest free
    `child:N`. Returns None when the class is full.
    """
    klass = cardinality_class(relation)
    taken = {record.slot for record in _same_class(existing, klass, exclude_member_id)}

    if klass != CardinalityClass.CHILD:
        return None if taken else klass.value

    for index in range(1, MAX_CHILDREN + 1):
        candidate = f"{klass.value}:{index}"
        if candidate not in taken:
            return candidate
    return None


def relation_slots(existing: Iterable[FamilyMember]) -> Dict[str, Dict[str, int]]:
    """Used and remaining capacity per cardinality class."""
    existing = list(existing)
    slots = {}
    for klass, capacity in CLASS_CAPACITY.items():
        used = len(_same_class(existing, klass, None))
        slots[klass.value] = {
            "used": used,
            "capacity": capacity,
            "available": max(capacity - used, 0),
        }
    return slots


def validate_family_member_data(data: FamilyMemberData, today: date) -> ValidationResult:
    """Validate registration data beyond what the request model checks."""
    errors = []

    if not data.first_name.strip() or not data.last_name.strip():
        errors.append("Le nom et le prénom sont obligatoires")

    if not data.birth_certificate_ref.strip():
        errors.append("Le numéro d'acte de naissance est obligatoire")

    if data.date_of_birth > today:
        errors.append("La date de naissance ne peut pas être dans le futur")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)


def _today(now: datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def register_family_member(
    existing: List[FamilyMember],
    owner_id: str,
    data: FamilyMemberData,
    actor: UserContext,
    now: datetime
) -> WorkflowResult:
    """
    Register a new family member for `owner_id`.

    Members may only register relatives for themselves; administrators may
    register for anyone. Controllers cannot register family members.
    """
    if actor.is_controller or (actor.is_member and owner_id != actor.user_id):
        return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)

    validation = validate_family_member_data(data, _today(now))
    if not validation.is_valid:
        return WorkflowResult.failure(DomainErrorCode.VALIDATION_FAILED, validation.errors)

    if not can_assign_relation(existing, owner_id, data.relation):
        return WorkflowResult.failure(DomainErrorCode.CARDINALITY_EXCEEDED)

    record = FamilyMember(
        owner_id=owner_id,
        first_name=data.first_name,
        last_name=data.last_name,
        npi=data.npi,
        birth_certificate_ref=data.birth_certificate_ref,
        date_of_birth=data.date_of_birth,
        relation=data.relation,
        slot=slot_key(data.relation, existing),
        justification_document=data.justification_document,
        created_at=now,
        updated_at=now,
        created_by=actor.user_id,
        updated_by=actor.user_id
    )

    return WorkflowResult.ok(record, family_member_added_entry(record, actor, now))


def edit_family_member(
    existing: List[FamilyMember],
    record: FamilyMember,
    updates: FamilyMemberUpdate,
    actor: UserContext,
    now: datetime
) -> WorkflowResult:
    """
    Apply an administrator's edit to a family member.

    The cardinality check leaves the edited record out of the count, so an
    edit that keeps its relation is always allowed.
    """
    if not actor.is_administrator:
        return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)

    changes = updates.model_dump(exclude_unset=True, exclude_none=True)
    relation = Relation(changes.get("relation", record.relation))

    date_of_birth = changes.get("date_of_birth", record.date_of_birth)
    if date_of_birth > _today(now):
        return WorkflowResult.failure(
            DomainErrorCode.VALIDATION_FAILED,
            ["La date de naissance ne peut pas être dans le futur"]
        )

    if not can_assign_relation(existing, record.owner_id, relation, exclude_member_id=record.id):
        return WorkflowResult.failure(DomainErrorCode.CARDINALITY_EXCEEDED)

    if cardinality_class(relation) == cardinality_class(record.relation) and record.slot:
        changes["slot"] = record.slot
    else:
        changes["slot"] = slot_key(relation, existing, exclude_member_id=record.id)

    updated = FamilyMember.model_validate({
        **record.model_dump(),
        **changes,
        "updated_at": now,
        "updated_by": actor.user_id,
    })

    return WorkflowResult.ok(updated, family_member_updated_entry(updated, actor, now))


def remove_family_member(record: FamilyMember, actor: UserContext, now: datetime) -> WorkflowResult:
    """Remove a family member (administrators only)."""
    if not actor.is_administrator:
        return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)
    return WorkflowResult.ok(record, family_member_removed_entry(record, actor, now))
