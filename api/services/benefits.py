# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application services for benefit requests, family members and the service catalog.

Each service reads a snapshot, asks the domain for a decision and commits the
resulting state together with its audit entry in one transaction. Rules that
depend on concurrent writers are checked again at commit time. Without
transactions a write whose audit entry cannot be stored is reverted.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from opentelemetry import trace
from pymongo.errors import DuplicateKeyError

from domain.amounts import DEFAULT_LOAN_CEILINGS
from domain.audit_trail import AuditRecorder
from domain.catalog import create_service, toggle_service, update_service
from domain.eligibility import (
    edit_family_member, register_family_member, relation_slots, remove_family_member
)
from domain.lifecycle import apply_transition, can_view_request, submit_request
from domain.results import DomainErrorCode, WorkflowResult
from models.base import utc_now
from models.entities import AuditEntry, UserContext
from models.enums import BenefitType, MemberRole
from models.requests import (
    CreateServiceRequest, FamilyMemberData, FamilyMemberUpdate, RequestFilters,
    SubmitBenefitRequest, UpdateServiceRequest
)
from .mongodb import MongoDBService, PaginationResult
from .stores import FamilyMemberStore, MongoServiceCatalog, RequestStore, SlotConflictError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ConcurrentTransitionError(Exception):
    """Another writer changed the request between read and commit."""


class CommitRejected(Exception):
    """The commit-time re-check refused an operation."""

    def __init__(self, result: WorkflowResult):
        super().__init__(result.error_message)
        self.result = result


def record_or_revert(audit: AuditRecorder, entry: AuditEntry, session, revert: Callable[[], object]) -> None:
    """
    Append the audit entry for a write that was just made.

    Inside a transaction a failed append aborts the write with everything
    else. Without one (session is None) the write is reverted here before
    the error propagates.
    """
    try:
        audit.record(entry, session)
    except Exception:
        if session is None:
            logger.error("Audit append failed, reverting state change", extra={
                "entity_id": entry.entity_id,
                "action": entry.action
            })
            revert()
        raise


class BenefitRequestService:
    """Submission, review and listing of benefit requests."""

    def __init__(
        self,
        mongodb: MongoDBService,
        requests: RequestStore,
        family: FamilyMemberStore,
        catalog: MongoServiceCatalog,
        audit: AuditRecorder,
        ceilings: Optional[Dict[BenefitType, int]] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.mongodb = mongodb
        self.requests = requests
        self.family = family
        self.catalog = catalog
        self.audit = audit
        self.ceilings = ceilings or DEFAULT_LOAN_CEILINGS
        self.clock = clock

    def submit(self, data: SubmitBenefitRequest, actor: UserContext) -> WorkflowResult:
        """Create a pending request for the acting member."""
        with tracer.start_as_current_span("benefits.submit") as span:
            span.set_attributes({"request.benefit_type": str(data.benefit_type), "actor.id": actor.user_id})

            family = self.family.list_by_owner(actor.user_id)
            result = submit_request(data, actor, family, self.catalog, self.clock(), self.ceilings)
            if not result.success:
                return result

            def commit(session):
                self.requests.create(result.entity, session)
                record_or_revert(self.audit, result.audit_entry, session,
                                 lambda: self.requests.delete(result.entity.id))

            self.mongodb.run_in_transaction(commit)
            return result

    def transition(self, request_id: str, action, actor: UserContext,
                   comment: Optional[str] = None) -> WorkflowResult:
        """Apply accept, reject or validate to a stored request."""
        with tracer.start_as_current_span("benefits.transition") as span:
            span.set_attributes({"request.id": request_id, "request.action": str(action)})

            request = self.requests.get(request_id)
            if request is None:
                return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)

            result = apply_transition(request, action, actor, comment, self.clock())
            if not result.success:
                return result

            def commit(session):
                if not self.requests.apply_transition(result.entity, request.status, request.version, session):
                    raise ConcurrentTransitionError(request.id)
                record_or_revert(
                    self.audit, result.audit_entry, session,
                    lambda: self.requests.apply_transition(request, result.entity.status, result.entity.version)
                )

            try:
                self.mongodb.run_in_transaction(commit)
            except ConcurrentTransitionError:
                logger.warning("Request changed concurrently, transition refused", extra={
                    "request_id": request_id,
                    "expected_version": request.version
                })
                return WorkflowResult.failure(DomainErrorCode.ILLEGAL_TRANSITION)

            return result

    def get(self, request_id: str, actor: UserContext) -> WorkflowResult:
        """Fetch a request the actor is allowed to see."""
        request = self.requests.get(request_id)
        if request is None or not can_view_request(request, actor):
            return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)
        return WorkflowResult.ok(request)

    def list(self, actor: UserContext, filters: Optional[RequestFilters] = None,
             page: int = 1, page_size: int = 20) -> PaginationResult:
        return self.requests.list(actor, filters, page, page_size)


class FamilyMemberService:
    """Registration and administration of family members."""

    def __init__(
        self,
        mongodb: MongoDBService,
        family: FamilyMemberStore,
        audit: AuditRecorder,
        clock: Callable[[], datetime] = utc_now
    ):
        self.mongodb = mongodb
        self.family = family
        self.audit = audit
        self.clock = clock

    def _resolve_owner(self, actor: UserContext, owner_id: Optional[str]) -> Optional[str]:
        # Members only ever see their own family
        if MemberRole(actor.role) == MemberRole.MEMBER:
            return actor.user_id if owner_id in (None, actor.user_id) else None
        return owner_id or actor.user_id

    def list(self, actor: UserContext, owner_id: Optional[str] = None) -> WorkflowResult:
        owner = self._resolve_owner(actor, owner_id)
        if owner is None:
            return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)
        return WorkflowResult.ok(self.family.list_by_owner(owner))

    def slots(self, actor: UserContext, owner_id: Optional[str] = None) -> WorkflowResult:
        owner = self._resolve_owner(actor, owner_id)
        if owner is None:
            return WorkflowResult.failure(DomainErrorCode.PERMISSION_DENIED)
        return WorkflowResult.ok(relation_slots(self.family.list_by_owner(owner)))

    def add(self, data: FamilyMemberData, actor: UserContext) -> WorkflowResult:
        """Register a family member, re-checking cardinality inside the transaction."""
        owner_id = data.owner_id or actor.user_id
        now = self.clock()

        result = register_family_member(self.family.list_by_owner(owner_id), owner_id, data, actor, now)
        if not result.success:
            return result

        def commit(session):
            fresh = self.family.list_by_owner(owner_id, session)
            outcome = register_family_member(fresh, owner_id, data, actor, now)
            if not outcome.success:
                raise CommitRejected(outcome)
            self.family.insert(outcome.entity, session)
            record_or_revert(self.audit, outcome.audit_entry, session,
                             lambda: self.family.delete(outcome.entity.id))
            return outcome

        return self._commit(commit)

    def edit(self, member_id: str, updates: FamilyMemberUpdate, actor: UserContext) -> WorkflowResult:
        record = self.family.get(member_id)
        if record is None:
            return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)

        now = self.clock()
        result = edit_family_member(self.family.list_by_owner(record.owner_id), record, updates, actor, now)
        if not result.success:
            return result

        def commit(session):
            current = self._require_record(member_id, session)
            fresh = self.family.list_by_owner(current.owner_id, session)
            outcome = edit_family_member(fresh, current, updates, actor, now)
            if not outcome.success:
                raise CommitRejected(outcome)
            if not self.family.update(outcome.entity, session):
                raise CommitRejected(WorkflowResult.failure(DomainErrorCode.NOT_FOUND))
            record_or_revert(self.audit, outcome.audit_entry, session,
                             lambda: self.family.update(current))
            return outcome

        return self._commit(commit)

    def remove(self, member_id: str, actor: UserContext) -> WorkflowResult:
        record = self.family.get(member_id)
        if record is None:
            return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)

        now = self.clock()
        result = remove_family_member(record, actor, now)
        if not result.success:
            return result

        def commit(session):
            current = self._require_record(member_id, session)
            outcome = remove_family_member(current, actor, now)
            if not self.family.delete(current.id, session):
                raise CommitRejected(WorkflowResult.failure(DomainErrorCode.NOT_FOUND))
            record_or_revert(self.audit, outcome.audit_entry, session,
                             lambda: self.family.insert(current))
            return outcome

        return self._commit(commit)

    def _require_record(self, member_id: str, session):
        # Deleted since the first read
        current = self.family.get(member_id, session)
        if current is None:
            raise CommitRejected(WorkflowResult.failure(DomainErrorCode.NOT_FOUND))
        return current

    def _commit(self, commit) -> WorkflowResult:
        try:
            return self.mongodb.run_in_transaction(commit)
        except CommitRejected as e:
            return e.result
        except SlotConflictError:
            return WorkflowResult.failure(DomainErrorCode.CARDINALITY_EXCEEDED)


class ServiceCatalogService:
    """Administration of the service catalog."""

    def __init__(
        self,
        mongodb: MongoDBService,
        catalog: MongoServiceCatalog,
        audit: AuditRecorder,
        clock: Callable[[], datetime] = utc_now
    ):
        self.mongodb = mongodb
        self.catalog = catalog
        self.audit = audit
        self.clock = clock

    def list(self, actor: UserContext) -> List:
        """Members only see the services they can request."""
        return self.catalog.list(active_only=actor.is_member)

    def get(self, service_id: str) -> WorkflowResult:
        service = self.catalog.get(service_id)
        if service is None:
            return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)
        return WorkflowResult.ok(service)

    def create(self, data: CreateServiceRequest, actor: UserContext) -> WorkflowResult:
        result = create_service(data, actor, self.clock())
        if not result.success:
            return result

        def commit(session):
            self.catalog.create(result.entity, session)
            record_or_revert(self.audit, result.audit_entry, session,
                             lambda: self.catalog.delete(result.entity.id))

        try:
            self.mongodb.run_in_transaction(commit)
        except DuplicateKeyError:
            return WorkflowResult.failure(
                DomainErrorCode.VALIDATION_FAILED,
                ["Un service existe déjà pour ce type de prestation"]
            )
        return result

    def update(self, service_id: str, data: UpdateServiceRequest, actor: UserContext) -> WorkflowResult:
        service = self.catalog.get(service_id)
        if service is None:
            return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)

        result = update_service(service, data, actor, self.clock())
        if not result.success:
            return result

        def commit(session):
            if not self.catalog.update(result.entity, session):
                raise CommitRejected(WorkflowResult.failure(DomainErrorCode.NOT_FOUND))
            record_or_revert(self.audit, result.audit_entry, session,
                             lambda: self.catalog.update(service))
            return result

        return self._commit(commit)

    def toggle(self, service_id: str, actor: UserContext) -> WorkflowResult:
        service = self.catalog.get(service_id)
        if service is None:
            return WorkflowResult.failure(DomainErrorCode.NOT_FOUND)

        result = toggle_service(service, actor, self.clock())
        if not result.success:
            return result

        def commit(session):
            if not self.catalog.toggle_active(result.entity, session):
                raise CommitRejected(WorkflowResult.failure(DomainErrorCode.NOT_FOUND))
            record_or_revert(self.audit, result.audit_entry, session,
                             lambda: self.catalog.toggle_active(service))
            return result

        return self._commit(commit)

    def _commit(self, commit) -> WorkflowResult:
        try:
            return self.mongodb.run_in_transaction(commit)
        except CommitRejected as e:
            return e.result
