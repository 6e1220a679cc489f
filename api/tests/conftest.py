# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Stores are replaced by in-memory fakes with the same interface as the
MongoDB-backed ones in services/stores.py.
"""

import os
import pytest
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

# Set test environment before the application module is imported
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'musaib_test'
os.environ['MONGODB_TRANSACTIONS'] = 'false'
os.environ['JWT_SECRET'] = 'test-secret-key-for-musaib-benefits-api'

from domain.audit_trail import AuditRecorder
from domain.catalog import StaticServiceCatalog, default_services
from domain.lifecycle import visible_requests
from models.entities import AuditEntry, BenefitRequest, BenefitService, FamilyMember, UserContext
from models.enums import BenefitType, MemberRole, RequestStatus
from models.requests import FamilyMemberData
from services.benefits import BenefitRequestService, FamilyMemberService, ServiceCatalogService
from services.mongodb import PaginationResult
from services.stores import SlotConflictError


NOW = datetime(2025, 6, 15, 10, 30, tzinfo=timezone.utc)


class FakeMongo:
    """Stands in for MongoDBService where only transactions are used."""

    use_transactions = False

    def __init__(self):
        self.transactions = 0

    def run_in_transaction(self, callback):
        self.transactions += 1
        return callback(None)


class InMemoryFamilyStore:
    """Family member store enforcing the (owner, slot) uniqueness of the real index."""

    def __init__(self):
        self.records: Dict[str, FamilyMember] = {}

    def list_by_owner(self, owner_id: str, session=None) -> List[FamilyMember]:
        return sorted(
            (record for record in self.records.values() if record.owner_id == owner_id),
            key=lambda record: record.created_at
        )

    def get(self, member_id: str, session=None) -> Optional[FamilyMember]:
        return self.records.get(member_id)

    def _check_slot(self, record: FamilyMember):
        for other in self.records.values():
            if other.id != record.id and other.owner_id == record.owner_id and other.slot == record.slot:
                raise SlotConflictError(record.slot)

    def insert(self, record: FamilyMember, session=None) -> str:
        self._check_slot(record)
        self.records[record.id] = record
        return record.id

    def update(self, record: FamilyMember, session=None) -> bool:
        if record.id not in self.records:
            return False
        self._check_slot(record)
        self.records[record.id] = record
        return True

    def delete(self, member_id: str, session=None) -> bool:
        return self.records.pop(member_id, None) is not None


class InMemoryRequestStore:
    """Request store with the optimistic status/version check of RequestStore."""

    def __init__(self):
        self.requests: Dict[str, BenefitRequest] = {}

    def get(self, request_id: str, session=None) -> Optional[BenefitRequest]:
        return self.requests.get(request_id)

    def create(self, request: BenefitRequest, session=None) -> str:
        self.requests[request.id] = request
        return request.id

    def delete(self, request_id: str, session=None) -> bool:
        return self.requests.pop(request_id, None) is not None

    def apply_transition(self, updated: BenefitRequest, expected_status, expected_version: int,
                         session=None) -> bool:
        current = self.requests.get(updated.id)
        if current is None:
            return False
        if RequestStatus(current.status) != RequestStatus(expected_status) or current.version != expected_version:
            return False
        self.requests[updated.id] = updated
        return True

    def list(self, actor: UserContext, filters=None, page: int = 1, page_size: int = 20) -> PaginationResult:
        items = visible_requests(self.requests.values(), actor)
        if filters is not None and filters.status:
            items = [item for item in items if item.status == RequestStatus(filters.status).value]
        if filters is not None and filters.benefit_type:
            items = [item for item in items if item.benefit_type == BenefitType(filters.benefit_type).value]
        if filters is not None and filters.search:
            needle = filters.search.lower()
            items = [
                item for item in items
                if needle in item.member_name.lower() or needle in item.beneficiary.name.lower()
            ]
        items.sort(key=lambda item: item.submitted_at, reverse=True)
        start = (page - 1) * page_size
        return PaginationResult(items[start:start + page_size], len(items), page, page_size)


class InMemoryCatalog(StaticServiceCatalog):
    """Writable catalog keyed by benefit type, like the unique index on `services`."""

    def __init__(self, services: Optional[List[BenefitService]] = None):
        super().__init__(services)

    def get_by_type(self, benefit_type) -> Optional[BenefitService]:
        return self._services.get(BenefitType(benefit_type))

    def get(self, service_id: str) -> Optional[BenefitService]:
        for service in self._services.values():
            if service.id == service_id:
                return service
        return None

    def list(self, active_only: bool = False) -> List[BenefitService]:
        services = sorted(self._services.values(), key=lambda service: service.name)
        return [service for service in services if service.is_active or not active_only]

    def create(self, service: BenefitService, session=None) -> str:
        benefit_type = BenefitType(service.benefit_type)
        if benefit_type in self._services:
            raise DuplicateKeyError("duplicate benefitType")
        self._services[benefit_type] = service
        return service.id

    def update(self, service: BenefitService, session=None) -> bool:
        if self.get(service.id) is None:
            return False
        self._services[BenefitType(service.benefit_type)] = service
        return True

    def delete(self, service_id: str, session=None) -> bool:
        service = self.get(service_id)
        if service is None:
            return False
        del self._services[BenefitType(service.benefit_type)]
        return True

    def toggle_active(self, service: BenefitService, session=None) -> bool:
        return self.update(service, session)


class InMemoryAuditRecorder(AuditRecorder):
    """Collects audit entries in order."""

    def __init__(self):
        self.entries: List[AuditEntry] = []

    def record(self, entry: AuditEntry, session=None) -> str:
        self.entries.append(entry)
        return entry.id


class FailingAuditRecorder(AuditRecorder):
    """Audit sink whose writes always fail."""

    def __init__(self):
        self.attempts = 0

    def record(self, entry: AuditEntry, session=None) -> str:
        self.attempts += 1
        raise PyMongoError("audit_logs unavailable")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def member():
    """Regular member actor."""
    return UserContext(user_id="665f1c2e9b1e8a3d4c5b6a01", name="Kossi Adjovi", role=MemberRole.MEMBER,
                       email="kossi.adjovi@example.bj")


@pytest.fixture
def other_member():
    return UserContext(user_id="665f1c2e9b1e8a3d4c5b6a02", name="Afi Houngbo", role=MemberRole.MEMBER)


@pytest.fixture
def controller():
    return UserContext(user_id="665f1c2e9b1e8a3d4c5b6a03", name="Rodrigue Dossou", role=MemberRole.CONTROLLER)


@pytest.fixture
def administrator():
    return UserContext(user_id="665f1c2e9b1e8a3d4c5b6a04", name="Mariam Sanni", role=MemberRole.ADMINISTRATOR)


def make_family_data(relation, first_name="Awa", **overrides) -> FamilyMemberData:
    data = {
        "first_name": first_name,
        "last_name": "Adjovi",
        "npi": "1234567890",
        "birth_certificate_ref": "AN-2015-0042",
        "date_of_birth": date(2015, 4, 2),
        "relation": relation,
    }
    data.update(overrides)
    return FamilyMemberData(**data)


def make_family_member(owner_id: str, relation, slot: Optional[str] = None, first_name="Awa",
                       **overrides) -> FamilyMember:
    data = {
        "owner_id": owner_id,
        "first_name": first_name,
        "last_name": "Adjovi",
        "npi": "1234567890",
        "birth_certificate_ref": "AN-2015-0042",
        "date_of_birth": date(2015, 4, 2),
        "relation": relation,
        "slot": slot,
    }
    data.update(overrides)
    return FamilyMember(**data)


@pytest.fixture
def mongo():
    return FakeMongo()


@pytest.fixture
def family_store():
    return InMemoryFamilyStore()


@pytest.fixture
def request_store():
    return InMemoryRequestStore()


@pytest.fixture
def catalog():
    return InMemoryCatalog(default_services())


@pytest.fixture
def audit_recorder():
    return InMemoryAuditRecorder()


@pytest.fixture
def benefit_service(mongo, request_store, family_store, catalog, audit_recorder, now):
    return BenefitRequestService(
        mongo, request_store, family_store, catalog, audit_recorder, clock=lambda: now
    )


@pytest.fixture
def family_service(mongo, family_store, audit_recorder, now):
    return FamilyMemberService(mongo, family_store, audit_recorder, clock=lambda: now)


@pytest.fixture
def catalog_service(mongo, catalog, audit_recorder, now):
    return ServiceCatalogService(mongo, catalog, audit_recorder, clock=lambda: now)


@pytest.fixture
def failing_audit():
    return FailingAuditRecorder()
