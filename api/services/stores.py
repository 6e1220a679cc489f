# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB-backed stores for family members, benefit requests and the service catalog.
"""

import logging
import re
from typing import List, Optional

from pymongo import ASCENDING
from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError

from domain.catalog import ServiceCatalog
from models.entities import BenefitRequest, BenefitService, FamilyMember, UserContext
from models.enums import BenefitType, MemberRole, RequestStatus, ServiceKind
from models.requests import RequestFilters
from .mongodb import (
    FAMILY_COLLECTION, REQUESTS_COLLECTION, SERVICES_COLLECTION,
    MongoDBService, PaginationResult, to_object_id
)

logger = logging.getLogger(__name__)


class SlotConflictError(Exception):
    """The owner already has a record in the requested occupancy slot."""


class FamilyMemberStore:
    """Family member persistence."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    def list_by_owner(self, owner_id: str, session: Optional[ClientSession] = None) -> List[FamilyMember]:
        documents = self.mongodb.find(
            FAMILY_COLLECTION, {"ownerId": owner_id},
            sort_by="createdAt", sort_order=ASCENDING, session=session
        )
        return [FamilyMember.from_document(doc) for doc in documents]

    def get(self, member_id: str, session: Optional[ClientSession] = None) -> Optional[FamilyMember]:
        document = self.mongodb.find_by_id(FAMILY_COLLECTION, member_id, session=session)
        return FamilyMember.from_document(document) if document else None

    def insert(self, record: FamilyMember, session: Optional[ClientSession] = None) -> str:
        try:
            return self.mongodb.insert(FAMILY_COLLECTION, record.to_document(), session=session)
        except DuplicateKeyError as e:
            logger.warning("Family slot already taken", extra={
                "owner_id": record.owner_id, "slot": record.slot
            })
            raise SlotConflictError(record.slot) from e

    def update(self, record: FamilyMember, session: Optional[ClientSession] = None) -> bool:
        document = record.to_document()
        object_id = document.pop("_id")
        document.pop("createdAt", None)
        try:
            return self.mongodb.update_one(FAMILY_COLLECTION, {"_id": object_id}, document, session=session)
        except DuplicateKeyError as e:
            raise SlotConflictError(record.slot) from e

    def delete(self, member_id: str, session: Optional[ClientSession] = None) -> bool:
        return self.mongodb.delete_by_id(FAMILY_COLLECTION, member_id, session=session)


class RequestStore:
    """Benefit request persistence with optimistic transitions."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    def get(self, request_id: str, session: Optional[ClientSession] = None) -> Optional[BenefitRequest]:
        document = self.mongodb.find_by_id(REQUESTS_COLLECTION, request_id, session=session)
        return BenefitRequest.from_document(document) if document else None

    def create(self, request: BenefitRequest, session: Optional[ClientSession] = None) -> str:
        return self.mongodb.insert(REQUESTS_COLLECTION, request.to_document(), session=session)

    def delete(self, request_id: str, session: Optional[ClientSession] = None) -> bool:
        return self.mongodb.delete_by_id(REQUESTS_COLLECTION, request_id, session=session)

    def apply_transition(
        self,
        updated: BenefitRequest,
        expected_status: RequestStatus,
        expected_version: int,
        session: Optional[ClientSession] = None
    ) -> bool:
        """
        Persist a transitioned request if nobody changed it since it was read.

        Returns False when the stored status or version no longer match.
        """
        document = updated.to_document()
        object_id = document.pop("_id")
        document.pop("createdAt", None)
        query = {
            "_id": object_id,
            "status": RequestStatus(expected_status).value,
            "version": expected_version,
        }
        return self.mongodb.update_one(REQUESTS_COLLECTION, query, document, session=session)

    def list(self, actor: UserContext, filters: Optional[RequestFilters] = None,
             page: int = 1, page_size: int = 20) -> PaginationResult:
        """Paginated requests visible to the actor, newest first."""
        query = visibility_query(actor)
        filters = filters or RequestFilters()

        if filters.status:
            query["status"] = RequestStatus(filters.status).value
        if filters.benefit_type:
            query["benefitType"] = BenefitType(filters.benefit_type).value
        if filters.search:
            pattern = {"$regex": re.escape(filters.search), "$options": "i"}
            query = {"$and": [query, {"$or": [{"memberName": pattern}, {"beneficiary.name": pattern}]}]}

        result = self.mongodb.paginate(
            REQUESTS_COLLECTION, query, page=page, page_size=page_size, sort_by="submittedAt"
        )
        result.items = [BenefitRequest.from_document(doc) for doc in result.items]
        return result


def visibility_query(actor: UserContext) -> dict:
    """MongoDB filter matching the requests an actor may see."""
    role = MemberRole(actor.role)
    if role == MemberRole.MEMBER:
        return {"memberId": actor.user_id}
    if role == MemberRole.CONTROLLER:
        return {}
    if role == MemberRole.ADMINISTRATOR:
        return {"$or": [
            {"status": RequestStatus.ACCEPTED.value},
            {"administratorId": actor.user_id},
        ]}
    raise ValueError(f"Unhandled role: {role}")


class MongoServiceCatalog(ServiceCatalog):
    """Service catalog stored in the `services` collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    def get_by_type(self, benefit_type) -> Optional[BenefitService]:
        document = self.mongodb.find_one(
            SERVICES_COLLECTION, {"benefitType": BenefitType(benefit_type).value}
        )
        return BenefitService.from_document(document) if document else None

    def _require(self, benefit_type) -> BenefitService:
        service = self.get_by_type(benefit_type)
        if service is None:
            raise LookupError(f"No service configured for {BenefitType(benefit_type).value}")
        return service

    def get_fixed_amount(self, benefit_type) -> int:
        service = self._require(benefit_type)
        if service.default_amount is None:
            raise LookupError(f"{service.benefit_type} has no fixed amount")
        return service.default_amount

    def is_loan_type(self, benefit_type) -> bool:
        return ServiceKind(self._require(benefit_type).kind) == ServiceKind.LOAN

    def is_available(self, benefit_type) -> bool:
        service = self.get_by_type(benefit_type)
        return service is not None and service.is_active

    def get(self, service_id: str) -> Optional[BenefitService]:
        document = self.mongodb.find_by_id(SERVICES_COLLECTION, service_id)
        return BenefitService.from_document(document) if document else None

    def list(self, active_only: bool = False) -> List[BenefitService]:
        query = {"isActive": True} if active_only else {}
        documents = self.mongodb.find(SERVICES_COLLECTION, query, sort_by="name", sort_order=ASCENDING)
        return [BenefitService.from_document(doc) for doc in documents]

    def create(self, service: BenefitService, session: Optional[ClientSession] = None) -> str:
        return self.mongodb.insert(SERVICES_COLLECTION, service.to_document(), session=session)

    def delete(self, service_id: str, session: Optional[ClientSession] = None) -> bool:
        return self.mongodb.delete_by_id(SERVICES_COLLECTION, service_id, session=session)

    def update(self, service: BenefitService, session: Optional[ClientSession] = None) -> bool:
        document = service.to_document()
        object_id = document.pop("_id")
        document.pop("createdAt", None)
        return self.mongodb.update_one(SERVICES_COLLECTION, {"_id": object_id}, document, session=session)

    def toggle_active(self, service: BenefitService, session: Optional[ClientSession] = None) -> bool:
        """Persist the active flag of an already toggled entry."""
        return self.mongodb.update_one(
            SERVICES_COLLECTION,
            {"_id": to_object_id(service.id)},
            {"isActive": service.is_active, "updatedAt": service.updated_at, "updatedBy": service.updated_by},
            session=session
        )
