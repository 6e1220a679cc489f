# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the MongoDB service layer and the stores built on it.

The pymongo collection and client are mocked; assertions target the exact
queries and updates sent to MongoDB.
"""

import pytest
from datetime import date
from unittest.mock import MagicMock, Mock

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from domain.catalog import StaticServiceCatalog, default_services
from domain.lifecycle import accept_request, submit_request
from models.entities import ChequePayment, UserContext
from models.enums import BenefitType, Relation
from models.requests import RequestFilters, SubmitBenefitRequest
from services.mongodb import (
    FAMILY_COLLECTION, REQUESTS_COLLECTION, SERVICES_COLLECTION, MongoDBService
)
from services.stores import (
    FamilyMemberStore, MongoServiceCatalog, RequestStore, SlotConflictError, visibility_query
)

from conftest import NOW, make_family_member


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.update_one.return_value = Mock(matched_count=1)
    collection.delete_one.return_value = Mock(deleted_count=1)
    return collection


@pytest.fixture
def mongodb_service(collection):
    """MongoDB service whose collections are all the mocked one."""
    service = MongoDBService("mongodb://localhost:27017/musaib_test", "musaib_test", use_transactions=False)
    service.get_collection = Mock(return_value=collection)
    return service


@pytest.fixture
def pending_request(member):
    data = SubmitBenefitRequest(
        benefit_type=BenefitType.MARRIAGE_ALLOWANCE, event_date=date(2025, 5, 10), payment=ChequePayment()
    )
    return submit_request(data, member, [], StaticServiceCatalog(), NOW).entity


def service_document(benefit_type):
    service = next(s for s in default_services() if s.benefit_type == BenefitType(benefit_type).value)
    return service.to_document()


class TestTransactions:
    """Test session handling of run_in_transaction."""

    def test_disabled_runs_without_session(self, mongodb_service):
        callback = Mock(return_value="done")

        assert mongodb_service.run_in_transaction(callback) == "done"
        callback.assert_called_once_with(None)

    def test_enabled_passes_session(self):
        service = MongoDBService("mongodb://localhost:27017/musaib_test", "musaib_test", use_transactions=True)
        client = MagicMock()
        session = client.start_session.return_value.__enter__.return_value
        session.with_transaction.side_effect = lambda callback: callback(session)
        service._client = client
        callback = Mock(return_value="done")

        assert service.run_in_transaction(callback) == "done"
        callback.assert_called_once_with(session)
        session.with_transaction.assert_called_once_with(callback)

    def test_callback_error_propagates(self, mongodb_service):
        with pytest.raises(RuntimeError):
            mongodb_service.run_in_transaction(Mock(side_effect=RuntimeError("boom")))


class TestRequestStore:
    """Test optimistic transitions and listings."""

    def test_transition_filters_on_status_and_version(self, mongodb_service, collection,
                                                     pending_request, controller):
        accepted = accept_request(pending_request, controller, now=NOW).entity
        session = Mock()

        assert RequestStore(mongodb_service).apply_transition(accepted, "pending", 0, session)

        query, update = collection.update_one.call_args.args
        assert query == {"_id": ObjectId(pending_request.id), "status": "pending", "version": 0}
        assert update["$set"]["status"] == "accepted"
        assert update["$set"]["version"] == 1
        assert update["$set"]["controllerId"] == controller.user_id
        assert "_id" not in update["$set"]
        assert "createdAt" not in update["$set"]
        assert collection.update_one.call_args.kwargs["session"] is session
        mongodb_service.get_collection.assert_called_with(REQUESTS_COLLECTION)

    def test_stale_transition_reports_false(self, mongodb_service, collection, pending_request, controller):
        collection.update_one.return_value = Mock(matched_count=0)
        accepted = accept_request(pending_request, controller, now=NOW).entity

        assert RequestStore(mongodb_service).apply_transition(accepted, "pending", 0) is False

    def test_legacy_status_code_in_filter(self, mongodb_service, collection, pending_request, controller):
        accepted = accept_request(pending_request, controller, now=NOW).entity

        RequestStore(mongodb_service).apply_transition(accepted, "en_attente", 0)

        assert collection.update_one.call_args.args[0]["status"] == "pending"

    def test_delete(self, mongodb_service, collection, pending_request):
        assert RequestStore(mongodb_service).delete(pending_request.id)

        assert collection.delete_one.call_args.args[0] == {"_id": ObjectId(pending_request.id)}

    def test_list_combines_visibility_and_filters(self, mongodb_service, collection, member):
        collection.count_documents.return_value = 0
        collection.find.return_value.sort.return_value.skip.return_value.limit.return_value = []

        result = RequestStore(mongodb_service).list(
            member, RequestFilters(status="pending", search="Kossi (A)"), page=2, page_size=10
        )

        query = collection.count_documents.call_args.args[0]
        assert query["$and"][0] == {"memberId": member.user_id, "status": "pending"}
        assert query["$and"][1]["$or"][0] == {"memberName": {"$regex": r"Kossi\ \(A\)", "$options": "i"}}
        collection.find.return_value.sort.assert_called_once_with("submittedAt", -1)
        collection.find.return_value.sort.return_value.skip.assert_called_once_with(10)
        assert result.total == 0
        assert result.items == []


class TestVisibilityQuery:
    """Test per-role visibility filters."""

    def test_member_sees_own(self, member):
        assert visibility_query(member) == {"memberId": member.user_id}

    def test_controller_sees_all(self, controller):
        assert visibility_query(controller) == {}

    def test_administrator_sees_accepted_and_own_decisions(self, administrator):
        assert visibility_query(administrator) == {"$or": [
            {"status": "accepted"},
            {"administratorId": administrator.user_id},
        ]}

    def test_legacy_role_code(self, member):
        legacy = UserContext(user_id=member.user_id, name=member.name, role="membre")

        assert visibility_query(legacy) == {"memberId": member.user_id}


class TestFamilyMemberStore:
    """Test slot conflicts and writes on the family collection."""

    def test_duplicate_slot_on_insert(self, mongodb_service, collection, member):
        collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key owner_slot_unique")
        record = make_family_member(member.user_id, Relation.SPOUSE_WIFE, slot="spouse")

        with pytest.raises(SlotConflictError):
            FamilyMemberStore(mongodb_service).insert(record)

        mongodb_service.get_collection.assert_called_with(FAMILY_COLLECTION)

    def test_duplicate_slot_on_update(self, mongodb_service, collection, member):
        collection.update_one.side_effect = DuplicateKeyError("E11000 duplicate key owner_slot_unique")
        record = make_family_member(member.user_id, Relation.MOTHER, slot="mother")

        with pytest.raises(SlotConflictError):
            FamilyMemberStore(mongodb_service).update(record)

    def test_insert_keeps_record_id(self, mongodb_service, collection, member):
        record = make_family_member(member.user_id, Relation.CHILD, slot="child:1")
        collection.insert_one.return_value = Mock(inserted_id=ObjectId(record.id))

        assert FamilyMemberStore(mongodb_service).insert(record) == record.id
        document = collection.insert_one.call_args.args[0]
        assert document["_id"] == ObjectId(record.id)
        assert document["ownerId"] == member.user_id
        assert document["slot"] == "child:1"

    def test_update_matches_by_id(self, mongodb_service, collection, member):
        record = make_family_member(member.user_id, Relation.FATHER, slot="father")

        assert FamilyMemberStore(mongodb_service).update(record)

        query, update = collection.update_one.call_args.args
        assert query == {"_id": ObjectId(record.id)}
        assert update["$set"]["relation"] == "father"

    def test_update_of_missing_record(self, mongodb_service, collection, member):
        collection.update_one.return_value = Mock(matched_count=0)
        record = make_family_member(member.user_id, Relation.FATHER, slot="father")

        assert FamilyMemberStore(mongodb_service).update(record) is False

    def test_list_by_owner_in_session(self, mongodb_service, collection, member):
        record = make_family_member(member.user_id, Relation.CHILD, slot="child:1")
        collection.find.return_value.sort.return_value = [record.to_document()]
        session = Mock()

        records = FamilyMemberStore(mongodb_service).list_by_owner(member.user_id, session)

        assert [item.id for item in records] == [record.id]
        collection.find.assert_called_once_with({"ownerId": member.user_id}, session=session)


class TestMongoServiceCatalog:
    """Test the catalog lookups used by the amount policy."""

    def test_fixed_amount(self, mongodb_service, collection):
        collection.find_one.return_value = service_document(BenefitType.BIRTH_ALLOWANCE)
        catalog = MongoServiceCatalog(mongodb_service)

        assert catalog.get_fixed_amount(BenefitType.BIRTH_ALLOWANCE) == 25000
        assert not catalog.is_loan_type(BenefitType.BIRTH_ALLOWANCE)
        collection.find_one.assert_called_with({"benefitType": "birth-allowance"}, session=None)

    def test_loan_has_no_fixed_amount(self, mongodb_service, collection):
        collection.find_one.return_value = service_document(BenefitType.SOCIAL_LOAN)
        catalog = MongoServiceCatalog(mongodb_service)

        assert catalog.is_loan_type(BenefitType.SOCIAL_LOAN)
        with pytest.raises(LookupError):
            catalog.get_fixed_amount(BenefitType.SOCIAL_LOAN)

    def test_missing_service_unavailable(self, mongodb_service, collection):
        collection.find_one.return_value = None
        catalog = MongoServiceCatalog(mongodb_service)

        assert not catalog.is_available(BenefitType.DEATH_ALLOWANCE)
        with pytest.raises(LookupError):
            catalog.is_loan_type(BenefitType.DEATH_ALLOWANCE)

    def test_inactive_service_unavailable(self, mongodb_service, collection):
        document = service_document(BenefitType.DEATH_ALLOWANCE)
        document["isActive"] = False
        collection.find_one.return_value = document

        assert not MongoServiceCatalog(mongodb_service).is_available(BenefitType.DEATH_ALLOWANCE)

    def test_active_only_listing(self, mongodb_service, collection):
        collection.find.return_value.sort.return_value = []

        MongoServiceCatalog(mongodb_service).list(active_only=True)

        collection.find.assert_called_once_with({"isActive": True}, session=None)
        mongodb_service.get_collection.assert_called_with(SERVICES_COLLECTION)

    def test_toggle_sets_only_active_flag(self, mongodb_service, collection, administrator):
        service = default_services()[2].model_copy(update={"is_active": False, "updated_by": administrator.user_id})

        MongoServiceCatalog(mongodb_service).toggle_active(service)

        query, update = collection.update_one.call_args.args
        assert query == {"_id": ObjectId(service.id)}
        assert set(update["$set"]) == {"isActive", "updatedAt", "updatedBy"}
        assert update["$set"]["isActive"] is False


class TestIndexes:
    """Test index definitions."""

    def test_family_slot_index_is_partial(self, mongodb_service, collection):
        mongodb_service.create_indexes()

        slot_calls = [
            call for call in collection.create_index.call_args_list
            if call.kwargs.get("name") == "owner_slot_unique"
        ]
        assert len(slot_calls) == 1
        assert slot_calls[0].args[0] == [("ownerId", 1), ("slot", 1)]
        assert slot_calls[0].kwargs["unique"] is True
        assert slot_calls[0].kwargs["partialFilterExpression"] == {"slot": {"$type": "string"}}
