# SPDX-License-Identifier: Apache-2.0

"""
Tests for benefit request submission, transitions and visibility.
"""

import pytest
from datetime import date

from conftest import NOW, make_family_member
from domain.catalog import StaticServiceCatalog, default_services
from domain.lifecycle import (
    TRANSITIONS, accept_request, apply_transition, available_actions, can_view_request,
    find_transition, reject_request, resolve_beneficiary, submit_request, validate_payment,
    validate_request, visible_requests
)
from domain.results import DomainErrorCode
from models.entities import BankTransferPayment, ChequePayment, MobileMoneyPayment
from models.enums import BenefitType, LifecycleAction, MemberRole, Relation, RequestStatus
from models.requests import SubmitBenefitRequest


def submission(benefit_type=BenefitType.BIRTH_ALLOWANCE, **overrides) -> SubmitBenefitRequest:
    data = {
        "benefit_type": benefit_type,
        "event_date": date(2025, 3, 1),
        "payment": ChequePayment(),
    }
    data.update(overrides)
    return SubmitBenefitRequest(**data)


def submit(member, **overrides):
    result = submit_request(submission(**overrides), member, [], StaticServiceCatalog(), NOW)
    assert result.success, result.error_code
    return result.entity


class TestTransitionTable:
    """Test the state machine definition."""

    def test_four_transitions(self):
        assert len(TRANSITIONS) == 4

    def test_lookup(self):
        transition = find_transition("pending", "accept", "controller")
        assert transition.target == RequestStatus.ACCEPTED
        assert find_transition(RequestStatus.PENDING, LifecycleAction.ACCEPT, MemberRole.ADMINISTRATOR) is None
        assert find_transition(RequestStatus.VALIDATED, LifecycleAction.REJECT, MemberRole.ADMINISTRATOR) is None

    def test_only_rejections_require_comment(self):
        for transition in TRANSITIONS:
            assert transition.requires_comment == (transition.action == LifecycleAction.REJECT)


class TestSubmitRequest:
    """Test request submission."""

    def test_allowance_gets_fixed_amount(self, member):
        result = submit_request(
            submission(amount=999999), member, [], StaticServiceCatalog(), NOW
        )

        assert result.success
        request = result.entity
        assert request.status == "pending"
        assert request.amount == 25000
        assert request.member_id == member.user_id
        assert request.beneficiary.id == member.user_id
        assert request.beneficiary.relation == "member"
        assert request.submitted_at == NOW
        assert result.audit_entry.action == "Nouvelle demande"
        assert result.audit_entry.entity_id == request.id

    def test_loan_with_amount(self, member):
        request = submit(member, benefit_type=BenefitType.SOCIAL_LOAN, amount=200000, event_date=None)

        assert request.amount == 200000
        assert request.event_date is None

    def test_loan_drops_event_date(self, member):
        request = submit(member, benefit_type=BenefitType.ECONOMIC_LOAN, amount=1000000)

        assert request.event_date is None

    def test_family_beneficiary(self, member):
        child = make_family_member(member.user_id, Relation.CHILD, slot="child:1")

        result = submit_request(
            submission(beneficiary_id=child.id), member, [child], StaticServiceCatalog(), NOW
        )

        assert result.success
        assert result.entity.beneficiary.id == child.id
        assert result.entity.beneficiary.name == "Awa Adjovi"
        assert result.entity.beneficiary.relation == "child"

    def test_unknown_beneficiary(self, member):
        result = submit_request(
            submission(beneficiary_id="665f1c2e9b1e8a3d4c5b6aff"), member, [], StaticServiceCatalog(), NOW
        )

        assert result.error_code == DomainErrorCode.VALIDATION_FAILED

    @pytest.mark.parametrize("role_fixture", ["controller", "administrator"])
    def test_only_members_submit(self, request, role_fixture):
        actor = request.getfixturevalue(role_fixture)

        result = submit_request(submission(), actor, [], StaticServiceCatalog(), NOW)

        assert result.error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_inactive_service(self, member):
        services = default_services()
        services[1].is_active = False

        result = submit_request(submission(), member, [], StaticServiceCatalog(services), NOW)

        assert result.error_code == DomainErrorCode.SERVICE_UNAVAILABLE

    def test_loan_without_amount(self, member):
        result = submit_request(
            submission(BenefitType.SOCIAL_LOAN), member, [], StaticServiceCatalog(), NOW
        )

        assert result.error_code == DomainErrorCode.MISSING_AMOUNT

    def test_loan_above_ceiling(self, member):
        result = submit_request(
            submission(BenefitType.SOCIAL_LOAN, amount=500001), member, [], StaticServiceCatalog(), NOW
        )

        assert result.error_code == DomainErrorCode.AMOUNT_OUT_OF_RANGE

    def test_stale_event(self, member):
        result = submit_request(
            submission(event_date=date(2024, 6, 15)), member, [], StaticServiceCatalog(), NOW
        )

        assert result.error_code == DomainErrorCode.EVENT_NOT_CLAIMABLE

    def test_allowance_without_event(self, member):
        result = submit_request(
            submission(event_date=None), member, [], StaticServiceCatalog(), NOW
        )

        assert result.error_code == DomainErrorCode.EVENT_NOT_CLAIMABLE

    def test_incomplete_mobile_money(self, member):
        result = submit_request(
            submission(payment=MobileMoneyPayment(subscription_number="97000000")),
            member, [], StaticServiceCatalog(), NOW
        )

        assert result.error_code == DomainErrorCode.INVALID_PAYMENT
        assert len(result.validation_errors) == 1


class TestValidatePayment:
    """Test per-method payment checks."""

    def test_cheque_needs_nothing(self):
        assert validate_payment(ChequePayment()).is_valid

    def test_bank_transfer_fields(self):
        assert not validate_payment(BankTransferPayment(account_number="BJ01")).is_valid
        assert validate_payment(BankTransferPayment(account_number="BJ01", account_name="Kossi")).is_valid

    def test_blank_mobile_money_fields(self):
        result = validate_payment(MobileMoneyPayment(subscription_number="  ", subscriber_name=""))
        assert len(result.errors) == 2


class TestResolveBeneficiary:
    """Test beneficiary resolution."""

    def test_own_id_is_member(self, member):
        beneficiary = resolve_beneficiary(member, member.user_id, [])
        assert beneficiary.relation == "member"
        assert beneficiary.name == member.name

    def test_other_owner_record_not_found(self, member, other_member):
        record = make_family_member(other_member.user_id, Relation.CHILD, slot="child:1")
        assert resolve_beneficiary(member, record.id, []) is None


class TestApplyTransition:
    """Test the lifecycle transitions."""

    def test_controller_accepts(self, member, controller):
        request = submit(member)

        result = accept_request(request, controller, now=NOW)

        assert result.success
        updated = result.entity
        assert updated.status == "accepted"
        assert updated.controller_id == controller.user_id
        assert updated.controller_name == controller.name
        assert updated.processed_at == NOW
        assert updated.version == request.version + 1
        assert request.status == "pending"
        assert result.audit_entry.action == "Demande acceptée"
        assert result.audit_entry.severity == "success"

    def test_controller_rejects_with_comment(self, member, controller):
        request = submit(member)

        result = reject_request(request, controller, comment="  Pièce manquante ", now=NOW)

        assert result.success
        assert result.entity.status == "rejected"
        assert result.entity.comment == "Pièce manquante"
        assert result.audit_entry.severity == "warning"
        assert "Pièce manquante" in result.audit_entry.details

    @pytest.mark.parametrize("comment", [None, "", "   "])
    def test_rejection_requires_comment(self, member, controller, comment):
        result = reject_request(submit(member), controller, comment=comment, now=NOW)

        assert result.error_code == DomainErrorCode.COMMENT_REQUIRED

    def test_administrator_validates(self, member, controller, administrator):
        accepted = accept_request(submit(member), controller, now=NOW).entity

        result = validate_request(accepted, administrator, comment="Conforme", now=NOW)

        assert result.success
        assert result.entity.status == "validated"
        assert result.entity.administrator_id == administrator.user_id
        assert result.entity.decided_at == NOW
        assert result.entity.controller_id == controller.user_id
        assert result.entity.comment == "Conforme"
        assert result.entity.is_terminal()

    def test_administrator_rejects_accepted(self, member, controller, administrator):
        accepted = accept_request(submit(member), controller, comment="OK", now=NOW).entity

        result = reject_request(accepted, administrator, comment="Budget épuisé", now=NOW)

        assert result.success
        assert result.entity.status == "rejected"
        assert result.entity.decided_at == NOW
        assert result.entity.comment == "Budget épuisé"

    def test_administrator_cannot_validate_pending(self, member, administrator):
        result = validate_request(submit(member), administrator, now=NOW)

        assert result.error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_controller_cannot_validate(self, member, controller):
        accepted = accept_request(submit(member), controller, now=NOW).entity

        assert validate_request(accepted, controller, now=NOW).error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_member_cannot_accept(self, member):
        assert accept_request(submit(member), member, now=NOW).error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_repeated_accept_is_illegal(self, member, controller):
        accepted = accept_request(submit(member), controller, now=NOW).entity

        assert accept_request(accepted, controller, now=NOW).error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_terminal_states_accept_nothing(self, member, controller, administrator):
        rejected = reject_request(submit(member), controller, comment="Non", now=NOW).entity

        for actor in (member, controller, administrator):
            for action in (LifecycleAction.ACCEPT, LifecycleAction.REJECT, LifecycleAction.VALIDATE):
                result = apply_transition(rejected, action, actor, comment="x", now=NOW)
                assert result.error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_submit_is_not_a_transition(self, member, controller):
        result = apply_transition(submit(member), LifecycleAction.SUBMIT, controller, now=NOW)

        assert result.error_code == DomainErrorCode.ILLEGAL_TRANSITION

    def test_available_actions(self, member, controller, administrator):
        request = submit(member)

        assert available_actions(request, controller) == [LifecycleAction.ACCEPT, LifecycleAction.REJECT]
        assert available_actions(request, administrator) == []
        assert available_actions(request, member) == []


class TestVisibility:
    """Test role-scoped request views."""

    def test_member_sees_own_requests(self, member, other_member):
        own = submit(member)
        other = submit(other_member)

        assert visible_requests([own, other], member) == [own]

    def test_controller_sees_everything(self, member, other_member, controller):
        requests = [submit(member), submit(other_member)]

        assert visible_requests(requests, controller) == requests

    def test_administrator_sees_accepted_and_own_decisions(self, member, controller, administrator):
        pending = submit(member)
        accepted = accept_request(submit(member), controller, now=NOW).entity
        validated = validate_request(
            accept_request(submit(member), controller, now=NOW).entity, administrator, now=NOW
        ).entity
        rejected_by_controller = reject_request(submit(member), controller, comment="Non", now=NOW).entity

        assert not can_view_request(pending, administrator)
        assert can_view_request(accepted, administrator)
        assert can_view_request(validated, administrator)
        assert not can_view_request(rejected_by_controller, administrator)
