# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the MuSAIB benefits platform.

Stored documents written by the legacy portal use French codes
('naissance', 'en_attente', 'epouse', ...). Each enum accepts those codes
as aliases so legacy records load without a migration.
"""

from enum import Enum


class MemberRole(str, Enum):
    """Portal role carried by the authenticated actor."""
    MEMBER = "member"
    CONTROLLER = "controller"
    ADMINISTRATOR = "administrator"

    @classmethod
    def _missing_(cls, value):
        return _lookup_alias(cls, value, {
            "membre": "member",
            "controleur": "controller",
            "administrateur": "administrator",
        })


class Relation(str, Enum):
    """Family relation of a registered family member to its owner."""
    SPOUSE_HUSBAND = "spouse-husband"
    SPOUSE_WIFE = "spouse-wife"
    CHILD = "child"
    FATHER = "father"
    MOTHER = "mother"
    STEP_FATHER = "step-father"
    STEP_MOTHER = "step-mother"

    @classmethod
    def _missing_(cls, value):
        return _lookup_alias(cls, value, {
            "epoux": "spouse-husband",
            "epouse": "spouse-wife",
            "enfant": "child",
            "pere": "father",
            "mere": "mother",
            "beau_pere": "step-father",
            "belle_mere": "step-mother",
        })


class CardinalityClass(str, Enum):
    """Group of relations sharing one occupancy cap."""
    SPOUSE = "spouse"
    FATHER = "father"
    MOTHER = "mother"
    STEP_FATHER = "step-father"
    STEP_MOTHER = "step-mother"
    CHILD = "child"


class BenefitType(str, Enum):
    """Benefit a member can claim."""
    MARRIAGE_ALLOWANCE = "marriage-allowance"
    BIRTH_ALLOWANCE = "birth-allowance"
    DEATH_ALLOWANCE = "death-allowance"
    SOCIAL_LOAN = "social-loan"
    ECONOMIC_LOAN = "economic-loan"

    @property
    def is_loan(self) -> bool:
        """Loans carry a member-chosen amount and no life event."""
        return self in (BenefitType.SOCIAL_LOAN, BenefitType.ECONOMIC_LOAN)

    @property
    def is_allowance(self) -> bool:
        return not self.is_loan

    @classmethod
    def _missing_(cls, value):
        return _lookup_alias(cls, value, {
            "mariage": "marriage-allowance",
            "naissance": "birth-allowance",
            "deces": "death-allowance",
            "pret_social": "social-loan",
            "pret_economique": "economic-loan",
        })


class ServiceKind(str, Enum):
    """Kind of a service catalog entry."""
    ALLOCATION = "allocation"
    LOAN = "loan"

    @classmethod
    def _missing_(cls, value):
        return _lookup_alias(cls, value, {"pret": "loan"})


class RequestStatus(str, Enum):
    """Benefit request workflow status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    VALIDATED = "validated"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.REJECTED, RequestStatus.VALIDATED)

    @classmethod
    def _missing_(cls, value):
        return _lookup_alias(cls, value, {
            "en_attente": "pending",
            "acceptee": "accepted",
            "rejetee": "rejected",
            "validee": "validated",
        })


class LifecycleAction(str, Enum):
    """Actions that move a benefit request through its lifecycle."""
    SUBMIT = "submit"
    ACCEPT = "accept"
    REJECT = "reject"
    VALIDATE = "validate"


class PaymentMethod(str, Enum):
    """Payment method chosen by the member."""
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"

    @classmethod
    def _missing_(cls, value):
        return _lookup_alias(cls, value, {"virement_bancaire": "bank_transfer"})


class AuditSeverity(str, Enum):
    """Severity classification of an audit entry."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def _lookup_alias(enum_cls, value, aliases):
    if isinstance(value, str):
        canonical = aliases.get(value.strip().lower())
        if canonical is not None:
            return enum_cls(canonical)
    return None
