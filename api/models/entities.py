# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the MuSAIB benefits platform.
"""

import re
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, BeforeValidator, Field, field_validator, model_validator, ConfigDict
from pydantic.alias_generators import to_camel
from .base import BaseEntity, ValueModel, generate_object_id, utc_now
from .enums import (
    AuditSeverity,
    BenefitType,
    MemberRole,
    PaymentMethod,
    Relation,
    RequestStatus,
    ServiceKind,
)


MEMBER_RELATION = "member"


class DocumentRef(ValueModel):
    """Reference to an uploaded supporting document."""

    name: str = Field(..., min_length=1, max_length=255, description="Original file name")
    url: str = Field(..., min_length=1, description="Storage location")
    size: Optional[int] = Field(None, ge=0, description="Size in bytes")
    uploaded_at: Optional[datetime] = Field(None, description="Upload timestamp")


class Member(BaseEntity):
    """Mutuelle member account as provisioned by the identity provider."""

    full_name: str = Field(..., min_length=1, max_length=200, description="Display name")
    email: str = Field(..., description="Email address")
    role: MemberRole = Field(default=MemberRole.MEMBER, description="Portal role")
    phone: Optional[str] = Field(None, max_length=30, description="Phone number")
    address: Optional[str] = Field(None, max_length=500, description="Postal address")
    service: Optional[str] = Field(None, max_length=200, description="Employer department")
    adhesion_number: Optional[str] = Field(None, description="Membership number")
    employee_number: Optional[str] = Field(None, description="Employee registration number")
    adhesion_date: Optional[date] = Field(None, description="Date the member joined")
    is_active: bool = Field(default=True, description="Whether the account is active")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        if not v.strip():
            raise ValueError('Member name cannot be empty')
        return v.strip()

    def to_context(self, **request_info: Any) -> "UserContext":
        """Build the actor context used by the domain for this member."""
        return UserContext(
            user_id=self.id,
            name=self.full_name,
            role=self.role,
            email=self.email,
            **request_info
        )


class FamilyMember(BaseEntity):
    """Relative registered by a member as a potential beneficiary."""

    owner_id: str = Field(..., description="ID of the member owning this record")
    first_name: str = Field(..., min_length=1, max_length=100, description="First name(s)")
    last_name: str = Field(..., min_length=1, max_length=100, description="Last name")
    npi: str = Field(..., description="National personal identifier")
    birth_certificate_ref: str = Field(..., min_length=1, max_length=100, description="Birth certificate number")
    date_of_birth: date = Field(..., description="Date of birth")
    relation: Relation = Field(..., description="Relation to the owning member")
    slot: Optional[str] = Field(None, description="Occupancy slot within the owner's family")
    justification_document: Optional[DocumentRef] = Field(None, description="Supporting document")

    @field_validator('first_name', 'last_name', 'birth_certificate_ref')
    @classmethod
    def validate_text(cls, v):
        """Strip surrounding whitespace and reject blank values."""
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()

    @field_validator('npi')
    @classmethod
    def validate_npi(cls, v):
        """NPI is a run of at least ten digits."""
        v = v.strip()
        if not re.fullmatch(r'\d{10,}', v):
            raise ValueError('NPI must contain at least 10 digits')
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class MobileMoneyPayment(ValueModel):
    method: Literal["mobile_money"] = "mobile_money"
    subscription_number: Optional[str] = Field(None, description="Mobile money number")
    subscriber_name: Optional[str] = Field(None, description="Name on the mobile money account")


class BankTransferPayment(ValueModel):
    method: Literal["bank_transfer"] = "bank_transfer"
    account_number: Optional[str] = Field(None, description="Bank account number")
    account_name: Optional[str] = Field(None, description="Account holder name")


class ChequePayment(ValueModel):
    method: Literal["cheque"] = "cheque"


def _normalize_payment_method(value: Any) -> Any:
    # Legacy method codes select the same payment model
    if isinstance(value, dict) and "method" in value:
        return {**value, "method": PaymentMethod(value["method"]).value}
    return value


PaymentInfo = Annotated[
    Union[MobileMoneyPayment, BankTransferPayment, ChequePayment],
    Field(discriminator="method"),
    BeforeValidator(_normalize_payment_method)
]


class Beneficiary(ValueModel):
    """Person a benefit request is made for: the member or one of their relatives."""

    id: str = Field(..., description="Member ID or family member ID")
    name: str = Field(..., min_length=1, description="Display name")
    relation: str = Field(default=MEMBER_RELATION, description="'member' or a family relation")

    @field_validator('relation')
    @classmethod
    def validate_relation(cls, v):
        if v == MEMBER_RELATION:
            return v
        return Relation(v).value


class BenefitService(BaseEntity):
    """Service catalog entry describing one claimable benefit."""

    benefit_type: BenefitType = Field(..., description="Benefit type served by this entry")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    description: str = Field(default="", max_length=2000, description="Description shown to members")
    kind: ServiceKind = Field(..., description="Allocation or loan")
    default_amount: Optional[int] = Field(None, description="Fixed amount for allocations")
    conditions: List[str] = Field(default_factory=list, description="Eligibility conditions")
    is_active: bool = Field(default=True, description="Whether members can request it")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Service name cannot be empty')
        return v.strip()

    @field_validator('conditions')
    @classmethod
    def validate_conditions(cls, v):
        """Drop blank conditions."""
        return [condition.strip() for condition in v if condition and condition.strip()]

    @model_validator(mode='after')
    def validate_kind_and_amount(self):
        """Allocations carry a positive fixed amount; loans carry none."""
        benefit_type = BenefitType(self.benefit_type)
        expected_kind = ServiceKind.LOAN if benefit_type.is_loan else ServiceKind.ALLOCATION
        if ServiceKind(self.kind) != expected_kind:
            raise ValueError(f'{benefit_type.value} must be configured as {expected_kind.value}')

        if expected_kind == ServiceKind.ALLOCATION:
            if self.default_amount is None or self.default_amount <= 0:
                raise ValueError('Allocations require a positive default amount')
        elif self.default_amount is not None:
            raise ValueError('Loans cannot carry a default amount')

        return self


class BenefitRequest(BaseEntity):
    """A member's claim for a benefit, moving through the review lifecycle."""

    member_id: str = Field(..., description="ID of the submitting member")
    member_name: str = Field(..., description="Display name of the submitting member")
    benefit_type: BenefitType = Field(..., description="Requested benefit")
    beneficiary: Beneficiary = Field(..., description="Person the benefit is for")
    amount: int = Field(..., gt=0, description="Resolved amount in FCFA")
    event_date: Optional[date] = Field(None, description="Date of the life event (allowances)")
    payment: PaymentInfo = Field(..., description="Payment details")
    justification_document: Optional[DocumentRef] = Field(None, description="Supporting document")
    status: RequestStatus = Field(default=RequestStatus.PENDING, description="Workflow status")
    submitted_at: datetime = Field(default_factory=utc_now, description="Submission timestamp")
    controller_id: Optional[str] = Field(None, description="Controller who processed the request")
    controller_name: Optional[str] = Field(None, description="Controller display name")
    processed_at: Optional[datetime] = Field(None, description="Controller decision timestamp")
    administrator_id: Optional[str] = Field(None, description="Administrator who decided")
    administrator_name: Optional[str] = Field(None, description="Administrator display name")
    decided_at: Optional[datetime] = Field(None, description="Administrator decision timestamp")
    comment: Optional[str] = Field(None, max_length=1000, description="Latest reviewer comment")
    version: int = Field(default=0, ge=0, description="Optimistic concurrency counter")

    @model_validator(mode='after')
    def validate_status_fields(self):
        """Validate status-dependent fields."""
        status = RequestStatus(self.status)

        if status == RequestStatus.REJECTED and not (self.comment and self.comment.strip()):
            raise ValueError('A comment is required when status is rejected')

        if status in (RequestStatus.ACCEPTED, RequestStatus.VALIDATED) and not self.controller_id:
            raise ValueError('controller_id is required once a request is accepted')

        if status == RequestStatus.VALIDATED and not self.administrator_id:
            raise ValueError('administrator_id is required when status is validated')

        if BenefitType(self.benefit_type).is_allowance and self.event_date is None:
            raise ValueError('Allowances require an event date')

        return self

    def is_terminal(self) -> bool:
        """Rejected and validated requests accept no further action."""
        return RequestStatus(self.status).is_terminal


class AuditEntry(ValueModel):
    """Immutable audit trail entry."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
        frozen=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    timestamp: datetime = Field(default_factory=utc_now, description="Action timestamp")
    user_id: Optional[str] = Field(None, description="Actor ID (None for system actions)")
    user_name: str = Field(default="Système", description="Actor display name")
    action: str = Field(..., min_length=1, description="Action label")
    details: str = Field(default="", description="Human-readable details")
    severity: AuditSeverity = Field(default=AuditSeverity.INFO, description="Severity")
    module: str = Field(..., min_length=1, description="Functional module")
    entity: Optional[str] = Field(None, description="Entity type")
    entity_id: Optional[str] = Field(None, description="Entity identifier")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")
    span_id: Optional[str] = Field(None, description="OpenTelemetry span ID")


class UserContext(BaseModel):
    """Authenticated actor for request processing."""

    user_id: str = Field(..., description="Authenticated member ID")
    name: str = Field(..., description="Display name")
    role: MemberRole = Field(..., description="Portal role")
    email: Optional[str] = Field(None, description="Email address")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, *roles: MemberRole) -> bool:
        """Check whether the actor holds one of the given roles."""
        return MemberRole(self.role) in roles

    @property
    def is_member(self) -> bool:
        return self.has_role(MemberRole.MEMBER)

    @property
    def is_controller(self) -> bool:
        return self.has_role(MemberRole.CONTROLLER)

    @property
    def is_administrator(self) -> bool:
        return self.has_role(MemberRole.ADMINISTRATOR)
