# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

import re
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from .entities import DocumentRef, PaymentInfo
from .enums import AuditSeverity, BenefitType, Relation, RequestStatus, ServiceKind


class ApiPayload(BaseModel):
    """Base for JSON bodies; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
        str_strip_whitespace=True
    )


class SubmitBenefitRequest(ApiPayload):
    """Request model for submitting a benefit request."""

    benefit_type: BenefitType = Field(..., description="Requested benefit")
    beneficiary_id: Optional[str] = Field(None, description="Family member ID; omitted for the member")
    amount: Optional[int] = Field(None, description="Requested amount (loans only)")
    event_date: Optional[date] = Field(None, description="Date of the life event (allowances)")
    payment: PaymentInfo = Field(..., description="Payment instructions")
    justification_document: Optional[DocumentRef] = Field(None, description="Supporting document")


class TransitionRequest(ApiPayload):
    """Request model for accept/reject/validate actions."""

    comment: Optional[str] = Field(None, max_length=1000, description="Reviewer comment")


class FamilyMemberData(ApiPayload):
    """Request model for registering a family member."""

    owner_id: Optional[str] = Field(None, description="Owning member (administrators only)")
    first_name: str = Field(..., min_length=1, max_length=100, description="First name(s)")
    last_name: str = Field(..., min_length=1, max_length=100, description="Last name")
    npi: str = Field(..., description="National personal identifier")
    birth_certificate_ref: str = Field(..., min_length=1, max_length=100, description="Birth certificate number")
    date_of_birth: date = Field(..., description="Date of birth")
    relation: Relation = Field(..., description="Relation to the owning member")
    justification_document: Optional[DocumentRef] = Field(None, description="Supporting document")

    @field_validator('npi')
    @classmethod
    def validate_npi(cls, v):
        """Validate NPI format."""
        if not re.fullmatch(r'\d{10,}', v):
            raise ValueError('NPI must contain at least 10 digits')
        return v


class FamilyMemberUpdate(ApiPayload):
    """Request model for editing a family member."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100, description="First name(s)")
    last_name: Optional[str] = Field(None, min_length=1, max_length=100, description="Last name")
    npi: Optional[str] = Field(None, description="National personal identifier")
    birth_certificate_ref: Optional[str] = Field(None, min_length=1, max_length=100, description="Birth certificate number")
    date_of_birth: Optional[date] = Field(None, description="Date of birth")
    relation: Optional[Relation] = Field(None, description="Relation to the owning member")
    justification_document: Optional[DocumentRef] = Field(None, description="Replacement supporting document")

    @field_validator('npi')
    @classmethod
    def validate_npi(cls, v):
        if v is not None and not re.fullmatch(r'\d{10,}', v):
            raise ValueError('NPI must contain at least 10 digits')
        return v


class CreateServiceRequest(ApiPayload):
    """Request model for creating a service catalog entry."""

    benefit_type: BenefitType = Field(..., description="Benefit type served")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    description: str = Field(default="", max_length=2000, description="Description")
    kind: ServiceKind = Field(..., description="Allocation or loan")
    default_amount: Optional[int] = Field(None, gt=0, description="Fixed amount for allocations")
    conditions: List[str] = Field(default_factory=list, description="Eligibility conditions")
    is_active: bool = Field(default=True, description="Whether members can request it")


class UpdateServiceRequest(ApiPayload):
    """Request model for updating a service catalog entry."""

    name: Optional[str] = Field(None, min_length=1, max_length=200, description="Display name")
    description: Optional[str] = Field(None, max_length=2000, description="Description")
    default_amount: Optional[int] = Field(None, gt=0, description="Fixed amount for allocations")
    conditions: Optional[List[str]] = Field(None, description="Eligibility conditions")


class RequestFilters(BaseModel):
    """Filters for benefit request queries."""

    status: Optional[RequestStatus] = Field(None, description="Filter by status")
    benefit_type: Optional[BenefitType] = Field(None, description="Filter by benefit type")
    search: Optional[str] = Field(None, max_length=100, description="Search in member and beneficiary names")

    model_config = ConfigDict(use_enum_values=True)


class AuditLogFilters(BaseModel):
    """Filters for audit log queries."""

    severity: Optional[AuditSeverity] = Field(None, description="Filter by severity")
    module: Optional[str] = Field(None, description="Filter by module")
    user_id: Optional[str] = Field(None, description="Filter by user ID")
    search: Optional[str] = Field(None, max_length=100, description="Search in action, details and user name")
    date_from: Optional[str] = Field(None, description="Filter from date (ISO format)")
    date_to: Optional[str] = Field(None, description="Filter to date (ISO format)")

    model_config = ConfigDict(use_enum_values=True)


class PaginationParams(BaseModel):
    """Pagination parameters."""

    page: int = Field(default=1, ge=1, description="Page number")
    page_size: int = Field(default=20, ge=1, le=100, description="Items per page")


class RequestPath(BaseModel):
    request_id: str = Field(..., description="Benefit request ID")


class FamilyMemberPath(BaseModel):
    member_id: str = Field(..., description="Family member ID")


class ServicePath(BaseModel):
    service_id: str = Field(..., description="Service catalog entry ID")


class RequestListQuery(RequestFilters, PaginationParams):
    """Query string of the request listing."""


class AuditLogQuery(AuditLogFilters, PaginationParams):
    """Query string of the audit log listing."""


class FamilyQuery(BaseModel):
    owner_id: Optional[str] = Field(None, description="Owning member (staff only)")


class AuditStatisticsQuery(BaseModel):
    days: int = Field(default=30, ge=1, le=365, description="Number of days covered")
