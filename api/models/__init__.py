# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the MuSAIB benefits platform.
"""

# Base models
from .base import BaseEntity, ValueModel, generate_object_id, utc_now

# Enumerations
from .enums import (
    MemberRole,
    Relation,
    CardinalityClass,
    BenefitType,
    ServiceKind,
    RequestStatus,
    LifecycleAction,
    PaymentMethod,
    AuditSeverity
)

# Core entities
from .entities import (
    Member,
    FamilyMember,
    DocumentRef,
    MobileMoneyPayment,
    BankTransferPayment,
    ChequePayment,
    PaymentInfo,
    Beneficiary,
    BenefitService,
    BenefitRequest,
    AuditEntry,
    UserContext,
    MEMBER_RELATION
)

# Request models
from .requests import (
    SubmitBenefitRequest,
    TransitionRequest,
    FamilyMemberData,
    FamilyMemberUpdate,
    CreateServiceRequest,
    UpdateServiceRequest,
    RequestFilters,
    AuditLogFilters,
    PaginationParams,
    RequestListQuery,
    AuditLogQuery,
    FamilyQuery,
    AuditStatisticsQuery,
    RequestPath,
    FamilyMemberPath,
    ServicePath
)

# Response models
from .responses import HalLink

__all__ = [
    # Base
    "BaseEntity",
    "ValueModel",
    "generate_object_id",
    "utc_now",

    # Enums
    "MemberRole",
    "Relation",
    "CardinalityClass",
    "BenefitType",
    "ServiceKind",
    "RequestStatus",
    "LifecycleAction",
    "PaymentMethod",
    "AuditSeverity",

    # Entities
    "Member",
    "FamilyMember",
    "DocumentRef",
    "MobileMoneyPayment",
    "BankTransferPayment",
    "ChequePayment",
    "PaymentInfo",
    "Beneficiary",
    "BenefitService",
    "BenefitRequest",
    "AuditEntry",
    "UserContext",
    "MEMBER_RELATION",

    # Requests
    "SubmitBenefitRequest",
    "TransitionRequest",
    "FamilyMemberData",
    "FamilyMemberUpdate",
    "CreateServiceRequest",
    "UpdateServiceRequest",
    "RequestFilters",
    "AuditLogFilters",
    "PaginationParams",
    "RequestListQuery",
    "AuditLogQuery",
    "FamilyQuery",
    "AuditStatisticsQuery",
    "RequestPath",
    "FamilyMemberPath",
    "ServicePath",

    # Responses
    "HalLink"
]
