# SPDX-License-Identifier: Apache-2.0

"""
Result types and error codes shared by the domain functions.

Domain functions never raise for expected business violations; they return a
result carrying a DomainErrorCode. Each code has one stable user-facing
message and one HTTP status used by the API layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from models.entities import AuditEntry


class DomainErrorCode(str, Enum):
    """Closed set of business-rule violations."""
    CARDINALITY_EXCEEDED = "cardinality-exceeded"
    MISSING_AMOUNT = "missing-amount"
    AMOUNT_OUT_OF_RANGE = "amount-out-of-range"
    EVENT_NOT_CLAIMABLE = "event-not-claimable"
    ILLEGAL_TRANSITION = "illegal-transition"
    COMMENT_REQUIRED = "comment-required"
    INVALID_PAYMENT = "invalid-payment"
    SERVICE_UNAVAILABLE = "service-unavailable"
    PERMISSION_DENIED = "permission-denied"
    VALIDATION_FAILED = "validation-failed"
    NOT_FOUND = "not-found"

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self]

    @property
    def http_status(self) -> int:
        return ERROR_STATUS[self]


ERROR_MESSAGES = {
    DomainErrorCode.CARDINALITY_EXCEEDED:
        "Impossible d'ajouter ce type de membre (limite atteinte ou déjà existant)",
    DomainErrorCode.MISSING_AMOUNT: "Le montant est obligatoire pour un prêt",
    DomainErrorCode.AMOUNT_OUT_OF_RANGE: "Le montant demandé dépasse le plafond autorisé",
    DomainErrorCode.EVENT_NOT_CLAIMABLE:
        "L'événement doit dater de moins d'un an et ne pas être dans le futur",
    DomainErrorCode.ILLEGAL_TRANSITION: "Cette action n'est pas autorisée sur cette demande",
    DomainErrorCode.COMMENT_REQUIRED: "Un commentaire est obligatoire pour rejeter une demande",
    DomainErrorCode.INVALID_PAYMENT: "Les informations de paiement sont incomplètes",
    DomainErrorCode.SERVICE_UNAVAILABLE: "Ce service n'est pas disponible actuellement",
    DomainErrorCode.PERMISSION_DENIED: "Vous n'avez pas les droits pour effectuer cette action",
    DomainErrorCode.VALIDATION_FAILED: "Les données fournies sont invalides",
    DomainErrorCode.NOT_FOUND: "Ressource introuvable",
}

ERROR_STATUS = {
    DomainErrorCode.CARDINALITY_EXCEEDED: 409,
    DomainErrorCode.MISSING_AMOUNT: 400,
    DomainErrorCode.AMOUNT_OUT_OF_RANGE: 400,
    DomainErrorCode.EVENT_NOT_CLAIMABLE: 400,
    DomainErrorCode.ILLEGAL_TRANSITION: 409,
    DomainErrorCode.COMMENT_REQUIRED: 400,
    DomainErrorCode.INVALID_PAYMENT: 400,
    DomainErrorCode.SERVICE_UNAVAILABLE: 409,
    DomainErrorCode.PERMISSION_DENIED: 403,
    DomainErrorCode.VALIDATION_FAILED: 400,
    DomainErrorCode.NOT_FOUND: 404,
}


@dataclass
class ValidationResult:
    """Result of input validation."""
    is_valid: bool
    errors: List[str]
    warnings: List[str] = None

    def __post_init__(self):
        if self.warnings is None:
            self.warnings = []


@dataclass
class WorkflowResult:
    """Result of a domain workflow operation."""
    success: bool
    entity: Optional[Any] = None
    audit_entry: Optional[AuditEntry] = None
    error_code: Optional[DomainErrorCode] = None
    error_message: Optional[str] = None
    validation_errors: List[str] = None

    def __post_init__(self):
        if self.validation_errors is None:
            self.validation_errors = []
        if self.error_code is not None and self.error_message is None:
            self.error_message = self.error_code.message

    @classmethod
    def ok(cls, entity: Any, audit_entry: Optional[AuditEntry] = None) -> "WorkflowResult":
        return cls(success=True, entity=entity, audit_entry=audit_entry)

    @classmethod
    def failure(
        cls,
        error_code: DomainErrorCode,
        validation_errors: Optional[List[str]] = None
    ) -> "WorkflowResult":
        return cls(success=False, error_code=error_code, validation_errors=validation_errors)
