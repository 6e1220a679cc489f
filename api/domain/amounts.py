# SPDX-License-Identifier: Apache-2.0

"""
Amount policy for benefit requests.

Allowances pay the fixed amount configured in the service catalog whatever
the member proposes. Loans carry the member's amount, bounded by a per-type
ceiling.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from models.enums import BenefitType
from .catalog import ServiceCatalog, StaticServiceCatalog
from .results import DomainErrorCode


SOCIAL_LOAN_CEILING = 500000
ECONOMIC_LOAN_CEILING = 2000000

DEFAULT_LOAN_CEILINGS = {
    BenefitType.SOCIAL_LOAN: SOCIAL_LOAN_CEILING,
    BenefitType.ECONOMIC_LOAN: ECONOMIC_LOAN_CEILING,
}

_default_catalog = StaticServiceCatalog()


@dataclass
class AmountResolution:
    """Outcome of amount resolution."""
    success: bool
    amount: Optional[int] = None
    error_code: Optional[DomainErrorCode] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.error_code is not None and self.error_message is None:
            self.error_message = self.error_code.message


def loan_ceiling(benefit_type, ceilings: Optional[Dict[BenefitType, int]] = None) -> int:
    """Maximum amount for a loan type."""
    benefit_type = BenefitType(benefit_type)
    ceilings = ceilings or DEFAULT_LOAN_CEILINGS
    if benefit_type not in ceilings:
        raise ValueError(f"No ceiling configured for {benefit_type.value}")
    return ceilings[benefit_type]


def resolve_amount(
    benefit_type,
    proposed_amount: Optional[int] = None,
    catalog: Optional[ServiceCatalog] = None,
    ceilings: Optional[Dict[BenefitType, int]] = None
) -> AmountResolution:
    """
    Determine the amount of a benefit request.

    Args:
        benefit_type: Requested benefit type
        proposed_amount: Amount entered by the member, if any
        catalog: Service catalog (defaults to the standard offering)
        ceilings: Loan ceilings by type (defaults to 500000 / 2000000)

    Returns:
        AmountResolution with the amount, or MISSING_AMOUNT /
        AMOUNT_OUT_OF_RANGE for loans
    """
    benefit_type = BenefitType(benefit_type)
    catalog = catalog or _default_catalog

    if not catalog.is_loan_type(benefit_type):
        return AmountResolution(success=True, amount=catalog.get_fixed_amount(benefit_type))

    if proposed_amount is None:
        return AmountResolution(success=False, error_code=DomainErrorCode.MISSING_AMOUNT)

    if isinstance(proposed_amount, bool) or not isinstance(proposed_amount, int):
        return AmountResolution(success=False, error_code=DomainErrorCode.AMOUNT_OUT_OF_RANGE)

    if 0 < proposed_amount <= loan_ceiling(benefit_type, ceilings):
        return AmountResolution(success=True, amount=proposed_amount)

    return AmountResolution(success=False, error_code=DomainErrorCode.AMOUNT_OUT_OF_RANGE)
