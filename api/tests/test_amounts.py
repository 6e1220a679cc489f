# SPDX-License-Identifier: Apache-2.0

"""
Tests for the amount policy and the service catalog contract.
"""

import pytest

from domain.amounts import (
    DEFAULT_LOAN_CEILINGS, ECONOMIC_LOAN_CEILING, SOCIAL_LOAN_CEILING, loan_ceiling, resolve_amount
)
from domain.catalog import DEFAULT_FIXED_AMOUNTS, StaticServiceCatalog, default_services
from domain.results import DomainErrorCode
from models.entities import BenefitService
from models.enums import BenefitType, ServiceKind


class TestAllowanceAmounts:
    """Allowances always pay the catalog amount."""

    @pytest.mark.parametrize("benefit_type,expected", [
        (BenefitType.MARRIAGE_ALLOWANCE, 50000),
        (BenefitType.BIRTH_ALLOWANCE, 25000),
        (BenefitType.DEATH_ALLOWANCE, 75000),
    ])
    def test_fixed_amount(self, benefit_type, expected):
        resolution = resolve_amount(benefit_type)

        assert resolution.success
        assert resolution.amount == expected

    def test_proposed_amount_ignored(self):
        resolution = resolve_amount(BenefitType.BIRTH_ALLOWANCE, proposed_amount=999999)

        assert resolution.amount == DEFAULT_FIXED_AMOUNTS[BenefitType.BIRTH_ALLOWANCE]

    def test_catalog_amount_overrides_default(self):
        services = default_services()
        services[1] = BenefitService(
            benefit_type=BenefitType.BIRTH_ALLOWANCE, name="Allocation Naissance",
            kind=ServiceKind.ALLOCATION, default_amount=30000
        )

        resolution = resolve_amount(BenefitType.BIRTH_ALLOWANCE, catalog=StaticServiceCatalog(services))

        assert resolution.amount == 30000


class TestLoanAmounts:
    """Loans carry the member's amount within the ceiling."""

    def test_default_ceilings(self):
        assert SOCIAL_LOAN_CEILING == 500000
        assert ECONOMIC_LOAN_CEILING == 2000000
        assert loan_ceiling(BenefitType.SOCIAL_LOAN) == 500000
        assert loan_ceiling("economic-loan") == 2000000

    def test_ceiling_for_allowance_raises(self):
        with pytest.raises(ValueError):
            loan_ceiling(BenefitType.BIRTH_ALLOWANCE)

    @pytest.mark.parametrize("benefit_type,amount", [
        (BenefitType.SOCIAL_LOAN, 1),
        (BenefitType.SOCIAL_LOAN, 500000),
        (BenefitType.ECONOMIC_LOAN, 2000000),
    ])
    def test_amount_within_bounds(self, benefit_type, amount):
        resolution = resolve_amount(benefit_type, proposed_amount=amount)

        assert resolution.success
        assert resolution.amount == amount

    @pytest.mark.parametrize("benefit_type,amount", [
        (BenefitType.SOCIAL_LOAN, 500001),
        (BenefitType.ECONOMIC_LOAN, 2000001),
        (BenefitType.SOCIAL_LOAN, 0),
        (BenefitType.ECONOMIC_LOAN, -100),
    ])
    def test_amount_out_of_range(self, benefit_type, amount):
        resolution = resolve_amount(benefit_type, proposed_amount=amount)

        assert not resolution.success
        assert resolution.error_code == DomainErrorCode.AMOUNT_OUT_OF_RANGE
        assert resolution.error_message == DomainErrorCode.AMOUNT_OUT_OF_RANGE.message

    def test_missing_amount(self):
        resolution = resolve_amount(BenefitType.ECONOMIC_LOAN)

        assert resolution.error_code == DomainErrorCode.MISSING_AMOUNT

    @pytest.mark.parametrize("amount", [True, 1500.5, "150000"])
    def test_non_integer_amount_rejected(self, amount):
        resolution = resolve_amount(BenefitType.SOCIAL_LOAN, proposed_amount=amount)

        assert resolution.error_code == DomainErrorCode.AMOUNT_OUT_OF_RANGE

    def test_configured_ceilings(self):
        ceilings = dict(DEFAULT_LOAN_CEILINGS)
        ceilings[BenefitType.SOCIAL_LOAN] = 300000

        assert not resolve_amount(BenefitType.SOCIAL_LOAN, 400000, ceilings=ceilings).success
        assert resolve_amount(BenefitType.SOCIAL_LOAN, 300000, ceilings=ceilings).success


class TestStaticServiceCatalog:
    """Test the in-memory catalog."""

    def test_default_offering(self):
        catalog = StaticServiceCatalog()

        assert catalog.is_loan_type(BenefitType.SOCIAL_LOAN)
        assert not catalog.is_loan_type(BenefitType.DEATH_ALLOWANCE)
        assert all(catalog.is_available(benefit_type) for benefit_type in BenefitType)

    def test_unknown_type_raises(self):
        catalog = StaticServiceCatalog([])

        with pytest.raises(LookupError):
            catalog.get_fixed_amount(BenefitType.BIRTH_ALLOWANCE)
        assert not catalog.is_available(BenefitType.BIRTH_ALLOWANCE)

    def test_fixed_amount_of_loan_raises(self):
        with pytest.raises(LookupError):
            StaticServiceCatalog().get_fixed_amount(BenefitType.SOCIAL_LOAN)

    def test_inactive_service_unavailable(self):
        services = default_services()
        services[0].is_active = False

        assert not StaticServiceCatalog(services).is_available(BenefitType.MARRIAGE_ALLOWANCE)
