"""Unit tests for the pure bill assembler."""

from datetime import date
from decimal import Decimal

import pytest

from condo_billing.models.bill import BillStatus, BillType
from condo_billing.models.unit import UnitType
from condo_billing.services.bill_assembler import (
    MISSING_ELECTRIC_READING,
    MISSING_WATER_READING,
    BillInputs,
    PriorBill,
    assemble_bill,
    open_prior_bills,
    penalty_periods,
)
from condo_billing.services.tariff import TariffConfig

NOVEMBER = date(2025, 11, 1)
STATEMENT = date(2025, 11, 27)


@pytest.fixture
def config():
    return TariffConfig(
        electric_rate=Decimal("8.39"),
        electric_min_charge=Decimal("50"),
        association_dues_rate=Decimal("60"),
    )


def inputs(**overrides) -> BillInputs:
    values = dict(
        billing_month=NOVEMBER,
        statement_date=STATEMENT,
        unit_type=UnitType.RESIDENTIAL,
        area=Decimal("45"),
        electric_consumption=Decimal("250"),
        water_consumption=Decimal("15"),
    )
    values.update(overrides)
    return BillInputs(**values)


def prior(bill_id, month, balance, status=BillStatus.UNPAID, **kwargs) -> PriorBill:
    due = date(month.year + (month.month // 12), month.month % 12 + 1, 6)
    return PriorBill(
        bill_id=bill_id,
        billing_month=month,
        due_date=due,
        total_amount=kwargs.pop("total_amount", Decimal(balance)),
        balance=Decimal(balance),
        status=status,
        **kwargs,
    )


class TestAssembleBill:
    """Bill figures for one unit."""

    def test_reference_scenario(self, config):
        result = assemble_bill(inputs(), config)

        assert result.electric_amount == Decimal("2097.50")
        assert result.water_amount == Decimal("570.00")
        assert result.association_dues == Decimal("2700.00")
        assert result.previous_balance == Decimal("0.00")
        assert result.penalty_amount == Decimal("0.00")
        assert result.total_amount == Decimal("5367.50")
        assert result.status == BillStatus.UNPAID
        assert result.warnings == []

    def test_identical_inputs_give_identical_bill(self, config):
        prior_bills = (prior(1, date(2025, 10, 1), "1000"),)
        first = assemble_bill(inputs(prior_bills=prior_bills), config)
        second = assemble_bill(inputs(prior_bills=prior_bills), config)

        assert first == second

    def test_missing_readings_warn_and_bill_zero(self, config):
        result = assemble_bill(inputs(electric_consumption=None, water_consumption=None), config)

        assert result.warnings == [MISSING_ELECTRIC_READING, MISSING_WATER_READING]
        assert result.electric_amount == Decimal("50.00")
        assert result.water_amount == Decimal("80.00")

    def test_adjustments(self, config):
        result = assemble_bill(
            inputs(sp_assessment=Decimal("500"), discounts=Decimal("200")),
            config,
        )
        assert result.total_amount == Decimal("5667.50")

    def test_parking_fee_included(self, config):
        result = assemble_bill(inputs(parking_area=Decimal("12.5")), config)

        assert result.parking_fee == Decimal("750.00")
        assert result.total_amount == Decimal("6117.50")

    def test_advance_draws_capped_by_category(self, config):
        result = assemble_bill(
            inputs(advance_dues=Decimal("5000"), advance_utilities=Decimal("1000")),
            config,
        )

        assert result.advance_dues_applied == Decimal("2700.00")
        assert result.advance_util_applied == Decimal("1000.00")
        assert result.total_amount == Decimal("1667.50")

    def test_advance_covering_everything_makes_bill_paid(self, config):
        result = assemble_bill(
            inputs(advance_dues=Decimal("9999"), advance_utilities=Decimal("9999")),
            config,
        )

        assert result.advance_util_applied == Decimal("2667.50")
        assert result.total_amount == Decimal("0.00")
        assert result.status == BillStatus.PAID

    def test_previous_balance_and_penalty(self, config):
        # September bill, due Oct 6, a full month overdue by Nov 27
        result = assemble_bill(inputs(prior_bills=(prior(1, date(2025, 9, 1), "1000"),)), config)

        assert result.previous_balance == Decimal("1000.00")
        assert result.penalty_amount == Decimal("100.00")
        assert result.total_amount == Decimal("6467.50")

    def test_last_month_bill_carried_without_penalty(self, config):
        # October bill, due Nov 6, only 21 days late on Nov 27
        result = assemble_bill(inputs(prior_bills=(prior(1, date(2025, 10, 1), "1000"),)), config)

        assert result.previous_balance == Decimal("1000.00")
        assert result.penalty_amount == Decimal("0.00")
        assert result.total_amount == Decimal("6367.50")

    def test_two_overdue_periods_compound(self, config):
        prior_bills = (
            prior(1, date(2025, 8, 1), "1000"),
            prior(2, date(2025, 9, 1), "1000"),
        )
        result = assemble_bill(inputs(prior_bills=prior_bills), config)

        assert result.previous_balance == Decimal("2000.00")
        assert result.penalty_amount == Decimal("220.00")

    def test_paid_and_future_bills_ignored(self, config):
        prior_bills = (
            prior(1, date(2025, 9, 1), "0", status=BillStatus.PAID),
            prior(2, NOVEMBER, "999"),
            prior(3, date(2025, 12, 1), "999"),
        )
        result = assemble_bill(inputs(prior_bills=prior_bills), config)

        assert result.previous_balance == Decimal("0.00")
        assert result.penalty_amount == Decimal("0.00")


class TestPriorBills:
    """Selection and penalty eligibility of prior bills."""

    def test_open_prior_bills_sorted_oldest_first(self):
        bills = [
            prior(2, date(2025, 10, 1), "10", status=BillStatus.PARTIAL),
            prior(1, date(2025, 9, 1), "10", status=BillStatus.OVERDUE),
        ]
        assert [b.bill_id for b in open_prior_bills(bills, NOVEMBER)] == [1, 2]

    def test_bill_not_yet_a_month_overdue_accrues_nothing(self):
        bill = prior(1, date(2025, 10, 1), "1000")  # due 2025-11-06
        assert penalty_periods([bill], date(2025, 11, 7)) == []
        assert penalty_periods([bill], STATEMENT) == []
        assert penalty_periods([bill], date(2025, 12, 5)) == []
        assert len(penalty_periods([bill], date(2025, 12, 6))) == 1

    def test_opening_balance_excludes_migrated_debt(self):
        bill = prior(
            1,
            date(2025, 10, 1),
            "10000",
            total_amount=Decimal("10000"),
            bill_type=BillType.OPENING_BALANCE,
            current_charges=Decimal("3000"),
        )
        assert bill.penalty_principal == Decimal("3000")

    def test_opening_balance_fully_migrated_accrues_nothing(self):
        bill = prior(
            1,
            date(2025, 10, 1),
            "4000",
            total_amount=Decimal("10000"),
            bill_type=BillType.OPENING_BALANCE,
            current_charges=Decimal("3000"),
        )
        assert bill.penalty_principal == Decimal("0")
        assert penalty_periods([bill], STATEMENT) == []
