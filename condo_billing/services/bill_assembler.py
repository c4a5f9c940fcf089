"""Bill assembler: fold one unit's period inputs into a bill.

Pure and deterministic. BillsService loads the inputs for a whole period in one
pass and calls assemble_bill once per unit; identical inputs always produce
identical figures.
"""

from datetime import date
from decimal import Decimal
from typing import NamedTuple, Sequence

from condo_billing.models.bill import OPEN_STATUSES, BillStatus, BillType
from condo_billing.models.unit import UnitType
from condo_billing.services.billing_period import format_billing_month, months_overdue
from condo_billing.services.money import ZERO, round_money, to_decimal
from condo_billing.services.penalty import (
    PenaltyPeriod,
    PenaltyResult,
    calculate_compounding_penalty,
)
from condo_billing.services.tariff import TariffConfig, calculate_charges

MISSING_ELECTRIC_READING = "Missing electric meter reading"
MISSING_WATER_READING = "Missing water meter reading"


class PriorBill(NamedTuple):
    """Earlier bill of the same unit, as needed for carry-over and penalty."""

    bill_id: int
    billing_month: date
    due_date: date
    total_amount: Decimal
    balance: Decimal
    status: BillStatus
    bill_type: BillType = BillType.REGULAR
    current_charges: Decimal = ZERO

    @classmethod
    def from_bill(cls, bill) -> "PriorBill":
        return cls(
            bill_id=bill.id,
            billing_month=bill.billing_month,
            due_date=bill.due_date,
            total_amount=to_decimal(bill.total_amount),
            balance=to_decimal(bill.balance),
            status=bill.status,
            bill_type=bill.bill_type,
            current_charges=to_decimal(bill.current_charges),
        )

    @property
    def penalty_principal(self) -> Decimal:
        """Balance that accrues penalty.

        Opening-balance bills carry migrated debt (total minus own charges)
        that already had its penalties settled; only the rest accrues.
        """
        if self.bill_type != BillType.OPENING_BALANCE:
            return self.balance
        migrated = max(ZERO, self.total_amount - self.current_charges)
        return max(ZERO, self.balance - migrated)


class BillInputs(NamedTuple):
    """Everything one unit's bill depends on.

    A consumption of None means the reading is missing: it is billed as zero
    and reported as a warning.
    """

    billing_month: date
    statement_date: date
    unit_type: UnitType
    area: Decimal
    parking_area: Decimal = ZERO
    electric_consumption: Decimal | None = None
    water_consumption: Decimal | None = None
    sp_assessment: Decimal = ZERO
    discounts: Decimal = ZERO
    advance_dues: Decimal = ZERO
    advance_utilities: Decimal = ZERO
    prior_bills: Sequence[PriorBill] = ()


class BillComputation(NamedTuple):
    """Assembled bill figures for one unit."""

    electric_consumption: Decimal
    water_consumption: Decimal
    water_tier: int
    electric_amount: Decimal
    water_amount: Decimal
    association_dues: Decimal
    parking_fee: Decimal
    sp_assessment: Decimal
    discounts: Decimal
    previous_balance: Decimal
    penalty_amount: Decimal
    penalty: PenaltyResult
    advance_dues_applied: Decimal
    advance_util_applied: Decimal
    total_amount: Decimal
    status: BillStatus
    warnings: list[str]

    @property
    def current_charges(self) -> Decimal:
        return self.electric_amount + self.water_amount + self.association_dues + self.parking_fee


def open_prior_bills(prior_bills: Sequence[PriorBill], billing_month: date) -> list[PriorBill]:
    """Open bills of earlier months, oldest first."""
    return sorted(
        (
            bill
            for bill in prior_bills
            if bill.billing_month < billing_month and bill.status in OPEN_STATUSES
        ),
        key=lambda b: (b.billing_month, b.bill_id),
    )


def penalty_periods(prior_bills: Sequence[PriorBill], statement_date: date) -> list[PenaltyPeriod]:
    """Prior bills at least one month past due, as penalty fold input."""
    periods = []
    for bill in prior_bills:
        if months_overdue(bill.due_date, statement_date) < 1:
            continue
        principal = bill.penalty_principal
        if principal <= 0:
            continue
        periods.append(PenaltyPeriod(label=format_billing_month(bill.billing_month), principal=principal))
    return periods


def assemble_bill(inputs: BillInputs, config: TariffConfig) -> BillComputation:
    """Compute a unit's bill for one billing month.

    1. Tariff lines from consumption, area and parking area
    2. Previous balance and compounded penalty from open prior bills
    3. Advance draws, each capped by the charges it may cover
    4. Total amount; a bill with nothing to pay is born PAID
    """
    warnings: list[str] = []
    if inputs.electric_consumption is None:
        warnings.append(MISSING_ELECTRIC_READING)
    if inputs.water_consumption is None:
        warnings.append(MISSING_WATER_READING)

    electric_consumption = to_decimal(inputs.electric_consumption)
    water_consumption = to_decimal(inputs.water_consumption)

    charges = calculate_charges(
        electric_consumption=electric_consumption,
        water_consumption=water_consumption,
        unit_type=inputs.unit_type,
        area=inputs.area,
        parking_area=inputs.parking_area,
        config=config,
    )

    prior = open_prior_bills(inputs.prior_bills, inputs.billing_month)
    previous_balance = round_money(sum((bill.balance for bill in prior), ZERO))
    penalty = calculate_compounding_penalty(
        penalty_periods(prior, inputs.statement_date),
        config.penalty_rate,
    )
    penalty_amount = round_money(penalty.total_interest)

    advance_dues_applied = round_money(
        max(ZERO, min(to_decimal(inputs.advance_dues), charges.association_dues))
    )
    advance_util_applied = round_money(
        max(ZERO, min(to_decimal(inputs.advance_utilities), charges.electric_amount + charges.water_amount))
    )

    sp_assessment = round_money(inputs.sp_assessment)
    discounts = round_money(inputs.discounts)

    total_amount = (
        charges.electric_amount
        + charges.water_amount
        + charges.association_dues
        + charges.parking_fee
        + sp_assessment
        + previous_balance
        + penalty_amount
        - discounts
        - advance_dues_applied
        - advance_util_applied
    )

    return BillComputation(
        electric_consumption=electric_consumption,
        water_consumption=water_consumption,
        water_tier=charges.water_tier,
        electric_amount=charges.electric_amount,
        water_amount=charges.water_amount,
        association_dues=charges.association_dues,
        parking_fee=charges.parking_fee,
        sp_assessment=sp_assessment,
        discounts=discounts,
        previous_balance=previous_balance,
        penalty_amount=penalty_amount,
        penalty=penalty,
        advance_dues_applied=advance_dues_applied,
        advance_util_applied=advance_util_applied,
        total_amount=total_amount,
        status=BillStatus.PAID if total_amount <= 0 else BillStatus.UNPAID,
        warnings=warnings,
    )


__all__ = [
    "MISSING_ELECTRIC_READING",
    "MISSING_WATER_READING",
    "PriorBill",
    "BillInputs",
    "BillComputation",
    "open_prior_bills",
    "penalty_periods",
    "assemble_bill",
]
