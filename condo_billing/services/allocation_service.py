"""Payment allocation across a unit's open bills.

Pure planning step: takes the payment amount and the bills it may settle,
returns the allocation lines and the excess. PaymentService persists the plan.

Strategies:
- OLDEST_FIRST: settle the oldest billing month first (FIFO, default)
- NEWEST_FIRST: settle the most recent billing month first
An explicit bill order can be passed instead of a strategy.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Sequence

from condo_billing.models.bill import BillStatus
from condo_billing.services.errors import InvalidPaymentError
from condo_billing.services.money import ZERO, round_money, to_decimal


class AllocationStrategy(str, Enum):
    """Order in which open bills receive a payment."""

    OLDEST_FIRST = "oldest_first"
    NEWEST_FIRST = "newest_first"


class OpenBill(NamedTuple):
    """Snapshot of a bill as seen by the allocator."""

    bill_id: int
    bill_number: str
    billing_month: date
    electric_amount: Decimal
    water_amount: Decimal
    dues_amount: Decimal
    penalty_amount: Decimal
    sp_assessment: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    status: BillStatus = BillStatus.UNPAID

    @classmethod
    def from_bill(cls, bill) -> "OpenBill":
        """Build from a Bill row; dues_amount covers association dues and parking."""
        return cls(
            bill_id=bill.id,
            bill_number=bill.bill_number,
            billing_month=bill.billing_month,
            electric_amount=to_decimal(bill.electric_amount),
            water_amount=to_decimal(bill.water_amount),
            dues_amount=to_decimal(bill.association_dues) + to_decimal(bill.parking_fee),
            penalty_amount=to_decimal(bill.penalty_amount),
            sp_assessment=to_decimal(bill.sp_assessment),
            total_amount=to_decimal(bill.total_amount),
            paid_amount=to_decimal(bill.paid_amount),
            status=bill.status,
        )


class AllocationLine(NamedTuple):
    """Amount applied to one bill and its component split."""

    bill_id: int
    bill_number: str
    amount: Decimal
    electric_amount: Decimal
    water_amount: Decimal
    dues_amount: Decimal
    penalty_amount: Decimal
    sp_assessment_amount: Decimal
    other_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: BillStatus


class AllocationPlan(NamedTuple):
    """Outcome of allocating one payment.

    sum(line.amount) + excess == payment amount, exactly.
    """

    amount: Decimal
    lines: list[AllocationLine]
    excess: Decimal

    @property
    def total_allocated(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)


class AllocationSummary(NamedTuple):
    total_allocated: Decimal
    electric: Decimal
    water: Decimal
    dues: Decimal
    penalty: Decimal
    sp_assessment: Decimal
    other: Decimal
    bills_fully_paid: int
    bills_partially_paid: int
    advance_credit: Decimal


def settlement_status(total_amount, paid_amount, current: BillStatus) -> BillStatus:
    """Status after a change to paid_amount.

    PAID once nothing is left, PARTIAL while part is paid, otherwise the
    current status (UNPAID or OVERDUE) is kept.
    """
    total = to_decimal(total_amount)
    balance = total - to_decimal(paid_amount)
    if balance <= 0:
        return BillStatus.PAID
    if balance < total:
        return BillStatus.PARTIAL
    if current in (BillStatus.PAID, BillStatus.PARTIAL):
        return BillStatus.UNPAID
    return current


def order_bills(
    bills: Sequence[OpenBill],
    strategy: AllocationStrategy = AllocationStrategy.OLDEST_FIRST,
    bill_ids: Sequence[int] | None = None,
) -> list[OpenBill]:
    """Order bills for allocation.

    With bill_ids, only those bills are used, in that order. Ties in billing
    month fall back to bill id so the order is deterministic.
    """
    if bill_ids is not None:
        by_id = {bill.bill_id: bill for bill in bills}
        return [by_id[bill_id] for bill_id in bill_ids if bill_id in by_id]

    reverse = AllocationStrategy(strategy) == AllocationStrategy.NEWEST_FIRST
    return sorted(bills, key=lambda b: (b.billing_month, b.bill_id), reverse=reverse)


def _split_components(bill: OpenBill, to_allocate: Decimal) -> dict[str, Decimal]:
    total = bill.total_amount
    components = {
        "electric_amount": bill.electric_amount,
        "water_amount": bill.water_amount,
        "dues_amount": bill.dues_amount,
        "penalty_amount": bill.penalty_amount,
        "sp_assessment_amount": bill.sp_assessment,
    }
    split = {name: round_money(value * to_allocate / total) for name, value in components.items()}
    # Carried balance, discounts, advance draws and rounding land here; may be negative
    split["other_amount"] = to_allocate - sum(split.values(), ZERO)
    return split


def allocate_payment(
    amount,
    bills: Sequence[OpenBill],
    strategy: AllocationStrategy = AllocationStrategy.OLDEST_FIRST,
    bill_ids: Sequence[int] | None = None,
) -> AllocationPlan:
    """Plan how a payment settles the given bills.

    Args:
        amount: Payment amount (positive)
        bills: Candidate bills; closed or zero-total bills receive nothing
        strategy: Bill ordering when bill_ids is not given
        bill_ids: Explicit target order

    Returns:
        AllocationPlan whose lines never push a bill's paid amount above its total
    """
    left = round_money(amount)
    if left <= 0:
        raise InvalidPaymentError(f"Payment amount must be positive, got {left}")

    ordered = order_bills(bills, strategy, bill_ids)
    allocated = {bill.bill_id: to_decimal(bill.paid_amount) for bill in ordered}
    lines: list[AllocationLine] = []

    for bill in ordered:
        if left <= 0:
            break

        remaining = bill.total_amount - allocated[bill.bill_id]
        to_allocate = min(left, remaining)
        if to_allocate <= 0:
            continue

        allocated[bill.bill_id] += to_allocate
        paid = allocated[bill.bill_id]
        lines.append(
            AllocationLine(
                bill_id=bill.bill_id,
                bill_number=bill.bill_number,
                amount=to_allocate,
                **_split_components(bill, to_allocate),
                paid_amount=paid,
                balance=bill.total_amount - paid,
                status=settlement_status(bill.total_amount, paid, bill.status),
            )
        )
        left -= to_allocate

    return AllocationPlan(amount=round_money(amount), lines=lines, excess=left)


def summarize_allocation(plan: AllocationPlan) -> AllocationSummary:
    """Component totals and bill counts of a plan."""

    def total(field: str) -> Decimal:
        return sum((getattr(line, field) for line in plan.lines), ZERO)

    return AllocationSummary(
        total_allocated=plan.total_allocated,
        electric=total("electric_amount"),
        water=total("water_amount"),
        dues=total("dues_amount"),
        penalty=total("penalty_amount"),
        sp_assessment=total("sp_assessment_amount"),
        other=total("other_amount"),
        bills_fully_paid=sum(1 for line in plan.lines if line.status == BillStatus.PAID),
        bills_partially_paid=sum(1 for line in plan.lines if line.status == BillStatus.PARTIAL),
        advance_credit=plan.excess,
    )


__all__ = [
    "AllocationStrategy",
    "OpenBill",
    "AllocationLine",
    "AllocationPlan",
    "AllocationSummary",
    "settlement_status",
    "order_bills",
    "allocate_payment",
    "summarize_allocation",
]
