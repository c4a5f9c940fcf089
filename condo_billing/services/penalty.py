"""Compounding penalty accrual over unpaid billing periods.

Reproduces the delinquency worksheet column by column:

    C  Principal                  (unpaid balance of the period)
    D  10% P                      = C × rate
    E  Sum w/ Prev Interest       = H(prev) + D
    F  Comp. 10% Interest         = E × rate
    H  Total Interest             = D for the first period, E + F afterwards

Interest compounds on the running interest figure, seeded by each period's own
rate-of-principal contribution. It is not principal × (1 + rate)^n.
"""

from decimal import Decimal
from typing import NamedTuple, Sequence

from condo_billing.services.money import ZERO, to_decimal


class PenaltyPeriod(NamedTuple):
    """One unpaid billing period fed into the fold (oldest first)."""

    label: str
    principal: Decimal


class PenaltyBreakdownRow(NamedTuple):
    """Worksheet row for one period."""

    label: str
    principal: Decimal
    ten_percent_p: Decimal
    sum_with_prev_interest: Decimal
    compound_interest: Decimal
    total_interest: Decimal


class PenaltyResult(NamedTuple):
    """Outcome of the fold; total_interest is the penalty charged on the current bill."""

    total_interest: Decimal
    total_principal: Decimal
    total_with_interest: Decimal
    breakdown: list[PenaltyBreakdownRow]


class PenaltyScheduleRow(NamedTuple):
    """Per-month view of a constant-principal penalty."""

    month: int
    principal_penalty: Decimal
    compounded_penalty: Decimal
    monthly_penalty: Decimal
    total_penalty: Decimal


def calculate_compounding_penalty(
    periods: Sequence[PenaltyPeriod],
    penalty_rate=Decimal("0.10"),
) -> PenaltyResult:
    """Fold unpaid periods into the compounded penalty.

    Args:
        periods: Unpaid periods ordered chronologically, oldest first
        penalty_rate: Monthly rate as a fraction (0.10 = 10%)

    Returns:
        PenaltyResult with unrounded Decimal figures; callers round when the
        penalty becomes a bill line.
    """
    rate = to_decimal(penalty_rate)
    total_interest = ZERO
    total_principal = ZERO
    breakdown: list[PenaltyBreakdownRow] = []

    for index, period in enumerate(periods):
        principal = to_decimal(period.principal)
        ten_percent_p = principal * rate
        total_principal += principal

        if index == 0:
            total_interest = ten_percent_p
            sum_with_prev_interest = ZERO
            compound_interest = ZERO
        else:
            sum_with_prev_interest = total_interest + ten_percent_p
            compound_interest = sum_with_prev_interest * rate
            total_interest = sum_with_prev_interest + compound_interest

        breakdown.append(
            PenaltyBreakdownRow(
                label=period.label,
                principal=principal,
                ten_percent_p=ten_percent_p,
                sum_with_prev_interest=sum_with_prev_interest,
                compound_interest=compound_interest,
                total_interest=total_interest,
            )
        )

    return PenaltyResult(
        total_interest=total_interest,
        total_principal=total_principal,
        total_with_interest=total_principal + total_interest,
        breakdown=breakdown,
    )


def _constant_periods(principal, months: int) -> list[PenaltyPeriod]:
    return [PenaltyPeriod(label=f"Month {i + 1}", principal=to_decimal(principal)) for i in range(months)]


def calculate_simple_penalty(principal, months_overdue: int, penalty_rate=Decimal("0.10")) -> Decimal:
    """Penalty for the same principal left unpaid for N months.

    Runs the generic fold with the principal repeated N times, so the result is
    identical to calculate_compounding_penalty by construction.
    """
    if months_overdue <= 0:
        return ZERO
    return calculate_compounding_penalty(
        _constant_periods(principal, months_overdue), penalty_rate
    ).total_interest


def penalty_schedule(principal, months_overdue: int, penalty_rate=Decimal("0.10")) -> list[PenaltyScheduleRow]:
    """Month-by-month penalty rows for a constant principal (statement display)."""
    result = calculate_compounding_penalty(_constant_periods(principal, months_overdue), penalty_rate)
    return [
        PenaltyScheduleRow(
            month=index + 1,
            principal_penalty=row.ten_percent_p,
            compounded_penalty=row.compound_interest,
            monthly_penalty=row.ten_percent_p + row.compound_interest,
            total_penalty=row.total_interest,
        )
        for index, row in enumerate(result.breakdown)
    ]


__all__ = [
    "PenaltyPeriod",
    "PenaltyBreakdownRow",
    "PenaltyResult",
    "PenaltyScheduleRow",
    "calculate_compounding_penalty",
    "calculate_simple_penalty",
    "penalty_schedule",
]
