"""Billing schedule: billing month parsing and the dates printed on a statement."""

import calendar
import re
from dataclasses import dataclass
from datetime import date

from condo_billing.services.errors import InvalidBillingMonthError

_BILLING_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_billing_month(value: str) -> date:
    """Parse 'YYYY-MM' into the first day of that month.

    Raises:
        InvalidBillingMonthError: If the value is not a valid billing month
    """
    match = _BILLING_MONTH_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidBillingMonthError(f"Invalid billing month format: {value!r}. Use YYYY-MM")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidBillingMonthError(f"Invalid billing month: {value!r}. Month must be 01-12")
    return date(year, month, 1)


def format_billing_month(month: date) -> str:
    """Format a billing month as 'YYYY-MM'."""
    return f"{month.year:04d}-{month.month:02d}"


def shift_month(month: date, offset: int) -> date:
    """Return the first day of the month `offset` months away."""
    index = month.year * 12 + (month.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def next_billing_month(month: date) -> date:
    return shift_month(month, 1)


def previous_billing_month(month: date) -> date:
    return shift_month(month, -1)


def _day_in(month: date, day: int) -> date:
    # Clamp so that a configured day 31 still lands inside short months
    last_day = calendar.monthrange(month.year, month.month)[1]
    return date(month.year, month.month, min(day, last_day))


@dataclass(frozen=True)
class BillingSchedule:
    """Dates of one billing month.

    For billing month 2025-11 with the default days:
        period_from     2025-10-27  (day after the previous reading)
        period_to       2025-11-26  (reading day)
        statement_date  2025-11-27
        due_date        2025-12-06
    """

    billing_month: date
    period_from: date
    period_to: date
    statement_date: date
    due_date: date

    @classmethod
    def for_month(
        cls,
        billing_month: date,
        *,
        reading_day: int = 26,
        statement_day: int = 27,
        due_day: int = 6,
    ) -> "BillingSchedule":
        month = billing_month.replace(day=1)
        previous = previous_billing_month(month)
        previous_reading = _day_in(previous, reading_day)
        return cls(
            billing_month=month,
            period_from=date.fromordinal(previous_reading.toordinal() + 1),
            period_to=_day_in(month, reading_day),
            statement_date=_day_in(month, statement_day),
            due_date=_day_in(next_billing_month(month), due_day),
        )

    def is_overdue(self, as_of: date) -> bool:
        return as_of > self.due_date

    def months_overdue(self, as_of: date) -> int:
        return months_overdue(self.due_date, as_of)


def months_overdue(due_date: date, as_of: date) -> int:
    """Count completed months past the due date.

    Zero until a full month has passed: a bill due on the 6th is one month
    overdue from the 6th of the next month. When the due day does not exist
    in a month, the last day of that month completes it.
    """
    if as_of <= due_date:
        return 0

    months = (as_of.year - due_date.year) * 12 + (as_of.month - due_date.month)
    month_end = calendar.monthrange(as_of.year, as_of.month)[1]
    if as_of.day < due_date.day and as_of.day < month_end:
        months -= 1
    return max(0, months)


__all__ = [
    "BillingSchedule",
    "parse_billing_month",
    "format_billing_month",
    "shift_month",
    "next_billing_month",
    "previous_billing_month",
    "months_overdue",
]
