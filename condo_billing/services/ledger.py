"""Advance balance ledger: per-unit credit held for future bills."""

import logging
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from condo_billing.models.advance_balance import AdvanceBalance
from condo_billing.models.unit import Unit
from condo_billing.services.money import CENT, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


class LedgerBucket(str, Enum):
    """Advance balance bucket."""

    DUES = "dues"
    UTILITIES = "utilities"


class ExcessSplitPolicy(str, Enum):
    """How an overpayment is divided between the two buckets."""

    UTILITIES = "utilities"
    """Whole excess to advance utilities"""

    SPLIT = "split"
    """Half to advance dues (rounded down to the centavo), remainder to utilities"""


class ExcessSplit(NamedTuple):
    dues: Decimal
    utilities: Decimal


class AdvanceSummaryRow(NamedTuple):
    unit_id: int
    unit_number: str
    owner_name: str | None
    advance_dues: Decimal
    advance_utilities: Decimal

    @property
    def total(self) -> Decimal:
        return self.advance_dues + self.advance_utilities


class AdvanceSummary(NamedTuple):
    units: list[AdvanceSummaryRow]
    total_dues: Decimal
    total_utilities: Decimal

    @property
    def total(self) -> Decimal:
        return self.total_dues + self.total_utilities


def split_excess(amount, policy: ExcessSplitPolicy = ExcessSplitPolicy.UTILITIES) -> ExcessSplit:
    """Divide an excess amount between the dues and utilities buckets.

    The two parts always add up to the rounded amount.
    """
    total = round_money(amount)
    if total <= 0:
        return ExcessSplit(dues=ZERO, utilities=ZERO)

    if ExcessSplitPolicy(policy) == ExcessSplitPolicy.SPLIT:
        dues = (total / 2).quantize(CENT, rounding=ROUND_DOWN)
        return ExcessSplit(dues=dues, utilities=total - dues)
    return ExcessSplit(dues=ZERO, utilities=total)


class AdvanceBalanceLedger:
    """Credit and draw operations on a unit's advance balance.

    Works inside the caller's transaction: nothing here commits. Draws clamp
    to what is available, so neither bucket can go negative.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def get(self, unit_id: int, *, for_update: bool = False) -> AdvanceBalance | None:
        """Return the unit's ledger row, or None if it never had an advance."""
        stmt = select(AdvanceBalance).where(AdvanceBalance.unit_id == unit_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def _get_or_create(self, unit_id: int) -> AdvanceBalance:
        row = self.get(unit_id, for_update=True)
        if row is None:
            row = AdvanceBalance(unit_id=unit_id, advance_dues=ZERO, advance_utilities=ZERO)
            self.db.add(row)
            self.db.flush()
        return row

    def available(self, unit_id: int) -> ExcessSplit:
        """Available (dues, utilities); zero for a unit without a row."""
        row = self.get(unit_id)
        if row is None:
            return ExcessSplit(dues=ZERO, utilities=ZERO)
        return ExcessSplit(dues=to_decimal(row.advance_dues), utilities=to_decimal(row.advance_utilities))

    def credit(self, unit_id: int, amount, bucket: LedgerBucket) -> AdvanceBalance:
        """Add a non-negative amount to one bucket."""
        value = round_money(amount)
        if value < 0:
            raise ValueError(f"Cannot credit a negative amount: {value}")

        row = self._get_or_create(unit_id)
        if LedgerBucket(bucket) == LedgerBucket.DUES:
            row.advance_dues = to_decimal(row.advance_dues) + value
        else:
            row.advance_utilities = to_decimal(row.advance_utilities) + value

        logger.debug("Credited %s to unit %d advance %s", value, unit_id, LedgerBucket(bucket).value)
        return row

    def credit_excess(
        self,
        unit_id: int,
        amount,
        policy: ExcessSplitPolicy = ExcessSplitPolicy.UTILITIES,
    ) -> ExcessSplit:
        """Credit a payment excess using the split policy; returns what went where."""
        split = split_excess(amount, policy)
        if split.dues > 0:
            self.credit(unit_id, split.dues, LedgerBucket.DUES)
        if split.utilities > 0:
            self.credit(unit_id, split.utilities, LedgerBucket.UTILITIES)
        if split.dues > 0 or split.utilities > 0:
            logger.info(
                "Unit %d advance credited: dues=%s utilities=%s",
                unit_id,
                split.dues,
                split.utilities,
            )
        return split

    def draw(self, unit_id: int, bucket: LedgerBucket, amount) -> Decimal:
        """Draw up to `amount` from a bucket.

        Returns:
            The amount actually drawn; less than requested when the bucket
            holds less. Never raises for an over-draw.
        """
        requested = round_money(amount)
        if requested <= 0:
            return ZERO

        row = self.get(unit_id, for_update=True)
        if row is None:
            return ZERO

        if LedgerBucket(bucket) == LedgerBucket.DUES:
            drawn = min(requested, to_decimal(row.advance_dues))
            row.advance_dues = to_decimal(row.advance_dues) - drawn
        else:
            drawn = min(requested, to_decimal(row.advance_utilities))
            row.advance_utilities = to_decimal(row.advance_utilities) - drawn

        if drawn < requested:
            logger.debug(
                "Unit %d advance %s draw clamped: requested %s, drawn %s",
                unit_id,
                LedgerBucket(bucket).value,
                requested,
                drawn,
            )
        return drawn

    def summary(self, tenant_id: int) -> AdvanceSummary:
        """Units of a tenant holding a positive advance, with totals."""
        stmt = (
            select(AdvanceBalance, Unit)
            .join(Unit, Unit.id == AdvanceBalance.unit_id)
            .where(Unit.tenant_id == tenant_id)
            .where((AdvanceBalance.advance_dues > 0) | (AdvanceBalance.advance_utilities > 0))
            .order_by(Unit.unit_number.asc())
        )

        units: list[AdvanceSummaryRow] = []
        total_dues = ZERO
        total_utilities = ZERO
        for balance, unit in self.db.execute(stmt).all():
            dues = to_decimal(balance.advance_dues)
            utilities = to_decimal(balance.advance_utilities)
            units.append(
                AdvanceSummaryRow(
                    unit_id=unit.id,
                    unit_number=unit.unit_number,
                    owner_name=unit.owner_name,
                    advance_dues=dues,
                    advance_utilities=utilities,
                )
            )
            total_dues += dues
            total_utilities += utilities

        return AdvanceSummary(
            units=units, total_dues=round_money(total_dues), total_utilities=round_money(total_utilities)
        )


__all__ = [
    "LedgerBucket",
    "ExcessSplitPolicy",
    "ExcessSplit",
    "AdvanceSummaryRow",
    "AdvanceSummary",
    "split_excess",
    "AdvanceBalanceLedger",
]
