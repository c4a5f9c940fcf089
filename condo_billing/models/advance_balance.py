"""Advance balance ORM model: per-unit credit from overpayments."""

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


class AdvanceBalance(Base, BaseModel):
    """Running advance credit for one unit, split into dues and utilities buckets.

    At most one row per unit. Only the advance balance ledger service writes it.
    """

    __tablename__ = "unit_advance_balances"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        unique=True,
    )
    advance_dues: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Credit usable against association dues",
    )
    advance_utilities: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Credit usable against electric + water charges",
    )

    unit: Mapped["Unit"] = relationship(  # noqa: F821
        "Unit",
        back_populates="advance_balance",
    )

    __table_args__ = (
        CheckConstraint("advance_dues >= 0", name="ck_advance_dues_non_negative"),
        CheckConstraint("advance_utilities >= 0", name="ck_advance_utilities_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<AdvanceBalance(unit_id={self.unit_id}, advance_dues={self.advance_dues}, "
            f"advance_utilities={self.advance_utilities})>"
        )


__all__ = ["AdvanceBalance"]
