"""Billing adjustment ORM model (special assessment and discounts per unit and period)."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from condo_billing.models import Base, BaseModel


class BillingAdjustment(Base, BaseModel):
    """Optional per-unit, per-period adjustment consumed as-is by bill generation."""

    __tablename__ = "billing_adjustments"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
    )
    billing_month: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )
    sp_assessment: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Special assessment added to the bill",
    )
    discounts: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Discount subtracted from the bill",
    )

    __table_args__ = (
        Index("idx_adjustment_unit_month", "unit_id", "billing_month", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<BillingAdjustment(id={self.id}, unit_id={self.unit_id}, "
            f"month={self.billing_month}, sp_assessment={self.sp_assessment}, "
            f"discounts={self.discounts})>"
        )


__all__ = ["BillingAdjustment"]
