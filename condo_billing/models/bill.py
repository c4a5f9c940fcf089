"""Bill ORM model: one statement of account per unit per billing period."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


class BillStatus(str, Enum):
    """Settlement status of a bill."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    DRAFT = "draft"


OPEN_STATUSES = (BillStatus.UNPAID, BillStatus.PARTIAL, BillStatus.OVERDUE)
"""Statuses whose balance still rolls into the next bill."""


class BillType(str, Enum):
    """Origin of a bill."""

    REGULAR = "regular"
    """Generated from readings and tariffs for a billing month"""

    OPENING_BALANCE = "opening_balance"
    """Carries debt migrated from the previous billing system"""


def _money(comment: str) -> Mapped[Decimal]:
    return mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"), comment=comment)


class Bill(Base, BaseModel):
    """Statement of account for one unit and one billing month.

    Created once by bill generation and never recomputed in place. After
    creation only payment allocation changes paid_amount, balance and status.
    Correcting a bill means deleting it (allowed only while nothing is paid)
    and generating it again.
    """

    __tablename__ = "bills"

    bill_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Statement number (e.g., 'MT-202511-0042')",
    )
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
    )
    bill_type: Mapped[BillType] = mapped_column(
        SQLEnum(BillType),
        nullable=False,
        default=BillType.REGULAR,
    )

    # Period and schedule
    billing_month: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="First day of the billing month",
    )
    period_from: Mapped[date] = mapped_column(Date, nullable=False)
    period_to: Mapped[date] = mapped_column(Date, nullable=False)
    statement_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Consumption snapshot
    electric_consumption: Mapped[Decimal] = _money("Electric consumption in kWh")
    water_consumption: Mapped[Decimal] = _money("Water consumption in cu.m")

    # Components
    electric_amount: Mapped[Decimal] = _money("Electric charge")
    water_amount: Mapped[Decimal] = _money("Water charge")
    association_dues: Mapped[Decimal] = _money("Association dues")
    parking_fee: Mapped[Decimal] = _money("Parking fee")
    sp_assessment: Mapped[Decimal] = _money("Special assessment")
    discounts: Mapped[Decimal] = _money("Discounts")
    advance_dues_applied: Mapped[Decimal] = _money("Advance dues drawn by this bill")
    advance_util_applied: Mapped[Decimal] = _money("Advance utilities drawn by this bill")
    previous_balance: Mapped[Decimal] = _money("Unpaid balance of prior bills rolled in")
    penalty_amount: Mapped[Decimal] = _money("Compounded penalty on prior unpaid bills")

    # Settlement
    total_amount: Mapped[Decimal] = _money("Amount due")
    paid_amount: Mapped[Decimal] = _money("Sum of allocations")
    balance: Mapped[Decimal] = _money("total_amount - paid_amount")
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(BillStatus),
        nullable=False,
        default=BillStatus.UNPAID,
        index=True,
    )

    # Relationships
    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821
    payments: Mapped[list["BillPayment"]] = relationship(  # noqa: F821
        "BillPayment",
        back_populates="bill",
    )

    __table_args__ = (
        Index("idx_bill_unit_month", "unit_id", "billing_month", unique=True),
        Index("idx_bill_tenant_month", "tenant_id", "billing_month"),
        Index("idx_bill_unit_status", "unit_id", "status"),
    )

    @property
    def current_charges(self) -> Decimal:
        """Charges originating in this bill's own period (no carried debt or penalty)."""
        return (
            self.electric_amount
            + self.water_amount
            + self.association_dues
            + self.parking_fee
        )

    def __repr__(self) -> str:
        return (
            f"<Bill(id={self.id}, bill_number={self.bill_number!r}, unit_id={self.unit_id}, "
            f"month={self.billing_month}, total={self.total_amount}, paid={self.paid_amount}, "
            f"balance={self.balance}, status={self.status})>"
        )


__all__ = ["Bill", "BillStatus", "BillType", "OPEN_STATUSES"]
