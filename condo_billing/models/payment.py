"""Payment and bill-payment (allocation line) ORM models."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


class PaymentMethod(str, Enum):
    """How the payment was tendered."""

    CASH = "cash"
    CHECK = "check"
    BANK_TRANSFER = "bank_transfer"
    GCASH = "gcash"
    OTHER = "other"


class PaymentStatus(str, Enum):
    """Lifecycle of a payment record."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def _optional_money(comment: str) -> Mapped[Decimal | None]:
    return mapped_column(Numeric(12, 2), nullable=True, comment=comment)


def _money(comment: str) -> Mapped[Decimal]:
    return mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"), comment=comment)


class Payment(Base, BaseModel):
    """One payment event received from a unit owner.

    The component breakdown is what the payer declared on the receipt; the
    actual application to bills is recorded by BillPayment rows. excess_dues and
    excess_utilities hold what the payment credited to the advance balance.
    """

    __tablename__ = "payments"

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

    or_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Official receipt number (unique per tenant)",
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod),
        nullable=False,
        default=PaymentMethod.CASH,
    )
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Declared component breakdown (optional)
    electric_amount: Mapped[Decimal | None] = _optional_money("Declared electric portion")
    water_amount: Mapped[Decimal | None] = _optional_money("Declared water portion")
    dues_amount: Mapped[Decimal | None] = _optional_money("Declared dues portion")
    penalty_amount: Mapped[Decimal | None] = _optional_money("Declared penalty portion")
    sp_assessment_amount: Mapped[Decimal | None] = _optional_money("Declared special assessment")
    other_amount: Mapped[Decimal | None] = _optional_money("Declared other portion")

    # Excess routed to the advance balance ledger
    excess_dues: Mapped[Decimal] = _money("Excess credited to advance dues")
    excess_utilities: Mapped[Decimal] = _money("Excess credited to advance utilities")

    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.CONFIRMED,
    )

    bill_payments: Mapped[list["BillPayment"]] = relationship(
        "BillPayment",
        back_populates="payment",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_payment_tenant_or", "tenant_id", "or_number", unique=True),
        Index("idx_payment_unit_date", "unit_id", "payment_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, unit_id={self.unit_id}, or_number={self.or_number!r}, "
            f"amount={self.total_amount}, date={self.payment_date}, status={self.status})>"
        )


class BillPayment(Base, BaseModel):
    """Amount of one payment applied to one bill, with its component split.

    Never updated. The sum of a bill's rows equals the bill's paid_amount.
    """

    __tablename__ = "bill_payments"

    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payments.id"),
        nullable=False,
        index=True,
    )
    bill_id: Mapped[int] = mapped_column(
        ForeignKey("bills.id"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    electric_amount: Mapped[Decimal] = _money("Electric share")
    water_amount: Mapped[Decimal] = _money("Water share")
    dues_amount: Mapped[Decimal] = _money("Association dues and parking share")
    penalty_amount: Mapped[Decimal] = _money("Penalty share")
    sp_assessment_amount: Mapped[Decimal] = _money("Special assessment share")
    other_amount: Mapped[Decimal] = _money("Carried balance, deductions and rounding")

    payment: Mapped["Payment"] = relationship("Payment", back_populates="bill_payments")
    bill: Mapped["Bill"] = relationship("Bill", back_populates="payments")  # noqa: F821

    __table_args__ = (Index("idx_bill_payment_pair", "payment_id", "bill_id", unique=True),)

    def __repr__(self) -> str:
        return (
            f"<BillPayment(id={self.id}, payment_id={self.payment_id}, "
            f"bill_id={self.bill_id}, amount={self.amount})>"
        )


__all__ = ["Payment", "BillPayment", "PaymentMethod", "PaymentStatus"]
