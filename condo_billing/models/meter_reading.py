"""Meter reading ORM model for electric and water consumption per billing period."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


class MeterType(str, Enum):
    """Kind of meter a reading belongs to."""

    ELECTRIC = "electric"
    WATER = "water"


class MeterReading(Base, BaseModel):
    """One meter reading per unit, meter type and billing month.

    Created by the reading-entry workflow; the billing engine only reads it.
    """

    __tablename__ = "meter_readings"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
    )
    meter_type: Mapped[MeterType] = mapped_column(
        SQLEnum(MeterType),
        nullable=False,
    )
    billing_month: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="First day of the billing month the reading belongs to",
    )
    previous_reading: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    present_reading: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (
        Index(
            "idx_reading_unit_type_month",
            "unit_id",
            "meter_type",
            "billing_month",
            unique=True,
        ),
        Index("idx_reading_month", "billing_month"),
    )

    @property
    def consumption(self) -> Decimal:
        """Consumption for the period (present - previous)."""
        return Decimal(str(self.present_reading)) - Decimal(str(self.previous_reading))

    def __repr__(self) -> str:
        return (
            f"<MeterReading(id={self.id}, unit_id={self.unit_id}, type={self.meter_type}, "
            f"month={self.billing_month}, previous={self.previous_reading}, "
            f"present={self.present_reading})>"
        )


__all__ = ["MeterReading", "MeterType"]
