"""Unit ORM model for condominium units (residential or commercial)."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


class UnitType(str, Enum):
    """Unit classification; selects the water tier schedule."""

    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


class Unit(Base, BaseModel):
    """Model representing a billable condominium unit.

    The floor area drives association dues, the parking area drives the parking
    fee, and the unit type selects which water tier schedule applies. Inactive
    units are skipped by bill generation.
    """

    __tablename__ = "units"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )

    unit_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Unit identifier (e.g., 'M2-2F-16')",
    )
    floor_level: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    unit_type: Mapped[UnitType] = mapped_column(
        SQLEnum(UnitType),
        nullable=False,
        default=UnitType.RESIDENTIAL,
    )

    area: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Floor area in square meters",
    )
    parking_area: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Parking slot area in square meters",
    )

    owner_name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
        comment="Owner display name for statements",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="units",
    )
    advance_balance: Mapped["AdvanceBalance | None"] = relationship(  # noqa: F821
        "AdvanceBalance",
        back_populates="unit",
        uselist=False,
    )

    __table_args__ = (
        Index("idx_unit_tenant_number", "tenant_id", "unit_number", unique=True),
        Index("idx_unit_tenant_active", "tenant_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Unit(id={self.id}, tenant_id={self.tenant_id}, "
            f"unit_number={self.unit_number!r}, unit_type={self.unit_type}, "
            f"area={self.area}, parking_area={self.parking_area}, is_active={self.is_active})>"
        )


__all__ = ["Unit", "UnitType"]
