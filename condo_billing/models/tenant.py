"""Tenant ORM model: one condominium corporation using the billing engine."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


class Tenant(Base, BaseModel):
    """Model representing a condominium tenant (building / corporation).

    Every unit, bill, payment and tariff setting belongs to exactly one tenant.
    Tenant CRUD lives outside the engine; the engine only reads these rows.
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        unique=True,
        comment="Display name of the condominium",
    )

    # Relationships
    settings: Mapped["TariffSettings | None"] = relationship(  # noqa: F821
        "TariffSettings",
        back_populates="tenant",
        uselist=False,
        cascade="all, delete-orphan",
    )
    units: Mapped[list["Unit"]] = relationship(  # noqa: F821
        "Unit",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name!r})>"


__all__ = ["Tenant"]
