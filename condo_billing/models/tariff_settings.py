"""Tariff settings ORM model: per-tenant rates and water tier schedules."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_billing.models import Base, BaseModel


def _rate(default: str, comment: str) -> Mapped[Decimal]:
    return mapped_column(Numeric(12, 4), nullable=False, default=Decimal(default), comment=comment)


class TariffSettings(Base, BaseModel):
    """Tenant-owned tariff configuration.

    Edited only through the settings screens; the billing engine never reads
    this row directly but works on the immutable snapshot from ``to_config()``.

    Defaults are the reference schedules of the legacy billing spreadsheet.
    """

    __tablename__ = "tariff_settings"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        unique=True,
    )

    electric_rate: Mapped[Decimal] = _rate("8.39", "Electric rate per kWh")
    electric_min_charge: Mapped[Decimal] = _rate("50", "Electric minimum charge (floor)")
    association_dues_rate: Mapped[Decimal] = _rate("60", "Association dues per sqm")
    parking_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 4),
        nullable=True,
        comment="Parking rate per sqm (falls back to association dues rate)",
    )
    penalty_rate: Mapped[Decimal] = _rate("0.10", "Monthly penalty rate as a fraction")

    # Residential water schedule
    water_res_tier1_max: Mapped[Decimal] = _rate("1", "Residential tier 1 upper bound")
    water_res_tier2_max: Mapped[Decimal] = _rate("6", "Residential tier 2 upper bound")
    water_res_tier3_max: Mapped[Decimal] = _rate("11", "Residential tier 3 upper bound")
    water_res_tier4_max: Mapped[Decimal] = _rate("21", "Residential tier 4 upper bound")
    water_res_tier5_max: Mapped[Decimal] = _rate("31", "Residential tier 5 upper bound")
    water_res_tier6_max: Mapped[Decimal] = _rate("41", "Residential tier 6 upper bound")
    water_res_tier1_rate: Mapped[Decimal] = _rate("80", "Residential tier 1 flat charge")
    water_res_tier2_rate: Mapped[Decimal] = _rate("200", "Residential tier 2 flat charge")
    water_res_tier3_rate: Mapped[Decimal] = _rate("370", "Residential tier 3 flat charge")
    water_res_tier4_rate: Mapped[Decimal] = _rate("40", "Residential tier 4 rate per cu.m")
    water_res_tier5_rate: Mapped[Decimal] = _rate("45", "Residential tier 5 rate per cu.m")
    water_res_tier6_rate: Mapped[Decimal] = _rate("50", "Residential tier 6 rate per cu.m")
    water_res_tier7_rate: Mapped[Decimal] = _rate("55", "Residential tier 7 rate per cu.m")

    # Commercial water schedule
    water_com_tier1_max: Mapped[Decimal] = _rate("1", "Commercial tier 1 upper bound")
    water_com_tier2_max: Mapped[Decimal] = _rate("6", "Commercial tier 2 upper bound")
    water_com_tier3_max: Mapped[Decimal] = _rate("11", "Commercial tier 3 upper bound")
    water_com_tier4_max: Mapped[Decimal] = _rate("21", "Commercial tier 4 upper bound")
    water_com_tier5_max: Mapped[Decimal] = _rate("31", "Commercial tier 5 upper bound")
    water_com_tier6_max: Mapped[Decimal] = _rate("41", "Commercial tier 6 upper bound")
    water_com_tier1_rate: Mapped[Decimal] = _rate("200", "Commercial tier 1 flat charge")
    water_com_tier2_rate: Mapped[Decimal] = _rate("250", "Commercial tier 2 flat charge")
    water_com_tier3_rate: Mapped[Decimal] = _rate("740", "Commercial tier 3 flat charge")
    water_com_tier4_rate: Mapped[Decimal] = _rate("55", "Commercial tier 4 rate per cu.m")
    water_com_tier5_rate: Mapped[Decimal] = _rate("60", "Commercial tier 5 rate per cu.m")
    water_com_tier6_rate: Mapped[Decimal] = _rate("65", "Commercial tier 6 rate per cu.m")
    water_com_tier7_rate: Mapped[Decimal] = _rate("85", "Commercial tier 7 rate per cu.m")

    # Relationships
    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="settings",
    )

    def _schedule(self, prefix: str):
        from condo_billing.services.tariff import WaterSchedule

        return WaterSchedule(
            thresholds=tuple(getattr(self, f"{prefix}_tier{i}_max") for i in range(1, 7)),
            rates=tuple(getattr(self, f"{prefix}_tier{i}_rate") for i in range(1, 8)),
        )

    def to_config(self):
        """Build the immutable TariffConfig snapshot used by the calculators.

        Raises:
            TariffConfigError: If the stored schedules are inconsistent
        """
        from condo_billing.services.tariff import TariffConfig

        return TariffConfig(
            electric_rate=self.electric_rate,
            electric_min_charge=self.electric_min_charge,
            association_dues_rate=self.association_dues_rate,
            parking_rate=self.parking_rate,
            penalty_rate=self.penalty_rate,
            residential_water=self._schedule("water_res"),
            commercial_water=self._schedule("water_com"),
        )

    def __repr__(self) -> str:
        return (
            f"<TariffSettings(id={self.id}, tenant_id={self.tenant_id}, "
            f"electric_rate={self.electric_rate}, "
            f"association_dues_rate={self.association_dues_rate}, "
            f"penalty_rate={self.penalty_rate})>"
        )


__all__ = ["TariffSettings"]
