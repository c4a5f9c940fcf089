"""Tariff calculator: electric, tiered water, association dues and parking charges.

Pure functions over an immutable TariffConfig snapshot. No state, no I/O.

Water tiers follow the legacy billing spreadsheet cell for cell:

    =IF(J<=1, 80,
      IF(AND(J>1, J<6), 200,
        IF(AND(J>5, J<11), 370,
          IF(AND(J>10, J<21), (J-10)*40+370,
            IF(AND(J>20, J<31), (J-20)*45+770,
              IF(AND(J>30, J<41), (J-30)*50+1220,
                (J-40)*55+1720))))))

The configurable thresholds t1..t6 only choose the branch. The amounts
subtracted inside tiers 4-7 (10, 20, 30, 40) are fixed constants of the
formula (WATER_TIER_OFFSETS), not the thresholds. Moving a threshold without
moving these constants changes which branch applies but not the arithmetic
inside it. The coupling is inherited from the spreadsheet.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import NamedTuple

from condo_billing.models.unit import UnitType
from condo_billing.services.errors import TariffConfigError
from condo_billing.services.money import ZERO, round_money, to_decimal


# Subtrahends of tiers 4, 5, 6 and 7. Bound to the formula, not to TariffConfig.
WATER_TIER_OFFSETS: tuple[Decimal, Decimal, Decimal, Decimal] = (
    Decimal("10"),
    Decimal("20"),
    Decimal("30"),
    Decimal("40"),
)


@dataclass(frozen=True)
class WaterSchedule:
    """Seven-tier water schedule.

    thresholds: (t1, t2, t3, t4, t5, t6), strictly increasing
    rates: (r1, r2, r3, r4, r5, r6, r7); r1..r3 are flat charges,
        r4..r7 are per cu.m above the matching WATER_TIER_OFFSETS entry

    cumulative_bases holds the amount each of tiers 4-7 starts from. It is
    derived once, here, from r3 and the fixed offsets, so the bases can never
    disagree with the tier-3 charge or with the constants in force. With the
    reference residential rates this yields (370, 770, 1220, 1720).
    """

    thresholds: tuple[Decimal, ...]
    rates: tuple[Decimal, ...]
    cumulative_bases: tuple[Decimal, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if len(self.thresholds) != 6:
            raise TariffConfigError(
                f"Water schedule needs 6 thresholds, got {len(self.thresholds)}"
            )
        if len(self.rates) != 7:
            raise TariffConfigError(f"Water schedule needs 7 rates, got {len(self.rates)}")

        thresholds = tuple(to_decimal(t) for t in self.thresholds)
        rates = tuple(to_decimal(r) for r in self.rates)

        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise TariffConfigError(
                f"Water tier thresholds must be strictly increasing: {thresholds}"
            )
        if any(r < 0 for r in rates):
            raise TariffConfigError(f"Water tier rates cannot be negative: {rates}")

        bases = [rates[2]]
        for i in range(1, len(WATER_TIER_OFFSETS)):
            width = WATER_TIER_OFFSETS[i] - WATER_TIER_OFFSETS[i - 1]
            bases.append(bases[-1] + width * rates[2 + i])

        object.__setattr__(self, "thresholds", thresholds)
        object.__setattr__(self, "rates", rates)
        object.__setattr__(self, "cumulative_bases", tuple(bases))


RESIDENTIAL_WATER_SCHEDULE = WaterSchedule(
    thresholds=(1, 6, 11, 21, 31, 41),
    rates=(80, 200, 370, 40, 45, 50, 55),
)
COMMERCIAL_WATER_SCHEDULE = WaterSchedule(
    thresholds=(1, 6, 11, 21, 31, 41),
    rates=(200, 250, 740, 55, 60, 65, 85),
)


@dataclass(frozen=True)
class TariffConfig:
    """Immutable tariff snapshot passed explicitly into every calculation.

    Built from a tenant's TariffSettings row (TariffSettings.to_config()) or
    directly in tests and scripts.
    """

    electric_rate: Decimal
    electric_min_charge: Decimal
    association_dues_rate: Decimal
    penalty_rate: Decimal = Decimal("0.10")
    parking_rate: Decimal | None = None
    residential_water: WaterSchedule = RESIDENTIAL_WATER_SCHEDULE
    commercial_water: WaterSchedule = COMMERCIAL_WATER_SCHEDULE

    def __post_init__(self) -> None:
        for name in ("electric_rate", "electric_min_charge", "association_dues_rate", "penalty_rate"):
            value = getattr(self, name)
            if value is None:
                raise TariffConfigError(f"Tariff setting '{name}' is not configured")
            value = to_decimal(value)
            if value < 0:
                raise TariffConfigError(f"Tariff setting '{name}' cannot be negative: {value}")
            object.__setattr__(self, name, value)

        if self.parking_rate is not None:
            object.__setattr__(self, "parking_rate", to_decimal(self.parking_rate))

    @property
    def effective_parking_rate(self) -> Decimal:
        """Parking rate, defaulting to the association dues rate when unset."""
        if self.parking_rate is None:
            return self.association_dues_rate
        return self.parking_rate

    def schedule_for(self, unit_type: UnitType) -> WaterSchedule:
        if UnitType(unit_type) == UnitType.COMMERCIAL:
            return self.commercial_water
        return self.residential_water


class TariffCharges(NamedTuple):
    """Current-period tariff lines for one unit."""

    electric_amount: Decimal
    water_amount: Decimal
    water_tier: int
    association_dues: Decimal
    parking_fee: Decimal


def calculate_electric_charge(consumption, config: TariffConfig) -> Decimal:
    """Calculate the electric charge.

    Formula from the spreadsheet: =IF(E*F <= 50, 50, E*F). The minimum charge
    is a floor on the amount, not an additional fee.

    Args:
        consumption: kWh consumed in the period
        config: Tariff snapshot

    Returns:
        max(consumption × rate, minimum charge), rounded to centavos
    """
    amount = to_decimal(consumption) * config.electric_rate
    return round_money(max(amount, config.electric_min_charge))


def water_tier_for(consumption, schedule: WaterSchedule) -> int:
    """Return the tier (1-7) whose formula prices the given consumption."""
    cons = to_decimal(consumption)
    t1, t2, t3, t4, t5, t6 = schedule.thresholds

    if cons <= t1:
        return 1
    if cons < t2:
        return 2
    if cons < t3:
        return 3
    if cons < t4:
        return 4
    if cons < t5:
        return 5
    if cons < t6:
        return 6
    return 7


def calculate_tiered_water(consumption, schedule: WaterSchedule) -> Decimal:
    """Price water consumption through one seven-tier schedule.

    Tiers 1-3 are flat charges. Tiers 4-7 charge
    (consumption - WATER_TIER_OFFSETS[k]) × rate + cumulative base.
    """
    cons = to_decimal(consumption)
    tier = water_tier_for(cons, schedule)

    if tier <= 3:
        return round_money(schedule.rates[tier - 1])

    k = tier - 4
    amount = (cons - WATER_TIER_OFFSETS[k]) * schedule.rates[tier - 1] + schedule.cumulative_bases[k]
    return round_money(amount)


def calculate_water_charge(consumption, unit_type: UnitType, config: TariffConfig) -> Decimal:
    """Calculate the water charge using the schedule selected by unit type."""
    return calculate_tiered_water(consumption, config.schedule_for(unit_type))


def calculate_association_dues(area, config: TariffConfig) -> Decimal:
    """Association dues: area × dues rate."""
    return round_money(to_decimal(area) * config.association_dues_rate)


def calculate_parking_fee(parking_area, config: TariffConfig) -> Decimal:
    """Parking fee: parking area × parking rate (dues rate when unset)."""
    if not parking_area:
        return round_money(ZERO)
    return round_money(to_decimal(parking_area) * config.effective_parking_rate)


def calculate_charges(
    *,
    electric_consumption,
    water_consumption,
    unit_type: UnitType,
    area,
    parking_area,
    config: TariffConfig,
) -> TariffCharges:
    """Calculate every tariff line of a unit's current period."""
    schedule = config.schedule_for(unit_type)
    return TariffCharges(
        electric_amount=calculate_electric_charge(electric_consumption, config),
        water_amount=calculate_tiered_water(water_consumption, schedule),
        water_tier=water_tier_for(water_consumption, schedule),
        association_dues=calculate_association_dues(area, config),
        parking_fee=calculate_parking_fee(parking_area, config),
    )


__all__ = [
    "WATER_TIER_OFFSETS",
    "WaterSchedule",
    "RESIDENTIAL_WATER_SCHEDULE",
    "COMMERCIAL_WATER_SCHEDULE",
    "TariffConfig",
    "TariffCharges",
    "calculate_electric_charge",
    "water_tier_for",
    "calculate_tiered_water",
    "calculate_water_charge",
    "calculate_association_dues",
    "calculate_parking_fee",
    "calculate_charges",
]
