"""Pytest configuration: in-memory database and billing fixtures."""

import os

# Set test environment BEFORE any imports from condo_billing
# so that the module-level engine and settings use it
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_FILE"] = ""

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from condo_billing.models import (  # noqa: E402
    Base,
    BillingAdjustment,
    MeterReading,
    MeterType,
    TariffSettings,
    Tenant,
    Unit,
    UnitType,
)
from condo_billing.services.config import EngineSettings  # noqa: E402


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def settings():
    """Engine settings with defaults, ignoring any local .env."""
    return EngineSettings(_env_file=None, database_url="sqlite:///:memory:", log_file=None)


@pytest.fixture
def tenant(db_session):
    """Tenant with the reference tariff settings."""
    tenant = Tenant(name="Megatower Residences")
    tenant.settings = TariffSettings()
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def make_unit(db_session, tenant):
    """Factory for units of the test tenant."""

    def _make_unit(
        unit_number: str,
        area="45",
        unit_type: UnitType = UnitType.RESIDENTIAL,
        parking_area="0",
        floor_level: str = "2F",
        is_active: bool = True,
    ) -> Unit:
        unit = Unit(
            tenant_id=tenant.id,
            unit_number=unit_number,
            floor_level=floor_level,
            unit_type=unit_type,
            area=Decimal(area),
            parking_area=Decimal(parking_area),
            owner_name=f"Owner of {unit_number}",
            is_active=is_active,
        )
        db_session.add(unit)
        db_session.commit()
        return unit

    return _make_unit


@pytest.fixture
def unit(make_unit):
    """Residential unit of 45 sqm without parking."""
    return make_unit("M2-2F-16")


@pytest.fixture
def add_readings(db_session):
    """Add electric and water readings (consumption = present - previous)."""

    def _add_readings(unit: Unit, month: date, electric=None, water=None) -> None:
        if electric is not None:
            db_session.add(
                MeterReading(
                    unit_id=unit.id,
                    meter_type=MeterType.ELECTRIC,
                    billing_month=month,
                    previous_reading=Decimal("1000"),
                    present_reading=Decimal("1000") + Decimal(str(electric)),
                )
            )
        if water is not None:
            db_session.add(
                MeterReading(
                    unit_id=unit.id,
                    meter_type=MeterType.WATER,
                    billing_month=month,
                    previous_reading=Decimal("200"),
                    present_reading=Decimal("200") + Decimal(str(water)),
                )
            )
        db_session.commit()

    return _add_readings


@pytest.fixture
def add_adjustment(db_session):
    """Add a special assessment / discount row."""

    def _add_adjustment(unit: Unit, month: date, sp_assessment="0", discounts="0") -> BillingAdjustment:
        adjustment = BillingAdjustment(
            unit_id=unit.id,
            billing_month=month,
            sp_assessment=Decimal(sp_assessment),
            discounts=Decimal(discounts),
        )
        db_session.add(adjustment)
        db_session.commit()
        return adjustment

    return _add_adjustment
