"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from condo_billing.models.advance_balance import AdvanceBalance  # noqa: E402
from condo_billing.models.audit_log import AuditLog  # noqa: E402
from condo_billing.models.bill import Bill, BillStatus, BillType  # noqa: E402
from condo_billing.models.billing_adjustment import BillingAdjustment  # noqa: E402
from condo_billing.models.meter_reading import MeterReading, MeterType  # noqa: E402
from condo_billing.models.payment import (  # noqa: E402
    BillPayment,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from condo_billing.models.tariff_settings import TariffSettings  # noqa: E402
from condo_billing.models.tenant import Tenant  # noqa: E402
from condo_billing.models.unit import Unit, UnitType  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "AdvanceBalance",
    "AuditLog",
    "Bill",
    "BillStatus",
    "BillType",
    "BillingAdjustment",
    "BillPayment",
    "MeterReading",
    "MeterType",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "TariffSettings",
    "Tenant",
    "Unit",
    "UnitType",
]
