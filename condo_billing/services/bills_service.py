"""Period bill generation, preview and deletion.

Loads everything a billing month depends on for a whole tenant in one pass
(units, readings, adjustments, advance balances, open prior bills), then folds
each unit through assemble_bill. Generation persists the bills and draws the
advance balances in a single transaction.
"""

import logging
import re
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from condo_billing.models.advance_balance import AdvanceBalance
from condo_billing.models.bill import OPEN_STATUSES, Bill, BillStatus, BillType
from condo_billing.models.billing_adjustment import BillingAdjustment
from condo_billing.models.meter_reading import MeterReading, MeterType
from condo_billing.models.payment import Payment, PaymentStatus
from condo_billing.models.tenant import Tenant
from condo_billing.models.unit import Unit, UnitType
from condo_billing.services.audit_service import AuditService
from condo_billing.services.bill_assembler import (
    BillComputation,
    BillInputs,
    PriorBill,
    assemble_bill,
)
from condo_billing.services.billing_period import (
    BillingSchedule,
    format_billing_month,
    parse_billing_month,
    previous_billing_month,
)
from condo_billing.services.config import EngineSettings, get_settings
from condo_billing.services.errors import (
    DuplicateGenerationError,
    NotFoundError,
    ProtectedDeletionError,
    TariffConfigError,
)
from condo_billing.services.ledger import AdvanceBalanceLedger, LedgerBucket
from condo_billing.services.money import ZERO, round_money, to_decimal
from condo_billing.services.tariff import TariffConfig

logger = logging.getLogger(__name__)

_BILL_COUNTER_RE = re.compile(r"(\d+)$")


class ReadingSnapshot(NamedTuple):
    previous: Decimal
    present: Decimal
    consumption: Decimal


class BillPreview(NamedTuple):
    """One unit's bill as it would be generated."""

    unit_id: int
    unit_number: str
    owner_name: str | None
    floor_level: str | None
    unit_type: UnitType
    area: Decimal
    parking_area: Decimal
    electric_reading: ReadingSnapshot | None
    water_reading: ReadingSnapshot | None
    computation: BillComputation

    @property
    def warnings(self) -> list[str]:
        return self.computation.warnings

    @property
    def total_amount(self) -> Decimal:
        return self.computation.total_amount


class ValidationWarnings(NamedTuple):
    """Period-level checks shown to the operator before generating."""

    previous_month_label: str
    previous_month_bill_count: int
    previous_month_payments_count: int
    previous_month_unpaid_count: int
    adjustments_count: int

    @property
    def no_payments_recorded(self) -> bool:
        return self.previous_month_bill_count > 0 and self.previous_month_payments_count == 0

    @property
    def no_adjustments(self) -> bool:
        return self.adjustments_count == 0

    @property
    def messages(self) -> list[str]:
        messages = []
        if self.no_payments_recorded:
            messages.append(f"No payments recorded for {self.previous_month_label}")
        if self.previous_month_unpaid_count:
            messages.append(
                f"{self.previous_month_unpaid_count} bill(s) from "
                f"{self.previous_month_label} are still unpaid"
            )
        if self.no_adjustments:
            messages.append("No special assessments or discounts entered for this period")
        return messages


class PeriodPreview(NamedTuple):
    """Preview of a whole billing month for one tenant."""

    tenant_id: int
    schedule: BillingSchedule
    bills: list[BillPreview]
    validation: ValidationWarnings
    existing_bill_count: int

    @property
    def billing_month(self) -> str:
        return format_billing_month(self.schedule.billing_month)

    @property
    def total_amount(self) -> Decimal:
        return sum((bill.total_amount for bill in self.bills), ZERO)

    @property
    def units_with_warnings(self) -> list[BillPreview]:
        return [bill for bill in self.bills if bill.warnings]


class GenerationResult(NamedTuple):
    billing_month: str
    bills: list[Bill]
    total_amount: Decimal
    warnings: list[str]


class _PeriodData(NamedTuple):
    units: list[Unit]
    readings: dict[tuple[int, MeterType], MeterReading]
    adjustments: dict[int, BillingAdjustment]
    advances: dict[int, AdvanceBalance]
    prior_bills: dict[int, list[PriorBill]]


def _as_month(billing_month: str | date) -> date:
    if isinstance(billing_month, date):
        return billing_month.replace(day=1)
    return parse_billing_month(billing_month)


def _snapshot(reading: MeterReading | None) -> ReadingSnapshot | None:
    if reading is None:
        return None
    return ReadingSnapshot(
        previous=to_decimal(reading.previous_reading),
        present=to_decimal(reading.present_reading),
        consumption=reading.consumption,
    )


class BillsService:
    """Service for bill generation and lifecycle operations.

    Each public mutating method is one transaction: it commits on success and
    rolls back on any error, leaving no partial bills or ledger draws.
    """

    def __init__(self, db_session: Session, settings: EngineSettings | None = None):
        """Initialize with database session."""
        self.db = db_session
        self.settings = settings or get_settings()
        self.ledger = AdvanceBalanceLedger(db_session)

    # ------------------------------------------------------------------ loading

    def get_tariff_config(self, tenant_id: int) -> TariffConfig:
        """Tariff snapshot of a tenant.

        Raises:
            NotFoundError: If the tenant does not exist
            TariffConfigError: If the tenant has no tariff settings
        """
        tenant = self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        if tenant.settings is None:
            raise TariffConfigError(f"Tariff settings not configured for tenant '{tenant.name}'")
        return tenant.settings.to_config()

    def schedule_for(self, billing_month: date) -> BillingSchedule:
        return BillingSchedule.for_month(
            billing_month,
            reading_day=self.settings.reading_day,
            statement_day=self.settings.statement_day,
            due_day=self.settings.due_day,
        )

    def _load_period(self, tenant_id: int, month: date, *, for_update: bool = False) -> _PeriodData:
        units = (
            self.db.query(Unit)
            .filter(Unit.tenant_id == tenant_id, Unit.is_active == True)  # noqa: E712
            .order_by(Unit.floor_level.asc(), Unit.unit_number.asc())
            .all()
        )

        readings_stmt = (
            select(MeterReading)
            .join(Unit, Unit.id == MeterReading.unit_id)
            .where(Unit.tenant_id == tenant_id, MeterReading.billing_month == month)
        )
        readings = {
            (reading.unit_id, reading.meter_type): reading
            for reading in self.db.execute(readings_stmt).scalars()
        }

        adjustments_stmt = (
            select(BillingAdjustment)
            .join(Unit, Unit.id == BillingAdjustment.unit_id)
            .where(Unit.tenant_id == tenant_id, BillingAdjustment.billing_month == month)
        )
        adjustments = {adj.unit_id: adj for adj in self.db.execute(adjustments_stmt).scalars()}

        advances_stmt = (
            select(AdvanceBalance)
            .join(Unit, Unit.id == AdvanceBalance.unit_id)
            .where(Unit.tenant_id == tenant_id)
        )
        prior_stmt = select(Bill).where(
            Bill.tenant_id == tenant_id,
            Bill.billing_month < month,
            Bill.status.in_(OPEN_STATUSES),
        )
        if for_update:
            advances_stmt = advances_stmt.with_for_update(of=AdvanceBalance)
            prior_stmt = prior_stmt.with_for_update()

        advances = {row.unit_id: row for row in self.db.execute(advances_stmt).scalars()}

        prior_bills: dict[int, list[PriorBill]] = defaultdict(list)
        for bill in self.db.execute(prior_stmt).scalars():
            prior_bills[bill.unit_id].append(PriorBill.from_bill(bill))

        return _PeriodData(
            units=units,
            readings=readings,
            adjustments=adjustments,
            advances=advances,
            prior_bills=prior_bills,
        )

    def _inputs_for(self, unit: Unit, data: _PeriodData, schedule: BillingSchedule) -> BillInputs:
        electric = data.readings.get((unit.id, MeterType.ELECTRIC))
        water = data.readings.get((unit.id, MeterType.WATER))
        adjustment = data.adjustments.get(unit.id)
        advance = data.advances.get(unit.id)

        return BillInputs(
            billing_month=schedule.billing_month,
            statement_date=schedule.statement_date,
            unit_type=unit.unit_type,
            area=to_decimal(unit.area),
            parking_area=to_decimal(unit.parking_area),
            electric_consumption=electric.consumption if electric else None,
            water_consumption=water.consumption if water else None,
            sp_assessment=to_decimal(adjustment.sp_assessment) if adjustment else ZERO,
            discounts=to_decimal(adjustment.discounts) if adjustment else ZERO,
            advance_dues=to_decimal(advance.advance_dues) if advance else ZERO,
            advance_utilities=to_decimal(advance.advance_utilities) if advance else ZERO,
            prior_bills=tuple(data.prior_bills.get(unit.id, ())),
        )

    def _count_bills(self, tenant_id: int, month: date) -> int:
        """Bills of any type a tenant already has for a month."""
        return int(
            self.db.execute(
                select(func.count(Bill.id)).where(
                    Bill.tenant_id == tenant_id,
                    Bill.billing_month == month,
                )
            ).scalar()
            or 0
        )

    def _validation_warnings(self, tenant_id: int, month: date) -> ValidationWarnings:
        previous = previous_billing_month(month)

        payments_count = self.db.execute(
            select(func.count(Payment.id)).where(
                Payment.tenant_id == tenant_id,
                Payment.status == PaymentStatus.CONFIRMED,
                Payment.payment_date >= previous,
                Payment.payment_date < month,
            )
        ).scalar()

        previous_bills = (
            self.db.query(Bill)
            .filter(Bill.tenant_id == tenant_id, Bill.billing_month == previous)
            .all()
        )
        unpaid = [b for b in previous_bills if b.balance > 0 and b.status != BillStatus.PAID]

        adjustments_count = self.db.execute(
            select(func.count(BillingAdjustment.id))
            .join(Unit, Unit.id == BillingAdjustment.unit_id)
            .where(
                Unit.tenant_id == tenant_id,
                BillingAdjustment.billing_month == month,
                (BillingAdjustment.sp_assessment > 0) | (BillingAdjustment.discounts > 0),
            )
        ).scalar()

        return ValidationWarnings(
            previous_month_label=previous.strftime("%B %Y"),
            previous_month_bill_count=len(previous_bills),
            previous_month_payments_count=int(payments_count or 0),
            previous_month_unpaid_count=len(unpaid),
            adjustments_count=int(adjustments_count or 0),
        )

    def _next_bill_number(self, month: date, counter: int | None = None, kind: str = "") -> tuple[str, int]:
        prefix = self.settings.bill_number_prefix
        if counter is None:
            last_number = self.db.execute(
                select(Bill.bill_number)
                .where(Bill.bill_number.like(f"{prefix}-%"))
                .order_by(Bill.id.desc())
                .limit(1)
            ).scalar()
            match = _BILL_COUNTER_RE.search(last_number or "")
            counter = int(match.group(1)) if match else 0

        counter += 1
        parts = [prefix, kind, f"{month.year:04d}{month.month:02d}", f"{counter:04d}"]
        return "-".join(part for part in parts if part), counter

    # ------------------------------------------------------------------ preview

    def preview_period(self, tenant_id: int, billing_month: str | date) -> PeriodPreview:
        """Compute every active unit's bill for a month without writing anything.

        Missing readings are billed as zero consumption and reported per unit.

        Raises:
            InvalidBillingMonthError: If billing_month is malformed
            NotFoundError: If the tenant does not exist
            TariffConfigError: If tariff settings are missing or inconsistent
        """
        month = _as_month(billing_month)
        config = self.get_tariff_config(tenant_id)
        schedule = self.schedule_for(month)
        data = self._load_period(tenant_id, month)

        previews = []
        for unit in data.units:
            computation = assemble_bill(self._inputs_for(unit, data, schedule), config)
            previews.append(
                BillPreview(
                    unit_id=unit.id,
                    unit_number=unit.unit_number,
                    owner_name=unit.owner_name,
                    floor_level=unit.floor_level,
                    unit_type=unit.unit_type,
                    area=to_decimal(unit.area),
                    parking_area=to_decimal(unit.parking_area),
                    electric_reading=_snapshot(data.readings.get((unit.id, MeterType.ELECTRIC))),
                    water_reading=_snapshot(data.readings.get((unit.id, MeterType.WATER))),
                    computation=computation,
                )
            )

        preview = PeriodPreview(
            tenant_id=tenant_id,
            schedule=schedule,
            bills=previews,
            validation=self._validation_warnings(tenant_id, month),
            existing_bill_count=self._count_bills(tenant_id, month),
        )
        logger.info(
            "Previewed %d bills for tenant %d, %s: total %s, %d unit(s) with warnings",
            len(previews),
            tenant_id,
            preview.billing_month,
            preview.total_amount,
            len(preview.units_with_warnings),
        )
        return preview

    # --------------------------------------------------------------- generation

    def generate_period(
        self,
        tenant_id: int,
        billing_month: str | date,
        actor_id: int | None = None,
    ) -> GenerationResult:
        """Create the regular bills of a month and draw advance balances.

        A unit has at most one bill per month, so any existing bill for the
        month (opening balances included) blocks generation.

        Raises:
            DuplicateGenerationError: If bills already exist for the month
            NotFoundError: If the tenant does not exist
            TariffConfigError: If tariff settings are missing or inconsistent
        """
        month = _as_month(billing_month)
        label = format_billing_month(month)
        config = self.get_tariff_config(tenant_id)
        schedule = self.schedule_for(month)

        existing = self._count_bills(tenant_id, month)
        if existing:
            raise DuplicateGenerationError(label, existing)

        try:
            data = self._load_period(tenant_id, month, for_update=True)
            bills: list[Bill] = []
            warnings: list[str] = []
            counter: int | None = None

            for unit in data.units:
                computation = assemble_bill(self._inputs_for(unit, data, schedule), config)
                warnings.extend(f"{unit.unit_number}: {w}" for w in computation.warnings)

                self.ledger.draw(unit.id, LedgerBucket.DUES, computation.advance_dues_applied)
                self.ledger.draw(unit.id, LedgerBucket.UTILITIES, computation.advance_util_applied)

                bill_number, counter = self._next_bill_number(month, counter)
                bills.append(self._bill_from(unit, schedule, computation, bill_number))

            self.db.add_all(bills)
            self.db.flush()

            for bill in bills:
                AuditService.log(
                    self.db,
                    entity_type="bill",
                    entity_id=bill.id,
                    action="generate",
                    actor_id=actor_id,
                    changes={
                        "bill_number": bill.bill_number,
                        "billing_month": label,
                        "total_amount": str(bill.total_amount),
                    },
                )

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Bill generation for tenant %d, %s rolled back", tenant_id, label, exc_info=True)
            raise

        total = sum((bill.total_amount for bill in bills), ZERO)
        logger.info(
            "Generated %d bills for tenant %d, %s: total %s",
            len(bills),
            tenant_id,
            label,
            total,
        )
        return GenerationResult(billing_month=label, bills=bills, total_amount=total, warnings=warnings)

    def _bill_from(
        self,
        unit: Unit,
        schedule: BillingSchedule,
        computation: BillComputation,
        bill_number: str,
    ) -> Bill:
        return Bill(
            bill_number=bill_number,
            tenant_id=unit.tenant_id,
            unit_id=unit.id,
            bill_type=BillType.REGULAR,
            billing_month=schedule.billing_month,
            period_from=schedule.period_from,
            period_to=schedule.period_to,
            statement_date=schedule.statement_date,
            due_date=schedule.due_date,
            electric_consumption=round_money(computation.electric_consumption),
            water_consumption=round_money(computation.water_consumption),
            electric_amount=computation.electric_amount,
            water_amount=computation.water_amount,
            association_dues=computation.association_dues,
            parking_fee=computation.parking_fee,
            sp_assessment=computation.sp_assessment,
            discounts=computation.discounts,
            advance_dues_applied=computation.advance_dues_applied,
            advance_util_applied=computation.advance_util_applied,
            previous_balance=computation.previous_balance,
            penalty_amount=computation.penalty_amount,
            total_amount=computation.total_amount,
            paid_amount=ZERO,
            balance=computation.total_amount,
            status=computation.status,
        )

    # ----------------------------------------------------------------- deletion

    def _delete_bills(self, bills: list[Bill], actor_id: int | None) -> int:
        protected = [bill.bill_number for bill in bills if to_decimal(bill.paid_amount) > 0]
        if protected:
            raise ProtectedDeletionError(protected)

        try:
            for bill in bills:
                # Give back what the bill drew so a regeneration draws it again
                if bill.advance_dues_applied > 0:
                    self.ledger.credit(bill.unit_id, bill.advance_dues_applied, LedgerBucket.DUES)
                if bill.advance_util_applied > 0:
                    self.ledger.credit(bill.unit_id, bill.advance_util_applied, LedgerBucket.UTILITIES)
                AuditService.log(
                    self.db,
                    entity_type="bill",
                    entity_id=bill.id,
                    action="delete",
                    actor_id=actor_id,
                    changes={"bill_number": bill.bill_number, "total_amount": str(bill.total_amount)},
                )
                self.db.delete(bill)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Bill deletion rolled back", exc_info=True)
            raise

        return len(bills)

    def delete_period_bills(
        self,
        tenant_id: int,
        billing_month: str | date,
        actor_id: int | None = None,
    ) -> int:
        """Delete every bill of a month, opening balances included.

        Returns:
            Number of bills deleted (0 when the month has none)

        Raises:
            ProtectedDeletionError: If any of the bills has a payment allocated;
                nothing is deleted in that case
        """
        month = _as_month(billing_month)
        bills = list(
            self.db.execute(
                select(Bill)
                .where(Bill.tenant_id == tenant_id, Bill.billing_month == month)
                .with_for_update()
            ).scalars()
        )
        deleted = self._delete_bills(bills, actor_id)
        logger.info("Deleted %d bills for tenant %d, %s", deleted, tenant_id, format_billing_month(month))
        return deleted

    def delete_bill(self, bill_id: int, actor_id: int | None = None) -> None:
        """Delete one bill.

        Raises:
            NotFoundError: If the bill does not exist
            ProtectedDeletionError: If the bill has a payment allocated
        """
        bill = self.db.get(Bill, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        bill_number = bill.bill_number
        self._delete_bills([bill], actor_id)
        logger.info("Deleted bill %s", bill_number)

    # ------------------------------------------------------------ status upkeep

    def mark_overdue(self, tenant_id: int, as_of: date, actor_id: int | None = None) -> int:
        """Move UNPAID bills whose due date is before as_of to OVERDUE.

        Returns:
            Number of bills updated
        """
        bills = (
            self.db.query(Bill)
            .filter(
                Bill.tenant_id == tenant_id,
                Bill.status == BillStatus.UNPAID,
                Bill.due_date < as_of,
            )
            .all()
        )
        try:
            for bill in bills:
                bill.status = BillStatus.OVERDUE
                AuditService.log(
                    self.db,
                    entity_type="bill",
                    entity_id=bill.id,
                    action="mark_overdue",
                    actor_id=actor_id,
                    changes={"bill_number": bill.bill_number, "as_of": as_of.isoformat()},
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if bills:
            logger.info("Marked %d bill(s) overdue for tenant %d as of %s", len(bills), tenant_id, as_of)
        return len(bills)

    def get_open_bills(self, unit_id: int, *, for_update: bool = False) -> list[Bill]:
        """Open bills of a unit, oldest billing month first."""
        stmt = (
            select(Bill)
            .where(Bill.unit_id == unit_id, Bill.status.in_(OPEN_STATUSES))
            .order_by(Bill.billing_month.asc(), Bill.id.asc())
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.db.execute(stmt).scalars())

    # ---------------------------------------------------------- opening balance

    def record_opening_balance(
        self,
        unit_id: int,
        billing_month: str | date,
        amount,
        *,
        electric_amount=ZERO,
        water_amount=ZERO,
        association_dues=ZERO,
        parking_fee=ZERO,
        actor_id: int | None = None,
    ) -> Bill:
        """Carry debt from the previous billing system as an OPENING_BALANCE bill.

        amount is the full amount owed. The part above the listed current
        charges is migrated debt and never accrues penalty.

        Raises:
            NotFoundError: If the unit does not exist
            DuplicateGenerationError: If the unit already has a bill for the month
            ValueError: If amount is negative
        """
        unit = self.db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError(f"Unit {unit_id} not found")

        total = round_money(amount)
        if total < 0:
            raise ValueError(f"Opening balance cannot be negative: {total}")

        month = _as_month(billing_month)
        label = format_billing_month(month)
        exists = self.db.execute(
            select(func.count(Bill.id)).where(Bill.unit_id == unit_id, Bill.billing_month == month)
        ).scalar()
        if exists:
            raise DuplicateGenerationError(label, int(exists))

        schedule = self.schedule_for(month)
        bill_number, _ = self._next_bill_number(month, kind="OB")
        bill = Bill(
            bill_number=bill_number,
            tenant_id=unit.tenant_id,
            unit_id=unit.id,
            bill_type=BillType.OPENING_BALANCE,
            billing_month=month,
            period_from=schedule.period_from,
            period_to=schedule.period_to,
            statement_date=schedule.statement_date,
            due_date=schedule.due_date,
            electric_amount=round_money(electric_amount),
            water_amount=round_money(water_amount),
            association_dues=round_money(association_dues),
            parking_fee=round_money(parking_fee),
            total_amount=total,
            paid_amount=ZERO,
            balance=total,
            status=BillStatus.PAID if total <= 0 else BillStatus.UNPAID,
        )

        try:
            self.db.add(bill)
            self.db.flush()
            AuditService.log(
                self.db,
                entity_type="bill",
                entity_id=bill.id,
                action="opening_balance",
                actor_id=actor_id,
                changes={"bill_number": bill_number, "billing_month": label, "total_amount": str(total)},
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Recorded opening balance %s for unit %s (%s)", total, unit.unit_number, label)
        return bill


__all__ = [
    "ReadingSnapshot",
    "BillPreview",
    "ValidationWarnings",
    "PeriodPreview",
    "GenerationResult",
    "BillsService",
]
