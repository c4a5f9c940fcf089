"""Integration tests for period bill preview, generation and deletion."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from condo_billing.models import AuditLog, Bill, BillStatus, BillType, UnitType
from condo_billing.services.bills_service import BillsService
from condo_billing.services.errors import (
    DuplicateGenerationError,
    InvalidBillingMonthError,
    NotFoundError,
    ProtectedDeletionError,
    TariffConfigError,
)
from condo_billing.services.ledger import AdvanceBalanceLedger, LedgerBucket

NOVEMBER = date(2025, 11, 1)


@pytest.fixture
def service(db_session, settings):
    return BillsService(db_session, settings)


class TestPreviewPeriod:
    """Preview computes bills without writing."""

    def test_reference_scenario(self, service, tenant, unit, add_readings, db_session):
        add_readings(unit, NOVEMBER, electric=250, water=15)

        preview = service.preview_period(tenant.id, "2025-11")

        assert preview.billing_month == "2025-11"
        assert len(preview.bills) == 1
        bill = preview.bills[0]
        assert bill.computation.electric_amount == Decimal("2097.50")
        assert bill.computation.water_amount == Decimal("570.00")
        assert bill.computation.association_dues == Decimal("2700.00")
        assert bill.total_amount == Decimal("5367.50")
        assert bill.electric_reading.consumption == Decimal("250")
        assert bill.warnings == []
        assert db_session.query(Bill).count() == 0

    def test_missing_readings_are_warnings(self, service, tenant, unit):
        preview = service.preview_period(tenant.id, "2025-11")

        assert preview.bills[0].warnings == [
            "Missing electric meter reading",
            "Missing water meter reading",
        ]
        assert preview.units_with_warnings == preview.bills
        assert preview.bills[0].total_amount == Decimal("2830.00")

    def test_inactive_units_skipped(self, service, tenant, make_unit):
        make_unit("A-1")
        make_unit("A-2", is_active=False)

        preview = service.preview_period(tenant.id, NOVEMBER)

        assert [b.unit_number for b in preview.bills] == ["A-1"]

    def test_commercial_unit_with_parking(self, service, tenant, make_unit, add_readings):
        shop = make_unit("G-01", area="30", unit_type=UnitType.COMMERCIAL, parking_area="12.5")
        add_readings(shop, NOVEMBER, electric=100, water=15)

        bill = service.preview_period(tenant.id, "2025-11").bills[0]

        assert bill.computation.water_amount == Decimal("1015.00")
        assert bill.computation.parking_fee == Decimal("750.00")
        assert bill.total_amount == Decimal("839.00") + Decimal("1015.00") + Decimal("1800.00") + Decimal("750.00")

    def test_adjustments_applied(self, service, tenant, unit, add_readings, add_adjustment):
        add_readings(unit, NOVEMBER, electric=250, water=15)
        add_adjustment(unit, NOVEMBER, sp_assessment="1000", discounts="100")

        preview = service.preview_period(tenant.id, "2025-11")

        assert preview.bills[0].total_amount == Decimal("6267.50")
        assert preview.validation.adjustments_count == 1
        assert not preview.validation.no_adjustments

    def test_validation_warnings(self, service, tenant, unit, add_readings):
        add_readings(unit, date(2025, 10, 1), electric=100, water=10)
        service.generate_period(tenant.id, "2025-10")

        preview = service.preview_period(tenant.id, "2025-11")

        assert preview.validation.previous_month_label == "October 2025"
        assert preview.validation.no_payments_recorded
        assert preview.validation.previous_month_unpaid_count == 1
        assert preview.validation.no_adjustments
        assert len(preview.validation.messages) == 3

    def test_invalid_month(self, service, tenant):
        with pytest.raises(InvalidBillingMonthError):
            service.preview_period(tenant.id, "2025-13")

    def test_unknown_tenant(self, service):
        with pytest.raises(NotFoundError):
            service.preview_period(999, "2025-11")

    def test_tenant_without_tariff(self, service, db_session):
        from condo_billing.models import Tenant

        bare = Tenant(name="No Settings")
        db_session.add(bare)
        db_session.commit()

        with pytest.raises(TariffConfigError):
            service.preview_period(bare.id, "2025-11")


class TestGeneratePeriod:
    """Generation persists bills and draws advances."""

    def test_creates_bills(self, service, tenant, make_unit, add_readings, db_session):
        a = make_unit("A-101")
        b = make_unit("A-102", area="30")
        add_readings(a, NOVEMBER, electric=250, water=15)
        add_readings(b, NOVEMBER, electric=3, water=1)

        result = service.generate_period(tenant.id, "2025-11", actor_id=7)

        assert result.billing_month == "2025-11"
        assert len(result.bills) == 2
        bill = db_session.query(Bill).filter(Bill.unit_id == a.id).one()
        assert bill.total_amount == Decimal("5367.50")
        assert bill.balance == bill.total_amount
        assert bill.paid_amount == Decimal("0")
        assert bill.status == BillStatus.UNPAID
        assert bill.bill_type == BillType.REGULAR
        assert bill.period_from == date(2025, 10, 27)
        assert bill.due_date == date(2025, 12, 6)
        assert bill.electric_consumption == Decimal("250")

        other = db_session.query(Bill).filter(Bill.unit_id == b.id).one()
        assert other.total_amount == Decimal("50.00") + Decimal("80.00") + Decimal("1800.00")

    def test_bill_numbers_sequential(self, service, tenant, make_unit):
        make_unit("A-101")
        make_unit("A-102")

        result = service.generate_period(tenant.id, "2025-11")

        assert sorted(b.bill_number for b in result.bills) == ["MT-202511-0001", "MT-202511-0002"]

        second = service.generate_period(tenant.id, "2025-12")
        assert sorted(b.bill_number for b in second.bills) == ["MT-202512-0003", "MT-202512-0004"]

    def test_duplicate_generation_rejected(self, service, tenant, unit):
        service.generate_period(tenant.id, "2025-11")

        with pytest.raises(DuplicateGenerationError, match="Found 1 existing bill"):
            service.generate_period(tenant.id, "2025-11")

    def test_advance_drawn(self, service, tenant, unit, add_readings, db_session):
        add_readings(unit, NOVEMBER, electric=250, water=15)
        ledger = AdvanceBalanceLedger(db_session)
        ledger.credit(unit.id, Decimal("3000"), LedgerBucket.DUES)
        ledger.credit(unit.id, Decimal("100"), LedgerBucket.UTILITIES)
        db_session.commit()

        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        assert bill.advance_dues_applied == Decimal("2700.00")
        assert bill.advance_util_applied == Decimal("100.00")
        assert bill.total_amount == Decimal("2567.50")
        assert ledger.available(unit.id) == (Decimal("300.00"), Decimal("0.00"))

    def test_last_month_balance_carried_in_grace(self, service, tenant, unit, add_readings):
        add_readings(unit, date(2025, 10, 1), electric=250, water=15)
        add_readings(unit, NOVEMBER, electric=250, water=15)
        service.generate_period(tenant.id, "2025-10")

        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        assert bill.previous_balance == Decimal("5367.50")
        assert bill.penalty_amount == Decimal("0.00")
        assert bill.total_amount == Decimal("5367.50") * 2

    def test_previous_balance_and_penalty_carried(self, service, tenant, unit, add_readings):
        add_readings(unit, date(2025, 9, 1), electric=250, water=15)
        add_readings(unit, NOVEMBER, electric=250, water=15)
        service.generate_period(tenant.id, "2025-09")

        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        # September bill was due Oct 6, a full month before the Nov 27 statement
        assert bill.previous_balance == Decimal("5367.50")
        assert bill.penalty_amount == Decimal("536.75")
        assert bill.total_amount == Decimal("5367.50") * 2 + Decimal("536.75")

    def test_audit_entries_written(self, service, tenant, unit, db_session):
        result = service.generate_period(tenant.id, "2025-11", actor_id=3)

        entry = db_session.query(AuditLog).filter(AuditLog.entity_type == "bill").one()
        assert entry.entity_id == result.bills[0].id
        assert entry.action == "generate"
        assert entry.actor_id == 3


class TestDeletion:
    """Deletion guards and advance restoration."""

    def test_delete_then_regenerate_reproduces_bill(
        self, service, tenant, unit, add_readings, db_session
    ):
        add_readings(unit, NOVEMBER, electric=250, water=15)
        AdvanceBalanceLedger(db_session).credit(unit.id, Decimal("1000"), LedgerBucket.DUES)
        db_session.commit()

        first = service.generate_period(tenant.id, "2025-11").bills[0]
        first_figures = (first.total_amount, first.advance_dues_applied, first.balance)

        assert service.delete_period_bills(tenant.id, "2025-11") == 1
        assert AdvanceBalanceLedger(db_session).available(unit.id).dues == Decimal("1000.00")

        second = service.generate_period(tenant.id, "2025-11").bills[0]
        assert (second.total_amount, second.advance_dues_applied, second.balance) == first_figures

    def test_paid_bill_protected(self, service, tenant, unit, db_session):
        bill = service.generate_period(tenant.id, "2025-11").bills[0]
        bill.paid_amount = Decimal("10")
        db_session.commit()

        with pytest.raises(ProtectedDeletionError, match="Void the payments first"):
            service.delete_period_bills(tenant.id, "2025-11")
        with pytest.raises(ProtectedDeletionError):
            service.delete_bill(bill.id)
        assert db_session.query(Bill).count() == 1

    def test_delete_single_bill(self, service, tenant, unit, db_session):
        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        service.delete_bill(bill.id)

        assert db_session.query(Bill).count() == 0

    def test_delete_unknown_bill(self, service):
        with pytest.raises(NotFoundError):
            service.delete_bill(12345)

    def test_delete_empty_month(self, service, tenant):
        assert service.delete_period_bills(tenant.id, "2025-11") == 0


class TestMarkOverdue:
    def test_audited(self, service, tenant, unit, db_session):
        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        service.mark_overdue(tenant.id, date(2025, 12, 7), actor_id=4)

        entry = (
            db_session.query(AuditLog)
            .filter(AuditLog.entity_type == "bill", AuditLog.action == "mark_overdue")
            .one()
        )
        assert entry.entity_id == bill.id
        assert entry.actor_id == 4
        assert entry.changes == {"bill_number": bill.bill_number, "as_of": "2025-12-07"}

    def test_marks_unpaid_past_due(self, service, tenant, unit, db_session):
        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        assert service.mark_overdue(tenant.id, date(2025, 12, 6)) == 0
        assert service.mark_overdue(tenant.id, date(2025, 12, 7)) == 1

        db_session.refresh(bill)
        assert bill.status == BillStatus.OVERDUE

    def test_overdue_bill_still_rolls_forward(self, service, tenant, unit, db_session):
        service.generate_period(tenant.id, "2025-09")
        service.mark_overdue(tenant.id, date(2025, 10, 20))

        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        assert bill.previous_balance == Decimal("2830.00")
        assert bill.penalty_amount == Decimal("283.00")


class TestOpeningBalance:
    def test_record_opening_balance(self, service, tenant, unit, db_session):
        bill = service.record_opening_balance(
            unit.id,
            "2025-10",
            Decimal("12000"),
            association_dues=Decimal("2700"),
            electric_amount=Decimal("300"),
        )

        assert bill.bill_type == BillType.OPENING_BALANCE
        assert bill.bill_number.startswith("MT-OB-202510-")
        assert bill.total_amount == Decimal("12000.00")
        assert bill.balance == Decimal("12000.00")

    def test_migrated_debt_excluded_from_penalty(self, service, tenant, unit):
        service.record_opening_balance(
            unit.id,
            "2025-09",
            Decimal("12000"),
            association_dues=Decimal("2700"),
            electric_amount=Decimal("300"),
        )

        bill = service.generate_period(tenant.id, "2025-11").bills[0]

        assert bill.previous_balance == Decimal("12000.00")
        # Only the 3000 of own charges accrues penalty
        assert bill.penalty_amount == Decimal("300.00")

    def test_opening_balance_blocks_generation_for_its_month(self, service, tenant, unit, db_session):
        service.record_opening_balance(unit.id, "2025-11", Decimal("500"))

        with pytest.raises(DuplicateGenerationError, match="Found 1 existing bill"):
            service.generate_period(tenant.id, "2025-11")
        assert db_session.query(Bill).count() == 1

    def test_opening_balance_rejected_after_generation(self, service, tenant, unit, db_session):
        service.generate_period(tenant.id, "2025-11")

        with pytest.raises(DuplicateGenerationError):
            service.record_opening_balance(unit.id, "2025-11", Decimal("500"))
        assert db_session.query(Bill).count() == 1

    def test_one_bill_per_unit_and_month_enforced_by_database(self, service, tenant, unit, db_session):
        service.record_opening_balance(unit.id, "2025-11", Decimal("500"))
        opening = db_session.query(Bill).one()
        db_session.add(
            Bill(
                bill_number="MT-202511-9999",
                tenant_id=tenant.id,
                unit_id=unit.id,
                bill_type=BillType.REGULAR,
                billing_month=opening.billing_month,
                period_from=opening.period_from,
                period_to=opening.period_to,
                statement_date=opening.statement_date,
                due_date=opening.due_date,
                total_amount=Decimal("1"),
                paid_amount=Decimal("0"),
                balance=Decimal("1"),
            )
        )

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_period_delete_removes_opening_balance_too(self, service, tenant, unit, db_session):
        service.record_opening_balance(unit.id, "2025-11", Decimal("500"))

        assert service.delete_period_bills(tenant.id, "2025-11") == 1
        assert len(service.generate_period(tenant.id, "2025-11").bills) == 1

    def test_duplicate_opening_balance(self, service, unit):
        service.record_opening_balance(unit.id, "2025-10", Decimal("500"))

        with pytest.raises(DuplicateGenerationError):
            service.record_opening_balance(unit.id, "2025-10", Decimal("500"))

    def test_unknown_unit(self, service):
        with pytest.raises(NotFoundError):
            service.record_opening_balance(999, "2025-10", Decimal("500"))


class TestOpenBills:
    def test_oldest_first_and_paid_excluded(self, service, tenant, unit, db_session):
        october = service.generate_period(tenant.id, "2025-10").bills[0]
        november = service.generate_period(tenant.id, "2025-11").bills[0]
        december = service.generate_period(tenant.id, "2025-12").bills[0]
        november.status = BillStatus.PAID
        db_session.commit()

        open_bills = service.get_open_bills(unit.id)

        assert [b.id for b in open_bills] == [october.id, december.id]


class TestAtomicity:
    """A failed generation or deletion leaves bills and advances untouched."""

    @staticmethod
    def _fail(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    def test_failed_generation_writes_no_bills_and_draws_nothing(
        self, service, tenant, make_unit, db_session, monkeypatch
    ):
        a = make_unit("A-101")
        b = make_unit("A-102")
        ledger = AdvanceBalanceLedger(db_session)
        ledger.credit(a.id, Decimal("1000"), LedgerBucket.DUES)
        ledger.credit(b.id, Decimal("50"), LedgerBucket.UTILITIES)
        db_session.commit()
        monkeypatch.setattr(db_session, "commit", self._fail)

        with pytest.raises(SQLAlchemyError):
            service.generate_period(tenant.id, "2025-11")

        monkeypatch.undo()
        assert db_session.query(Bill).count() == 0
        assert db_session.query(AuditLog).count() == 0
        assert ledger.available(a.id) == (Decimal("1000.00"), Decimal("0.00"))
        assert ledger.available(b.id) == (Decimal("0.00"), Decimal("50.00"))

    def test_failed_draw_midway_rolls_back_earlier_units(
        self, service, tenant, make_unit, db_session, monkeypatch
    ):
        a = make_unit("A-101")
        b = make_unit("A-102")
        ledger = AdvanceBalanceLedger(db_session)
        ledger.credit(a.id, Decimal("1000"), LedgerBucket.DUES)
        db_session.commit()

        real_draw = service.ledger.draw

        def draw(unit_id, bucket, amount):
            if unit_id == b.id:
                raise SQLAlchemyError("lock timeout")
            return real_draw(unit_id, bucket, amount)

        monkeypatch.setattr(service.ledger, "draw", draw)

        with pytest.raises(SQLAlchemyError):
            service.generate_period(tenant.id, "2025-11")

        assert db_session.query(Bill).count() == 0
        assert ledger.available(a.id).dues == Decimal("1000.00")

    def test_failed_deletion_keeps_bills_and_advances(self, service, tenant, unit, db_session, monkeypatch):
        AdvanceBalanceLedger(db_session).credit(unit.id, Decimal("1000"), LedgerBucket.DUES)
        db_session.commit()
        service.generate_period(tenant.id, "2025-11")
        monkeypatch.setattr(db_session, "commit", self._fail)

        with pytest.raises(SQLAlchemyError):
            service.delete_period_bills(tenant.id, "2025-11")

        monkeypatch.undo()
        bill = db_session.query(Bill).one()
        assert bill.advance_dues_applied == Decimal("1000.00")
        assert AdvanceBalanceLedger(db_session).available(unit.id).dues == Decimal("0.00")
