"""Payment recording and voiding.

A recorded payment is allocated to the unit's open bills (BillPayment rows,
bill paid_amount/balance/status) and any excess is credited to the advance
balance ledger. Everything happens in one transaction.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from condo_billing.models.bill import OPEN_STATUSES, Bill
from condo_billing.models.payment import BillPayment, Payment, PaymentMethod, PaymentStatus
from condo_billing.models.unit import Unit
from condo_billing.services.allocation_service import (
    AllocationPlan,
    AllocationStrategy,
    OpenBill,
    allocate_payment,
    settlement_status,
)
from condo_billing.services.audit_service import AuditService
from condo_billing.services.config import EngineSettings, get_settings
from condo_billing.services.errors import (
    DuplicateReceiptError,
    InvalidPaymentError,
    NotFoundError,
    PaymentAlreadyVoidedError,
)
from condo_billing.services.ledger import (
    AdvanceBalanceLedger,
    ExcessSplit,
    ExcessSplitPolicy,
    LedgerBucket,
)
from condo_billing.services.money import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

_BREAKDOWN_FIELDS = {
    "electric": "electric_amount",
    "water": "water_amount",
    "dues": "dues_amount",
    "penalty": "penalty_amount",
    "sp_assessment": "sp_assessment_amount",
    "other": "other_amount",
}


class PaymentResult(NamedTuple):
    payment: Payment
    plan: AllocationPlan
    excess: ExcessSplit


class PaymentService:
    """Service for payment database operations."""

    def __init__(self, db_session: Session, settings: EngineSettings | None = None):
        """Initialize with database session."""
        self.db = db_session
        self.settings = settings or get_settings()
        self.ledger = AdvanceBalanceLedger(db_session)

    def _open_bills(self, unit_id: int) -> list[Bill]:
        stmt = (
            select(Bill)
            .where(Bill.unit_id == unit_id, Bill.status.in_(OPEN_STATUSES))
            .order_by(Bill.billing_month.asc(), Bill.id.asc())
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars())

    def _check_or_number(self, tenant_id: int, or_number: str | None) -> None:
        if not or_number:
            return
        existing = self.db.execute(
            select(Payment.id).where(Payment.tenant_id == tenant_id, Payment.or_number == or_number)
        ).first()
        if existing:
            raise DuplicateReceiptError(or_number)

    def record_payment(
        self,
        unit_id: int,
        amount,
        payment_date: date,
        *,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        or_number: str | None = None,
        reference_number: str | None = None,
        remarks: str | None = None,
        breakdown: dict | None = None,
        bill_ids: Sequence[int] | None = None,
        strategy: AllocationStrategy | None = None,
        excess_policy: ExcessSplitPolicy | None = None,
        actor_id: int | None = None,
    ) -> PaymentResult:
        """Record a payment, allocate it to open bills and credit any excess.

        Args:
            unit_id: Paying unit
            amount: Amount received
            payment_date: Date on the receipt
            payment_method: How it was paid
            or_number: Official receipt number, unique per tenant
            reference_number: Bank or e-wallet reference
            remarks: Free text
            breakdown: Declared split keyed by electric, water, dues, penalty,
                sp_assessment, other (stored as declared, not used for allocation)
            bill_ids: Explicit bills to settle, in order; defaults to every open bill
            strategy: Bill order when bill_ids is not given (settings default)
            excess_policy: Dues/utilities split of the excess (settings default)
            actor_id: Operator recording the payment

        Returns:
            PaymentResult with the payment, the allocation plan and the excess split

        Raises:
            InvalidPaymentError: If amount is not positive or breakdown has unknown keys
            NotFoundError: If the unit does not exist
            DuplicateReceiptError: If or_number is already used in the tenant
        """
        total = round_money(amount)
        if total <= 0:
            raise InvalidPaymentError(f"Payment amount must be positive, got {total}")

        declared = breakdown or {}
        unknown = set(declared) - set(_BREAKDOWN_FIELDS)
        if unknown:
            raise InvalidPaymentError(f"Unknown payment breakdown field(s): {', '.join(sorted(unknown))}")

        unit = self.db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError(f"Unit {unit_id} not found")

        self._check_or_number(unit.tenant_id, or_number)

        strategy = AllocationStrategy(strategy or self.settings.allocation_strategy)
        policy = ExcessSplitPolicy(excess_policy or self.settings.excess_split_policy)

        try:
            bills = {bill.id: bill for bill in self._open_bills(unit_id)}
            plan = allocate_payment(
                total,
                [OpenBill.from_bill(bill) for bill in bills.values()],
                strategy=strategy,
                bill_ids=bill_ids,
            )

            payment = Payment(
                tenant_id=unit.tenant_id,
                unit_id=unit_id,
                or_number=or_number,
                payment_date=payment_date,
                payment_method=PaymentMethod(payment_method),
                reference_number=reference_number,
                remarks=remarks,
                total_amount=total,
                status=PaymentStatus.CONFIRMED,
                **{
                    column: round_money(declared[key])
                    for key, column in _BREAKDOWN_FIELDS.items()
                    if declared.get(key) is not None
                },
            )
            self.db.add(payment)

            for line in plan.lines:
                bill = bills[line.bill_id]
                payment.bill_payments.append(
                    BillPayment(
                        bill_id=bill.id,
                        amount=line.amount,
                        electric_amount=line.electric_amount,
                        water_amount=line.water_amount,
                        dues_amount=line.dues_amount,
                        penalty_amount=line.penalty_amount,
                        sp_assessment_amount=line.sp_assessment_amount,
                        other_amount=line.other_amount,
                    )
                )
                bill.paid_amount = line.paid_amount
                bill.balance = line.balance
                bill.status = line.status

            excess = self.ledger.credit_excess(unit_id, plan.excess, policy)
            payment.excess_dues = excess.dues
            payment.excess_utilities = excess.utilities

            self.db.flush()
            AuditService.log(
                self.db,
                entity_type="payment",
                entity_id=payment.id,
                action="record",
                actor_id=actor_id,
                changes={
                    "amount": str(total),
                    "or_number": or_number,
                    "bills": [line.bill_number for line in plan.lines],
                    "excess": str(plan.excess),
                },
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Recording payment for unit %d rolled back", unit_id, exc_info=True)
            raise

        logger.info(
            "Recorded payment %s for unit %s: %d bill(s), excess %s",
            total,
            unit.unit_number,
            len(plan.lines),
            plan.excess,
        )
        return PaymentResult(payment=payment, plan=plan, excess=excess)

    def void_payment(self, payment_id: int, actor_id: int | None = None) -> Payment:
        """Reverse a payment: undo its allocations, take back its excess, mark it CANCELLED.

        The excess is drawn back as far as the advance balance still holds it;
        whatever a later bill already consumed stays consumed.

        Raises:
            NotFoundError: If the payment does not exist
            PaymentAlreadyVoidedError: If the payment is already cancelled
        """
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        if payment.status == PaymentStatus.CANCELLED:
            raise PaymentAlreadyVoidedError(f"Payment {payment_id} is already cancelled")

        try:
            reversed_bills = []
            for allocation in list(payment.bill_payments):
                bill = allocation.bill
                paid = to_decimal(bill.paid_amount) - to_decimal(allocation.amount)
                bill.paid_amount = max(ZERO, paid)
                bill.balance = to_decimal(bill.total_amount) - bill.paid_amount
                bill.status = settlement_status(bill.total_amount, bill.paid_amount, bill.status)
                reversed_bills.append(bill.bill_number)
            payment.bill_payments.clear()

            drawn_dues = self.ledger.draw(payment.unit_id, LedgerBucket.DUES, payment.excess_dues)
            drawn_utilities = self.ledger.draw(
                payment.unit_id, LedgerBucket.UTILITIES, payment.excess_utilities
            )

            payment.status = PaymentStatus.CANCELLED
            AuditService.log(
                self.db,
                entity_type="payment",
                entity_id=payment.id,
                action="void",
                actor_id=actor_id,
                changes={
                    "bills": reversed_bills,
                    "advance_dues_drawn": str(drawn_dues),
                    "advance_utilities_drawn": str(drawn_utilities),
                },
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Voiding payment %d rolled back", payment_id, exc_info=True)
            raise

        logger.info("Voided payment %d (%d allocation(s) reversed)", payment_id, len(reversed_bills))
        return payment

    def get_unit_payments(self, unit_id: int, include_cancelled: bool = False) -> list[Payment]:
        """Payments of a unit, newest first."""
        query = self.db.query(Payment).filter(Payment.unit_id == unit_id)
        if not include_cancelled:
            query = query.filter(Payment.status == PaymentStatus.CONFIRMED)
        return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

    def allocated_total(self, payment: Payment) -> Decimal:
        return sum((to_decimal(bp.amount) for bp in payment.bill_payments), ZERO)


__all__ = ["PaymentResult", "PaymentService"]
