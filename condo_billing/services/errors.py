"""Custom exception classes for the billing engine.

Each error carries an operator-facing message that says what to do next.
Arithmetic degeneracies (zero consumption, no advance available) are never
raised; they are absorbed by the calculators.
"""


class BillingError(Exception):
    """Base exception for billing engine errors."""

    pass


class InvalidBillingMonthError(BillingError, ValueError):
    """Billing month is not a valid 'YYYY-MM' string."""

    pass


class TariffConfigError(BillingError):
    """Tariff settings missing or inconsistent."""

    pass


class NotFoundError(BillingError):
    """Tenant, unit, bill or payment does not exist."""

    pass


class DuplicateGenerationError(BillingError):
    """Bills already exist for the tenant and billing month."""

    def __init__(self, billing_month: str, existing_count: int):
        self.billing_month = billing_month
        self.existing_count = existing_count
        super().__init__(
            f"Bills already exist for {billing_month}. Found {existing_count} existing "
            f"bill(s). Delete them first, then generate again."
        )


class ProtectedDeletionError(BillingError):
    """Attempt to delete bills that already have payments allocated."""

    def __init__(self, bill_numbers: list[str]):
        self.bill_numbers = bill_numbers
        super().__init__(
            f"Cannot delete {len(bill_numbers)} bill(s) with recorded payments "
            f"({', '.join(bill_numbers)}). Void the payments first."
        )


class InvalidPaymentError(BillingError, ValueError):
    """Payment amount or breakdown is invalid."""

    pass


class DuplicateReceiptError(BillingError):
    """Official receipt number already used within the tenant."""

    def __init__(self, or_number: str):
        self.or_number = or_number
        super().__init__(f"OR# {or_number} already exists")


class PaymentAlreadyVoidedError(BillingError):
    """Payment was already cancelled."""

    pass


__all__ = [
    "BillingError",
    "InvalidBillingMonthError",
    "TariffConfigError",
    "NotFoundError",
    "DuplicateGenerationError",
    "ProtectedDeletionError",
    "InvalidPaymentError",
    "DuplicateReceiptError",
    "PaymentAlreadyVoidedError",
]
