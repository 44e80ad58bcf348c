from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from core.payments.types import PaymentMethodType

CENT = Decimal("0.01")

PROCESSING_FEE_RATE: dict[PaymentMethodType, Decimal] = {
    PaymentMethodType.CREDIT_CARD: Decimal("0.029"),
    PaymentMethodType.DEBIT_CARD: Decimal("0.025"),
    PaymentMethodType.DIGITAL_WALLET: Decimal("0.025"),
    PaymentMethodType.BANK_TRANSFER: Decimal("0.010"),
    PaymentMethodType.CASH: Decimal("0"),
}

DEFAULT_MINIMUM_FEE = Decimal("0.30")
DEFAULT_MAX_PAYMENT_AMOUNT = Decimal("5000")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
