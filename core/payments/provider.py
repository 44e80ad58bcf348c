from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from core.payments.types import ProcessorResponse

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentMethodCreate, PaymentOut


class PaymentProcessor(Protocol):
    processor_id: str

    async def process_payment(self, payment: PaymentOut) -> ProcessorResponse:
        ...

    async def process_refund(self, payment: PaymentOut, amount: Decimal) -> ProcessorResponse:
        ...

    async def verify_payment_method(self, method: PaymentMethodCreate) -> None:
        ...
