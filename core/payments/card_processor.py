from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.errors import payment_method_invalid
from core.payments.fees import PROCESSING_FEE_RATE
from core.payments.simulated import SimulatedProcessor, require_digits
from core.payments.types import PaymentMethodType, ProcessorProfile, ProcessorResponse

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentMethodCreate, PaymentOut


CARD_PROFILE = ProcessorProfile(
    processor_id="card_processor_v1",
    payment_latency=0.2,
    refund_latency=0.3,
    verify_latency=0.1,
    payment_failure_rate=0.10,
    refund_failure_rate=0.05,
    fee_rate=PROCESSING_FEE_RATE[PaymentMethodType.CREDIT_CARD],
    verification_failure_rate=0.02,
)


class CardProcessor(SimulatedProcessor):
    default_profile = CARD_PROFILE

    async def process_payment(self, payment: PaymentOut) -> ProcessorResponse:
        await self._simulate_latency(self.profile.payment_latency)

        if self._roll(self.profile.payment_failure_rate):
            return self._respond(success=False, code="DECLINED", message="Card declined by issuer")

        return self._respond(
            success=True,
            code="APPROVED",
            message="Payment approved",
            fee=self._fee(payment.amount),
            authorization_code=f"AUTH_{self._rng.randint(0, 2**31 - 1)}",
        )

    async def process_refund(self, payment: PaymentOut, amount: Decimal) -> ProcessorResponse:
        await self._simulate_latency(self.profile.refund_latency)

        if self._roll(self.profile.refund_failure_rate):
            return self._respond(success=False, code="REFUND_FAILED", message="Refund could not be processed")

        return self._respond(success=True, code="REFUND_APPROVED", message="Refund processed successfully")

    async def verify_payment_method(self, method: PaymentMethodCreate) -> None:
        await super().verify_payment_method(method)

        require_digits(
            method.details,
            "card_number",
            label="Card number",
            min_length=13,
            max_length=19,
            length_message="Invalid card number length",
        )
        require_digits(
            method.details,
            "cvv",
            label="CVV",
            min_length=3,
            max_length=4,
            length_message="Invalid CVV",
        )

        if self._roll(self.profile.verification_failure_rate):
            raise payment_method_invalid("Card verification failed")
