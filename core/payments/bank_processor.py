from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.payments.fees import PROCESSING_FEE_RATE
from core.payments.simulated import SimulatedProcessor, require_digits
from core.payments.types import PaymentMethodType, ProcessorProfile, ProcessorResponse

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentMethodCreate, PaymentOut


BANK_PROFILE = ProcessorProfile(
    processor_id="bank_processor_v1",
    payment_latency=0.5,
    refund_latency=0.6,
    verify_latency=0.2,
    payment_failure_rate=0.15,
    refund_failure_rate=0.08,
    fee_rate=PROCESSING_FEE_RATE[PaymentMethodType.BANK_TRANSFER],
)


class BankTransferProcessor(SimulatedProcessor):
    default_profile = BANK_PROFILE

    async def process_payment(self, payment: PaymentOut) -> ProcessorResponse:
        await self._simulate_latency(self.profile.payment_latency)

        if self._roll(self.profile.payment_failure_rate):
            return self._respond(
                success=False,
                code="ACCOUNT_BLOCKED",
                message="Bank account is blocked or insufficient funds",
            )

        return self._respond(
            success=True,
            code="TRANSFER_INITIATED",
            message="Bank transfer initiated successfully",
            fee=self._fee(payment.amount),
        )

    async def process_refund(self, payment: PaymentOut, amount: Decimal) -> ProcessorResponse:
        await self._simulate_latency(self.profile.refund_latency)

        if self._roll(self.profile.refund_failure_rate):
            return self._respond(success=False, code="REFUND_BLOCKED", message="Bank refund could not be initiated")

        return self._respond(success=True, code="REFUND_INITIATED", message="Bank refund initiated")

    async def verify_payment_method(self, method: PaymentMethodCreate) -> None:
        await super().verify_payment_method(method)

        require_digits(
            method.details,
            "account_number",
            label="Account number",
            min_length=8,
            max_length=17,
            length_message="Invalid account number length",
        )
        require_digits(
            method.details,
            "routing_number",
            label="Routing number",
            min_length=9,
            max_length=9,
            length_message="Routing number must be 9 digits",
        )
