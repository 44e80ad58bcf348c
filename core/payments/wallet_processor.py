from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from pydantic import EmailStr, TypeAdapter, ValidationError

from core.errors import payment_method_invalid
from core.payments.fees import PROCESSING_FEE_RATE
from core.payments.simulated import SimulatedProcessor
from core.payments.types import PaymentMethodType, ProcessorProfile, ProcessorResponse

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentMethodCreate, PaymentOut


WALLET_PROFILE = ProcessorProfile(
    processor_id="wallet_processor_v2",
    payment_latency=0.15,
    refund_latency=0.2,
    verify_latency=0.05,
    payment_failure_rate=0.05,
    refund_failure_rate=0.01,
    fee_rate=PROCESSING_FEE_RATE[PaymentMethodType.DIGITAL_WALLET],
)

_email_adapter = TypeAdapter(EmailStr)


class WalletProcessor(SimulatedProcessor):
    default_profile = WALLET_PROFILE

    async def process_payment(self, payment: PaymentOut) -> ProcessorResponse:
        await self._simulate_latency(self.profile.payment_latency)

        if self._roll(self.profile.payment_failure_rate):
            return self._respond(
                success=False,
                code="INSUFFICIENT_FUNDS",
                message="Insufficient balance in wallet",
            )

        return self._respond(
            success=True,
            code="SUCCESS",
            message="Wallet payment successful",
            fee=self._fee(payment.amount),
        )

    async def process_refund(self, payment: PaymentOut, amount: Decimal) -> ProcessorResponse:
        await self._simulate_latency(self.profile.refund_latency)

        if self._roll(self.profile.refund_failure_rate):
            return self._respond(success=False, code="REFUND_FAILED", message="Wallet refund failed")

        return self._respond(success=True, code="REFUND_SUCCESS", message="Wallet refund completed")

    async def verify_payment_method(self, method: PaymentMethodCreate) -> None:
        await super().verify_payment_method(method)

        email = method.details.get("email")
        if not email:
            raise payment_method_invalid("Email is required for wallet", details={"field": "email"})
        try:
            _email_adapter.validate_python(str(email))
        except ValidationError as err:
            raise payment_method_invalid("Invalid email format", details={"field": "email"}) from err
