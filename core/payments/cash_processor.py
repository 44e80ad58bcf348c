from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.payments.fees import PROCESSING_FEE_RATE
from core.payments.simulated import SimulatedProcessor
from core.payments.types import PaymentMethodType, ProcessorProfile, ProcessorResponse

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentMethodCreate, PaymentOut


CASH_PROFILE = ProcessorProfile(
    processor_id="cash_processor_v1",
    payment_latency=0.05,
    refund_latency=0.1,
    verify_latency=0.0,
    payment_failure_rate=0.02,
    refund_failure_rate=0.0,
    fee_rate=PROCESSING_FEE_RATE[PaymentMethodType.CASH],
)


class CashProcessor(SimulatedProcessor):
    """Cash is settled between rider and driver; the driver confirms receipt."""

    default_profile = CASH_PROFILE

    async def process_payment(self, payment: PaymentOut) -> ProcessorResponse:
        await self._simulate_latency(self.profile.payment_latency)

        if self._roll(self.profile.payment_failure_rate):
            return self._respond(
                success=False,
                code="CASH_NOT_RECEIVED",
                message="Driver did not confirm cash receipt",
            )

        return self._respond(success=True, code="CASH_RECEIVED", message="Cash payment confirmed by driver")

    async def process_refund(self, payment: PaymentOut, amount: Decimal) -> ProcessorResponse:
        # Always accepted; the driver hands the money back outside the system.
        await self._simulate_latency(self.profile.refund_latency)
        return self._respond(
            success=True,
            code="MANUAL_REFUND",
            message="Cash refund to be handled manually by driver",
        )

    async def verify_payment_method(self, method: PaymentMethodCreate) -> None:
        return None
