from __future__ import annotations

import asyncio
import random
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from core.errors import payment_method_invalid
from core.payments.fees import to_cents
from core.payments.types import ProcessorProfile, ProcessorResponse

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentMethodCreate, PaymentOut


class SimulatedProcessor(ABC):
    """Base for processor backends that stand in for a real network integration.

    Latency, failure rates and fee rate come from a ``ProcessorProfile`` and all
    randomness from the injected ``random.Random``, so a seeded instance is
    fully reproducible.
    """

    default_profile: ProcessorProfile

    def __init__(
        self,
        *,
        profile: ProcessorProfile | None = None,
        rng: random.Random | None = None,
        latency_scale: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.profile = profile or self.default_profile
        self._rng = rng or random.Random()
        self._latency_scale = latency_scale
        self._sleep = sleep

    @property
    def processor_id(self) -> str:
        return self.profile.processor_id

    async def _simulate_latency(self, seconds: float) -> None:
        delay = seconds * self._latency_scale
        if delay > 0:
            await self._sleep(delay)

    def _roll(self, rate: float) -> bool:
        return self._rng.random() < rate

    def _transaction_id(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))

    def _fee(self, amount: Decimal) -> Decimal:
        return to_cents(amount * self.profile.fee_rate)

    def _respond(
        self,
        *,
        success: bool,
        code: str,
        message: str,
        fee: Decimal = Decimal("0"),
        authorization_code: str | None = None,
    ) -> ProcessorResponse:
        return ProcessorResponse(
            success=success,
            transaction_id=self._transaction_id(),
            processor_id=self.processor_id,
            response_code=code,
            response_message=message,
            processing_fee=fee,
            authorization_code=authorization_code,
        )

    @abstractmethod
    async def process_payment(self, payment: PaymentOut) -> ProcessorResponse:
        ...

    @abstractmethod
    async def process_refund(self, payment: PaymentOut, amount: Decimal) -> ProcessorResponse:
        ...

    async def verify_payment_method(self, method: PaymentMethodCreate) -> None:
        await self._simulate_latency(self.profile.verify_latency)


def digits_of(details: dict[str, Any], key: str) -> str | None:
    """Return a detail value with spaces and dashes stripped, or None when absent."""
    raw = details.get(key)
    if raw is None:
        return None
    value = str(raw).replace(" ", "").replace("-", "")
    return value or None


def require_digits(
    details: dict[str, Any],
    key: str,
    *,
    label: str,
    min_length: int,
    max_length: int,
    length_message: str,
) -> str:
    value = digits_of(details, key)
    if value is None:
        raise payment_method_invalid(f"{label} is required", details={"field": key})
    if not value.isdigit() or not min_length <= len(value) <= max_length:
        raise payment_method_invalid(length_message, details={"field": key})
    return value
