from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from repositories.protocols import PaymentRepository
    from schemas.payment_schema import PaymentOut


class HistoryProvider(Protocol):
    """Source of behavioural signals for the fraud engine.

    Both signals are in [0, 1]; the engine scales them by the factor ceilings.
    """

    async def velocity_signal(self, payment: PaymentOut) -> float:
        ...

    async def location_signal(self, payment: PaymentOut) -> float:
        ...


class RandomHistoryProvider:
    """Stand-in used when no payment history is wired in."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def velocity_signal(self, payment: PaymentOut) -> float:
        return self._rng.random()

    async def location_signal(self, payment: PaymentOut) -> float:
        return self._rng.random()


class PaymentHistoryProvider:
    """Derives signals from the payer's own recent payments.

    Velocity is the number of other payments inside the window relative to
    ``velocity_threshold``. Location is flagged when the payment's
    ``metadata["origin_country"]`` was never seen in that window.
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        *,
        window_seconds: int = 3600,
        velocity_threshold: int = 5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._payment_repo = payment_repo
        self._window_seconds = window_seconds
        self._velocity_threshold = max(velocity_threshold, 1)
        self._clock = clock

    async def _recent_payments(self, payment: PaymentOut) -> list[PaymentOut]:
        since = int(self._clock()) - self._window_seconds
        recent = await self._payment_repo.get_recent_payments_by_user(payment.user_id, since=since)
        return [row for row in recent if row.id != payment.id]

    async def velocity_signal(self, payment: PaymentOut) -> float:
        recent = await self._recent_payments(payment)
        return min(len(recent) / self._velocity_threshold, 1.0)

    async def location_signal(self, payment: PaymentOut) -> float:
        origin = payment.metadata.get("origin_country")
        if not origin:
            return 0.0
        seen = {
            row.metadata.get("origin_country")
            for row in await self._recent_payments(payment)
            if row.metadata.get("origin_country")
        }
        if not seen or origin in seen:
            return 0.0
        return 1.0
