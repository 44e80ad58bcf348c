from __future__ import annotations

import random
from typing import Mapping

from core.payments.bank_processor import BankTransferProcessor
from core.payments.card_processor import CardProcessor
from core.payments.cash_processor import CashProcessor
from core.payments.provider import PaymentProcessor
from core.payments.types import PaymentMethodType
from core.payments.wallet_processor import WalletProcessor
from core.settings import Settings, get_settings


class ProcessorRegistry:
    def __init__(self, processors: Mapping[PaymentMethodType, PaymentProcessor]) -> None:
        self._processors = dict(processors)

    @classmethod
    def configure_from_settings(
        cls,
        settings: Settings | None = None,
        *,
        rng: random.Random | None = None,
    ) -> "ProcessorRegistry":
        settings = settings or get_settings()
        rng = rng or random.Random()
        latency_scale = settings.processor_latency_scale

        card = CardProcessor(rng=rng, latency_scale=latency_scale)
        return cls(
            processors={
                PaymentMethodType.CREDIT_CARD: card,
                PaymentMethodType.DEBIT_CARD: card,
                PaymentMethodType.DIGITAL_WALLET: WalletProcessor(rng=rng, latency_scale=latency_scale),
                PaymentMethodType.BANK_TRANSFER: BankTransferProcessor(rng=rng, latency_scale=latency_scale),
                PaymentMethodType.CASH: CashProcessor(rng=rng, latency_scale=latency_scale),
            }
        )

    def get_processor(self, method_type: PaymentMethodType | str) -> PaymentProcessor | None:
        try:
            key = PaymentMethodType(method_type)
        except ValueError:
            return None
        return self._processors.get(key)

    def supported_types(self) -> list[PaymentMethodType]:
        return list(self._processors)
