from __future__ import annotations

import random
from dataclasses import replace
from decimal import Decimal

import pytest

from core.errors import AppException, ErrorCode
from core.payments import ProcessorRegistry
from core.payments.bank_processor import BankTransferProcessor
from core.payments.card_processor import CARD_PROFILE, CardProcessor
from core.payments.cash_processor import CashProcessor
from core.payments.simulated import SimulatedProcessor
from core.payments.types import PaymentMethodType, PaymentStatus
from core.payments.wallet_processor import WALLET_PROFILE, WalletProcessor
from core.settings import Settings
from schemas.payment_schema import PaymentMethodCreate, PaymentOut


def _payment(*, amount: str = "100.00", method: PaymentMethodType = PaymentMethodType.CREDIT_CARD) -> PaymentOut:
    return PaymentOut(
        id="payment-1",
        trip_id="trip-1",
        user_id="rider-1",
        driver_id="driver-1",
        amount=Decimal(amount),
        currency="USD",
        payment_method=method,
        payment_method_id="method-1",
        status=PaymentStatus.PROCESSING,
        created_at=1_760_000_000,
        updated_at=1_760_000_000,
    )


def _method(method_type: PaymentMethodType, details: dict) -> PaymentMethodCreate:
    return PaymentMethodCreate(
        user_id="rider-1",
        type=method_type,
        details=details,
        fingerprint=f"{method_type.value}_rider-1",
        created_at=1_760_000_000,
        updated_at=1_760_000_000,
    )


def _card(**profile_overrides) -> CardProcessor:
    return CardProcessor(
        profile=replace(CARD_PROFILE, **profile_overrides),
        rng=random.Random(11),
        latency_scale=0,
    )


@pytest.mark.asyncio
async def test_card_payment_approved_with_fee_and_authorization_code():
    processor = _card(payment_failure_rate=0.0)

    result = await processor.process_payment(_payment(amount="100.00"))

    assert result.success is True
    assert result.response_code == "APPROVED"
    assert result.processor_id == "card_processor_v1"
    assert result.processing_fee == Decimal("2.90")
    assert result.authorization_code is not None and result.authorization_code.startswith("AUTH_")
    assert result.summary() == f"Code: APPROVED, Message: Payment approved, TxnID: {result.transaction_id}"


@pytest.mark.asyncio
async def test_card_payment_declined_by_issuer():
    processor = _card(payment_failure_rate=1.0)

    result = await processor.process_payment(_payment())

    assert result.success is False
    assert result.response_code == "DECLINED"
    assert result.response_message == "Card declined by issuer"
    assert result.processing_fee == Decimal("0")


@pytest.mark.asyncio
async def test_card_refund_codes():
    approved = await _card(refund_failure_rate=0.0).process_refund(_payment(), Decimal("10"))
    failed = await _card(refund_failure_rate=1.0).process_refund(_payment(), Decimal("10"))

    assert (approved.success, approved.response_code) == (True, "REFUND_APPROVED")
    assert (failed.success, failed.response_code) == (False, "REFUND_FAILED")


@pytest.mark.asyncio
async def test_card_verification_requires_cvv():
    processor = _card(verification_failure_rate=0.0)

    with pytest.raises(AppException) as exc_info:
        await processor.verify_payment_method(
            _method(PaymentMethodType.CREDIT_CARD, {"card_number": "4242424242424242"})
        )

    assert exc_info.value.code == ErrorCode.PAYMENT_METHOD_INVALID.value
    assert "CVV" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("details", "message"),
    [
        ({"cvv": "123"}, "Card number is required"),
        ({"card_number": "4242 4242", "cvv": "123"}, "Invalid card number length"),
        ({"card_number": "4242424242424242", "cvv": "12"}, "Invalid CVV"),
    ],
)
async def test_card_verification_rejects_bad_details(details: dict, message: str):
    processor = _card(verification_failure_rate=0.0)

    with pytest.raises(AppException) as exc_info:
        await processor.verify_payment_method(_method(PaymentMethodType.DEBIT_CARD, details))

    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_card_verification_accepts_valid_card():
    processor = _card(verification_failure_rate=0.0)

    await processor.verify_payment_method(
        _method(PaymentMethodType.CREDIT_CARD, {"card_number": "4242-4242-4242-4242", "cvv": "123"})
    )


@pytest.mark.asyncio
async def test_card_verification_random_failure():
    processor = _card(verification_failure_rate=1.0)

    with pytest.raises(AppException) as exc_info:
        await processor.verify_payment_method(
            _method(PaymentMethodType.CREDIT_CARD, {"card_number": "4242424242424242", "cvv": "123"})
        )

    assert exc_info.value.message == "Card verification failed"


@pytest.mark.asyncio
async def test_wallet_payment_and_email_verification():
    processor = WalletProcessor(
        profile=replace(WALLET_PROFILE, payment_failure_rate=0.0),
        rng=random.Random(3),
        latency_scale=0,
    )

    result = await processor.process_payment(_payment(amount="40", method=PaymentMethodType.DIGITAL_WALLET))
    assert (result.response_code, result.processing_fee) == ("SUCCESS", Decimal("1.00"))

    await processor.verify_payment_method(_method(PaymentMethodType.DIGITAL_WALLET, {"email": "rider@ridemail.com"}))

    with pytest.raises(AppException) as missing:
        await processor.verify_payment_method(_method(PaymentMethodType.DIGITAL_WALLET, {}))
    with pytest.raises(AppException) as malformed:
        await processor.verify_payment_method(_method(PaymentMethodType.DIGITAL_WALLET, {"email": "not-an-email"}))

    assert missing.value.message == "Email is required for wallet"
    assert malformed.value.message == "Invalid email format"


@pytest.mark.asyncio
async def test_bank_verification_checks_account_and_routing_numbers():
    processor = BankTransferProcessor(rng=random.Random(5), latency_scale=0)

    await processor.verify_payment_method(
        _method(PaymentMethodType.BANK_TRANSFER, {"account_number": "000123456789", "routing_number": "110000000"})
    )

    with pytest.raises(AppException) as short_account:
        await processor.verify_payment_method(
            _method(PaymentMethodType.BANK_TRANSFER, {"account_number": "1234", "routing_number": "110000000"})
        )
    with pytest.raises(AppException) as bad_routing:
        await processor.verify_payment_method(
            _method(PaymentMethodType.BANK_TRANSFER, {"account_number": "000123456789", "routing_number": "12345"})
        )

    assert short_account.value.message == "Invalid account number length"
    assert bad_routing.value.message == "Routing number must be 9 digits"


@pytest.mark.asyncio
async def test_cash_payments_mostly_confirmed_over_many_rides():
    processor = CashProcessor(rng=random.Random(2024), latency_scale=0)
    payment = _payment(amount="12.00", method=PaymentMethodType.CASH)

    results = [await processor.process_payment(payment) for _ in range(500)]
    confirmed = [result for result in results if result.success]

    assert len(confirmed) / len(results) >= 0.95
    assert {result.response_code for result in results} <= {"CASH_RECEIVED", "CASH_NOT_RECEIVED"}
    assert all(result.processing_fee == Decimal("0") for result in results)


@pytest.mark.asyncio
async def test_cash_refund_is_always_manual():
    processor = CashProcessor(rng=random.Random(1), latency_scale=0)

    results = [
        await processor.process_refund(_payment(method=PaymentMethodType.CASH), Decimal("5")) for _ in range(50)
    ]

    assert all(result.success and result.response_code == "MANUAL_REFUND" for result in results)


@pytest.mark.asyncio
async def test_cash_verification_always_passes():
    processor = CashProcessor(rng=random.Random(1), latency_scale=0)

    assert await processor.verify_payment_method(_method(PaymentMethodType.CASH, {})) is None


@pytest.mark.asyncio
async def test_latency_is_scaled_and_injected():
    delays: list[float] = []

    async def _record_sleep(seconds: float) -> None:
        delays.append(seconds)

    processor = CardProcessor(rng=random.Random(1), latency_scale=0.5, sleep=_record_sleep)
    await processor.process_payment(_payment())
    await processor.process_refund(_payment(), Decimal("1"))

    assert delays == pytest.approx([0.1, 0.15])


@pytest.mark.asyncio
async def test_seeded_processors_are_reproducible():
    first = CardProcessor(rng=random.Random(99), latency_scale=0)
    second = CardProcessor(rng=random.Random(99), latency_scale=0)

    assert await first.process_payment(_payment()) == await second.process_payment(_payment())


def test_registry_routes_each_method_type():
    registry = ProcessorRegistry.configure_from_settings(Settings(processor_latency_scale=0), rng=random.Random(1))

    card = registry.get_processor(PaymentMethodType.CREDIT_CARD)
    assert card is registry.get_processor("debit_card")
    assert card.processor_id == "card_processor_v1"
    assert registry.get_processor(PaymentMethodType.DIGITAL_WALLET).processor_id == "wallet_processor_v2"
    assert registry.get_processor(PaymentMethodType.BANK_TRANSFER).processor_id == "bank_processor_v1"
    assert registry.get_processor(PaymentMethodType.CASH).processor_id == "cash_processor_v1"
    assert set(registry.supported_types()) == set(PaymentMethodType)


def test_registry_returns_none_for_unregistered_type():
    registry = ProcessorRegistry({PaymentMethodType.CASH: CashProcessor(latency_scale=0)})

    assert registry.get_processor(PaymentMethodType.CREDIT_CARD) is None
    assert registry.get_processor("gift_card") is None


def test_simulated_base_requires_payment_and_refund_operations():
    class _VerifyOnly(SimulatedProcessor):
        default_profile = CARD_PROFILE

    with pytest.raises(TypeError):
        _VerifyOnly()
