from __future__ import annotations

import asyncio
import random
import time
import weakref
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterator

import structlog

from core.database import get_database
from core.errors import AppException, ErrorCode, resource_not_found, validation_failed
from core.fraud import FraudDetectionEngine, FraudDetectionResult, PaymentHistoryProvider, RandomHistoryProvider
from core.logging_config import setup_logging
from core.payments import ProcessorRegistry
from core.payments.fees import DEFAULT_MAX_PAYMENT_AMOUNT, DEFAULT_MINIMUM_FEE, PROCESSING_FEE_RATE, to_cents
from core.payments.provider import PaymentProcessor
from core.payments.simulated import digits_of
from core.payments.types import (
    CARD_METHOD_TYPES,
    FraudRiskLevel,
    PaymentMethodType,
    PaymentStatus,
    ProcessorResponse,
    RefundStatus,
    RefundStatusPolicy,
)
from core.settings import Settings, get_settings
from repositories.memory_repo import (
    InMemoryPaymentMethodRepository,
    InMemoryPaymentRepository,
    InMemoryRefundRepository,
)
from repositories.payment_method_repo import MongoPaymentMethodRepository
from repositories.payment_repo import MongoPaymentRepository
from repositories.protocols import PaymentMethodRepository, PaymentRepository, RefundRepository
from repositories.refund_repo import MongoRefundRepository
from schemas.payment_schema import (
    AddPaymentMethodIn,
    PaymentCreate,
    PaymentMethodCreate,
    PaymentMethodOut,
    PaymentMethodResponse,
    PaymentOut,
    PaymentResponse,
    PaymentStats,
    PaymentStatusDetail,
    ProcessPaymentIn,
    RefundCreate,
    RefundOut,
    RefundPaymentIn,
    RefundResponse,
)

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

SENSITIVE_DETAIL_KEYS = frozenset({"cvv", "cvc", "pin"})
MASKED_DETAIL_KEYS = ("card_number", "account_number")

HIGH_RISK_REASON = "Transaction blocked due to high fraud risk"
UNSUPPORTED_METHOD_REASON = "Unsupported payment method"


def _epoch() -> int:
    return int(time.time())


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as err:
        raise validation_failed("Payment amount must be a number", details={"amount": str(value)}) from err


def calculate_processing_fee(
    amount: Decimal | int | float | str,
    method: PaymentMethodType | str,
    *,
    minimum_fee: Decimal = DEFAULT_MINIMUM_FEE,
) -> Decimal:
    """Estimate the processing fee for a payment, in the payment currency.

    Fee-bearing methods never charge less than ``minimum_fee``; cash is free.
    """
    try:
        method_type = PaymentMethodType(method)
    except ValueError as err:
        raise validation_failed("Unsupported payment method", details={"method": str(method)}) from err

    rate = PROCESSING_FEE_RATE[method_type]
    if rate == 0:
        return Decimal("0.00")
    return max(to_cents(_as_decimal(amount) * rate), to_cents(minimum_fee))


def validate_payment_amount(
    amount: Decimal | int | float | str,
    currency: str,
    *,
    max_amount: Decimal = DEFAULT_MAX_PAYMENT_AMOUNT,
) -> None:
    value = _as_decimal(amount)
    if not value.is_finite() or value <= 0:
        raise validation_failed("Payment amount must be greater than zero", details={"amount": str(value)})
    if value > max_amount:
        raise validation_failed(
            f"Payment amount exceeds maximum limit of {max_amount} {(currency or '').upper()}",
            details={"amount": str(value), "max_amount": str(max_amount)},
        )
    if not currency or len(currency) != 3 or not currency.isalpha():
        raise validation_failed("Currency must be a 3-letter ISO 4217 code", details={"currency": currency})


def generate_fingerprint(method_type: PaymentMethodType, user_id: str, details: dict[str, Any]) -> str:
    """Deterministic duplicate-detection key from type, owner and a partial identifier."""
    parts = [PaymentMethodType(method_type).value, user_id]

    if method_type in CARD_METHOD_TYPES:
        card_number = digits_of(details, "card_number")
        if card_number:
            parts.append(f"{len(card_number)}_{card_number[-4:]}")
    elif method_type == PaymentMethodType.DIGITAL_WALLET:
        email = details.get("email")
        if email:
            parts.append(str(email).strip().lower())
    elif method_type == PaymentMethodType.BANK_TRANSFER:
        account_number = digits_of(details, "account_number")
        routing_number = digits_of(details, "routing_number")
        if account_number:
            parts.append(f"{routing_number or ''}_{account_number[-4:]}")

    return "_".join(parts)


def _text_detail(details: dict[str, Any], key: str) -> str | None:
    value = details.get(key)
    return value if isinstance(value, str) else None


def extract_display_fields(method_type: PaymentMethodType, details: dict[str, Any]) -> dict[str, str | None]:
    """Display-only fields for a stored method; non-string detail values are left out."""
    fields: dict[str, str | None] = {"last_four_digits": None, "bank_name": None, "wallet_provider": None}

    if method_type in CARD_METHOD_TYPES:
        card_number = digits_of(details, "card_number")
        if card_number and len(card_number) >= 4:
            fields["last_four_digits"] = card_number[-4:]
        fields["bank_name"] = _text_detail(details, "bank_name")
    elif method_type == PaymentMethodType.DIGITAL_WALLET:
        fields["wallet_provider"] = _text_detail(details, "provider")
    elif method_type == PaymentMethodType.BANK_TRANSFER:
        fields["bank_name"] = _text_detail(details, "bank_name")

    return fields


def sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Copy of method details safe to persist: secrets dropped, account numbers masked."""
    cleaned = {key: value for key, value in details.items() if key.lower() not in SENSITIVE_DETAIL_KEYS}
    for key in MASKED_DETAIL_KEYS:
        digits = digits_of(cleaned, key)
        if digits:
            cleaned[key] = f"****{digits[-4:]}"
    return cleaned


def _normalize_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    if limit is None or limit <= 0:
        limit = DEFAULT_PAGE_SIZE
    if offset is None or offset < 0:
        offset = 0
    return min(limit, MAX_PAGE_SIZE), offset


class PaymentService:
    """Coordinates method lookup, fraud screening and processor execution for payments and refunds.

    Every payment or refund record this service creates ends in a terminal
    status before the call returns.
    """

    def __init__(
        self,
        *,
        payment_repo: PaymentRepository,
        payment_method_repo: PaymentMethodRepository,
        refund_repo: RefundRepository,
        processors: ProcessorRegistry,
        fraud_engine: FraudDetectionEngine | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._payment_repo = payment_repo
        self._payment_method_repo = payment_method_repo
        self._refund_repo = refund_repo
        self._processors = processors
        self._fraud_engine = fraud_engine
        self._settings = settings or get_settings()
        self._refund_policy = RefundStatusPolicy(self._settings.refund_status_policy)
        self._payment_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @classmethod
    def configure_from_settings(
        cls,
        settings: Settings | None = None,
        *,
        rng: random.Random | None = None,
    ) -> "PaymentService":
        settings = settings or get_settings()
        rng = rng or random.Random()
        setup_logging(settings)

        payment_repo: PaymentRepository
        payment_method_repo: PaymentMethodRepository
        refund_repo: RefundRepository
        if settings.db_type == "mongodb":
            database = get_database()
            payment_repo = MongoPaymentRepository(database)
            payment_method_repo = MongoPaymentMethodRepository(database)
            refund_repo = MongoRefundRepository(database)
        else:
            payment_repo = InMemoryPaymentRepository()
            payment_method_repo = InMemoryPaymentMethodRepository()
            refund_repo = InMemoryRefundRepository()

        if settings.fraud_history_source == "payments":
            history = PaymentHistoryProvider(
                payment_repo,
                window_seconds=settings.fraud_velocity_window_seconds,
                velocity_threshold=settings.fraud_velocity_threshold,
            )
        else:
            history = RandomHistoryProvider(rng)

        return cls(
            payment_repo=payment_repo,
            payment_method_repo=payment_method_repo,
            refund_repo=refund_repo,
            processors=ProcessorRegistry.configure_from_settings(settings, rng=rng),
            fraud_engine=FraudDetectionEngine(history),
            settings=settings,
        )

    def calculate_processing_fee(self, amount: Decimal | int | float | str, method: PaymentMethodType | str) -> Decimal:
        return calculate_processing_fee(amount, method, minimum_fee=self._settings.payment_min_fee)

    def validate_payment_amount(self, amount: Decimal | int | float | str, currency: str) -> None:
        validate_payment_amount(amount, currency, max_amount=self._settings.payment_max_amount)

    @asynccontextmanager
    async def _payment_lock(self, payment_id: str) -> AsyncIterator[None]:
        lock = self._payment_locks.get(payment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._payment_locks[payment_id] = lock
        async with lock:
            yield

    async def _call_processor(self, operation) -> tuple[ProcessorResponse | None, str | None]:
        """Run a processor coroutine under the configured timeout.

        Returns the response, or the error text when the processor raised or timed out.
        """
        timeout = self._settings.processor_timeout_seconds
        try:
            return await asyncio.wait_for(operation, timeout=timeout), None
        except asyncio.TimeoutError:
            return None, f"Payment processor timed out after {timeout:g}s"
        except Exception as err:
            logger.exception("payment_processor_error")
            return None, str(err) or err.__class__.__name__

    async def _analyze_fraud(self, payment: PaymentOut) -> FraudDetectionResult | None:
        if self._fraud_engine is None:
            return None
        try:
            return await self._fraud_engine.analyze_transaction(payment)
        except Exception:
            # Scoring errors never block a payment.
            logger.exception("fraud_detection_failed", payment_id=payment.id)
            return None

    async def _fail_payment(self, payment: PaymentOut, reason: str, processor_response: str | None = None) -> PaymentOut:
        return await self._payment_repo.update_payment_status(
            payment.id,  # type: ignore[arg-type]
            PaymentStatus.FAILED,
            PaymentStatusDetail(failure_reason=reason, processor_response=processor_response),
        )

    async def _fail_refund(self, refund: RefundOut, processor_response: str) -> RefundOut:
        return await self._refund_repo.update_refund_status(
            refund.id,  # type: ignore[arg-type]
            RefundStatus.FAILED,
            processor_response=processor_response,
            processed_at=_epoch(),
        )

    @staticmethod
    def _replayed_response(payment: PaymentOut) -> PaymentResponse:
        if payment.status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            return PaymentResponse(
                payment=payment,
                success=False,
                message="Payment with this idempotency key is still in progress",
                errors=["Duplicate request"],
            )
        succeeded = payment.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)
        return PaymentResponse(
            payment=payment,
            success=succeeded,
            message="Duplicate request; returning the original payment",
            errors=[] if succeeded else [payment.failure_reason or "Payment failed"],
        )

    async def _settle_payment(self, payment: PaymentOut, reason: str) -> PaymentOut:
        current = await self._payment_repo.get_payment(payment.id) or payment  # type: ignore[arg-type]
        if current.status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            return await self._fail_payment(current, reason)
        return current

    async def _settle_refund(self, refund: RefundOut, reason: str) -> RefundOut:
        current = await self._refund_repo.get_refund(refund.id) or refund  # type: ignore[arg-type]
        if current.status == RefundStatus.PENDING:
            return await self._fail_refund(current, reason)
        return current

    async def _record_fraud(self, payment: PaymentOut, fraud: FraudDetectionResult, log) -> PaymentOut:
        try:
            return await self._payment_repo.record_fraud_assessment(
                payment.id,  # type: ignore[arg-type]
                fraud.risk_level,
                fraud.scores,
            )
        except Exception:
            log.exception("fraud_assessment_not_recorded", risk_level=fraud.risk_level.value)
            return payment

    async def process_payment(self, request: ProcessPaymentIn) -> PaymentResponse:
        log = logger.bind(trip_id=request.trip_id, user_id=request.user_id)
        currency = (request.currency or self._settings.payment_default_currency).upper()

        try:
            self.validate_payment_amount(request.amount, currency)
        except AppException as err:
            return PaymentResponse(success=False, message=err.message, errors=[err.message])

        if request.idempotency_key:
            existing = await self._payment_repo.get_payment_by_idempotency_key(request.user_id, request.idempotency_key)
            if existing is not None:
                log.info("payment_idempotent_replay", payment_id=existing.id)
                return self._replayed_response(existing)

        method = await self._payment_method_repo.get_payment_method(request.payment_method_id)
        if method is None or method.user_id != request.user_id:
            return PaymentResponse(
                success=False,
                message="Payment method not found",
                errors=[f"Payment method {request.payment_method_id} not found"],
            )

        now = _epoch()
        try:
            payment = await self._payment_repo.create_payment(
                PaymentCreate(
                    trip_id=request.trip_id,
                    user_id=request.user_id,
                    driver_id=request.driver_id,
                    amount=request.amount,
                    currency=currency,
                    payment_method=method.type,
                    payment_method_id=method.id,  # type: ignore[arg-type]
                    status=PaymentStatus.PENDING,
                    idempotency_key=request.idempotency_key,
                    description=request.description,
                    metadata=request.metadata,
                    created_at=now,
                    updated_at=now,
                )
            )
        except AppException as err:
            if err.code == ErrorCode.DUPLICATE_REQUEST.value and request.idempotency_key:
                existing = await self._payment_repo.get_payment_by_idempotency_key(
                    request.user_id, request.idempotency_key
                )
                if existing is not None:
                    return self._replayed_response(existing)
            return PaymentResponse(success=False, message="Failed to create payment record", errors=[err.message])

        log = log.bind(payment_id=payment.id, method=payment.payment_method.value)
        log.info("payment_created", amount=str(payment.amount), currency=payment.currency)

        try:
            return await self._run_payment(payment, log)
        except Exception as err:
            log.exception("payment_pipeline_error")
            reason = str(err) or err.__class__.__name__
            payment = await self._settle_payment(payment, reason)
            return PaymentResponse(
                payment=payment,
                success=False,
                message="Payment processing failed",
                errors=[reason],
            )

    async def _run_payment(self, payment: PaymentOut, log) -> PaymentResponse:
        fraud = await self._analyze_fraud(payment)
        if fraud is not None:
            payment = await self._record_fraud(payment, fraud, log)
            if fraud.risk_level == FraudRiskLevel.HIGH:
                payment = await self._fail_payment(payment, HIGH_RISK_REASON)
                log.warning("payment_blocked_high_fraud_risk", risk_score=fraud.risk_score, reasons=fraud.reasons)
                return PaymentResponse(
                    payment=payment,
                    success=False,
                    message="Payment blocked due to security concerns",
                    errors=["High fraud risk detected", *fraud.reasons],
                )
            if fraud.requires_review:
                log.info("payment_flagged_for_review", risk_score=fraud.risk_score, reasons=fraud.reasons)

        processor: PaymentProcessor | None = self._processors.get_processor(payment.payment_method)
        if processor is None:
            payment = await self._fail_payment(payment, UNSUPPORTED_METHOD_REASON)
            log.warning("payment_processor_missing")
            return PaymentResponse(
                payment=payment,
                success=False,
                message=UNSUPPORTED_METHOD_REASON,
                errors=[f"No processor registered for {payment.payment_method.value}"],
            )

        payment = await self._payment_repo.update_payment_status(
            payment.id,  # type: ignore[arg-type]
            PaymentStatus.PROCESSING,
        )

        result, error = await self._call_processor(processor.process_payment(payment))
        if result is None:
            payment = await self._fail_payment(payment, error or "Payment processing failed")
            log.error("payment_processing_failed", error=error)
            return PaymentResponse(
                payment=payment,
                success=False,
                message="Payment processing failed",
                errors=[error or "Payment processing failed"],
            )

        summary = result.summary()
        if result.success:
            payment = await self._payment_repo.update_payment_status(
                payment.id,  # type: ignore[arg-type]
                PaymentStatus.COMPLETED,
                PaymentStatusDetail(
                    processor_response=summary,
                    processing_fee=result.processing_fee,
                    processed_at=_epoch(),
                ),
            )
            log.info("payment_completed", processor_id=result.processor_id, fee=str(result.processing_fee))
            return PaymentResponse(payment=payment, success=True, message="Payment processed successfully")

        payment = await self._fail_payment(payment, result.response_message, processor_response=summary)
        log.info("payment_declined", processor_id=result.processor_id, response_code=result.response_code)
        return PaymentResponse(
            payment=payment,
            success=False,
            message="Payment declined",
            errors=[result.response_message],
        )

    async def process_refund(self, request: RefundPaymentIn) -> RefundResponse:
        payment = await self._payment_repo.get_payment(request.payment_id)
        if payment is None:
            return RefundResponse(
                success=False,
                message="Payment not found",
                errors=[f"Payment {request.payment_id} not found"],
            )

        if request.amount > payment.amount:
            return RefundResponse(
                payment=payment,
                success=False,
                message="Refund amount cannot exceed payment amount",
                errors=[f"Requested {request.amount}, payment amount is {payment.amount}"],
            )

        if payment.status != PaymentStatus.COMPLETED:
            return RefundResponse(
                payment=payment,
                success=False,
                message="Only completed payments can be refunded",
                errors=[f"Payment status is {payment.status.value}"],
            )

        if request.amount > payment.refundable_amount:
            return RefundResponse(
                payment=payment,
                success=False,
                message="Refund amount exceeds remaining refundable balance",
                errors=[f"Requested {request.amount}, refundable balance is {payment.refundable_amount}"],
            )

        async with self._payment_lock(payment.id):  # type: ignore[arg-type]
            return await self._execute_refund(payment, request)

    async def _release_reservation(self, payment: PaymentOut, amount: Decimal, log) -> PaymentOut:
        try:
            return await self._payment_repo.release_refund_amount(payment.id, amount)  # type: ignore[arg-type]
        except Exception:
            log.exception("refund_reservation_not_released", amount=str(amount))
            return payment

    async def _mark_refunded(self, payment: PaymentOut, log) -> PaymentOut:
        try:
            return await self._payment_repo.update_payment_status(
                payment.id,  # type: ignore[arg-type]
                PaymentStatus.REFUNDED,
            )
        except Exception:
            # The refund itself is already completed; the payment stays completed.
            log.exception("payment_refunded_status_not_recorded")
            return payment

    async def _execute_refund(self, payment: PaymentOut, request: RefundPaymentIn) -> RefundResponse:
        log = logger.bind(payment_id=payment.id, requested_by=request.requested_by)

        refund = await self._refund_repo.create_refund(
            RefundCreate(
                payment_id=payment.id,  # type: ignore[arg-type]
                amount=request.amount,
                reason=request.reason,
                requested_by=request.requested_by,
                created_at=_epoch(),
            )
        )
        log = log.bind(refund_id=refund.id)
        log.info("refund_created", amount=str(request.amount))

        held: Decimal | None = None
        try:
            processor = self._processors.get_processor(payment.payment_method)
            if processor is None:
                refund = await self._fail_refund(refund, "Refund processor not available")
                log.warning("refund_processor_missing", method=payment.payment_method.value)
                return RefundResponse(
                    payment=payment,
                    refund=refund,
                    success=False,
                    message="Refund processor not available",
                    errors=[f"No processor registered for {payment.payment_method.value}"],
                )

            reserved = await self._payment_repo.reserve_refund_amount(payment.id, request.amount)  # type: ignore[arg-type]
            if reserved is None:
                refund = await self._fail_refund(refund, "Refundable balance changed before the refund was reserved")
                log.warning("refund_reservation_rejected")
                return RefundResponse(
                    payment=await self._payment_repo.get_payment(payment.id),  # type: ignore[arg-type]
                    refund=refund,
                    success=False,
                    message="Refund amount exceeds remaining refundable balance",
                    errors=["Refundable balance changed before the refund was reserved"],
                )
            held = request.amount

            result, error = await self._call_processor(processor.process_refund(payment, request.amount))
            if result is None or not result.success:
                reason = error if result is None else result.response_message
                refund = await self._fail_refund(refund, result.summary() if result else reason or "Refund failed")
                payment = await self._payment_repo.release_refund_amount(payment.id, request.amount)  # type: ignore[arg-type]
                held = None
                log.info("refund_failed", error=reason)
                return RefundResponse(
                    payment=payment,
                    refund=refund,
                    success=False,
                    message="Refund processing failed" if result is None else "Refund declined",
                    errors=[reason or "Refund failed"],
                )

            # Money has moved; the reserved balance stays consumed from here on.
            held = None
            refund = await self._refund_repo.update_refund_status(
                refund.id,  # type: ignore[arg-type]
                RefundStatus.COMPLETED,
                processor_response=result.summary(),
                processed_at=_epoch(),
            )
        except Exception as err:
            log.exception("refund_pipeline_error")
            reason = str(err) or err.__class__.__name__
            refund = await self._settle_refund(refund, reason)
            if held is not None:
                payment = await self._release_reservation(payment, held, log)
            return RefundResponse(
                payment=payment,
                refund=refund,
                success=False,
                message="Refund processing failed",
                errors=[reason],
            )

        payment = reserved
        if self._refund_policy == RefundStatusPolicy.MARK_REFUNDED and payment.refundable_amount <= 0:
            payment = await self._mark_refunded(payment, log)
        log.info("refund_completed", processor_id=result.processor_id, response_code=result.response_code)
        return RefundResponse(payment=payment, refund=refund, success=True, message=result.response_message)

    async def add_payment_method(self, request: AddPaymentMethodIn) -> PaymentMethodResponse:
        log = logger.bind(user_id=request.user_id, method=request.type.value)
        now = _epoch()
        candidate = PaymentMethodCreate(
            user_id=request.user_id,
            type=request.type,
            details=dict(request.details),
            fingerprint=generate_fingerprint(request.type, request.user_id, request.details),
            is_default=False,
            created_at=now,
            updated_at=now,
            **extract_display_fields(request.type, request.details),
        )

        if await self._payment_method_repo.get_payment_method_by_fingerprint(request.user_id, candidate.fingerprint):
            return PaymentMethodResponse(
                success=False,
                message="Payment method already registered",
                errors=["A payment method with the same details already exists"],
            )

        processor = self._processors.get_processor(request.type)
        if processor is not None:
            _, error = await self._call_verification(processor, candidate)
            if error is not None:
                log.info("payment_method_verification_failed", error=error)
                return PaymentMethodResponse(
                    success=False,
                    message="Payment method verification failed",
                    errors=[error],
                )

        try:
            method = await self._payment_method_repo.create_payment_method(
                candidate.model_copy(update={"details": sanitize_details(request.details)})
            )
        except AppException as err:
            if err.code == ErrorCode.DUPLICATE_REQUEST.value:
                return PaymentMethodResponse(
                    success=False,
                    message="Payment method already registered",
                    errors=[err.message],
                )
            raise

        if request.is_default:
            method = await self._payment_method_repo.set_default_payment_method(
                request.user_id,
                method.id,  # type: ignore[arg-type]
            )

        log.info("payment_method_added", payment_method_id=method.id, is_default=method.is_default)
        return PaymentMethodResponse(payment_method=method, success=True, message="Payment method added successfully")

    async def _call_verification(
        self,
        processor: PaymentProcessor,
        method: PaymentMethodCreate,
    ) -> tuple[None, str | None]:
        try:
            await asyncio.wait_for(
                processor.verify_payment_method(method),
                timeout=self._settings.processor_timeout_seconds,
            )
        except AppException as err:
            return None, err.message
        except asyncio.TimeoutError:
            return None, "Payment method verification timed out"
        except Exception as err:
            logger.exception("payment_method_verification_error", processor_id=processor.processor_id)
            return None, str(err) or err.__class__.__name__
        return None, None

    async def get_payment(self, payment_id: str) -> PaymentOut:
        payment = await self._payment_repo.get_payment(payment_id)
        if payment is None:
            raise resource_not_found("Payment", payment_id)
        return payment

    async def get_user_payment_methods(self, user_id: str) -> list[PaymentMethodOut]:
        return await self._payment_method_repo.get_user_payment_methods(user_id)

    async def get_user_payments(
        self,
        user_id: str,
        limit: int | None = DEFAULT_PAGE_SIZE,
        offset: int | None = 0,
    ) -> list[PaymentOut]:
        limit, offset = _normalize_page(limit, offset)
        return await self._payment_repo.get_payments_by_user(user_id, limit, offset)

    async def get_trip_payments(self, trip_id: str) -> list[PaymentOut]:
        return await self._payment_repo.get_payments_by_trip(trip_id)

    async def get_payment_refunds(self, payment_id: str) -> list[RefundOut]:
        await self.get_payment(payment_id)
        return await self._refund_repo.get_refunds_by_payment(payment_id)

    async def get_payment_stats(self) -> PaymentStats:
        return await self._payment_repo.summarize_payments()
