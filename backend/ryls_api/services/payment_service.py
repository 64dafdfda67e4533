"""
Payment Service — Orchestrates the RYLS payment lifecycle.

Links a registration to its payment attempts, creates gateway orders,
applies verified webhook notifications and keeps registration.payment_status
in step with the latest payment.

Transaction rules:
  - start: allocate order id -> call gateway -> persist record + payment in
    one commit. A gateway failure persists nothing; a commit failure after
    the gateway accepted the order triggers a best-effort gateway cancel
    and surfaces GatewayReconciliationError.
  - notifications and cancels for one order_id are serialized in-process and
    read their rows FOR UPDATE.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ryls_api.config import Settings
from ryls_api.constants import (
    PaymentType, PaymentStatus, RegistrationPaymentStatus, UploadType,
    TERMINAL_PAYMENT_STATUSES, CURRENCY_IDR, GATEWAY_PENDING, GATEWAY_CANCEL, UNKNOWN,
    FRAUD_REVIEW_REQUIRED, FRAUD_REJECTED, map_transaction_status, map_fraud_status,
)
from ryls_api.errors import (
    ValidationError, NotFoundError, GatewayError, SignatureError,
    ConsistencyError, GatewayReconciliationError,
)
from ryls_api.models.payment import GatewayRecord, RylsPayment
from ryls_api.models.registration import Registration
from ryls_api.repositories import RegistrationRepository, PaymentRepository, FileAssetRepository
from ryls_api.schemas.schemas import GatewayNotification
from ryls_api.services import audit_service as audit
from ryls_api.services.audit_service import AuditService
from ryls_api.services.gateway import MidtransSnapClient
from ryls_api.services.order_ids import OrderIdAllocator
from ryls_api.services.pricing import PricingService
from ryls_api.services.webhook_verifier import WebhookVerifier
from ryls_api.utils.validators import split_full_name

logger = logging.getLogger(__name__)

CREDIT_CARD = "credit_card"
MANUAL_CANCEL_REASON = "Manual cancellation"

# Registration projection of a terminal payment status
REGISTRATION_STATUS_FOR = {
    PaymentStatus.PAID: RegistrationPaymentStatus.PAID,
    PaymentStatus.FAILED: RegistrationPaymentStatus.FAILED,
    PaymentStatus.EXPIRED: RegistrationPaymentStatus.EXPIRED,
    PaymentStatus.CANCELLED: RegistrationPaymentStatus.FAILED,
}


class _KeyedLocks:
    """One re-entrant lock per key, dropped when its last holder leaves."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict = {}  # key -> [RLock, holders]

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self):
        return len(self._locks)


_order_locks = _KeyedLocks()
_registration_locks = _KeyedLocks()


class PaymentService:

    def __init__(
        self,
        db: Session,
        gateway: MidtransSnapClient,
        verifier: WebhookVerifier,
        allocator: OrderIdAllocator,
        pricing: PricingService,
        settings: Settings,
    ):
        self.db = db
        self.gateway = gateway
        self.verifier = verifier
        self.allocator = allocator
        self.pricing = pricing
        self.settings = settings
        self.registrations = RegistrationRepository(db)
        self.payments = PaymentRepository(db)
        self.files = FileAssetRepository(db)

    # ─── Start ───────────────────────────────────────────────────────

    def start_payment(
        self,
        registration_id: int,
        payment_type,
        scholarship_type=None,
        payment_proof_id: Optional[int] = None,
    ) -> dict:
        """Start a GATEWAY or PROOF_OF_TRANSFER payment for a registration.

        Raises:
            NotFoundError: unknown registration or proof file.
            ValidationError: scholarship type mismatch, already paid,
                unusable proof file, or amount out of range.
            GatewayError: the gateway rejected or never answered; nothing stored.
            GatewayReconciliationError: the gateway accepted the order but it
                could not be stored.
        """
        try:
            payment_type = PaymentType(payment_type)
        except ValueError:
            raise ValidationError(f"Invalid payment type: {payment_type}")

        with _registration_locks.hold(registration_id):
            registration = self.registrations.get(registration_id)
            if registration is None:
                raise NotFoundError(f"Registration {registration_id} not found")

            if scholarship_type is not None:
                supplied = getattr(scholarship_type, "value", scholarship_type)
                if supplied != registration.scholarship_type:
                    raise ValidationError(
                        f"scholarshipType {supplied} does not match the registration ({registration.scholarship_type})"
                    )

            if self._is_paid(registration):
                raise ValidationError(f"Registration {registration_id} is already paid")

            if payment_type == PaymentType.GATEWAY:
                return self._start_gateway_payment(registration)
            return self._record_proof_of_transfer(registration, payment_proof_id)

    def _is_paid(self, registration: Registration) -> bool:
        if registration.payment_status == RegistrationPaymentStatus.PAID.value:
            return True
        return self.payments.has_paid_payment(registration.id)

    def _start_gateway_payment(self, registration: Registration) -> dict:
        now = datetime.utcnow()
        existing = self.payments.find_active_pending_gateway_payment(registration.id, now)
        if existing is not None:
            logger.info(
                "Reusing pending order %s for registration %s",
                existing.gateway_record.order_id, registration.id,
            )
            return self._gateway_result(existing, reused=True)

        amount = self.pricing.amount_for(registration.scholarship_type)
        item = self.pricing.item_template_for(registration.scholarship_type)

        order_id = self.allocator.allocate(self.payments)
        try:
            params = self._snap_params(registration, order_id, amount, item)
            snap = self.gateway.create_transaction(params)

            try:
                record = self.payments.add_gateway_record(GatewayRecord(
                    order_id=order_id,
                    snap_token=snap["token"],
                    redirect_url=snap["redirect_url"],
                    gross_amount_idr=amount,
                    currency=CURRENCY_IDR,
                    transaction_status=GATEWAY_PENDING,
                    expires_at=now + self._expiry(),
                    created_at=now,
                ))
                payment = self.payments.add_payment(RylsPayment(
                    registration_id=registration.id,
                    type=PaymentType.GATEWAY.value,
                    status=PaymentStatus.PENDING.value,
                    amount=amount,
                    gateway_record_id=record.id,
                    created_at=now,
                ))
                self._project_registration(registration)
                AuditService.record(
                    self.db, registration.id, audit.PAYMENT_INITIATED,
                    payload={"order_id": order_id, "amount": amount, "type": PaymentType.GATEWAY.value},
                    metadata={"payment_id": payment.id, "currency": CURRENCY_IDR},
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                self._compensate(order_id, e)
        finally:
            self.allocator.release(order_id)

        logger.info(
            "Payment %s started for registration %s: order %s, %s IDR",
            payment.id, registration.id, order_id, amount,
        )
        return self._gateway_result(payment)

    def _snap_params(self, registration: Registration, order_id: str, amount: int, item: dict) -> dict:
        first_name, last_name = split_full_name(registration.full_name)
        return {
            "transaction_details": {"order_id": order_id, "gross_amount": amount},
            "customer_details": {
                "first_name": first_name,
                "last_name": last_name,
                "email": registration.email,
                "phone": registration.whatsapp,
            },
            "item_details": [{**item, "price": amount, "quantity": 1}],
            "custom_expiry": {
                "expiry_duration": self.settings.PAYMENT_EXPIRY_DURATION,
                "unit": self.settings.PAYMENT_EXPIRY_UNIT,
            },
        }

    def _expiry(self) -> timedelta:
        return timedelta(**{f"{self.settings.PAYMENT_EXPIRY_UNIT}s": self.settings.PAYMENT_EXPIRY_DURATION})

    def _compensate(self, order_id: str, cause: Exception):
        logger.error("Order %s accepted by the gateway but not stored: %s", order_id, cause)
        try:
            self.gateway.cancel_transaction(order_id)
            logger.warning("Compensating cancel sent for order %s", order_id)
        except GatewayError as e:
            logger.error("Compensating cancel for order %s failed: %s", order_id, e.message)
        raise GatewayReconciliationError(
            f"Order {order_id} was created at the gateway but could not be stored",
            order_id=order_id,
        )

    def _record_proof_of_transfer(self, registration: Registration, payment_proof_id: Optional[int]) -> dict:
        if payment_proof_id is None:
            raise ValidationError("paymentProofId is required for PROOF_OF_TRANSFER payments")

        asset = self.files.get(payment_proof_id)
        if asset is None:
            raise NotFoundError(f"Payment proof file {payment_proof_id} not found")
        if asset.upload_type != UploadType.PAYMENT_PROOF.value:
            raise ValidationError(f"File {payment_proof_id} is not a payment proof upload")
        if self.payments.find_payment_by_proof_file(asset.id) is not None:
            raise ValidationError(f"File {payment_proof_id} is already linked to a payment")

        amount = self.pricing.amount_for(registration.scholarship_type)
        now = datetime.utcnow()
        try:
            payment = self.payments.add_payment(RylsPayment(
                registration_id=registration.id,
                type=PaymentType.PROOF_OF_TRANSFER.value,
                status=PaymentStatus.PAID.value,
                amount=amount,
                proof_file_id=asset.id,
                paid_at=now,
                created_at=now,
            ))
            self._project_registration(registration)
            AuditService.record(
                self.db, registration.id, audit.PAYMENT_PROOF_SUBMITTED,
                payload={"proof_file_id": asset.id, "amount": amount},
                metadata={"payment_id": payment.id},
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Proof-of-transfer payment %s recorded for registration %s", payment.id, registration.id)
        return {
            "payment_id": payment.id,
            "type": PaymentType.PROOF_OF_TRANSFER,
            "status": payment.status,
            "order_id": None,
            "amount": payment.amount,
            "currency": CURRENCY_IDR,
            "token": None,
            "redirect_url": None,
            "reused": False,
        }

    @staticmethod
    def _gateway_result(payment: RylsPayment, reused: bool = False) -> dict:
        record = payment.gateway_record
        return {
            "payment_id": payment.id,
            "type": PaymentType.GATEWAY,
            "status": payment.status,
            "order_id": record.order_id,
            "amount": record.gross_amount_idr,
            "currency": record.currency,
            "token": record.snap_token,
            "redirect_url": record.redirect_url,
            "reused": reused,
        }

    # ─── Notifications ───────────────────────────────────────────────

    def apply_notification(self, payload: dict) -> dict:
        """Apply a gateway notification. Replays return the same result and change nothing.

        Raises:
            ValidationError: malformed payload.
            SignatureError: signature does not verify.
            NotFoundError: unknown order, or no payment behind it.
            ConsistencyError: gross_amount differs from the stored amount.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Notification body must be a JSON object")
        try:
            notification = GatewayNotification.model_validate(payload)
        except SchemaValidationError as e:
            raise ValidationError(f"Malformed notification: {e.error_count()} invalid field(s)")

        if not self.verifier.verify(payload):
            logger.warning("Rejected notification with invalid signature: %s", payload)
            raise SignatureError("Invalid notification signature", order_id=notification.order_id)

        with _order_locks.hold(notification.order_id):
            try:
                return self._apply_verified(notification, payload)
            except SQLAlchemyError:
                self.db.rollback()
                raise

    def _apply_verified(self, notification: GatewayNotification, payload: dict) -> dict:
        order_id = notification.order_id
        record = self.payments.find_gateway_record_by_order_id(order_id, for_update=True)
        if record is None:
            raise NotFoundError(f"Unknown order {order_id}")
        payment = self.payments.find_payment_by_gateway_record(record, for_update=True)
        if payment is None:
            raise NotFoundError(f"No payment linked to order {order_id}")

        self._check_amount(record, notification.gross_amount)
        registration = self.registrations.get_for_update(payment.registration_id)

        if PaymentStatus(payment.status) in TERMINAL_PAYMENT_STATUSES:
            logger.info("Order %s already %s; notification ignored", order_id, payment.status)
            return self._notification_result(record, payment, registration)
        if record.last_notification == payload:
            logger.info("Duplicate notification for order %s ignored", order_id)
            return self._notification_result(record, payment, registration)

        mapped = map_transaction_status(notification.transaction_status)
        if mapped == UNKNOWN:
            logger.warning("Unmapped transaction_status %r for order %s", notification.transaction_status, order_id)
            return self._notification_result(record, payment, registration)

        new_status = mapped
        fraud_decision = None
        if notification.payment_type == CREDIT_CARD and notification.fraud_status:
            fraud_decision = map_fraud_status(notification.fraud_status)
            if fraud_decision == FRAUD_REVIEW_REQUIRED and new_status == PaymentStatus.PAID:
                new_status = PaymentStatus.PENDING
            elif fraud_decision == FRAUD_REJECTED:
                new_status = PaymentStatus.FAILED
            logger.info("Fraud status for order %s: %s -> %s", order_id, notification.fraud_status, fraud_decision)

        now = datetime.utcnow()
        previous_status = payment.status
        record.transaction_status = notification.transaction_status
        record.transaction_id = notification.transaction_id or record.transaction_id
        record.payment_type = notification.payment_type or record.payment_type
        record.fraud_status = notification.fraud_status
        record.last_notification = payload
        record.notified_at = now
        if new_status == PaymentStatus.PAID and record.paid_at is None:
            record.paid_at = now

        payment.status = new_status.value
        if new_status == PaymentStatus.PAID and payment.paid_at is None:
            payment.paid_at = now
        self.db.flush()

        self._project_registration(registration)
        AuditService.record(
            self.db, registration.id, audit.PAYMENT_NOTIFICATION_APPLIED,
            payload={
                "order_id": order_id,
                "transaction_status": notification.transaction_status,
                "previous_status": previous_status,
                "new_status": payment.status,
            },
            metadata={"payment_id": payment.id, "fraud_decision": fraud_decision},
        )
        self.db.commit()

        logger.info(
            "Order %s: %s -> %s (registration %s now %s)",
            order_id, previous_status, payment.status, registration.id, registration.payment_status,
        )
        return self._notification_result(record, payment, registration)

    @staticmethod
    def _check_amount(record: GatewayRecord, gross_amount: str):
        try:
            received = Decimal(gross_amount)
        except InvalidOperation:
            raise ValidationError(f"Malformed gross_amount {gross_amount!r}")
        if not received.is_finite():
            raise ValidationError(f"Malformed gross_amount {gross_amount!r}")
        if received != Decimal(record.gross_amount_idr):
            raise ConsistencyError(
                f"gross_amount {gross_amount} does not match stored amount for {record.order_id}",
                order_id=record.order_id,
            )

    @staticmethod
    def _notification_result(record: GatewayRecord, payment: RylsPayment, registration: Registration) -> dict:
        return {
            "order_id": record.order_id,
            "transaction_status": record.transaction_status,
            "registration_status": registration.payment_status,
            "payment_status": payment.status,
            "payment_id": payment.id,
        }

    # ─── Projection ──────────────────────────────────────────────────

    def _project_registration(self, registration: Registration):
        """Registration mirrors its latest payment when terminal, else PENDING.

        A settled payment wins over any later attempt: an order that settles
        after a newer one was opened still marks the registration PAID.
        """
        latest = self.payments.latest_for_registration(registration.id)
        status = RegistrationPaymentStatus.PENDING
        if self.payments.has_paid_payment(registration.id):
            status = RegistrationPaymentStatus.PAID
        elif latest is not None and PaymentStatus(latest.status) in TERMINAL_PAYMENT_STATUSES:
            status = REGISTRATION_STATUS_FOR[PaymentStatus(latest.status)]
        self.registrations.update_payment_status(registration, status.value)

    # ─── Queries ─────────────────────────────────────────────────────

    def get_payment_status(self, registration_id: int) -> dict:
        latest = self.payments.latest_for_registration(registration_id)
        if latest is None:
            return {"has_payment": False}

        record = latest.gateway_record
        return {
            "has_payment": True,
            "status": latest.status,
            "order_id": record.order_id if record else None,
            "amount": latest.amount,
            "currency": record.currency if record else CURRENCY_IDR,
            "type": latest.type,
            "payment_type": record.payment_type if record else None,
            "transaction_status": record.transaction_status if record else None,
            "paid_at": latest.paid_at,
            "created_at": latest.created_at,
        }

    def statistics(self, date_from=None, date_to=None, scholarship_type=None) -> dict:
        return self.payments.statistics(
            date_from=date_from,
            date_to=date_to,
            scholarship_type=getattr(scholarship_type, "value", scholarship_type),
        )

    # ─── Cancel ──────────────────────────────────────────────────────

    def cancel(self, order_id: str, reason: str = MANUAL_CANCEL_REASON) -> dict:
        """Cancel a still-pending order locally. Payment and registration become FAILED."""
        with _order_locks.hold(order_id):
            try:
                record = self.payments.find_gateway_record_by_order_id(order_id, for_update=True)
                if record is None:
                    raise NotFoundError(f"Unknown order {order_id}")
                if record.transaction_status != GATEWAY_PENDING:
                    raise ValidationError(f"Cannot cancel payment with status: {record.transaction_status}")

                payment = self.payments.find_payment_by_gateway_record(record, for_update=True)
                now = datetime.utcnow()
                previous_status = record.transaction_status
                record.transaction_status = GATEWAY_CANCEL
                record.last_notification = {
                    "cancelled_by": "system",
                    "cancelled_at": now.isoformat(),
                    "reason": reason,
                }
                record.notified_at = now

                if payment is not None:
                    payment.status = PaymentStatus.FAILED.value
                    self.db.flush()
                    registration = self.registrations.get_for_update(payment.registration_id)
                    self._project_registration(registration)
                    AuditService.record(
                        self.db, registration.id, audit.PAYMENT_CANCELLED,
                        payload={"order_id": order_id, "previous_status": previous_status},
                        metadata={"payment_id": payment.id, "reason": reason},
                    )
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        logger.info("Order %s cancelled (%s)", order_id, reason)
        return {"order_id": order_id, "previous_status": previous_status, "new_status": GATEWAY_CANCEL}
