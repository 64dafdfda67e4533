"""
Payment Repository — Gateway records and logical payments.
Never commits; the calling service owns the transaction.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ryls_api.constants import PaymentStatus, PaymentType
from ryls_api.models.payment import GatewayRecord, RylsPayment
from ryls_api.models.registration import Registration


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    # ─── Writes ──────────────────────────────────────────────────────

    def add_gateway_record(self, record: GatewayRecord) -> GatewayRecord:
        self.db.add(record)
        self.db.flush()  # Surfaces order_id uniqueness violations here
        return record

    def add_payment(self, payment: RylsPayment) -> RylsPayment:
        self.db.add(payment)
        self.db.flush()
        return payment

    # ─── Gateway records ─────────────────────────────────────────────

    def find_gateway_record_by_order_id(self, order_id: str, for_update: bool = False) -> Optional[GatewayRecord]:
        query = self.db.query(GatewayRecord).filter(GatewayRecord.order_id == order_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def last_gateway_record(self) -> Optional[GatewayRecord]:
        return self.db.query(GatewayRecord).order_by(GatewayRecord.id.desc()).first()

    def order_id_exists(self, order_id: str) -> bool:
        return self.db.query(GatewayRecord.id).filter(GatewayRecord.order_id == order_id).first() is not None

    # ─── Logical payments ────────────────────────────────────────────

    def find_payment_by_gateway_record(self, record: GatewayRecord, for_update: bool = False) -> Optional[RylsPayment]:
        query = self.db.query(RylsPayment).filter(RylsPayment.gateway_record_id == record.id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_payment_by_proof_file(self, file_id: int) -> Optional[RylsPayment]:
        return self.db.query(RylsPayment).filter(RylsPayment.proof_file_id == file_id).first()

    def list_for_registration(self, registration_id: int, limit: Optional[int] = None) -> list[RylsPayment]:
        """Payments for a registration, newest first (id breaks created_at ties)."""
        query = (
            self.db.query(RylsPayment)
            .filter(RylsPayment.registration_id == registration_id)
            .order_by(RylsPayment.created_at.desc(), RylsPayment.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def latest_for_registration(self, registration_id: int) -> Optional[RylsPayment]:
        payments = self.list_for_registration(registration_id, limit=1)
        return payments[0] if payments else None

    def has_paid_payment(self, registration_id: int) -> bool:
        return self.db.query(RylsPayment.id).filter(
            RylsPayment.registration_id == registration_id,
            RylsPayment.status == PaymentStatus.PAID.value,
        ).first() is not None

    def find_active_pending_gateway_payment(self, registration_id: int, now: datetime) -> Optional[RylsPayment]:
        """Latest PENDING gateway payment whose gateway record has not expired."""
        candidates = (
            self.db.query(RylsPayment)
            .join(GatewayRecord, RylsPayment.gateway_record_id == GatewayRecord.id)
            .filter(
                RylsPayment.registration_id == registration_id,
                RylsPayment.type == PaymentType.GATEWAY.value,
                RylsPayment.status == PaymentStatus.PENDING.value,
            )
            .order_by(RylsPayment.created_at.desc(), RylsPayment.id.desc())
            .all()
        )
        for payment in candidates:
            expires_at = payment.gateway_record.expires_at
            if expires_at is None or expires_at > now:
                return payment
        return None

    # ─── Reporting ───────────────────────────────────────────────────

    def statistics(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        scholarship_type: Optional[str] = None,
    ) -> dict:
        query = self.db.query(RylsPayment.status, func.count(RylsPayment.id), func.sum(RylsPayment.amount))
        if date_from:
            query = query.filter(RylsPayment.created_at >= date_from)
        if date_to:
            query = query.filter(RylsPayment.created_at <= date_to)
        if scholarship_type:
            query = query.join(Registration, RylsPayment.registration_id == Registration.id).filter(
                Registration.scholarship_type == scholarship_type
            )

        counts = {status.value: 0 for status in PaymentStatus}
        paid_total = 0
        for status, count, amount_sum in query.group_by(RylsPayment.status).all():
            counts[status] = count
            if status == PaymentStatus.PAID.value:
                paid_total = int(amount_sum or 0)

        total = sum(counts.values())
        return {
            "total_payments": total,
            "pending_payments": counts[PaymentStatus.PENDING.value],
            "paid_payments": counts[PaymentStatus.PAID.value],
            "failed_payments": counts[PaymentStatus.FAILED.value],
            "expired_payments": counts[PaymentStatus.EXPIRED.value],
            "cancelled_payments": counts[PaymentStatus.CANCELLED.value],
            "total_paid_idr": paid_total,
            "success_rate": round(counts[PaymentStatus.PAID.value] / total * 100, 1) if total else 0.0,
        }
