"""
Payment Models — Gateway attempts and the logical payment that unifies
gateway-mediated and proof-of-transfer payments.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from ryls_api.database import Base


class GatewayRecord(Base):
    __tablename__ = "midtrans_payments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(String(50), unique=True, nullable=False, index=True)

    # Snap credentials (immutable after creation)
    snap_token = Column(String(255), nullable=False)
    redirect_url = Column(String(500))

    gross_amount_idr = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default="IDR")

    # Mirror of gateway state
    transaction_status = Column(String(16), nullable=False, default="pending", index=True)
    # pending | settlement | capture | deny | cancel | expire | refund | chargeback | challenge
    fraud_status = Column(String(16))         # accept | challenge | deny
    payment_type = Column(String(50))         # bank_transfer | credit_card | gopay | ...
    transaction_id = Column(String(100))      # Gateway-assigned

    last_notification = Column(JSON)          # Raw payload, preserved verbatim
    notified_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payment = relationship("RylsPayment", back_populates="gateway_record", uselist=False)


class RylsPayment(Base):
    __tablename__ = "ryls_payments"
    __table_args__ = (
        CheckConstraint(
            "(gateway_record_id IS NULL) <> (proof_file_id IS NULL)",
            name="ck_ryls_payments_single_source",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    registration_id = Column(Integer, ForeignKey("ryls_registrations.id"), nullable=False, index=True)

    type = Column(String(20), nullable=False)                       # GATEWAY | PROOF_OF_TRANSFER
    status = Column(String(16), nullable=False, default="PENDING", index=True)
    # PENDING | PAID | FAILED | EXPIRED | CANCELLED
    amount = Column(Integer, nullable=False)                        # Whole IDR

    gateway_record_id = Column(Integer, ForeignKey("midtrans_payments.id"), unique=True, nullable=True)
    proof_file_id = Column(Integer, ForeignKey("file_uploads.id"), unique=True, nullable=True)

    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    registration = relationship("Registration", back_populates="payments")
    gateway_record = relationship("GatewayRecord", back_populates="payment")
    proof_file = relationship("FileAsset")
