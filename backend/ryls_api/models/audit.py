"""
Audit Log Model — Immutable, tamper-evident trail of registration and payment events.
Every action is SHA-256 hashed and chained per registration.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from ryls_api.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    # No FK: the trail outlives an admin-deleted registration
    registration_id = Column(Integer, nullable=False, index=True)

    action = Column(String(50), nullable=False)
    # Actions: REGISTRATION_SUBMITTED, PAYMENT_INITIATED, PAYMENT_PROOF_SUBMITTED,
    #          PAYMENT_NOTIFICATION_APPLIED, PAYMENT_CANCELLED

    payload = Column(JSON, default=dict)     # Hashed content, kept for re-verification
    payload_hash = Column(String(64))       # SHA-256(previous_hash + payload hash)
    previous_hash = Column(String(64))      # Hash chain for tamper detection

    log_metadata = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow)
