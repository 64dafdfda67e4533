"""
Audit Service — Hash-chained trail of registration and payment events.

Each entry stores the payload it hashed, so verification re-derives every
chain hash instead of trusting the stored links.
"""
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy.orm import Session

from ryls_api.models.audit import AuditLog
from ryls_api.utils.hashing import generate_chain_hash

REGISTRATION_SUBMITTED = "REGISTRATION_SUBMITTED"
PAYMENT_INITIATED = "PAYMENT_INITIATED"
PAYMENT_PROOF_SUBMITTED = "PAYMENT_PROOF_SUBMITTED"
PAYMENT_NOTIFICATION_APPLIED = "PAYMENT_NOTIFICATION_APPLIED"
PAYMENT_CANCELLED = "PAYMENT_CANCELLED"


class AuditService:

    @staticmethod
    def record(
        db: Session,
        registration_id: int,
        action: str,
        payload: Optional[Dict] = None,
        metadata: Optional[Dict] = None,
    ) -> AuditLog:
        """Append an entry to the registration's chain.

        Flushed, never committed: the entry lands in the same transaction as
        the state change it describes, or not at all.
        """
        tail = (
            db.query(AuditLog.payload_hash)
            .filter(AuditLog.registration_id == registration_id)
            .order_by(AuditLog.id.desc())
            .first()
        )
        previous_hash = tail[0] if tail else ""
        payload = payload or {}

        entry = AuditLog(
            registration_id=registration_id,
            action=action,
            payload=payload,
            payload_hash=generate_chain_hash(payload, previous_hash),
            previous_hash=previous_hash,
            log_metadata=metadata or {},
            timestamp=datetime.utcnow(),
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def get_trail(db: Session, registration_id: int) -> list[AuditLog]:
        return (
            db.query(AuditLog)
            .filter(AuditLog.registration_id == registration_id)
            .order_by(AuditLog.id.asc())
            .all()
        )

    @staticmethod
    def verify_chain(db: Session, registration_id: int) -> dict:
        """Walk the chain for a registration.

        Returns 'valid', 'total_entries' and, for a broken chain, the id of
        the first bad entry and whether its link or its payload was altered.
        """
        entries = AuditService.get_trail(db, registration_id)
        previous_hash = ""
        for entry in entries:
            if entry.previous_hash != previous_hash:
                return _broken(entries, entry, "link")
            if entry.payload_hash != generate_chain_hash(entry.payload or {}, previous_hash):
                return _broken(entries, entry, "payload")
            previous_hash = entry.payload_hash

        return {"valid": True, "total_entries": len(entries), "broken_at": None}


def _broken(entries: list[AuditLog], entry: AuditLog, reason: str) -> dict:
    return {
        "valid": False,
        "total_entries": len(entries),
        "broken_at": entry.id,
        "reason": reason,
        "message": f"Chain broken at entry {entry.id} ({entry.action}): {reason} mismatch",
    }
