from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from ryls_api.constants import ScholarshipType, PaymentType, UploadType
from ryls_api.errors import (
    ValidationError, NotFoundError, GatewayError, SignatureError,
    ConsistencyError, GatewayReconciliationError,
)
from ryls_api.models import GatewayRecord, RylsPayment, AuditLog
from ryls_api.services import AuditService


def _start(service, registration):
    return service.start_payment(registration.id, PaymentType.GATEWAY)


# ─── Seed scenarios ──────────────────────────────────────────────────

def test_happy_path_fully_funded(db, payment_service, make_registration, notification):
    registration = make_registration(ScholarshipType.FULLY_FUNDED, email="a@x.io")

    started = _start(payment_service, registration)
    assert started["order_id"] == "RYLS0001"
    assert started["amount"] == 225000
    assert started["currency"] == "IDR"
    assert started["token"] == "snap-token-RYLS0001"

    result = payment_service.apply_notification(notification("RYLS0001", "settlement"))
    assert result["registration_status"] == "PAID"
    assert result["payment_status"] == "PAID"

    db.expire_all()
    payment = db.query(RylsPayment).one()
    assert payment.paid_at is not None
    assert payment.gateway_record.paid_at is not None
    assert payment.gateway_record.transaction_status == "settlement"
    assert registration.payment_status == "PAID"


def test_self_funded_expiry(db, payment_service, make_registration, notification):
    registration = make_registration(ScholarshipType.SELF_FUNDED)

    started = _start(payment_service, registration)
    assert started["amount"] == 9000000

    payment_service.apply_notification(
        notification(started["order_id"], "expire", gross_amount="9000000.00", status_code="407")
    )
    db.expire_all()
    assert db.query(RylsPayment).one().status == "EXPIRED"
    assert registration.payment_status == "EXPIRED"


def test_identical_renotification_changes_nothing(payment_service, make_registration, notification, snapshot):
    registration = make_registration()
    _start(payment_service, registration)
    payload = notification("RYLS0001", "settlement")

    first = payment_service.apply_notification(dict(payload))
    before = snapshot()
    second = payment_service.apply_notification(dict(payload))

    assert second == first
    assert snapshot() == before


def test_bad_signature_changes_nothing(payment_service, make_registration, notification, snapshot):
    registration = make_registration()
    _start(payment_service, registration)
    payload = notification("RYLS0001", "settlement")
    payload["signature_key"] = "deadbeef"

    before = snapshot()
    with pytest.raises(SignatureError):
        payment_service.apply_notification(payload)
    assert snapshot() == before


def test_amount_mismatch_changes_nothing(payment_service, make_registration, notification, snapshot):
    registration = make_registration()
    _start(payment_service, registration)

    before = snapshot()
    with pytest.raises(ConsistencyError):
        payment_service.apply_notification(notification("RYLS0001", "settlement", gross_amount="1000"))
    assert snapshot() == before


def test_pending_token_is_reused(db, payment_service, gateway, make_registration):
    registration = make_registration()

    first = _start(payment_service, registration)
    second = _start(payment_service, registration)

    assert second["token"] == first["token"]
    assert second["order_id"] == first["order_id"]
    assert second["reused"] is True
    assert len(gateway.created) == 1
    assert db.query(GatewayRecord).count() == 1


# ─── Start ───────────────────────────────────────────────────────────

def test_gateway_payload(payment_service, gateway, make_registration):
    registration = make_registration(full_name="Ayu Lestari Putri", email="ayu@x.io")
    _start(payment_service, registration)

    params = gateway.created[0]
    assert params["transaction_details"] == {"order_id": "RYLS0001", "gross_amount": 225000}
    assert params["customer_details"]["first_name"] == "Ayu"
    assert params["customer_details"]["last_name"] == "Lestari Putri"
    assert params["customer_details"]["email"] == "ayu@x.io"
    assert params["item_details"] == [{
        "id": "ryls-fully-funded-fee",
        "name": "Rise Young Leaders Scholarship Fully Funded",
        "category": "registration",
        "price": 225000,
        "quantity": 1,
    }]
    assert params["custom_expiry"] == {"expiry_duration": 24, "unit": "hour"}


def test_gross_amount_matches_pricing(db, payment_service, make_registration):
    _start(payment_service, make_registration(ScholarshipType.FULLY_FUNDED))
    _start(payment_service, make_registration(ScholarshipType.SELF_FUNDED))
    amounts = {r.order_id: r.gross_amount_idr for r in db.query(GatewayRecord).all()}
    assert amounts == {"RYLS0001": 225000, "RYLS0002": 9000000}


def test_expired_pending_order_is_not_reused(db, payment_service, make_registration):
    registration = make_registration()
    _start(payment_service, registration)
    record = db.query(GatewayRecord).one()
    record.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    again = _start(payment_service, registration)
    assert again["order_id"] == "RYLS0002"
    assert again["reused"] is False


def test_order_under_fraud_review_is_reused(db, payment_service, gateway, make_registration, notification):
    registration = make_registration()
    first = _start(payment_service, registration)
    payment_service.apply_notification(notification(
        "RYLS0001", "capture", payment_type="credit_card", fraud_status="challenge",
    ))

    again = _start(payment_service, registration)
    assert again["order_id"] == first["order_id"]
    assert again["token"] == first["token"]
    assert again["reused"] is True
    assert len(gateway.created) == 1

    payment_service.apply_notification(notification(
        "RYLS0001", "settlement", payment_type="credit_card", fraud_status="accept",
    ))
    db.expire_all()
    assert registration.payment_status == "PAID"


def test_older_order_settling_after_newer_attempt_marks_paid(db, payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    record = db.query(GatewayRecord).one()
    record.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()
    assert _start(payment_service, registration)["order_id"] == "RYLS0002"

    result = payment_service.apply_notification(notification("RYLS0001", "settlement"))
    assert result["payment_status"] == "PAID"
    assert result["registration_status"] == "PAID"
    db.expire_all()
    assert registration.payment_status == "PAID"

    # The newer attempt failing afterwards does not undo the settlement
    payment_service.apply_notification(notification("RYLS0002", "deny", status_code="202"))
    db.expire_all()
    assert registration.payment_status == "PAID"
    with pytest.raises(ValidationError):
        _start(payment_service, registration)


def test_gateway_failure_persists_nothing(db, payment_service, failing_gateway, make_registration, snapshot):
    registration = make_registration()
    before = snapshot()
    with pytest.raises(GatewayError):
        _start(payment_service, registration)
    assert snapshot() == before


def test_commit_failure_sends_compensating_cancel(db, payment_service, gateway, make_registration, monkeypatch):
    registration = make_registration()

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(GatewayReconciliationError):
        _start(payment_service, registration)
    monkeypatch.undo()

    assert gateway.cancelled == ["RYLS0001"]
    assert db.query(GatewayRecord).count() == 0
    assert db.query(RylsPayment).count() == 0


def test_unknown_registration(payment_service):
    with pytest.raises(NotFoundError):
        payment_service.start_payment(999, PaymentType.GATEWAY)


def test_scholarship_type_must_match_registration(payment_service, make_registration, snapshot):
    registration = make_registration(ScholarshipType.FULLY_FUNDED)
    before = snapshot()
    with pytest.raises(ValidationError):
        payment_service.start_payment(registration.id, PaymentType.GATEWAY, scholarship_type="SELF_FUNDED")
    assert snapshot() == before


def test_already_paid_registration_cannot_pay_again(payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    payment_service.apply_notification(notification("RYLS0001", "settlement"))

    with pytest.raises(ValidationError):
        _start(payment_service, registration)


def test_amount_below_minimum_persists_nothing(db, gateway, make_registration, snapshot):
    from ryls_api.config import Settings
    from ryls_api.services import OrderIdAllocator, PricingService, WebhookVerifier, PaymentService

    strict = Settings(MIN_AMOUNT_IDR=500000)
    service = PaymentService(
        db, gateway, WebhookVerifier("k"), OrderIdAllocator(strict), PricingService(strict), strict,
    )
    registration = make_registration(ScholarshipType.FULLY_FUNDED)
    before = snapshot()
    with pytest.raises(ValidationError):
        _start(service, registration)
    assert snapshot() == before
    assert gateway.created == []


# ─── Proof of transfer ───────────────────────────────────────────────

def test_proof_of_transfer_marks_paid(db, payment_service, make_registration, make_proof):
    registration = make_registration(ScholarshipType.SELF_FUNDED)
    proof = make_proof()

    result = payment_service.start_payment(registration.id, PaymentType.PROOF_OF_TRANSFER, payment_proof_id=proof.id)
    assert result["status"] == "PAID"
    assert result["amount"] == 9000000
    assert result["order_id"] is None

    db.expire_all()
    payment = db.query(RylsPayment).one()
    assert payment.proof_file_id == proof.id
    assert payment.gateway_record_id is None
    assert payment.paid_at is not None
    assert registration.payment_status == "PAID"


def test_proof_must_be_payment_proof_upload(payment_service, make_registration, make_proof):
    registration = make_registration()
    essay = make_proof(UploadType.ESSAY)
    with pytest.raises(ValidationError):
        payment_service.start_payment(registration.id, PaymentType.PROOF_OF_TRANSFER, payment_proof_id=essay.id)


def test_proof_cannot_be_linked_twice(payment_service, make_registration, make_proof):
    proof = make_proof()
    payment_service.start_payment(make_registration().id, PaymentType.PROOF_OF_TRANSFER, payment_proof_id=proof.id)
    with pytest.raises(ValidationError):
        payment_service.start_payment(make_registration().id, PaymentType.PROOF_OF_TRANSFER, payment_proof_id=proof.id)


# ─── Notifications ───────────────────────────────────────────────────

def test_unknown_order_is_not_found(payment_service, notification):
    with pytest.raises(NotFoundError):
        payment_service.apply_notification(notification("RYLS9999", "settlement"))


def test_missing_required_fields_are_rejected(payment_service):
    with pytest.raises(ValidationError):
        payment_service.apply_notification({"order_id": "RYLS0001", "transaction_status": "settlement"})


def test_unmapped_status_changes_nothing(payment_service, make_registration, notification, snapshot):
    _start(payment_service, make_registration())
    before = snapshot()
    result = payment_service.apply_notification(notification("RYLS0001", "authorize"))
    assert result["payment_status"] == "PENDING"
    assert snapshot() == before


def test_terminal_payment_ignores_later_notifications(db, payment_service, make_registration, notification, snapshot):
    registration = make_registration()
    _start(payment_service, registration)
    payment_service.apply_notification(notification("RYLS0001", "settlement"))

    before = snapshot()
    result = payment_service.apply_notification(notification("RYLS0001", "expire", status_code="407"))
    assert result["payment_status"] == "PAID"
    assert result["registration_status"] == "PAID"
    assert snapshot() == before


def test_credit_card_challenge_stays_pending_until_accepted(db, payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)

    held = payment_service.apply_notification(notification(
        "RYLS0001", "capture", payment_type="credit_card", fraud_status="challenge",
    ))
    assert held["payment_status"] == "PENDING"
    assert held["registration_status"] == "PENDING"

    accepted = payment_service.apply_notification(notification(
        "RYLS0001", "settlement", payment_type="credit_card", fraud_status="accept",
    ))
    assert accepted["payment_status"] == "PAID"
    db.expire_all()
    assert db.query(GatewayRecord).one().fraud_status == "accept"


def test_deny_fails_payment_and_registration(db, payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    result = payment_service.apply_notification(notification("RYLS0001", "deny", status_code="202"))
    assert result["payment_status"] == "FAILED"
    assert result["registration_status"] == "FAILED"


def test_raw_notification_is_preserved(db, payment_service, make_registration, notification):
    _start(payment_service, make_registration())
    payload = notification("RYLS0001", "settlement", va_numbers=[{"bank": "bca", "va_number": "123"}])
    payment_service.apply_notification(dict(payload))
    db.expire_all()
    assert db.query(GatewayRecord).one().last_notification == payload


def test_registration_follows_latest_payment(db, payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    payment_service.apply_notification(notification("RYLS0001", "expire", status_code="407"))
    db.expire_all()
    assert registration.payment_status == "EXPIRED"

    _start(payment_service, registration)
    db.expire_all()
    assert registration.payment_status == "PENDING"


def test_audit_entries_only_for_real_changes(db, payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    payload = notification("RYLS0001", "settlement")
    payment_service.apply_notification(dict(payload))
    payment_service.apply_notification(dict(payload))

    actions = [e.action for e in db.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions == ["PAYMENT_INITIATED", "PAYMENT_NOTIFICATION_APPLIED"]


def test_audit_chain_detects_edited_payload(db, payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    payment_service.apply_notification(notification("RYLS0001", "settlement"))
    assert AuditService.verify_chain(db, registration.id)["valid"] is True

    initiated = db.query(AuditLog).order_by(AuditLog.id).first()
    initiated.payload = dict(initiated.payload, amount=1000)
    db.commit()

    result = AuditService.verify_chain(db, registration.id)
    assert result["valid"] is False
    assert result["broken_at"] == initiated.id
    assert result["reason"] == "payload"


# ─── Status & cancel ─────────────────────────────────────────────────

def test_status_without_payments(payment_service, make_registration):
    assert payment_service.get_payment_status(make_registration().id) == {"has_payment": False}
    assert payment_service.get_payment_status(12345) == {"has_payment": False}


def test_status_reports_latest_payment(payment_service, make_registration):
    registration = make_registration()
    _start(payment_service, registration)
    status = payment_service.get_payment_status(registration.id)
    assert status["has_payment"] is True
    assert status["order_id"] == "RYLS0001"
    assert status["status"] == "PENDING"
    assert status["amount"] == 225000
    assert status["type"] == "GATEWAY"
    assert status["payment_type"] is None


def test_status_reports_gateway_channel(payment_service, make_registration, notification):
    registration = make_registration()
    _start(payment_service, registration)
    payment_service.apply_notification(notification("RYLS0001", "pending", status_code="201", payment_type="bank_transfer"))

    status = payment_service.get_payment_status(registration.id)
    assert status["type"] == "GATEWAY"
    assert status["payment_type"] == "bank_transfer"


def test_cancel_pending_order(db, payment_service, make_registration):
    registration = make_registration()
    _start(payment_service, registration)

    result = payment_service.cancel("RYLS0001")
    assert result == {"order_id": "RYLS0001", "previous_status": "pending", "new_status": "cancel"}

    db.expire_all()
    record = db.query(GatewayRecord).one()
    assert record.transaction_status == "cancel"
    assert record.last_notification["cancelled_by"] == "system"
    assert record.last_notification["reason"] == "Manual cancellation"
    assert record.payment.status == "FAILED"
    assert payment_service.get_payment_status(registration.id)["status"] == "FAILED"
    assert registration.payment_status == "FAILED"


def test_cancel_non_pending_changes_nothing(payment_service, make_registration, notification, snapshot):
    _start(payment_service, make_registration())
    payment_service.apply_notification(notification("RYLS0001", "settlement"))
    before = snapshot()
    with pytest.raises(ValidationError):
        payment_service.cancel("RYLS0001")
    assert snapshot() == before


def test_cancel_unknown_order(payment_service):
    with pytest.raises(NotFoundError):
        payment_service.cancel("RYLS0404")


def test_cancelled_order_id_is_never_reused(payment_service, make_registration):
    registration = make_registration()
    _start(payment_service, registration)
    payment_service.cancel("RYLS0001")
    assert _start(payment_service, registration)["order_id"] == "RYLS0002"


def test_statistics(payment_service, make_registration, make_proof, notification):
    _start(payment_service, make_registration())
    payment_service.apply_notification(notification("RYLS0001", "settlement"))
    _start(payment_service, make_registration(ScholarshipType.SELF_FUNDED))

    stats = payment_service.statistics()
    assert stats["total_payments"] == 2
    assert stats["paid_payments"] == 1
    assert stats["pending_payments"] == 1
    assert stats["total_paid_idr"] == 225000
    assert stats["success_rate"] == 50.0
    assert payment_service.statistics(scholarship_type=ScholarshipType.SELF_FUNDED)["total_payments"] == 1


def test_order_locks_are_released(payment_service, make_registration, notification):
    from ryls_api.services import payment_service as payment_module

    _start(payment_service, make_registration())
    payment_service.apply_notification(notification("RYLS0001", "settlement"))
    _start(payment_service, make_registration())
    payment_service.cancel("RYLS0002")

    assert len(payment_module._order_locks) == 0
    assert len(payment_module._registration_locks) == 0


def test_keyed_locks_are_reentrant():
    from ryls_api.services.payment_service import _KeyedLocks

    locks = _KeyedLocks()
    with locks.hold("RYLS0001"):
        with locks.hold("RYLS0001"):
            assert len(locks) == 1
        assert len(locks) == 1
    assert len(locks) == 0
