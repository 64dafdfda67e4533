import hashlib
import os
import tempfile
from datetime import date

# Settings are read at import time, so the environment goes first
_TMP = tempfile.mkdtemp(prefix="ryls-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MIDTRANS_MODE"] = "sandbox"
os.environ["MIDTRANS_SANDBOX_SERVER_KEY"] = "SB-Mid-server-test-key"
os.environ["MIDTRANS_SANDBOX_CLIENT_KEY"] = "SB-Mid-client-test-key"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from ryls_api.config import get_settings
from ryls_api.constants import ScholarshipType, UploadType, ESSAY_TOPICS
from ryls_api.database import Base, SessionLocal, engine, init_db
from ryls_api.dependencies import get_gateway, get_order_id_allocator
from ryls_api.errors import GatewayError
from ryls_api.main import app
from ryls_api.models import Registration, FullyFundedSubmission, SelfFundedSubmission, FileAsset
from ryls_api.services import OrderIdAllocator, PricingService, WebhookVerifier, PaymentService
from ryls_api.utils.rate_limiter import reset_rate_limits

SERVER_KEY = "SB-Mid-server-test-key"
TABLES = ("ryls_registrations", "ryls_payments", "midtrans_payments", "audit_logs", "file_uploads")


class FakeGateway:
    """In-memory stand-in for MidtransSnapClient."""

    mode = "sandbox"
    snap_js_url = "https://app.sandbox.midtrans.com/snap/snap.js"

    def __init__(self):
        self.created = []
        self.cancelled = []
        self.fail_with = None

    def server_key(self):
        return SERVER_KEY

    def client_key(self):
        return "SB-Mid-client-test-key"

    def create_transaction(self, params):
        if self.fail_with:
            raise self.fail_with
        self.created.append(params)
        order_id = params["transaction_details"]["order_id"]
        return {
            "token": f"snap-token-{order_id}",
            "redirect_url": f"https://app.sandbox.midtrans.com/snap/v2/vtweb/{order_id}",
        }

    def cancel_transaction(self, order_id):
        self.cancelled.append(order_id)
        return {"status_code": "200", "transaction_status": "cancel"}


def sign(order_id, status_code, gross_amount, key=SERVER_KEY):
    return hashlib.sha512(f"{order_id}{status_code}{gross_amount}{key}".encode("utf-8")).hexdigest()


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.drop_all(bind=engine)
    init_db()
    reset_rate_limits()
    get_order_id_allocator.cache_clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payment_service(db, gateway, settings):
    return PaymentService(
        db, gateway, WebhookVerifier(SERVER_KEY), OrderIdAllocator(settings), PricingService(settings), settings,
    )


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    return TestClient(app)


@pytest.fixture
def make_registration(db):
    """Insert a committed registration with its submission and upload."""
    counter = {"n": 0}

    def _make(scholarship_type=ScholarshipType.FULLY_FUNDED, email="a@x.io", full_name="Ayu Lestari Putri"):
        counter["n"] += 1
        n = counter["n"]
        registration = Registration(
            submission_code=f"RYLS-TEST-{n:05d}",
            full_name=full_name,
            email=email,
            residence="Jakarta",
            nationality="Indonesia",
            whatsapp="+62 812 0000 0000",
            institution="Universitas Indonesia",
            date_of_birth=date(2002, 5, 17),
            gender="FEMALE",
            scholarship_type=scholarship_type.value,
            discover_source="RISE_INSTAGRAM",
            payment_status="PENDING",
        )
        if scholarship_type == ScholarshipType.FULLY_FUNDED:
            asset = FileAsset(upload_type=UploadType.ESSAY.value, original_name="essay.pdf",
                              file_path=f"/tmp/essay-{n}.pdf", mime_type="application/pdf", file_size=10)
            registration.fully_funded_submission = FullyFundedSubmission(
                essay_topic=ESSAY_TOPICS[0], essay_file=asset,
            )
        else:
            asset = FileAsset(upload_type=UploadType.HEADSHOT.value, original_name="me.png",
                              file_path=f"/tmp/me-{n}.png", mime_type="image/png", file_size=10)
            registration.self_funded_submission = SelfFundedSubmission(
                passport_number="C1234567", need_visa=True, headshot_file=asset, read_policies=True,
            )
        db.add(registration)
        db.commit()
        return registration

    return _make


@pytest.fixture
def make_proof(db):
    def _make(upload_type=UploadType.PAYMENT_PROOF):
        asset = FileAsset(upload_type=upload_type.value, original_name="transfer.jpg",
                          file_path="/tmp/transfer.jpg", mime_type="image/jpeg", file_size=10)
        db.add(asset)
        db.commit()
        return asset

    return _make


@pytest.fixture
def notification():
    """Build a correctly signed gateway notification."""

    def _build(order_id, transaction_status, gross_amount="225000.00", status_code="200", **extra):
        payload = {
            "order_id": order_id,
            "status_code": status_code,
            "gross_amount": gross_amount,
            "transaction_status": transaction_status,
            "transaction_id": f"txn-{order_id}",
            "payment_type": "bank_transfer",
            "currency": "IDR",
        }
        payload.update(extra)
        payload["signature_key"] = sign(order_id, status_code, gross_amount)
        return payload

    return _build


@pytest.fixture
def snapshot(db):
    """Every row of the payment-related tables, for no-change assertions."""

    def _take():
        db.expire_all()
        return {
            table: [tuple(row) for row in db.execute(text(f"SELECT * FROM {table} ORDER BY id")).fetchall()]
            for table in TABLES
        }

    return _take


@pytest.fixture
def failing_gateway(gateway):
    gateway.fail_with = GatewayError("Network error during create transaction: ReadTimeout")
    return gateway
