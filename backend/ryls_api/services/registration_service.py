"""
Registration Service — Intake of RYLS applications.

Two explicit flows, one per scholarship type. A registration always starts
with payment_status PENDING; payments are started separately.
"""
import logging
import secrets
import time
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ryls_api.constants import UploadType, RegistrationPaymentStatus, CURRENCY_IDR
from ryls_api.errors import ValidationError, NotFoundError
from ryls_api.models.registration import Registration, FullyFundedSubmission, SelfFundedSubmission
from ryls_api.repositories import RegistrationRepository, PaymentRepository, FileAssetRepository
from ryls_api.schemas.schemas import (
    RegistrationStep1, FullyFundedRegistrationRequest, SelfFundedRegistrationRequest, FileInfo,
)
from ryls_api.services import audit_service as audit
from ryls_api.services.audit_service import AuditService
from ryls_api.services.file_service import file_info

logger = logging.getLogger(__name__)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
SUBMISSION_CODE_ATTEMPTS = 5


def _base36(number: int) -> str:
    digits = ""
    while number:
        number, rem = divmod(number, 36)
        digits = _BASE36[rem] + digits
    return digits or "0"


def _file_view(asset) -> Optional[dict]:
    if asset is None:
        return None
    return FileInfo(**file_info(asset)).model_dump(by_alias=True, mode="json")


def generate_submission_code() -> str:
    """RYLS-<base36 epoch ms>-<5 random base36 chars>."""
    random_part = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"RYLS-{_base36(int(time.time() * 1000))}-{random_part}"


class RegistrationService:

    def __init__(self, db: Session):
        self.db = db
        self.registrations = RegistrationRepository(db)
        self.payments = PaymentRepository(db)
        self.files = FileAssetRepository(db)

    # ─── Intake ──────────────────────────────────────────────────────

    def _new_registration(self, step1: RegistrationStep1) -> Registration:
        code = generate_submission_code()
        for _ in range(SUBMISSION_CODE_ATTEMPTS):
            if not self.registrations.submission_code_exists(code):
                break
            code = generate_submission_code()

        return Registration(
            submission_code=code,
            full_name=step1.full_name,
            email=step1.email,
            residence=step1.residence.strip(),
            nationality=step1.nationality.strip(),
            second_nationality=(step1.second_nationality or "").strip() or None,
            whatsapp=step1.whatsapp,
            institution=step1.institution.strip(),
            date_of_birth=step1.date_of_birth,
            gender=step1.gender.value,
            scholarship_type=step1.scholarship_type.value,
            discover_source=step1.discover_source.value,
            discover_other_text=(step1.discover_other_text or "").strip() or None,
            payment_status=RegistrationPaymentStatus.PENDING.value,
        )

    def _require_upload(self, file_id: int, upload_type: UploadType, field: str):
        asset = self.files.get(file_id)
        if asset is None:
            raise ValidationError(f"{field} {file_id} does not reference an uploaded file")
        if asset.upload_type != upload_type.value:
            raise ValidationError(f"{field} {file_id} is not a {upload_type.value} upload")
        return asset

    def _commit_new(self, registration: Registration) -> Registration:
        AuditService.record(
            self.db, registration.id, audit.REGISTRATION_SUBMITTED,
            payload={"submission_code": registration.submission_code, "email": registration.email},
            metadata={"scholarship_type": registration.scholarship_type},
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Uploaded file is already attached to another registration")
        logger.info(
            "Registration %s (%s) submitted for %s",
            registration.id, registration.submission_code, registration.scholarship_type,
        )
        return registration

    def submit_fully_funded(self, request: FullyFundedRegistrationRequest) -> Registration:
        self._require_upload(request.essay_file_id, UploadType.ESSAY, "essayFileId")
        registration = self._new_registration(request.step1)
        submission = FullyFundedSubmission(
            essay_topic=request.essay_topic,
            essay_file_id=request.essay_file_id,
            essay_description=(request.essay_description or "").strip() or None,
        )
        try:
            self.registrations.create_fully_funded(registration, submission)
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Essay file is already attached to another registration")
        return self._commit_new(registration)

    def submit_self_funded(self, request: SelfFundedRegistrationRequest) -> Registration:
        self._require_upload(request.headshot_file_id, UploadType.HEADSHOT, "headshotFileId")
        registration = self._new_registration(request.step1)
        submission = SelfFundedSubmission(
            passport_number=request.passport_number,
            need_visa=request.need_visa,
            headshot_file_id=request.headshot_file_id,
            read_policies=request.read_policies,
        )
        try:
            self.registrations.create_self_funded(registration, submission)
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Headshot file is already attached to another registration")
        return self._commit_new(registration)

    # ─── Lookup ──────────────────────────────────────────────────────

    def get(self, registration_id: int) -> Registration:
        registration = self.registrations.get(registration_id)
        if registration is None:
            raise NotFoundError(f"Registration {registration_id} not found")
        return registration

    def get_by_code(self, code: str) -> Registration:
        registration = self.registrations.find_by_submission_code(code.strip().upper())
        if registration is None:
            raise NotFoundError(f"Registration {code} not found")
        return registration

    def list(self, payment_status=None, scholarship_type=None, email=None, limit: int = 50, offset: int = 0):
        return self.registrations.list(
            payment_status=getattr(payment_status, "value", payment_status),
            scholarship_type=getattr(scholarship_type, "value", scholarship_type),
            email=email,
            limit=limit,
            offset=offset,
        )

    def statistics(self) -> dict:
        return self.registrations.stats()

    def delete(self, registration_id: int) -> None:
        """Delete a registration without payments. Gateway records are never deleted."""
        registration = self.get(registration_id)
        if self.payments.latest_for_registration(registration.id) is not None:
            raise ValidationError(f"Registration {registration_id} has payments and cannot be deleted")
        try:
            self.registrations.delete(registration)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("Registration %s deleted", registration_id)

    # ─── Views ───────────────────────────────────────────────────────

    @staticmethod
    def submission_view(registration: Registration) -> dict:
        if registration.fully_funded_submission is not None:
            sub = registration.fully_funded_submission
            return {
                "type": registration.scholarship_type,
                "essayTopic": sub.essay_topic,
                "essayDescription": sub.essay_description,
                "essayFile": _file_view(sub.essay_file),
            }
        if registration.self_funded_submission is not None:
            sub = registration.self_funded_submission
            return {
                "type": registration.scholarship_type,
                "passportNumber": sub.passport_number,
                "needVisa": sub.need_visa,
                "readPolicies": sub.read_policies,
                "headshotFile": _file_view(sub.headshot_file),
            }
        return {}

    @classmethod
    def summary(cls, registration: Registration) -> dict:
        return {
            "id": registration.id,
            "submission_code": registration.submission_code,
            "email": registration.email,
            "full_name": registration.full_name,
            "scholarship_type": registration.scholarship_type,
            "payment_status": registration.payment_status,
            "created_at": registration.created_at,
            "submission": cls.submission_view(registration),
        }

    def detail(self, registration: Registration, payment_limit: Optional[int] = None) -> dict:
        payments = []
        for payment in self.payments.list_for_registration(registration.id, limit=payment_limit):
            record = payment.gateway_record
            payments.append({
                "id": payment.id,
                "type": payment.type,
                "status": payment.status,
                "amount": payment.amount,
                "currency": record.currency if record else CURRENCY_IDR,
                "order_id": record.order_id if record else None,
                "transaction_status": record.transaction_status if record else None,
                "paid_at": payment.paid_at,
                "created_at": payment.created_at,
            })

        view = self.summary(registration)
        view.update({
            "residence": registration.residence,
            "nationality": registration.nationality,
            "second_nationality": registration.second_nationality,
            "whatsapp": registration.whatsapp,
            "institution": registration.institution,
            "date_of_birth": registration.date_of_birth,
            "gender": registration.gender,
            "discover_source": registration.discover_source,
            "discover_other_text": registration.discover_other_text,
            "updated_at": registration.updated_at,
            "payments": payments,
        })
        return view
