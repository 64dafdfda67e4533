"""
Pydantic Schemas — Request & Response models for API validation.
Every inbound structure is validated here before it reaches a service.
"""
from datetime import date, datetime
from typing import Optional, Dict, List, Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ryls_api.constants import (
    ScholarshipType, PaymentType, Gender, DiscoverSource, UploadType, ESSAY_TOPICS,
)
from ryls_api.utils.validators import (
    normalize_email, validate_email, validate_whatsapp, validate_passport,
    normalize_passport, sanitize_name,
)


class CamelModel(BaseModel):
    """Serialized with camelCase keys; accepts either form on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ──────────────── Registration ────────────────

class RegistrationStep1(CamelModel):
    full_name: str = Field(..., min_length=2, max_length=255)
    email: str = Field(..., max_length=255)
    residence: str = Field(..., min_length=2, max_length=255)
    nationality: str = Field(..., min_length=2, max_length=255)
    second_nationality: Optional[str] = Field(None, max_length=255)
    whatsapp: str = Field(..., min_length=5, max_length=50)
    institution: str = Field(..., min_length=2, max_length=255)
    date_of_birth: date
    gender: Gender
    discover_source: DiscoverSource
    discover_other_text: Optional[str] = Field(None, max_length=500)
    scholarship_type: ScholarshipType

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not validate_email(value):
            raise ValueError("Invalid email address")
        return normalize_email(value)

    @field_validator("whatsapp")
    @classmethod
    def _whatsapp(cls, value: str) -> str:
        if not validate_whatsapp(value):
            raise ValueError("Invalid WhatsApp number")
        return value.strip()

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, value: str) -> str:
        return sanitize_name(value)

    @model_validator(mode="after")
    def _other_source_needs_text(self):
        if self.discover_source == DiscoverSource.OTHER and not (self.discover_other_text or "").strip():
            raise ValueError("discoverOtherText is required when discoverSource is OTHER")
        return self


class FullyFundedRegistrationRequest(CamelModel):
    step1: RegistrationStep1
    essay_topic: str
    essay_file_id: int = Field(..., ge=1)
    essay_description: Optional[str] = Field(None, max_length=1000)

    @field_validator("essay_topic")
    @classmethod
    def _topic(cls, value: str) -> str:
        if value not in ESSAY_TOPICS:
            raise ValueError("Unknown essay topic")
        return value

    @model_validator(mode="after")
    def _scholarship(self):
        if self.step1.scholarship_type != ScholarshipType.FULLY_FUNDED:
            raise ValueError("scholarshipType must be FULLY_FUNDED for this endpoint")
        return self


class SelfFundedRegistrationRequest(CamelModel):
    step1: RegistrationStep1
    passport_number: str = Field(..., max_length=100)
    need_visa: bool
    headshot_file_id: int = Field(..., ge=1)
    read_policies: bool

    @field_validator("passport_number")
    @classmethod
    def _passport(cls, value: str) -> str:
        if not validate_passport(value):
            raise ValueError("Invalid passport number")
        return normalize_passport(value)

    @field_validator("read_policies")
    @classmethod
    def _policies(cls, value: bool) -> bool:
        if not value:
            raise ValueError("Policies must be read and accepted")
        return value

    @model_validator(mode="after")
    def _scholarship(self):
        if self.step1.scholarship_type != ScholarshipType.SELF_FUNDED:
            raise ValueError("scholarshipType must be SELF_FUNDED for this endpoint")
        return self


class FileInfo(CamelModel):
    id: int
    original_name: str
    mime_type: str
    file_size: int
    upload_type: UploadType
    upload_date: datetime
    file_url: str


class PaymentHistoryItem(CamelModel):
    id: int
    type: PaymentType
    status: str
    amount: int
    currency: str = "IDR"
    order_id: Optional[str] = None
    transaction_status: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class RegistrationSummary(CamelModel):
    id: int
    submission_code: str
    email: str
    full_name: str
    scholarship_type: ScholarshipType
    payment_status: str
    created_at: datetime
    submission: Dict[str, Any] = {}


class RegistrationDetail(RegistrationSummary):
    residence: str
    nationality: str
    second_nationality: Optional[str] = None
    whatsapp: str
    institution: str
    date_of_birth: date
    gender: Gender
    discover_source: DiscoverSource
    discover_other_text: Optional[str] = None
    updated_at: Optional[datetime] = None
    payments: List[PaymentHistoryItem] = []


class RegistrationListResponse(CamelModel):
    total: int
    registrations: List[RegistrationSummary]


# ──────────────── Payment ────────────────

class PaymentTransactionData(CamelModel):
    registration_id: int = Field(..., ge=1)
    scholarship_type: Optional[ScholarshipType] = None
    payment_proof_id: Optional[int] = Field(None, ge=1)


class PaymentTransactionRequest(BaseModel):
    type: PaymentType
    data: PaymentTransactionData

    @model_validator(mode="after")
    def _proof_required(self):
        if self.type == PaymentType.PROOF_OF_TRANSFER and self.data.payment_proof_id is None:
            raise ValueError("paymentProofId is required for PROOF_OF_TRANSFER payments")
        return self


class PaymentTransactionResponse(BaseModel):
    success: bool = True
    payment_id: int
    type: PaymentType
    status: str
    order_id: Optional[str] = None
    amount: int
    currency: str = "IDR"
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    reused: bool = False


class GatewayNotification(BaseModel):
    """Inbound gateway notification. Extra gateway fields are kept as received."""

    order_id: str = Field(..., min_length=1, max_length=100)
    transaction_status: str = Field(..., min_length=1)
    status_code: str
    gross_amount: str
    signature_key: str = Field(..., min_length=1)
    transaction_id: Optional[str] = None
    payment_type: Optional[str] = None
    fraud_status: Optional[str] = None

    class Config:
        extra = "allow"


class NotificationResult(CamelModel):
    order_id: str
    transaction_status: str
    registration_status: str
    payment_status: str
    payment_id: int


class PaymentStatusSummary(CamelModel):
    has_payment: bool
    status: Optional[str] = None
    order_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    type: Optional[PaymentType] = None
    payment_type: Optional[str] = None               # Gateway channel, e.g. bank_transfer
    transaction_status: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CancelResult(CamelModel):
    success: bool = True
    order_id: str
    previous_status: str
    new_status: str


class ClientConfigResponse(CamelModel):
    client_key: str
    mode: str
    snap_js_url: str


class PaymentStatisticsResponse(CamelModel):
    total_payments: int
    pending_payments: int
    paid_payments: int
    failed_payments: int
    expired_payments: int
    cancelled_payments: int
    total_paid_idr: int
    success_rate: float


# ──────────────── Admin / Audit ────────────────

class AuditLogEntry(BaseModel):
    id: int
    registration_id: int
    action: str
    payload_hash: Optional[str] = None
    timestamp: datetime
    log_metadata: Optional[Dict] = None

    class Config:
        from_attributes = True


# ──────────────── Generic ────────────────

class ErrorResponse(BaseModel):
    success: bool = False
    detail: str
    error_code: Optional[str] = None
    error_id: Optional[str] = None
