"""
Payment Constants — Status vocabularies and gateway mapping tables.
"""
from enum import Enum


class ScholarshipType(str, Enum):
    FULLY_FUNDED = "FULLY_FUNDED"
    SELF_FUNDED = "SELF_FUNDED"


class RegistrationPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class PaymentType(str, Enum):
    GATEWAY = "GATEWAY"
    PROOF_OF_TRANSFER = "PROOF_OF_TRANSFER"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class UploadType(str, Enum):
    ESSAY = "ESSAY"
    HEADSHOT = "HEADSHOT"
    PAYMENT_PROOF = "PAYMENT_PROOF"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    PREFER_NOT_TO_SAY = "PREFER_NOT_TO_SAY"


class DiscoverSource(str, Enum):
    RISE_INSTAGRAM = "RISE_INSTAGRAM"
    OTHER_INSTAGRAM = "OTHER_INSTAGRAM"
    FRIENDS_COLLEAGUES = "FRIENDS_COLLEAGUES"
    OTHER = "OTHER"


ESSAY_TOPICS = (
    "Green Climate – Urban solutions to adapt and thrive in a changing climate",
    "Green Curriculum – Embedding climate literacy in education",
    "Green Innovation – Tech-driven tools for climate resilience",
    "Green Action – Youth-led movements for climate justice",
    "Green Transition – Shifting to low-carbon, renewable energy",
)

CURRENCY_IDR = "IDR"

# Gateway transaction_status vocabulary
GATEWAY_PENDING = "pending"
GATEWAY_CANCEL = "cancel"

UNKNOWN = "UNKNOWN"

# Maps gateway transaction_status to the logical payment status
PAYMENT_STATUS_MAPPING = {
    "settlement": PaymentStatus.PAID,
    "capture": PaymentStatus.PAID,
    "pending": PaymentStatus.PENDING,
    "challenge": PaymentStatus.PENDING,
    "deny": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "chargeback": PaymentStatus.FAILED,
    "expire": PaymentStatus.EXPIRED,
    # TODO: give refunds their own terminal status once refund reconciliation exists
    "refund": PaymentStatus.PAID,
}

FRAUD_ACCEPTED = "ACCEPTED"
FRAUD_REVIEW_REQUIRED = "REVIEW_REQUIRED"
FRAUD_REJECTED = "REJECTED"

FRAUD_STATUS_MAPPING = {
    "accept": FRAUD_ACCEPTED,
    "challenge": FRAUD_REVIEW_REQUIRED,
    "deny": FRAUD_REJECTED,
}

TERMINAL_PAYMENT_STATUSES = frozenset({
    PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.EXPIRED, PaymentStatus.CANCELLED,
})

EXPIRY_UNITS = ("second", "minute", "hour", "day")

ITEM_TEMPLATES = {
    ScholarshipType.FULLY_FUNDED: {
        "id": "ryls-fully-funded-fee",
        "name": "Rise Young Leaders Scholarship Fully Funded",
        "category": "registration",
    },
    ScholarshipType.SELF_FUNDED: {
        "id": "ryls-self-funded-fee",
        "name": "Rise Young Leaders Scholarship Self Funded",
        "category": "registration",
    },
}


def map_transaction_status(transaction_status: str):
    """Gateway transaction_status -> PaymentStatus, or UNKNOWN."""
    return PAYMENT_STATUS_MAPPING.get(transaction_status, UNKNOWN)


def map_fraud_status(fraud_status: str | None) -> str:
    return FRAUD_STATUS_MAPPING.get(fraud_status or "", UNKNOWN)
