"""
Validators — Regex and rule-based validation for applicant identifiers.
"""
import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_WHATSAPP_RE = re.compile(r"^\+?[0-9][0-9\s-]{4,48}$")
_PASSPORT_RE = re.compile(r"^[A-Z0-9]{5,20}$")


def normalize_email(email: str | None) -> str:
    """Trim and lower-case an email; stored this way for case-insensitive lookup."""
    return (email or "").strip().lower()


def validate_email(email: str | None) -> bool:
    if not email:
        return False
    return bool(_EMAIL_RE.match(normalize_email(email))) and len(email) <= 255


def validate_whatsapp(number: str | None) -> bool:
    """WhatsApp number: optional leading +, digits with spaces or dashes."""
    if not number:
        return False
    return bool(_WHATSAPP_RE.match(number.strip()))


def normalize_passport(passport: str | None) -> str:
    return re.sub(r"[\s-]", "", passport or "").upper()


def validate_passport(passport: str | None) -> bool:
    """Passport number: 5-20 alphanumerics once spaces and dashes are removed."""
    return bool(_PASSPORT_RE.match(normalize_passport(passport)))


def sanitize_name(name: str | None) -> str:
    """Basic sanitization for names: strip and collapse inner whitespace."""
    if not name:
        return ""
    return re.sub(r"\s+", " ", name.strip())


def sanitize_filename(name: str | None, max_length: int = 80) -> str:
    """Keep a filesystem-safe basename: letters, digits, dot, dash, underscore."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", (name or "").strip()).strip("._")
    return cleaned[:max_length] or "file"


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split into (first, last) for gateway customer details."""
    parts = sanitize_name(full_name).split(" ")
    return parts[0], " ".join(parts[1:])
