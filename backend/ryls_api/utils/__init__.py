from ryls_api.utils.hashing import generate_hash, generate_chain_hash, digest_hex, constant_time_equals
from ryls_api.utils.validators import normalize_email, validate_email, validate_whatsapp, validate_passport

__all__ = [
    "generate_hash", "generate_chain_hash", "digest_hex", "constant_time_equals",
    "normalize_email", "validate_email", "validate_whatsapp", "validate_passport",
]
