"""
Webhook Verifier — Authenticates gateway notifications.

signature_key = hex(sha512(order_id + status_code + gross_amount + server_key)),
computed over the exact strings received (gross_amount is never reformatted).
"""
import logging

from ryls_api.utils.hashing import digest_hex, constant_time_equals

logger = logging.getLogger(__name__)

SIGNED_FIELDS = ("order_id", "status_code", "gross_amount")


class WebhookVerifier:

    def __init__(self, server_key: str, algorithm: str = "sha512"):
        self._server_key = server_key
        self.algorithm = algorithm

    def expected_signature(self, order_id: str, status_code: str, gross_amount: str) -> str:
        return digest_hex(self.algorithm, order_id, status_code, gross_amount, self._server_key)

    def verify(self, notification: dict) -> bool:
        if not self._server_key:
            logger.error("Cannot verify notification: server key not configured")
            return False

        parts = [notification.get(field) for field in SIGNED_FIELDS]
        received = notification.get("signature_key")
        if not all(isinstance(part, str) for part in parts) or not isinstance(received, str):
            return False

        expected = self.expected_signature(*parts)
        return constant_time_equals(expected, received)
