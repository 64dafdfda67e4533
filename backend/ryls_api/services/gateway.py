"""
Midtrans Snap Client — Outbound calls to the payment gateway.

Sandbox and production differ only in keys and base URLs, both chosen by
MIDTRANS_MODE. Calls are never retried here: reusing an order id after a
transient failure risks a double charge.
"""
import logging

import requests

from ryls_api.config import Settings
from ryls_api.errors import GatewayError

logger = logging.getLogger(__name__)


class MidtransSnapClient:

    def __init__(self, settings: Settings):
        self.mode = settings.MIDTRANS_MODE.lower()
        self.snap_url = settings.midtrans_snap_url.rstrip("/")
        self.api_url = settings.midtrans_api_url.rstrip("/")
        self.timeout = settings.GATEWAY_TIMEOUT_SECONDS
        self._server_key = settings.midtrans_server_key
        self._client_key = settings.midtrans_client_key

        if not self._server_key:
            logger.warning("Midtrans server key not configured for %s mode", self.mode)

    def server_key(self) -> str:
        return self._server_key

    def client_key(self) -> str:
        return self._client_key

    @property
    def snap_js_url(self) -> str:
        return f"{self.snap_url}/snap/snap.js"

    def _post(self, url: str, payload: dict | None, label: str) -> dict:
        try:
            r = requests.post(
                url,
                json=payload,
                auth=(self._server_key, ""),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Midtrans %s request error: %s", label, type(e).__name__)
            raise GatewayError(f"Network error during {label}: {type(e).__name__}")

        try:
            data = r.json()
        except ValueError:
            raise GatewayError(f"Midtrans {label} returned non-JSON (HTTP {r.status_code})")

        if r.status_code >= 400 or not isinstance(data, dict):
            messages = data.get("error_messages") if isinstance(data, dict) else None
            error_msg = "; ".join(messages) if messages else f"Midtrans {label} failed (HTTP {r.status_code})"
            logger.error("Midtrans %s error: %s", label, error_msg)
            raise GatewayError(error_msg, http_status=r.status_code)

        return data

    def create_transaction(self, params: dict) -> dict:
        """Create a Snap transaction.

        Args:
            params: Snap payload with transaction_details, customer_details,
                item_details and custom_expiry.

        Returns:
            dict with 'token' and 'redirect_url'.

        Raises:
            GatewayError: network failure or timeout, HTTP >= 400, or a
                response without both fields.
        """
        order_id = params.get("transaction_details", {}).get("order_id")
        logger.info("Creating Midtrans transaction: %s", order_id)

        data = self._post(f"{self.snap_url}/snap/v1/transactions", params, "create transaction")
        token, redirect_url = data.get("token"), data.get("redirect_url")
        if not token or not redirect_url:
            raise GatewayError(f"Midtrans response for {order_id} is missing token or redirect_url")

        logger.info("Midtrans transaction created: %s", order_id)
        return {"token": token, "redirect_url": redirect_url}

    def cancel_transaction(self, order_id: str) -> dict:
        logger.info("Cancelling Midtrans transaction: %s", order_id)
        return self._post(f"{self.api_url}/v2/{order_id}/cancel", None, "cancel transaction")
