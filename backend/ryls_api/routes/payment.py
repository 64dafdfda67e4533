"""
Payment Routes — RYLS payment lifecycle.
Handles: payment start (gateway or proof of transfer), gateway webhook
notifications, status lookup, cancellation and front-end Snap config.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from ryls_api.dependencies import get_gateway, get_payment_service
from ryls_api.schemas.schemas import (
    PaymentTransactionRequest, PaymentTransactionResponse, NotificationResult,
    PaymentStatusSummary, CancelResult, ClientConfigResponse,
)
from ryls_api.services.gateway import MidtransSnapClient
from ryls_api.services.payment_service import PaymentService
from ryls_api.utils.rate_limiter import rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.post("/transactions", response_model=PaymentTransactionResponse)
def create_transaction(
    payload: PaymentTransactionRequest,
    service: PaymentService = Depends(get_payment_service),
    _throttle: bool = Depends(rate_limit("payments")),
):
    """Start a payment. GATEWAY returns a Snap token, reusing a still-pending one."""
    return service.start_payment(
        registration_id=payload.data.registration_id,
        payment_type=payload.type,
        scholarship_type=payload.data.scholarship_type,
        payment_proof_id=payload.data.payment_proof_id,
    )


@router.post("/notifications", response_model=NotificationResult)
def receive_notification(
    payload: Any = Body(...),
    service: PaymentService = Depends(get_payment_service),
):
    """Gateway webhook. Replays of an applied notification return 200 unchanged."""
    return service.apply_notification(payload)


@router.get("/ryls/{registration_id}/status", response_model=PaymentStatusSummary)
def get_payment_status(
    registration_id: int,
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_payment_status(registration_id)


@router.post("/ryls/{order_id}/cancel", response_model=CancelResult)
def cancel_payment(
    order_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    return service.cancel(order_id)


@router.get("/config", response_model=ClientConfigResponse)
def get_client_config(gateway: MidtransSnapClient = Depends(get_gateway)):
    """Public Snap configuration for the front-end widget."""
    return {
        "client_key": gateway.client_key(),
        "mode": gateway.mode,
        "snap_js_url": gateway.snap_js_url,
    }
