"""
Composition root — process-wide collaborators, built once and injected
into routes through FastAPI dependencies. Tests swap them via
app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ryls_api.config import get_settings
from ryls_api.database import get_db
from ryls_api.services import (
    PricingService, OrderIdAllocator, MidtransSnapClient, WebhookVerifier,
    PaymentService, RegistrationService, FileService,
)


@lru_cache()
def get_gateway() -> MidtransSnapClient:
    return MidtransSnapClient(get_settings())


@lru_cache()
def get_order_id_allocator() -> OrderIdAllocator:
    return OrderIdAllocator(get_settings())


@lru_cache()
def get_pricing() -> PricingService:
    return PricingService(get_settings())


def get_verifier(gateway: MidtransSnapClient = Depends(get_gateway)) -> WebhookVerifier:
    return WebhookVerifier(gateway.server_key(), get_settings().WEBHOOK_SIGNATURE_ALGORITHM)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: MidtransSnapClient = Depends(get_gateway),
    verifier: WebhookVerifier = Depends(get_verifier),
    allocator: OrderIdAllocator = Depends(get_order_id_allocator),
    pricing: PricingService = Depends(get_pricing),
) -> PaymentService:
    return PaymentService(db, gateway, verifier, allocator, pricing, get_settings())


def get_registration_service(db: Session = Depends(get_db)) -> RegistrationService:
    return RegistrationService(db)


def get_file_service(db: Session = Depends(get_db)) -> FileService:
    return FileService(db, get_settings())
