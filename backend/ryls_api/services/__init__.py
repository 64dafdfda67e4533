from ryls_api.services.audit_service import AuditService
from ryls_api.services.pricing import PricingService
from ryls_api.services.order_ids import OrderIdAllocator
from ryls_api.services.gateway import MidtransSnapClient
from ryls_api.services.webhook_verifier import WebhookVerifier
from ryls_api.services.payment_service import PaymentService
from ryls_api.services.registration_service import RegistrationService
from ryls_api.services.file_service import FileService

__all__ = [
    "AuditService", "PricingService", "OrderIdAllocator", "MidtransSnapClient",
    "WebhookVerifier", "PaymentService", "RegistrationService", "FileService",
]
