from ryls_api.repositories.registration_repository import RegistrationRepository
from ryls_api.repositories.payment_repository import PaymentRepository
from ryls_api.repositories.file_repository import FileAssetRepository

__all__ = ["RegistrationRepository", "PaymentRepository", "FileAssetRepository"]
