from ryls_api.models.registration import Registration, FullyFundedSubmission, SelfFundedSubmission
from ryls_api.models.file_asset import FileAsset
from ryls_api.models.payment import GatewayRecord, RylsPayment
from ryls_api.models.audit import AuditLog

__all__ = [
    "Registration", "FullyFundedSubmission", "SelfFundedSubmission",
    "FileAsset", "GatewayRecord", "RylsPayment", "AuditLog",
]
