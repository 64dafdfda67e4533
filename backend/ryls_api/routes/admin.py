"""
Admin Routes — Registration management, payment statistics and audit trail access.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ryls_api.constants import RegistrationPaymentStatus, ScholarshipType
from ryls_api.database import get_db
from ryls_api.dependencies import get_payment_service, get_registration_service
from ryls_api.schemas.schemas import AuditLogEntry, PaymentStatisticsResponse, RegistrationListResponse
from ryls_api.services.audit_service import AuditService
from ryls_api.services.payment_service import PaymentService
from ryls_api.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/registrations", response_model=RegistrationListResponse)
def list_registrations(
    payment_status: Optional[RegistrationPaymentStatus] = None,
    scholarship_type: Optional[ScholarshipType] = None,
    email: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: RegistrationService = Depends(get_registration_service),
):
    """List registrations, newest first, with optional filters."""
    total, page = service.list(payment_status, scholarship_type, email, limit, offset)
    return {"total": total, "registrations": [service.summary(r) for r in page]}


@router.get("/registrations/statistics")
def registration_statistics(service: RegistrationService = Depends(get_registration_service)):
    return service.statistics()


@router.delete("/registrations/{registration_id}")
def delete_registration(
    registration_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """Delete a registration that has no payments."""
    service.delete(registration_id)
    return {"success": True, "id": registration_id}


@router.get("/payments/statistics", response_model=PaymentStatisticsResponse)
def payment_statistics(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    scholarship_type: Optional[ScholarshipType] = None,
    service: PaymentService = Depends(get_payment_service),
):
    return service.statistics(date_from, date_to, scholarship_type)


@router.get("/audit/{registration_id}", response_model=list[AuditLogEntry])
def get_audit_trail(registration_id: int, db: Session = Depends(get_db)):
    """Get the full audit trail for a registration."""
    logs = AuditService.get_trail(db, registration_id)
    if not logs:
        raise HTTPException(status_code=404, detail="No audit logs found for this registration")
    return logs


@router.get("/audit/{registration_id}/verify")
def verify_audit_chain(registration_id: int, db: Session = Depends(get_db)):
    """Verify the integrity of the audit hash chain for a registration."""
    return AuditService.verify_chain(db, registration_id)
