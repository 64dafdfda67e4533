"""
Registration Routes — RYLS application intake and lookup.
"""
import logging

from fastapi import APIRouter, Depends

from ryls_api.dependencies import get_registration_service
from ryls_api.schemas.schemas import (
    FullyFundedRegistrationRequest, SelfFundedRegistrationRequest,
    RegistrationSummary, RegistrationDetail,
)
from ryls_api.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/registrations", tags=["Registrations"])


@router.post("/fully-funded", response_model=RegistrationSummary, status_code=201)
def submit_fully_funded(
    payload: FullyFundedRegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
):
    """Submit a FULLY_FUNDED application with its essay."""
    registration = service.submit_fully_funded(payload)
    return service.summary(registration)


@router.post("/self-funded", response_model=RegistrationSummary, status_code=201)
def submit_self_funded(
    payload: SelfFundedRegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
):
    """Submit a SELF_FUNDED application with passport and headshot."""
    registration = service.submit_self_funded(payload)
    return service.summary(registration)


@router.get("/by-code/{submission_code}", response_model=RegistrationDetail)
def get_registration_by_code(
    submission_code: str,
    service: RegistrationService = Depends(get_registration_service),
):
    return service.detail(service.get_by_code(submission_code))


@router.get("/{registration_id}", response_model=RegistrationDetail)
def get_registration(
    registration_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    return service.detail(service.get(registration_id))
