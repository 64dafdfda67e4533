"""
Upload Routes — Essays, headshots and proof-of-transfer documents.
"""
import logging

from fastapi import APIRouter, Depends, UploadFile, File
from fastapi.responses import FileResponse

from ryls_api.constants import UploadType
from ryls_api.dependencies import get_file_service
from ryls_api.errors import ValidationError
from ryls_api.schemas.schemas import FileInfo
from ryls_api.services.file_service import FileService, file_info

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/uploads", tags=["Uploads"])

UPLOAD_PATHS = {
    "essay": UploadType.ESSAY,
    "headshot": UploadType.HEADSHOT,
    "payment-proof": UploadType.PAYMENT_PROOF,
}


@router.post("/{upload_kind}", response_model=FileInfo, status_code=201)
async def upload_file(
    upload_kind: str,
    file: UploadFile = File(...),
    service: FileService = Depends(get_file_service),
):
    """Upload a file; the returned id is referenced by registrations and payments."""
    upload_type = UPLOAD_PATHS.get(upload_kind)
    if upload_type is None:
        raise ValidationError(f"Unknown upload type '{upload_kind}'; expected one of {', '.join(UPLOAD_PATHS)}")

    contents = await file.read()
    asset = service.store(upload_type, file.filename, file.content_type, contents)
    return file_info(asset)


@router.get("/{file_id}", response_model=FileInfo)
def get_file_info(file_id: int, service: FileService = Depends(get_file_service)):
    return file_info(service.get(file_id))


@router.get("/{file_id}/download")
def download_file(file_id: int, service: FileService = Depends(get_file_service)):
    asset = service.get_for_download(file_id)
    return FileResponse(asset.file_path, media_type=asset.mime_type, filename=asset.original_name)
