"""
File Service — Stores essays, headshots and payment proofs on local disk.

PDFs land in UPLOAD_DIR/documents, images in UPLOAD_DIR/images. Stored names
are `<epoch ms>-<random hex>-<sanitised basename><ext>` so concurrent writers
never collide.
"""
import logging
import os
import secrets
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ryls_api.config import Settings
from ryls_api.constants import UploadType
from ryls_api.errors import ValidationError, NotFoundError
from ryls_api.models.file_asset import FileAsset
from ryls_api.repositories.file_repository import FileAssetRepository
from ryls_api.utils.validators import sanitize_filename

logger = logging.getLogger(__name__)

PDF = "application/pdf"
IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

ALLOWED_MIME_TYPES = {
    UploadType.ESSAY: frozenset({PDF}),
    UploadType.HEADSHOT: IMAGE_TYPES,
    UploadType.PAYMENT_PROOF: IMAGE_TYPES | {PDF},
}

EXTENSIONS = {
    PDF: ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def file_info(asset: FileAsset) -> dict:
    return {
        "id": asset.id,
        "original_name": asset.original_name,
        "mime_type": asset.mime_type,
        "file_size": asset.file_size,
        "upload_type": asset.upload_type,
        "upload_date": asset.created_at,
        "file_url": f"/api/uploads/{asset.id}/download",
    }


class FileService:

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.files = FileAssetRepository(db)

    def _max_bytes(self, mime_type: str) -> int:
        return self.settings.MAX_ESSAY_BYTES if mime_type == PDF else self.settings.MAX_IMAGE_BYTES

    def _stored_name(self, original_name: str, mime_type: str) -> str:
        base, _ = os.path.splitext(os.path.basename(original_name or ""))
        return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{sanitize_filename(base)}{EXTENSIONS[mime_type]}"

    def store(self, upload_type: UploadType, original_name: str, mime_type: str, contents: bytes) -> FileAsset:
        """Validate and persist an upload; returns the committed FileAsset."""
        mime_type = (mime_type or "").split(";")[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES[upload_type]:
            allowed = ", ".join(sorted(ALLOWED_MIME_TYPES[upload_type]))
            raise ValidationError(f"Unsupported file type {mime_type or 'unknown'} for {upload_type.value}; allowed: {allowed}")
        if not contents:
            raise ValidationError("Empty file uploaded")
        limit = self._max_bytes(mime_type)
        if len(contents) > limit:
            raise ValidationError(f"File exceeds the {limit // (1024 * 1024)} MB limit")

        directory = os.path.join(self.settings.UPLOAD_DIR, "documents" if mime_type == PDF else "images")
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, self._stored_name(original_name, mime_type))
        with open(path, "wb") as fh:
            fh.write(contents)

        try:
            asset = self.files.create(FileAsset(
                upload_type=upload_type.value,
                original_name=(original_name or "upload")[:255],
                file_path=path,
                mime_type=mime_type,
                file_size=len(contents),
            ))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            os.remove(path)
            raise

        logger.info("Stored %s upload %s (%d bytes)", upload_type.value, asset.id, asset.file_size)
        return asset

    def get(self, file_id: int) -> FileAsset:
        asset = self.files.get(file_id)
        if asset is None:
            raise NotFoundError(f"File {file_id} not found")
        return asset

    def get_for_download(self, file_id: int) -> FileAsset:
        asset = self.get(file_id)
        if not os.path.isfile(asset.file_path):
            logger.error("File %s is missing on disk at %s", file_id, asset.file_path)
            raise NotFoundError(f"File {file_id} not found")
        return asset
