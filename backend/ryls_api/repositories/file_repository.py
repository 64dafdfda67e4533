"""
File Asset Repository.
"""
from typing import Optional

from sqlalchemy.orm import Session

from ryls_api.models.file_asset import FileAsset


class FileAssetRepository:

    def __init__(self, db: Session):
        self.db = db

    def create(self, asset: FileAsset) -> FileAsset:
        self.db.add(asset)
        self.db.flush()
        return asset

    def get(self, file_id: int) -> Optional[FileAsset]:
        return self.db.get(FileAsset, file_id)
