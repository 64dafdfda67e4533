"""
File Asset Model — Uploaded essays, headshots and proof-of-transfer documents.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime

from ryls_api.database import Base


class FileAsset(Base):
    __tablename__ = "file_uploads"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    upload_type = Column(String(20), nullable=False, index=True)  # ESSAY | HEADSHOT | PAYMENT_PROOF

    original_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    mime_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
