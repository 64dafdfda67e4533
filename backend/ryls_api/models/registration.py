"""
Registration Models — RYLS applicants and their scholarship-specific submissions.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Date, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship

from ryls_api.database import Base


class Registration(Base):
    __tablename__ = "ryls_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    submission_code = Column(String(40), unique=True, nullable=False, index=True)

    # Personal
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)   # Stored lower-cased
    residence = Column(String(255), nullable=False)
    nationality = Column(String(255), nullable=False)
    second_nationality = Column(String(255))
    whatsapp = Column(String(50), nullable=False)
    institution = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(20), nullable=False)           # MALE | FEMALE | PREFER_NOT_TO_SAY

    # Programmatic
    scholarship_type = Column(String(20), nullable=False)  # FULLY_FUNDED | SELF_FUNDED
    discover_source = Column(String(30), nullable=False)
    discover_other_text = Column(String(500))

    # Projection of the latest payment: PENDING | PAID | FAILED | EXPIRED
    payment_status = Column(String(16), nullable=False, default="PENDING", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    fully_funded_submission = relationship(
        "FullyFundedSubmission", back_populates="registration",
        uselist=False, cascade="all, delete-orphan",
    )
    self_funded_submission = relationship(
        "SelfFundedSubmission", back_populates="registration",
        uselist=False, cascade="all, delete-orphan",
    )
    payments = relationship("RylsPayment", back_populates="registration")


class FullyFundedSubmission(Base):
    __tablename__ = "ryls_fully_funded_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    registration_id = Column(
        Integer, ForeignKey("ryls_registrations.id", ondelete="CASCADE"),
        unique=True, nullable=False,
    )
    essay_topic = Column(Text, nullable=False)
    essay_file_id = Column(Integer, ForeignKey("file_uploads.id"), unique=True, nullable=False)
    essay_description = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    registration = relationship("Registration", back_populates="fully_funded_submission")
    essay_file = relationship("FileAsset")


class SelfFundedSubmission(Base):
    __tablename__ = "ryls_self_funded_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    registration_id = Column(
        Integer, ForeignKey("ryls_registrations.id", ondelete="CASCADE"),
        unique=True, nullable=False,
    )
    passport_number = Column(String(100), nullable=False)
    need_visa = Column(Boolean, nullable=False)
    headshot_file_id = Column(Integer, ForeignKey("file_uploads.id"), unique=True, nullable=False)
    read_policies = Column(Boolean, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    registration = relationship("Registration", back_populates="self_funded_submission")
    headshot_file = relationship("FileAsset")
