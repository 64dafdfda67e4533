"""
Registration Repository — Persistence for applicants and their submissions.
Never commits; the calling service owns the transaction.
"""
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ryls_api.models.registration import Registration, FullyFundedSubmission, SelfFundedSubmission
from ryls_api.utils.validators import normalize_email


class RegistrationRepository:

    def __init__(self, db: Session):
        self.db = db

    def create_fully_funded(self, registration: Registration, submission: FullyFundedSubmission) -> Registration:
        registration.fully_funded_submission = submission
        self.db.add(registration)
        self.db.flush()
        return registration

    def create_self_funded(self, registration: Registration, submission: SelfFundedSubmission) -> Registration:
        registration.self_funded_submission = submission
        self.db.add(registration)
        self.db.flush()
        return registration

    def get(self, registration_id: int) -> Optional[Registration]:
        return self.db.get(Registration, registration_id)

    def get_for_update(self, registration_id: int) -> Optional[Registration]:
        return (
            self.db.query(Registration)
            .filter(Registration.id == registration_id)
            .with_for_update()
            .first()
        )

    def find_by_submission_code(self, code: str) -> Optional[Registration]:
        return self.db.query(Registration).filter(Registration.submission_code == code).first()

    def submission_code_exists(self, code: str) -> bool:
        return self.db.query(Registration.id).filter(Registration.submission_code == code).first() is not None

    def list(
        self,
        payment_status: Optional[str] = None,
        scholarship_type: Optional[str] = None,
        email: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[int, list[Registration]]:
        """Paginated listing, newest first. Returns (total, page)."""
        query = self.db.query(Registration)
        if payment_status:
            query = query.filter(Registration.payment_status == payment_status)
        if scholarship_type:
            query = query.filter(Registration.scholarship_type == scholarship_type)
        if email:
            query = query.filter(func.lower(Registration.email) == normalize_email(email))

        total = query.count()
        page = (
            query.order_by(Registration.created_at.desc(), Registration.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return total, page

    def update_payment_status(self, registration: Registration, status: str) -> Registration:
        if registration.payment_status != status:
            registration.payment_status = status
            self.db.flush()
        return registration

    def stats(self, top_nationalities: int = 10) -> dict:
        """Counts by scholarship type, payment status and top nationalities."""
        by_type = dict(
            self.db.query(Registration.scholarship_type, func.count(Registration.id))
            .group_by(Registration.scholarship_type)
            .all()
        )
        by_status = dict(
            self.db.query(Registration.payment_status, func.count(Registration.id))
            .group_by(Registration.payment_status)
            .all()
        )
        nationalities = (
            self.db.query(Registration.nationality, func.count(Registration.id).label("n"))
            .group_by(Registration.nationality)
            .order_by(func.count(Registration.id).desc(), Registration.nationality)
            .limit(top_nationalities)
            .all()
        )
        return {
            "total": sum(by_type.values()),
            "by_scholarship_type": by_type,
            "by_payment_status": by_status,
            "top_nationalities": [{"nationality": name, "count": n} for name, n in nationalities],
        }

    def delete(self, registration: Registration) -> None:
        """Delete a registration; sub-submissions cascade."""
        self.db.delete(registration)
        self.db.flush()
