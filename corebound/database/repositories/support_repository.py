"""Support intake repository: contact submissions and client error reports."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import ClientError, ContactSubmission


class SupportRepository:
    def __init__(self, db: Session):
        self.db = db

    def add_contact(
        self,
        email: str,
        subject: str,
        message: str,
        user_id: Optional[str] = None,
        account_email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> ContactSubmission:
        submission = ContactSubmission(
            user_id=user_id,
            email=email,
            subject=subject,
            message=message,
            account_email=account_email,
            username=username,
            read=False,
        )
        self.db.add(submission)
        self.db.commit()
        self.db.refresh(submission)
        return submission

    def add_client_error(self, **fields) -> ClientError:
        report = ClientError(**fields)
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report
