"""Exchange connection repository."""

import logging
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import ConflictError
from ..models import ExchangeConnection

logger = logging.getLogger(__name__)


class ExchangeConnectionRepository:
    """Repository for linked exchange accounts, one per user and venue.

    Callers pass key material already encrypted; this class never sees
    plaintext secrets.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str) -> List[ExchangeConnection]:
        return (
            self.db.query(ExchangeConnection)
            .filter_by(user_id=user_id)
            .order_by(desc(ExchangeConnection.created_at))
            .all()
        )

    def get(self, connection_id: str, user_id: str) -> Optional[ExchangeConnection]:
        return self.db.query(ExchangeConnection).filter_by(id=connection_id, user_id=user_id).first()

    def get_for_venue(self, user_id: str, venue: str) -> Optional[ExchangeConnection]:
        return self.db.query(ExchangeConnection).filter_by(user_id=user_id, venue=venue).first()

    def create(self, user_id: str, venue: str, **fields) -> ExchangeConnection:
        """Store a connection.

        Raises:
            ConflictError: The user already connected this venue
        """
        message = f"An exchange connection for {venue} already exists"
        if self.get_for_venue(user_id, venue):
            raise ConflictError(message)

        connection = ExchangeConnection(user_id=user_id, venue=venue, **fields)
        self.db.add(connection)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(message) from e
        self.db.refresh(connection)
        logger.info(f"Stored {venue} connection", extra={'user_id': user_id})
        return connection

    def delete(self, connection_id: str, user_id: str) -> bool:
        connection = self.get(connection_id, user_id)
        if connection is None:
            return False
        self.db.delete(connection)
        self.db.commit()
        return True
