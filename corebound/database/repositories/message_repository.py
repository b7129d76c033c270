"""Direct message repository."""

from typing import Dict, List, Optional

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from ..models import DirectMessage, iso


class MessageRepository:
    """Repository for one-to-one direct messages."""

    def __init__(self, db: Session):
        self.db = db

    def send(
        self,
        sender_id: str,
        recipient_id: str,
        content: str,
        image_url: Optional[str] = None,
    ) -> DirectMessage:
        message = DirectMessage(
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            image_url=image_url,
            read=False,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def conversations(self, user_id: str) -> List[dict]:
        """Summarize every conversation of user_id, most recent first.

        Returns:
            Rows with userId, lastMessage, lastMessageTime and unreadCount;
            the caller attaches the counterpart profile.
        """
        messages = (
            self.db.query(DirectMessage)
            .filter(or_(DirectMessage.sender_id == user_id, DirectMessage.recipient_id == user_id))
            .order_by(desc(DirectMessage.created_at))
            .all()
        )

        conversations: Dict[str, dict] = {}
        for message in messages:
            other_id = message.recipient_id if message.sender_id == user_id else message.sender_id
            conversation = conversations.get(other_id)
            if conversation is None:
                conversation = {
                    "userId": other_id,
                    "lastMessage": message.content,
                    "lastMessageTime": iso(message.created_at),
                    "unreadCount": 0,
                }
                conversations[other_id] = conversation
            if message.recipient_id == user_id and not message.read:
                conversation["unreadCount"] += 1

        # insertion order follows the descending message scan
        return list(conversations.values())

    def conversation(self, user_id: str, other_id: str) -> List[DirectMessage]:
        return (
            self.db.query(DirectMessage)
            .filter(or_(
                and_(DirectMessage.sender_id == user_id, DirectMessage.recipient_id == other_id),
                and_(DirectMessage.sender_id == other_id, DirectMessage.recipient_id == user_id),
            ))
            .order_by(DirectMessage.created_at)
            .all()
        )

    def mark_read(self, recipient_id: str, sender_id: str) -> int:
        updated = (
            self.db.query(DirectMessage)
            .filter_by(recipient_id=recipient_id, sender_id=sender_id, read=False)
            .update({"read": True}, synchronize_session=False)
        )
        self.db.commit()
        return updated
