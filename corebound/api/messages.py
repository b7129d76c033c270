"""Direct messages API."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database.connection import get_db
from ..database.repositories import MessageRepository, ProfileRepository
from ..exceptions import NotFoundError
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/api/messages", tags=["messages"])


class MessageCreate(BaseModel):
    recipient_id: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None


def _contact_card(profile) -> dict:
    return {
        "id": profile.id,
        "display_name": profile.display_name,
        "username": profile.username,
        "avatar_url": profile.avatar_url,
    }


@router.get("")
async def list_conversations(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """One row per counterpart, most recent conversation first."""
    conversations = MessageRepository(db).conversations(user.id)
    profiles = ProfileRepository(db).get_many(c["userId"] for c in conversations)
    for conversation in conversations:
        profile = profiles.get(conversation["userId"])
        conversation["profile"] = _contact_card(profile) if profile else None
    return {"conversations": conversations}


@router.post("", status_code=201)
async def send_message(
    body: MessageCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = (body.content or "").strip()
    if not body.recipient_id or not content:
        raise ValidationError("recipient_id and content are required")
    if body.recipient_id == user.id:
        raise ValidationError("Cannot send messages to yourself", field="recipient_id")
    if not ProfileRepository(db).exists(body.recipient_id):
        raise NotFoundError("Recipient not found")

    message = MessageRepository(db).send(user.id, body.recipient_id, content, body.image_url)
    return {"message": message.to_dict()}


@router.get("/conversation")
async def get_conversation(
    user_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Messages with user_id in ascending order; theirs are marked read afterwards."""
    if not user_id:
        raise ValidationError("user_id query parameter is required", field="user_id")

    other = ProfileRepository(db).get(user_id)
    if other is None:
        raise NotFoundError("User not found")

    repo = MessageRepository(db)
    messages = [m.to_dict() for m in repo.conversation(user.id, user_id)]
    repo.mark_read(recipient_id=user.id, sender_id=user_id)

    return {"otherUser": _contact_card(other), "messages": messages}
