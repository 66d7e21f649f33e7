"""Client message thread with a delayed automatic acknowledgement."""

import logging
import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.exceptions import ValidationFailed
from taxportal.models.db_models import Message, MessageType
from taxportal.tasks import portal_tasks

logger = logging.getLogger(__name__)


class MessageService:
    async def list_messages(self, db: AsyncSession, user_id: UUID) -> List[Message]:
        result = await db.execute(
            select(Message).where(Message.user_id == user_id).order_by(Message.created_at)
        )
        return list(result.scalars().all())

    async def post_message(self, db: AsyncSession, user_id: UUID, content: str) -> Message:
        """Store a client message, then enqueue the automatic reply."""
        if not content or not content.strip():
            raise ValidationFailed("Message content is required")

        message = Message(
            user_id=user_id,
            content=content,
            message_type=MessageType.TEXT,
            is_from_client=True,
            is_read=True,
        )
        db.add(message)
        await db.commit()
        await db.refresh(message)

        # The reply id is fixed here so a redelivered task posts nothing new
        portal_tasks.schedule_auto_reply(user_id, uuid.uuid4())
        return message

    async def mark_read(self, db: AsyncSession, user_id: UUID) -> None:
        await db.execute(
            update(Message)
            .where(Message.user_id == user_id, Message.is_read.is_(False))
            .values(is_read=True)
        )
        await db.commit()


_message_service: Optional[MessageService] = None


def get_message_service() -> MessageService:
    """Get or create the singleton message service."""
    global _message_service

    if _message_service is None:
        _message_service = MessageService()

    return _message_service
