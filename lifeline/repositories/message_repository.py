import uuid

from sqlalchemy import select

from lifeline.models import Conversation, Message
from lifeline.schemas.message import MessageStatus

from .base import BaseRepository


class MessageRepository(BaseRepository):
    async def create_message(
        self, conversation: Conversation, sender_id: uuid.UUID, content: str
    ) -> Message:
        """Creates and flushes a new message.

        The loaded conversation is attached to the message so the row's
        realtime audience is known when the flush is captured.
        """
        new_message = Message(
            id=uuid.uuid4(),
            content=content,
            conversation_id=conversation.id,
            sender_id=sender_id,
            status=MessageStatus.SENT,
        )
        new_message.conversation = conversation
        self.session.add(new_message)
        await self.session.flush()
        return new_message

    async def get_messages_by_conversation(
        self, conversation_id: uuid.UUID
    ) -> list[Message]:
        """Retrieves all messages for a conversation, oldest first."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
