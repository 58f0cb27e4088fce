from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from lifeline.models import Conversation, Message

from .base import BaseRepository


def canonical_pair(user_a: UUID, user_b: UUID) -> tuple[UUID, UUID]:
    """Orders two participant ids the way the pair constraint expects."""
    first, second = sorted((user_a, user_b), key=lambda user_id: user_id.hex)
    return first, second


class ConversationRepository(BaseRepository):
    async def get_conversation_by_id(self, conversation_id: UUID) -> Conversation | None:
        """Retrieves a specific conversation by its ID."""
        stmt = (
            select(Conversation)
            .filter(Conversation.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_between(self, user_a: UUID, user_b: UUID) -> Conversation | None:
        first, second = canonical_pair(user_a, user_b)
        stmt = (
            select(Conversation)
            .filter(
                Conversation.participant_a_id == first,
                Conversation.participant_b_id == second,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_between(self, user_a: UUID, user_b: UUID) -> Conversation:
        """Adds and flushes a conversation row for the pair.

        The unique pair constraint rejects the flush with an IntegrityError if
        another transaction created the same pair first; the caller owns the
        rollback.
        """
        first, second = canonical_pair(user_a, user_b)
        conversation = Conversation(participant_a_id=first, participant_b_id=second)
        self.session.add(conversation)
        await self.session.flush()
        return conversation

    async def list_user_conversations(self, user_id: UUID) -> Sequence[Conversation]:
        """Lists a user's conversations with both profiles and the last message."""
        stmt = (
            select(Conversation)
            .filter(
                or_(
                    Conversation.participant_a_id == user_id,
                    Conversation.participant_b_id == user_id,
                )
            )
            .options(
                selectinload(Conversation.participant_a),
                selectinload(Conversation.participant_b),
                selectinload(Conversation.last_message),
            )
            .order_by(Conversation.updated_at.desc(), Conversation.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def record_message(
        self, conversation: Conversation, message: Message, activity_time: datetime
    ) -> None:
        """Points the conversation at its newest message and bumps updated_at."""
        conversation.last_message_id = message.id
        conversation.updated_at = activity_time
        self.session.add(conversation)
        await self.session.flush()
