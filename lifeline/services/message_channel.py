import logging
from uuid import UUID

from lifeline.core.session import SessionContext
from lifeline.models import Conversation, Message
from lifeline.models.base import utc_now
from lifeline.repositories.conversation_repository import ConversationRepository
from lifeline.repositories.message_repository import MessageRepository

from .base import GatewayService
from .exceptions import ConversationNotFoundError, NotAuthorizedError, ValidationError

logger = logging.getLogger(__name__)


class MessageChannel(GatewayService):
    def __init__(
        self,
        session: SessionContext,
        conversation_repository: ConversationRepository,
        message_repository: MessageRepository,
        timeout: float | None = None,
    ):
        super().__init__(session, message_repository.session, timeout)
        self.conv_repo = conversation_repository
        self.msg_repo = message_repository

    async def _get_participating_conversation(self, conversation_id: UUID) -> Conversation:
        conversation = await self._call(
            self.conv_repo.get_conversation_by_id(conversation_id),
            "looking up conversation",
        )
        if conversation is None:
            raise ConversationNotFoundError(
                f"Conversation with ID '{conversation_id}' not found."
            )
        if not conversation.has_participant(self.session.user_id):
            raise NotAuthorizedError("User is not a participant in this conversation.")
        return conversation

    async def get_messages(self, conversation_id: UUID) -> list[Message]:
        """All messages of a conversation, oldest first."""
        await self._get_participating_conversation(conversation_id)
        return await self._call(
            self.msg_repo.get_messages_by_conversation(conversation_id),
            "fetching messages",
        )

    async def send_message(self, conversation_id: UUID, content: str) -> Message:
        """
        Stores a message from the session user and returns the stored row.

        The conversation's last_message_id and updated_at move in the same
        transaction, so listeners see the message insert and the conversation
        update together.
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty.")

        conversation = await self._get_participating_conversation(conversation_id)
        message = await self._call(
            self._store_message(conversation, content), "sending message"
        )
        logger.info(
            f"User {self.session.user_id} sent message {message.id} "
            f"to conversation {conversation_id}"
        )
        return message

    async def _store_message(self, conversation: Conversation, content: str) -> Message:
        message = await self.msg_repo.create_message(
            conversation=conversation,
            sender_id=self.session.user_id,
            content=content,
        )
        await self.conv_repo.record_message(
            conversation, message, activity_time=message.created_at or utc_now()
        )
        await self.db.commit()
        return message
