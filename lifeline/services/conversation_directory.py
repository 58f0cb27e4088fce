import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from lifeline.core.session import SessionContext
from lifeline.models import Conversation
from lifeline.repositories.conversation_repository import ConversationRepository
from lifeline.repositories.user_repository import UserRepository
from lifeline.schemas.conversation import ConversationView, ParticipantProfile
from lifeline.schemas.message import MessageResponse

from .base import GatewayService
from .exceptions import GatewayError, InvalidParticipantsError, UserNotFoundError

logger = logging.getLogger(__name__)


class ConversationDirectory(GatewayService):
    """Lists the session user's conversations and opens new ones."""

    def __init__(
        self,
        session: SessionContext,
        conversation_repository: ConversationRepository,
        user_repository: UserRepository,
        timeout: float | None = None,
    ):
        super().__init__(session, conversation_repository.session, timeout)
        self.conv_repo = conversation_repository
        self.user_repo = user_repository

    async def list_conversations(self) -> list[ConversationView]:
        """Conversations involving the session user, most recent activity first."""
        user_id = self.session.user_id
        conversations = await self._call(
            self.conv_repo.list_user_conversations(user_id), "listing conversations"
        )
        return [self._to_view(conversation, user_id) for conversation in conversations]

    async def get_or_create_conversation(self, other_user_id: UUID) -> UUID:
        """Returns the id of the conversation between the session user and another.

        Safe to race: the unique pair constraint lets exactly one insert win,
        and every loser rolls back and reads the winner's row.
        """
        user_id = self.session.user_id
        if other_user_id == user_id:
            raise InvalidParticipantsError(
                "Cannot start a conversation with yourself."
            )

        existing = await self._call(
            self.conv_repo.find_between(user_id, other_user_id),
            "looking up conversation",
        )
        if existing is not None:
            return existing.id

        other_user = await self._call(
            self.user_repo.get_user_by_id(other_user_id), "looking up user"
        )
        if other_user is None:
            raise UserNotFoundError(f"User with ID '{other_user_id}' not found.")

        try:
            conversation = await self._call(
                self._insert_conversation(user_id, other_user_id),
                "creating conversation",
            )
        except GatewayError as e:
            # _call has already rolled back.
            if not isinstance(e.__cause__, IntegrityError):
                raise
            logger.info(
                f"Conversation {user_id}<->{other_user_id} was created concurrently; "
                "returning the existing one"
            )
            conversation = await self._call(
                self.conv_repo.find_between(user_id, other_user_id),
                "looking up conversation",
            )
            if conversation is None:
                raise GatewayError(
                    "Conversation insert was rejected but no existing row was found."
                ) from e
            return conversation.id

        logger.info(f"Created conversation {conversation.id}")
        return conversation.id

    async def _insert_conversation(self, user_id: UUID, other_user_id: UUID):
        conversation = await self.conv_repo.create_between(user_id, other_user_id)
        await self.db.commit()
        return conversation

    @staticmethod
    def _to_view(conversation: Conversation, viewer_id: UUID) -> ConversationView:
        if conversation.participant_a_id == viewer_id:
            other = conversation.participant_b
        else:
            other = conversation.participant_a
        last_message = conversation.last_message
        return ConversationView(
            id=conversation.id,
            participant_a_id=conversation.participant_a_id,
            participant_b_id=conversation.participant_b_id,
            other_user=ParticipantProfile.model_validate(other),
            last_message=(
                MessageResponse.model_validate(last_message) if last_message else None
            ),
            # No read markers are tracked yet.
            unread_count=0,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )
