import logging
from uuid import UUID

from lifeline.schemas.conversation import ConversationIdResponse, ConversationView
from lifeline.schemas.message import MessageResponse
from lifeline.services.conversation_directory import ConversationDirectory
from lifeline.services.message_channel import MessageChannel

# Conversation and message handlers, kept apart from the routes so they can
# be exercised without HTTP. Service exceptions propagate to the route layer.

logger = logging.getLogger(__name__)


async def handle_list_conversations(
    directory: ConversationDirectory,
) -> list[ConversationView]:
    return await directory.list_conversations()


async def handle_get_or_create_conversation(
    other_user_id: UUID, directory: ConversationDirectory
) -> ConversationIdResponse:
    conversation_id = await directory.get_or_create_conversation(other_user_id)
    return ConversationIdResponse(id=conversation_id)


async def handle_get_messages(
    conversation_id: UUID, channel: MessageChannel
) -> list[MessageResponse]:
    messages = await channel.get_messages(conversation_id)
    return [MessageResponse.model_validate(message) for message in messages]


async def handle_send_message(
    conversation_id: UUID, content: str, channel: MessageChannel
) -> MessageResponse:
    """Sends a message and returns the stored row for the client's optimistic append."""
    message = await channel.send_message(conversation_id, content)
    return MessageResponse.model_validate(message)
