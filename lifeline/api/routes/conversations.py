import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from lifeline.api.common import BaseRouter
from lifeline.logic.conversation_processing import (
    handle_get_messages,
    handle_get_or_create_conversation,
    handle_list_conversations,
    handle_send_message,
)
from lifeline.schemas.conversation import (
    ConversationCreateRequest,
    ConversationIdResponse,
    ConversationView,
)
from lifeline.schemas.message import MessageCreateRequest, MessageResponse
from lifeline.services.conversation_directory import ConversationDirectory
from lifeline.services.dependencies import (
    get_conversation_directory,
    get_message_channel,
)
from lifeline.services.message_channel import MessageChannel

logger = logging.getLogger(__name__)
conversations_router_instance = APIRouter()
router = BaseRouter(router=conversations_router_instance, default_tags=["conversations"])


@router.get("/conversations", response_model=list[ConversationView])
async def list_conversations(
    directory: ConversationDirectory = Depends(get_conversation_directory),
):
    """The current user's conversations, most recent activity first."""
    return await handle_list_conversations(directory=directory)


@router.post("/conversations", response_model=ConversationIdResponse)
async def get_or_create_conversation(
    request_data: ConversationCreateRequest,
    directory: ConversationDirectory = Depends(get_conversation_directory),
):
    """Returns the conversation with another user, creating it on first contact."""
    return await handle_get_or_create_conversation(
        other_user_id=request_data.other_user_id, directory=directory
    )


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageResponse],
    tags=["messages"],
)
async def get_messages(
    conversation_id: UUID,
    channel: MessageChannel = Depends(get_message_channel),
):
    return await handle_get_messages(conversation_id=conversation_id, channel=channel)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["messages"],
)
async def send_message(
    conversation_id: UUID,
    message_data: MessageCreateRequest,
    channel: MessageChannel = Depends(get_message_channel),
):
    return await handle_send_message(
        conversation_id=conversation_id,
        content=message_data.content,
        channel=channel,
    )
