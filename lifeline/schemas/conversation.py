from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .message import MessageResponse
from .types import UtcDatetime


class ConversationCreateRequest(BaseModel):
    other_user_id: UUID


class ConversationIdResponse(BaseModel):
    id: UUID


class ParticipantProfile(BaseModel):
    id: UUID
    full_name: str | None = None
    avatar_url: str | None = None
    email: str | None = None

    model_config = ConfigDict(from_attributes=True)


# Derived per viewer; never persisted.
class ConversationView(BaseModel):
    id: UUID
    participant_a_id: UUID
    participant_b_id: UUID
    other_user: ParticipantProfile
    last_message: MessageResponse | None = None
    unread_count: int = 0
    created_at: UtcDatetime
    updated_at: UtcDatetime
