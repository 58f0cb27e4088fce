import enum
import uuid

from pydantic import BaseModel, ConfigDict

from .types import UtcDatetime


class MessageStatus(str, enum.Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class MessageCreateRequest(BaseModel):
    content: str


class MessageResponse(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    status: MessageStatus | None = None
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)
