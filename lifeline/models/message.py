from sqlalchemy import Column, Enum as SQLAlchemyEnum, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from lifeline.schemas.message import MessageStatus

from .base import BaseModel


class Message(BaseModel):
    __tablename__ = "messages"
    __realtime__ = True

    # Only status changes after insert.
    content = Column(Text, nullable=False)
    conversation_id = Column(
        Uuid(as_uuid=True), ForeignKey("conversations.id"), nullable=False, index=True
    )
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status = Column(
        SQLAlchemyEnum(MessageStatus), nullable=False, default=MessageStatus.SENT
    )

    conversation = relationship(
        "Conversation", back_populates="messages", foreign_keys=[conversation_id]
    )
    sender = relationship("User", back_populates="messages", foreign_keys=[sender_id])

    def realtime_audience(self) -> frozenset:
        # The owning conversation is attached by the message channel before
        # flush, so this never lazy-loads inside the flush.
        conversation = self.__dict__.get("conversation")
        if conversation is None:
            return frozenset({self.sender_id})
        return conversation.realtime_audience()
