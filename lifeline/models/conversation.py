from sqlalchemy import CheckConstraint, Column, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from .base import BaseModel


class Conversation(BaseModel):
    __tablename__ = "conversations"
    __realtime__ = True

    # Slot assignment is canonical: participant_a_id sorts before participant_b_id.
    participant_a_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    participant_b_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    last_message_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("messages.id", use_alter=True, name="fk_conversations_last_message"),
        nullable=True,
    )

    participant_a = relationship("User", foreign_keys=[participant_a_id])
    participant_b = relationship("User", foreign_keys=[participant_b_id])
    last_message = relationship(
        "Message", foreign_keys=[last_message_id], post_update=True
    )
    messages = relationship(
        "Message",
        back_populates="conversation",
        foreign_keys="Message.conversation_id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint(
            "participant_a_id", "participant_b_id", name="uq_conversation_pair"
        ),
        CheckConstraint(
            "participant_a_id < participant_b_id", name="ck_conversation_pair_order"
        ),
    )

    def realtime_audience(self) -> frozenset:
        return frozenset({self.participant_a_id, self.participant_b_id})

    def other_participant_id(self, user_id):
        if user_id == self.participant_a_id:
            return self.participant_b_id
        return self.participant_a_id

    def has_participant(self, user_id) -> bool:
        return user_id in (self.participant_a_id, self.participant_b_id)
