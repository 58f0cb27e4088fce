import uuid

from fastapi_users.db import SQLAlchemyBaseUserTable
from sqlalchemy import Column, DateTime, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


# Profile row. email, hashed_password, is_active, is_superuser and is_verified
# come from SQLAlchemyBaseUserTable; is_superuser marks administrators.
class User(SQLAlchemyBaseUserTable[uuid.UUID], BaseModel):
    __tablename__ = "users"

    full_name = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    blood_type = Column(Text, nullable=True)
    seasonal_allergies = Column(Text, nullable=True)
    medications = Column(Text, nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)

    messages = relationship(
        "Message",
        back_populates="sender",
        foreign_keys="Message.sender_id",
    )
    emergency_reports = relationship(
        "EmergencyReport",
        back_populates="reporter",
        foreign_keys="EmergencyReport.user_id",
    )
