from .base import BaseModel, metadata
from .conversation import Conversation
from .emergency_report import EmergencyReport
from .message import Message
from .user import User

__all__ = [
    "BaseModel",
    "metadata",
    "User",
    "Conversation",
    "Message",
    "EmergencyReport",
]
