from sqlalchemy import Column, Enum as SQLAlchemyEnum, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from lifeline.schemas.emergency import EmergencyStatus

from .base import BaseModel


class EmergencyReport(BaseModel):
    __tablename__ = "emergency_reports"
    __realtime__ = True

    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status = Column(
        SQLAlchemyEnum(EmergencyStatus),
        nullable=False,
        default=EmergencyStatus.PENDING,
        index=True,
    )
    emergency_type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    # Medical snapshot taken at submission time; each field may be null.
    blood_type = Column(Text, nullable=True)
    seasonal_allergies = Column(Text, nullable=True)
    medications = Column(Text, nullable=True)

    reporter = relationship(
        "User", back_populates="emergency_reports", foreign_keys=[user_id]
    )

    def realtime_audience(self) -> frozenset:
        return frozenset({self.user_id})
