import enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .types import UtcDatetime


class EmergencyStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class MedicalSnapshot(BaseModel):
    blood_type: str | None = None
    seasonal_allergies: str | None = None
    medications: str | None = None


class EmergencyReportCreateRequest(BaseModel):
    location: Location | None = None
    medical: MedicalSnapshot | None = None
    emergency_type: str = "general"
    description: str = "Emergency assistance requested"


class StatusUpdateRequest(BaseModel):
    status: str


class EmergencyReportResponse(BaseModel):
    id: UUID
    user_id: UUID
    status: EmergencyStatus
    emergency_type: str
    description: str
    latitude: float
    longitude: float
    blood_type: str | None = None
    seasonal_allergies: str | None = None
    medications: str | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def location(self) -> Location:
        return Location(latitude=self.latitude, longitude=self.longitude)


class AdminReportResponse(EmergencyReportResponse):
    reporter_name: str | None = None
    reporter_avatar_url: str | None = None


class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    active_emergencies: int
    all_emergencies: int
    today_emergencies: int
    recent_reports: list[AdminReportResponse]
