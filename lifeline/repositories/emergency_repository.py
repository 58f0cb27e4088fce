from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from lifeline.models import EmergencyReport, User
from lifeline.schemas.emergency import EmergencyStatus, Location, MedicalSnapshot

from .base import BaseRepository


class EmergencyReportRepository(BaseRepository):
    async def create_report(
        self,
        user_id: UUID,
        location: Location,
        medical: MedicalSnapshot,
        emergency_type: str,
        description: str,
    ) -> EmergencyReport:
        report = EmergencyReport(
            user_id=user_id,
            status=EmergencyStatus.PENDING,
            emergency_type=emergency_type,
            description=description,
            latitude=location.latitude,
            longitude=location.longitude,
            blood_type=medical.blood_type,
            seasonal_allergies=medical.seasonal_allergies,
            medications=medical.medications,
        )
        self.session.add(report)
        await self.session.flush()
        return report

    async def get_report_by_id(self, report_id: UUID) -> EmergencyReport | None:
        stmt = (
            select(EmergencyReport)
            .filter(EmergencyReport.id == report_id)
            .options(selectinload(EmergencyReport.reporter))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update_status(
        self, report: EmergencyReport, new_status: EmergencyStatus, changed_at: datetime
    ) -> EmergencyReport:
        report.status = new_status
        report.updated_at = changed_at
        self.session.add(report)
        await self.session.flush()
        return report

    async def list_reports(
        self,
        *,
        status: EmergencyStatus | None = None,
        search: str | None = None,
        user_id: UUID | None = None,
    ) -> Sequence[EmergencyReport]:
        """Lists reports newest first, with optional status/owner filter and search."""
        stmt = (
            select(EmergencyReport)
            .join(User, EmergencyReport.user_id == User.id)
            .options(selectinload(EmergencyReport.reporter))
            .order_by(EmergencyReport.created_at.desc(), EmergencyReport.id)
            .execution_options(populate_existing=True)
        )
        if status is not None:
            stmt = stmt.filter(EmergencyReport.status == status)
        if user_id is not None:
            stmt = stmt.filter(EmergencyReport.user_id == user_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.filter(
                or_(
                    EmergencyReport.emergency_type.ilike(pattern),
                    EmergencyReport.description.ilike(pattern),
                    User.full_name.ilike(pattern),
                )
            )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_recently_updated(self, limit: int = 5) -> Sequence[EmergencyReport]:
        stmt = (
            select(EmergencyReport)
            .options(selectinload(EmergencyReport.reporter))
            .order_by(EmergencyReport.updated_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_reports(
        self,
        *,
        statuses: Sequence[EmergencyStatus] | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(EmergencyReport)
        if statuses:
            stmt = stmt.filter(EmergencyReport.status.in_(list(statuses)))
        if created_from is not None:
            stmt = stmt.filter(EmergencyReport.created_at >= created_from)
        if created_before is not None:
            stmt = stmt.filter(EmergencyReport.created_at < created_before)
        result = await self.session.execute(stmt)
        return result.scalar_one()
