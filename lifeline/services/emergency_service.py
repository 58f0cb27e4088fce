import logging
from datetime import datetime, time, timedelta, timezone
from typing import Protocol
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from lifeline.core.config import settings
from lifeline.core.session import SessionContext
from lifeline.models import EmergencyReport
from lifeline.models.base import utc_now
from lifeline.repositories.emergency_repository import EmergencyReportRepository
from lifeline.repositories.user_repository import UserRepository
from lifeline.schemas.emergency import (
    AdminReportResponse,
    DashboardStats,
    EmergencyStatus,
    Location,
    MedicalSnapshot,
)

from .base import GatewayService
from .exceptions import (
    InvalidTransitionError,
    LocationUnavailableError,
    NotAuthorizedError,
    ReportNotFoundError,
    UserNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_EMERGENCY_TYPE = "general"
DEFAULT_DESCRIPTION = "Emergency assistance requested"
RECENT_REPORTS_LIMIT = 5

# Legal status changes. Anything not listed, self-transitions included, is rejected.
ALLOWED_TRANSITIONS: dict[EmergencyStatus, frozenset[EmergencyStatus]] = {
    EmergencyStatus.PENDING: frozenset(
        {
            EmergencyStatus.IN_PROGRESS,
            EmergencyStatus.RESOLVED,
            EmergencyStatus.CANCELLED,
        }
    ),
    EmergencyStatus.IN_PROGRESS: frozenset(
        {
            EmergencyStatus.RESOLVED,
            EmergencyStatus.PENDING,
            EmergencyStatus.CANCELLED,
        }
    ),
    EmergencyStatus.RESOLVED: frozenset({EmergencyStatus.IN_PROGRESS}),
    EmergencyStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = (EmergencyStatus.PENDING, EmergencyStatus.IN_PROGRESS)


def can_transition(current: EmergencyStatus, new: EmergencyStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def parse_status(value: str | EmergencyStatus) -> EmergencyStatus:
    if isinstance(value, EmergencyStatus):
        return value
    try:
        return EmergencyStatus(str(value).strip().lower())
    except ValueError as e:
        allowed = ", ".join(status.value for status in EmergencyStatus)
        raise ValidationError(
            f"Unknown status '{value}'. Expected one of: {allowed}."
        ) from e


def to_admin_response(report: EmergencyReport) -> AdminReportResponse:
    response = AdminReportResponse.model_validate(report)
    reporter = report.__dict__.get("reporter")
    if reporter is not None:
        response.reporter_name = reporter.full_name
        response.reporter_avatar_url = reporter.avatar_url
    return response


class GeolocationProvider(Protocol):
    """Best-effort source of the device position. None means no fix."""

    def current_position(self) -> Location | None: ...


class EmergencyReportStateMachine(GatewayService):
    """Admin side of emergency reports: triage listing, stats and transitions."""

    def __init__(
        self,
        session: SessionContext,
        emergency_repository: EmergencyReportRepository,
        user_repository: UserRepository,
        timeout: float | None = None,
    ):
        super().__init__(session, emergency_repository.session, timeout)
        self.report_repo = emergency_repository
        self.user_repo = user_repository

    def _require_admin(self, action: str) -> None:
        if not self.session.is_admin:
            logger.warning(f"User {self.session.user_id} denied: {action}")
            raise NotAuthorizedError(f"Only administrators can {action}.")

    async def transition(
        self, report_id: UUID, new_status: str | EmergencyStatus
    ) -> EmergencyReport:
        """
        Moves a report to a new status and stamps updated_at.

        Illegal edges raise InvalidTransitionError before anything is written.
        There is no version check: concurrent admin edits are last-writer-wins.
        """
        self._require_admin("change emergency status")
        target = parse_status(new_status)

        report = await self._call(
            self.report_repo.get_report_by_id(report_id), "looking up report"
        )
        if report is None:
            raise ReportNotFoundError(f"Emergency report '{report_id}' not found.")

        current = EmergencyStatus(report.status)
        if not can_transition(current, target):
            logger.info(
                f"Rejected transition {current.value} -> {target.value} "
                f"for report {report_id}"
            )
            raise InvalidTransitionError(
                f"Cannot move a report from {current.value} to {target.value}."
            )

        updated = await self._call(
            self._apply_transition(report, target), "updating report status"
        )
        logger.info(
            f"Admin {self.session.user_id} moved report {report_id} "
            f"{current.value} -> {target.value}"
        )
        return updated

    async def _apply_transition(
        self, report: EmergencyReport, target: EmergencyStatus
    ) -> EmergencyReport:
        updated = await self.report_repo.update_status(report, target, utc_now())
        await self.db.commit()
        return updated

    async def list_reports(
        self,
        status: str | EmergencyStatus | None = None,
        search: str | None = None,
    ) -> list[EmergencyReport]:
        self._require_admin("list emergency reports")
        status_filter = parse_status(status) if status else None
        search = search.strip() if search else None
        reports = await self._call(
            self.report_repo.list_reports(status=status_filter, search=search or None),
            "listing reports",
        )
        return list(reports)

    async def dashboard_stats(self) -> DashboardStats:
        self._require_admin("view dashboard statistics")
        now = utc_now()
        today_start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        active_since = now - timedelta(days=settings.ACTIVE_USER_WINDOW_DAYS)

        total_users = await self._call(self.user_repo.count_users(), "counting users")
        active_users = await self._call(
            self.user_repo.count_users(seen_since=active_since),
            "counting active users",
        )
        active_emergencies = await self._call(
            self.report_repo.count_reports(statuses=ACTIVE_STATUSES),
            "counting active reports",
        )
        all_emergencies = await self._call(
            self.report_repo.count_reports(), "counting reports"
        )
        today_emergencies = await self._call(
            self.report_repo.count_reports(
                created_from=today_start,
                created_before=today_start + timedelta(days=1),
            ),
            "counting today's reports",
        )
        recent = await self._call(
            self.report_repo.list_recently_updated(limit=RECENT_REPORTS_LIMIT),
            "listing recent reports",
        )
        return DashboardStats(
            total_users=total_users,
            active_users=active_users,
            active_emergencies=active_emergencies,
            all_emergencies=all_emergencies,
            today_emergencies=today_emergencies,
            recent_reports=[to_admin_response(report) for report in recent],
        )


class EmergencyAlertOriginator(GatewayService):
    """Reporter side: raising an alert from a location fix."""

    def __init__(
        self,
        session: SessionContext,
        emergency_repository: EmergencyReportRepository,
        user_repository: UserRepository,
        timeout: float | None = None,
    ):
        super().__init__(session, emergency_repository.session, timeout)
        self.report_repo = emergency_repository
        self.user_repo = user_repository

    async def submit_report(
        self,
        location: Location | dict | None,
        medical: MedicalSnapshot | None = None,
        emergency_type: str = DEFAULT_EMERGENCY_TYPE,
        description: str = DEFAULT_DESCRIPTION,
    ) -> EmergencyReport:
        """
        Stores a pending report at the given position.

        Without a location nothing is written. Without a medical snapshot the
        reporter's profile fields are copied onto the report.
        """
        if location is None:
            raise LocationUnavailableError()
        if not isinstance(location, Location):
            try:
                location = Location.model_validate(location)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid location: {e.errors()[0]['msg']}") from e

        emergency_type = (emergency_type or "").strip() or DEFAULT_EMERGENCY_TYPE
        description = (description or "").strip() or DEFAULT_DESCRIPTION

        if medical is None:
            medical = await self._profile_medical_snapshot()

        report = await self._call(
            self._insert_report(location, medical, emergency_type, description),
            "submitting emergency report",
        )
        logger.info(
            f"User {self.session.user_id} submitted emergency report {report.id}"
        )
        return report

    async def submit_from_provider(
        self,
        provider: GeolocationProvider,
        medical: MedicalSnapshot | None = None,
        emergency_type: str = DEFAULT_EMERGENCY_TYPE,
        description: str = DEFAULT_DESCRIPTION,
    ) -> EmergencyReport:
        return await self.submit_report(
            provider.current_position(),
            medical=medical,
            emergency_type=emergency_type,
            description=description,
        )

    async def list_my_reports(self) -> list[EmergencyReport]:
        reports = await self._call(
            self.report_repo.list_reports(user_id=self.session.user_id),
            "listing own reports",
        )
        return list(reports)

    async def _profile_medical_snapshot(self) -> MedicalSnapshot:
        user = await self._call(
            self.user_repo.get_user_by_id(self.session.user_id), "loading profile"
        )
        if user is None:
            raise UserNotFoundError(f"User with ID '{self.session.user_id}' not found.")
        return MedicalSnapshot(
            blood_type=user.blood_type,
            seasonal_allergies=user.seasonal_allergies,
            medications=user.medications,
        )

    async def _insert_report(
        self,
        location: Location,
        medical: MedicalSnapshot,
        emergency_type: str,
        description: str,
    ) -> EmergencyReport:
        report = await self.report_repo.create_report(
            user_id=self.session.user_id,
            location=location,
            medical=medical,
            emergency_type=emergency_type,
            description=description,
        )
        await self.db.commit()
        return report
