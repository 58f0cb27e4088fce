import logging
from uuid import UUID

from lifeline.schemas.emergency import (
    AdminReportResponse,
    DashboardStats,
    EmergencyReportCreateRequest,
    EmergencyReportResponse,
)
from lifeline.services.emergency_service import (
    EmergencyAlertOriginator,
    EmergencyReportStateMachine,
    to_admin_response,
)

logger = logging.getLogger(__name__)


async def handle_submit_report(
    request: EmergencyReportCreateRequest, originator: EmergencyAlertOriginator
) -> EmergencyReportResponse:
    report = await originator.submit_report(
        request.location,
        medical=request.medical,
        emergency_type=request.emergency_type,
        description=request.description,
    )
    return EmergencyReportResponse.model_validate(report)


async def handle_list_my_reports(
    originator: EmergencyAlertOriginator,
) -> list[EmergencyReportResponse]:
    reports = await originator.list_my_reports()
    return [EmergencyReportResponse.model_validate(report) for report in reports]


async def handle_list_reports(
    status: str | None,
    search: str | None,
    state_machine: EmergencyReportStateMachine,
) -> list[AdminReportResponse]:
    reports = await state_machine.list_reports(status=status, search=search)
    return [to_admin_response(report) for report in reports]


async def handle_transition(
    report_id: UUID, new_status: str, state_machine: EmergencyReportStateMachine
) -> AdminReportResponse:
    """Applies a status change; the response carries the stored row, not the request."""
    report = await state_machine.transition(report_id, new_status)
    return to_admin_response(report)


async def handle_dashboard_stats(
    state_machine: EmergencyReportStateMachine,
) -> DashboardStats:
    return await state_machine.dashboard_stats()
