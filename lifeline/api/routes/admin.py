import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from lifeline.api.common import BaseRouter
from lifeline.logic.emergency_processing import (
    handle_dashboard_stats,
    handle_list_reports,
    handle_transition,
)
from lifeline.schemas.emergency import (
    AdminReportResponse,
    DashboardStats,
    StatusUpdateRequest,
)
from lifeline.services.dependencies import get_state_machine
from lifeline.services.emergency_service import EmergencyReportStateMachine

logger = logging.getLogger(__name__)
admin_router_instance = APIRouter(prefix="/admin")
router = BaseRouter(router=admin_router_instance, default_tags=["admin"])


@router.get("/emergencies", response_model=list[AdminReportResponse])
async def list_reports(
    status: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Search type, description or reporter"),
    state_machine: EmergencyReportStateMachine = Depends(get_state_machine),
):
    return await handle_list_reports(status=status, search=q, state_machine=state_machine)


@router.patch("/emergencies/{report_id}", response_model=AdminReportResponse)
async def update_report_status(
    report_id: UUID,
    update_data: StatusUpdateRequest,
    state_machine: EmergencyReportStateMachine = Depends(get_state_machine),
):
    """Applies a status transition; illegal edges answer 409 and change nothing."""
    logger.info(f"Status change requested for report {report_id}: {update_data.status}")
    return await handle_transition(
        report_id=report_id,
        new_status=update_data.status,
        state_machine=state_machine,
    )


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    state_machine: EmergencyReportStateMachine = Depends(get_state_machine),
):
    return await handle_dashboard_stats(state_machine=state_machine)
