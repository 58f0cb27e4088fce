import logging

from fastapi import APIRouter, Depends, status

from lifeline.api.common import BaseRouter
from lifeline.logic.emergency_processing import (
    handle_list_my_reports,
    handle_submit_report,
)
from lifeline.schemas.emergency import (
    EmergencyReportCreateRequest,
    EmergencyReportResponse,
)
from lifeline.services.dependencies import get_alert_originator
from lifeline.services.emergency_service import EmergencyAlertOriginator

logger = logging.getLogger(__name__)
emergencies_router_instance = APIRouter()
router = BaseRouter(router=emergencies_router_instance, default_tags=["emergencies"])


@router.post(
    "/emergencies",
    response_model=EmergencyReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_report(
    request_data: EmergencyReportCreateRequest,
    originator: EmergencyAlertOriginator = Depends(get_alert_originator),
):
    """Raises an emergency at the given location. A missing location is a 422."""
    return await handle_submit_report(request=request_data, originator=originator)


@router.get("/emergencies", response_model=list[EmergencyReportResponse])
async def list_my_reports(
    originator: EmergencyAlertOriginator = Depends(get_alert_originator),
):
    return await handle_list_my_reports(originator=originator)
