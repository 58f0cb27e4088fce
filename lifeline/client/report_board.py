import logging
from uuid import UUID

from lifeline.core.config import ListErrorPolicy
from lifeline.realtime.events import ChangeEvent, ChangeOperation
from lifeline.realtime.subscriptions import PendingSubscription, RealtimeSubscriptionManager
from lifeline.schemas.emergency import AdminReportResponse, EmergencyStatus
from lifeline.services.emergency_service import (
    EmergencyReportStateMachine,
    parse_status,
    to_admin_response,
)
from lifeline.services.exceptions import ServiceError

from .base import CoalescingRefresher, ViewState

logger = logging.getLogger(__name__)


class ReportBoard(ViewState):
    """
    Admin triage board.

    Status changes are never applied optimistically: an entry only changes
    when the state machine returns the stored row or the feed reports a
    committed update. A failed transition leaves the entry as it was.
    """

    def __init__(
        self,
        state_machine: EmergencyReportStateMachine,
        subscriptions: RealtimeSubscriptionManager,
        error_policy: ListErrorPolicy | None = None,
    ):
        super().__init__(error_policy)
        self.state_machine = state_machine
        self.subscriptions = subscriptions
        self.status_filter: EmergencyStatus | None = None
        self.search: str | None = None
        self.transition_error: ServiceError | None = None
        self._reports: dict[UUID, AdminReportResponse] = {}
        self._refresher = CoalescingRefresher(self.refresh)
        self._pending: PendingSubscription | None = None
        self._closed = False

    @property
    def reports(self) -> list[AdminReportResponse]:
        return sorted(
            self._reports.values(),
            key=lambda report: (report.created_at, report.id),
            reverse=True,
        )

    def get(self, report_id: UUID) -> AdminReportResponse | None:
        return self._reports.get(report_id)

    async def refresh(self) -> None:
        try:
            reports = await self.state_machine.list_reports(
                status=self.status_filter, search=self.search
            )
        except ServiceError as e:
            if self.error_policy == ListErrorPolicy.SHOW_EMPTY:
                self._reports = {}
            self._fetch_failed(e, "emergency reports")
            return
        self._reports = {report.id: to_admin_response(report) for report in reports}
        self.error = None

    async def open(
        self,
        status: EmergencyStatus | str | None = None,
        search: str | None = None,
    ) -> None:
        """Starts the live report feed, then fetches the filtered list."""
        self.status_filter = parse_status(status) if status else None
        self.search = search
        if self._closed:
            return
        self._pending = PendingSubscription(
            self.subscriptions.subscribe_to_reports(self._on_change)
        )
        try:
            await self._pending.wait()
        except ServiceError as e:
            logger.warning(f"Live report feed unavailable: {e}")
        if self._closed:
            return
        self._refresher.trigger()
        await self._refresher.wait_idle()

    async def ready(self) -> None:
        if self._pending is not None:
            await self._pending.wait()

    async def settle(self) -> None:
        await self._refresher.wait_idle()

    def _in_view(self, status: EmergencyStatus) -> bool:
        return self.status_filter is None or status == self.status_filter

    def _on_change(self, event: ChangeEvent) -> None:
        report_id = event.record_id
        current = self._reports.get(report_id)
        if event.operation == ChangeOperation.UPDATE and current is not None:
            status = EmergencyStatus(event.record["status"])
            if not self._in_view(status):
                del self._reports[report_id]
                return
            self._reports[report_id] = current.model_copy(
                update={"status": status, "updated_at": event.record["updated_at"]}
            )
            return
        # New rows may or may not match the current filter; let the server decide.
        self._refresher.trigger()

    async def transition(
        self, report_id: UUID, new_status: EmergencyStatus | str
    ) -> AdminReportResponse:
        try:
            updated = await self.state_machine.transition(report_id, new_status)
        except ServiceError as e:
            self.transition_error = e
            logger.warning(f"Transition of report {report_id} failed: {e}")
            raise
        confirmed = to_admin_response(updated)
        if self._in_view(confirmed.status):
            self._reports[report_id] = confirmed
        else:
            self._reports.pop(report_id, None)
        self.transition_error = None
        return confirmed

    def close(self) -> None:
        self._closed = True
        if self._pending is not None:
            self._pending.dispose()
        self._refresher.cancel()
