import asyncio
import logging
from typing import Awaitable, Callable

from lifeline.core.config import ListErrorPolicy, settings
from lifeline.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


class ViewState:
    """Shared fetch-failure bookkeeping for client views.

    ``error`` holds the last fetch failure under SHOW_ERROR. Under SHOW_EMPTY
    a failed fetch is shown as an empty result and ``error`` stays None.
    """

    def __init__(self, error_policy: ListErrorPolicy | None = None):
        self.error_policy = error_policy or settings.LIST_ERROR_POLICY
        self.error: ServiceError | None = None

    def _fetch_failed(self, error: ServiceError, what: str) -> None:
        logger.warning(f"Fetching {what} failed: {error}")
        if self.error_policy == ListErrorPolicy.SHOW_ERROR:
            self.error = error
        else:
            self.error = None


class CoalescingRefresher:
    """Runs a refresh coroutine, folding triggers that arrive mid-run into one rerun."""

    def __init__(self, refresh: Callable[[], Awaitable[None]]):
        self._refresh = refresh
        self._task: asyncio.Task | None = None
        self._again = False
        self.runs = 0

    def trigger(self, *_args) -> None:
        if self._task is not None and not self._task.done():
            self._again = True
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            self._again = False
            self.runs += 1
            await self._refresh()
            if not self._again:
                break

    async def wait_idle(self) -> None:
        """Waits for the current run. A run stopped by ``cancel`` counts as idle."""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
