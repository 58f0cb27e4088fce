import asyncio
import logging

from lifeline.core.config import settings
from lifeline.schemas.emergency import Location

logger = logging.getLogger(__name__)


class DebouncedPositionTracker:
    """
    Geolocation provider fed by raw position updates.

    An update is committed only after ``debounce_seconds`` pass without a
    newer one, so a burst of fixes settles on the last. Until the first
    commit there is no fix and ``current_position`` returns None.
    """

    def __init__(self, debounce_seconds: float | None = None):
        self.debounce_seconds = (
            debounce_seconds
            if debounce_seconds is not None
            else settings.LOCATION_DEBOUNCE_SECONDS
        )
        self._committed: Location | None = None
        self._pending: Location | None = None
        self._timer: asyncio.TimerHandle | None = None

    def update(self, latitude: float, longitude: float) -> None:
        self._pending = Location(latitude=latitude, longitude=longitude)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(
            self.debounce_seconds, self._commit
        )

    def _commit(self) -> None:
        self._timer = None
        if self._pending is not None:
            self._committed = self._pending
            self._pending = None
            logger.debug(f"Position committed: {self._committed}")

    def flush(self) -> None:
        """Commits a waiting update now."""
        if self._timer is not None:
            self._timer.cancel()
        self._commit()

    def lose_fix(self) -> None:
        """Forgets every position, e.g. when location permission is revoked."""
        self.close()
        self._committed = None

    def current_position(self) -> Location | None:
        return self._committed

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
