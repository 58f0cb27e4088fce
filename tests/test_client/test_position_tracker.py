import asyncio

import pytest

from lifeline.client.location import DebouncedPositionTracker
from lifeline.schemas.emergency import Location

pytestmark = pytest.mark.asyncio


async def test_no_fix_until_first_commit():
    tracker = DebouncedPositionTracker(debounce_seconds=0.05)

    assert tracker.current_position() is None
    tracker.update(1.0, 2.0)
    assert tracker.current_position() is None
    tracker.close()


async def test_burst_settles_on_last_update():
    tracker = DebouncedPositionTracker(debounce_seconds=0.05)

    tracker.update(1.0, 1.0)
    tracker.update(2.0, 2.0)
    tracker.update(3.0, 3.0)
    await asyncio.sleep(0.15)

    assert tracker.current_position() == Location(latitude=3.0, longitude=3.0)


async def test_flush_commits_immediately():
    tracker = DebouncedPositionTracker(debounce_seconds=10)

    tracker.update(48.85, 2.35)
    tracker.flush()

    assert tracker.current_position() == Location(latitude=48.85, longitude=2.35)


async def test_lose_fix_forgets_position():
    tracker = DebouncedPositionTracker(debounce_seconds=0.01)
    tracker.update(1.0, 2.0)
    tracker.flush()

    tracker.lose_fix()

    assert tracker.current_position() is None
