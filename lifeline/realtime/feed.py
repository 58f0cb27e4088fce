import asyncio
import inspect
import itertools
import logging
from typing import Awaitable, Callable

from .events import ChangeEvent, ChangeFilter

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], Awaitable[None] | None]


class FeedClosedError(RuntimeError):
    """Raised when registering on a feed that has been shut down."""


class _Channel:
    def __init__(self, channel_id: int, change_filter: ChangeFilter, handler: ChangeHandler):
        self.id = channel_id
        self.filter = change_filter
        self.handler = handler
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.ready = asyncio.Event()
        self.task: asyncio.Task | None = None
        self.open = True


class ChangeFeed:
    """In-process realtime change feed.

    Committed row changes are published here and fanned out to registered
    channels whose filter matches. Each channel has its own queue and pump
    task, so a slow subscriber never blocks the publisher or its peers and
    events reach one subscriber in commit order.
    """

    def __init__(self):
        self._channels: dict[int, _Channel] = {}
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    async def register(
        self,
        change_filter: ChangeFilter,
        handler: ChangeHandler,
        *,
        timeout: float | None = None,
    ) -> int:
        """Registers a handler and waits until its pump is live.

        Raises FeedClosedError if the feed is shut down and asyncio.TimeoutError
        if the pump does not come up in time. If the caller is cancelled while
        waiting, the half-built channel is removed before the cancellation
        propagates.
        """
        if self._closed:
            raise FeedClosedError("Change feed is closed.")

        channel = _Channel(next(self._ids), change_filter, handler)
        self._channels[channel.id] = channel
        channel.task = asyncio.create_task(
            self._pump(channel), name=f"change-feed-channel-{channel.id}"
        )
        try:
            await asyncio.wait_for(channel.ready.wait(), timeout)
        except BaseException:
            self.unregister(channel.id)
            raise

        logger.debug(
            f"Registered channel {channel.id} on {change_filter.table.value} "
            f"(participant={change_filter.participant_id})"
        )
        return channel.id

    def unregister(self, channel_id: int) -> bool:
        """Removes a channel. Returns False if it was already gone."""
        channel = self._channels.pop(channel_id, None)
        if channel is None:
            return False

        channel.open = False
        while not channel.queue.empty():
            channel.queue.get_nowait()
            channel.queue.task_done()
        if channel.task is not None and not channel.task.done():
            channel.task.cancel()

        logger.debug(f"Unregistered channel {channel_id}")
        return True

    def publish(self, event: ChangeEvent) -> int:
        """Queues an event for every matching channel. Never blocks."""
        if self._closed:
            logger.warning(
                f"Dropping {event.operation.value} on {event.table.value}: feed is closed"
            )
            return 0

        delivered = 0
        for channel in list(self._channels.values()):
            if channel.open and channel.filter.matches(event):
                channel.queue.put_nowait(event)
                delivered += 1

        logger.debug(
            f"Published {event.operation.value} on {event.table.value} "
            f"to {delivered} channel(s)"
        )
        return delivered

    async def drain(self) -> None:
        """Waits until every queued event has been handled."""
        await asyncio.gather(
            *(channel.queue.join() for channel in list(self._channels.values()))
        )

    async def close(self) -> None:
        self._closed = True
        tasks = [c.task for c in self._channels.values() if c.task is not None]
        for channel_id in list(self._channels):
            self.unregister(channel_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Change feed closed")

    async def _pump(self, channel: _Channel) -> None:
        channel.ready.set()
        while True:
            event = await channel.queue.get()
            try:
                if channel.open:
                    result = channel.handler(event)
                    if inspect.isawaitable(result):
                        await result
            except Exception:
                logger.error(
                    f"Handler on channel {channel.id} failed for "
                    f"{event.operation.value} on {event.table.value}",
                    exc_info=True,
                )
            finally:
                channel.queue.task_done()
