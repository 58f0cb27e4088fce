import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable

from lifeline.core.config import settings
from lifeline.core.session import SessionContext
from lifeline.services.exceptions import NotAuthorizedError, SubscriptionSetupError

from .events import ChangeEvent, ChangeFilter, ChangeOperation, ChangeTable
from .feed import ChangeFeed, ChangeHandler, FeedClosedError

logger = logging.getLogger(__name__)


class Subscription:
    """Handle to one live registration on the change feed.

    ``unsubscribe`` may be called any number of times; once it has run, the
    handler is never invoked again, even for events already queued.
    """

    def __init__(self, feed: ChangeFeed, change_filter: ChangeFilter, on_release=None):
        self._feed = feed
        self.filter = change_filter
        self._channel_id: int | None = None
        self._released = False
        self._on_release = on_release

    @property
    def active(self) -> bool:
        return not self._released

    def _attach(self, channel_id: int) -> None:
        self._channel_id = channel_id

    def unsubscribe(self) -> None:
        if self._released:
            return
        self._released = True
        if self._channel_id is not None:
            self._feed.unregister(self._channel_id)
        if self._on_release is not None:
            self._on_release(self)


class PendingSubscription:
    """A subscription whose asynchronous setup may still be in flight.

    Consumers that can go away before setup finishes hold one of these
    instead of a bare Subscription. ``dispose`` cancels an unfinished setup,
    and a setup that completes after disposal is torn down on arrival.
    """

    def __init__(self, setup: Awaitable[Subscription]):
        self._alive = True
        self._setup = setup
        self._subscription: Subscription | None = None
        self._task = asyncio.ensure_future(self._establish(setup))
        self._task.add_done_callback(self._log_failure)

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    async def _establish(self, setup: Awaitable[Subscription]) -> Subscription | None:
        subscription = await setup
        if not self._alive:
            logger.debug("Subscription setup finished after disposal; releasing it")
            subscription.unsubscribe()
            return None
        self._subscription = subscription
        return subscription

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Subscription setup failed: {error}")

    async def wait(self) -> Subscription | None:
        """Waits for setup. Returns None if the subscription was disposed first."""
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled() and not self._alive:
                return None
            raise

    def dispose(self) -> None:
        if not self._alive:
            return
        self._alive = False
        if self._subscription is not None:
            self._subscription.unsubscribe()
        elif not self._task.done():
            self._task.cancel()
            # A task cancelled before its first step never awaits the setup.
            if (
                inspect.iscoroutine(self._setup)
                and inspect.getcoroutinestate(self._setup) == inspect.CORO_CREATED
            ):
                self._setup.close()


class RealtimeSubscriptionManager:
    """Per-user live feeds on top of the change feed.

    Filters are handed to the feed, which evaluates them before delivery, so
    a subscriber only ever sees rows whose audience includes its user.
    Every handle given out is tracked so ``close`` can release whatever a
    consumer forgot.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        session: SessionContext,
        setup_timeout: float | None = None,
    ):
        self.feed = feed
        self.session = session
        self.setup_timeout = (
            setup_timeout
            if setup_timeout is not None
            else settings.SUBSCRIPTION_SETUP_TIMEOUT_SECONDS
        )
        self._active: set[Subscription] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def subscribe(
        self, change_filter: ChangeFilter, handler: ChangeHandler
    ) -> Subscription:
        subscription = Subscription(
            self.feed, change_filter, on_release=self._active.discard
        )

        def dispatch(event: ChangeEvent):
            if not subscription.active:
                return None
            return handler(event)

        try:
            channel_id = await self.feed.register(
                change_filter, dispatch, timeout=self.setup_timeout
            )
        except FeedClosedError as e:
            raise SubscriptionSetupError("Realtime feed is not available.") from e
        except asyncio.TimeoutError as e:
            raise SubscriptionSetupError(
                f"Realtime subscription setup timed out after {self.setup_timeout}s."
            ) from e

        subscription._attach(channel_id)
        self._active.add(subscription)
        logger.info(
            f"User {self.session.user_id} subscribed to {change_filter.table.value}"
        )
        return subscription

    async def subscribe_to_messages(self, on_insert: ChangeHandler) -> Subscription:
        """Live message inserts for every conversation the user is part of."""
        return await self.subscribe(
            ChangeFilter(
                table=ChangeTable.MESSAGES,
                operations=frozenset({ChangeOperation.INSERT}),
                participant_id=self.session.user_id,
            ),
            on_insert,
        )

    async def subscribe_to_conversations(self, on_change: ChangeHandler) -> Subscription:
        """Live inserts and updates of the user's conversations."""
        return await self.subscribe(
            ChangeFilter(
                table=ChangeTable.CONVERSATIONS,
                operations=frozenset({ChangeOperation.INSERT, ChangeOperation.UPDATE}),
                participant_id=self.session.user_id,
            ),
            on_change,
        )

    async def subscribe_to_reports(self, on_change: ChangeHandler) -> Subscription:
        """Every emergency report change. Administrators only."""
        if not self.session.is_admin:
            raise NotAuthorizedError("Only administrators can watch emergency reports.")
        return await self.subscribe(
            ChangeFilter(table=ChangeTable.EMERGENCY_REPORTS), on_change
        )

    @asynccontextmanager
    async def with_subscription(
        self, change_filter: ChangeFilter, handler: ChangeHandler
    ) -> AsyncIterator[Subscription]:
        subscription = await self.subscribe(change_filter, handler)
        try:
            yield subscription
        finally:
            subscription.unsubscribe()

    def close(self) -> None:
        for subscription in list(self._active):
            subscription.unsubscribe()
