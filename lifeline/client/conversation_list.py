import logging

from lifeline.core.config import ListErrorPolicy
from lifeline.realtime.subscriptions import PendingSubscription, RealtimeSubscriptionManager
from lifeline.schemas.conversation import ConversationView
from lifeline.services.conversation_directory import ConversationDirectory
from lifeline.services.exceptions import ServiceError

from .base import CoalescingRefresher, ViewState

logger = logging.getLogger(__name__)


class ConversationList(ViewState):
    """
    The user's conversation list, kept live.

    Any conversation change or message insert re-fetches the whole list:
    one change can reorder every row, so the order is recomputed by the
    directory rather than patched locally.
    """

    def __init__(
        self,
        directory: ConversationDirectory,
        subscriptions: RealtimeSubscriptionManager,
        error_policy: ListErrorPolicy | None = None,
    ):
        super().__init__(error_policy)
        self.directory = directory
        self.subscriptions = subscriptions
        self.conversations: list[ConversationView] = []
        self._refresher = CoalescingRefresher(self.refresh)
        self._pending: list[PendingSubscription] = []
        self._closed = False

    @property
    def refresh_count(self) -> int:
        return self._refresher.runs

    async def refresh(self) -> None:
        try:
            conversations = await self.directory.list_conversations()
        except ServiceError as e:
            if self.error_policy == ListErrorPolicy.SHOW_EMPTY:
                self.conversations = []
            self._fetch_failed(e, "conversations")
            return
        self.conversations = conversations
        self.error = None

    async def open(self) -> None:
        """Starts the live feeds, then fetches the list.

        The fetch goes through the refresher, so a change that lands while it
        runs schedules one more fetch instead of being lost.
        """
        if self._closed:
            return
        self._pending = [
            PendingSubscription(
                self.subscriptions.subscribe_to_conversations(self._refresher.trigger)
            ),
            PendingSubscription(
                self.subscriptions.subscribe_to_messages(self._refresher.trigger)
            ),
        ]
        try:
            await self.ready()
        except ServiceError as e:
            logger.warning(f"Live conversation feed unavailable: {e}")
        if self._closed:
            return
        self._refresher.trigger()
        await self._refresher.wait_idle()

    async def ready(self) -> None:
        """Waits for the live feeds to be established."""
        for pending in self._pending:
            await pending.wait()

    async def settle(self) -> None:
        """Waits for any scheduled refresh to finish."""
        await self._refresher.wait_idle()

    def close(self) -> None:
        self._closed = True
        for pending in self._pending:
            pending.dispose()
        self._refresher.cancel()
