import logging
from typing import Iterable
from uuid import UUID

from lifeline.core.config import ListErrorPolicy
from lifeline.realtime.events import ChangeEvent, ChangeOperation, ChangeTable
from lifeline.realtime.subscriptions import PendingSubscription, RealtimeSubscriptionManager
from lifeline.schemas.message import MessageResponse
from lifeline.services.exceptions import ServiceError
from lifeline.services.message_channel import MessageChannel

from .base import ViewState

logger = logging.getLogger(__name__)


def _sort_key(message: MessageResponse):
    return (message.created_at, message.id)


class ThreadView:
    """Messages of one conversation keyed by id, always in (created_at, id) order."""

    def __init__(self, messages: Iterable[MessageResponse] = ()):
        self._by_id: dict[UUID, MessageResponse] = {}
        self.merge(*messages)

    def merge(self, *messages: MessageResponse) -> int:
        """Adds messages not seen before. Returns how many were new."""
        added = 0
        for message in messages:
            if message.id in self._by_id:
                continue
            self._by_id[message.id] = message
            added += 1
        return added

    @property
    def messages(self) -> list[MessageResponse]:
        return sorted(self._by_id.values(), key=_sort_key)

    def __contains__(self, message_id: UUID) -> bool:
        return message_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)


class ChatThread(ViewState):
    """
    One open conversation: history, live inserts and a draft.

    A sent message is appended from the stored row the channel returns; its
    realtime echo carries the same id and is dropped by the merge.
    """

    def __init__(
        self,
        conversation_id: UUID,
        channel: MessageChannel,
        subscriptions: RealtimeSubscriptionManager,
        error_policy: ListErrorPolicy | None = None,
    ):
        super().__init__(error_policy)
        self.conversation_id = conversation_id
        self.channel = channel
        self.subscriptions = subscriptions
        self.view = ThreadView()
        self.draft = ""
        self.send_error: ServiceError | None = None
        self._pending: PendingSubscription | None = None
        self._closed = False

    @property
    def messages(self) -> list[MessageResponse]:
        return self.view.messages

    @property
    def subscription(self) -> PendingSubscription | None:
        return self._pending

    async def open(self) -> None:
        """Starts the live feed, then loads history.

        Messages committed while history is loading arrive on the feed; the
        merge drops the ones the history also returns. A feed that cannot be
        set up leaves the thread showing history only.
        """
        if self._closed:
            return
        self._pending = PendingSubscription(
            self.subscriptions.subscribe_to_messages(self._on_insert)
        )
        try:
            await self._pending.wait()
        except ServiceError as e:
            logger.warning(f"Live feed for {self.conversation_id} unavailable: {e}")
        if self._closed:
            return

        try:
            history = await self.channel.get_messages(self.conversation_id)
        except ServiceError as e:
            self._fetch_failed(e, f"messages of {self.conversation_id}")
        else:
            self.error = None
            self.view.merge(*(MessageResponse.model_validate(m) for m in history))

    def _on_insert(self, event: ChangeEvent) -> None:
        if event.table != ChangeTable.MESSAGES or event.operation != ChangeOperation.INSERT:
            return
        message = MessageResponse.model_validate(event.record)
        if message.conversation_id != self.conversation_id:
            return
        if self.view.merge(message) == 0:
            logger.debug(f"Ignoring echo of message {message.id}")

    async def send(self, content: str | None = None) -> MessageResponse:
        """Sends the draft (or ``content``). The draft survives a failed send."""
        if content is not None:
            self.draft = content
        try:
            stored = await self.channel.send_message(self.conversation_id, self.draft)
        except ServiceError as e:
            self.send_error = e
            logger.warning(f"Send to {self.conversation_id} failed: {e}")
            raise
        message = MessageResponse.model_validate(stored)
        self.view.merge(message)
        self.draft = ""
        self.send_error = None
        return message

    def close(self) -> None:
        """Releases the live feed. Safe before setup finishes and safe to repeat."""
        self._closed = True
        if self._pending is not None:
            self._pending.dispose()
