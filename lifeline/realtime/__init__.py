from .events import ChangeEvent, ChangeFilter, ChangeOperation, ChangeTable
from .feed import ChangeFeed, FeedClosedError
from .subscriptions import (
    PendingSubscription,
    RealtimeSubscriptionManager,
    Subscription,
)

__all__ = [
    "ChangeEvent",
    "ChangeFilter",
    "ChangeOperation",
    "ChangeTable",
    "ChangeFeed",
    "FeedClosedError",
    "PendingSubscription",
    "RealtimeSubscriptionManager",
    "Subscription",
]
