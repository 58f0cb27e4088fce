import logging

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from .events import ChangeEvent, ChangeOperation, ChangeTable

logger = logging.getLogger(__name__)

FEED_INFO_KEY = "change_feed"
_PENDING_INFO_KEY = "pending_change_events"


class GatewaySession(Session):
    """Session whose committed row changes are published to a change feed.

    The feed is taken from ``session.info["change_feed"]``; sessions built
    without one simply don't publish.
    """


def _snapshot(obj) -> dict:
    # Read straight from the instance dict: attribute access here could
    # trigger a load in the middle of a flush.
    state = inspect(obj)
    return {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}


def _event_for(obj, operation: ChangeOperation) -> ChangeEvent | None:
    if not getattr(type(obj), "__realtime__", False):
        return None
    return ChangeEvent(
        table=ChangeTable(obj.__tablename__),
        operation=operation,
        record=_snapshot(obj),
        audience=obj.realtime_audience(),
    )


@event.listens_for(GatewaySession, "after_flush")
def _collect_changes(session: Session, flush_context) -> None:
    if session.info.get(FEED_INFO_KEY) is None:
        return

    pending = session.info.setdefault(_PENDING_INFO_KEY, [])
    for obj in session.new:
        change = _event_for(obj, ChangeOperation.INSERT)
        if change is not None:
            pending.append(change)
    for obj in session.dirty:
        if not session.is_modified(obj, include_collections=False):
            continue
        change = _event_for(obj, ChangeOperation.UPDATE)
        if change is not None:
            pending.append(change)
    for obj in session.deleted:
        change = _event_for(obj, ChangeOperation.DELETE)
        if change is not None:
            pending.append(change)


@event.listens_for(GatewaySession, "after_commit")
def _publish_changes(session: Session) -> None:
    pending = session.info.pop(_PENDING_INFO_KEY, None)
    feed = session.info.get(FEED_INFO_KEY)
    if not pending or feed is None:
        return
    for change in pending:
        feed.publish(change)


@event.listens_for(GatewaySession, "after_rollback")
def _discard_changes(session: Session) -> None:
    discarded = session.info.pop(_PENDING_INFO_KEY, None)
    if discarded:
        logger.debug(f"Discarded {len(discarded)} uncommitted change event(s)")
