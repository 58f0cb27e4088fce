import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID


class ChangeTable(str, enum.Enum):
    CONVERSATIONS = "conversations"
    MESSAGES = "messages"
    EMERGENCY_REPORTS = "emergency_reports"


class ChangeOperation(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed row change.

    ``record`` is the row snapshot taken at flush time (column name -> value).
    ``audience`` is the set of user ids allowed to see the row; the feed
    filters on it before anything reaches a subscriber.
    """

    table: ChangeTable
    operation: ChangeOperation
    record: dict[str, Any]
    audience: frozenset[UUID] = frozenset()
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record_id(self) -> UUID | None:
        return self.record.get("id")


@dataclass(frozen=True)
class ChangeFilter:
    """Server-side predicate a subscription registers with the feed.

    ``participant_id`` of None means every row of the table (admin feeds).
    """

    table: ChangeTable
    operations: frozenset[ChangeOperation] = frozenset(ChangeOperation)
    participant_id: UUID | None = None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if event.operation not in self.operations:
            return False
        if self.participant_id is not None and self.participant_id not in event.audience:
            return False
        return True
