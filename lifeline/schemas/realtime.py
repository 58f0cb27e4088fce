from typing import Any

from pydantic import BaseModel

from .types import UtcDatetime


# One JSON frame on the /realtime websocket.
class ChangeEventFrame(BaseModel):
    type: str = "change"
    table: str
    operation: str
    record: dict[str, Any]
    committed_at: UtcDatetime

    @classmethod
    def from_event(cls, event) -> "ChangeEventFrame":
        return cls(
            table=event.table.value,
            operation=event.operation.value,
            record=event.record,
            committed_at=event.committed_at,
        )


class ConnectionEstablishedFrame(BaseModel):
    type: str = "connection_established"
    user_id: str
    channels: list[str]
