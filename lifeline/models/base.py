import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import declarative_base, declared_attr
from sqlalchemy.types import Uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Timestamps are filled in Python (not only by the server default) so that a
# flushed row carries its values without a refresh; change capture reads them.
class BaseModel(declarative_base()):
    __abstract__ = True

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            default=utc_now,
            server_default=func.now(),
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            default=utc_now,
            server_default=func.now(),
            onupdate=utc_now,
        )


metadata = BaseModel.metadata
