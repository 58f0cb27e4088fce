import asyncio
import logging
from typing import Awaitable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lifeline.core.config import settings
from lifeline.core.session import SessionContext

from .exceptions import GatewayError, GatewayTimeoutError

T = TypeVar("T")
logger = logging.getLogger(__name__)


class GatewayService:
    """Base for services that talk to the database on behalf of one caller.

    Every gateway round trip goes through ``_call``, which bounds it with the
    configured timeout and turns driver failures into GatewayError after
    rolling the transaction back.
    """

    def __init__(
        self,
        session: SessionContext,
        db_session: AsyncSession,
        timeout: float | None = None,
    ):
        self.session = session
        self.db = db_session
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    async def _call(self, operation: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(operation, self.timeout)
        except asyncio.TimeoutError as e:
            await self.db.rollback()
            logger.error(f"Gateway timed out after {self.timeout}s while {action}")
            raise GatewayTimeoutError(
                f"Timed out after {self.timeout}s while {action}."
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while {action}: {e}", exc_info=True)
            raise GatewayError(f"Failed {action} due to a database error.") from e
