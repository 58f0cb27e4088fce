import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from lifeline.models.base import utc_now
from lifeline.repositories.user_repository import UserRepository

from .exceptions import GatewayError

logger = logging.getLogger(__name__)


class PresenceService:
    """Keeps users.last_seen_at current; the admin dashboard counts active users from it."""

    def __init__(self, user_repository: UserRepository):
        self.user_repo = user_repository
        self.session = user_repository.session

    async def update_user_presence(self, user_id: UUID) -> None:
        try:
            await self.user_repo.touch_last_seen(user_id, utc_now())
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(f"Database error updating presence for user {user_id}: {e}")
            raise GatewayError(f"Failed to update presence for user {user_id}") from e
