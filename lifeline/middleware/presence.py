import logging
import uuid
from typing import AsyncGenerator, Callable, Optional

import jwt
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware

from lifeline.auth_config import AUTH_COOKIE_NAME
from lifeline.core.config import settings
from lifeline.repositories.user_repository import UserRepository
from lifeline.services.exceptions import ServiceError
from lifeline.services.presence_service import PresenceService

logger = logging.getLogger(__name__)


def user_id_from_token(token: str | None) -> Optional[uuid.UUID]:
    """Reads the user id out of a fastapi-users JWT. None if missing or invalid."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.SECRET,
            algorithms=[settings.ALGORITHM],
            options={"verify_aud": False},
        )
        return uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.debug(f"Could not extract user ID from token: {e}")
        return None


class PresenceMiddleware(BaseHTTPMiddleware):
    """Stamps users.last_seen_at after every successful authenticated request."""

    def __init__(
        self,
        app,
        session_factory: Callable[[], AsyncGenerator[AsyncSession, None]],
    ):
        super().__init__(app)
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if 200 <= response.status_code < 400:
            user_id = user_id_from_token(request.cookies.get(AUTH_COOKIE_NAME))
            if user_id is not None:
                await self._update_presence(user_id, request)

        return response

    async def _update_presence(self, user_id: uuid.UUID, request: Request):
        # Tests swap the session dependency; follow the override if there is one.
        session_factory = request.app.dependency_overrides.get(
            self.session_factory, self.session_factory
        )
        try:
            async for session in session_factory():
                await PresenceService(UserRepository(session)).update_user_presence(
                    user_id
                )
        except ServiceError as e:
            # Presence is bookkeeping; the response has already been produced.
            logger.warning(f"Failed to update presence for user {user_id}: {e}")
