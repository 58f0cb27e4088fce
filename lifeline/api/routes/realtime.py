import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from lifeline.auth_config import AUTH_COOKIE_NAME, UserManager, get_strategy, get_user_manager
from lifeline.core.session import SessionContext
from lifeline.db import get_change_feed
from lifeline.models import User
from lifeline.realtime.events import ChangeEvent
from lifeline.realtime.feed import ChangeFeed
from lifeline.realtime.subscriptions import RealtimeSubscriptionManager
from lifeline.schemas.realtime import ChangeEventFrame, ConnectionEstablishedFrame
from lifeline.services.exceptions import SubscriptionSetupError

logger = logging.getLogger(__name__)
realtime_router = APIRouter()


class RealtimeRelay:
    """Forwards one user's change events to a JSON sender (the websocket)."""

    def __init__(
        self,
        manager: RealtimeSubscriptionManager,
        send_json: Callable[[Any], Awaitable[None]],
    ):
        self.manager = manager
        self.send_json = send_json
        self.channels: list[str] = []

    async def _forward(self, event: ChangeEvent) -> None:
        frame = ChangeEventFrame.from_event(event)
        await self.send_json(frame.model_dump(mode="json"))

    async def start(self) -> list[str]:
        """Subscribes to every feed the user may see. Raises SubscriptionSetupError."""
        await self.manager.subscribe_to_messages(self._forward)
        self.channels.append("messages")
        await self.manager.subscribe_to_conversations(self._forward)
        self.channels.append("conversations")
        if self.manager.session.is_admin:
            await self.manager.subscribe_to_reports(self._forward)
            self.channels.append("emergency_reports")
        return self.channels

    def stop(self) -> None:
        self.manager.close()


async def authenticate_token(
    token: Optional[str], user_manager: UserManager
) -> Optional[User]:
    if not token:
        return None
    user = await get_strategy().read_token(token, user_manager)
    if user is None or not user.is_active:
        return None
    return user


@realtime_router.websocket("/realtime")
async def realtime(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    user_manager: UserManager = Depends(get_user_manager),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Streams the authenticated user's change events as JSON frames."""
    user = await authenticate_token(
        token or websocket.cookies.get(AUTH_COOKIE_NAME), user_manager
    )
    if user is None:
        logger.info("Rejected realtime connection without a valid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    relay = RealtimeRelay(
        RealtimeSubscriptionManager(feed, SessionContext.for_user(user)),
        websocket.send_json,
    )
    try:
        channels = await relay.start()
        await websocket.send_json(
            ConnectionEstablishedFrame(
                user_id=str(user.id), channels=channels
            ).model_dump()
        )
        logger.info(f"Realtime connection open for user {user.id}: {channels}")
        while True:
            # Client frames are ignored; this only waits for the disconnect.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Realtime connection closed by user {user.id}")
    except SubscriptionSetupError as e:
        logger.error(f"Realtime setup failed for user {user.id}: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        relay.stop()
