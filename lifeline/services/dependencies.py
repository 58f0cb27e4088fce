from fastapi import Depends

from lifeline.auth_config import get_session_context
from lifeline.core.session import SessionContext
from lifeline.db import get_change_feed
from lifeline.realtime.feed import ChangeFeed
from lifeline.realtime.subscriptions import RealtimeSubscriptionManager
from lifeline.repositories.conversation_repository import ConversationRepository
from lifeline.repositories.dependencies import (
    get_conversation_repository,
    get_emergency_repository,
    get_message_repository,
    get_user_repository,
)
from lifeline.repositories.emergency_repository import EmergencyReportRepository
from lifeline.repositories.message_repository import MessageRepository
from lifeline.repositories.user_repository import UserRepository

from .conversation_directory import ConversationDirectory
from .emergency_service import EmergencyAlertOriginator, EmergencyReportStateMachine
from .message_channel import MessageChannel

# Services hold the caller's SessionContext, so one instance is built per request.


def get_conversation_directory(
    session: SessionContext = Depends(get_session_context),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    user_repo: UserRepository = Depends(get_user_repository),
) -> ConversationDirectory:
    """Provides a ConversationDirectory bound to the current user."""
    return ConversationDirectory(
        session,
        conversation_repository=conv_repo,
        user_repository=user_repo,
    )


def get_message_channel(
    session: SessionContext = Depends(get_session_context),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    msg_repo: MessageRepository = Depends(get_message_repository),
) -> MessageChannel:
    """Provides a MessageChannel bound to the current user."""
    return MessageChannel(
        session,
        conversation_repository=conv_repo,
        message_repository=msg_repo,
    )


def get_state_machine(
    session: SessionContext = Depends(get_session_context),
    report_repo: EmergencyReportRepository = Depends(get_emergency_repository),
    user_repo: UserRepository = Depends(get_user_repository),
) -> EmergencyReportStateMachine:
    return EmergencyReportStateMachine(
        session,
        emergency_repository=report_repo,
        user_repository=user_repo,
    )


def get_alert_originator(
    session: SessionContext = Depends(get_session_context),
    report_repo: EmergencyReportRepository = Depends(get_emergency_repository),
    user_repo: UserRepository = Depends(get_user_repository),
) -> EmergencyAlertOriginator:
    return EmergencyAlertOriginator(
        session,
        emergency_repository=report_repo,
        user_repository=user_repo,
    )


def get_subscription_manager(
    session: SessionContext = Depends(get_session_context),
    feed: ChangeFeed = Depends(get_change_feed),
) -> RealtimeSubscriptionManager:
    return RealtimeSubscriptionManager(feed, session)
