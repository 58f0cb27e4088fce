import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.client.report_board import ReportBoard
from lifeline.models import User
from lifeline.realtime.feed import ChangeFeed
from lifeline.realtime.subscriptions import RealtimeSubscriptionManager
from lifeline.repositories.emergency_repository import EmergencyReportRepository
from lifeline.repositories.user_repository import UserRepository
from lifeline.schemas.emergency import EmergencyStatus, Location
from lifeline.services.emergency_service import (
    EmergencyAlertOriginator,
    EmergencyReportStateMachine,
)
from lifeline.services.exceptions import (
    GatewayError,
    InvalidTransitionError,
    NotAuthorizedError,
)
from tests.test_helpers import context_for, insert_report, stored_report_status

pytestmark = pytest.mark.asyncio


def make_state_machine(user: User, session: AsyncSession) -> EmergencyReportStateMachine:
    return EmergencyReportStateMachine(
        context_for(user),
        emergency_repository=EmergencyReportRepository(session),
        user_repository=UserRepository(session),
    )


def make_board(user: User, session: AsyncSession, feed: ChangeFeed) -> ReportBoard:
    return ReportBoard(
        make_state_machine(user, session),
        RealtimeSubscriptionManager(feed, context_for(user)),
    )


async def test_confirmed_transition_replaces_entry(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as session:
        board = make_board(admin, session, change_feed)
        await board.open()
        await board.ready()

        confirmed = await board.transition(report.id, EmergencyStatus.IN_PROGRESS)

        assert confirmed.status == EmergencyStatus.IN_PROGRESS
        assert board.get(report.id).status == EmergencyStatus.IN_PROGRESS
        assert board.get(report.id).reporter_name == "Alice Example"
        board.close()


async def test_rejected_transition_keeps_prior_status(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    report = await insert_report(
        db_test_session_manager, alice, status=EmergencyStatus.CANCELLED
    )

    async with db_test_session_manager() as session:
        board = make_board(admin, session, change_feed)
        await board.open()

        with pytest.raises(InvalidTransitionError):
            await board.transition(report.id, EmergencyStatus.IN_PROGRESS)

        assert board.get(report.id).status == EmergencyStatus.CANCELLED
        assert isinstance(board.transition_error, InvalidTransitionError)
        board.close()

    assert (
        await stored_report_status(db_test_session_manager, report.id)
        == EmergencyStatus.CANCELLED
    )


class _FlakyStateMachine:
    """Lists normally, then fails every transition like a dropped connection."""

    def __init__(self, inner: EmergencyReportStateMachine):
        self.inner = inner

    async def list_reports(self, status=None, search=None):
        return await self.inner.list_reports(status=status, search=search)

    async def transition(self, report_id, new_status):
        raise GatewayError()


async def test_gateway_failure_does_not_apply_transition(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as session:
        board = ReportBoard(
            _FlakyStateMachine(make_state_machine(admin, session)),
            RealtimeSubscriptionManager(change_feed, context_for(admin)),
        )
        await board.open()

        with pytest.raises(GatewayError):
            await board.transition(report.id, EmergencyStatus.RESOLVED)

        assert board.get(report.id).status == EmergencyStatus.PENDING
        board.close()


async def test_other_admins_changes_arrive_live(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as board_session, db_test_session_manager() as other:
        board = make_board(admin, board_session, change_feed)
        await board.open()
        await board.ready()

        await make_state_machine(admin, other).transition(
            report.id, EmergencyStatus.RESOLVED
        )
        new_report = await EmergencyAlertOriginator(
            context_for(alice),
            emergency_repository=EmergencyReportRepository(other),
            user_repository=UserRepository(other),
        ).submit_report(Location(latitude=1.0, longitude=2.0))
        await change_feed.drain()
        await board.settle()

        assert board.get(report.id).status == EmergencyStatus.RESOLVED
        assert board.get(new_report.id) is not None
        board.close()


async def test_non_admin_cannot_watch_reports(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
):
    async with db_test_session_manager() as session:
        board = make_board(alice, session, change_feed)
        await board.open()

        assert isinstance(board.error, NotAuthorizedError)
        with pytest.raises(NotAuthorizedError):
            await board.ready()
        board.close()


class _GatedStateMachine:
    """Holds the first listing open until the test lets it finish."""

    def __init__(self, inner: EmergencyReportStateMachine):
        self.inner = inner
        self.listing = asyncio.Event()
        self.release = asyncio.Event()

    async def list_reports(self, status=None, search=None):
        self.listing.set()
        await self.release.wait()
        return await self.inner.list_reports(status=status, search=search)


async def test_close_during_first_fetch_leaves_no_live_feed(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as session:
        gated = _GatedStateMachine(make_state_machine(admin, session))
        manager = RealtimeSubscriptionManager(change_feed, context_for(admin))
        board = ReportBoard(gated, manager)

        opening = asyncio.create_task(board.open())
        await gated.listing.wait()
        board.close()
        gated.release.set()
        await opening
        await board.ready()

        assert change_feed.channel_count == 0
        assert manager.active_count == 0


async def test_close_before_feed_is_up_leaves_no_live_feed(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    admin: User,
):
    async with db_test_session_manager() as session:
        manager = RealtimeSubscriptionManager(change_feed, context_for(admin))
        board = ReportBoard(make_state_machine(admin, session), manager)

        opening = asyncio.create_task(board.open())
        await asyncio.sleep(0)
        board.close()
        await opening
        await asyncio.sleep(0.01)

        assert change_feed.channel_count == 0
        assert manager.active_count == 0
        assert board.reports == []


async def test_filtered_board_drops_reports_that_leave_the_filter(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    moved_elsewhere = await insert_report(db_test_session_manager, alice)
    moved_here = await insert_report(db_test_session_manager, alice)
    still_pending = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as board_session, db_test_session_manager() as other:
        board = make_board(admin, board_session, change_feed)
        await board.open(status="pending")
        assert {r.id for r in board.reports} == {
            moved_elsewhere.id,
            moved_here.id,
            still_pending.id,
        }

        await make_state_machine(admin, other).transition(
            moved_elsewhere.id, EmergencyStatus.IN_PROGRESS
        )
        await change_feed.drain()
        confirmed = await board.transition(moved_here.id, EmergencyStatus.RESOLVED)
        await change_feed.drain()
        await board.settle()

        assert confirmed.status == EmergencyStatus.RESOLVED
        assert [r.id for r in board.reports] == [still_pending.id]
        board.close()


async def test_filtered_board_picks_up_reports_entering_the_filter(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
    alice: User,
    admin: User,
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as board_session, db_test_session_manager() as other:
        board = make_board(admin, board_session, change_feed)
        await board.open(status=EmergencyStatus.IN_PROGRESS)
        assert board.reports == []

        await make_state_machine(admin, other).transition(
            report.id, EmergencyStatus.IN_PROGRESS
        )
        await change_feed.drain()
        await board.settle()

        assert [r.id for r in board.reports] == [report.id]
        assert board.get(report.id).status == EmergencyStatus.IN_PROGRESS
        board.close()
