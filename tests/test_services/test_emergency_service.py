import asyncio
import itertools
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.client.location import DebouncedPositionTracker
from lifeline.models import EmergencyReport, User
from lifeline.models.base import utc_now
from lifeline.repositories.emergency_repository import EmergencyReportRepository
from lifeline.repositories.user_repository import UserRepository
from lifeline.schemas.emergency import EmergencyStatus, Location, MedicalSnapshot
from lifeline.services.emergency_service import (
    ALLOWED_TRANSITIONS,
    EmergencyAlertOriginator,
    EmergencyReportStateMachine,
    can_transition,
)
from lifeline.services.exceptions import (
    InvalidTransitionError,
    LocationUnavailableError,
    NotAuthorizedError,
    ReportNotFoundError,
    ValidationError,
)
from tests.test_helpers import (
    context_for,
    count_rows,
    insert_report,
    insert_user,
    stored_report_status,
)

pytestmark = pytest.mark.asyncio

LEGAL_EDGES = {
    (EmergencyStatus.PENDING, EmergencyStatus.IN_PROGRESS),
    (EmergencyStatus.PENDING, EmergencyStatus.RESOLVED),
    (EmergencyStatus.PENDING, EmergencyStatus.CANCELLED),
    (EmergencyStatus.IN_PROGRESS, EmergencyStatus.RESOLVED),
    (EmergencyStatus.IN_PROGRESS, EmergencyStatus.PENDING),
    (EmergencyStatus.IN_PROGRESS, EmergencyStatus.CANCELLED),
    (EmergencyStatus.RESOLVED, EmergencyStatus.IN_PROGRESS),
}
ALL_EDGES = list(itertools.product(EmergencyStatus, EmergencyStatus))


def make_state_machine(user: User, session: AsyncSession) -> EmergencyReportStateMachine:
    return EmergencyReportStateMachine(
        context_for(user),
        emergency_repository=EmergencyReportRepository(session),
        user_repository=UserRepository(session),
    )


def make_originator(user: User, session: AsyncSession) -> EmergencyAlertOriginator:
    return EmergencyAlertOriginator(
        context_for(user),
        emergency_repository=EmergencyReportRepository(session),
        user_repository=UserRepository(session),
    )


async def test_transition_table_matches_lifecycle():
    table = {
        (current, new)
        for current, targets in ALLOWED_TRANSITIONS.items()
        for new in targets
    }
    assert table == LEGAL_EDGES


@pytest.mark.parametrize("current,new", ALL_EDGES)
async def test_transition_legality(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    alice: User,
    admin: User,
    current: EmergencyStatus,
    new: EmergencyStatus,
):
    report = await insert_report(db_test_session_manager, alice, status=current)

    async with db_test_session_manager() as session:
        state_machine = make_state_machine(admin, session)
        if (current, new) in LEGAL_EDGES:
            assert can_transition(current, new)
            updated = await state_machine.transition(report.id, new)
            assert EmergencyStatus(updated.status) == new
            assert updated.updated_at > report.updated_at
        else:
            assert not can_transition(current, new)
            with pytest.raises(InvalidTransitionError):
                await state_machine.transition(report.id, new)

    expected = new if (current, new) in LEGAL_EDGES else current
    assert await stored_report_status(db_test_session_manager, report.id) == expected


async def test_status_strings_are_case_insensitive(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User, admin: User
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as session:
        updated = await make_state_machine(admin, session).transition(
            report.id, "IN_PROGRESS"
        )

    assert EmergencyStatus(updated.status) == EmergencyStatus.IN_PROGRESS


async def test_unknown_status_is_a_validation_error(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User, admin: User
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as session:
        with pytest.raises(ValidationError):
            await make_state_machine(admin, session).transition(report.id, "escalated")

    assert (
        await stored_report_status(db_test_session_manager, report.id)
        == EmergencyStatus.PENDING
    )


async def test_only_admins_transition(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User
):
    report = await insert_report(db_test_session_manager, alice)

    async with db_test_session_manager() as session:
        with pytest.raises(NotAuthorizedError):
            await make_state_machine(alice, session).transition(
                report.id, EmergencyStatus.CANCELLED
            )

    assert (
        await stored_report_status(db_test_session_manager, report.id)
        == EmergencyStatus.PENDING
    )


async def test_unknown_report(
    db_test_session_manager: async_sessionmaker[AsyncSession], admin: User
):
    async with db_test_session_manager() as session:
        with pytest.raises(ReportNotFoundError):
            await make_state_machine(admin, session).transition(
                uuid.uuid4(), EmergencyStatus.RESOLVED
            )


async def test_concurrent_admin_edits_last_writer_wins(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User, admin: User
):
    second_admin = await insert_user(db_test_session_manager, is_superuser=True)
    report = await insert_report(
        db_test_session_manager, alice, status=EmergencyStatus.IN_PROGRESS
    )

    async with db_test_session_manager() as first, db_test_session_manager() as second:
        await make_state_machine(admin, first).transition(
            report.id, EmergencyStatus.RESOLVED
        )
        await make_state_machine(second_admin, second).transition(
            report.id, EmergencyStatus.IN_PROGRESS
        )

    assert (
        await stored_report_status(db_test_session_manager, report.id)
        == EmergencyStatus.IN_PROGRESS
    )


async def test_submit_without_location_inserts_nothing(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User
):
    async with db_test_session_manager() as session:
        with pytest.raises(LocationUnavailableError):
            await make_originator(alice, session).submit_report(None)

    assert await count_rows(db_test_session_manager, EmergencyReport) == 0


async def test_submit_copies_profile_medical_fields(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User
):
    async with db_test_session_manager() as session:
        report = await make_originator(alice, session).submit_report(
            Location(latitude=52.37, longitude=4.89)
        )

    assert EmergencyStatus(report.status) == EmergencyStatus.PENDING
    assert report.user_id == alice.id
    assert (report.latitude, report.longitude) == (52.37, 4.89)
    assert report.blood_type == "O+"
    assert report.seasonal_allergies == "Pollen"
    assert report.medications is None
    assert report.emergency_type == "general"
    assert report.description == "Emergency assistance requested"


async def test_submit_with_explicit_snapshot_and_details(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User
):
    async with db_test_session_manager() as session:
        report = await make_originator(alice, session).submit_report(
            {"latitude": -33.86, "longitude": 151.2},
            medical=MedicalSnapshot(blood_type="AB-", medications="Insulin"),
            emergency_type="medical",
            description="Fell on the stairs",
        )

    assert report.blood_type == "AB-"
    assert report.medications == "Insulin"
    assert report.seasonal_allergies is None
    assert report.emergency_type == "medical"
    assert report.description == "Fell on the stairs"


@pytest.mark.parametrize(
    "location", [{"latitude": 91, "longitude": 0}, {"latitude": 0, "longitude": -181}]
)
async def test_submit_rejects_out_of_range_coordinates(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User, location
):
    async with db_test_session_manager() as session:
        with pytest.raises(ValidationError):
            await make_originator(alice, session).submit_report(location)

    assert await count_rows(db_test_session_manager, EmergencyReport) == 0


async def test_submit_from_provider_uses_committed_fix(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User
):
    tracker = DebouncedPositionTracker(debounce_seconds=0.01)

    async with db_test_session_manager() as session:
        originator = make_originator(alice, session)
        with pytest.raises(LocationUnavailableError):
            await originator.submit_from_provider(tracker)

        tracker.update(40.71, -74.0)
        await asyncio.sleep(0.05)
        report = await originator.submit_from_provider(tracker)

    assert (report.latitude, report.longitude) == (40.71, -74.0)
    assert await count_rows(db_test_session_manager, EmergencyReport) == 1


async def test_list_my_reports_only_returns_own(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User, bob: User
):
    await insert_report(db_test_session_manager, alice)
    await insert_report(db_test_session_manager, bob)

    async with db_test_session_manager() as session:
        reports = await make_originator(alice, session).list_my_reports()

    assert [report.user_id for report in reports] == [alice.id]


async def test_list_reports_filters_and_searches(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    alice: User,
    bob: User,
    admin: User,
):
    await insert_report(db_test_session_manager, alice, emergency_type="fire")
    await insert_report(
        db_test_session_manager,
        bob,
        status=EmergencyStatus.RESOLVED,
        description="Car accident on the ring road",
    )

    async with db_test_session_manager() as session:
        state_machine = make_state_machine(admin, session)
        everything = await state_machine.list_reports()
        resolved = await state_machine.list_reports(status="resolved")
        by_type = await state_machine.list_reports(search="FIRE")
        by_description = await state_machine.list_reports(search="accident")
        by_reporter = await state_machine.list_reports(search="bob")

    assert len(everything) == 2
    assert [r.user_id for r in resolved] == [bob.id]
    assert [r.user_id for r in by_type] == [alice.id]
    assert [r.user_id for r in by_description] == [bob.id]
    assert [r.user_id for r in by_reporter] == [bob.id]


async def test_list_reports_requires_admin(
    db_test_session_manager: async_sessionmaker[AsyncSession], alice: User
):
    async with db_test_session_manager() as session:
        with pytest.raises(NotAuthorizedError):
            await make_state_machine(alice, session).list_reports()


async def test_dashboard_stats(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    alice: User,
    bob: User,
    admin: User,
):
    await insert_report(db_test_session_manager, alice)
    await insert_report(db_test_session_manager, alice, status=EmergencyStatus.IN_PROGRESS)
    await insert_report(db_test_session_manager, bob, status=EmergencyStatus.CANCELLED)
    old = await insert_report(db_test_session_manager, bob, status=EmergencyStatus.RESOLVED)

    async with db_test_session_manager() as session:
        now = utc_now()
        await session.execute(
            update(User).where(User.id == alice.id).values(last_seen_at=now)
        )
        await session.execute(
            update(User)
            .where(User.id == bob.id)
            .values(last_seen_at=now - timedelta(days=90))
        )
        await session.execute(
            update(EmergencyReport)
            .where(EmergencyReport.id == old.id)
            .values(created_at=now - timedelta(days=3))
        )
        await session.commit()

    async with db_test_session_manager() as session:
        stats = await make_state_machine(admin, session).dashboard_stats()

    assert stats.total_users == 3
    assert stats.active_users == 1
    assert stats.active_emergencies == 2
    assert stats.all_emergencies == 4
    assert stats.today_emergencies == 3
    assert len(stats.recent_reports) == 4
    assert {r.reporter_name for r in stats.recent_reports} == {
        "Alice Example",
        "Bob Example",
    }
