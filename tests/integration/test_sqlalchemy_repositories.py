"""Integration tests for the SQLAlchemy repositories and services on SQLite."""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from conftest import ADMIN, REQUESTER, TECH_A, TECH_B
from servicedesk.config import TechnicianStatus, TicketStatus, UpdateType
from servicedesk.core import (
    AlreadyClaimedException,
    InvalidTransitionException,
    StorageUnavailableException,
    TicketClosedException,
)
from servicedesk.infrastructure.database import create_session_maker
from servicedesk.tickets.application import (
    ClaimCoordinator,
    FieldReportService,
    StaticSLAPolicyProvider,
    TechnicianService,
    TicketFlagService,
    TicketLifecycleService,
)
from servicedesk.tickets.infrastructure import (
    SQLAlchemyCommentRepository,
    SQLAlchemyFieldReportRepository,
    SQLAlchemyTechnicianRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTicketUpdateRepository,
    SQLAlchemyUnitOfWork,
)


class SQLDesk:
    """Services sharing one session, wired the way the API dependencies do."""

    def __init__(self, session, clock, publisher):
        self.session = session
        self.ticket_repo = SQLAlchemyTicketRepository(session)
        updates = SQLAlchemyTicketUpdateRepository(session)
        technicians = SQLAlchemyTechnicianRepository(session)
        uow = SQLAlchemyUnitOfWork(session)

        self.lifecycle = TicketLifecycleService(
            self.ticket_repo, updates, SQLAlchemyCommentRepository(session), technicians,
            uow, publisher, StaticSLAPolicyProvider(), clock=clock
        )
        self.claims = ClaimCoordinator(self.ticket_repo, updates, technicians, uow, publisher, clock=clock)
        self.reports = FieldReportService(
            self.ticket_repo, updates, SQLAlchemyFieldReportRepository(session), uow, publisher, clock=clock
        )
        self.flags = TicketFlagService(self.ticket_repo, updates, uow, publisher, clock=clock)
        self.technicians = TechnicianService(technicians, uow, clock=clock)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as db_session:
        yield db_session


@pytest.fixture
def sql_desk(session, clock, publisher):
    return SQLDesk(session, clock, publisher)


class TestTicketRepository:
    """Test cases for SQLAlchemyTicketRepository."""

    async def test_ticket_numbers_come_from_one_sequence(self, sql_desk, ticket_data):
        first = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)
        second = await sql_desk.lifecycle.create_ticket(REQUESTER, {**ticket_data, "type": "change"})

        assert first.ticket_number == "INC-000001"
        assert second.ticket_number == "CHG-000002"

    async def test_timestamps_round_trip_timezone_aware(self, sql_desk, ticket_data, clock):
        created = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)

        stored = await sql_desk.ticket_repo.get_by_id(created.id)

        assert stored.created_at == clock.now
        assert stored.created_at.tzinfo is not None
        assert stored.sla_deadline == created.sla_deadline

    async def test_unknown_or_malformed_id(self, sql_desk):
        assert await sql_desk.ticket_repo.get_by_id(str(uuid4())) is None
        assert await sql_desk.ticket_repo.get_by_id("not-a-uuid") is None

    async def test_list_orders_by_priority_then_age(self, sql_desk, ticket_data, clock):
        low = await sql_desk.lifecycle.create_ticket(REQUESTER, {**ticket_data, "priority": "low"})
        clock.advance(minutes=1)
        critical = await sql_desk.lifecycle.create_ticket(REQUESTER, {**ticket_data, "priority": "critical"})
        clock.advance(minutes=1)
        medium = await sql_desk.lifecycle.create_ticket(REQUESTER, {**ticket_data, "priority": "medium"})

        queue = await sql_desk.lifecycle.unassigned_queue()

        assert [t.id for t in queue] == [critical.id, medium.id, low.id]

    async def test_claim_is_conditional_on_the_stored_row(self, session_maker, ticket_data, clock, publisher):
        """A technician acting on a stale read loses to the committed claim."""
        async with session_maker() as setup:
            ticket = await SQLDesk(setup, clock, publisher).lifecycle.create_ticket(REQUESTER, ticket_data)

        async with session_maker() as first, session_maker() as second:
            desk_a = SQLDesk(first, clock, publisher)
            desk_b = SQLDesk(second, clock, publisher)

            stale = await desk_b.ticket_repo.get_by_id(ticket.id)
            assert stale.status == TicketStatus.OPEN

            await desk_a.claims.claim(ticket.id, TECH_A)

            assert await desk_b.ticket_repo.claim(ticket.id, TECH_B.id, clock.now) is False
            with pytest.raises(AlreadyClaimedException):
                await desk_b.claims.claim(ticket.id, TECH_B)

        async with session_maker() as check:
            stored = await SQLAlchemyTicketRepository(check).get_by_id(ticket.id)
        assert stored.assignee_id == TECH_A.id
        assert stored.status == TicketStatus.IN_PROGRESS

    async def test_flag_update_is_idempotent(self, sql_desk, ticket_data, clock):
        ticket = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)

        assert await sql_desk.ticket_repo.set_flag(ticket.id, "escalated", clock.now) is True
        assert await sql_desk.ticket_repo.set_flag(ticket.id, "escalated", clock.now) is False

    async def test_unknown_flag_is_rejected(self, sql_desk, ticket_data, clock):
        ticket = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)

        with pytest.raises(ValueError):
            await sql_desk.ticket_repo.set_flag(ticket.id, "status", clock.now)


class TestLifecycleOnDatabase:
    """End-to-end service flows against SQLite."""

    async def test_full_lifecycle(self, sql_desk, ticket_data, clock, publisher):
        ticket = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)
        await sql_desk.claims.claim(ticket.id, TECH_A)
        await sql_desk.lifecycle.add_comment(ticket.id, TECH_A, "Ordered a new drum")
        resolved_at = clock.advance(hours=2)
        await sql_desk.lifecycle.change_status(ticket.id, TicketStatus.RESOLVED, TECH_A)
        closed_at = clock.advance(minutes=30)
        closed = await sql_desk.lifecycle.change_status(ticket.id, TicketStatus.CLOSED, ADMIN)

        assert closed.status == TicketStatus.CLOSED
        assert closed.resolved_at == resolved_at
        assert closed.closed_at == closed_at
        with pytest.raises(TicketClosedException):
            await sql_desk.claims.claim(ticket.id, TECH_B)

        trail = await sql_desk.lifecycle.list_updates(ticket.id)
        assert [u.update_type for u in trail][:2] == [UpdateType.STATUS_CHANGE, UpdateType.RESOLUTION]
        assert len(trail) == 5
        comments = await sql_desk.lifecycle.list_comments(ticket.id)
        assert [c.body for c in comments] == ["Ordered a new drum"]
        assert publisher.event_types == [
            "ticket.created", "ticket.claimed", "ticket.resolved", "ticket.closed"
        ]

    async def test_cannot_resolve_report_reopens_ticket(self, sql_desk, ticket_data):
        ticket = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)
        await sql_desk.claims.claim(ticket.id, TECH_A)

        report = await sql_desk.reports.submit(TECH_A, {
            "ticket_id": ticket.id,
            "report_type": "repair",
            "work_performed": "Diagnosed fuser",
            "findings": "Needs replacement part",
            "cannot_resolve": True,
        })

        reopened = await sql_desk.lifecycle.get_ticket(ticket.id)
        assert reopened.status == TicketStatus.OPEN
        assert reopened.assignee_id == TECH_A.id
        assert [r.id for r in await sql_desk.reports.list_reports(ticket_id=ticket.id)] == [report.id]

    async def test_lost_reopen_rolls_back_report(self, sql_desk, ticket_data, session_maker, monkeypatch):
        ticket = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)
        await sql_desk.claims.claim(ticket.id, TECH_A)

        async def lost_transition(*args, **kwargs):
            return False

        monkeypatch.setattr(sql_desk.ticket_repo, "transition", lost_transition)

        with pytest.raises(InvalidTransitionException):
            await sql_desk.reports.submit(TECH_A, {
                "ticket_id": ticket.id,
                "work_performed": "Tried",
                "findings": "Blocked",
                "cannot_resolve": True,
            })

        async with session_maker() as check:
            assert await SQLAlchemyFieldReportRepository(check).list(ticket_id=ticket.id) == []

    async def test_close_loses_to_concurrent_reopen(self, session_maker, ticket_data, clock, publisher):
        """A close validated against a resolved row fails once a report has reopened it."""
        async with session_maker() as setup:
            desk = SQLDesk(setup, clock, publisher)
            ticket = await desk.lifecycle.create_ticket(REQUESTER, ticket_data)
            await desk.claims.claim(ticket.id, TECH_A)
            await desk.lifecycle.change_status(ticket.id, TicketStatus.RESOLVED, TECH_A)

        async with session_maker() as first, session_maker() as second:
            closer = SQLDesk(first, clock, publisher)
            reporter = SQLDesk(second, clock, publisher)
            original_transition = closer.ticket_repo.transition

            async def reopen_then_transition(*args, **kwargs):
                await reporter.reports.submit(TECH_A, {
                    "ticket_id": ticket.id,
                    "work_performed": "Reseated toner",
                    "findings": "Fault came back",
                    "cannot_resolve": True,
                })
                return await original_transition(*args, **kwargs)

            closer.ticket_repo.transition = reopen_then_transition

            with pytest.raises(InvalidTransitionException) as exc_info:
                await closer.lifecycle.change_status(ticket.id, TicketStatus.CLOSED, ADMIN)

        assert exc_info.value.current_status == "open"
        assert exc_info.value.requested_status == "closed"
        async with session_maker() as check:
            stored = await SQLAlchemyTicketRepository(check).get_by_id(ticket.id)
        assert stored.status == TicketStatus.OPEN
        assert stored.closed_at is None
        assert stored.assignee_id == TECH_A.id
        assert "ticket.closed" not in publisher.event_types

    async def test_auto_assign_reserves_technician(self, sql_desk, ticket_data):
        await sql_desk.technicians.register(ADMIN, {"id": TECH_B.id, "name": "B", "email": "b@example.com"})
        ticket = await sql_desk.lifecycle.create_ticket(REQUESTER, ticket_data)

        result = await sql_desk.claims.auto_assign(ticket.id, ADMIN)

        assert result.ticket.assignee_id == TECH_B.id
        busy = await sql_desk.technicians.list_technicians(TechnicianStatus.BUSY)
        assert [t.id for t in busy] == [TECH_B.id]


async def test_missing_tables_surface_as_storage_unavailable(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    try:
        async with create_session_maker(engine)() as db_session:
            with pytest.raises(StorageUnavailableException) as exc_info:
                await SQLAlchemyTicketRepository(db_session).get_by_id(str(uuid4()))
        assert exc_info.value.error_code == "storage_unavailable"
    finally:
        await engine.dispose()
