"""Tests for concurrency-safe claiming and auto-assignment."""

import asyncio

import pytest

from conftest import ADMIN, REQUESTER, TECH_A, TECH_B
from servicedesk.config import Role, TechnicianStatus, TicketStatus
from servicedesk.core import (
    AlreadyClaimedException,
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
    TicketClosedException,
)
from servicedesk.tickets.domain import Actor


@pytest.fixture
async def ticket(desk, ticket_data):
    return await desk.lifecycle.create_ticket(REQUESTER, ticket_data)


async def register(desk, technician_id, status="available"):
    return await desk.technicians.register(ADMIN, {
        "id": technician_id,
        "name": technician_id.upper(),
        "email": f"{technician_id}@example.com",
        "status": status,
    })


class TestClaim:
    """Test cases for ClaimCoordinator.claim."""

    async def test_claim_open_ticket(self, desk, ticket, publisher):
        result = await desk.claims.claim(ticket.id, TECH_A)

        assert result.already_owned is False
        assert result.ticket.status == TicketStatus.IN_PROGRESS
        assert result.ticket.assignee_id == TECH_A.id
        assert publisher.event_types[-1] == "ticket.claimed"

    async def test_concurrent_claims_have_exactly_one_winner(self, desk, ticket):
        """Two technicians claim the same ticket at the same moment."""
        results = await asyncio.gather(
            desk.claims.claim(ticket.id, TECH_A),
            desk.claims.claim(ticket.id, TECH_B),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AlreadyClaimedException)

        stored = await desk.lifecycle.get_ticket(ticket.id)
        assert stored.assignee_id == winners[0].ticket.assignee_id
        assert stored.status == TicketStatus.IN_PROGRESS

    async def test_many_concurrent_claims(self, desk, ticket):
        technicians = [Actor(id=f"tech-{i}", role=Role.TECHNICIAN) for i in range(10)]

        results = await asyncio.gather(
            *(desk.claims.claim(ticket.id, t) for t in technicians),
            return_exceptions=True,
        )

        assert sum(not isinstance(r, Exception) for r in results) == 1
        assert all(
            isinstance(r, AlreadyClaimedException) for r in results if isinstance(r, Exception)
        )

    async def test_reclaim_by_owner_is_idempotent(self, desk, ticket, memory_db, publisher):
        await desk.claims.claim(ticket.id, TECH_A)
        trail_size = len(memory_db.updates)
        event_count = len(publisher.events)

        result = await desk.claims.claim(ticket.id, TECH_A)

        assert result.already_owned is True
        assert result.ticket.assignee_id == TECH_A.id
        assert len(memory_db.updates) == trail_size
        assert len(publisher.events) == event_count

    async def test_claim_taken_ticket(self, desk, ticket):
        await desk.claims.claim(ticket.id, TECH_A)

        with pytest.raises(AlreadyClaimedException):
            await desk.claims.claim(ticket.id, TECH_B)

    async def test_claim_preassigned_ticket_by_assignee(self, desk, ticket_data):
        await register(desk, TECH_A.id)
        ticket = await desk.lifecycle.create_ticket(ADMIN, {**ticket_data, "assignee_id": TECH_A.id})

        result = await desk.claims.claim(ticket.id, TECH_A)

        assert result.already_owned is False
        assert result.ticket.status == TicketStatus.IN_PROGRESS

    async def test_requester_cannot_claim(self, desk, ticket):
        with pytest.raises(PermissionDeniedException):
            await desk.claims.claim(ticket.id, REQUESTER)

    async def test_claim_closed_ticket(self, desk, ticket):
        await desk.claims.claim(ticket.id, TECH_A)
        await desk.lifecycle.change_status(ticket.id, TicketStatus.RESOLVED, TECH_A)
        await desk.lifecycle.change_status(ticket.id, TicketStatus.CLOSED, ADMIN)

        with pytest.raises(TicketClosedException):
            await desk.claims.claim(ticket.id, TECH_B)

    async def test_owner_reclaim_of_resolved_ticket(self, desk, ticket):
        await desk.claims.claim(ticket.id, TECH_A)
        await desk.lifecycle.change_status(ticket.id, TicketStatus.RESOLVED, TECH_A)

        with pytest.raises(InvalidTransitionException):
            await desk.claims.claim(ticket.id, TECH_A)

    async def test_claim_missing_ticket(self, desk):
        with pytest.raises(ResourceNotFoundException):
            await desk.claims.claim("no-such-ticket", TECH_A)


class TestAutoAssign:
    """Test cases for ClaimCoordinator.auto_assign."""

    async def test_picks_first_available_technician(self, desk, ticket, memory_db):
        await register(desk, "tech-away", status="away")
        await register(desk, TECH_A.id)
        await register(desk, TECH_B.id)

        result = await desk.claims.auto_assign(ticket.id, ADMIN)

        assert result.ticket.assignee_id == TECH_A.id
        assert result.ticket.status == TicketStatus.IN_PROGRESS
        assert memory_db.technicians[TECH_A.id].status == TechnicianStatus.BUSY
        assert memory_db.technicians[TECH_B.id].status == TechnicianStatus.AVAILABLE

    async def test_event_marks_auto_assignment(self, desk, ticket, publisher):
        await register(desk, TECH_A.id)

        await desk.claims.auto_assign(ticket.id, ADMIN)

        assert publisher.events[-1].data == {"auto_assigned": True}
        assert publisher.events[-1].actor_id == ADMIN.id

    async def test_no_available_technician(self, desk, ticket):
        await register(desk, TECH_A.id, status="busy")

        with pytest.raises(ResourceNotFoundException):
            await desk.claims.auto_assign(ticket.id, ADMIN)

    async def test_admin_only(self, desk, ticket):
        with pytest.raises(PermissionDeniedException):
            await desk.claims.auto_assign(ticket.id, TECH_A)

    async def test_already_assigned_ticket(self, desk, ticket):
        await register(desk, TECH_B.id)
        await desk.claims.claim(ticket.id, TECH_A)

        with pytest.raises(InvalidTransitionException):
            await desk.claims.auto_assign(ticket.id, ADMIN)

    async def test_lost_claim_rolls_back_reservation(self, desk, ticket, memory_db, monkeypatch):
        """Another technician takes the ticket between the check and the claim."""
        await register(desk, TECH_A.id)
        ticket_repo = desk.claims._ticket_repo
        original_claim = ticket_repo.claim

        async def claim_lost_race(ticket_id, technician_id, now):
            await original_claim(ticket_id, TECH_B.id, now)
            return False

        monkeypatch.setattr(ticket_repo, "claim", claim_lost_race)

        with pytest.raises(AlreadyClaimedException):
            await desk.claims.auto_assign(ticket.id, ADMIN)

        assert desk.uow.rollbacks == 1
        assert memory_db.technicians[TECH_A.id].status == TechnicianStatus.AVAILABLE

    async def test_concurrent_auto_assign_shares_one_technician(self, desk, ticket_data, memory_db):
        await register(desk, TECH_A.id)
        first = await desk.lifecycle.create_ticket(REQUESTER, ticket_data)
        second = await desk.lifecycle.create_ticket(REQUESTER, ticket_data)

        results = await asyncio.gather(
            desk.claims.auto_assign(first.id, ADMIN),
            desk.claims.auto_assign(second.id, ADMIN),
            return_exceptions=True,
        )

        wins = [r for r in results if not isinstance(r, Exception)]
        losses = [r for r in results if isinstance(r, Exception)]
        assert len(wins) == 1
        assert len(losses) == 1
        assert isinstance(losses[0], ResourceNotFoundException)
        assert losses[0].resource_type == "Available technician"
        assert wins[0].ticket.assignee_id == TECH_A.id
        assert memory_db.technicians[TECH_A.id].status == TechnicianStatus.BUSY

        loser_id = second.id if wins[0].ticket.id == first.id else first.id
        assert memory_db.tickets[loser_id].status == TicketStatus.OPEN
        assert memory_db.tickets[loser_id].assignee_id is None
