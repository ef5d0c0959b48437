"""
SLA Application Services
========================

Read-side SLA reporting over persisted tickets.

Deadlines are stamped once at ticket creation; this service only classifies
tickets against them and aggregates compliance. It never writes.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from servicedesk.config import SLAState, TicketStatus
from servicedesk.core import ResourceNotFoundException
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.sla.application.dto import (
    ComplianceEntry,
    ComplianceResponse,
    DashboardQueryDTO,
    DashboardResponse,
    DashboardSummary,
    SLAPolicyResponse,
    TicketSLAResponse,
)
from servicedesk.sla.domain import ComplianceStats, SLACalculator
from servicedesk.tickets.application.services import (
    Clock,
    ISLAPolicyProvider,
    ITicketRepository,
)
from servicedesk.tickets.domain import Ticket, utc_now

logger = get_logger(__name__)

ACTIVE_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)


class SLAReportingService:
    """
    SLA position of tickets, dashboard aggregation and compliance.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        policy_provider: ISLAPolicyProvider,
        clock: Clock = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._policy_provider = policy_provider
        self._clock = clock

    def _to_response(self, ticket: Ticket, now: datetime) -> TicketSLAResponse:
        policy = self._policy_provider.get_policy()
        state = SLACalculator.calculate_status(
            ticket.sla_deadline,
            ticket.status,
            now,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            due_soon_hours=policy.due_soon_hours,
        )
        remaining = None
        if ticket.status in ACTIVE_STATUSES:
            remaining = SLACalculator.remaining_seconds(ticket.sla_deadline, now)

        return TicketSLAResponse(
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            priority=ticket.priority,
            status=ticket.status,
            assignee_id=ticket.assignee_id,
            created_at=ticket.created_at,
            sla_deadline=ticket.sla_deadline,
            remaining_seconds=remaining,
            state=state,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            escalated=ticket.escalated,
        )

    async def ticket_sla(self, ticket_id: str) -> TicketSLAResponse:
        """SLA position of one ticket."""
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return self._to_response(ticket, self._clock())

    async def dashboard(self, query: DashboardQueryDTO) -> DashboardResponse:
        """
        Tickets with SLA state plus summary counts.

        The summary covers every ticket matching the column filters; the
        `sla_state` filter and pagination apply to the returned list only.
        """
        now = self._clock()
        tickets = await self._ticket_repo.list(query.to_filters(), limit=None)
        rows = [self._to_response(ticket, now) for ticket in tickets]

        summary = self._summarize(rows)

        if query.sla_state:
            rows = [row for row in rows if row.state == SLAState(query.sla_state)]
        page = rows[query.offset:query.offset + query.limit]

        return DashboardResponse(tickets=page, total_count=len(page), summary=summary)

    @staticmethod
    def _summarize(rows: List[TicketSLAResponse]) -> DashboardSummary:
        counts: Dict[Optional[SLAState], int] = {}
        for row in rows:
            counts[row.state] = counts.get(row.state, 0) + 1

        active = sum(1 for row in rows if row.status in ACTIVE_STATUSES)
        breached = counts.get(SLAState.BREACHED, 0)

        return DashboardSummary(
            total_tickets=len(rows),
            on_track_count=counts.get(SLAState.ON_TRACK, 0),
            due_soon_count=counts.get(SLAState.DUE_SOON, 0),
            breached_count=breached,
            met_count=counts.get(SLAState.MET, 0),
            missed_count=counts.get(SLAState.MISSED, 0),
            escalated_count=sum(1 for row in rows if row.escalated),
            unassigned_count=sum(1 for row in rows if row.assignee_id is None),
            breach_rate=round(breached / active * 100, 2) if active else 0.0,
        )

    async def compliance(self, since: Optional[datetime] = None) -> ComplianceResponse:
        """
        Share of closed tickets closed at or before their deadline.

        Tickets without a deadline are not measured. `since` restricts the
        measurement to tickets closed at or after that instant.
        """
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        closed = await self._ticket_repo.list({"status": TicketStatus.CLOSED}, limit=None)

        overall = [0, 0]
        per_technician: Dict[str, List[int]] = {}
        for ticket in closed:
            if since is not None and (ticket.closed_at is None or ticket.closed_at < since):
                continue
            compliant = SLACalculator.is_compliant(ticket.sla_deadline, ticket.closed_at)
            if compliant is None:
                continue

            bucket = per_technician.setdefault(ticket.assignee_id, [0, 0])
            for counter in (overall, bucket):
                counter[0] += 1
                counter[1] += int(compliant)

        def entry(counter: List[int]) -> ComplianceEntry:
            stats = ComplianceStats(measured=counter[0], compliant=counter[1])
            return ComplianceEntry(measured=stats.measured, compliant=stats.compliant, rate=stats.rate)

        logger.debug("SLA compliance computed", extra={"measured": overall[0]})
        return ComplianceResponse(
            since=since,
            overall=entry(overall),
            by_technician={tech: entry(counter) for tech, counter in per_technician.items()},
        )

    def current_policy(self) -> SLAPolicyResponse:
        policy = self._policy_provider.get_policy()
        return SLAPolicyResponse(
            resolution_hours=dict(policy.resolution_hours),
            due_soon_hours=policy.due_soon_hours,
        )
