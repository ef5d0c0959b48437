"""
Ticket State Machine
====================

Transition table and guards for ticket status changes.

    open ──start work──▶ in_progress ──resolve──▶ resolved ──close──▶ closed
      ▲                      │                        │
      └──── cannot-resolve field report ◀─────────────┘

The reopen edge is only reachable through a "cannot resolve" field report,
never by a direct status request. `closed` is terminal.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from servicedesk.config import Role, TicketStatus, STAFF_ROLES
from servicedesk.core import (
    AlreadyClaimedException,
    InvalidTransitionException,
    PermissionDeniedException,
    TicketClosedException,
)
from servicedesk.tickets.domain.entities import Actor, Ticket


class TransitionTrigger(str, Enum):
    """What caused a status change."""
    START_WORK = "start_work"
    RESOLVE = "resolve"
    CLOSE = "close"
    REOPEN = "reopen"


@dataclass(frozen=True)
class TransitionRule:
    """One permitted edge of the state machine."""
    source: TicketStatus
    target: TicketStatus
    trigger: TransitionTrigger
    roles: FrozenSet[Role]
    # Acting user must be the current assignee
    requires_assignee: bool = False
    # Only reachable through the field report linkage
    field_report_only: bool = False

    def changes(self, actor: Actor, now: datetime) -> dict:
        """Column values written when this edge is applied."""
        values = {"status": self.target, "updated_at": now}
        if self.trigger == TransitionTrigger.START_WORK:
            values["assignee_id"] = actor.id
        elif self.trigger == TransitionTrigger.RESOLVE:
            values["resolved_at"] = now
        elif self.trigger == TransitionTrigger.CLOSE:
            values["closed_at"] = now
        elif self.trigger == TransitionTrigger.REOPEN:
            values["resolved_at"] = None
        return values


_STAFF = frozenset(STAFF_ROLES)

TICKET_TRANSITIONS: Dict[Tuple[TicketStatus, TicketStatus], TransitionRule] = {
    (TicketStatus.OPEN, TicketStatus.IN_PROGRESS): TransitionRule(
        TicketStatus.OPEN, TicketStatus.IN_PROGRESS,
        TransitionTrigger.START_WORK, _STAFF
    ),
    (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED): TransitionRule(
        TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED,
        TransitionTrigger.RESOLVE, _STAFF, requires_assignee=True
    ),
    (TicketStatus.RESOLVED, TicketStatus.CLOSED): TransitionRule(
        TicketStatus.RESOLVED, TicketStatus.CLOSED,
        TransitionTrigger.CLOSE, _STAFF
    ),
    (TicketStatus.IN_PROGRESS, TicketStatus.OPEN): TransitionRule(
        TicketStatus.IN_PROGRESS, TicketStatus.OPEN,
        TransitionTrigger.REOPEN, _STAFF, field_report_only=True
    ),
    (TicketStatus.RESOLVED, TicketStatus.OPEN): TransitionRule(
        TicketStatus.RESOLVED, TicketStatus.OPEN,
        TransitionTrigger.REOPEN, _STAFF, field_report_only=True
    ),
}


class TicketStateMachine:
    """
    Validates status transitions against the transition table.

    Validation is pure; the caller applies `rule.changes(...)` through a
    conditional update keyed on the status it validated against.
    """

    @staticmethod
    def rule_for(source: TicketStatus, target: TicketStatus) -> Optional[TransitionRule]:
        return TICKET_TRANSITIONS.get((TicketStatus(source), TicketStatus(target)))

    @staticmethod
    def validate(
        ticket: Ticket,
        target: TicketStatus,
        actor: Actor,
        via_field_report: bool = False
    ) -> TransitionRule:
        """
        Check that `actor` may move `ticket` to `target`.

        Raises:
            TicketClosedException: ticket is closed
            PermissionDeniedException: role or ownership does not allow it
            InvalidTransitionException: edge not in the table for this trigger
            AlreadyClaimedException: start work on a ticket someone else holds
        """
        target = TicketStatus(target)

        if ticket.is_closed:
            raise TicketClosedException(ticket.id)

        if not actor.is_staff:
            raise PermissionDeniedException(actor.role, f"move tickets to '{target.value}'")

        rule = TICKET_TRANSITIONS.get((ticket.status, target))
        if rule is None or rule.field_report_only != via_field_report:
            raise InvalidTransitionException(ticket.id, ticket.status, target)

        if actor.role not in rule.roles:
            raise PermissionDeniedException(actor.role, f"move tickets to '{target.value}'")

        if rule.trigger == TransitionTrigger.START_WORK:
            if not (ticket.is_unassigned or ticket.is_assigned_to(actor.id)):
                raise AlreadyClaimedException(ticket.id)

        if rule.requires_assignee and not ticket.is_assigned_to(actor.id):
            raise PermissionDeniedException(
                actor.role, f"{rule.trigger.value} a ticket assigned to someone else"
            )

        return rule

    @staticmethod
    def available_transitions(ticket: Ticket, actor: Actor) -> List[TicketStatus]:
        """Statuses the actor may request directly, so clients only offer valid actions."""
        targets = []
        for (source, target), rule in TICKET_TRANSITIONS.items():
            if source != ticket.status or rule.field_report_only:
                continue
            try:
                TicketStateMachine.validate(ticket, target, actor)
            except (
                TicketClosedException,
                PermissionDeniedException,
                InvalidTransitionException,
                AlreadyClaimedException,
            ):
                continue
            targets.append(target)
        return targets
