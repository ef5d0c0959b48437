"""
Ticket Domain Layer
===================

Domain layer for the ticket lifecycle module.

Contains:
- Entities: Ticket, Comment, FieldReport, Technician, TicketUpdate,
  TicketEvent, Actor
- Domain Services: TicketStateMachine (transition table and guards),
  FieldReportValidator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from servicedesk.tickets.domain.entities import (
    Actor,
    Ticket,
    Comment,
    FieldReport,
    Technician,
    TicketUpdate,
    TicketEvent,
    utc_now,
)
from servicedesk.tickets.domain.lifecycle import (
    TICKET_TRANSITIONS,
    TicketStateMachine,
    TransitionRule,
    TransitionTrigger,
)
from servicedesk.tickets.domain.validation import FieldReportValidator

__all__ = [
    # Entities
    "Actor",
    "Ticket",
    "Comment",
    "FieldReport",
    "Technician",
    "TicketUpdate",
    "TicketEvent",
    "utc_now",
    # Domain Services
    "TICKET_TRANSITIONS",
    "TicketStateMachine",
    "TransitionRule",
    "TransitionTrigger",
    "FieldReportValidator",
]
