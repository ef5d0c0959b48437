"""
Ticket Domain Entities
======================

Pure Python domain entities for the ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from servicedesk.config import (
    Role, TicketType, TicketCategory, Priority, TicketStatus,
    TechnicianStatus, ReportType, UpdateType, TicketEventType, STAFF_ROLES
)


def utc_now() -> datetime:
    """Current instant, timezone-aware."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Actor:
    """
    Acting user as resolved by the identity boundary.

    Only the role is consumed for precondition checks.
    """
    id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class Ticket:
    """
    Ticket entity representing a service-desk ticket.

    Classification and priority are fixed at creation; the SLA deadline is
    stamped once and never recomputed.
    """

    # Core attributes
    id: str
    ticket_number: str
    title: str
    description: str
    type: TicketType
    category: TicketCategory
    priority: Priority
    status: TicketStatus

    # Participants
    requester_id: str
    assignee_id: Optional[str]

    # Timestamps
    created_at: datetime
    updated_at: datetime
    sla_deadline: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    # Flags
    escalated: bool = False
    approval_requested: bool = False

    # Opaque attachment handle
    image_url: Optional[str] = None

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")

        if self.assignee_id is None and self.status != TicketStatus.OPEN:
            raise ValueError(f"unassigned ticket cannot be '{self.status.value}'")

    @property
    def is_closed(self) -> bool:
        return self.status == TicketStatus.CLOSED

    @property
    def is_unassigned(self) -> bool:
        return self.assignee_id is None

    def is_assigned_to(self, actor_id: str) -> bool:
        return self.assignee_id is not None and self.assignee_id == actor_id


@dataclass
class Comment:
    """Internal comment on a ticket. Append-only."""
    id: str
    ticket_id: str
    author_id: str
    body: str
    created_at: datetime


@dataclass
class FieldReport:
    """
    Structured record of on-site or remote work.

    May exist independently of any ticket. Append-only.
    """
    id: str
    ticket_id: Optional[str]
    technician_id: str
    report_type: ReportType
    work_performed: str
    findings: str
    created_at: datetime
    recommendations: Optional[str] = None
    parts_used: Optional[str] = None
    spares_used: Optional[str] = None
    installation_details: Optional[str] = None
    equipment: Optional[str] = None
    serial_number: Optional[str] = None
    work_hours: Optional[float] = None
    site_location: Optional[str] = None
    customer_name: Optional[str] = None
    image_url: Optional[str] = None
    cannot_resolve: bool = False


@dataclass
class Technician:
    """Technician row on the roster."""
    id: str
    name: str
    email: str
    status: TechnicianStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_available(self) -> bool:
        return self.status == TechnicianStatus.AVAILABLE


@dataclass
class TicketUpdate:
    """Activity trail entry written alongside every ticket mutation."""
    id: str
    ticket_id: str
    author_id: str
    update_type: UpdateType
    content: str
    created_at: datetime


@dataclass
class TicketEvent:
    """
    Event handed to the notification boundary after a successful change.

    Delivery is fire-and-forget.
    """
    event_type: TicketEventType
    ticket_id: str
    ticket_number: str
    actor_id: str
    requester_id: str
    assignee_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=utc_now)
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_ticket(
        cls,
        event_type: TicketEventType,
        ticket: Ticket,
        actor: Actor,
        **data: Any
    ) -> "TicketEvent":
        return cls(
            event_type=event_type,
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            actor_id=actor.id,
            requester_id=ticket.requester_id,
            assignee_id=ticket.assignee_id,
            occurred_at=ticket.updated_at,
            data=data,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for webhook payloads."""
        return {
            "event": self.event_type.value,
            "ticket_id": self.ticket_id,
            "ticket_number": self.ticket_number,
            "actor_id": self.actor_id,
            "requester_id": self.requester_id,
            "assignee_id": self.assignee_id,
            "occurred_at": self.occurred_at.isoformat(),
            "data": self.data,
        }
