"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

The resolution-time commitments per priority live in one policy table
(`SLAPolicy`) so they can be audited and tested in isolation from ticket
creation. `SLACalculator` holds the pure functions that apply it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from servicedesk.config import Priority, SLAState, TicketStatus, VALID_PRIORITIES


DEFAULT_RESOLUTION_HOURS: Dict[str, float] = {
    Priority.CRITICAL.value: 4,
    Priority.HIGH.value: 8,
    Priority.MEDIUM.value: 24,
    Priority.LOW.value: 72,
}


class SLAPolicy(BaseModel):
    """
    SLA policy loaded from YAML.

    `resolution_hours` maps each priority to the time allowed between
    creation and resolution. Priorities missing from the file fall back to
    the built-in table.
    """
    model_config = ConfigDict(frozen=True)

    resolution_hours: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_RESOLUTION_HOURS),
        description="Resolution SLA in hours by priority"
    )
    due_soon_hours: float = Field(
        default=24,
        ge=0,
        description="Open tickets closer than this to their deadline are due soon"
    )

    @field_validator("resolution_hours")
    @classmethod
    def validate_resolution_hours(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Fill missing priorities and reject non-positive durations."""
        hours = {str(k).lower(): float(val) for k, val in v.items()}
        for priority, value in hours.items():
            if value <= 0:
                raise ValueError(f"resolution_hours[{priority}] must be positive")
        for priority in VALID_PRIORITIES:
            hours.setdefault(priority, DEFAULT_RESOLUTION_HOURS[priority])
        return hours

    @property
    def fallback_hours(self) -> float:
        """Longest configured duration, used for unrecognized priorities."""
        return max(self.resolution_hours.values())

    def duration(self, priority: Union[Priority, str, None]) -> timedelta:
        """
        Resolution window for a priority.

        Unknown or missing priorities fail closed to the least urgent (longest)
        window so an unexpected value never under-commits.
        """
        key = getattr(priority, "value", priority)
        hours = self.resolution_hours.get(key) if isinstance(key, str) else None
        if hours is None:
            hours = self.fallback_hours
        return timedelta(hours=hours)


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class: all SLA calculation logic in one place, no
    wall-clock reads. Callers inject `now`.
    """

    @staticmethod
    def compute_deadline(
        priority: Union[Priority, str, None],
        now: datetime,
        policy: Optional[SLAPolicy] = None
    ) -> datetime:
        """
        Calculate the resolution deadline for a ticket created at `now`.

        Args:
            priority: Ticket priority
            now: Creation instant
            policy: SLA policy table (built-in defaults when omitted)

        Returns:
            The SLA deadline
        """
        policy = policy or SLAPolicy()
        return now + policy.duration(priority)

    @staticmethod
    def calculate_status(
        deadline: Optional[datetime],
        status: Union[TicketStatus, str],
        now: datetime,
        resolved_at: Optional[datetime] = None,
        closed_at: Optional[datetime] = None,
        due_soon_hours: float = 24
    ) -> Optional[SLAState]:
        """
        Classify a ticket against its deadline.

        Resolved and closed tickets are judged on when the work finished;
        open work is judged on the time left.
        """
        if deadline is None:
            return None

        status = TicketStatus(status)
        if status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            finished_at = resolved_at or closed_at
            if finished_at is None:
                return None
            return SLAState.MET if finished_at <= deadline else SLAState.MISSED

        remaining = deadline - now
        if remaining.total_seconds() < 0:
            return SLAState.BREACHED
        if remaining <= timedelta(hours=due_soon_hours):
            return SLAState.DUE_SOON
        return SLAState.ON_TRACK

    @staticmethod
    def is_compliant(deadline: Optional[datetime], closed_at: Optional[datetime]) -> Optional[bool]:
        """Closed on time? None when the ticket has no deadline or is not closed."""
        if deadline is None or closed_at is None:
            return None
        return closed_at <= deadline

    @staticmethod
    def remaining_seconds(deadline: Optional[datetime], now: datetime) -> Optional[float]:
        """Seconds left until the deadline, negative once breached."""
        if deadline is None:
            return None
        return (deadline - now).total_seconds()


@dataclass(frozen=True)
class ComplianceStats:
    """SLA compliance over a set of closed tickets."""
    measured: int
    compliant: int

    @property
    def rate(self) -> float:
        """Percentage of measured tickets closed on time."""
        if self.measured == 0:
            return 0.0
        return round(self.compliant / self.measured * 100, 2)
