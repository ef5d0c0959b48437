"""
SLA Application DTOs
====================

Data Transfer Objects for the SLA reporting API.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from servicedesk.config import Priority, SLAState, TicketStatus


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
TicketStatusStr = Literal["open", "in_progress", "resolved", "closed"]
SLAStateStr = Literal["on_track", "due_soon", "breached", "met", "missed"]


# ========== Request DTOs ==========

class DashboardQueryDTO(BaseModel):
    """Query parameters for dashboard endpoint."""
    priority: Optional[PriorityStr] = None
    status: Optional[TicketStatusStr] = None
    assignee_id: Optional[str] = None
    sla_state: Optional[SLAStateStr] = None
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    def to_filters(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"limit", "offset", "sla_state"})


# ========== Response DTOs ==========

class TicketSLAResponse(BaseModel):
    """SLA position of a single ticket."""
    ticket_id: str = Field(..., description="Internal ticket UUID")
    ticket_number: str = Field(..., description="Human-readable ticket number")
    priority: Priority
    status: TicketStatus
    assignee_id: Optional[str] = None
    created_at: datetime
    sla_deadline: Optional[datetime] = Field(None, description="Resolution deadline")
    remaining_seconds: Optional[float] = Field(
        None, description="Seconds until the deadline (negative once breached); unset once finished"
    )
    state: Optional[SLAState] = Field(None, description="SLA state, unset for tickets without deadline")
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    escalated: bool = False


class DashboardSummary(BaseModel):
    """Summary statistics for dashboard."""
    total_tickets: int = Field(..., description="Total tickets in view")
    on_track_count: int = 0
    due_soon_count: int = 0
    breached_count: int = 0
    met_count: int = 0
    missed_count: int = 0
    escalated_count: int = 0
    unassigned_count: int = 0
    breach_rate: float = Field(0.0, description="Percentage of active tickets past their deadline")


class DashboardResponse(BaseModel):
    """Response model for dashboard endpoint."""
    tickets: List[TicketSLAResponse] = Field(..., description="Tickets with SLA status")
    total_count: int = Field(..., description="Total tickets returned")
    summary: DashboardSummary


class ComplianceEntry(BaseModel):
    """Compliance over closed tickets with a deadline."""
    measured: int = Field(..., description="Closed tickets that had a deadline")
    compliant: int = Field(..., description="Closed at or before the deadline")
    rate: float = Field(..., description="Compliance percentage")


class ComplianceResponse(BaseModel):
    """Compliance overall and per assigned technician."""
    since: Optional[datetime] = None
    overall: ComplianceEntry
    by_technician: Dict[str, ComplianceEntry] = Field(default_factory=dict)


class SLAPolicyResponse(BaseModel):
    """Currently active SLA policy table."""
    resolution_hours: Dict[str, float]
    due_soon_hours: float
