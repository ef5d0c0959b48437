"""
Ticket Application DTOs
=======================

Data Transfer Objects for the ticket API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Mandatory field-report fields are checked by
the domain validator, not here, so every missing field is reported together.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from servicedesk.config import (
    TicketType, TicketCategory, Priority, TicketStatus,
    TechnicianStatus, ReportType, UpdateType
)


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
TicketTypeStr = Literal["incident", "service_request", "problem", "change"]
CategoryStr = Literal["software", "hardware", "network", "access", "other"]
TicketStatusStr = Literal["open", "in_progress", "resolved", "closed"]
TechnicianStatusStr = Literal["available", "busy", "away", "offline"]
ReportTypeStr = Literal["maintenance", "installation", "repair"]


# ========== Request DTOs ==========

class TicketCreateDTO(BaseModel):
    """DTO for filing a ticket."""
    title: str = Field(..., min_length=1, max_length=500, description="Short summary")
    description: str = Field(..., min_length=1, description="Problem description")
    type: TicketTypeStr = Field(default="incident", description="Ticket type")
    category: CategoryStr = Field(default="other", description="Ticket category")
    priority: PriorityStr = Field(default="medium", description="Ticket priority")
    requester_id: Optional[str] = Field(
        None, description="Requester when filed on someone's behalf (staff only)"
    )
    assignee_id: Optional[str] = Field(None, description="Pre-assigned technician (admin only)")
    image_url: Optional[str] = Field(None, description="Opaque attachment URL")

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class StatusChangeRequest(BaseModel):
    """Request a status transition."""
    status: TicketStatusStr = Field(..., description="Requested status")


class AssignRequest(BaseModel):
    """Admin assignment of an open ticket."""
    technician_id: str = Field(..., min_length=1)


class FlagRequest(BaseModel):
    """Escalation or approval request."""
    reason: Optional[str] = Field(None, max_length=2000)


class CommentCreateDTO(BaseModel):
    """Internal comment body."""
    body: str = Field(..., description="Comment text")


class FieldReportCreateDTO(BaseModel):
    """DTO for submitting a field report."""
    ticket_id: Optional[str] = Field(None, description="Linked ticket, if any")
    report_type: ReportTypeStr = Field(default="maintenance")
    work_performed: Optional[str] = None
    findings: Optional[str] = None
    recommendations: Optional[str] = None
    parts_used: Optional[str] = None
    spares_used: Optional[str] = None
    installation_details: Optional[str] = None
    equipment: Optional[str] = None
    serial_number: Optional[str] = None
    work_hours: Optional[float] = Field(None, ge=0)
    site_location: Optional[str] = None
    customer_name: Optional[str] = None
    image_url: Optional[str] = None
    cannot_resolve: bool = Field(
        default=False,
        description="Work could not be finished on the spot; reopens the linked ticket"
    )


class TechnicianCreateDTO(BaseModel):
    """Roster registration."""
    id: Optional[str] = Field(None, description="Identity id of the technician")
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    status: TechnicianStatusStr = Field(default="available")


class AvailabilityUpdateDTO(BaseModel):
    """Technician availability change."""
    status: TechnicianStatusStr


class TicketQueryDTO(BaseModel):
    """Filters for ticket listing."""
    status: Optional[TicketStatusStr] = None
    priority: Optional[PriorityStr] = None
    category: Optional[CategoryStr] = None
    assignee_id: Optional[str] = None
    requester_id: Optional[str] = None
    unassigned: Optional[bool] = None
    escalated: Optional[bool] = None
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    def to_filters(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"limit", "offset"})


# ========== Response DTOs ==========

class TicketResponse(BaseModel):
    """Ticket as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_number: str
    title: str
    description: str
    type: TicketType
    category: TicketCategory
    priority: Priority
    status: TicketStatus
    requester_id: str
    assignee_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    sla_deadline: Optional[datetime]
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    escalated: bool
    approval_requested: bool
    image_url: Optional[str] = None


class TicketDetailResponse(TicketResponse):
    """Ticket plus the transitions the caller may request."""
    available_transitions: List[TicketStatus] = Field(default_factory=list)


class ClaimResponse(BaseModel):
    """Result of a claim or auto-assign."""
    ticket: TicketResponse
    already_owned: bool = Field(
        default=False, description="Caller already held the ticket; nothing changed"
    )


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    author_id: str
    body: str
    created_at: datetime


class TicketUpdateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    author_id: str
    update_type: UpdateType
    content: str
    created_at: datetime


class FieldReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: Optional[str]
    technician_id: str
    report_type: ReportType
    work_performed: str
    findings: str
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
    cannot_resolve: bool
    created_at: datetime


class TechnicianResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    status: TechnicianStatus
    created_at: datetime
    updated_at: datetime
