"""
SLA Controllers (API Routes)
============================

FastAPI routes for SLA reporting endpoints.

Controllers are thin - they delegate to application services.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core import PermissionDeniedException
from servicedesk.infrastructure.database import get_session
from servicedesk.sla.application import (
    ComplianceResponse,
    DashboardQueryDTO,
    DashboardResponse,
    SLAPolicyResponse,
    SLAReportingService,
    TicketSLAResponse,
)
from servicedesk.sla.application.dto import PriorityStr, SLAStateStr, TicketStatusStr
from servicedesk.tickets.application import ISLAPolicyProvider
from servicedesk.tickets.domain import Actor
from servicedesk.tickets.infrastructure import SQLAlchemyTicketRepository
from servicedesk.tickets.interfaces.dependencies import get_current_actor, get_policy_provider

router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

TICKET_SLA_RESPONSE_EXAMPLE = {
    "ticket_id": "123e4567-e89b-12d3-a456-426614174000",
    "ticket_number": "INC-000042",
    "priority": "high",
    "status": "in_progress",
    "assignee_id": "tech-7",
    "created_at": "2024-01-15T10:00:00Z",
    "sla_deadline": "2024-01-15T18:00:00Z",
    "remaining_seconds": 3600,
    "state": "due_soon",
    "resolved_at": None,
    "closed_at": None,
    "escalated": False
}


# ========== Dependencies ==========

async def get_reporting_service(
    session: AsyncSession = Depends(get_session),
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider)
) -> SLAReportingService:
    """Get SLA reporting service instance."""
    return SLAReportingService(SQLAlchemyTicketRepository(session), policy_provider)


def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_staff:
        raise PermissionDeniedException(actor.role, "view SLA reports")
    return actor


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAResponse,
    summary="Get SLA position of a ticket",
    description="""
    SLA state of one ticket:

    - `on_track` / `due_soon` / `breached` for open and in-progress tickets
    - `met` / `missed` once resolved or closed
    - unset for tickets without a deadline
    """,
    responses={
        200: {
            "description": "SLA position",
            "content": {"application/json": {"example": TICKET_SLA_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Ticket not found"}
    }
)
async def get_ticket_sla(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return await service.ticket_sla(ticket_id)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="SLA dashboard",
    description="Tickets with SLA state plus summary counts. Staff only."
)
async def get_dashboard(
    priority: Optional[PriorityStr] = Query(None),
    ticket_status: Optional[TicketStatusStr] = Query(None, alias="status"),
    assignee_id: Optional[str] = Query(None),
    sla_state: Optional[SLAStateStr] = Query(None),
    limit: int = Query(100, ge=1, le=1000, description="Results per page"),
    offset: int = Query(0, ge=0, description="Page offset"),
    actor: Actor = Depends(require_staff),
    service: SLAReportingService = Depends(get_reporting_service)
):
    query = DashboardQueryDTO(
        priority=priority,
        status=ticket_status,
        assignee_id=assignee_id,
        sla_state=sla_state,
        limit=limit,
        offset=offset,
    )
    return await service.dashboard(query)


@router.get(
    "/compliance",
    response_model=ComplianceResponse,
    summary="SLA compliance",
    description="""
    Share of closed tickets closed at or before their deadline, overall and
    per assigned technician. Tickets without a deadline are not measured.
    """
)
async def get_compliance(
    since: Optional[datetime] = Query(None, description="Only tickets closed at or after this instant"),
    actor: Actor = Depends(require_staff),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return await service.compliance(since)


@router.get(
    "/policy",
    response_model=SLAPolicyResponse,
    summary="Active SLA policy",
    description="Resolution hours per priority currently applied to new tickets."
)
async def get_policy(
    actor: Actor = Depends(get_current_actor),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return service.current_policy()


sla_router = router
