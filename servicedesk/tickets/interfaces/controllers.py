"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket lifecycle, field reports and the technician
roster.

Controllers are thin - they delegate to application services. Typed
outcomes (`AlreadyClaimedException`, `TicketClosedException`, ...) propagate
to the application exception handler, which renders each with its own
status code.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from servicedesk.config import TechnicianStatus
from servicedesk.core import PermissionDeniedException
from servicedesk.tickets.application import (
    AssignRequest,
    AvailabilityUpdateDTO,
    ClaimCoordinator,
    ClaimResponse,
    ClaimResult,
    CommentCreateDTO,
    CommentResponse,
    FieldReportCreateDTO,
    FieldReportResponse,
    FieldReportService,
    FlagRequest,
    StatusChangeRequest,
    TechnicianCreateDTO,
    TechnicianResponse,
    TechnicianService,
    TicketCreateDTO,
    TicketDetailResponse,
    TicketFlagService,
    TicketLifecycleService,
    TicketQueryDTO,
    TicketResponse,
    TicketUpdateResponse,
)
from servicedesk.tickets.application.dto import CategoryStr, PriorityStr, TicketStatusStr
from servicedesk.tickets.domain import Actor, Ticket, TicketStateMachine
from servicedesk.tickets.interfaces.dependencies import (
    get_claim_coordinator,
    get_current_actor,
    get_field_report_service,
    get_flag_service,
    get_lifecycle_service,
    get_technician_service,
)
from servicedesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])
field_reports_router = APIRouter(prefix="/field-reports", tags=["Field Reports"])
technicians_router = APIRouter(prefix="/technicians", tags=["Technicians"])


def _require_staff(actor: Actor, action: str) -> None:
    if not actor.is_staff:
        raise PermissionDeniedException(actor.role, action)


CONFLICT_RESPONSES = {
    403: {"description": "Role may not perform this action"},
    404: {"description": "Ticket not found"},
    409: {"description": "Invalid transition, already claimed or ticket closed"},
    503: {"description": "Ticket store unavailable"},
}


def _claim_response(result: ClaimResult) -> ClaimResponse:
    return ClaimResponse(
        ticket=TicketResponse.model_validate(result.ticket),
        already_owned=result.already_owned,
    )


def _detail_response(ticket: Ticket, actor: Actor) -> TicketDetailResponse:
    return TicketDetailResponse(
        **TicketResponse.model_validate(ticket).model_dump(),
        available_transitions=TicketStateMachine.available_transitions(ticket, actor),
    )


# ========== Tickets ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File a ticket",
    description="""
    Create a ticket. The ticket number (`INC-000001`, `SR-…`, `PRB-…`, `CHG-…`)
    is assigned by storage and the SLA deadline is stamped from the priority.

    Technicians and admins may file on behalf of another requester; only
    admins may pre-assign.
    """,
    responses={403: CONFLICT_RESPONSES[403], 422: {"description": "Missing title or description"}}
)
async def create_ticket(
    request: TicketCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.create_ticket(actor, request.model_dump())
    return TicketResponse.model_validate(ticket)


@router.get(
    "",
    response_model=List[TicketResponse],
    summary="List tickets",
    description="Filtered listing, most urgent priority first, then oldest first."
)
async def list_tickets(
    ticket_status: Optional[TicketStatusStr] = Query(None, alias="status"),
    priority: Optional[PriorityStr] = Query(None),
    category: Optional[CategoryStr] = Query(None),
    assignee_id: Optional[str] = Query(None),
    requester_id: Optional[str] = Query(None),
    unassigned: Optional[bool] = Query(None),
    escalated: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=1000, description="Results per page"),
    offset: int = Query(0, ge=0, description="Page offset"),
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    query = TicketQueryDTO(
        status=ticket_status,
        priority=priority,
        category=category,
        assignee_id=assignee_id,
        requester_id=requester_id,
        unassigned=unassigned,
        escalated=escalated,
        limit=limit,
        offset=offset,
    )
    filters = query.to_filters()
    if not actor.is_staff:
        # Requesters only see their own tickets
        filters["requester_id"] = actor.id

    tickets = await service.list_tickets(filters, limit=query.limit, offset=query.offset)
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get(
    "/unassigned",
    response_model=List[TicketResponse],
    summary="Unassigned queue",
    description="Open tickets nobody holds yet, most urgent first.",
    responses={403: {"description": "Staff only"}}
)
async def unassigned_queue(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    _require_staff(actor, "view the unassigned queue")
    tickets = await service.unassigned_queue(limit=limit, offset=offset)
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get(
    "/mine",
    response_model=List[TicketResponse],
    summary="My tickets",
    description="Tickets assigned to the caller (staff) or filed by the caller (requesters)."
)
async def my_tickets(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    key = "assignee_id" if actor.is_staff else "requester_id"
    tickets = await service.list_tickets({key: actor.id}, limit=limit, offset=offset)
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    summary="Get a ticket",
    description="Ticket plus the statuses the caller may request next.",
    responses={404: CONFLICT_RESPONSES[404]}
)
async def get_ticket(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.get_ticket(ticket_id)
    return _detail_response(ticket, actor)


@router.post(
    "/{ticket_id}/claim",
    response_model=ClaimResponse,
    summary="Claim an unassigned ticket",
    description="""
    Take an open ticket and start work on it (status becomes `in_progress`).

    Exactly one of several concurrent claims wins; the others get **409
    already_claimed** and should refresh the queue. Claiming a ticket you
    already work on succeeds with `already_owned: true`.
    """,
    responses=CONFLICT_RESPONSES
)
async def claim_ticket(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    coordinator: ClaimCoordinator = Depends(get_claim_coordinator)
):
    with log_latency(logger, "ticket_claim", ticket_id=ticket_id, actor_id=actor.id):
        result = await coordinator.claim(ticket_id, actor)
    return _claim_response(result)


@router.post(
    "/{ticket_id}/auto-assign",
    response_model=ClaimResponse,
    summary="Auto-assign to the first available technician",
    description="Admin only. Reserves an available technician and claims the ticket for them.",
    responses=CONFLICT_RESPONSES
)
async def auto_assign_ticket(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    coordinator: ClaimCoordinator = Depends(get_claim_coordinator)
):
    with log_latency(logger, "ticket_auto_assign", ticket_id=ticket_id):
        result = await coordinator.auto_assign(ticket_id, actor)
    return _claim_response(result)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketResponse,
    summary="Assign an open ticket",
    description="Admin only. Sets the assignee of an open ticket; the status stays `open`.",
    responses=CONFLICT_RESPONSES
)
async def assign_ticket(
    ticket_id: str,
    request: AssignRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.assign(ticket_id, request.technician_id, actor)
    return TicketResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/status",
    response_model=TicketResponse,
    summary="Change ticket status",
    description="""
    Request a status transition:

    - `in_progress`: start work (same as claim)
    - `resolved`: assignee only, from `in_progress`
    - `closed`: from `resolved`

    Reopening is only possible through a "cannot resolve" field report.
    """,
    responses=CONFLICT_RESPONSES
)
async def change_status(
    ticket_id: str,
    request: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.change_status(ticket_id, request.status, actor)
    return TicketResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/escalate",
    response_model=TicketResponse,
    summary="Escalate a ticket",
    description="Sets the escalation flag. Repeating it is a no-op.",
    responses=CONFLICT_RESPONSES
)
async def escalate_ticket(
    ticket_id: str,
    request: Optional[FlagRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: TicketFlagService = Depends(get_flag_service)
):
    ticket = await service.escalate(ticket_id, actor, request.reason if request else None)
    return TicketResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/approval-request",
    response_model=TicketResponse,
    summary="Request approval",
    description="Sets the approval-requested flag. Repeating it is a no-op.",
    responses=CONFLICT_RESPONSES
)
async def request_approval(
    ticket_id: str,
    request: Optional[FlagRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: TicketFlagService = Depends(get_flag_service)
):
    ticket = await service.request_approval(ticket_id, actor, request.reason if request else None)
    return TicketResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an internal comment",
    responses=CONFLICT_RESPONSES
)
async def add_comment(
    ticket_id: str,
    request: CommentCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    comment = await service.add_comment(ticket_id, actor, request.body)
    return CommentResponse.model_validate(comment)


@router.get(
    "/{ticket_id}/comments",
    response_model=List[CommentResponse],
    summary="List comments",
    description="Internal technician notes. Staff only.",
    responses={403: {"description": "Staff only"}}
)
async def list_comments(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    _require_staff(actor, "read internal comments")
    return [CommentResponse.model_validate(c) for c in await service.list_comments(ticket_id)]


@router.get(
    "/{ticket_id}/updates",
    response_model=List[TicketUpdateResponse],
    summary="Activity trail",
    description="Every change made to the ticket, newest first."
)
async def list_updates(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    return [TicketUpdateResponse.model_validate(u) for u in await service.list_updates(ticket_id)]


# ========== Field Reports ==========

@field_reports_router.post(
    "",
    response_model=FieldReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a field report",
    description="""
    Record on-site or remote work. `work_performed` and `findings` are
    required; installation reports also need `installation_details`.

    With `cannot_resolve: true` the linked ticket (required) is reopened
    from `in_progress` or `resolved` back to `open`, keeping its assignee.
    """,
    responses={**CONFLICT_RESPONSES, 422: {"description": "Missing required fields"}}
)
async def submit_field_report(
    request: FieldReportCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: FieldReportService = Depends(get_field_report_service)
):
    with log_latency(logger, "field_report_submit", ticket_id=request.ticket_id):
        report = await service.submit(actor, request.model_dump())
    return FieldReportResponse.model_validate(report)


@field_reports_router.get(
    "",
    response_model=List[FieldReportResponse],
    summary="List field reports"
)
async def list_field_reports(
    ticket_id: Optional[str] = Query(None),
    technician_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: FieldReportService = Depends(get_field_report_service)
):
    reports = await service.list_reports(ticket_id=ticket_id, technician_id=technician_id)
    return [FieldReportResponse.model_validate(r) for r in reports]


# ========== Technicians ==========

@technicians_router.post(
    "",
    response_model=TechnicianResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a technician",
    description="Admin only."
)
async def register_technician(
    request: TechnicianCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: TechnicianService = Depends(get_technician_service)
):
    technician = await service.register(actor, request.model_dump())
    return TechnicianResponse.model_validate(technician)


@technicians_router.get(
    "",
    response_model=List[TechnicianResponse],
    summary="List the roster"
)
async def list_technicians(
    technician_status: Optional[TechnicianStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: TechnicianService = Depends(get_technician_service)
):
    technicians = await service.list_technicians(technician_status)
    return [TechnicianResponse.model_validate(t) for t in technicians]


@technicians_router.put(
    "/{technician_id}/availability",
    response_model=TechnicianResponse,
    summary="Set availability",
    description="Technicians set their own availability; admins may set anyone's."
)
async def set_availability(
    technician_id: str,
    request: AvailabilityUpdateDTO,
    actor: Actor = Depends(get_current_actor),
    service: TechnicianService = Depends(get_technician_service)
):
    technician = await service.set_availability(technician_id, TechnicianStatus(request.status), actor)
    return TechnicianResponse.model_validate(technician)


tickets_router = router
