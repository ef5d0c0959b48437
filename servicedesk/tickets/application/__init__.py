"""
Ticket Application Layer
========================

Application layer for the ticket lifecycle module.

Contains:
- Services: lifecycle, claiming, field reports, flags, roster
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from servicedesk.tickets.application.dto import (
    TicketCreateDTO,
    StatusChangeRequest,
    AssignRequest,
    FlagRequest,
    CommentCreateDTO,
    FieldReportCreateDTO,
    TechnicianCreateDTO,
    AvailabilityUpdateDTO,
    TicketQueryDTO,
    TicketResponse,
    TicketDetailResponse,
    ClaimResponse,
    CommentResponse,
    TicketUpdateResponse,
    FieldReportResponse,
    TechnicianResponse,
)
from servicedesk.tickets.application.services import (
    ClaimResult,
    TicketLifecycleService,
    ClaimCoordinator,
    FieldReportService,
    TicketFlagService,
    TechnicianService,
    StaticSLAPolicyProvider,
    ITicketRepository,
    ITechnicianRepository,
    ICommentRepository,
    IFieldReportRepository,
    ITicketUpdateRepository,
    IUnitOfWork,
    INotificationPublisher,
    ISLAPolicyProvider,
)

__all__ = [
    # DTOs
    "TicketCreateDTO",
    "StatusChangeRequest",
    "AssignRequest",
    "FlagRequest",
    "CommentCreateDTO",
    "FieldReportCreateDTO",
    "TechnicianCreateDTO",
    "AvailabilityUpdateDTO",
    "TicketQueryDTO",
    "TicketResponse",
    "TicketDetailResponse",
    "ClaimResponse",
    "CommentResponse",
    "TicketUpdateResponse",
    "FieldReportResponse",
    "TechnicianResponse",
    # Services
    "ClaimResult",
    "TicketLifecycleService",
    "ClaimCoordinator",
    "FieldReportService",
    "TicketFlagService",
    "TechnicianService",
    "StaticSLAPolicyProvider",
    # Interfaces
    "ITicketRepository",
    "ITechnicianRepository",
    "ICommentRepository",
    "IFieldReportRepository",
    "ITicketUpdateRepository",
    "IUnitOfWork",
    "INotificationPublisher",
    "ISLAPolicyProvider",
]
