"""
Ticket API Dependencies
=======================

FastAPI dependencies wiring request-scoped repositories into services.

One database session per request; every repository and the unit of work of
a service share it so a service's writes commit or roll back together.
"""

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.config import Role
from servicedesk.core import PermissionDeniedException
from servicedesk.infrastructure.database import get_session
from servicedesk.tickets.application import (
    ClaimCoordinator,
    FieldReportService,
    INotificationPublisher,
    ISLAPolicyProvider,
    StaticSLAPolicyProvider,
    TechnicianService,
    TicketFlagService,
    TicketLifecycleService,
)
from servicedesk.tickets.domain import Actor
from servicedesk.tickets.infrastructure import (
    LoggingNotificationPublisher,
    SQLAlchemyCommentRepository,
    SQLAlchemyFieldReportRepository,
    SQLAlchemyTechnicianRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTicketUpdateRepository,
    SQLAlchemyUnitOfWork,
)

_fallback_policy = StaticSLAPolicyProvider()
_fallback_publisher = LoggingNotificationPublisher()


async def get_current_actor(
    x_actor_id: str = Header(..., description="Acting user id from the identity provider"),
    x_actor_role: str = Header(..., description="requester, technician or admin"),
) -> Actor:
    """Resolve the acting user from identity headers set by the gateway."""
    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError:
        raise PermissionDeniedException(x_actor_role, "use the service desk")
    return Actor(id=x_actor_id.strip(), role=role)


def get_policy_provider(request: Request) -> ISLAPolicyProvider:
    """Hot-reloading policy manager from app state, defaults otherwise."""
    return getattr(request.app.state, "sla_policy", None) or _fallback_policy


def get_notification_publisher(request: Request) -> INotificationPublisher:
    return getattr(request.app.state, "notification_publisher", None) or _fallback_publisher


async def get_lifecycle_service(
    session: AsyncSession = Depends(get_session),
    publisher: INotificationPublisher = Depends(get_notification_publisher),
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider),
) -> TicketLifecycleService:
    return TicketLifecycleService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyTicketUpdateRepository(session),
        SQLAlchemyCommentRepository(session),
        SQLAlchemyTechnicianRepository(session),
        SQLAlchemyUnitOfWork(session),
        publisher,
        policy_provider,
    )


async def get_claim_coordinator(
    session: AsyncSession = Depends(get_session),
    publisher: INotificationPublisher = Depends(get_notification_publisher),
) -> ClaimCoordinator:
    return ClaimCoordinator(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyTicketUpdateRepository(session),
        SQLAlchemyTechnicianRepository(session),
        SQLAlchemyUnitOfWork(session),
        publisher,
    )


async def get_field_report_service(
    session: AsyncSession = Depends(get_session),
    publisher: INotificationPublisher = Depends(get_notification_publisher),
) -> FieldReportService:
    return FieldReportService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyTicketUpdateRepository(session),
        SQLAlchemyFieldReportRepository(session),
        SQLAlchemyUnitOfWork(session),
        publisher,
    )


async def get_flag_service(
    session: AsyncSession = Depends(get_session),
    publisher: INotificationPublisher = Depends(get_notification_publisher),
) -> TicketFlagService:
    return TicketFlagService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyTicketUpdateRepository(session),
        SQLAlchemyUnitOfWork(session),
        publisher,
    )


async def get_technician_service(
    session: AsyncSession = Depends(get_session),
) -> TechnicianService:
    return TechnicianService(
        SQLAlchemyTechnicianRepository(session),
        SQLAlchemyUnitOfWork(session),
    )
