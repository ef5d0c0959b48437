"""
Ticket Infrastructure Layer
===========================

Infrastructure implementations for the ticket lifecycle:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer with conditional updates
- External: Notification delivery (webhook, log)
"""

from servicedesk.tickets.infrastructure.models import (
    TicketModel,
    TicketNumberModel,
    CommentModel,
    FieldReportModel,
    TechnicianModel,
    TicketUpdateModel,
)
from servicedesk.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyTechnicianRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyFieldReportRepository,
    SQLAlchemyTicketUpdateRepository,
    SQLAlchemyUnitOfWork,
)
from servicedesk.tickets.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    WebhookNotificationPublisher,
    LoggingNotificationPublisher,
    create_notification_publisher,
)

__all__ = [
    "TicketModel",
    "TicketNumberModel",
    "CommentModel",
    "FieldReportModel",
    "TechnicianModel",
    "TicketUpdateModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyTechnicianRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyFieldReportRepository",
    "SQLAlchemyTicketUpdateRepository",
    "SQLAlchemyUnitOfWork",
    "CircuitBreaker",
    "CircuitState",
    "WebhookNotificationPublisher",
    "LoggingNotificationPublisher",
    "create_notification_publisher",
]
