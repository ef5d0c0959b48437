"""
Ticket Interfaces Layer
=======================

Interface adapters (controllers) for the ticket lifecycle module.

Contains:
- Controllers: FastAPI route handlers for tickets, field reports and the
  technician roster
- Dependencies: identity headers and request-scoped service wiring

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from servicedesk.tickets.interfaces.controllers import (
    tickets_router,
    field_reports_router,
    technicians_router,
)

__all__ = ["tickets_router", "field_reports_router", "technicians_router"]
