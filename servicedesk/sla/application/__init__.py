"""
SLA Application Layer
=====================

Application layer for SLA reporting.

Contains:
- Services: SLAReportingService (ticket SLA, dashboard, compliance)
- DTOs: Data transfer objects for API serialization
"""

from servicedesk.sla.application.dto import (
    DashboardQueryDTO,
    TicketSLAResponse,
    DashboardSummary,
    DashboardResponse,
    ComplianceEntry,
    ComplianceResponse,
    SLAPolicyResponse,
)
from servicedesk.sla.application.services import SLAReportingService

__all__ = [
    # DTOs
    "DashboardQueryDTO",
    "TicketSLAResponse",
    "DashboardSummary",
    "DashboardResponse",
    "ComplianceEntry",
    "ComplianceResponse",
    "SLAPolicyResponse",
    # Services
    "SLAReportingService",
]
