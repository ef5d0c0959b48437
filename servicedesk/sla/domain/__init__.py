"""
SLA Domain Layer
================

Domain layer for SLA policy and reporting.

Contains:
- Value Objects: SLAPolicy (the auditable priority → duration table),
  ComplianceStats
- Domain Services: SLACalculator (deadline, status, compliance)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from servicedesk.sla.domain.value_objects import (
    DEFAULT_RESOLUTION_HOURS,
    SLACalculator,
    SLAPolicy,
    ComplianceStats,
)

__all__ = [
    "DEFAULT_RESOLUTION_HOURS",
    "SLACalculator",
    "SLAPolicy",
    "ComplianceStats",
]
