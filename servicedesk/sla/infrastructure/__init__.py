"""
SLA Infrastructure Layer
========================

Infrastructure for SLA policy:
- External: YAML policy loading and watchdog hot reload
"""

from servicedesk.sla.infrastructure.external import PolicyFileHandler, SLAPolicyManager

__all__ = [
    "PolicyFileHandler",
    "SLAPolicyManager",
]
