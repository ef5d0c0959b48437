"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(Ticket Lifecycle and SLA Reporting).

Architecture Pattern: Modular Monolith
- Each module (tickets, sla) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket lifecycle or SLA rules to the shared kernel.
"""

__version__ = "1.0.0"
