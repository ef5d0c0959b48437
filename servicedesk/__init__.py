"""
Service Desk
============

Ticket lifecycle and SLA engine for an IT service desk.
"""

__version__ = "1.0.0"
