"""
Ticket Lifecycle Module
=======================

Ticket intake, status transitions, concurrency-safe claiming, field report
linkage, escalation and approval flags, and the technician roster.
"""
