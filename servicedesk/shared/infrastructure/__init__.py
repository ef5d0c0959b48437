"""
Shared Infrastructure
=====================

Cross-cutting technical concerns shared by the ticket and SLA modules:
- Structured JSON logging
"""
