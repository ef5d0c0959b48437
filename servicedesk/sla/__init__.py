"""
SLA Module
==========

Resolution deadlines per priority, hot-reloadable policy and compliance
reporting.
"""
