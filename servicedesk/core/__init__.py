"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from servicedesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    StorageUnavailableException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    PermissionDeniedException,
    InvalidTransitionException,
    AlreadyClaimedException,
    TicketClosedException,
    ExternalServiceException,
    NotificationException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "StorageUnavailableException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "PermissionDeniedException",
    "InvalidTransitionException",
    "AlreadyClaimedException",
    "TicketClosedException",
    "ExternalServiceException",
    "NotificationException",
]
