"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define the typed outcomes of ticket operations. Every one of
them is scoped to the single operation that raised it; the HTTP layer renders
each kind with its own status code and user-facing message.
"""

from typing import Any, List, Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    error_code = "application_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    error_code = "domain_error"


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""

    error_code = "repository_error"


class StorageUnavailableException(RepositoryException):
    """Raised when the persistence layer fails (network, constraint, driver)."""

    error_code = "storage_unavailable"

    def __init__(self, operation: str, details: Optional[dict] = None):
        self.operation = operation
        super().__init__(f"Storage unavailable during {operation}", details)


class ValidationException(ApplicationException):
    """Exception for missing or malformed required fields."""

    error_code = "validation_error"

    def __init__(
        self,
        message: str,
        fields: Optional[List[str]] = None,
        details: Optional[dict] = None
    ):
        self.fields = list(fields or [])
        super().__init__(message, details or {"fields": self.fields})


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    error_code = "not_found"

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""

    error_code = "configuration_error"


class PermissionDeniedException(DomainException):
    """Raised when the acting role may not perform an operation."""

    error_code = "permission_denied"

    def __init__(self, role: Any, action: str, details: Optional[dict] = None):
        self.role = role
        self.action = action
        super().__init__(
            f"Role '{getattr(role, 'value', role)}' may not {action}",
            details or {"role": getattr(role, "value", role), "action": action}
        )


class InvalidTransitionException(DomainException):
    """Raised when a status change is not permitted from the current status."""

    error_code = "invalid_transition"

    def __init__(
        self,
        ticket_id: str,
        current_status: Any,
        requested_status: Any,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.current_status = getattr(current_status, "value", current_status)
        self.requested_status = getattr(requested_status, "value", requested_status)
        super().__init__(
            f"Ticket {ticket_id} cannot move from "
            f"'{self.current_status}' to '{self.requested_status}'",
            details or {
                "ticket_id": ticket_id,
                "current_status": self.current_status,
                "requested_status": self.requested_status,
            }
        )


class AlreadyClaimedException(DomainException):
    """Raised when a claim lost the race to another technician."""

    error_code = "already_claimed"

    def __init__(self, ticket_id: str, details: Optional[dict] = None):
        self.ticket_id = ticket_id
        super().__init__(
            f"Ticket {ticket_id} was already claimed",
            details or {"ticket_id": ticket_id}
        )


class TicketClosedException(DomainException):
    """Raised for any mutation attempted on a closed ticket."""

    error_code = "ticket_closed"

    def __init__(self, ticket_id: str, details: Optional[dict] = None):
        self.ticket_id = ticket_id
        super().__init__(
            f"Ticket {ticket_id} is closed",
            details or {"ticket_id": ticket_id}
        )


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    error_code = "external_service_error"

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NotificationException(ExternalServiceException):
    """Exception for notification delivery failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Service", message, details)
