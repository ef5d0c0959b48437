"""
Ticket External Service Integrations
====================================

Notification delivery for ticket events:
- Webhook publisher (in-app and email fan-out happens downstream)
- Logging publisher for environments without a webhook

Delivery is fire-and-forget. `publish` schedules a background task and
returns at once; a failed delivery is logged and dropped and never delays,
rolls back or fails the ticket change that produced the event.
"""

import asyncio
import time
from typing import Optional, Set

import httpx

from servicedesk.config import settings
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.application.services import INotificationPublisher
from servicedesk.tickets.domain import TicketEvent

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotificationPublisher(INotificationPublisher):
    """
    Posts ticket events to a webhook with circuit breaker and retry logic.

    Handles:
    - Circuit breaker to stop hammering a dead endpoint
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url or settings.notification_webhook_url
        self._timeout = timeout_seconds or settings.notification_timeout_seconds
        self._max_retries = max_retries or settings.notification_max_retries
        self._backoff_seconds = backoff_seconds
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._pending: Set["asyncio.Task[bool]"] = set()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def publish(self, event: TicketEvent) -> None:
        """Schedule delivery and return without waiting for the webhook."""
        task = asyncio.create_task(self.send(event))
        self._pending.add(task)
        task.add_done_callback(self._delivery_done)

    def _delivery_done(self, task: "asyncio.Task[bool]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Ticket event delivery crashed",
                exc_info=error,
                extra={"error": str(error)}
            )

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def send(self, event: TicketEvent) -> bool:
        """
        Deliver one event.

        Returns:
            True if delivered, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Notification webhook URL not configured, skipping event")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, dropping ticket event",
                extra={"ticket_id": event.ticket_id, "event": event.event_type.value}
            )
            return False

        payload = event.to_dict()

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=payload)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Ticket event delivered",
                        extra={
                            "ticket_id": event.ticket_id,
                            "event": event.event_type.value
                        }
                    )
                    return True

                logger.warning(
                    "Notification webhook returned non-2xx",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1
                    }
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Ticket event delivery failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "ticket_id": event.ticket_id
                    }
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_seconds * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        """Finish in-flight deliveries, then close the HTTP client."""
        await self.drain()
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class LoggingNotificationPublisher(INotificationPublisher):
    """Writes events to the log stream only."""

    async def publish(self, event: TicketEvent) -> None:
        logger.info(
            "Ticket event",
            extra={
                "event": event.event_type.value,
                "ticket_id": event.ticket_id,
                "ticket_number": event.ticket_number,
                "actor_id": event.actor_id,
                "assignee_id": event.assignee_id,
            }
        )


def create_notification_publisher() -> INotificationPublisher:
    """Webhook delivery when configured, log-only otherwise."""
    if settings.notification_webhook_url:
        return WebhookNotificationPublisher()
    return LoggingNotificationPublisher()
