"""Tests for webhook notification delivery."""

import asyncio

import httpx
import pytest

from conftest import REQUESTER, T0, TECH_A, ServiceDesk
from servicedesk.config import TicketEventType, TicketStatus
from servicedesk.tickets.domain import TicketEvent
from servicedesk.tickets.infrastructure import (
    CircuitBreaker,
    CircuitState,
    WebhookNotificationPublisher,
)

WEBHOOK_URL = "https://hooks.example.com/servicedesk"


@pytest.fixture
def event():
    return TicketEvent(
        event_type=TicketEventType.CLAIMED,
        ticket_id="t-1",
        ticket_number="INC-000001",
        actor_id="tech-a",
        requester_id="req-1",
        assignee_id="tech-a",
        occurred_at=T0,
    )


def publisher_for(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookNotificationPublisher(
        webhook_url=WEBHOOK_URL, max_retries=3, backoff_seconds=0, http_client=client, **kwargs
    )


class TestWebhookNotificationPublisher:
    """Test cases for WebhookNotificationPublisher."""

    async def test_delivers_event_payload(self, event):
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(204)

        publisher = publisher_for(handler)

        assert await publisher.send(event) is True
        assert len(received) == 1
        assert str(received[0].url) == WEBHOOK_URL
        body = received[0].read()
        assert b'"event":"ticket.claimed"' in body.replace(b" ", b"")
        await publisher.close()

    async def test_retries_until_success(self, event):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503 if len(attempts) < 3 else 200)

        publisher = publisher_for(handler)

        assert await publisher.send(event) is True
        assert len(attempts) == 3

    async def test_transport_errors_are_swallowed(self, event):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        publisher = publisher_for(handler)

        await publisher.publish(event)
        await publisher.drain()

        assert publisher.pending_deliveries == 0
        assert await publisher.send(event) is False

    async def test_circuit_opens_after_repeated_failures(self, event):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500)

        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        publisher = publisher_for(handler, circuit_breaker=breaker)

        await publisher.send(event)
        await publisher.send(event)
        assert breaker.state == CircuitState.OPEN

        assert await publisher.send(event) is False
        assert len(attempts) == 6

    async def test_no_url_skips_delivery(self, event, monkeypatch):
        monkeypatch.setattr("servicedesk.tickets.infrastructure.external.settings.notification_webhook_url", None)
        publisher = WebhookNotificationPublisher()

        assert await publisher.send(event) is False


class TestDeliveryOffRequestPath:
    """A slow or failing webhook never holds up the ticket change."""

    async def test_claim_returns_while_delivery_is_pending(self, memory_db, clock, ticket_data):
        gate = asyncio.Event()
        attempts = []

        async def handler(request):
            await gate.wait()
            attempts.append(request)
            return httpx.Response(503)

        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        webhook = publisher_for(handler, circuit_breaker=breaker)
        desk = ServiceDesk(memory_db, clock, webhook)
        ticket = await desk.lifecycle.create_ticket(REQUESTER, ticket_data)

        result = await asyncio.wait_for(desk.claims.claim(ticket.id, TECH_A), timeout=1)

        assert result.ticket.status == TicketStatus.IN_PROGRESS
        assert webhook.pending_deliveries == 2
        assert attempts == []

        gate.set()
        await webhook.close()

        assert webhook.pending_deliveries == 0
        assert len(attempts) == 6
        assert breaker.state == CircuitState.OPEN

    async def test_close_waits_for_scheduled_deliveries(self, event):
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(200)

        publisher = publisher_for(handler)

        await publisher.publish(event)
        await publisher.publish(event)
        await publisher.close()

        assert len(received) == 2


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)

        breaker.record_failure()

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request() is True

    def test_success_closes_circuit(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        breaker.record_failure()
        assert breaker.allow_request() is False

        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
