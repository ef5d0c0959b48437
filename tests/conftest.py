"""Shared fixtures: frozen clock, in-memory repositories and SQLite database."""

import asyncio
import copy
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from servicedesk.config import (
    PRIORITY_RANK, TICKET_NUMBER_PREFIXES, Role, TechnicianStatus, TicketStatus, TicketType
)
from servicedesk.infrastructure.database import (
    Base, create_session_maker, create_tables
)
from servicedesk.sla.domain import SLAPolicy
from servicedesk.tickets.application import (
    ClaimCoordinator,
    FieldReportService,
    ICommentRepository,
    IFieldReportRepository,
    INotificationPublisher,
    ITechnicianRepository,
    ITicketRepository,
    ITicketUpdateRepository,
    IUnitOfWork,
    StaticSLAPolicyProvider,
    TechnicianService,
    TicketFlagService,
    TicketLifecycleService,
)
from servicedesk.tickets.domain import (
    Actor, Comment, FieldReport, Technician, Ticket, TicketEvent, TicketUpdate
)


T0 = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ========== In-memory repositories ==========

class InMemoryDatabase:
    """Shared state behind the in-memory repositories."""

    def __init__(self):
        self.tickets = {}
        self.technicians = {}
        self.comments: List[Comment] = []
        self.reports: List[FieldReport] = []
        self.updates: List[TicketUpdate] = []
        self.ticket_sequence = 0

    def snapshot(self) -> dict:
        return copy.deepcopy({
            "tickets": self.tickets,
            "technicians": self.technicians,
            "comments": self.comments,
            "reports": self.reports,
            "updates": self.updates,
        })

    def restore(self, state: dict) -> None:
        for name, value in state.items():
            setattr(self, name, value)


class InMemoryTicketRepository(ITicketRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        # Yield so concurrent requests interleave like real I/O
        await asyncio.sleep(0)
        ticket = self.db.tickets.get(ticket_id)
        return replace(ticket) if ticket else None

    async def create(self, data: dict) -> Ticket:
        self.db.ticket_sequence += 1
        prefix = TICKET_NUMBER_PREFIXES[TicketType(data["type"])]
        ticket = Ticket(
            id=str(uuid4()),
            ticket_number=f"{prefix}-{self.db.ticket_sequence:06d}",
            **data
        )
        self.db.tickets[ticket.id] = ticket
        return replace(ticket)

    async def list(self, filters: dict, limit: Optional[int] = 100, offset: int = 0) -> List[Ticket]:
        tickets = list(self.db.tickets.values())
        if "status" in filters:
            tickets = [t for t in tickets if t.status == TicketStatus(filters["status"])]
        for key in ("assignee_id", "requester_id"):
            if filters.get(key) is not None:
                tickets = [t for t in tickets if getattr(t, key) == filters[key]]
        if filters.get("unassigned") is True:
            tickets = [t for t in tickets if t.assignee_id is None]
        tickets.sort(key=lambda t: (PRIORITY_RANK[t.priority], t.created_at, t.ticket_number))
        end = None if limit is None else offset + limit
        return [replace(t) for t in tickets[offset:end]]

    async def claim(self, ticket_id: str, technician_id: str, now: datetime) -> bool:
        await asyncio.sleep(0)
        ticket = self.db.tickets.get(ticket_id)
        if ticket is None or ticket.status != TicketStatus.OPEN:
            return False
        if ticket.assignee_id not in (None, technician_id):
            return False
        self.db.tickets[ticket_id] = replace(
            ticket, status=TicketStatus.IN_PROGRESS, assignee_id=technician_id, updated_at=now
        )
        return True

    async def transition(self, ticket_id, expected_status, values, expected_assignee=None) -> bool:
        ticket = self.db.tickets.get(ticket_id)
        if ticket is None or ticket.status != TicketStatus(expected_status):
            return False
        if expected_assignee is not None and ticket.assignee_id != expected_assignee:
            return False
        self.db.tickets[ticket_id] = replace(ticket, **values)
        return True

    async def reassign(self, ticket_id, expected_assignee, technician_id, now) -> bool:
        ticket = self.db.tickets.get(ticket_id)
        if ticket is None or ticket.status != TicketStatus.OPEN or ticket.assignee_id != expected_assignee:
            return False
        self.db.tickets[ticket_id] = replace(ticket, assignee_id=technician_id, updated_at=now)
        return True

    async def set_flag(self, ticket_id, flag, now) -> bool:
        ticket = self.db.tickets.get(ticket_id)
        if ticket is None or ticket.is_closed or getattr(ticket, flag):
            return False
        self.db.tickets[ticket_id] = replace(ticket, **{flag: True, "updated_at": now})
        return True


class InMemoryTechnicianRepository(ITechnicianRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def get_by_id(self, technician_id: str) -> Optional[Technician]:
        technician = self.db.technicians.get(technician_id)
        return replace(technician) if technician else None

    async def get_by_email(self, email: str) -> Optional[Technician]:
        for technician in self.db.technicians.values():
            if technician.email == email:
                return replace(technician)
        return None

    async def create(self, data: dict) -> Technician:
        technician = Technician(
            id=data.get("id") or str(uuid4()),
            name=data["name"],
            email=data["email"],
            status=TechnicianStatus(data["status"]),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )
        self.db.technicians[technician.id] = technician
        return replace(technician)

    async def list(self, status=None) -> List[Technician]:
        return [
            replace(t) for t in self.db.technicians.values()
            if status is None or t.status == status
        ]

    async def set_status(self, technician_id, status, now) -> bool:
        technician = self.db.technicians.get(technician_id)
        if technician is None:
            return False
        self.db.technicians[technician_id] = replace(technician, status=status, updated_at=now)
        return True

    async def reserve(self, technician_id, now) -> bool:
        await asyncio.sleep(0)
        technician = self.db.technicians.get(technician_id)
        if technician is None or technician.status != TechnicianStatus.AVAILABLE:
            return False
        self.db.technicians[technician_id] = replace(
            technician, status=TechnicianStatus.BUSY, updated_at=now
        )
        return True


class InMemoryCommentRepository(ICommentRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def add(self, ticket_id, author_id, body, now) -> Comment:
        comment = Comment(id=str(uuid4()), ticket_id=ticket_id, author_id=author_id, body=body, created_at=now)
        self.db.comments.append(comment)
        return comment

    async def list_for_ticket(self, ticket_id) -> List[Comment]:
        return [c for c in self.db.comments if c.ticket_id == ticket_id]


class InMemoryFieldReportRepository(IFieldReportRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def add(self, data: dict, now: datetime) -> FieldReport:
        fields = {key: value for key, value in data.items() if key in FieldReport.__dataclass_fields__}
        report = FieldReport(**{"ticket_id": None, **fields, "id": str(uuid4()), "created_at": now})
        self.db.reports.append(report)
        return report

    async def list(self, ticket_id=None, technician_id=None) -> List[FieldReport]:
        return [
            r for r in reversed(self.db.reports)
            if (ticket_id is None or r.ticket_id == ticket_id)
            and (technician_id is None or r.technician_id == technician_id)
        ]


class InMemoryTicketUpdateRepository(ITicketUpdateRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def add(self, ticket_id, author_id, update_type, content, now) -> TicketUpdate:
        update = TicketUpdate(
            id=str(uuid4()), ticket_id=ticket_id, author_id=author_id,
            update_type=update_type, content=content, created_at=now
        )
        self.db.updates.append(update)
        return update

    async def list_for_ticket(self, ticket_id) -> List[TicketUpdate]:
        return [u for u in reversed(self.db.updates) if u.ticket_id == ticket_id]


class InMemoryUnitOfWork(IUnitOfWork):
    """Snapshot-based unit of work: rollback restores the last commit."""

    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.commits = 0
        self.rollbacks = 0
        self._snapshot = db.snapshot()

    async def commit(self) -> None:
        self.commits += 1
        self._snapshot = self.db.snapshot()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self.db.restore(copy.deepcopy(self._snapshot))


class RecordingPublisher(INotificationPublisher):
    """Collects published events for assertions."""

    def __init__(self):
        self.events: List[TicketEvent] = []

    async def publish(self, event: TicketEvent) -> None:
        self.events.append(event)

    @property
    def event_types(self) -> List[str]:
        return [e.event_type.value for e in self.events]


class ServiceDesk:
    """All application services wired over one in-memory database."""

    def __init__(self, db: InMemoryDatabase, clock: FrozenClock, publisher: RecordingPublisher,
                 policy: Optional[SLAPolicy] = None):
        self.db = db
        self.clock = clock
        self.publisher = publisher
        self.uow = InMemoryUnitOfWork(db)
        tickets = InMemoryTicketRepository(db)
        updates = InMemoryTicketUpdateRepository(db)
        technicians = InMemoryTechnicianRepository(db)

        self.lifecycle = TicketLifecycleService(
            tickets, updates, InMemoryCommentRepository(db), technicians,
            self.uow, publisher, StaticSLAPolicyProvider(policy), clock=clock
        )
        self.claims = ClaimCoordinator(tickets, updates, technicians, self.uow, publisher, clock=clock)
        self.reports = FieldReportService(
            tickets, updates, InMemoryFieldReportRepository(db), self.uow, publisher, clock=clock
        )
        self.flags = TicketFlagService(tickets, updates, self.uow, publisher, clock=clock)
        self.technicians = TechnicianService(technicians, self.uow, clock=clock)


# ========== Actors ==========

REQUESTER = Actor(id="req-1", role=Role.REQUESTER)
TECH_A = Actor(id="tech-a", role=Role.TECHNICIAN)
TECH_B = Actor(id="tech-b", role=Role.TECHNICIAN)
ADMIN = Actor(id="admin-1", role=Role.ADMIN)


# ========== Fixtures ==========

@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def memory_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def desk(memory_db, clock, publisher) -> ServiceDesk:
    return ServiceDesk(memory_db, clock, publisher)


@pytest.fixture
def ticket_data():
    return {
        "title": "Printer on 3rd floor jammed",
        "description": "Paper jam in tray 2, error E-204",
        "type": "incident",
        "category": "hardware",
        "priority": "high",
    }


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite database per test."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'servicedesk.db'}")
    await create_tables(db_engine)
    yield db_engine
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)
