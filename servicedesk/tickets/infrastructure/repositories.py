"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.

Status changes are issued as single conditional UPDATE statements
(compare-and-swap); the row count tells the service whether it won. Every
driver or constraint failure surfaces as `StorageUnavailableException` and
the request's transaction is rolled back by the session dependency.
"""

from functools import wraps
from typing import Any, Callable, List, Optional
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update, and_, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.config import (
    TicketStatus, TechnicianStatus, UpdateType, ReportType,
    TICKET_NUMBER_PREFIXES, PRIORITY_RANK, TicketType, TicketCategory, Priority
)
from servicedesk.core import StorageUnavailableException
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.application.services import (
    ITicketRepository,
    ITechnicianRepository,
    ICommentRepository,
    IFieldReportRepository,
    ITicketUpdateRepository,
    IUnitOfWork,
)
from servicedesk.tickets.domain import Ticket, Comment, FieldReport, Technician, TicketUpdate
from servicedesk.tickets.infrastructure.models import (
    TicketModel,
    TicketNumberModel,
    CommentModel,
    FieldReportModel,
    TechnicianModel,
    TicketUpdateModel,
)

logger = get_logger(__name__)

FLAG_COLUMNS = ("escalated", "approval_requested")


def storage_operation(operation: str) -> Callable:
    """Translate SQLAlchemy failures into `StorageUnavailableException`."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.error(
                    "Storage operation failed",
                    extra={"operation": operation, "error": str(e)}
                )
                raise StorageUnavailableException(operation) from e
        return wrapper
    return decorator


def _as_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _plain(values: dict) -> dict:
    """Unwrap enum members so drivers bind plain strings."""
    return {key: getattr(val, "value", val) for key, val in values.items()}


# ========== Model → Entity Mapping ==========

def ticket_from_model(model: TicketModel) -> Ticket:
    return Ticket(
        id=str(model.id),
        ticket_number=model.ticket_number,
        title=model.title,
        description=model.description,
        type=TicketType(model.type),
        category=TicketCategory(model.category),
        priority=Priority(model.priority),
        status=TicketStatus(model.status),
        requester_id=model.requester_id,
        assignee_id=model.assignee_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
        sla_deadline=model.sla_deadline,
        resolved_at=model.resolved_at,
        closed_at=model.closed_at,
        escalated=model.escalated,
        approval_requested=model.approval_requested,
        image_url=model.image_url,
    )


def technician_from_model(model: TechnicianModel) -> Technician:
    return Technician(
        id=model.id,
        name=model.name,
        email=model.email,
        status=TechnicianStatus(model.status),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def report_from_model(model: FieldReportModel) -> FieldReport:
    return FieldReport(
        id=str(model.id),
        ticket_id=str(model.ticket_id) if model.ticket_id else None,
        technician_id=model.technician_id,
        report_type=ReportType(model.report_type),
        work_performed=model.work_performed,
        findings=model.findings,
        created_at=model.created_at,
        recommendations=model.recommendations,
        parts_used=model.parts_used,
        spares_used=model.spares_used,
        installation_details=model.installation_details,
        equipment=model.equipment,
        serial_number=model.serial_number,
        work_hours=model.work_hours,
        site_location=model.site_location,
        customer_name=model.customer_name,
        image_url=model.image_url,
        cannot_resolve=model.cannot_resolve,
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @storage_operation("ticket lookup")
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by internal ID, refreshing any identity-mapped copy."""
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return ticket_from_model(model) if model else None

    @storage_operation("ticket create")
    async def create(self, data: dict) -> Ticket:
        """Create new ticket with the next number from the sequence table."""
        sequence = TicketNumberModel(issued_at=data["created_at"])
        self._session.add(sequence)
        await self._session.flush()

        prefix = TICKET_NUMBER_PREFIXES[TicketType(data["type"])]
        model = TicketModel(
            id=uuid4(),
            ticket_number=f"{prefix}-{sequence.id:06d}",
            **_plain(data)
        )
        self._session.add(model)
        await self._session.flush()

        return ticket_from_model(model)

    @storage_operation("ticket list")
    async def list(
        self,
        filters: dict,
        limit: Optional[int] = 100,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets with filters, most urgent first, then oldest first."""
        stmt = select(TicketModel)

        # Apply filters
        conditions = []
        if "status" in filters:
            status_list = filters["status"]
            if isinstance(status_list, (list, tuple, set)):
                conditions.append(TicketModel.status.in_([getattr(s, "value", s) for s in status_list]))
            else:
                conditions.append(TicketModel.status == getattr(status_list, "value", status_list))

        for column in ("priority", "category", "assignee_id", "requester_id"):
            if filters.get(column) is not None:
                value = filters[column]
                conditions.append(getattr(TicketModel, column) == getattr(value, "value", value))

        if filters.get("unassigned") is True:
            conditions.append(TicketModel.assignee_id.is_(None))
        elif filters.get("unassigned") is False:
            conditions.append(TicketModel.assignee_id.is_not(None))

        if filters.get("escalated") is not None:
            conditions.append(TicketModel.escalated == bool(filters["escalated"]))

        if conditions:
            stmt = stmt.where(and_(*conditions))

        priority_rank = case(
            {priority.value: rank for priority, rank in PRIORITY_RANK.items()},
            value=TicketModel.priority,
            else_=len(PRIORITY_RANK),
        )
        stmt = stmt.order_by(priority_rank, TicketModel.created_at.asc(), TicketModel.ticket_number)
        if limit is not None:
            stmt = stmt.limit(limit)
        stmt = stmt.offset(offset)

        result = await self._session.execute(stmt)
        return [ticket_from_model(model) for model in result.scalars().all()]

    async def _conditional_update(self, conditions: list, values: dict) -> bool:
        stmt = (
            update(TicketModel)
            .where(and_(*conditions))
            .values(**_plain(values))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    @storage_operation("ticket claim")
    async def claim(self, ticket_id: str, technician_id: str, now: datetime) -> bool:
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return False

        return await self._conditional_update(
            [
                TicketModel.id == ticket_uuid,
                TicketModel.status == TicketStatus.OPEN.value,
                (TicketModel.assignee_id.is_(None)) | (TicketModel.assignee_id == technician_id),
            ],
            {
                "status": TicketStatus.IN_PROGRESS,
                "assignee_id": technician_id,
                "updated_at": now,
            },
        )

    @storage_operation("ticket transition")
    async def transition(
        self,
        ticket_id: str,
        expected_status: TicketStatus,
        values: dict,
        expected_assignee: Optional[str] = None
    ) -> bool:
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return False

        conditions = [
            TicketModel.id == ticket_uuid,
            TicketModel.status == TicketStatus(expected_status).value,
        ]
        if expected_assignee is not None:
            conditions.append(TicketModel.assignee_id == expected_assignee)

        return await self._conditional_update(conditions, values)

    @storage_operation("ticket assignment")
    async def reassign(
        self,
        ticket_id: str,
        expected_assignee: Optional[str],
        technician_id: str,
        now: datetime
    ) -> bool:
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return False

        if expected_assignee is None:
            assignee_matches = TicketModel.assignee_id.is_(None)
        else:
            assignee_matches = TicketModel.assignee_id == expected_assignee

        return await self._conditional_update(
            [
                TicketModel.id == ticket_uuid,
                TicketModel.status == TicketStatus.OPEN.value,
                assignee_matches,
            ],
            {"assignee_id": technician_id, "updated_at": now},
        )

    @storage_operation("ticket flag")
    async def set_flag(self, ticket_id: str, flag: str, now: datetime) -> bool:
        if flag not in FLAG_COLUMNS:
            raise ValueError(f"Unknown ticket flag: {flag}")
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return False

        column = getattr(TicketModel, flag)
        return await self._conditional_update(
            [
                TicketModel.id == ticket_uuid,
                TicketModel.status != TicketStatus.CLOSED.value,
                column == False,  # noqa: E712
            ],
            {flag: True, "updated_at": now},
        )


class SQLAlchemyTechnicianRepository(ITechnicianRepository):
    """SQLAlchemy implementation of the technician roster."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @storage_operation("technician lookup")
    async def get_by_id(self, technician_id: str) -> Optional[Technician]:
        stmt = (
            select(TechnicianModel)
            .where(TechnicianModel.id == technician_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return technician_from_model(model) if model else None

    @storage_operation("technician lookup")
    async def get_by_email(self, email: str) -> Optional[Technician]:
        stmt = select(TechnicianModel).where(TechnicianModel.email == email)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return technician_from_model(model) if model else None

    @storage_operation("technician create")
    async def create(self, data: dict) -> Technician:
        model = TechnicianModel(
            id=data.get("id") or str(uuid4()),
            name=data["name"],
            email=data["email"],
            status=getattr(data["status"], "value", data["status"]),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )
        self._session.add(model)
        await self._session.flush()
        return technician_from_model(model)

    @storage_operation("technician list")
    async def list(self, status: Optional[TechnicianStatus] = None) -> List[Technician]:
        stmt = select(TechnicianModel).execution_options(populate_existing=True)
        if status is not None:
            stmt = stmt.where(TechnicianModel.status == TechnicianStatus(status).value)
        stmt = stmt.order_by(TechnicianModel.created_at.asc(), TechnicianModel.id.asc())

        result = await self._session.execute(stmt)
        return [technician_from_model(model) for model in result.scalars().all()]

    @storage_operation("technician availability")
    async def set_status(self, technician_id: str, status: TechnicianStatus, now: datetime) -> bool:
        stmt = (
            update(TechnicianModel)
            .where(TechnicianModel.id == technician_id)
            .values(status=TechnicianStatus(status).value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    @storage_operation("technician reservation")
    async def reserve(self, technician_id: str, now: datetime) -> bool:
        stmt = (
            update(TechnicianModel)
            .where(
                TechnicianModel.id == technician_id,
                TechnicianModel.status == TechnicianStatus.AVAILABLE.value,
            )
            .values(status=TechnicianStatus.BUSY.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1


class SQLAlchemyCommentRepository(ICommentRepository):
    """Append-only comment storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @storage_operation("comment create")
    async def add(self, ticket_id: str, author_id: str, body: str, now: datetime) -> Comment:
        model = CommentModel(
            id=uuid4(),
            ticket_id=UUID(ticket_id),
            author_id=author_id,
            body=body,
            created_at=now,
        )
        self._session.add(model)
        await self._session.flush()
        return Comment(
            id=str(model.id),
            ticket_id=ticket_id,
            author_id=author_id,
            body=body,
            created_at=now,
        )

    @storage_operation("comment list")
    async def list_for_ticket(self, ticket_id: str) -> List[Comment]:
        stmt = (
            select(CommentModel)
            .where(CommentModel.ticket_id == UUID(ticket_id))
            .order_by(CommentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [
            Comment(
                id=str(model.id),
                ticket_id=str(model.ticket_id),
                author_id=model.author_id,
                body=model.body,
                created_at=model.created_at,
            )
            for model in result.scalars().all()
        ]


class SQLAlchemyTicketUpdateRepository(ITicketUpdateRepository):
    """Append-only activity trail storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @storage_operation("ticket update create")
    async def add(
        self,
        ticket_id: str,
        author_id: str,
        update_type: UpdateType,
        content: str,
        now: datetime
    ) -> TicketUpdate:
        model = TicketUpdateModel(
            id=uuid4(),
            ticket_id=UUID(ticket_id),
            author_id=author_id,
            update_type=UpdateType(update_type).value,
            content=content,
            created_at=now,
        )
        self._session.add(model)
        await self._session.flush()
        return TicketUpdate(
            id=str(model.id),
            ticket_id=ticket_id,
            author_id=author_id,
            update_type=UpdateType(update_type),
            content=content,
            created_at=now,
        )

    @storage_operation("ticket update list")
    async def list_for_ticket(self, ticket_id: str) -> List[TicketUpdate]:
        stmt = (
            select(TicketUpdateModel)
            .where(TicketUpdateModel.ticket_id == UUID(ticket_id))
            .order_by(TicketUpdateModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [
            TicketUpdate(
                id=str(model.id),
                ticket_id=str(model.ticket_id),
                author_id=model.author_id,
                update_type=UpdateType(model.update_type),
                content=model.content,
                created_at=model.created_at,
            )
            for model in result.scalars().all()
        ]


class SQLAlchemyFieldReportRepository(IFieldReportRepository):
    """Append-only field report storage."""

    COLUMNS = (
        "report_type", "work_performed", "findings", "recommendations",
        "parts_used", "spares_used", "installation_details", "equipment",
        "serial_number", "work_hours", "site_location", "customer_name",
        "image_url", "cannot_resolve", "technician_id",
    )

    def __init__(self, session: AsyncSession):
        self._session = session

    @storage_operation("field report create")
    async def add(self, data: dict, now: datetime) -> FieldReport:
        values = _plain({key: data.get(key) for key in self.COLUMNS if key in data})
        model = FieldReportModel(
            id=uuid4(),
            ticket_id=_as_uuid(data.get("ticket_id")),
            created_at=now,
            **values
        )
        self._session.add(model)
        await self._session.flush()
        return report_from_model(model)

    @storage_operation("field report list")
    async def list(
        self,
        ticket_id: Optional[str] = None,
        technician_id: Optional[str] = None
    ) -> List[FieldReport]:
        stmt = select(FieldReportModel)
        if ticket_id is not None:
            ticket_uuid = _as_uuid(ticket_id)
            if ticket_uuid is None:
                return []
            stmt = stmt.where(FieldReportModel.ticket_id == ticket_uuid)
        if technician_id is not None:
            stmt = stmt.where(FieldReportModel.technician_id == technician_id)
        stmt = stmt.order_by(FieldReportModel.created_at.desc())

        result = await self._session.execute(stmt)
        return [report_from_model(model) for model in result.scalars().all()]


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """Commits or rolls back the request's session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @storage_operation("commit")
    async def commit(self) -> None:
        await self._session.commit()

    @storage_operation("rollback")
    async def rollback(self) -> None:
        await self._session.rollback()
