"""
Ticket Application Services
===========================

Application services orchestrate the ticket lifecycle and coordinate between
domain rules and repositories.

Every mutating operation is one unit of work:
1. validate against the domain rules using the current row
2. apply the change as a conditional update keyed on what was validated
3. append the activity trail entry
4. commit, then hand the event to the notification boundary

A conditional update that matches zero rows means another writer got there
first. The row is re-read and the precise failure kind is raised; nothing is
retried blindly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from servicedesk.config import (
    Role, Priority, TicketStatus, TechnicianStatus, UpdateType, TicketEventType,
    TicketType, TicketCategory, ReportType
)
from servicedesk.core import (
    AlreadyClaimedException,
    DomainException,
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
    StorageUnavailableException,
    TicketClosedException,
    ValidationException,
)
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.sla.domain import SLACalculator, SLAPolicy
from servicedesk.tickets.domain import (
    Actor, Ticket, Comment, FieldReport, Technician, TicketUpdate, TicketEvent,
    TicketStateMachine, TransitionTrigger, FieldReportValidator, utc_now
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access with conditional updates."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by id, bypassing any cached copy."""

    @abstractmethod
    async def create(self, data: dict) -> Ticket:
        """Insert a ticket; storage assigns the sequential ticket number."""

    @abstractmethod
    async def list(self, filters: dict, limit: Optional[int] = 100, offset: int = 0) -> List[Ticket]:
        """List tickets, most urgent priority first, then oldest first."""

    @abstractmethod
    async def claim(self, ticket_id: str, technician_id: str, now: datetime) -> bool:
        """
        Set assignee and in_progress where status is open and the ticket is
        unassigned or already assigned to `technician_id`. True if a row changed.
        """

    @abstractmethod
    async def transition(
        self,
        ticket_id: str,
        expected_status: TicketStatus,
        values: dict,
        expected_assignee: Optional[str] = None
    ) -> bool:
        """Apply `values` where status (and assignee, if given) still match."""

    @abstractmethod
    async def reassign(
        self,
        ticket_id: str,
        expected_assignee: Optional[str],
        technician_id: str,
        now: datetime
    ) -> bool:
        """Change the assignee of an open ticket whose assignee still matches."""

    @abstractmethod
    async def set_flag(self, ticket_id: str, flag: str, now: datetime) -> bool:
        """Set a boolean flag on a non-closed ticket where it is still false."""


class ITechnicianRepository(ABC):
    """Interface for the technician roster."""

    @abstractmethod
    async def get_by_id(self, technician_id: str) -> Optional[Technician]:
        """Get technician by id."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Technician]:
        """Get technician by email."""

    @abstractmethod
    async def create(self, data: dict) -> Technician:
        """Add a technician to the roster."""

    @abstractmethod
    async def list(self, status: Optional[TechnicianStatus] = None) -> List[Technician]:
        """List roster in roster order, optionally by status."""

    @abstractmethod
    async def set_status(self, technician_id: str, status: TechnicianStatus, now: datetime) -> bool:
        """Set availability unconditionally. True if the technician exists."""

    @abstractmethod
    async def reserve(self, technician_id: str, now: datetime) -> bool:
        """Flip available → busy. True only for the caller that flipped it."""


class ICommentRepository(ABC):
    """Interface for ticket comments (append-only)."""

    @abstractmethod
    async def add(self, ticket_id: str, author_id: str, body: str, now: datetime) -> Comment:
        """Append a comment."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[Comment]:
        """Comments oldest first."""


class IFieldReportRepository(ABC):
    """Interface for field reports (append-only)."""

    @abstractmethod
    async def add(self, data: dict, now: datetime) -> FieldReport:
        """Append a report."""

    @abstractmethod
    async def list(
        self,
        ticket_id: Optional[str] = None,
        technician_id: Optional[str] = None
    ) -> List[FieldReport]:
        """Reports newest first."""


class ITicketUpdateRepository(ABC):
    """Interface for the ticket activity trail (append-only)."""

    @abstractmethod
    async def add(
        self,
        ticket_id: str,
        author_id: str,
        update_type: UpdateType,
        content: str,
        now: datetime
    ) -> TicketUpdate:
        """Append a trail entry."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketUpdate]:
        """Trail entries newest first."""


class IUnitOfWork(ABC):
    """Transaction boundary shared by the repositories of one request."""

    @abstractmethod
    async def commit(self) -> None:
        """Make the unit of work durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every change made in the unit of work."""


class INotificationPublisher(ABC):
    """
    Notification boundary.

    Fire-and-forget: the ticket change has already been committed when
    `publish` is called. Implementations hand the event off without waiting
    for delivery, and log and swallow delivery failures.
    """

    @abstractmethod
    async def publish(self, event: TicketEvent) -> None:
        """Hand an event to the delivery mechanism."""


class ISLAPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get the current SLA policy table."""


class StaticSLAPolicyProvider(ISLAPolicyProvider):
    """Fixed policy, used when no policy file is being watched."""

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    def get_policy(self) -> SLAPolicy:
        return self._policy


@dataclass
class ClaimResult:
    """Outcome of a successful claim."""
    ticket: Ticket
    already_owned: bool = False


# ========== Application Services ==========

class _TicketUnitOfWorkService:
    """Shared plumbing for services that mutate tickets."""

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        update_repository: ITicketUpdateRepository,
        unit_of_work: IUnitOfWork,
        publisher: INotificationPublisher,
        clock: Clock = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._update_repo = update_repository
        self._uow = unit_of_work
        self._publisher = publisher
        self._clock = clock

    async def _require_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def _require_open_for_changes(self, ticket_id: str) -> Ticket:
        ticket = await self._require_ticket(ticket_id)
        if ticket.is_closed:
            raise TicketClosedException(ticket_id)
        return ticket

    async def _finish(
        self,
        ticket_id: str,
        actor: Actor,
        update_type: UpdateType,
        content: str,
        event_type: Optional[TicketEventType],
        now: datetime,
        **event_data: Any
    ) -> Ticket:
        """Write the trail entry, commit, then publish."""
        await self._update_repo.add(ticket_id, actor.id, update_type, content, now)
        ticket = await self._require_ticket(ticket_id)
        await self._uow.commit()

        if event_type is not None:
            await self._publisher.publish(
                TicketEvent.for_ticket(event_type, ticket, actor, **event_data)
            )
        return ticket

    async def _raise_lost_update(
        self,
        ticket_id: str,
        target: TicketStatus,
        actor: Actor,
        via_field_report: bool = False
    ) -> None:
        """
        Explain a conditional update that matched no row.

        Re-validates against the fresh row so the caller gets the failure
        kind that applies now (not found, closed, taken, wrong status).
        """
        current = await self._require_ticket(ticket_id)
        logger.info(
            "Ticket changed concurrently",
            extra={
                "ticket_id": ticket_id,
                "actor_id": actor.id,
                "current_status": current.status.value,
                "requested_status": target.value,
            }
        )
        TicketStateMachine.validate(current, target, actor, via_field_report=via_field_report)
        raise InvalidTransitionException(ticket_id, current.status, target)

    async def _claim(self, ticket_id: str, technician: Actor, acting: Actor, **event_data: Any) -> ClaimResult:
        """Compare-and-swap claim on behalf of `technician`."""
        now = self._clock()
        won = await self._ticket_repo.claim(ticket_id, technician.id, now)

        if not won:
            current = await self._require_ticket(ticket_id)
            if current.is_closed:
                raise TicketClosedException(ticket_id)
            if current.is_assigned_to(technician.id):
                if current.status == TicketStatus.IN_PROGRESS:
                    return ClaimResult(ticket=current, already_owned=True)
                raise InvalidTransitionException(ticket_id, current.status, TicketStatus.IN_PROGRESS)
            logger.info(
                "Claim lost the race",
                extra={"ticket_id": ticket_id, "technician_id": technician.id}
            )
            raise AlreadyClaimedException(ticket_id)

        ticket = await self._finish(
            ticket_id, acting, UpdateType.ASSIGNMENT,
            f"Claimed by {technician.id}; work started",
            TicketEventType.CLAIMED, now, **event_data
        )
        logger.info(
            "Ticket claimed",
            extra={"ticket_id": ticket_id, "technician_id": technician.id, "actor_id": acting.id}
        )
        return ClaimResult(ticket=ticket)


class TicketLifecycleService(_TicketUnitOfWorkService):
    """
    Ticket intake, status transitions, assignment and comments.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        update_repository: ITicketUpdateRepository,
        comment_repository: ICommentRepository,
        technician_repository: ITechnicianRepository,
        unit_of_work: IUnitOfWork,
        publisher: INotificationPublisher,
        policy_provider: ISLAPolicyProvider,
        clock: Clock = utc_now
    ):
        super().__init__(ticket_repository, update_repository, unit_of_work, publisher, clock)
        self._comment_repo = comment_repository
        self._technician_repo = technician_repository
        self._policy_provider = policy_provider

    async def create_ticket(self, actor: Actor, data: dict) -> Ticket:
        """
        File a new ticket.

        The SLA deadline is computed here, once, from the priority and the
        creation instant.
        """
        missing = [
            name for name in ("title", "description")
            if not (data.get(name) or "").strip()
        ]
        if missing:
            raise ValidationException(
                f"Ticket is missing required fields: {', '.join(missing)}", fields=missing
            )

        requester_id = data.get("requester_id") or actor.id
        if requester_id != actor.id and not actor.is_staff:
            raise PermissionDeniedException(actor.role, "file tickets on behalf of someone else")

        assignee_id = data.get("assignee_id")
        if assignee_id:
            if not actor.is_admin:
                raise PermissionDeniedException(actor.role, "pre-assign tickets")
            if await self._technician_repo.get_by_id(assignee_id) is None:
                raise ResourceNotFoundException("Technician", assignee_id)

        now = self._clock()
        priority = Priority(data.get("priority", Priority.MEDIUM))
        ticket = await self._ticket_repo.create({
            "title": data["title"].strip(),
            "description": data["description"].strip(),
            "type": TicketType(data.get("type", TicketType.INCIDENT)),
            "category": TicketCategory(data.get("category", TicketCategory.OTHER)),
            "priority": priority,
            "status": TicketStatus.OPEN,
            "requester_id": requester_id,
            "assignee_id": assignee_id,
            "created_at": now,
            "updated_at": now,
            "sla_deadline": SLACalculator.compute_deadline(
                priority, now, self._policy_provider.get_policy()
            ),
            "image_url": data.get("image_url"),
        })

        if assignee_id:
            await self._update_repo.add(
                ticket.id, actor.id, UpdateType.ASSIGNMENT, f"Pre-assigned to {assignee_id}", now
            )
        ticket = await self._finish(
            ticket.id, actor, UpdateType.STATUS_CHANGE,
            f"Ticket {ticket.ticket_number} created", TicketEventType.CREATED, now
        )
        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "ticket_number": ticket.ticket_number,
                "priority": priority.value,
                "actor_id": actor.id,
            }
        )
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        return await self._require_ticket(ticket_id)

    async def list_tickets(self, filters: dict, limit: int = 100, offset: int = 0) -> List[Ticket]:
        return await self._ticket_repo.list(filters, limit=limit, offset=offset)

    async def unassigned_queue(self, limit: int = 100, offset: int = 0) -> List[Ticket]:
        """Open tickets nobody holds, most urgent first."""
        return await self._ticket_repo.list(
            {"status": TicketStatus.OPEN, "unassigned": True}, limit=limit, offset=offset
        )

    async def change_status(self, ticket_id: str, target: TicketStatus, actor: Actor) -> Ticket:
        """
        Apply a directly requested status transition.

        Starting work goes through the claim compare-and-swap; resolving and
        closing are conditioned on the status (and assignee) just validated.
        """
        target = TicketStatus(target)
        ticket = await self._require_ticket(ticket_id)
        rule = TicketStateMachine.validate(ticket, target, actor)

        if rule.trigger == TransitionTrigger.START_WORK:
            return (await self._claim(ticket_id, actor, actor)).ticket

        now = self._clock()
        applied = await self._ticket_repo.transition(
            ticket_id,
            expected_status=ticket.status,
            values=rule.changes(actor, now),
            expected_assignee=ticket.assignee_id if rule.requires_assignee else None,
        )
        if not applied:
            await self._raise_lost_update(ticket_id, target, actor)

        if rule.trigger == TransitionTrigger.RESOLVE:
            update_type, event_type = UpdateType.RESOLUTION, TicketEventType.RESOLVED
        else:
            update_type, event_type = UpdateType.STATUS_CHANGE, TicketEventType.CLOSED

        updated = await self._finish(
            ticket_id, actor, update_type,
            f"Status changed from {ticket.status.value} to {target.value}",
            event_type, now
        )
        logger.info(
            "Ticket status changed",
            extra={
                "ticket_id": ticket_id,
                "from_status": ticket.status.value,
                "to_status": target.value,
                "actor_id": actor.id,
            }
        )
        return updated

    async def assign(self, ticket_id: str, technician_id: str, actor: Actor) -> Ticket:
        """Admin (re)assignment of an open ticket. Status stays open."""
        ticket = await self._require_open_for_changes(ticket_id)
        if not actor.is_admin:
            raise PermissionDeniedException(actor.role, "assign tickets")
        if ticket.status != TicketStatus.OPEN:
            raise InvalidTransitionException(ticket_id, ticket.status, TicketStatus.OPEN)
        if await self._technician_repo.get_by_id(technician_id) is None:
            raise ResourceNotFoundException("Technician", technician_id)

        now = self._clock()
        applied = await self._ticket_repo.reassign(ticket_id, ticket.assignee_id, technician_id, now)
        if not applied:
            current = await self._require_ticket(ticket_id)
            if current.is_closed:
                raise TicketClosedException(ticket_id)
            if current.status != TicketStatus.OPEN:
                raise InvalidTransitionException(ticket_id, current.status, TicketStatus.OPEN)
            raise AlreadyClaimedException(ticket_id)

        return await self._finish(
            ticket_id, actor, UpdateType.ASSIGNMENT, f"Assigned to {technician_id}",
            TicketEventType.ASSIGNED, now, previous_assignee_id=ticket.assignee_id
        )

    async def add_comment(self, ticket_id: str, actor: Actor, body: str) -> Comment:
        """Append an internal comment."""
        await self._require_open_for_changes(ticket_id)
        if not actor.is_staff:
            raise PermissionDeniedException(actor.role, "add internal comments")
        if not (body or "").strip():
            raise ValidationException("Comment body is required", fields=["body"])

        now = self._clock()
        comment = await self._comment_repo.add(ticket_id, actor.id, body.strip(), now)
        await self._update_repo.add(ticket_id, actor.id, UpdateType.COMMENT, body.strip(), now)
        await self._uow.commit()
        return comment

    async def list_comments(self, ticket_id: str) -> List[Comment]:
        await self._require_ticket(ticket_id)
        return await self._comment_repo.list_for_ticket(ticket_id)

    async def list_updates(self, ticket_id: str) -> List[TicketUpdate]:
        await self._require_ticket(ticket_id)
        return await self._update_repo.list_for_ticket(ticket_id)


class ClaimCoordinator(_TicketUnitOfWorkService):
    """
    Concurrency-safe claiming of unassigned tickets.

    Exactly one technician wins a race for the same ticket; the others get
    `AlreadyClaimedException` and must refetch instead of retrying.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        update_repository: ITicketUpdateRepository,
        technician_repository: ITechnicianRepository,
        unit_of_work: IUnitOfWork,
        publisher: INotificationPublisher,
        clock: Clock = utc_now
    ):
        super().__init__(ticket_repository, update_repository, unit_of_work, publisher, clock)
        self._technician_repo = technician_repository

    async def claim(self, ticket_id: str, actor: Actor) -> ClaimResult:
        """
        Take an open ticket for the acting technician.

        Idempotent for the current owner: claiming a ticket one already works
        on succeeds with `already_owned=True` and writes nothing.
        """
        if not actor.is_staff:
            raise PermissionDeniedException(actor.role, "claim tickets")
        return await self._claim(ticket_id, actor, actor)

    async def auto_assign(self, ticket_id: str, actor: Actor) -> ClaimResult:
        """
        Claim the ticket for the first available technician on the roster.

        Reserving the technician (available → busy) and claiming the ticket
        commit together; if the ticket claim fails the reservation is rolled
        back with it.
        """
        if not actor.is_admin:
            raise PermissionDeniedException(actor.role, "auto-assign tickets")

        ticket = await self._require_open_for_changes(ticket_id)
        if ticket.status != TicketStatus.OPEN:
            raise InvalidTransitionException(ticket_id, ticket.status, TicketStatus.IN_PROGRESS)
        if not ticket.is_unassigned:
            raise AlreadyClaimedException(ticket_id)

        now = self._clock()
        chosen: Optional[Technician] = None
        for candidate in await self._technician_repo.list(TechnicianStatus.AVAILABLE):
            if await self._technician_repo.reserve(candidate.id, now):
                chosen = candidate
                break
            logger.info(
                "Technician reserved concurrently, trying next",
                extra={"technician_id": candidate.id, "ticket_id": ticket_id}
            )

        if chosen is None:
            raise ResourceNotFoundException("Available technician")

        technician = Actor(id=chosen.id, role=Role.TECHNICIAN)
        try:
            return await self._claim(ticket_id, technician, actor, auto_assigned=True)
        except DomainException:
            await self._uow.rollback()
            raise


class FieldReportService(_TicketUnitOfWorkService):
    """
    Field report submission and its one coupling to ticket status.

    A "cannot resolve" report linked to a ticket reopens it (in_progress or
    resolved → open) in the same unit of work as the report insert. Record
    keeping reports never touch the ticket.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        update_repository: ITicketUpdateRepository,
        report_repository: IFieldReportRepository,
        unit_of_work: IUnitOfWork,
        publisher: INotificationPublisher,
        clock: Clock = utc_now
    ):
        super().__init__(ticket_repository, update_repository, unit_of_work, publisher, clock)
        self._report_repo = report_repository

    async def submit(self, actor: Actor, data: dict) -> FieldReport:
        """
        Persist a field report, reopening the linked ticket when the work
        could not be finished.

        Raises:
            ValidationException: mandatory fields missing (nothing persisted)
            ResourceNotFoundException: linked ticket does not exist
            TicketClosedException: cannot-resolve report on a closed ticket
            InvalidTransitionException: cannot-resolve report on an open ticket
        """
        if not actor.is_staff:
            raise PermissionDeniedException(actor.role, "submit field reports")

        FieldReportValidator.validate(data)

        ticket_id = data.get("ticket_id")
        cannot_resolve = bool(data.get("cannot_resolve"))
        ticket: Optional[Ticket] = None
        rule = None
        if ticket_id:
            ticket = await self._require_ticket(ticket_id)
            if cannot_resolve:
                rule = TicketStateMachine.validate(
                    ticket, TicketStatus.OPEN, actor, via_field_report=True
                )

        now = self._clock()
        report = await self._report_repo.add(
            {
                **data,
                "report_type": ReportType(data.get("report_type", ReportType.MAINTENANCE)),
                "technician_id": actor.id,
                "cannot_resolve": cannot_resolve,
            },
            now,
        )

        if ticket is None:
            await self._uow.commit()
            logger.info("Field report submitted", extra={"report_id": report.id, "actor_id": actor.id})
            return report

        if rule is None:
            # A closed ticket keeps its trail frozen; the report row still links to it
            if not ticket.is_closed:
                await self._update_repo.add(
                    ticket.id, actor.id, UpdateType.FIELD_REPORT, f"Field report {report.id} filed", now
                )
            await self._uow.commit()
            logger.info(
                "Field report submitted",
                extra={"report_id": report.id, "ticket_id": ticket.id, "actor_id": actor.id}
            )
            return report

        applied = await self._ticket_repo.transition(
            ticket.id, expected_status=ticket.status, values=rule.changes(actor, now)
        )
        if not applied:
            await self._uow.rollback()
            await self._raise_lost_update(ticket.id, TicketStatus.OPEN, actor, via_field_report=True)

        await self._finish(
            ticket.id, actor, UpdateType.FIELD_REPORT,
            f"Could not resolve on site (field report {report.id}); reopened from {ticket.status.value}",
            TicketEventType.REOPENED, now, report_id=report.id
        )
        logger.info(
            "Ticket reopened by field report",
            extra={"report_id": report.id, "ticket_id": ticket.id, "actor_id": actor.id}
        )
        return report

    async def list_reports(
        self,
        ticket_id: Optional[str] = None,
        technician_id: Optional[str] = None
    ) -> List[FieldReport]:
        return await self._report_repo.list(ticket_id=ticket_id, technician_id=technician_id)


class TicketFlagService(_TicketUnitOfWorkService):
    """
    Escalation and approval-request flags.

    Advisory annotations: they never gate transitions and do not change
    status. Setting an already-set flag is a successful no-op.
    """

    async def escalate(self, ticket_id: str, actor: Actor, reason: Optional[str] = None) -> Ticket:
        return await self._set_flag(
            ticket_id, actor, "escalated", reason,
            UpdateType.ESCALATION, TicketEventType.ESCALATED, "Escalated"
        )

    async def request_approval(self, ticket_id: str, actor: Actor, reason: Optional[str] = None) -> Ticket:
        return await self._set_flag(
            ticket_id, actor, "approval_requested", reason,
            UpdateType.APPROVAL, TicketEventType.APPROVAL_REQUESTED, "Approval requested"
        )

    async def _set_flag(
        self,
        ticket_id: str,
        actor: Actor,
        flag: str,
        reason: Optional[str],
        update_type: UpdateType,
        event_type: TicketEventType,
        label: str
    ) -> Ticket:
        ticket = await self._require_open_for_changes(ticket_id)
        if not actor.is_staff:
            raise PermissionDeniedException(actor.role, f"set the {flag} flag")
        if getattr(ticket, flag):
            return ticket

        now = self._clock()
        if not await self._ticket_repo.set_flag(ticket_id, flag, now):
            current = await self._require_open_for_changes(ticket_id)
            if getattr(current, flag):
                return current
            # Row is open and unflagged yet the conditional update matched nothing
            logger.error("Flag update matched no row", extra={"ticket_id": ticket_id, "flag": flag})
            raise StorageUnavailableException("ticket flag update", {"ticket_id": ticket_id, "flag": flag})

        content = f"{label}: {reason.strip()}" if reason and reason.strip() else label
        updated = await self._finish(
            ticket_id, actor, update_type, content, event_type, now, reason=reason
        )
        logger.info(label, extra={"ticket_id": ticket_id, "actor_id": actor.id})
        return updated


class TechnicianService:
    """Technician roster maintenance."""

    def __init__(
        self,
        technician_repository: ITechnicianRepository,
        unit_of_work: IUnitOfWork,
        clock: Clock = utc_now
    ):
        self._technician_repo = technician_repository
        self._uow = unit_of_work
        self._clock = clock

    async def register(self, actor: Actor, data: dict) -> Technician:
        if not actor.is_admin:
            raise PermissionDeniedException(actor.role, "register technicians")
        if await self._technician_repo.get_by_email(data["email"]) is not None:
            raise ValidationException(f"Email {data['email']} is already on the roster", fields=["email"])
        if data.get("id") and await self._technician_repo.get_by_id(data["id"]) is not None:
            raise ValidationException(f"Technician {data['id']} already exists", fields=["id"])

        now = self._clock()
        technician = await self._technician_repo.create({
            **data,
            "status": TechnicianStatus(data.get("status", TechnicianStatus.AVAILABLE)),
            "created_at": now,
            "updated_at": now,
        })
        await self._uow.commit()
        logger.info("Technician registered", extra={"technician_id": technician.id})
        return technician

    async def set_availability(
        self,
        technician_id: str,
        status: TechnicianStatus,
        actor: Actor
    ) -> Technician:
        if actor.id != technician_id and not actor.is_admin:
            raise PermissionDeniedException(actor.role, "change another technician's availability")

        if not await self._technician_repo.set_status(technician_id, TechnicianStatus(status), self._clock()):
            raise ResourceNotFoundException("Technician", technician_id)
        await self._uow.commit()
        return await self._technician_repo.get_by_id(technician_id)

    async def list_technicians(self, status: Optional[TechnicianStatus] = None) -> List[Technician]:
        return await self._technician_repo.list(status)
