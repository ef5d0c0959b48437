"""
Ticket Infrastructure Models
============================

SQLAlchemy ORM models for the ticket lifecycle module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Boolean, Integer, Float, Text, Uuid, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from servicedesk.infrastructure.database import Base, UTCDateTime
from servicedesk.config import (
    Priority, TicketType, TicketCategory, TicketStatus,
    TechnicianStatus, ReportType, UpdateType
)


class TicketNumberModel(Base):
    """
    Sequence backing human-readable ticket numbers.

    One row per issued number; the autoincrement key is the sequence value,
    which keeps numbering portable between PostgreSQL and SQLite.
    """
    __tablename__ = "ticket_numbers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Business identifier (INC-000001)
    ticket_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    # Ticket content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Classification
    type: Mapped[TicketType] = mapped_column(String(50), nullable=False, default=TicketType.INCIDENT)
    category: Mapped[TicketCategory] = mapped_column(String(50), nullable=False, default=TicketCategory.OTHER)
    priority: Mapped[Priority] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    status: Mapped[TicketStatus] = mapped_column(String(50), nullable=False, default=TicketStatus.OPEN, index=True)

    # Participants (identity ids)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    sla_deadline: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Flags
    escalated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approval_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    __table_args__ = (
        Index("ix_tickets_status_assignee", "status", "assignee_id"),
    )


class CommentModel(Base):
    """Maps to the 'ticket_comments' table."""
    __tablename__ = "ticket_comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class TicketUpdateModel(Base):
    """
    Activity trail.

    Maps to the 'ticket_updates' table. Rows are never updated or deleted.
    """
    __tablename__ = "ticket_updates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    update_type: Mapped[UpdateType] = mapped_column(String(50), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class FieldReportModel(Base):
    """
    Database model for FieldReport entity.

    Maps to the 'field_reports' table. `ticket_id` is optional, reports may
    be filed as standalone records.
    """
    __tablename__ = "field_reports"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=True, index=True)
    technician_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    report_type: Mapped[ReportType] = mapped_column(String(50), nullable=False, default=ReportType.MAINTENANCE)

    # Mandatory content
    work_performed: Mapped[str] = mapped_column(Text, nullable=False)
    findings: Mapped[str] = mapped_column(Text, nullable=False)

    # Optional content
    recommendations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parts_used: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    spares_used: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    installation_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    equipment: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    work_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    site_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    cannot_resolve: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class TechnicianModel(Base):
    """
    Technician roster.

    Maps to the 'technicians' table. The id is the technician's identity id.
    """
    __tablename__ = "technicians"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[TechnicianStatus] = mapped_column(
        String(50), nullable=False, default=TechnicianStatus.AVAILABLE, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
