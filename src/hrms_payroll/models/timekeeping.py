"""Clock session, time entry and weekly timesheet models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hrms_payroll.models.employee import Employee


DEFAULT_PROJECT = "general"

# Shared by the partial unique index and ON CONFLICT inference
OPEN_SESSION_PREDICATE = text("clock_out IS NULL")
MANUAL_ENTRY_PREDICATE = text("source = 'manual'")


class ClockSession(Base, TimestampMixin):
    """One continuous clock-in/clock-out work interval."""

    __tablename__ = "clock_session"

    clock_session_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    clock_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    clock_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'completed')",
            name="clock_session_status_check",
        ),
        CheckConstraint(
            "clock_out IS NULL OR clock_out >= clock_in",
            name="clock_session_order_check",
        ),
        CheckConstraint("break_minutes >= 0", name="clock_session_break_check"),
        # At most one open session per employee, enforced by the database
        Index(
            "uq_clock_session_open_per_employee",
            "employee_id",
            unique=True,
            postgresql_where=OPEN_SESSION_PREDICATE,
            sqlite_where=OPEN_SESSION_PREDICATE,
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship()

    @property
    def is_open(self) -> bool:
        return self.clock_out is None


class TimeEntry(Base, TimestampMixin):
    """Dated, project-tagged quantity of hours owned by one employee."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    project_id: Mapped[str] = mapped_column(String, nullable=False, default=DEFAULT_PROJECT)
    hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    entry_type: Mapped[str] = mapped_column(String, nullable=False, default="regular")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="manual")
    clock_session_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("clock_session.clock_session_id", ondelete="RESTRICT"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('regular', 'overtime', 'pto')",
            name="time_entry_type_check",
        ),
        CheckConstraint(
            "source IN ('manual', 'clock')",
            name="time_entry_source_check",
        ),
        CheckConstraint("hours >= 0 AND hours <= 24", name="time_entry_hours_check"),
        CheckConstraint(
            "(source = 'clock') = (clock_session_id IS NOT NULL)",
            name="time_entry_clock_session_check",
        ),
        UniqueConstraint("clock_session_id", name="time_entry_one_per_session"),
        Index(
            "uq_time_entry_manual_key",
            "employee_id",
            "work_date",
            "project_id",
            unique=True,
            postgresql_where=MANUAL_ENTRY_PREDICATE,
            sqlite_where=MANUAL_ENTRY_PREDICATE,
        ),
        Index("ix_time_entry_employee_date", "employee_id", "work_date"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship()
    clock_session: Mapped[ClockSession | None] = relationship()

    @property
    def is_pto(self) -> bool:
        return self.entry_type == "pto"


class Timesheet(Base, TimestampMixin):
    """One employee's aggregated hours for a Monday-Sunday week.

    Aggregates, but does not own, the time entries dated within the week.
    Totals are rewritten from the full entry set on every entry mutation.
    """

    __tablename__ = "timesheet"

    timesheet_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    total_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    regular_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    pto_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "week_start", name="timesheet_employee_week_unique"),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="timesheet_status_check",
        ),
        CheckConstraint("week_end >= week_start", name="timesheet_week_check"),
        Index("ix_timesheet_status", "status"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship()
