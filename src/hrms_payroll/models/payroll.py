"""Payroll period, pay stub and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
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
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_payroll.models.base import Base, TimestampMixin


# ===== Payroll Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """Administrative pay date range with its own processing status."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    processed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Processing lease
    processing_token: Mapped[UUID | None] = mapped_column(nullable=True)
    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("start_date", "end_date", name="payroll_period_dates_unique"),
        CheckConstraint(
            "status IN ('open', 'processing', 'closed')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("end_date >= start_date", name="payroll_period_dates_check"),
    )

    # Relationships
    pay_stubs: Mapped[list[PayStub]] = relationship(back_populates="payroll_period")


# ===== Immutable Results =====


class PayStub(Base, TimestampMixin):
    """Immutable payroll result for one employee in one period."""

    __tablename__ = "pay_stub"

    pay_stub_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="RESTRICT"),
        nullable=False,
    )
    compensation_type: Mapped[str] = mapped_column(String, nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    federal_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    state_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    social_security: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    medicare: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    benefits_deductions: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "payroll_period_id", name="pay_stub_one_per_period"),
        CheckConstraint(
            "compensation_type IN ('hourly', 'salary', 'contract')",
            name="pay_stub_compensation_type_check",
        ),
        Index("ix_pay_stub_employee", "employee_id"),
    )

    # Relationships
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="pay_stubs")
    lines: Mapped[list[PayStubLine]] = relationship(
        back_populates="pay_stub", order_by="PayStubLine.sequence"
    )

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.federal_tax
            + self.state_tax
            + self.social_security
            + self.medicare
            + self.other_deductions
            + self.benefits_deductions
        )


class PayStubLine(Base, TimestampMixin):
    """Itemised earning, tax or deduction line of a pay stub."""

    __tablename__ = "pay_stub_line"

    pay_stub_line_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_stub_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_stub.pay_stub_id", ondelete="RESTRICT"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("pay_stub_id", "sequence", name="pay_stub_line_sequence_unique"),
        CheckConstraint(
            "category IN ('earning', 'tax', 'deduction')",
            name="pay_stub_line_category_check",
        ),
    )

    # Relationships
    pay_stub: Mapped[PayStub] = relationship(back_populates="lines")


class ImmutableRecordError(Exception):
    """Raised when an immutable payroll record is modified or deleted."""

    code = "IMMUTABLE_RECORD"

    def __init__(self, entity_type: str, entity_id: Any, operation: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(
            f"{entity_type} {entity_id} is immutable and cannot be {operation}; "
            "issue a correcting stub instead"
        )


def _reject_update(mapper: Any, connection: Any, target: Any) -> None:
    raise ImmutableRecordError(mapper.class_.__name__, target.pay_stub_id, "updated")


def _reject_delete(mapper: Any, connection: Any, target: Any) -> None:
    raise ImmutableRecordError(mapper.class_.__name__, target.pay_stub_id, "deleted")


for _model in (PayStub, PayStubLine):
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_delete)


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_id: Mapped[UUID | None] = mapped_column(nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("ix_audit_event_entity", "entity_type", "entity_id"),)
