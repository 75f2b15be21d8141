"""Directory, compensation and benefits models.

These tables back the external collaborators the core consumes (employee
directory, compensation lookup, benefits deductions). The core only reads
them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_payroll.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee directory record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
        Index("ix_employee_manager", "manager_id"),
    )

    # Relationships
    manager: Mapped[Employee | None] = relationship(remote_side=[employee_id])
    compensation_plans: Mapped[list[CompensationPlan]] = relationship(
        back_populates="employee"
    )
    benefit_deductions: Mapped[list[BenefitDeduction]] = relationship(
        back_populates="employee"
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"


class CompensationPlan(Base, TimestampMixin):
    """Effective-dated compensation plan (hourly rate, salary or contract rate)."""

    __tablename__ = "compensation_plan"

    compensation_plan_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    compensation_type: Mapped[str] = mapped_column(String, nullable=False)
    # Hourly rate for hourly/contract plans, annual amount for salary plans
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    overtime_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "compensation_type IN ('hourly', 'salary', 'contract')",
            name="compensation_plan_type_check",
        ),
        CheckConstraint(
            "pay_frequency IN ('weekly', 'biweekly', 'semimonthly', 'monthly', 'annually')",
            name="compensation_plan_frequency_check",
        ),
        CheckConstraint(
            "status IN ('active', 'pending', 'expired')",
            name="compensation_plan_status_check",
        ),
        CheckConstraint("base_amount >= 0", name="compensation_plan_amount_check"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= effective_date",
            name="compensation_plan_dates_check",
        ),
        Index("ix_compensation_plan_employee", "employee_id", "effective_date"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="compensation_plans")


class BenefitDeduction(Base, TimestampMixin):
    """Employee benefits enrollment with a per-period employee contribution."""

    __tablename__ = "benefit_deduction"

    benefit_deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    plan_name: Mapped[str] = mapped_column(String, nullable=False)
    employee_contribution: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "employee_contribution >= 0",
            name="benefit_deduction_amount_check",
        ),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="benefit_deduction_dates_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="benefit_deductions")
