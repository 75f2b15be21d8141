"""Tests for timesheet aggregation over date ranges."""

from datetime import timedelta
from decimal import Decimal

import pytest

from hrms_payroll.services.errors import HRMSValidationError

from .conftest import WEEK_START, day, log_week

pytestmark = pytest.mark.asyncio


class TestHoursSummary:
    """Test hours summaries across whole and partial weeks."""

    async def test_full_week(self, entry_service, aggregator, employee):
        await log_week(entry_service, employee.employee_id, ["9", "9", "9", "9", "9"])
        await entry_service.upsert_entry(
            employee.employee_id, day(5), None, "8", entry_type="pto"
        )

        summary = await aggregator.summarize(employee.employee_id, day(0), day(6))

        assert summary.employee_id == employee.employee_id
        assert summary.regular == Decimal("40")
        assert summary.overtime == Decimal("5")
        assert summary.pto == Decimal("8")
        assert summary.total == Decimal("53")
        assert summary.entry_count == 6

    async def test_partial_week_keeps_weekly_overtime(self, entry_service, aggregator, employee):
        """Overtime lands on the entries past the weekly threshold, not on the range."""
        await log_week(entry_service, employee.employee_id, ["9", "9", "9", "9", "9"])

        late = await aggregator.summarize(employee.employee_id, day(3), day(4))
        early = await aggregator.summarize(employee.employee_id, day(0), day(1))

        assert (late.regular, late.overtime, late.entry_count) == (
            Decimal("13"),
            Decimal("5"),
            2,
        )
        assert (early.regular, early.overtime) == (Decimal("18"), Decimal("0"))

    async def test_threshold_applies_per_week(self, entry_service, aggregator, employee):
        await log_week(entry_service, employee.employee_id, ["9", "9", "9", "9", "9"])
        await log_week(
            entry_service,
            employee.employee_id,
            ["10", "10", "10", "10", "10"],
            week_start=WEEK_START + timedelta(days=7),
        )

        summary = await aggregator.summarize(employee.employee_id, day(0), day(13))

        assert summary.regular == Decimal("80")
        assert summary.overtime == Decimal("15")
        assert summary.total == Decimal("95")
        assert summary.entry_count == 10

    async def test_counts_submitted_weeks(
        self, entry_service, approval_service, aggregator, employee
    ):
        await log_week(entry_service, employee.employee_id, ["8", "8"])
        await approval_service.submit_week(employee.employee_id, WEEK_START)

        summary = await aggregator.summarize(employee.employee_id, day(0), day(6))

        assert summary.total == Decimal("16")

    async def test_empty_range(self, aggregator, employee):
        summary = await aggregator.summarize(employee.employee_id, day(0), day(6))

        assert summary.total == Decimal("0")
        assert summary.entry_count == 0

    async def test_other_employees_excluded(self, entry_service, aggregator, employee, coworker):
        await log_week(entry_service, coworker.employee_id, ["8"])

        summary = await aggregator.summarize(employee.employee_id, day(0), day(6))

        assert summary.entry_count == 0

    async def test_end_before_start(self, aggregator, employee):
        with pytest.raises(HRMSValidationError):
            await aggregator.summarize(employee.employee_id, day(3), day(1))
