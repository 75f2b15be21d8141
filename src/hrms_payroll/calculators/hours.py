"""Weekly regular/overtime split."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

from hrms_payroll.calculators.types import (
    ZERO,
    EntryType,
    HoursAllocation,
    OvertimePolicy,
    WeeklyHours,
)

if TYPE_CHECKING:
    from hrms_payroll.models import TimeEntry


def _entry_sort_key(entry: TimeEntry) -> tuple:
    return (entry.work_date, entry.project_id, str(entry.time_entry_id))


def split_weekly_hours(
    entries: Iterable[TimeEntry],
    policy: OvertimePolicy | None = None,
) -> WeeklyHours:
    """Split one week's entries into regular, overtime and PTO hours.

    Entries are walked in (work_date, project_id, id) order. The first
    ``policy.weekly_threshold`` non-PTO hours are regular and the remainder
    is overtime, regardless of day, project or entry type. PTO counts toward
    the total only.

    Invariants on the result:
        regular + overtime == sum of non-PTO hours
        total == sum of all hours
    """
    policy = policy or OvertimePolicy()
    result = WeeklyHours()
    remaining_regular = policy.weekly_threshold

    for entry in sorted(entries, key=_entry_sort_key):
        hours = Decimal(entry.hours)
        result.total += hours

        if entry.entry_type == EntryType.PTO.value:
            result.pto += hours
            result.allocations.append(
                HoursAllocation(entry.time_entry_id, entry.work_date, ZERO, ZERO, hours)
            )
            continue

        regular = min(hours, max(remaining_regular, ZERO))
        overtime = hours - regular
        remaining_regular -= regular

        result.regular += regular
        result.overtime += overtime
        result.allocations.append(
            HoursAllocation(entry.time_entry_id, entry.work_date, regular, overtime, ZERO)
        )

    return result
