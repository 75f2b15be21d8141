"""Tests for the weekly regular/overtime split."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings as hypothesis_settings, strategies as st

from hrms_payroll.calculators.hours import split_weekly_hours
from hrms_payroll.calculators.types import OvertimePolicy
from hrms_payroll.models import TimeEntry

MONDAY = date(2024, 1, 1)


def entry(
    offset: int,
    hours: str,
    entry_type: str = "regular",
    project_id: str = "general",
) -> TimeEntry:
    return TimeEntry(
        time_entry_id=uuid4(),
        employee_id=uuid4(),
        work_date=MONDAY + timedelta(days=offset),
        project_id=project_id,
        hours=Decimal(hours),
        entry_type=entry_type,
        source="manual",
    )


class TestSplitWeeklyHours:
    """Test the weekly overtime threshold."""

    def test_forty_five_hours_splits_forty_five(self):
        """Five 9-hour days: 40 regular, 5 overtime."""
        entries = [entry(i, "9") for i in range(5)]

        result = split_weekly_hours(entries)

        assert result.total == Decimal("45")
        assert result.regular == Decimal("40")
        assert result.overtime == Decimal("5")
        assert result.pto == Decimal("0")

    def test_overtime_lands_on_the_day_the_threshold_is_crossed(self):
        entries = [entry(i, "9") for i in range(5)]

        result = split_weekly_hours(entries)

        friday = result.allocations[-1]
        assert friday.work_date == MONDAY + timedelta(days=4)
        assert friday.regular == Decimal("4")
        assert friday.overtime == Decimal("5")
        assert all(a.overtime == 0 for a in result.allocations[:-1])

    def test_under_threshold_has_no_overtime(self):
        result = split_weekly_hours([entry(i, "8") for i in range(5)])

        assert result.regular == Decimal("40")
        assert result.overtime == Decimal("0")

    def test_pto_counts_toward_total_only(self):
        """PTO never pushes worked hours into overtime."""
        entries = [entry(i, "8") for i in range(5)]
        entries.append(entry(5, "8", entry_type="pto"))

        result = split_weekly_hours(entries)

        assert result.total == Decimal("48")
        assert result.regular == Decimal("40")
        assert result.overtime == Decimal("0")
        assert result.pto == Decimal("8")

    def test_entry_type_does_not_change_the_split(self):
        """Hours labelled overtime are regular until the weekly threshold is reached."""
        entries = [entry(0, "10", entry_type="overtime"), entry(1, "10")]

        result = split_weekly_hours(entries)

        assert result.regular == Decimal("20")
        assert result.overtime == Decimal("0")

    def test_same_day_entries_ordered_by_project(self):
        """Within a day, entries are walked by project id."""
        entries = [entry(i, "9") for i in range(4)]
        beta = entry(4, "6", project_id="beta")
        alpha = entry(4, "6", project_id="alpha")
        entries.extend([beta, alpha])

        result = split_weekly_hours(entries)
        by_id = {a.entry_id: a for a in result.allocations}

        # 36 hours before Friday: alpha takes the last 4 regular hours
        assert by_id[alpha.time_entry_id].regular == Decimal("4")
        assert by_id[alpha.time_entry_id].overtime == Decimal("2")
        assert by_id[beta.time_entry_id].regular == Decimal("0")
        assert by_id[beta.time_entry_id].overtime == Decimal("6")

    def test_input_order_does_not_matter(self):
        entries = [entry(i, h) for i, h in enumerate(["12", "3.5", "10", "9.25", "11"])]

        forward = split_weekly_hours(entries)
        backward = split_weekly_hours(list(reversed(entries)))

        assert forward.regular == backward.regular
        assert forward.overtime == backward.overtime

    def test_configurable_threshold(self):
        policy = OvertimePolicy(weekly_threshold=Decimal("37.5"))

        result = split_weekly_hours([entry(i, "8") for i in range(5)], policy)

        assert result.regular == Decimal("37.5")
        assert result.overtime == Decimal("2.5")

    def test_empty_week(self):
        result = split_weekly_hours([])

        assert result.total == Decimal("0")
        assert result.allocations == []

    def test_within_limits_hours_to_date_range(self):
        """Period boundaries inside a week only take that range's allocations."""
        result = split_weekly_hours([entry(i, "9") for i in range(5)])

        regular, overtime = result.within(MONDAY, MONDAY + timedelta(days=2))
        assert regular == Decimal("27")
        assert overtime == Decimal("0")

        regular, overtime = result.within(MONDAY + timedelta(days=3), MONDAY + timedelta(days=6))
        assert regular == Decimal("13")
        assert overtime == Decimal("5")


hours_strategy = st.integers(min_value=0, max_value=96).map(lambda q: Decimal(q) / 4)


@given(
    st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=6),
            hours_strategy,
            st.sampled_from(["regular", "overtime", "pto"]),
            st.sampled_from(["general", "alpha", "beta"]),
        ),
        max_size=20,
    )
)
@hypothesis_settings(max_examples=200, deadline=None)
def test_split_totals_invariants(rows):
    """regular + overtime equals non-PTO hours and total equals all hours."""
    entries = [entry(offset, str(hours), kind, project) for offset, hours, kind, project in rows]

    result = split_weekly_hours(entries)

    non_pto = sum((e.hours for e in entries if e.entry_type != "pto"), Decimal("0"))
    assert result.regular + result.overtime == non_pto
    assert result.total == sum((e.hours for e in entries), Decimal("0"))
    assert result.regular <= Decimal("40")
    assert result.overtime == max(non_pto - Decimal("40"), Decimal("0"))
