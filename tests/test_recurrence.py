# =============================================================================
# tests/test_recurrence.py - Recurring Task Tests
# =============================================================================

from datetime import datetime, timezone

import pytest

from app.exceptions import InvalidRecurrenceRuleError
from lib.recurrence import (
    build_rrule,
    expand_recurring_tasks,
    generate_instances,
    is_master_recurring_task,
    is_recurring_instance,
    next_occurrence,
    parse_rrule,
)

UTC = timezone.utc
MONDAY_9AM = datetime(2025, 3, 3, 9, 0, tzinfo=UTC)


@pytest.fixture
def weekly_task():
    return {
        "id": "t1",
        "title": "Group study",
        "due_date": MONDAY_9AM.isoformat(),
        "recurrence_rule": "FREQ=WEEKLY",
        "completed": False,
    }


class TestBuildRrule:
    """Tests for turning friendly settings into RRULE strings."""

    def test_weekly_with_days(self):
        assert build_rrule("weekly", by_weekday=["MO", "we"]) == "FREQ=WEEKLY;BYDAY=MO,WE"

    def test_interval_and_count(self):
        assert build_rrule("daily", interval=2, count=5) == "FREQ=DAILY;INTERVAL=2;COUNT=5"

    def test_until(self):
        rule = build_rrule("monthly", until=datetime(2025, 6, 1, tzinfo=UTC))

        assert rule == "FREQ=MONTHLY;UNTIL=20250601T000000Z"

    def test_weekday_names_are_shortened(self):
        assert build_rrule("weekly", by_weekday=["monday", "Friday"]) == "FREQ=WEEKLY;BYDAY=MO,FR"

    def test_unknown_frequency(self):
        with pytest.raises(InvalidRecurrenceRuleError):
            build_rrule("fortnightly")

    def test_invalid_weekday(self):
        with pytest.raises(InvalidRecurrenceRuleError):
            build_rrule("weekly", by_weekday=["XX"])


class TestParseAndNext:
    """Tests for parsing and next-occurrence lookups."""

    def test_prefix_is_accepted(self):
        rule = parse_rrule("RRULE:FREQ=DAILY;COUNT=3", MONDAY_9AM)

        assert len(list(rule)) == 3

    @pytest.mark.parametrize("bad", ["FREQ=FORTNIGHTLY", "nonsense", "FREQ=WEEKLY;BYDAY=XX"])
    def test_invalid_rule(self, bad):
        with pytest.raises(InvalidRecurrenceRuleError):
            parse_rrule(bad, MONDAY_9AM)

    def test_next_occurrence(self):
        after = datetime(2025, 3, 5, tzinfo=UTC)

        assert next_occurrence("FREQ=WEEKLY", MONDAY_9AM, after) == datetime(2025, 3, 10, 9, 0, tzinfo=UTC)

    def test_next_occurrence_after_rule_ends(self):
        after = datetime(2025, 4, 1, tzinfo=UTC)

        assert next_occurrence("FREQ=DAILY;COUNT=2", MONDAY_9AM, after) is None


class TestExpansion:
    """Tests for materializing instances."""

    def test_instances_in_range(self, weekly_task):
        instances = generate_instances(
            weekly_task,
            datetime(2025, 3, 1, tzinfo=UTC),
            datetime(2025, 3, 20, tzinfo=UTC),
        )

        assert [i["due_date"] for i in instances] == [
            "2025-03-03T09:00:00+00:00",
            "2025-03-10T09:00:00+00:00",
            "2025-03-17T09:00:00+00:00",
        ]
        first = instances[0]
        assert first["id"] == f"t1_{int(MONDAY_9AM.timestamp() * 1000)}"
        assert first["master_task_id"] == "t1"
        assert first["original_due_date"] == MONDAY_9AM.isoformat()
        assert is_recurring_instance(first) is True
        assert is_master_recurring_task(first) is False

    def test_ids_are_deterministic(self, weekly_task):
        start, end = datetime(2025, 3, 1, tzinfo=UTC), datetime(2025, 3, 20, tzinfo=UTC)

        first = [i["id"] for i in generate_instances(weekly_task, start, end)]
        second = [i["id"] for i in generate_instances(weekly_task, start, end)]

        assert first == second

    def test_task_without_due_date_has_no_instances(self, weekly_task):
        weekly_task["due_date"] = None

        assert generate_instances(weekly_task, MONDAY_9AM, MONDAY_9AM) == []

    def test_expand_mixes_and_sorts(self, weekly_task):
        # Arrange
        one_off = {"id": "t2", "title": "Essay", "due_date": "2025-03-12T12:00:00+00:00"}
        undated = {"id": "t3", "title": "Someday"}

        # Act
        expanded = expand_recurring_tasks(
            [undated, one_off, weekly_task],
            datetime(2025, 3, 1, tzinfo=UTC),
            datetime(2025, 3, 15, tzinfo=UTC),
        )

        # Assert
        assert [t["id"] for t in expanded] == [
            f"t1_{int(MONDAY_9AM.timestamp() * 1000)}",
            f"t1_{int(datetime(2025, 3, 10, 9, 0, tzinfo=UTC).timestamp() * 1000)}",
            "t2",
            "t3",
        ]
        assert is_master_recurring_task(weekly_task) is True
