# =============================================================================
# lib/recurrence.py - Recurring Task Expansion
# =============================================================================
# Helpers for RFC 5545 recurrence rules (RRULE) on tasks, built on
# python-dateutil's rrule implementation.
#
# A recurring "master" task stores its rule in `recurrence_rule` (without the
# "RRULE:" prefix) and its first occurrence in `due_date`. Instances are
# generated on read and are never stored:
#
#   master  {id: "t1", due_date: 2025-03-03T09:00Z, recurrence_rule: "FREQ=WEEKLY"}
#   expand  -> {id: "t1_1740992400000", due_date: 2025-03-03T09:00Z, ...}
#              {id: "t1_1741597200000", due_date: 2025-03-10T09:00Z, ...}
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any

from dateutil import rrule

from app.exceptions import InvalidRecurrenceRuleError
from lib.utils import to_datetime

FREQUENCIES = {
    "daily": "DAILY",
    "weekly": "WEEKLY",
    "monthly": "MONTHLY",
    "yearly": "YEARLY",
}

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


def build_rrule(
    frequency: str,
    interval: int = 1,
    by_weekday: list[str] | None = None,
    count: int | None = None,
    until: datetime | None = None,
) -> str:
    """
    Build an RRULE string from simple recurrence settings.

    Example:
        build_rrule("weekly", by_weekday=["MO", "WE"])  # "FREQ=WEEKLY;BYDAY=MO,WE"
    """
    freq = FREQUENCIES.get(frequency.lower())
    if not freq:
        raise InvalidRecurrenceRuleError(frequency, f"unknown frequency '{frequency}'")
    if interval < 1:
        raise InvalidRecurrenceRuleError(frequency, "interval must be at least 1")

    parts = [f"FREQ={freq}"]
    if interval > 1:
        parts.append(f"INTERVAL={interval}")
    if by_weekday:
        days = [d.upper()[:2] for d in by_weekday]
        invalid = [d for d in days if d not in WEEKDAY_CODES]
        if invalid:
            raise InvalidRecurrenceRuleError(",".join(by_weekday), f"invalid weekday(s): {invalid}")
        parts.append(f"BYDAY={','.join(days)}")
    if count:
        parts.append(f"COUNT={count}")
    elif until:
        parts.append(f"UNTIL={until.strftime('%Y%m%dT%H%M%SZ')}")
    return ";".join(parts)


def _strip_prefix(rule: str) -> str:
    rule = rule.strip()
    return rule[len("RRULE:"):] if rule.upper().startswith("RRULE:") else rule


def parse_rrule(rule: str, dtstart: datetime) -> rrule.rrule:
    """
    Parse an RRULE string anchored at dtstart.

    Raises:
        InvalidRecurrenceRuleError: If the rule can't be parsed
    """
    try:
        return rrule.rrulestr(_strip_prefix(rule), dtstart=dtstart)
    except (ValueError, TypeError) as e:
        raise InvalidRecurrenceRuleError(rule, str(e))


def validate_rrule(rule: str, dtstart: datetime) -> None:
    parse_rrule(rule, dtstart)


def next_occurrence(rule: str, dtstart: datetime, after: datetime) -> datetime | None:
    """First occurrence strictly after `after`, or None if the rule has ended."""
    return parse_rrule(rule, to_datetime(dtstart)).after(to_datetime(after), inc=False)


def is_master_recurring_task(task: dict[str, Any]) -> bool:
    return bool(task.get("recurrence_rule")) and not task.get("is_recurring_instance")


def is_recurring_instance(task: dict[str, Any]) -> bool:
    return bool(task.get("is_recurring_instance"))


def generate_instances(
    task: dict[str, Any],
    range_start: datetime,
    range_end: datetime,
) -> list[dict[str, Any]]:
    """
    Materialize the occurrences of a recurring task inside [range_start, range_end].

    Each instance copies the master and gets a deterministic id
    "{master_id}_{epoch_ms}" so clients can key on it across requests.
    """
    if not task.get("recurrence_rule") or not task.get("due_date"):
        return []

    range_start, range_end = to_datetime(range_start), to_datetime(range_end)
    dtstart = to_datetime(task["due_date"])
    rule = parse_rrule(task["recurrence_rule"], dtstart)

    instances = []
    for occurrence in rule.between(range_start, range_end, inc=True):
        instance = dict(task)
        instance.update(
            id=f"{task['id']}_{int(occurrence.timestamp() * 1000)}",
            due_date=occurrence.isoformat(),
            original_due_date=task.get("original_due_date") or task["due_date"],
            is_recurring_instance=True,
            master_task_id=task["id"],
        )
        instances.append(instance)

    instances.sort(key=lambda t: t["due_date"])
    return instances


def expand_recurring_tasks(
    tasks: list[dict[str, Any]],
    range_start: datetime,
    range_end: datetime,
) -> list[dict[str, Any]]:
    """
    Replace recurring masters with their instances in range.

    Non-recurring tasks pass through unchanged. The result is sorted by due
    date with undated tasks last.
    """
    range_end = to_datetime(range_end)
    expanded: list[dict[str, Any]] = []
    for task in tasks:
        if is_master_recurring_task(task):
            expanded.extend(generate_instances(task, range_start, range_end))
        else:
            expanded.append(task)

    def sort_key(t: dict[str, Any]):
        due = t.get("due_date")
        return (due is None, to_datetime(due) if due else range_end)

    return sorted(expanded, key=sort_key)
