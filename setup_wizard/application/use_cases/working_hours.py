from __future__ import annotations

from typing import Any, Iterable, Mapping

from setup_wizard.domain.entities.validation import HoursValidationResult, HoursViolation
from setup_wizard.domain.entities.working_hours import WEEKDAYS, WorkingDay, parse_schedule


ScheduleInput = Iterable[Mapping[str, Any] | WorkingDay] | None


def validate_working_hours(child_schedule: ScheduleInput, parent_schedule: ScheduleInput) -> HoursValidationResult:
    """Check that every open child day nests inside the parent's hours for that day.

    Times are normalized to zero-padded "HH:MM" on parsing, so plain string
    comparison orders them. Days with malformed times are left to
    validate_schedule.
    No parent schedule means a standalone entity: always valid.
    """
    parent_days = {d.day: d for d in parse_schedule(parent_schedule)}
    if not parent_days:
        return HoursValidationResult(is_valid=True)

    violations: list[HoursViolation] = []
    for day in parse_schedule(child_schedule):
        if not day.is_open:
            continue
        parent = parent_days.get(day.day)
        if parent is None or not parent.is_open:
            violations.append(
                HoursViolation(day.day, "parent_closed", f"{day.day}: cannot operate; parent closed on this day")
            )
            continue
        if not (day.open_time and day.close_time and parent.open_time and parent.close_time):
            continue
        if day.malformed_times() or parent.malformed_times():
            continue
        if day.open_time < parent.open_time:
            violations.append(
                HoursViolation(
                    day.day,
                    "opens_before_parent",
                    f"{day.day}: opening time precedes parent's opening time ({parent.open_time})",
                )
            )
        elif day.close_time > parent.close_time:
            violations.append(
                HoursViolation(
                    day.day,
                    "closes_after_parent",
                    f"{day.day}: closing time exceeds parent's closing time ({parent.close_time})",
                )
            )

    return HoursValidationResult(is_valid=not violations, violations=tuple(violations))


def validate_schedule(days: ScheduleInput, required: bool = True) -> HoursValidationResult:
    """Shape checks for a single schedule, independent of any parent."""
    violations: list[HoursViolation] = []
    seen: set[str] = set()

    for day in parse_schedule(days):
        if day.day not in WEEKDAYS:
            violations.append(HoursViolation(day.day or "?", "unknown_day", f"Unknown day: {day.day!r}"))
            continue
        if day.day in seen:
            violations.append(HoursViolation(day.day, "duplicate_day", f"{day.day} appears more than once"))
            continue
        seen.add(day.day)

        if not day.is_open:
            continue
        if not day.open_time or not day.close_time:
            violations.append(
                HoursViolation(day.day, "missing_times", f"{day.day}: opening and closing times are required")
            )
            continue
        malformed = day.malformed_times()
        if malformed:
            violations.append(
                HoursViolation(
                    day.day,
                    "invalid_time",
                    f"{day.day}: invalid time {malformed[0]!r}, expected HH:MM",
                )
            )
            continue
        if day.open_time >= day.close_time:
            violations.append(
                HoursViolation(day.day, "open_after_close", f"{day.day}: opening time must be before closing time")
            )
            continue
        if day.break_start and day.break_end:
            if day.break_start >= day.break_end:
                violations.append(
                    HoursViolation(day.day, "break_order", f"{day.day}: break start must be before break end")
                )
            elif day.break_start < day.open_time or day.break_end > day.close_time:
                violations.append(
                    HoursViolation(day.day, "break_outside_hours", f"{day.day}: break must be within working hours")
                )

    if required and not any(d.is_open for d in parse_schedule(days)):
        violations.append(HoursViolation("general", "no_working_day", "At least one working day is required"))

    return HoursValidationResult(is_valid=not violations, violations=tuple(violations))
