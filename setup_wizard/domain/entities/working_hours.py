from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping


TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class WorkingDay:
    day: str
    is_open: bool
    open_time: str | None = None  # "HH:MM", zero-padded when well-formed
    close_time: str | None = None
    break_start: str | None = None
    break_end: str | None = None

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> "WorkingDay":
        """Accepts both the wizard keys and the dayOfWeek/isWorkingDay keys of the backend."""
        day = str(payload.get("day") or payload.get("dayOfWeek") or "").strip().lower()
        is_open = payload.get("isOpen")
        if is_open is None:
            is_open = payload.get("isWorkingDay", False)
        is_open = bool(is_open)
        if not is_open:
            return WorkingDay(day=day, is_open=False)
        return WorkingDay(
            day=day,
            is_open=True,
            open_time=_time_or_none(payload.get("openTime", payload.get("openingTime"))),
            close_time=_time_or_none(payload.get("closeTime", payload.get("closingTime"))),
            break_start=_time_or_none(payload.get("breakStart", payload.get("breakStartTime"))),
            break_end=_time_or_none(payload.get("breakEnd", payload.get("breakEndTime"))),
        )

    def malformed_times(self) -> list[str]:
        times = (self.open_time, self.close_time, self.break_start, self.break_end)
        return [t for t in times if t and normalize_time(t) != t]

    def to_payload(self) -> dict[str, Any]:
        if not self.is_open:
            return {"day": self.day, "isOpen": False}
        payload: dict[str, Any] = {"day": self.day, "isOpen": True}
        for key, value in (
            ("openTime", self.open_time),
            ("closeTime", self.close_time),
            ("breakStart", self.break_start),
            ("breakEnd", self.break_end),
        ):
            if value:
                payload[key] = value
        return payload


def parse_schedule(days: Iterable[Mapping[str, Any] | WorkingDay] | None) -> list[WorkingDay]:
    parsed: list[WorkingDay] = []
    for entry in days or []:
        if isinstance(entry, WorkingDay):
            parsed.append(WorkingDay.from_payload(entry.to_payload()))
        elif isinstance(entry, Mapping):
            parsed.append(WorkingDay.from_payload(entry))
    return parsed


def schedule_to_payload(days: Iterable[WorkingDay]) -> list[dict[str, Any]]:
    return [d.to_payload() for d in sorted(days, key=_day_order)]


def _day_order(day: WorkingDay) -> int:
    return WEEKDAYS.index(day.day) if day.day in WEEKDAYS else len(WEEKDAYS)


def normalize_time(value: Any) -> str | None:
    """Zero-padded "HH:MM" for a valid 24h time such as "9:30"; ``None`` otherwise."""
    match = TIME_RE.match(str(value or "").strip())
    if match is None:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def _time_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    # malformed values are kept as entered so validate_schedule can report them
    return normalize_time(text) or text


DEFAULT_WORKING_HOURS: tuple[WorkingDay, ...] = tuple(
    WorkingDay(day, True, "09:00", "17:00", "12:00", "13:00") for day in WEEKDAYS[:5]
) + tuple(WorkingDay(day, False) for day in WEEKDAYS[5:])
