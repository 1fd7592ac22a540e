"""Weekly timetable model."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from models.codec import require_list, require_mapping, str_map

# Day name -> ordered periods, each period a flat string map (time, subject, room, ...)
Periods = List[Dict[str, str]]


@dataclass
class Timetable:
    """Timetable grid plus the subject-code -> subject-name lookup."""

    days: Dict[str, Periods] = field(default_factory=dict)
    subject_names: Dict[str, str] = field(default_factory=dict)

    @property
    def total_periods(self) -> int:
        return sum(len(periods) for periods in self.days.values())


def days_to_dict(days: Dict[str, Periods]) -> Dict[str, Periods]:
    return {day: [dict(period) for period in periods] for day, periods in days.items()}


def days_from_dict(data: Any) -> Dict[str, Periods]:
    mapping = require_mapping(data, "timetable")
    days: Dict[str, Periods] = {}
    for day, periods in mapping.items():
        periods = require_list(periods, f"timetable[{day!r}]")
        days[day] = [str_map(period, f"timetable[{day!r}] period") for period in periods]
    return days


def subject_names_from_dict(data: Any) -> Dict[str, str]:
    return str_map(data, "timetable subject names")
