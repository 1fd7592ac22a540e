"""Attendance summary model."""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from models.codec import check_keys, optional_str, require_mapping


@dataclass
class AttendanceSubject:
    """Attendance counters of one subject for the current session.

    Counters are kept as the portal reports them (strings), since some
    tenants send values like "12/14" or "N/A".
    """

    name: Optional[str] = None
    code: Optional[str] = None
    teacher: Optional[str] = None
    duration: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    delivered: Optional[str] = None
    attended: Optional[str] = None
    absent: Optional[str] = None
    leaves: Optional[str] = None
    percentage: Optional[str] = None
    total_approved_dl: Optional[str] = None  # duty leave
    total_approved_ml: Optional[str] = None  # medical leave

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Any) -> "AttendanceSubject":
        data = require_mapping(data, "attendance subject")
        names = [f.name for f in fields(cls)]
        check_keys(data, "attendance subject", optional=names)
        return cls(**{name: optional_str(data, name, "attendance subject") for name in names})


def subject_from_api(raw: Dict[str, Any]) -> AttendanceSubject:
    """Build an AttendanceSubject from a loosely-typed API row."""
    def text(key: str) -> Optional[str]:
        value = raw.get(key)
        return None if value is None else str(value)

    return AttendanceSubject(
        name=text("name"),
        code=text("code"),
        teacher=text("teacher"),
        duration=text("duration"),
        from_date=text("fromDate"),
        to_date=text("toDate"),
        delivered=text("delivered"),
        attended=text("attended"),
        absent=text("absent"),
        leaves=text("leaves"),
        percentage=text("percentage"),
        total_approved_dl=text("totalApprovedDL"),
        total_approved_ml=text("totalApprovedML"),
    )
