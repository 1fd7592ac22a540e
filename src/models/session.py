"""Academic session model."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.codec import check_keys, optional_str, require_mapping, require_str


@dataclass
class AcademicSession:
    """One academic session (e.g. "Jul - Dec 2024") the student can switch to."""

    session_id: str
    session_name: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "session_id": self.session_id,
            "session_name": self.session_name,
            "start_date": self.start_date,
            "end_date": self.end_date,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AcademicSession":
        data = require_mapping(data, "session")
        check_keys(
            data,
            "session",
            required=("session_id", "session_name"),
            optional=("start_date", "end_date"),
        )
        return cls(
            session_id=require_str(data, "session_id", "session"),
            session_name=require_str(data, "session_name", "session"),
            start_date=optional_str(data, "start_date", "session"),
            end_date=optional_str(data, "end_date", "session"),
        )

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "AcademicSession":
        """Build from an API row, where sessionId may arrive as a number."""
        session_id = raw.get("sessionId")
        return cls(
            session_id="" if session_id is None else str(session_id),
            session_name=raw.get("sessionName") or "",
            start_date=raw.get("startDate"),
            end_date=raw.get("endDate"),
        )
