"""Report card models."""

from dataclasses import dataclass, field
from typing import Any, List

from models.codec import check_keys, require_list, require_mapping, require_str


@dataclass
class SubjectGrade:
    """Grade obtained in one subject."""

    serial_no: str
    code: str
    name: str
    credits: str
    grade: str

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "serial_no": self.serial_no,
            "code": self.code,
            "name": self.name,
            "credits": self.credits,
            "grade": self.grade,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SubjectGrade":
        keys = ("serial_no", "code", "name", "credits", "grade")
        data = require_mapping(data, "subject grade")
        check_keys(data, "subject grade", required=keys)
        return cls(**{key: require_str(data, key, "subject grade") for key in keys})


@dataclass
class SemesterResult:
    """Result of one semester: grade point averages and subject grades."""

    semester_name: str
    sgpa: str
    cgpa: str
    subjects: List[SubjectGrade] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "semester_name": self.semester_name,
            "sgpa": self.sgpa,
            "cgpa": self.cgpa,
            "subjects": [s.to_dict() for s in self.subjects],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SemesterResult":
        what = "semester result"
        data = require_mapping(data, what)
        check_keys(data, what, required=("semester_name", "sgpa", "cgpa", "subjects"))
        return cls(
            semester_name=require_str(data, "semester_name", what),
            sgpa=require_str(data, "sgpa", what),
            cgpa=require_str(data, "cgpa", what),
            subjects=[
                SubjectGrade.from_dict(s)
                for s in require_list(data["subjects"], f"{what}.subjects")
            ],
        )
