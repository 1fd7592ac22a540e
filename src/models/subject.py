"""Registered subjects model."""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from models.codec import (
    check_keys,
    optional_str,
    require_bool,
    require_list,
    require_mapping,
    require_str,
)


@dataclass
class Subject:
    """One registered subject."""

    name: Optional[str] = None
    specialization: Optional[str] = None
    code: Optional[str] = None
    subject_type: Optional[str] = None  # Theory, Practical, ...
    group: Optional[str] = None
    credits: Optional[str] = None
    is_optional: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "specialization": self.specialization,
            "code": self.code,
            "subject_type": self.subject_type,
            "group": self.group,
            "credits": self.credits,
            "is_optional": self.is_optional,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Subject":
        data = require_mapping(data, "subject")
        check_keys(
            data,
            "subject",
            required=("is_optional",),
            optional=("name", "specialization", "code", "subject_type", "group", "credits"),
        )
        return cls(
            name=optional_str(data, "name", "subject"),
            specialization=optional_str(data, "specialization", "subject"),
            code=optional_str(data, "code", "subject"),
            subject_type=optional_str(data, "subject_type", "subject"),
            group=optional_str(data, "group", "subject"),
            credits=optional_str(data, "credits", "subject"),
            is_optional=require_bool(data, "is_optional", "subject"),
        )


@dataclass
class SubjectsSnapshot:
    """Subject list of one session with the semester it belongs to."""

    subjects: List[Subject] = field(default_factory=list)
    semester_title: str = "Subjects"
    current_semester: Optional[str] = None
    current_group: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "subjects": [s.to_dict() for s in self.subjects],
            "semester_title": self.semester_title,
            "current_semester": self.current_semester,
            "current_group": self.current_group,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SubjectsSnapshot":
        data = require_mapping(data, "subjects snapshot")
        check_keys(
            data,
            "subjects snapshot",
            required=("subjects", "semester_title"),
            optional=("current_semester", "current_group"),
        )
        return cls(
            subjects=[Subject.from_dict(s) for s in require_list(data["subjects"], "subjects")],
            semester_title=require_str(data, "semester_title", "subjects snapshot"),
            current_semester=optional_str(data, "current_semester", "subjects snapshot"),
            current_group=optional_str(data, "current_group", "subjects snapshot"),
        )
