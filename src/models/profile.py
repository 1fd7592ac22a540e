"""Student profile models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.codec import check_keys, optional_str, require_mapping, str_list, str_map


@dataclass
class BasicProfile:
    """Profile header shown in the menu, with the parsed class details."""

    name: Optional[str] = None
    profile_image_url: Optional[str] = None
    details: Optional[str] = None
    gender: Optional[str] = None
    semester: Optional[str] = None
    group: Optional[str] = None
    batch: Optional[str] = None
    roll_no: Optional[str] = None
    menu_items: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "profile_image_url": self.profile_image_url,
            "details": self.details,
            "gender": self.gender,
            "semester": self.semester,
            "group": self.group,
            "batch": self.batch,
            "roll_no": self.roll_no,
            "menu_items": list(self.menu_items),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "BasicProfile":
        what = "basic profile"
        data = require_mapping(data, what)
        text_fields = (
            "name", "profile_image_url", "details", "gender",
            "semester", "group", "batch", "roll_no",
        )
        check_keys(data, what, required=("menu_items",), optional=text_fields)
        values = {key: optional_str(data, key, what) for key in text_fields}
        return cls(menu_items=str_list(data["menu_items"], f"{what}.menu_items"), **values)


@dataclass
class PersonalInfo:
    """Detailed personal record: student, parents and address."""

    student_details: Dict[str, str] = field(default_factory=dict)
    custom_fields: Dict[str, str] = field(default_factory=dict)
    address_info: Dict[str, str] = field(default_factory=dict)
    gender: Optional[str] = None
    father_photo_url: Optional[str] = None
    father_details: Dict[str, str] = field(default_factory=dict)
    mother_photo_url: Optional[str] = None
    mother_details: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "student_details": dict(self.student_details),
            "custom_fields": dict(self.custom_fields),
            "address_info": dict(self.address_info),
            "gender": self.gender,
            "father_photo_url": self.father_photo_url,
            "father_details": dict(self.father_details),
            "mother_photo_url": self.mother_photo_url,
            "mother_details": dict(self.mother_details),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PersonalInfo":
        what = "personal info"
        data = require_mapping(data, what)
        map_fields = (
            "student_details", "custom_fields", "address_info",
            "father_details", "mother_details",
        )
        check_keys(
            data,
            what,
            required=map_fields,
            optional=("gender", "father_photo_url", "mother_photo_url"),
        )
        maps = {key: str_map(data[key], f"{what}.{key}") for key in map_fields}
        return cls(
            gender=optional_str(data, "gender", what),
            father_photo_url=optional_str(data, "father_photo_url", what),
            mother_photo_url=optional_str(data, "mother_photo_url", what),
            **maps,
        )
