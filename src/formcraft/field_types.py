"""Catalog of the field types a form can contain.

The catalog is static: every entry describes how a field type is shown in the
builder palette and which configuration a freshly added field starts with.
Lookups never raise; unknown identifiers simply yield ``None`` or an empty list.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from formcraft.config import LAYOUT_TYPES
from formcraft.utils import new_field_id


class FieldCategory:
    TEXT = "text"
    NUMBER = "number"
    CHOICE = "choice"
    DATE = "date"
    FILE = "file"
    LAYOUT = "layout"


@dataclass(frozen=True)
class FieldType:
    id: str
    label: str
    category: str
    description: str
    icon: str
    default_config: dict[str, Any] = field(default_factory=dict, compare=False)

    def new_config(self) -> dict[str, Any]:
        return copy.deepcopy(self.default_config)


_DEFAULT_OPTIONS = ["Option 1", "Option 2", "Option 3"]

FIELD_TYPES: tuple[FieldType, ...] = (
    FieldType(
        id="short_text",
        label="Short Answer",
        category=FieldCategory.TEXT,
        description="Single line text input",
        icon="type",
        default_config={
            "label": "Question",
            "placeholder": "Your answer",
            "required": False,
            "validation": {"min_length": None, "max_length": None},
        },
    ),
    FieldType(
        id="long_text",
        label="Long Answer",
        category=FieldCategory.TEXT,
        description="Multi-line text area",
        icon="align-left",
        default_config={
            "label": "Question",
            "placeholder": "Your detailed answer",
            "required": False,
            "rows": 4,
            "validation": {"min_length": None, "max_length": None},
        },
    ),
    FieldType(
        id="email",
        label="Email",
        category=FieldCategory.TEXT,
        description="Email address with validation",
        icon="mail",
        default_config={
            "label": "Email Address",
            "placeholder": "example@email.com",
            "required": False,
        },
    ),
    FieldType(
        id="phone",
        label="Phone",
        category=FieldCategory.TEXT,
        description="Phone number input",
        icon="phone",
        default_config={
            "label": "Phone Number",
            "placeholder": "+1 (555) 123-4567",
            "required": False,
        },
    ),
    FieldType(
        id="url",
        label="Website",
        category=FieldCategory.TEXT,
        description="URL with validation",
        icon="link",
        default_config={
            "label": "Website",
            "placeholder": "https://example.com",
            "required": False,
        },
    ),
    FieldType(
        id="number",
        label="Number",
        category=FieldCategory.NUMBER,
        description="Numeric input",
        icon="hash",
        default_config={
            "label": "Number",
            "placeholder": "0",
            "required": False,
            "validation": {"min": None, "max": None},
        },
    ),
    FieldType(
        id="rating",
        label="Star Rating",
        category=FieldCategory.NUMBER,
        description="1-5 star rating",
        icon="star",
        default_config={
            "label": "Rate your experience",
            "required": False,
            "max_rating": 5,
        },
    ),
    FieldType(
        id="scale",
        label="Linear Scale",
        category=FieldCategory.NUMBER,
        description="Pick a value on a numeric scale",
        icon="sliders",
        default_config={
            "label": "How likely are you to recommend us?",
            "required": False,
            "validation": {"min": 1, "max": 10},
        },
    ),
    FieldType(
        id="date",
        label="Date",
        category=FieldCategory.DATE,
        description="Date picker",
        icon="calendar",
        default_config={"label": "Select Date", "required": False},
    ),
    FieldType(
        id="time",
        label="Time",
        category=FieldCategory.DATE,
        description="Time picker",
        icon="clock",
        default_config={"label": "Select Time", "required": False},
    ),
    FieldType(
        id="multiple_choice",
        label="Multiple Choice",
        category=FieldCategory.CHOICE,
        description="Single selection from options",
        icon="circle",
        default_config={
            "label": "Choose one option",
            "required": False,
            "options": _DEFAULT_OPTIONS,
            "allow_other": False,
        },
    ),
    FieldType(
        id="checkboxes",
        label="Checkboxes",
        category=FieldCategory.CHOICE,
        description="Multiple selections allowed",
        icon="check-square",
        default_config={
            "label": "Select all that apply",
            "required": False,
            "options": _DEFAULT_OPTIONS,
            "allow_other": False,
        },
    ),
    FieldType(
        id="dropdown",
        label="Dropdown",
        category=FieldCategory.CHOICE,
        description="Dropdown select menu",
        icon="chevron-down",
        default_config={
            "label": "Select from dropdown",
            "placeholder": "Choose an option",
            "required": False,
            "options": _DEFAULT_OPTIONS,
        },
    ),
    FieldType(
        id="file_upload",
        label="File Upload",
        category=FieldCategory.FILE,
        description="File upload field",
        icon="file-up",
        default_config={
            "label": "Upload File",
            "required": False,
            "max_size": 10,
            "allowed_types": ["image/*", "application/pdf"],
        },
    ),
    FieldType(
        id="section_heading",
        label="Section Heading",
        category=FieldCategory.LAYOUT,
        description="Section title",
        icon="heading",
        default_config={"label": "Section Title", "help_text": ""},
    ),
    FieldType(
        id="description_text",
        label="Description",
        category=FieldCategory.LAYOUT,
        description="Paragraph of explanatory text",
        icon="text",
        default_config={"label": "Add some context for this section."},
    ),
    FieldType(
        id="divider",
        label="Divider",
        category=FieldCategory.LAYOUT,
        description="Horizontal line separator",
        icon="minus",
        default_config={},
    ),
)

_BY_ID = {field_type.id: field_type for field_type in FIELD_TYPES}


def get_field_type_by_id(type_id: Any) -> FieldType | None:
    if not isinstance(type_id, str):
        return None
    return _BY_ID.get(type_id)


def get_fields_by_category(category: str) -> list[FieldType]:
    return [field_type for field_type in FIELD_TYPES if field_type.category == category]


def get_all_field_types() -> list[FieldType]:
    return list(FIELD_TYPES)


def is_layout_type(type_id: Any) -> bool:
    return type_id in LAYOUT_TYPES


def new_field(type_id: str, existing_ids: set[str] | None = None) -> dict[str, Any] | None:
    """Build a field definition for ``type_id`` from its default configuration."""
    field_type = get_field_type_by_id(type_id)
    if field_type is None:
        return None
    return {
        "id": new_field_id(existing_ids),
        "type": field_type.id,
        **field_type.new_config(),
    }


def field_type_to_dict(field_type: FieldType) -> dict[str, Any]:
    return {
        "id": field_type.id,
        "label": field_type.label,
        "category": field_type.category,
        "description": field_type.description,
        "icon": field_type.icon,
        "default_config": field_type.new_config(),
    }
