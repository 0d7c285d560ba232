"""Respondent-facing rendering of a single form field.

``FormFillField`` dispatches on :class:`FieldKind` to one Jinja2 macro per
presentation. It keeps no state: the caller owns the value and receives every
edit through the ``on_change`` callback.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

import markupsafe
from jinja2 import Environment, FileSystemLoader, select_autoescape

from formcraft.config import BASE_DIR


class FieldKind(str, Enum):
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    MULTIPLE_CHOICE = "multiple_choice"
    CHECKBOXES = "checkboxes"
    DROPDOWN = "dropdown"
    RATING = "rating"
    SCALE = "scale"
    FILE_UPLOAD = "file_upload"
    SECTION_HEADING = "section_heading"
    DESCRIPTION_TEXT = "description_text"
    DIVIDER = "divider"

    @classmethod
    def parse(cls, type_id: Any) -> FieldKind | None:
        try:
            return cls(type_id)
        except ValueError:
            return None

    @property
    def is_layout(self) -> bool:
        return self in _LAYOUT_KINDS


_LAYOUT_KINDS = frozenset(
    {FieldKind.SECTION_HEADING, FieldKind.DESCRIPTION_TEXT, FieldKind.DIVIDER}
)

# Macro in templates/fields.html for each kind.
_MACROS: dict[FieldKind, str] = {
    FieldKind.SHORT_TEXT: "short_text",
    FieldKind.LONG_TEXT: "long_text",
    FieldKind.EMAIL: "email_input",
    FieldKind.PHONE: "phone_input",
    FieldKind.URL: "url_input",
    FieldKind.NUMBER: "number_input",
    FieldKind.DATE: "date_input",
    FieldKind.TIME: "time_input",
    FieldKind.MULTIPLE_CHOICE: "multiple_choice",
    FieldKind.CHECKBOXES: "checkboxes",
    FieldKind.DROPDOWN: "dropdown",
    FieldKind.RATING: "rating",
    FieldKind.SCALE: "scale",
    FieldKind.FILE_UPLOAD: "file_upload",
    FieldKind.SECTION_HEADING: "section_heading",
    FieldKind.DESCRIPTION_TEXT: "description_text",
    FieldKind.DIVIDER: "divider",
}

_env = Environment(
    loader=FileSystemLoader(str(BASE_DIR / "templates")),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def _fields_module() -> Any:
    return _env.get_template("fields.html").module


def _rating_max(field: dict[str, Any]) -> int:
    validation = field.get("validation") or {}
    return int(field.get("max_rating") or validation.get("max") or 5)


def _scale_bounds(field: dict[str, Any]) -> tuple[int, int]:
    validation = field.get("validation") or {}
    low = validation.get("min")
    high = validation.get("max")
    return int(1 if low is None else low), int(10 if high is None else high)


def _to_int(raw: Any) -> Any:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return raw


class FormFillField:
    def __init__(
        self,
        field: dict[str, Any],
        value: Any = None,
        on_change: Callable[[Any], None] | None = None,
        error: str | None = None,
        theme: dict[str, Any] | None = None,
    ) -> None:
        self.field = field
        self.value = value
        self.on_change = on_change
        self.error = error
        self.theme = theme or {}
        self.kind = FieldKind.parse(field.get("type"))

    def edit(self, raw: Any) -> Any:
        """Translate one user edit into the field's new value and report it."""
        kind = self.kind
        if kind is FieldKind.CHECKBOXES:
            selected = list(self.value or [])
            new_value: Any = (
                [item for item in selected if item != raw]
                if raw in selected
                else [*selected, raw]
            )
        elif kind in (FieldKind.RATING, FieldKind.SCALE):
            new_value = _to_int(raw)
        elif kind is FieldKind.FILE_UPLOAD:
            new_value = getattr(raw, "filename", raw)
        else:
            new_value = raw
        if self.on_change is not None:
            self.on_change(new_value)
        return new_value

    def render_input(self) -> markupsafe.Markup:
        module = _fields_module()
        if self.kind is None:
            return module.unsupported(self.field)
        macro = getattr(module, _MACROS[self.kind])
        field = self.field
        if self.kind is FieldKind.RATING:
            return macro(field, self.value, _rating_max(field), self.theme)
        if self.kind is FieldKind.SCALE:
            low, high = _scale_bounds(field)
            return macro(field, self.value, low, high, self.theme)
        if self.kind.is_layout:
            return macro(field)
        return macro(field, self.value)

    def render(self) -> markupsafe.Markup:
        inner = self.render_input()
        if self.kind is None or self.kind.is_layout:
            return _fields_module().layout_wrapper(inner)
        return _fields_module().input_wrapper(self.field, inner, self.error)

    def __html__(self) -> str:
        return str(self.render())


def render_field(
    field: dict[str, Any],
    value: Any = None,
    error: str | None = None,
    theme: dict[str, Any] | None = None,
) -> markupsafe.Markup:
    return FormFillField(field, value, error=error, theme=theme).render()
