from __future__ import annotations

import re
from typing import Any

import orjson
from jsonschema import Draft7Validator, FormatChecker

from formcraft.config import LAYOUT_TYPES
from formcraft.field_types import get_field_type_by_id
from formcraft.utils import deep_merge, is_blank, is_valid_url, new_field_id

CHOICE_TYPES = {"multiple_choice", "checkboxes", "dropdown"}
TEXT_LENGTH_TYPES = {"short_text", "long_text"}
NUMERIC_TYPES = {"number", "rating", "scale"}
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FORMAT_CHECKER = FormatChecker(formats=())


@FORMAT_CHECKER.checks("email")
def _check_email(value: object) -> bool:
    return not isinstance(value, str) or bool(EMAIL_PATTERN.match(value))


@FORMAT_CHECKER.checks("uri")
def _check_uri(value: object) -> bool:
    return not isinstance(value, str) or is_valid_url(value)


def input_fields(fields: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [field for field in fields if field.get("type") not in LAYOUT_TYPES]


def _number_or_none(value: Any) -> float | int | None:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


def parse_fields_json(fields_json: str) -> tuple[list[dict[str, Any]], list[str]]:
    """Parse the builder's JSON field list into normalized field definitions."""
    try:
        raw_fields = orjson.loads(fields_json) if fields_json.strip() else []
    except orjson.JSONDecodeError:
        return [], ["Could not parse the field definitions"]
    if not isinstance(raw_fields, list):
        return [], ["Field definitions must be a list"]
    return normalize_fields(raw_fields)


def normalize_fields(raw_fields: list[Any]) -> tuple[list[dict[str, Any]], list[str]]:
    errors: list[str] = []
    seen_ids: set[str] = set()
    fields: list[dict[str, Any]] = []

    for index, raw in enumerate(raw_fields, start=1):
        loc = f"Field {index}"
        if not isinstance(raw, dict):
            errors.append(f"{loc}: must be an object")
            continue
        field_type = str(raw.get("type", "")).strip()
        registry_entry = get_field_type_by_id(field_type)
        if registry_entry is None:
            errors.append(f"{loc}: unknown field type ({field_type})")
            continue

        field = deep_merge(registry_entry.new_config(), raw)
        field["type"] = field_type
        field_id = str(raw.get("id", "")).strip() or new_field_id(seen_ids)
        if field_id in seen_ids:
            errors.append(f"{loc}: duplicate field id ({field_id})")
        seen_ids.add(field_id)
        field["id"] = field_id
        field["label"] = str(field.get("label", "")).strip()
        field["required"] = bool(field.get("required")) and field_type not in LAYOUT_TYPES

        if field_type not in LAYOUT_TYPES and not field["label"]:
            errors.append(f"{loc}: a label is required")

        if field_type in CHOICE_TYPES:
            options = [
                str(option).strip()
                for option in (field.get("options") or [])
                if str(option).strip()
            ]
            if not options:
                errors.append(f"{loc}: add at least one option")
            field["options"] = options

        validation = field.get("validation")
        if isinstance(validation, dict):
            for key in ("min", "max", "min_length", "max_length"):
                if key in validation:
                    validation[key] = _number_or_none(validation[key])
            pattern = validation.get("pattern")
            if pattern:
                try:
                    re.compile(pattern)
                except re.error:
                    errors.append(f"{loc}: invalid pattern ({pattern})")
        fields.append(field)

    return fields, errors


def _property_for(field: dict[str, Any]) -> dict[str, Any]:
    field_type = field["type"]
    validation = field.get("validation") or {}
    prop: dict[str, Any]

    if field_type == "checkboxes":
        prop = {"type": "array", "items": {"type": "string"}}
    elif field_type in NUMERIC_TYPES:
        prop = {"type": "number"}
        if field_type == "rating":
            prop["minimum"] = 1
            prop["maximum"] = field.get("max_rating") or validation.get("max") or 5
        else:
            if validation.get("min") is not None:
                prop["minimum"] = validation["min"]
            if validation.get("max") is not None:
                prop["maximum"] = validation["max"]
    elif field_type == "file_upload":
        prop = {"type": ["object", "string"]}
    else:
        prop = {"type": "string"}
        if field_type == "email":
            prop["format"] = "email"
        elif field_type == "url":
            prop["format"] = "uri"
        if field_type in TEXT_LENGTH_TYPES:
            if validation.get("min_length"):
                prop["minLength"] = int(validation["min_length"])
            if validation.get("max_length"):
                prop["maxLength"] = int(validation["max_length"])
    if validation.get("pattern") and prop.get("type") == "string":
        prop["pattern"] = validation["pattern"]
    return prop


def build_response_schema(fields: list[dict[str, Any]]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for field in input_fields(fields):
        properties[field["id"]] = _property_for(field)
        if field.get("required"):
            required.append(field["id"])
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def coerce_answers(fields: list[dict[str, Any]], answers: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    """Drop empty answers and convert numeric ones; unparseable numbers become errors."""
    cleaned: dict[str, Any] = {}
    errors: dict[str, str] = {}
    for field in input_fields(fields):
        field_id = field["id"]
        value = answers.get(field_id)
        if is_blank(value):
            continue
        if field["type"] in NUMERIC_TYPES:
            number = _number_or_none(value)
            if number is None:
                errors[field_id] = "Please enter a valid number"
                continue
            value = number
        cleaned[field_id] = value
    return cleaned, errors


def _message_for(error: Any, field: dict[str, Any]) -> str:
    validation = field.get("validation") or {}
    keyword = error.validator
    if keyword == "required":
        return "This field is required"
    if keyword == "format":
        if field["type"] == "email":
            return "Please enter a valid email address"
        return "Please enter a valid URL"
    if keyword == "minimum":
        return f"Minimum value is {error.validator_value}"
    if keyword == "maximum":
        return f"Maximum value is {error.validator_value}"
    if keyword == "minLength":
        return f"Minimum length is {error.validator_value} characters"
    if keyword == "maxLength":
        return f"Maximum length is {error.validator_value} characters"
    if keyword == "pattern":
        return validation.get("error_message") or "Invalid format"
    if keyword == "type" and field["type"] in NUMERIC_TYPES:
        return "Please enter a valid number"
    return "Invalid value"


def validate_answers(fields: list[dict[str, Any]], answers: dict[str, Any]) -> dict[str, str]:
    """Return a mapping of field id to the first error message for that field."""
    cleaned, errors = coerce_answers(fields, answers)
    by_id = {field["id"]: field for field in input_fields(fields)}
    validator = Draft7Validator(build_response_schema(fields), format_checker=FORMAT_CHECKER)
    for error in sorted(validator.iter_errors(cleaned), key=lambda err: list(err.path)):
        if error.validator == "required":
            missing = [key for key in error.validator_value if key not in cleaned]
            for field_id in missing:
                if field_id in by_id:
                    errors.setdefault(field_id, "This field is required")
            continue
        if not error.path:
            continue
        field_id = str(error.path[0])
        if field_id in by_id:
            errors.setdefault(field_id, _message_for(error, by_id[field_id]))
    return errors
