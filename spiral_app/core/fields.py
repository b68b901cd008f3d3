# spiral_app/core/fields.py

"""
Declarative field schemas shared by every widget.

A widget describes its form as a dict of field definitions (label, type,
tier, options, bounds, conditional). This module turns those definitions
into FieldSpec objects, annotates them for a given user tier, and validates
submitted values against them.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from spiral_app.config.constants import TIER_HIERARCHY, DEFAULT_TIER
from spiral_app.core.utils import (
    is_blank,
    sanitize_text_field,
    sanitize_textarea_field,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

FIELD_TYPES = (
    "text",
    "textarea",
    "select",
    "radio",
    "checkbox",
    "range",
    "number",
    "date",
    "time",
    "boolean",
)

TRUE_STRINGS = ("1", "true", "yes", "on")


def tier_level(tier: Optional[str]) -> int:
    return TIER_HIERARCHY.get(tier or DEFAULT_TIER, 0)


def can_use_tier(user_tier: Optional[str], required_tier: Optional[str]) -> bool:
    """Free fields are open to everyone; anything else compares ladder levels."""
    if not required_tier or required_tier == DEFAULT_TIER:
        return True
    return tier_level(user_tier) >= tier_level(required_tier)


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def to_int(value: Any) -> int:
    """Integer coercion for range/number inputs. Raises ValueError."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return int(float(text))


class FieldSpec:
    """One form field as declared by a widget."""

    def __init__(
        self,
        name: str,
        label: str,
        type: str = "text",
        required: bool = False,
        tier: str = DEFAULT_TIER,
        options: Optional[Dict[str, str]] = None,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        default: Any = None,
        conditional: Optional[Dict[str, Any]] = None,
        description: str = "",
        placeholder: str = "",
        rows: Optional[int] = None,
        required_message: Optional[str] = None,
    ):
        if type not in FIELD_TYPES:
            raise ValueError("Unsupported field type '%s' for field '%s'" % (type, name))
        self.name = name
        self.label = label
        self.type = type
        self.required = required
        self.tier = tier or DEFAULT_TIER
        self.options = dict(options or {})
        self.min_value = min_value
        self.max_value = max_value
        self.default = default
        self.conditional = conditional
        self.description = description
        self.placeholder = placeholder
        self.rows = rows
        self.required_message = required_message

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "FieldSpec":
        return cls(
            name=name,
            label=data.get("label", name.replace("_", " ").title()),
            type=data.get("type", "text"),
            required=bool(data.get("required", False)),
            tier=data.get("tier", DEFAULT_TIER),
            options=data.get("options"),
            min_value=data.get("min"),
            max_value=data.get("max"),
            default=data.get("default"),
            conditional=data.get("conditional"),
            description=data.get("description", ""),
            placeholder=data.get("placeholder", ""),
            rows=data.get("rows"),
            required_message=data.get("required_message"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "tier": self.tier,
        }
        if self.options:
            data["options"] = dict(self.options)
        if self.min_value is not None:
            data["min"] = self.min_value
        if self.max_value is not None:
            data["max"] = self.max_value
        if self.default is not None:
            data["default"] = self.default
        if self.conditional:
            data["conditional"] = dict(self.conditional)
        if self.description:
            data["description"] = self.description
        if self.placeholder:
            data["placeholder"] = self.placeholder
        if self.rows:
            data["rows"] = self.rows
        return data

    def missing_message(self) -> str:
        return self.required_message or "%s is required." % self.label

    @property
    def choices(self) -> List[str]:
        # The empty key is a "Select..." placeholder, never a valid answer
        return [key for key in self.options if key != ""]

    def is_visible(self, values: Dict[str, Any]) -> bool:
        """Evaluates the conditional against the submitted (raw) values."""
        if not self.conditional:
            return True
        actual = values.get(self.conditional.get("field"))
        expected = self.conditional.get("value")

        if isinstance(expected, bool):
            return to_bool(actual) == expected
        if not isinstance(expected, (list, tuple)):
            expected = [expected]
        expected = [str(v) for v in expected]
        if isinstance(actual, (list, tuple)):
            return any(str(v) in expected for v in actual)
        return actual is not None and str(actual) in expected

    def clean(self, value: Any) -> Tuple[Any, Optional[str]]:
        """
        Coerces a non-blank raw value. Returns (value, error_message); the
        value is None when the field produced nothing worth storing.
        """
        if self.type in ("range", "number"):
            try:
                number = to_int(value)
            except (TypeError, ValueError, OverflowError):
                return None, "%s must be a number." % self.label
            if self.min_value is not None and number < self.min_value:
                return None, "%s must be at least %d." % (self.label, self.min_value)
            if self.max_value is not None and number > self.max_value:
                return None, "%s must be at most %d." % (self.label, self.max_value)
            return number, None

        if self.type in ("select", "radio"):
            key = str(value)
            if key not in self.choices:
                return None, "Invalid value for %s." % self.label
            return key, None

        if self.type == "checkbox":
            submitted = value if isinstance(value, (list, tuple)) else [value]
            allowed = self.choices
            picked = []
            for item in submitted:
                item = str(item)
                if item in allowed and item not in picked:
                    picked.append(item)
            return (picked or None), None

        if self.type == "textarea":
            return (sanitize_textarea_field(value) or None), None

        if self.type == "date":
            try:
                parsed = datetime.strptime(str(value).strip(), "%Y-%m-%d")
            except ValueError:
                return None, "%s must be a valid date." % self.label
            return parsed.strftime("%Y-%m-%d"), None

        if self.type == "time":
            text = str(value).strip()
            for fmt in ("%H:%M", "%H:%M:%S"):
                try:
                    return datetime.strptime(text, fmt).strftime("%H:%M"), None
                except ValueError:
                    continue
            return None, "%s must be a valid time." % self.label

        if self.type == "boolean":
            return to_bool(value), None

        return (sanitize_text_field(value) or None), None


def build_fields(definitions: Dict[str, Dict[str, Any]]) -> Dict[str, FieldSpec]:
    return {name: FieldSpec.from_dict(name, data) for name, data in definitions.items()}


def build_schema(fields: Dict[str, FieldSpec], user_tier: str) -> List[Dict[str, Any]]:
    """Field list for a form, flagging the fields the user's tier cannot use."""
    schema = []
    for spec in fields.values():
        entry = spec.to_dict()
        entry["required_tier"] = spec.tier
        entry["locked"] = not can_use_tier(user_tier, spec.tier)
        schema.append(entry)
    return schema


def validate_fields(
    fields: Dict[str, FieldSpec], data: Dict[str, Any], user_tier: str
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Validates raw submitted data against the field definitions.

    Fields above the user's tier and fields whose conditional does not
    match are skipped entirely. Unknown keys are dropped. Returns the
    cleaned values together with error messages keyed by field name.
    """
    validated: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    data = data or {}

    for name, spec in fields.items():
        if not can_use_tier(user_tier, spec.tier):
            if not is_blank(data.get(name)):
                logger.debug("Dropping field '%s' above tier '%s'", name, user_tier)
            continue
        if not spec.is_visible(data):
            continue

        raw = data.get(name)
        if is_blank(raw):
            if spec.required:
                errors[name] = spec.missing_message()
            continue

        value, error = spec.clean(raw)
        if error:
            errors[name] = error
            continue
        if value is None:
            if spec.required:
                errors[name] = spec.missing_message()
            continue
        validated[name] = value

    return validated, errors
