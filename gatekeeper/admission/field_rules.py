"""Per-field validation rules for form-style payloads."""

from __future__ import annotations

import enum
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


class FieldKind(str, enum.Enum):
    email = "email"
    phone = "phone"
    alphanumeric = "alphanumeric"
    name = "name"
    none = "none"


_FORMAT_PATTERNS: dict[FieldKind, re.Pattern[str]] = {
    FieldKind.email: re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
    FieldKind.phone: re.compile(r"^\+?[\d\s\-\(\)]{10,}$"),
    FieldKind.alphanumeric: re.compile(r"^[a-zA-Z0-9]+$"),
    FieldKind.name: re.compile(r"^[a-zA-Z\s]{2,50}$"),
}

VALIDATORS: dict[FieldKind, Callable[[str], bool]] = {
    kind: (lambda value, _p=pattern: _p.fullmatch(value) is not None)
    for kind, pattern in _FORMAT_PATTERNS.items()
}


@dataclass(frozen=True)
class FieldRule:
    required: bool = False
    kind: FieldKind = FieldKind.none
    min_length: int | None = None
    max_length: int | None = None


def _check_field(field: str, rule: FieldRule, value: Any) -> list[str]:
    if value is not None and not isinstance(value, str):
        value = str(value)

    if rule.required and (not value or value.strip() == ""):
        return [f"{field} is required"]
    if not value:
        return []

    errors = []
    validator = VALIDATORS.get(rule.kind)
    if validator is not None and not validator(value):
        errors.append(f"{field} has invalid format")
    if rule.min_length and len(value) < rule.min_length:
        errors.append(f"{field} must be at least {rule.min_length} characters")
    if rule.max_length and len(value) > rule.max_length:
        errors.append(f"{field} must be no more than {rule.max_length} characters")
    return errors


def validate_fields(rules: Mapping[str, FieldRule], record: Mapping[str, Any]) -> list[str]:
    """Collect every violation, in rule-declaration order.

    Checks within a field run required -> format -> min -> max. A failed
    required check skips the rest for that field.
    """
    errors: list[str] = []
    for field, rule in rules.items():
        errors.extend(_check_field(field, rule, record.get(field)))
    return errors
