"""
Base domain model with JSON report serialization.

Run reports are consumed by CI dashboards that expect camelCase keys,
enum values rather than names, and ISO 8601 timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict


def to_camel_case(snake_str: str) -> str:
    """
    Convert snake_case to camelCase.

    Examples:
        >>> to_camel_case("var_file")
        'varFile'
        >>> to_camel_case("requires_approval")
        'requiresApproval'
    """
    components = snake_str.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


def _serialize(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "to_json"):
        return value.to_json()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {str(_serialize(k)): _serialize(v) for k, v in value.items()}
    return value


@dataclass
class BaseDomainModel:
    """
    Base class for domain models that appear in run reports.

    - to_json() serializes to camelCase
    - Enum values are serialized by value
    - Dates are serialized as ISO 8601 strings
    - Paths are serialized as strings
    """

    def to_json(self) -> Dict[str, Any]:
        """Serialize to report JSON (camelCase keys)."""
        return {
            to_camel_case(field.name): _serialize(getattr(self, field.name))
            for field in fields(self)
        }

    def __str__(self) -> str:
        """String representation for logging."""
        field_strs = [f"{field.name}={getattr(self, field.name)!r}" for field in fields(self)]
        return f"{self.__class__.__name__}({', '.join(field_strs)})"
