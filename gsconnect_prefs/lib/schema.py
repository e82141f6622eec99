"""
Settings schema model.

Describes each settings key (value type, range, metadata, default) and maps
a key's type tag to the kind of control used to edit it. This module has no
GTK dependency so it can be used by every settings backend.
"""
from __future__ import annotations

import enum
import logging
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from gsconnect_prefs.lib import utility

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================
SCHEMA_ID: Final[str] = "org.gnome.shell.extensions.gsconnect"
SCHEMA_FILENAME: Final[str] = "schema.yaml"

RANGE_TYPE: Final[str] = "type"
RANGE_ENUM: Final[str] = "enum"
RANGE_FLAGS: Final[str] = "flags"
RANGE_INTERVAL: Final[str] = "range"

NUMBER_TYPES: Final[str] = "ynqiuxthd"
STRING_TYPES: Final[str] = "sog"
MAYBE_BOOLEAN: Final[str] = "mb"

# Inclusive bounds for each GVariant numeric type
NUMBER_BOUNDS: Final[dict[str, tuple[float, float]]] = {
    "y": (0, 2**8 - 1),
    "n": (-(2**15), 2**15 - 1),
    "q": (0, 2**16 - 1),
    "i": (-(2**31), 2**31 - 1),
    "u": (0, 2**32 - 1),
    "x": (-(2**63), 2**63 - 1),
    "t": (0, 2**64 - 1),
    "h": (-(2**31), 2**31 - 1),
    "d": (-sys.float_info.max, sys.float_info.max),
}


class SchemaError(ValueError):
    """Raised when schema data cannot describe a key."""


class SettingKind(enum.Enum):
    """Control variants a settings key can be edited with."""

    BOOLEAN = "boolean"
    ENUM = "enum"
    FLAGS = "flags"
    MAYBE = "maybe"
    NUMBER = "number"
    RANGE = "range"
    STRING = "string"
    OTHER = "other"


def select_setting_kind(type_tag: str) -> SettingKind:
    """Return the control kind for a key's type tag.

    Unrecognized tags fall back to SettingKind.OTHER.
    """
    if type_tag == "b":
        return SettingKind.BOOLEAN
    if type_tag == RANGE_ENUM:
        return SettingKind.ENUM
    if type_tag == RANGE_FLAGS:
        return SettingKind.FLAGS
    if type_tag == MAYBE_BOOLEAN:
        return SettingKind.MAYBE
    if len(type_tag) == 1 and type_tag in NUMBER_TYPES:
        return SettingKind.NUMBER
    if type_tag == RANGE_INTERVAL:
        return SettingKind.RANGE
    if len(type_tag) == 1 and type_tag in STRING_TYPES:
        return SettingKind.STRING
    return SettingKind.OTHER


def number_bounds(value_type: str) -> tuple[float, float]:
    """Inclusive bounds for a numeric GVariant type string."""
    try:
        return NUMBER_BOUNDS[value_type]
    except KeyError:
        raise SchemaError(f"Not a numeric type: {value_type!r}") from None


# =============================================================================
# KEY & SCHEMA
# =============================================================================
@dataclass(frozen=True, slots=True)
class SchemaKey:
    """Metadata for a single settings key."""

    name: str
    value_type: str
    default: Any = None
    summary: str = ""
    description: str | None = None
    range_type: str = RANGE_TYPE
    choices: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None

    @property
    def type_tag(self) -> str:
        """The range kind when the key declares one, else the value type."""
        return self.range_type if self.range_type != RANGE_TYPE else self.value_type

    @property
    def kind(self) -> SettingKind:
        return select_setting_kind(self.type_tag)

    def validate(self, value: Any) -> Any:
        """Return `value` normalized for this key, or raise SchemaError."""
        kind = self.kind

        if kind is SettingKind.BOOLEAN:
            if isinstance(value, bool):
                return value
        elif kind is SettingKind.MAYBE:
            if value is None or isinstance(value, bool):
                return value
        elif kind is SettingKind.ENUM:
            if isinstance(value, str) and value in self.choices:
                return value
        elif kind is SettingKind.FLAGS:
            if isinstance(value, (list, tuple)) and all(
                isinstance(v, str) and v in self.choices for v in value
            ):
                # Keep declaration order and drop duplicates
                return [c for c in self.choices if c in value]
        elif kind is SettingKind.NUMBER:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                low, high = number_bounds(self.value_type)
                if self.value_type != "d" and isinstance(value, float):
                    if not value.is_integer():
                        raise SchemaError(f"{self.name}: expected an integer, got {value!r}")
                    value = int(value)
                if low <= value <= high:
                    return float(value) if self.value_type == "d" else value
        elif kind is SettingKind.RANGE:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                low = self.minimum if self.minimum is not None else value
                high = self.maximum if self.maximum is not None else value
                if low <= value <= high:
                    return value
        elif kind is SettingKind.STRING:
            if isinstance(value, str):
                return value
        else:
            return value

        raise SchemaError(
            f"{self.name}: {value!r} is not a valid {self.type_tag!r} value"
        )

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> SchemaKey:
        """Build a key from its YAML definition."""
        value_type = data.get("type")
        if not isinstance(value_type, str) or not value_type:
            raise SchemaError(f"{name}: missing value type")

        range_type = str(data.get("range", RANGE_TYPE))
        if range_type not in (RANGE_TYPE, RANGE_ENUM, RANGE_FLAGS, RANGE_INTERVAL):
            raise SchemaError(f"{name}: unknown range {range_type!r}")

        choices = data.get("choices") or ()
        if not isinstance(choices, (list, tuple)):
            raise SchemaError(f"{name}: choices must be a list")

        description = data.get("description")
        return cls(
            name=name,
            value_type=value_type,
            default=data.get("default"),
            summary=str(data.get("summary", name)),
            description=str(description) if description is not None else None,
            range_type=range_type,
            choices=tuple(str(c) for c in choices),
            minimum=data.get("min"),
            maximum=data.get("max"),
        )


@dataclass(slots=True)
class Schema:
    """An ordered collection of settings keys."""

    schema_id: str = SCHEMA_ID
    keys: dict[str, SchemaKey] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.keys

    def __iter__(self) -> Iterator[SchemaKey]:
        return iter(self.keys.values())

    def has_key(self, name: str) -> bool:
        return name in self.keys

    def get_key(self, name: str) -> SchemaKey:
        try:
            return self.keys[name]
        except KeyError:
            raise SchemaError(f"Unknown settings key: {name!r}") from None

    def list_keys(self) -> list[str]:
        return list(self.keys)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Schema:
        raw_keys = data.get("keys", {})
        if not isinstance(raw_keys, dict):
            raise SchemaError("'keys' must be a mapping")

        schema = cls(schema_id=str(data.get("schema", SCHEMA_ID)))
        for name, definition in raw_keys.items():
            if not isinstance(definition, dict):
                log.warning("Skipping invalid key definition %r", name)
                continue
            key = SchemaKey.from_mapping(str(name), definition)
            if key.default is not None or key.kind is SettingKind.MAYBE:
                key.validate(key.default)
            schema.keys[key.name] = key
        return schema


def load_schema(path: Path | None = None) -> Schema:
    """Load the schema from YAML, defaulting to the bundled definition."""
    path = path or utility.data_file(SCHEMA_FILENAME)
    return Schema.from_mapping(utility.load_config(path))
