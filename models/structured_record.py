from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class FieldType(str, Enum):
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BOOLEAN = "boolean"

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_TYPES


_NUMERIC_TYPES = {FieldType.INT, FieldType.LONG, FieldType.FLOAT, FieldType.DOUBLE}


@dataclass(frozen=True, slots=True)
class Field:
    name: str
    type: FieldType
    nullable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "nullable": self.nullable}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Field":
        return cls(name=data["name"], type=FieldType(data["type"]), nullable=bool(data.get("nullable", False)))


@dataclass(frozen=True, slots=True)
class Schema:
    """Ordered, named set of typed fields describing a record."""

    name: str
    fields: Tuple[Field, ...]

    def __post_init__(self) -> None:
        seen = set()
        for item in self.fields:
            if item.name in seen:
                raise ValueError(f"Duplicate field '{item.name}' in schema '{self.name}'")
            seen.add(item.name)

    @classmethod
    def record_of(cls, name: str, *fields: Field) -> "Schema":
        return cls(name=name, fields=tuple(fields))

    @property
    def field_names(self) -> List[str]:
        return [item.name for item in self.fields]

    def get_field(self, name: str) -> Optional[Field]:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def with_field(self, new_field: Field) -> "Schema":
        if self.get_field(new_field.name) is not None:
            raise ValueError(f"Field '{new_field.name}' already exists in schema '{self.name}'")
        return Schema(name=self.name, fields=self.fields + (new_field,))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "fields": [item.to_dict() for item in self.fields]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Schema":
        return cls(name=data["name"], fields=tuple(Field.from_dict(item) for item in data.get("fields", [])))


def _coerce(item: Field, value: Any) -> Any:
    if value is None:
        if not item.nullable:
            raise ValueError(f"Field '{item.name}' is not nullable")
        return None
    if item.type in (FieldType.INT, FieldType.LONG):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Field '{item.name}' expects an integer, got {value!r}")
        return value
    if item.type in (FieldType.FLOAT, FieldType.DOUBLE):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Field '{item.name}' expects a number, got {value!r}")
        return float(value)
    if item.type is FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise ValueError(f"Field '{item.name}' expects a boolean, got {value!r}")
        return value
    if not isinstance(value, str):
        raise ValueError(f"Field '{item.name}' expects a string, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class StructuredRecord:
    """Generic row representation moved between pipeline stages."""

    schema: Schema
    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, schema: Schema, **values: Any) -> "StructuredRecord":
        unknown = set(values) - set(schema.field_names)
        if unknown:
            raise ValueError(f"Unknown fields for schema '{schema.name}': {', '.join(sorted(unknown))}")
        coerced = {item.name: _coerce(item, values.get(item.name)) for item in schema.fields}
        return cls(schema=schema, values=coerced)

    def get(self, name: str) -> Any:
        return self.values.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {"schema": self.schema.to_dict(), "values": dict(self.values)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StructuredRecord":
        return cls.of(Schema.from_dict(data["schema"]), **data.get("values", {}))
