"""Payload normalization and self-describing payload schemas.

Tool payloads arrive either as a JSON object or as a string holding one.
``normalize_payload`` turns both into a read-only mapping; variants then
validate that mapping against their pydantic payload model.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from datastore_mcp.errors import PayloadError

M = TypeVar("M", bound=BaseModel)

PAYLOAD_HINT = "Use the `payload` tool to see the payload this connection expects."


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list | tuple):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


def normalize_payload(raw: Any) -> Mapping[str, Any]:
    """Parse a raw tool payload into an immutable mapping.

    Nested objects become read-only mappings and arrays become tuples.

    Raises:
        PayloadError: If a string payload is not valid JSON or the payload is not an object.
    """
    if raw is None:
        value: Any = {}
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            value = {}
        else:
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                raise PayloadError(
                    f"Invalid JSON in payload string. {e.msg} at line {e.lineno} "
                    f"column {e.colno}. {PAYLOAD_HINT}"
                ) from e
    elif isinstance(raw, Mapping):
        value = dict(raw)
    else:
        raise PayloadError(
            f"Payload must be a JSON object or a string containing one, "
            f"got {type(raw).__name__}. {PAYLOAD_HINT}"
        )

    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise PayloadError(
            f"Payload must be a JSON object, got {type(value).__name__}. {PAYLOAD_HINT}"
        )
    return _freeze(value)


def parse_payload(model: type[M], payload: Mapping[str, Any]) -> M:
    """Validate a normalized payload against a variant's payload model.

    The model receives its own mutable copy of the payload.
    """
    try:
        return model.model_validate(_thaw(payload))
    except ValidationError as e:
        problems = []
        for item in e.errors():
            location = ".".join(str(part) for part in item["loc"]) or "payload"
            problems.append(f"{location}: {item['msg']}")
        raise PayloadError(f"Invalid payload ({'; '.join(problems)}). {PAYLOAD_HINT}") from e


@dataclass(frozen=True)
class PayloadField:
    name: str
    type: str
    required: bool
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "required": self.required, "description": self.description}


def _type_tag(schema: Mapping[str, Any]) -> str:
    if "enum" in schema:
        return "|".join(str(value) for value in schema["enum"])
    if "const" in schema:
        return str(schema["const"])
    if "anyOf" in schema:
        tags = [_type_tag(option) for option in schema["anyOf"]]
        return "|".join(tag for tag in dict.fromkeys(tags) if tag != "null") or "null"
    if "$ref" in schema:
        return "object"
    kind = schema.get("type")
    if isinstance(kind, list):
        return "|".join(str(k) for k in kind if k != "null")
    if kind == "array":
        items = schema.get("items")
        inner = _type_tag(items) if isinstance(items, Mapping) and items else "any"
        return f"{inner}[]"
    return str(kind) if kind else "any"


@dataclass(frozen=True)
class PayloadDescription:
    """Field-by-field description of a variant's payload.

    Derived from the variant's pydantic payload model so the description and
    the validation can never drift apart.
    """

    fields: tuple[PayloadField, ...]
    json_schema: Mapping[str, Any]
    title: str = ""

    @classmethod
    def from_model(cls, model: type[BaseModel]) -> PayloadDescription:
        schema = model.model_json_schema(by_alias=True)
        required = set(schema.get("required", ()))
        fields = tuple(
            PayloadField(
                name=name,
                type=_type_tag(prop),
                required=name in required,
                description=str(prop.get("description", "")),
            )
            for name, prop in schema.get("properties", {}).items()
        )
        return cls(fields=fields, json_schema=schema, title=(model.__doc__ or "").strip())

    def field(self, name: str) -> PayloadField | None:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {item.name: item.to_dict() for item in self.fields}
