"""Tool parameter schemas and translation from JSON Schema.

Every tool, local or remote, describes its arguments with one of the variants
below. The same value is used both to present the tool to the model
(``to_json_schema``) and to validate the arguments the model produced
(``validate``), which delegates to pydantic.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import ConfigDict, Field, TypeAdapter, ValidationError, create_model


class SchemaValidationError(ValueError):
    """Raised when a payload does not satisfy a parameter schema."""


class Schema(abc.ABC):
    """Base class for all parameter schema variants."""

    description: str

    @abc.abstractmethod
    def annotation(self) -> Any:
        """Return the Python type pydantic validates against."""

    @abc.abstractmethod
    def to_json_schema(self) -> Dict[str, Any]:
        """Render the schema in the JSON Schema dialect models understand."""

    def validate(self, value: Any) -> Any:
        """Validate ``value`` and return it as plain Python data.

        Validation is strict: strings are not coerced to numbers or booleans.
        Optional fields that were not supplied are omitted from the result.
        """
        adapter = TypeAdapter(self.annotation())
        try:
            parsed = adapter.validate_python(value, strict=True)
        except ValidationError as exc:
            raise SchemaValidationError(_format_errors(exc)) from exc
        return adapter.dump_python(parsed, by_alias=True, exclude_unset=True)

    def _described(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.description:
            payload["description"] = self.description
        return payload


@dataclass
class StringSchema(Schema):
    description: str = ""
    enum: Optional[Tuple[str, ...]] = None

    def annotation(self) -> Any:
        if self.enum:
            return Literal[self.enum]
        return str

    def to_json_schema(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": "string"}
        if self.enum:
            payload["enum"] = list(self.enum)
        return self._described(payload)


@dataclass
class NumberSchema(Schema):
    description: str = ""
    integer: bool = False

    def annotation(self) -> Any:
        return int if self.integer else float

    def to_json_schema(self) -> Dict[str, Any]:
        return self._described({"type": "integer" if self.integer else "number"})


@dataclass
class BooleanSchema(Schema):
    description: str = ""

    def annotation(self) -> Any:
        return bool

    def to_json_schema(self) -> Dict[str, Any]:
        return self._described({"type": "boolean"})


@dataclass
class ArraySchema(Schema):
    items: Schema = field(default_factory=StringSchema)
    description: str = ""

    def annotation(self) -> Any:
        return List[self.items.annotation()]  # type: ignore[misc]

    def to_json_schema(self) -> Dict[str, Any]:
        return self._described({"type": "array", "items": self.items.to_json_schema()})


@dataclass
class ObjectSchema(Schema):
    """Record with named fields; fields are optional unless listed in ``required``.

    Keys the schema does not mention are passed through untouched.
    """

    properties: Dict[str, Schema] = field(default_factory=dict)
    required: Tuple[str, ...] = ()
    description: str = ""
    title: str = "Arguments"

    def annotation(self) -> Any:
        # Field names are synthetic so that keys like "json" or "copy" cannot
        # collide with BaseModel attributes; the real key lives in the alias.
        fields: Dict[str, Any] = {}
        for index, (key, prop) in enumerate(self.properties.items()):
            inner = prop.annotation()
            if key in self.required:
                fields[f"field_{index}"] = (inner, Field(..., alias=key))
            else:
                fields[f"field_{index}"] = (Optional[inner], Field(None, alias=key))
        return create_model(self.title, __config__=ConfigDict(extra="allow"), **fields)

    def to_json_schema(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": "object",
            "properties": {key: prop.to_json_schema() for key, prop in self.properties.items()},
        }
        if self.required:
            payload["required"] = list(self.required)
        return self._described(payload)


@dataclass
class Unconstrained(Schema):
    """No constraints are known; any value is accepted as-is."""

    description: str = ""

    def annotation(self) -> Any:
        return Any

    def to_json_schema(self) -> Dict[str, Any]:
        return self._described({})


def from_json_schema(schema: Optional[Mapping[str, Any]]) -> Schema:
    """Translate a JSON Schema fragment advertised by a remote tool server."""
    if not isinstance(schema, Mapping):
        return Unconstrained()

    kind = schema.get("type")
    description = schema.get("description") or ""

    if kind == "string":
        enum = schema.get("enum")
        return StringSchema(description=description, enum=tuple(enum) if enum else None)
    if kind in ("number", "integer"):
        return NumberSchema(description=description, integer=kind == "integer")
    if kind == "boolean":
        return BooleanSchema(description=description)
    if kind == "array":
        items = schema.get("items") or {"type": "string"}
        return ArraySchema(items=from_json_schema(items), description=description)
    if kind == "object" or "properties" in schema:
        properties = schema.get("properties") or {}
        required = tuple(name for name in schema.get("required") or () if name in properties)
        return ObjectSchema(
            properties={key: from_json_schema(value) for key, value in properties.items()},
            required=required,
            description=description,
        )
    return Unconstrained(description=description)


def _format_errors(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        messages.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(messages)
