"""Tool descriptors: the functions a model may ask the caller to run."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any

from pydantic import BaseModel

from parley.errors import ConfigurationError

PRIMITIVE_TYPES: frozenset[str] = frozenset(
    {"string", "number", "integer", "boolean", "object"}
)
_ARRAY_TYPE_RE = re.compile(r"^Array\.<(\w+)>$")
_TOOL_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]{0,63}$")


def parameter_type_schema(type_name: str) -> dict[str, Any]:
    """Expand a builder type (``string``, ``Array.<number>``) into JSON schema."""
    match = _ARRAY_TYPE_RE.match(type_name)
    if match:
        element = match.group(1).lower()
        if element not in PRIMITIVE_TYPES:
            raise ConfigurationError(
                f"Unsupported array element type: {match.group(1)!r}",
                hint=f"Use one of {sorted(PRIMITIVE_TYPES)} inside Array.<...>.",
            )
        return {"type": "array", "items": {"type": element}}
    normalized = type_name.lower()
    if normalized == "array":
        return {"type": "array", "items": {"type": "string"}}
    if normalized not in PRIMITIVE_TYPES:
        raise ConfigurationError(
            f"Unsupported parameter type: {type_name!r}",
            hint="Use string, number, integer, boolean, object or Array.<type>.",
        )
    return {"type": normalized}


@dataclass(frozen=True)
class ToolParameter:
    """One named tool parameter."""

    name: str
    type: str
    description: str = ""
    required: bool = True
    #: Pre-built JSON schema; bypasses ``type`` expansion when set.
    schema: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate the type string early for clear errors."""
        if not self.name:
            raise ConfigurationError("Tool parameter name must be non-empty")
        if self.schema is None:
            parameter_type_schema(self.type)

    def json_schema(self) -> dict[str, Any]:
        """Return this parameter's property schema."""
        prop = dict(self.schema) if self.schema is not None else parameter_type_schema(
            self.type
        )
        if self.description:
            prop["description"] = self.description
        return prop


@dataclass(frozen=True)
class ToolDescriptor:
    """A caller-declared function exposed to the model.

    ``ends_conversation`` executes the tool then stops the run with its result;
    ``return_arguments_only`` never executes and stops with the raw arguments.
    Setting both is rejected.
    """

    name: str
    description: str = ""
    parameters: tuple[ToolParameter, ...] = ()
    ends_conversation: bool = False
    return_arguments_only: bool = False

    def __post_init__(self) -> None:
        """Validate name, parameter uniqueness and terminal-flag exclusivity."""
        if not _TOOL_NAME_RE.match(self.name):
            raise ConfigurationError(
                f"Invalid tool name: {self.name!r}",
                hint="Use letters, digits, underscores or dashes (max 64 chars).",
            )
        if self.ends_conversation and self.return_arguments_only:
            raise ConfigurationError(
                f"Tool {self.name!r} cannot both end the conversation and "
                "return arguments only",
                hint="Pick one of ends_conversation or return_arguments_only.",
            )
        names = [p.name for p in self.parameters]
        if len(names) != len(set(names)):
            raise ConfigurationError(f"Tool {self.name!r} has duplicate parameters")

    @property
    def parameter_names(self) -> list[str]:
        """Parameter names in declaration (positional) order."""
        return [p.name for p in self.parameters]

    @property
    def is_terminal(self) -> bool:
        return self.ends_conversation or self.return_arguments_only

    def json_schema(self) -> dict[str, Any]:
        """Return the shared ``{type: object, properties, required}`` schema."""
        return {
            "type": "object",
            "properties": {p.name: p.json_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }

    @classmethod
    def from_model(
        cls,
        name: str,
        model: type[BaseModel],
        *,
        description: str | None = None,
        ends_conversation: bool = False,
        return_arguments_only: bool = False,
    ) -> ToolDescriptor:
        """Derive parameters from a Pydantic model's fields.

        Field order becomes positional order; fields without defaults are
        required.
        """
        schema = model.model_json_schema()
        required = set(schema.get("required", []))
        params: list[ToolParameter] = []
        for field_name, prop in schema.get("properties", {}).items():
            prop = dict(prop)
            prop.pop("title", None)
            prop.pop("default", None)
            prop_description = str(prop.pop("description", ""))
            if "type" not in prop:
                raise ConfigurationError(
                    f"Field {field_name!r} of {model.__name__} has no simple type",
                    hint="Tool parameters support primitive and array fields only.",
                )
            params.append(
                ToolParameter(
                    name=field_name,
                    type=str(prop["type"]),
                    description=prop_description,
                    required=field_name in required,
                    schema=prop,
                )
            )
        return cls(
            name=name,
            description=description or (model.__doc__ or "").strip(),
            parameters=tuple(params),
            ends_conversation=ends_conversation,
            return_arguments_only=return_arguments_only,
        )


@dataclass
class ToolBuilder:
    """Fluent builder for ToolDescriptor.

    Example:
        weather = (
            ToolBuilder("getWeather")
            .set_description("Current weather for a city.")
            .add_parameter("cityName", "string", "The city to look up.")
            .build()
        )
    """

    name: str
    description: str = ""
    _parameters: list[ToolParameter] = field(default_factory=list)
    _ends_conversation: bool = False
    _return_arguments_only: bool = False

    def set_description(self, description: str) -> ToolBuilder:
        self.description = description
        return self

    def add_parameter(
        self,
        name: str,
        type_name: str,
        description: str = "",
        *,
        optional: bool = False,
    ) -> ToolBuilder:
        self._parameters.append(
            ToolParameter(
                name=name, type=type_name, description=description, required=not optional
            )
        )
        return self

    def end_with_result(self, enabled: bool = True) -> ToolBuilder:
        """Stop the run after this tool executes, returning its result."""
        if enabled and self._return_arguments_only:
            raise ConfigurationError(
                f"Tool {self.name!r} already returns arguments only",
                hint="end_with_result and only_return_arguments are exclusive.",
            )
        self._ends_conversation = enabled
        return self

    def only_return_arguments(self, enabled: bool = True) -> ToolBuilder:
        """Never execute this tool; stop the run and return its arguments."""
        if enabled and self._ends_conversation:
            raise ConfigurationError(
                f"Tool {self.name!r} already ends the conversation",
                hint="end_with_result and only_return_arguments are exclusive.",
            )
        self._return_arguments_only = enabled
        return self

    def build(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=tuple(self._parameters),
            ends_conversation=self._ends_conversation,
            return_arguments_only=self._return_arguments_only,
        )
