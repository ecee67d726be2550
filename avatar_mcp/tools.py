"""Tool definitions, parameter schemas and the tool registry."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from .errors import SchemaError
from .logging import get_logger

logger = get_logger("tools")


class ParamType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"


# JSON-schema types folded onto the four supported variants
_TYPE_ALIASES = {
    "integer": ParamType.NUMBER,
    "array": ParamType.OBJECT,
}


@dataclass(frozen=True)
class ParamSchema:
    """A single tool parameter, tagged by its JSON type."""

    type: ParamType
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParamSchema":
        """Build a schema from a JSON-schema property.

        A union type such as ``["string", "null"]`` takes its first non-null member.

        Raises:
            SchemaError: If the property is not an object or its type is unsupported
        """
        if not isinstance(data, dict):
            raise SchemaError(f"Parameter schema must be an object, got {data!r}")

        raw_type = data.get("type", "string")
        if isinstance(raw_type, list):
            members = [t for t in raw_type if isinstance(t, str) and t != "null"]
            raw_type = members[0] if members else None
        if not isinstance(raw_type, str):
            raise SchemaError(f"Unsupported parameter type: {data.get('type')!r}")

        description = data.get("description", "")
        if raw_type in _TYPE_ALIASES:
            param_type = _TYPE_ALIASES[raw_type]
        else:
            try:
                param_type = ParamType(raw_type)
            except ValueError:
                raise SchemaError(f"Unsupported parameter type: {raw_type!r}")
        return cls(type=param_type, description=description if isinstance(description, str) else "")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.description:
            data["description"] = self.description
        return data

    def accepts(self, value: Any) -> bool:
        """Check whether a Python value matches this parameter's type."""
        if self.type is ParamType.STRING:
            return isinstance(value, str)
        if self.type is ParamType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self.type is ParamType.BOOLEAN:
            return isinstance(value, bool)
        return isinstance(value, (dict, list))


@dataclass
class Tool:
    """A discoverable tool and its input contract."""

    name: str
    description: str = ""
    properties: dict[str, ParamSchema] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaError("Tool name must not be empty")
        self.required = tuple(self.required)
        unknown = [name for name in self.required if name not in self.properties]
        if unknown:
            raise SchemaError(
                f"Tool {self.name!r} requires undeclared parameters: {', '.join(unknown)}"
            )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: schema.to_dict() for name, schema in self.properties.items()},
            "required": list(self.required),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tool":
        """Build a Tool from a ``tools/list`` entry.

        Raises:
            SchemaError: If the entry is malformed or breaks the required-keys invariant
        """
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            raise SchemaError(f"Malformed tool definition: {data!r}")

        name = data["name"]
        schema = data.get("inputSchema") or data.get("input_schema") or {}
        if not isinstance(schema, dict) or schema.get("type", "object") != "object":
            raise SchemaError(f"Tool {name!r} input schema must be an object")

        raw_properties = schema.get("properties") or {}
        raw_required = schema.get("required") or []
        if not isinstance(raw_properties, dict):
            raise SchemaError(f"Tool {name!r} properties must be an object")
        if not isinstance(raw_required, list) or not all(isinstance(r, str) for r in raw_required):
            raise SchemaError(f"Tool {name!r} required must be a list of names")

        description = data.get("description", "")
        return cls(
            name=name,
            description=description if isinstance(description, str) else "",
            properties={key: ParamSchema.from_dict(prop or {}) for key, prop in raw_properties.items()},
            required=tuple(raw_required),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolRegistry:
    """Ordered set of tools, replaced wholesale on each discovery."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        if tools:
            self.replace(tools)

    def replace(self, tools: list[Tool]) -> None:
        registered: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in registered:
                logger.warning(f"Duplicate tool {tool.name!r} ignored")
                continue
            registered[tool.name] = tool
        self._tools = registered

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)


def parse_tool_list(entries: Any) -> list[Tool]:
    """Parse a ``tools/list`` result, skipping entries that are not valid tools."""
    if not isinstance(entries, list):
        return []

    tools = []
    for entry in entries:
        try:
            tools.append(Tool.from_dict(entry))
        except SchemaError as e:
            logger.warning(f"Skipping tool from discovery: {e}")
    return tools


def missing_required(tool: Tool, args: dict[str, Any]) -> list[str]:
    return [name for name in tool.required if args.get(name) is None]


def validate_arguments(tool: Tool, args: dict[str, Any]) -> list[str]:
    """Check call arguments against a tool's schema.

    Returns:
        A list of human-readable problems; empty when the arguments are valid
    """
    problems = [f"missing required argument '{name}'" for name in missing_required(tool, args)]

    for name, value in args.items():
        schema = tool.properties.get(name)
        if schema is None or value is None:
            continue
        if not schema.accepts(value):
            problems.append(f"argument '{name}' must be of type {schema.type.value}")

    return problems


_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off", ""}


def coerce_form_value(schema: ParamSchema, raw: str) -> Any:
    """Turn raw form input into a value of the parameter's type.

    Object parameters that are not valid JSON are passed through as text so
    the caller can keep editing them.

    Raises:
        SchemaError: If a number or boolean cannot be parsed
    """
    if schema.type is ParamType.STRING:
        return raw

    if schema.type is ParamType.NUMBER:
        try:
            number = float(raw)
        except ValueError:
            raise SchemaError(f"Not a number: {raw!r}")
        return int(number) if number.is_integer() and "." not in raw else number

    if schema.type is ParamType.BOOLEAN:
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise SchemaError(f"Not a boolean: {raw!r}")

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def build_arguments(tool: Tool, form: dict[str, str]) -> dict[str, Any]:
    """Coerce a mapping of raw form fields into call arguments.

    Blank fields and fields the tool does not declare are dropped.
    """
    args: dict[str, Any] = {}
    for name, raw in form.items():
        schema = tool.properties.get(name)
        if schema is None or raw == "":
            continue
        args[name] = coerce_form_value(schema, raw)
    return args


# =============================================================================
# Fallback tool set
# =============================================================================

FALLBACK_TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "create_conversation",
        "description": "Create a new Tavus conversation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "replica_id": {"type": "string", "description": "Tavus replica ID"},
                "persona_id": {"type": "string", "description": "Tavus persona ID"},
                "conversation_name": {"type": "string", "description": "Name for the conversation"},
                "conversational_context": {"type": "string", "description": "AI behavior context"},
                "custom_greeting": {"type": "string", "description": "Initial greeting message"},
                "properties": {"type": "object", "description": "Additional conversation properties"},
            },
            "required": ["replica_id", "persona_id"],
        },
    },
    {
        "name": "send_message",
        "description": "Send a message to the conversation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "conversation_id": {"type": "string", "description": "Active conversation ID"},
                "text": {"type": "string", "description": "Message text to send"},
            },
            "required": ["conversation_id", "text"],
        },
    },
    {
        "name": "end_conversation",
        "description": "End a Tavus conversation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "conversation_id": {"type": "string", "description": "Conversation ID to end"},
            },
            "required": ["conversation_id"],
        },
    },
    {
        "name": "send_interaction",
        "description": "Send real-time interaction to conversation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "conversation_id": {"type": "string", "description": "Active conversation ID"},
                "interaction_type": {
                    "type": "string",
                    "description": (
                        "Type of interaction (echo, text_respond, interrupt, "
                        "overwrite_context, set_sensitivity)"
                    ),
                },
                "data": {"type": "object", "description": "Interaction data payload"},
            },
            "required": ["conversation_id", "interaction_type"],
        },
    },
    {
        "name": "get_conversation_status",
        "description": "Get status of a Tavus conversation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "conversation_id": {"type": "string", "description": "Conversation ID to check"},
            },
            "required": ["conversation_id"],
        },
    },
]


def fallback_tools() -> list[Tool]:
    """Return a fresh copy of the fixed fallback tool set."""
    return [Tool.from_dict(entry) for entry in FALLBACK_TOOL_DEFINITIONS]
