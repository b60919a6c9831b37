"""Tool descriptors, handlers, and the per-deployment tool registry."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import best_match

from .errors import CanonicalError

__all__ = ["RegisteredTool", "ToolDescriptor", "ToolHandler", "ToolRegistry"]

ToolHandler = Callable[[Mapping[str, Any]], Awaitable[Mapping[str, Any]]]


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Immutable description of a tool as advertised by ``tools/list``."""

    name: str
    description: str
    input_schema: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_schema", _freeze(self.input_schema))

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(self.input_schema.get("required", ()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": _thaw(self.input_schema),
        }


@dataclass(frozen=True, slots=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry:
    """Resolve tool names, including historical aliases, to registered tools.

    Aliases are a plain lookup table supplied at construction; an alias whose
    target is not registered in this deployment simply does not resolve.
    """

    def __init__(
        self,
        tools: Iterable[RegisteredTool],
        *,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        registered: dict[str, RegisteredTool] = {}
        for tool in tools:
            if tool.name in registered:
                raise ValueError(f"Duplicate tool name '{tool.name}'")
            registered[tool.name] = tool
        alias_table = dict(aliases or {})
        for alias in alias_table:
            if alias in registered:
                raise ValueError(f"Alias '{alias}' shadows a registered tool")
        self._tools = registered
        self._aliases: Mapping[str, str] = MappingProxyType(alias_table)
        self._validators: dict[str, Draft202012Validator] = {}
        for tool in registered.values():
            schema = _thaw(tool.descriptor.input_schema)
            validator_cls = validators.validator_for(schema, default=Draft202012Validator)
            validator_cls.check_schema(schema)
            self._validators[tool.name] = validator_cls(schema)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._tools)

    @property
    def aliases(self) -> Mapping[str, str]:
        return self._aliases

    def descriptors(self) -> list[dict[str, Any]]:
        return [tool.descriptor.to_dict() for tool in self._tools.values()]

    def resolve(self, name: str) -> RegisteredTool | None:
        canonical = self._aliases.get(name, name)
        return self._tools.get(canonical)

    def check_arguments(
        self, tool: RegisteredTool, arguments: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Return a tool error result when ``arguments`` do not fit the schema."""

        missing = [
            name
            for name in tool.descriptor.required
            if arguments.get(name) is None
            or (isinstance(arguments.get(name), str) and not arguments[name].strip())
        ]
        if missing:
            return CanonicalError.missing_input(missing)
        validator = self._validators[tool.name]
        error = best_match(validator.iter_errors(dict(arguments)))
        if error is None:
            return None
        field_path = ".".join(str(part) for part in error.absolute_path) or None
        return CanonicalError.to_tool_error(
            "INVALID_INPUT",
            f"Invalid input: {error.message}",
            field=field_path,
        )
