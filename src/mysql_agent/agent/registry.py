"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mysql_agent.errors import ToolNotRegisteredError
from mysql_agent.types import ToolDefinition


class ToolInput(BaseModel):
    """Base for tool parameter models; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(min_length=1)
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[Any], Any]
    tags: list[str] = Field(default_factory=list)

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.args_schema.model_json_schema(),
        )

    def invoke(self, payload: dict[str, Any]) -> Any:
        data = self.args_schema.model_validate(payload)
        return self.handler(data)


class ToolRegistry:
    """Fixed catalog of diagnostic tools keyed by name.

    Populated once at startup and only read afterwards, so concurrent lookups
    from in-flight queries need no locking.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        """Add `spec`, replacing any earlier registration under its name."""
        self._tools[spec.name] = spec

    def lookup(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return [spec.definition() for spec in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def execute(self, name: str, payload: dict[str, Any]) -> Any:
        spec = self._tools.get(name)
        if spec is None:
            raise ToolNotRegisteredError(name)
        return spec.invoke(payload)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
