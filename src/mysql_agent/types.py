"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

SignalState = Literal["collected", "error", "not_collected", "unsupported"]


@dataclass(slots=True, frozen=True)
class ToolDefinition:
    """Catalog metadata for one registered tool."""

    name: str
    description: str
    parameters: dict[str, Any]

    def as_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass(slots=True, frozen=True)
class ToolPlanStep:
    """One planned tool invocation."""

    tool: str
    reason: str = ""
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ToolExecutionResult:
    """Outcome of a single plan step. Exactly one of output/error is set."""

    step: ToolPlanStep
    description: str
    output: Any = None
    error: Exception | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> Literal["success", "error"]:
        return "success" if self.error is None else "error"

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or self.error.__class__.__name__

    def as_entry(self, output_key: str = "result") -> dict[str, Any]:
        """Plain-data view: tool, params, status and either output or error."""
        entry: dict[str, Any] = {
            "tool": self.step.tool,
            "params": self.step.params,
            "status": self.status,
        }
        if self.error is None:
            entry[output_key] = self.output
        else:
            entry["error"] = self.error_message
        return entry


@dataclass(slots=True, frozen=True)
class SignalStatus:
    """Whether one required signal was actually obtained for a query."""

    key: str
    name: str
    tool: str
    status: SignalState
    notes: str = ""
