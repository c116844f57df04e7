"""Exception hierarchy for the diagnostic agent."""

from __future__ import annotations


class MySQLAgentError(Exception):
    """Base class for agent errors."""


class AgentInitializationError(MySQLAgentError):
    """Registry or model client could not be constructed at startup."""


class ToolNotRegisteredError(MySQLAgentError, KeyError):
    """A plan step named a tool absent from the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"tool not registered: {name}")
        self.name = name

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class LLMUnavailableError(MySQLAgentError):
    """No chat model is configured (for example, missing API key)."""


class CompletionError(MySQLAgentError):
    """A chat completion call failed or returned no usable text."""


class PlanningError(MySQLAgentError):
    """The model could not produce a decodable plan."""


class SummarizationError(MySQLAgentError):
    """The model could not produce a report."""


class DeadlineExceededError(MySQLAgentError):
    """The per-request deadline expired before the query completed."""
