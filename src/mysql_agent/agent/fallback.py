"""Deterministic fallbacks used when the LLM is unavailable."""

from __future__ import annotations

import json

from mysql_agent.agent.tools import (
    TOOL_CONNECTIONS,
    TOOL_GLOBAL_STATUS,
    TOOL_PROCESSLIST,
    TOOL_SLOW_QUERIES,
)
from mysql_agent.types import ToolDefinition, ToolExecutionResult, ToolPlanStep

# Priority order of the fallback plan.
DEFAULT_PLAN: tuple[ToolPlanStep, ...] = (
    ToolPlanStep(
        tool=TOOL_GLOBAL_STATUS,
        reason="default plan: server status counters",
    ),
    ToolPlanStep(
        tool=TOOL_CONNECTIONS,
        reason="default plan: connection snapshot",
    ),
    ToolPlanStep(
        tool=TOOL_PROCESSLIST,
        reason="default plan: full process list",
        params={"full": True},
    ),
    ToolPlanStep(
        tool=TOOL_SLOW_QUERIES,
        reason="default plan: top 10 statement digests",
        params={"limit": 10},
    ),
)

def default_plan(catalog: list[ToolDefinition]) -> list[ToolPlanStep]:
    """Return the fixed default sequence restricted to registered tools."""
    available = {definition.name for definition in catalog}
    return [
        ToolPlanStep(tool=step.tool, reason=step.reason, params=dict(step.params))
        for step in DEFAULT_PLAN
        if step.tool in available
    ]

def raw_dump_answer(results: list[ToolExecutionResult], reason: str) -> str:
    """Render every tool result verbatim when the model cannot summarize."""
    entries = [result.as_entry("output") for result in results]
    dump = json.dumps(entries, ensure_ascii=False, indent=2, default=str)
    return (
        f"Summarization failed ({reason}); no analysis was generated. "
        f"Raw diagnostic data from {len(results)} tool run(s) follows:\n\n"
        f"```json\n{dump}\n```"
    )
