"""LLM-driven tool planner for diagnostic questions."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from mysql_agent.agent.deadline import Deadline
from mysql_agent.errors import DeadlineExceededError, MySQLAgentError, PlanningError
from mysql_agent.llm.client import CompletionClient, sanitize_completion
from mysql_agent.obs.tracing import preview
from mysql_agent.types import ToolDefinition, ToolPlanStep

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are a MySQL diagnostic tool scheduler. Given an operator question and a
catalog of read-only diagnostic tools, choose the tools whose output is needed
to answer the question and the order to run them in.

Rules:
1) Only use tool names that appear in the catalog.
2) `params` must follow the tool's `parameters` JSON schema; use {} when no
   parameter is needed.
3) Keep `reason` to one short sentence explaining what the tool contributes.
4) Do not repeat a tool.

Respond with a single JSON object and nothing else, no markdown and no prose:
{"steps": [{"tool": "<tool name>", "reason": "<why>", "params": {}}]}
""".strip()


class PlannedStep(BaseModel):
    tool: str = ""
    reason: str = ""
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tool", "reason", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("params", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return {} if value is None else value


class PlanResponse(BaseModel):
    """Decoded planner completion: `{"steps": [...]}`."""

    steps: list[PlannedStep]


class ToolPlanner:
    """Turns a question plus the tool catalog into an ordered plan."""

    def __init__(self, client: CompletionClient) -> None:
        self.client = client

    def plan(
        self,
        question: str,
        catalog: list[ToolDefinition],
        *,
        deadline: Deadline | None = None,
    ) -> list[ToolPlanStep]:
        """Ask the model for a plan.

        Raises:
            PlanningError: the model is unavailable or its reply cannot be
                decoded. Choosing a fallback plan is the caller's job.
            DeadlineExceededError: the request deadline expired.
        """

        payload = {
            "question": question,
            "catalog": [definition.as_payload() for definition in catalog],
        }
        try:
            raw = self.client.complete(
                _SYSTEM_PROMPT,
                json.dumps(payload, ensure_ascii=False),
                deadline=deadline,
            )
        except DeadlineExceededError:
            raise
        except MySQLAgentError as exc:
            raise PlanningError(f"planning request failed: {exc}") from exc

        logger.info("planner raw_response=%s", preview(raw))
        try:
            decoded = PlanResponse.model_validate_json(sanitize_completion(raw))
        except ValidationError as exc:
            raise PlanningError(f"could not decode plan: {exc}") from exc

        return normalize_plan(
            ToolPlanStep(tool=item.tool, reason=item.reason, params=item.params)
            for item in decoded.steps
        )


def normalize_plan(steps: Iterable[ToolPlanStep]) -> list[ToolPlanStep]:
    """Drop blank tool names and collapse duplicates to the first occurrence."""
    normalized: list[ToolPlanStep] = []
    seen: set[str] = set()
    for step in steps:
        tool = step.tool.strip()
        if not tool or tool in seen:
            continue
        seen.add(tool)
        normalized.append(
            ToolPlanStep(tool=tool, reason=step.reason.strip(), params=dict(step.params or {}))
        )
    return normalized
