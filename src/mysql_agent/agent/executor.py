"""Sequential plan execution with per-step failure isolation."""

from __future__ import annotations

import logging
import time

from mysql_agent.agent.deadline import Deadline, bind_deadline
from mysql_agent.agent.registry import ToolRegistry
from mysql_agent.errors import DeadlineExceededError, ToolNotRegisteredError
from mysql_agent.obs.tracing import preview
from mysql_agent.types import ToolExecutionResult, ToolPlanStep

logger = logging.getLogger(__name__)

NOT_REGISTERED_DESCRIPTION = "tool not registered"


class PlanExecutor:
    """Runs plan steps in order against the registry.

    A failing step is recorded and execution moves on; only an expired
    deadline stops the plan.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def execute(
        self,
        plan: list[ToolPlanStep],
        *,
        deadline: Deadline | None = None,
    ) -> list[ToolExecutionResult]:
        results: list[ToolExecutionResult] = []
        for step in plan:
            if deadline is not None:
                deadline.check(f"tool {step.tool}")
            results.append(self._run_step(step, deadline))
        return results

    def _run_step(self, step: ToolPlanStep, deadline: Deadline | None) -> ToolExecutionResult:
        spec = self.registry.lookup(step.tool)
        if spec is None:
            logger.warning("tool=%s not registered; skipping", step.tool)
            return ToolExecutionResult(
                step=step,
                description=NOT_REGISTERED_DESCRIPTION,
                error=ToolNotRegisteredError(step.tool),
            )

        if step.reason:
            logger.info(
                "invoking tool=%s reason=%s params=%s",
                step.tool,
                step.reason,
                preview(step.params),
            )
        else:
            logger.info("invoking tool=%s params=%s", step.tool, preview(step.params))

        started = time.perf_counter()
        try:
            with bind_deadline(deadline):
                output = spec.invoke(step.params)
        except DeadlineExceededError:
            raise
        except Exception as exc:
            elapsed_ms = _elapsed_ms(started)
            if deadline is not None and deadline.expired:
                raise DeadlineExceededError(f"tool {step.tool} timed out: {exc}") from exc
            logger.warning("tool=%s failed after %.1fms: %s", step.tool, elapsed_ms, exc)
            return ToolExecutionResult(
                step=step,
                description=spec.description,
                error=exc,
                duration_ms=elapsed_ms,
            )

        elapsed_ms = _elapsed_ms(started)
        logger.info("tool=%s ok in %.1fms output=%s", step.tool, elapsed_ms, preview(output))
        return ToolExecutionResult(
            step=step,
            description=spec.description,
            output=output,
            duration_ms=elapsed_ms,
        )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
