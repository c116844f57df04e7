"""Cross-references required diagnostic signals with what was collected."""

from __future__ import annotations

from mysql_agent.config import RequiredSignal
from mysql_agent.types import SignalStatus, ToolDefinition, ToolExecutionResult


def derive_signal_statuses(
    catalog: list[ToolDefinition],
    results: list[ToolExecutionResult],
    required_signals: list[RequiredSignal],
) -> list[SignalStatus]:
    """Return one status per required signal, independent of the plan.

    Status precedence: `unsupported` (tool missing from the catalog), then
    `not_collected` (tool never ran), then `error`, then `collected`.
    """

    registered = {definition.name for definition in catalog}
    first_run: dict[str, ToolExecutionResult] = {}
    for result in results:
        first_run.setdefault(result.step.tool, result)

    statuses: list[SignalStatus] = []
    for signal in required_signals:
        if signal.tool not in registered:
            status, notes = "unsupported", "tool not registered"
        elif signal.tool not in first_run:
            status, notes = "not_collected", "not requested by the plan"
        elif not first_run[signal.tool].ok:
            status, notes = "error", first_run[signal.tool].error_message or ""
        else:
            status, notes = "collected", ""
        statuses.append(
            SignalStatus(
                key=signal.key,
                name=signal.name,
                tool=signal.tool,
                status=status,
                notes=notes,
            )
        )
    return statuses
