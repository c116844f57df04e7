from mysql_agent.agent.signals import derive_signal_statuses
from mysql_agent.config import DEFAULT_REQUIRED_SIGNALS, RequiredSignal
from mysql_agent.errors import ToolNotRegisteredError
from mysql_agent.types import ToolDefinition, ToolExecutionResult, ToolPlanStep

SIGNALS = [
    RequiredSignal(key="threads", name="Running threads", tool="status"),
    RequiredSignal(key="locks", name="Lock waits", tool="trx"),
    RequiredSignal(key="mutex", name="Mutex contention", tool="mutex"),
    RequiredSignal(key="replication", name="Replica lag", tool="replica"),
]


def _catalog(*names: str) -> list[ToolDefinition]:
    return [ToolDefinition(name=name, description=name, parameters={}) for name in names]


def _ok(tool: str) -> ToolExecutionResult:
    return ToolExecutionResult(step=ToolPlanStep(tool=tool), description=tool, output={"rows": []})


def _failed(tool: str, error: Exception) -> ToolExecutionResult:
    return ToolExecutionResult(step=ToolPlanStep(tool=tool), description=tool, error=error)


def test_each_status_is_derived() -> None:
    catalog = _catalog("status", "trx", "mutex")
    results = [_ok("status"), _failed("trx", RuntimeError("Access denied for user 'diag'"))]

    statuses = derive_signal_statuses(catalog, results, SIGNALS)

    assert [(s.key, s.status) for s in statuses] == [
        ("threads", "collected"),
        ("locks", "error"),
        ("mutex", "not_collected"),
        ("replication", "unsupported"),
    ]
    assert statuses[1].notes == "Access denied for user 'diag'"
    assert statuses[3].notes == "tool not registered"


def test_table_is_fully_populated_for_empty_plan() -> None:
    statuses = derive_signal_statuses(_catalog("status"), [], SIGNALS)

    assert len(statuses) == len(SIGNALS)
    assert all(status.status != "collected" for status in statuses)


def test_unregistered_step_does_not_count_as_collected() -> None:
    results = [_failed("replica", ToolNotRegisteredError("replica"))]

    statuses = derive_signal_statuses(_catalog("status"), results, SIGNALS)

    assert statuses[3].status == "unsupported"


def test_default_signals_cover_default_catalog() -> None:
    tools = {signal.tool for signal in DEFAULT_REQUIRED_SIGNALS}

    statuses = derive_signal_statuses(_catalog(*tools), [_ok(tool) for tool in tools], list(DEFAULT_REQUIRED_SIGNALS))

    assert len(statuses) == 7
    assert {status.status for status in statuses} == {"collected"}
