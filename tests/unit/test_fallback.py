import json

from mysql_agent.agent.fallback import default_plan, raw_dump_answer
from mysql_agent.agent.summarizer import build_summary_payload
from mysql_agent.errors import ToolNotRegisteredError
from mysql_agent.types import ToolDefinition, ToolExecutionResult, ToolPlanStep


def _catalog(*names: str) -> list[ToolDefinition]:
    return [ToolDefinition(name=name, description=name, parameters={}) for name in names]


def test_default_plan_uses_fixed_priority_order() -> None:
    catalog = _catalog(
        "mysql_slow_queries",
        "mysql_processlist",
        "mysql_innodb_trx",
        "mysql_connections",
        "mysql_global_status",
    )

    plan = default_plan(catalog)

    assert [step.tool for step in plan] == [
        "mysql_global_status",
        "mysql_connections",
        "mysql_processlist",
        "mysql_slow_queries",
    ]
    assert plan[2].params == {"full": True}
    assert plan[3].params == {"limit": 10}


def test_default_plan_skips_unregistered_tools() -> None:
    plan = default_plan(_catalog("mysql_global_status", "mysql_connections", "mysql_processlist"))

    assert [step.tool for step in plan] == [
        "mysql_global_status",
        "mysql_connections",
        "mysql_processlist",
    ]


def test_default_plan_empty_catalog() -> None:
    assert default_plan([]) == []


def test_raw_dump_answer_lists_every_step() -> None:
    results = [
        ToolExecutionResult(
            step=ToolPlanStep(tool="mysql_global_status"),
            description="status",
            output={"rows": [{"variable_name": "Threads_running", "value": "2"}]},
        ),
        ToolExecutionResult(
            step=ToolPlanStep(tool="mysql_ghost", params={"x": 1}),
            description="tool not registered",
            error=ToolNotRegisteredError("mysql_ghost"),
        ),
    ]

    answer = raw_dump_answer(results, "chat completion failed: timeout")

    assert answer.startswith("Summarization failed (chat completion failed: timeout)")
    dump = json.loads(answer.split("```json\n", 1)[1].rsplit("\n```", 1)[0])
    assert dump == [
        {
            "tool": "mysql_global_status",
            "params": {},
            "status": "success",
            "output": {"rows": [{"variable_name": "Threads_running", "value": "2"}]},
        },
        {
            "tool": "mysql_ghost",
            "params": {"x": 1},
            "status": "error",
            "error": "tool not registered: mysql_ghost",
        },
    ]


def test_raw_dump_and_summary_payload_share_entry_shape() -> None:
    ok = ToolExecutionResult(
        step=ToolPlanStep(tool="mysql_innodb_mutex"),
        description="mutex",
        output={"rows": []},
    )
    failed = ToolExecutionResult(
        step=ToolPlanStep(tool="mysql_innodb_trx", params={"limit": 5}),
        description="trx",
        error=RuntimeError("SELECT command denied"),
    )

    dump = json.loads(raw_dump_answer([ok, failed], "boom").split("```json\n", 1)[1].rsplit("\n```", 1)[0])
    payload = build_summary_payload("locks?", [ok.step, failed.step], [ok, failed], [])

    assert dump[0] == {"tool": "mysql_innodb_mutex", "params": {}, "status": "success", "output": {"rows": []}}
    assert payload["toolResults"][0] == {
        "tool": "mysql_innodb_mutex",
        "params": {},
        "status": "success",
        "result": {"rows": []},
    }
    assert dump[1] == payload["toolResults"][1] == {
        "tool": "mysql_innodb_trx",
        "params": {"limit": 5},
        "status": "error",
        "error": "SELECT command denied",
    }
