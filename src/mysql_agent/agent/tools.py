"""Built-in read-only diagnostic tools for MySQL."""

from __future__ import annotations

import re
from collections import Counter
from typing import Any

from pydantic import Field

from mysql_agent.agent.registry import ToolInput, ToolRegistry, ToolSpec
from mysql_agent.config import DatabaseConfig
from mysql_agent.db.mysql import (
    MySQLDatabase,
    is_packet_error,
    is_syntax_error,
    normalize_rows,
)

TOOL_GLOBAL_STATUS = "mysql_global_status"
TOOL_CONNECTIONS = "mysql_connections"
TOOL_PROCESSLIST = "mysql_processlist"
TOOL_SLOW_QUERIES = "mysql_slow_queries"
TOOL_INNODB_STATUS = "mysql_innodb_status"
TOOL_INNODB_TRX = "mysql_innodb_trx"
TOOL_INNODB_MUTEX = "mysql_innodb_mutex"
TOOL_SCHEMA_STATS = "mysql_schema_stats"
TOOL_CONFIG_DIFF = "mysql_config_diff"

_CONNECTION_COUNTERS = (
    "Threads_connected",
    "Threads_running",
    "Max_used_connections",
    "Connections",
    "Aborted_connects",
    "Connection_errors_max_connections",
)
_DEFAULT_DIFF_VARIABLES = ("character_set_server", "port")
_SLOW_QUERY_SQL = (
    "SELECT DIGEST_TEXT, SCHEMA_NAME, COUNT_STAR,"
    " SUM_TIMER_WAIT / 1000000000000 AS TOTAL_LATENCY_S,"
    " AVG_TIMER_WAIT / 1000000000000 AS AVG_LATENCY_S,"
    " MAX_TIMER_WAIT / 1000000000000 AS MAX_LATENCY_S,"
    " SUM_LOCK_TIME / 1000000000000 AS LOCK_LATENCY_S,"
    " SUM_ERRORS, SUM_WARNINGS, SUM_ROWS_AFFECTED, SUM_ROWS_SENT,"
    " SUM_ROWS_EXAMINED, FIRST_SEEN, LAST_SEEN"
    " FROM performance_schema.events_statements_summary_by_digest"
    " WHERE DIGEST_TEXT IS NOT NULL"
)
_SCHEMA_STATS_SQL = (
    "SELECT TABLE_SCHEMA, TABLE_NAME, ENGINE, TABLE_ROWS, DATA_LENGTH,"
    " INDEX_LENGTH, DATA_LENGTH + INDEX_LENGTH AS TOTAL_LENGTH,"
    " AUTO_INCREMENT, UPDATE_TIME"
    " FROM information_schema.tables"
    " WHERE TABLE_SCHEMA = %s"
    " ORDER BY TOTAL_LENGTH DESC"
)
_INNODB_SECTION = re.compile(r"^-{3,}\n([A-Z][A-Z /_()-]+)\n-{3,}$", flags=re.MULTILINE)


class GlobalStatusInput(ToolInput):
    keys: list[str] = Field(
        default_factory=list,
        description="Status variable names to return; empty returns all.",
    )


class ConnectionsInput(ToolInput):
    pass


class ProcessListInput(ToolInput):
    limit: int | None = Field(default=None, ge=1, description="Maximum rows to return.")
    full: bool = Field(default=True, description="Return full statement text.")


class SlowQueriesInput(ToolInput):
    limit: int = Field(default=10, ge=1, le=100, description="Number of digests to return.")
    schema_name: str | None = Field(
        default=None,
        alias="schema",
        description="Only return digests for this schema.",
    )


class InnoDBStatusInput(ToolInput):
    pass


class InnoDBTrxInput(ToolInput):
    limit: int | None = Field(default=None, ge=1, description="Maximum rows to return.")


class InnoDBMutexInput(ToolInput):
    pass


class SchemaStatsInput(ToolInput):
    schema_name: str | None = Field(
        default=None,
        alias="schema",
        description="Schema to inspect; defaults to the configured database.",
    )
    limit: int | None = Field(default=None, ge=1, description="Maximum tables to return.")


class ConfigDiffInput(ToolInput):
    variables: list[str] = Field(
        default_factory=list,
        description="Runtime variables to compare with the configured values.",
    )


def register_builtin_tools(
    registry: ToolRegistry,
    db: MySQLDatabase,
    db_config: DatabaseConfig,
) -> None:
    """Register the fixed diagnostic catalog.

    Tools:
    - `mysql_global_status`: server counters from SHOW GLOBAL STATUS.
    - `mysql_connections`: connection snapshot grouped by user/command/state.
    - `mysql_processlist`: current sessions and statements.
    - `mysql_slow_queries`: top statement digests by total latency.
    - `mysql_innodb_status`: SHOW ENGINE INNODB STATUS split into sections.
    - `mysql_innodb_trx`: open InnoDB transactions, oldest first.
    - `mysql_innodb_mutex`: InnoDB mutex waits.
    - `mysql_schema_stats`: table data/index sizes for one schema.
    - `mysql_config_diff`: runtime variables against configured values.
    """

    def _global_status(input_data: GlobalStatusInput) -> dict[str, Any]:
        rows = normalize_rows(db.query("SHOW GLOBAL STATUS"))
        wanted: list[str] = []
        for key in input_data.keys:
            name = key.strip().lower()
            if name and name not in wanted:
                wanted.append(name)
        if not wanted:
            return {"rows": sorted(rows, key=lambda row: row.get("variable_name") or "")}

        by_name = {(row.get("variable_name") or "").lower(): row for row in rows}
        return {
            "rows": [by_name[name] for name in wanted if name in by_name],
            "missing": [name for name in wanted if name not in by_name],
        }

    def _connections(input_data: ConnectionsInput) -> dict[str, Any]:
        del input_data
        processes = normalize_rows(db.query("SHOW PROCESSLIST"))
        placeholders = ", ".join(["%s"] * len(_CONNECTION_COUNTERS))
        counters = normalize_rows(
            db.query(
                f"SHOW GLOBAL STATUS WHERE Variable_name IN ({placeholders})",
                _CONNECTION_COUNTERS,
            )
        )
        limits = normalize_rows(db.query("SHOW GLOBAL VARIABLES LIKE %s", ("max_connections",)))
        return {
            "total_sessions": len(processes),
            "by_user": dict(Counter(row.get("user") or "" for row in processes)),
            "by_command": dict(Counter(row.get("command") or "" for row in processes)),
            "by_state": dict(Counter(row.get("state") or "" for row in processes)),
            "statistics": {row["variable_name"]: row["value"] for row in counters},
            "max_connections": limits[0]["value"] if limits else None,
        }

    def _processlist(input_data: ProcessListInput) -> dict[str, Any]:
        if input_data.full:
            raw = db.query_with_fallback(
                "SHOW FULL PROCESSLIST", "SHOW PROCESSLIST", is_packet_error
            )
        else:
            raw = db.query("SHOW PROCESSLIST")
        rows = normalize_rows(raw)
        total = len(rows)
        if input_data.limit is not None:
            rows = rows[: input_data.limit]
        return {"rows": rows, "total_count": total}

    def _slow_queries(input_data: SlowQueriesInput) -> dict[str, Any]:
        sql = _SLOW_QUERY_SQL
        params: list[Any] = []
        if input_data.schema_name and input_data.schema_name.strip():
            sql += " AND SCHEMA_NAME = %s"
            params.append(input_data.schema_name.strip())
        sql += " ORDER BY SUM_TIMER_WAIT DESC LIMIT %s"
        params.append(input_data.limit)
        return {"rows": normalize_rows(db.query(sql, params))}

    def _innodb_status(input_data: InnoDBStatusInput) -> dict[str, Any]:
        del input_data
        rows = normalize_rows(
            db.query_with_fallback(
                "SHOW ENGINE INNODB STATUS", "SHOW INNODB STATUS", is_syntax_error
            )
        )
        status_text = (rows[0].get("status") or "") if rows else ""
        return {"sections": split_innodb_status(status_text)}

    def _innodb_trx(input_data: InnoDBTrxInput) -> dict[str, Any]:
        sql = "SELECT * FROM information_schema.innodb_trx ORDER BY trx_started"
        params: list[Any] = []
        if input_data.limit is not None:
            sql += " LIMIT %s"
            params.append(input_data.limit)
        return {"rows": normalize_rows(db.query(sql, params))}

    def _innodb_mutex(input_data: InnoDBMutexInput) -> dict[str, Any]:
        del input_data
        return {"rows": normalize_rows(db.query("SHOW ENGINE INNODB MUTEX"))}

    def _schema_stats(input_data: SchemaStatsInput) -> dict[str, Any]:
        schema = (input_data.schema_name or "").strip() or db_config.database
        sql = _SCHEMA_STATS_SQL
        params: list[Any] = [schema]
        if input_data.limit is not None:
            sql += " LIMIT %s"
            params.append(input_data.limit)
        return {"schema": schema, "rows": normalize_rows(db.query(sql, params))}

    def _config_diff(input_data: ConfigDiffInput) -> dict[str, Any]:
        runtime = db.variables()
        items: list[dict[str, Any]] = []
        missing: list[str] = []
        for name in _requested_variables(input_data.variables):
            key = name.lower()
            runtime_value = runtime.get(key)
            if runtime_value is None:
                missing.append(name)
            config_value = _configured_value(db_config, key)
            items.append(
                {
                    "parameter": name,
                    "config_value": config_value,
                    "runtime_value": runtime_value,
                    "match": config_value is not None
                    and runtime_value is not None
                    and config_value.lower() == runtime_value.lower(),
                }
            )

        pool = db.pool_settings()
        items.append(
            {
                "parameter": "connection_pool.pool_size",
                "config_value": str(db_config.pool_size),
                "runtime_value": str(pool["pool_size"]),
                "match": db_config.pool_size == pool["pool_size"],
            }
        )
        return {"items": items, "missing": missing}

    registry.register(
        ToolSpec(
            name=TOOL_GLOBAL_STATUS,
            description=(
                "Run SHOW GLOBAL STATUS and return counters such as Threads_running, "
                "Questions and Slow_queries; optionally filtered by `keys`."
            ),
            args_schema=GlobalStatusInput,
            handler=_global_status,
            tags=["status"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_CONNECTIONS,
            description=(
                "Connection snapshot: sessions grouped by user, command and state, "
                "connection counters and max_connections."
            ),
            args_schema=ConnectionsInput,
            handler=_connections,
            tags=["connections"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_PROCESSLIST,
            description=(
                "Run SHOW FULL PROCESSLIST (SHOW PROCESSLIST when rows are too large) "
                "to list sessions, their state and running statements."
            ),
            args_schema=ProcessListInput,
            handler=_processlist,
            tags=["sessions"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_SLOW_QUERIES,
            description=(
                "Top statement digests from performance_schema."
                "events_statements_summary_by_digest ordered by SUM_TIMER_WAIT."
            ),
            args_schema=SlowQueriesInput,
            handler=_slow_queries,
            tags=["queries"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_INNODB_STATUS,
            description=(
                "Run SHOW ENGINE INNODB STATUS and return its sections "
                "(latest deadlock, transactions, buffer pool, row operations)."
            ),
            args_schema=InnoDBStatusInput,
            handler=_innodb_status,
            tags=["innodb", "locks"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_INNODB_TRX,
            description=(
                "Query information_schema.innodb_trx for open transactions, "
                "oldest first, including lock waits."
            ),
            args_schema=InnoDBTrxInput,
            handler=_innodb_trx,
            tags=["innodb", "locks"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_INNODB_MUTEX,
            description="Run SHOW ENGINE INNODB MUTEX to identify hot mutexes.",
            args_schema=InnoDBMutexInput,
            handler=_innodb_mutex,
            tags=["innodb"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_SCHEMA_STATS,
            description=(
                "Query information_schema.tables for row counts and data/index sizes "
                "of one schema, largest first."
            ),
            args_schema=SchemaStatsInput,
            handler=_schema_stats,
            tags=["schema"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_CONFIG_DIFF,
            description=(
                "Compare SHOW VARIABLES with the agent's configured values and pool size. "
                "Defaults to character_set_server and port; `hostname` may be requested."
            ),
            args_schema=ConfigDiffInput,
            handler=_config_diff,
            tags=["config"],
        )
    )


def split_innodb_status(text: str) -> dict[str, str]:
    """Split InnoDB monitor output into `{section title: body}`."""
    if not text.strip():
        return {}
    matches = list(_INNODB_SECTION.finditer(text))
    if not matches:
        return {"STATUS": text.strip()}

    sections: dict[str, str] = {}
    for idx, match in enumerate(matches):
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        sections[match.group(1).strip()] = text[match.end() : end].strip()
    return sections


def _requested_variables(variables: list[str]) -> list[str]:
    cleaned: list[str] = []
    seen: set[str] = set()
    for raw in variables:
        name = raw.strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        cleaned.append(name)
    return cleaned or list(_DEFAULT_DIFF_VARIABLES)


def _configured_value(config: DatabaseConfig, name: str) -> str | None:
    if name in ("character_set_server", "character_set_database"):
        return config.charset
    if name == "port":
        return str(config.port)
    if name == "hostname":
        return config.host
    return None
