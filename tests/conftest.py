from __future__ import annotations

import threading
import time
from typing import Any

import mysql.connector
import pytest
from langchain_core.messages import AIMessage
from mysql.connector import errors as mysql_errors

from mysql_agent.agent.registry import ToolRegistry
from mysql_agent.agent.tools import register_builtin_tools
from mysql_agent.config import DatabaseConfig

INNODB_STATUS_TEXT = """
=====================================
2026-10-18 10:00:00 INNODB MONITOR OUTPUT
=====================================
------------------------
LATEST DETECTED DEADLOCK
------------------------
*** (1) TRANSACTION:
TRANSACTION 421, ACTIVE 3 sec starting index read
------------
TRANSACTIONS
------------
Trx id counter 5000
History list length 12
""".strip()


class FakeDatabase:
    """In-memory stand-in for `MySQLDatabase`, keyed by SQL prefix."""

    def __init__(self, responses: dict[str, Any]) -> None:
        # Longest prefix wins so "SHOW GLOBAL STATUS WHERE" beats "SHOW GLOBAL STATUS".
        self.responses = dict(sorted(responses.items(), key=lambda item: -len(item[0])))
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.pool_size = 5

    def query(self, sql: str, params: Any = ()) -> list[dict[str, Any]]:
        self.calls.append((sql, tuple(params)))
        for prefix, value in self.responses.items():
            if sql.startswith(prefix):
                if isinstance(value, Exception):
                    raise value
                return [dict(row) for row in value]
        raise LookupError(f"unexpected sql: {sql}")

    def query_with_fallback(self, primary, fallback, should_fallback):
        try:
            return self.query(primary)
        except Exception as exc:
            if not should_fallback(exc):
                raise
            return self.query(fallback)

    def variables(self) -> dict[str, str]:
        return {
            str(row["Variable_name"]).lower(): str(row["Value"])
            for row in self.query("SHOW VARIABLES")
        }

    def pool_settings(self) -> dict[str, Any]:
        return {"pool_name": "test", "pool_size": self.pool_size}


def default_responses() -> dict[str, Any]:
    processes = [
        {"Id": 1, "User": "app", "Host": "10.0.0.5:5000", "db": "shop", "Command": "Query",
         "Time": 42, "State": "Sending data", "Info": "SELECT * FROM orders"},
        {"Id": 2, "User": "app", "Host": "10.0.0.5:5001", "db": "shop", "Command": "Sleep",
         "Time": 3, "State": "", "Info": None},
        {"Id": 3, "User": "repl", "Host": "10.0.0.9:6000", "db": None, "Command": "Binlog Dump",
         "Time": 900, "State": "Source has sent all binlog to replica", "Info": None},
    ]
    return {
        "SHOW GLOBAL STATUS WHERE": [
            {"Variable_name": "Threads_connected", "Value": "3"},
            {"Variable_name": "Threads_running", "Value": "2"},
            {"Variable_name": "Max_used_connections", "Value": "40"},
        ],
        "SHOW GLOBAL STATUS": [
            {"Variable_name": "Threads_running", "Value": "2"},
            {"Variable_name": "Questions", "Value": "1000"},
            {"Variable_name": "Slow_queries", "Value": "7"},
        ],
        "SHOW GLOBAL VARIABLES LIKE": [{"Variable_name": "max_connections", "Value": "151"}],
        "SHOW FULL PROCESSLIST": processes,
        "SHOW PROCESSLIST": processes,
        "SELECT DIGEST_TEXT": [
            {"DIGEST_TEXT": "SELECT * FROM `orders` WHERE `status` = ?", "SCHEMA_NAME": "shop",
             "COUNT_STAR": 120, "TOTAL_LATENCY_S": "35.2000"},
        ],
        "SHOW ENGINE INNODB STATUS": [{"Type": "InnoDB", "Name": "", "Status": INNODB_STATUS_TEXT}],
        "SELECT * FROM information_schema.innodb_trx": [
            {"trx_id": "421", "trx_state": "LOCK WAIT", "trx_started": "2026-10-18 09:59:57"},
        ],
        "SHOW ENGINE INNODB MUTEX": [
            {"Type": "InnoDB", "Name": "rwlock: dict0dict.cc:1035", "Status": "waits=12"},
        ],
        "SELECT TABLE_SCHEMA": [
            {"TABLE_SCHEMA": "shop", "TABLE_NAME": "orders", "TOTAL_LENGTH": 1048576},
        ],
        "SHOW VARIABLES": [
            {"Variable_name": "character_set_server", "Value": "utf8mb4"},
            {"Variable_name": "port", "Value": "3307"},
        ],
    }


class ScriptedServer:
    """Shared state behind the bounded pool: scripted statements and kills."""

    def __init__(self, script: dict) -> None:
        self.script = script
        self.statements: list[tuple[int, str, tuple]] = []
        self.killed = threading.Event()
        self.lock = threading.Lock()


class ServerCursor:
    def __init__(self, conn: "ServerConnection") -> None:
        self.conn = conn
        self.description = None
        self._rows: list[dict] = []

    def execute(self, sql: str, params: tuple = ()) -> None:
        server = self.conn.server
        with server.lock:
            server.statements.append((self.conn.connection_id, sql, params))
        if sql.startswith("KILL QUERY"):
            server.killed.set()
            return
        if sql.startswith("SET SESSION"):
            return
        outcome = server.script[sql]
        if outcome == "hang":
            if server.killed.wait(5):
                raise mysql.connector.Error(msg="Query execution was interrupted", errno=1317)
            raise AssertionError("statement was never cancelled")
        if isinstance(outcome, float):
            time.sleep(outcome)
            outcome = [{"Value": "1"}]
        self.description = [("Value",)]
        self._rows = outcome

    def fetchall(self) -> list[dict]:
        return self._rows

    def close(self) -> None:
        pass


class ServerConnection:
    def __init__(self, pool: "BoundedPool", connection_id: int) -> None:
        self.pool = pool
        self.server = pool.server
        self.connection_id = connection_id

    def cursor(self, dictionary: bool = False) -> ServerCursor:
        return ServerCursor(self)

    def close(self) -> None:
        self.pool.release()


class BoundedPool:
    """Pool that, like mysql.connector's, fails fast when exhausted."""

    pool_name = "bounded"

    def __init__(self, server: ScriptedServer, size: int) -> None:
        self.server = server
        self.pool_size = size
        self.in_use = 0
        self.peak = 0
        self.exhausted_errors = 0
        self._next_id = 100
        self._lock = threading.Lock()

    def get_connection(self) -> ServerConnection:
        with self._lock:
            if self.in_use >= self.pool_size:
                self.exhausted_errors += 1
                raise mysql_errors.PoolError("Failed getting connection; pool exhausted")
            self.in_use += 1
            self.peak = max(self.peak, self.in_use)
            self._next_id += 1
            return ServerConnection(self, self._next_id)

    def release(self) -> None:
        with self._lock:
            self.in_use -= 1


class ScriptedChatModel:
    """Chat model double that replays canned replies or raises canned errors."""

    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[list[Any], dict[str, Any]]] = []

    def invoke(self, messages: list[Any], **kwargs: Any) -> AIMessage:
        self.calls.append((messages, kwargs))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return AIMessage(content=reply)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase(default_responses())


@pytest.fixture
def db_config() -> DatabaseConfig:
    return DatabaseConfig(host="db.internal", port=3306, database="shop", charset="utf8mb4")


@pytest.fixture
def registry(fake_db: FakeDatabase, db_config: DatabaseConfig) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry, fake_db, db_config)
    return registry
