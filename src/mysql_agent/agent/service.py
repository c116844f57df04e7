"""Query lifecycle: plan, execute, track signals, summarize, respond."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from mysql_agent.agent.deadline import Deadline
from mysql_agent.agent.executor import PlanExecutor
from mysql_agent.agent.fallback import default_plan, raw_dump_answer
from mysql_agent.agent.planner import ToolPlanner, normalize_plan
from mysql_agent.agent.registry import ToolRegistry
from mysql_agent.agent.signals import derive_signal_statuses
from mysql_agent.agent.summarizer import Summarizer
from mysql_agent.agent.tools import register_builtin_tools
from mysql_agent.config import AgentConfig, Settings
from mysql_agent.db.mysql import MySQLDatabase
from mysql_agent.errors import (
    AgentInitializationError,
    DeadlineExceededError,
    PlanningError,
    SummarizationError,
)
from mysql_agent.llm.client import CompletionClient, create_chat_model
from mysql_agent.schemas import (
    QueryRequest,
    QueryResponse,
    RawEntry,
    SignalEntry,
    SourceEntry,
)
from mysql_agent.types import SignalStatus, ToolDefinition, ToolExecutionResult, ToolPlanStep

logger = logging.getLogger(__name__)

EMPTY_QUERY_ANSWER = (
    "Please describe the database problem to diagnose, for example "
    "\"why is the database slow?\" or \"are there lock waits right now?\"."
)
NO_TOOLS_ANSWER = "No registered diagnostic tool can serve this request; nothing was executed."
TIMEOUT_ANSWER = "The diagnosis did not finish before the request deadline; no results were kept."


@dataclass(slots=True)
class AgentResources:
    registry: ToolRegistry
    client: CompletionClient


class AgentContext:
    """Owns the registry and model client, built once on first use.

    The first initialization outcome is cached: later callers get the same
    resources, or the same failure re-raised, without retrying.
    """

    def __init__(self, factory: Callable[[], AgentResources]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._done = False
        self._resources: AgentResources | None = None
        self._error: Exception | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentContext":
        def _build() -> AgentResources:
            db = MySQLDatabase(settings.database)
            registry = ToolRegistry()
            register_builtin_tools(registry, db, settings.database)
            client = CompletionClient(create_chat_model(settings.llm))
            logger.info("registered tools: %s", registry.names())
            return AgentResources(registry=registry, client=client)

        return cls(_build)

    @classmethod
    def from_resources(cls, registry: ToolRegistry, client: CompletionClient) -> "AgentContext":
        resources = AgentResources(registry=registry, client=client)
        return cls(lambda: resources)

    def resources(self) -> AgentResources:
        with self._lock:
            if not self._done:
                logger.info("initializing agent context")
                try:
                    self._resources = self._factory()
                except Exception as exc:
                    logger.error("agent initialization failed: %s", exc)
                    self._error = exc
                self._done = True

        if self._error is not None:
            raise AgentInitializationError(
                f"agent initialization failed: {self._error}"
            ) from self._error
        if self._resources is None:
            raise AgentInitializationError("agent context produced no resources")
        return self._resources


class DiagnosticService:
    """Facade exposed across the remote boundary."""

    def __init__(self, context: AgentContext, config: AgentConfig | None = None) -> None:
        self.context = context
        self.config = config or AgentConfig()

    def query(self, request: QueryRequest) -> QueryResponse:
        """Run one diagnostic query end to end.

        Business failures (planning, tools, summarization, timeout) are encoded
        in the response. Only a failed context initialization raises.
        """

        question = request.query.strip()
        if not question:
            return QueryResponse(answer=EMPTY_QUERY_ANSWER)

        resources = self.context.resources()
        deadline = Deadline(request.timeout_seconds or self.config.request_timeout_seconds)
        try:
            return self._run(question, request, resources, deadline)
        except DeadlineExceededError as exc:
            logger.warning("query=%r aborted: %s", question, exc)
            return QueryResponse(answer=f"{TIMEOUT_ANSWER} ({exc})")

    def _run(
        self,
        question: str,
        request: QueryRequest,
        resources: AgentResources,
        deadline: Deadline,
    ) -> QueryResponse:
        catalog = resources.registry.definitions()
        plan, plan_source = self._plan(question, request, catalog, resources, deadline)
        logger.info(
            "query=%r plan_source=%s plan=%s",
            question,
            plan_source,
            [step.tool for step in plan],
        )

        if not plan:
            signals = derive_signal_statuses(catalog, [], self.config.required_signals)
            return QueryResponse(
                answer=NO_TOOLS_ANSWER,
                signals=_signal_entries(signals),
                plan_source=plan_source,
            )

        results = PlanExecutor(resources.registry).execute(plan, deadline=deadline)
        signals = derive_signal_statuses(catalog, results, self.config.required_signals)

        try:
            answer = Summarizer(resources.client).summarize(
                question, plan, results, signals, deadline=deadline
            )
        except SummarizationError as exc:
            logger.warning("summarization failed, returning raw data: %s", exc)
            answer = raw_dump_answer(results, str(exc))

        return _build_response(answer, results, signals, plan_source)

    def _plan(
        self,
        question: str,
        request: QueryRequest,
        catalog: list[ToolDefinition],
        resources: AgentResources,
        deadline: Deadline,
    ) -> tuple[list[ToolPlanStep], str]:
        if request.tools:
            explicit = normalize_plan(
                ToolPlanStep(tool=item.tool, reason=item.reason, params=item.params)
                for item in request.tools
            )
            if explicit:
                return explicit, "request"

        planner = ToolPlanner(resources.client)
        try:
            plan = planner.plan(question, catalog, deadline=deadline)
        except PlanningError as exc:
            logger.warning("planning failed, using default plan: %s", exc)
            return default_plan(catalog), "default"

        if not plan:
            logger.warning("planner returned no steps, using default plan")
            return default_plan(catalog), "default"
        return plan, "llm"


def _build_response(
    answer: str,
    results: list[ToolExecutionResult],
    signals: list[SignalStatus],
    plan_source: str,
) -> QueryResponse:
    sources: list[SourceEntry] = []
    raw: dict[str, list[RawEntry]] = {}
    for result in results:
        sources.append(
            SourceEntry(
                tool=result.step.tool,
                description=result.description,
                status=result.status,
                params=result.step.params,
                reason=result.step.reason,
                duration_ms=result.duration_ms,
                error=result.error_message,
            )
        )
        raw.setdefault(result.step.tool, []).append(
            RawEntry(
                params=result.step.params,
                result=result.output if result.ok else None,
                error=result.error_message,
            )
        )
    return QueryResponse(
        answer=answer,
        sources=sources,
        raw=raw,
        signals=_signal_entries(signals),
        plan_source=plan_source,
    )


def _signal_entries(signals: list[SignalStatus]) -> list[SignalEntry]:
    return [
        SignalEntry(
            key=signal.key,
            name=signal.name,
            tool=signal.tool,
            status=signal.status,
            notes=signal.notes,
        )
        for signal in signals
    ]
