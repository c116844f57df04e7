"""Grounded report generation from collected tool data."""

from __future__ import annotations

import json
import logging
from typing import Any

from mysql_agent.agent.deadline import Deadline
from mysql_agent.errors import DeadlineExceededError, MySQLAgentError, SummarizationError
from mysql_agent.llm.client import CompletionClient
from mysql_agent.types import SignalStatus, ToolExecutionResult, ToolPlanStep

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are a MySQL operations diagnostic assistant. Answer the operator's
question using ONLY the JSON payload in the user message: `question`, `plan`,
`toolResults` and `requiredSignals`.

Grounding rules:
1) Never state a number, count, size, duration, ratio or threshold that does
   not appear in the payload. Do not estimate or extrapolate values.
2) Every entry in `requiredSignals` whose status is not "collected" must be
   reported as "N/A" together with its status and notes.
3) Missing data is not evidence. Never make a negative claim such as
   "no lock waits", "no slow queries" or "no deadlocks" unless a collected
   tool result explicitly shows it.
4) A tool result with status "error" is a failure to collect data, not a sign
   of health. Mention the error.
5) Do not invent tools, tables, statements, variables or configuration values.

Length: at most 400 words.

Report format (Markdown, in exactly this order):
**Summary:** one sentence answering the question.
### Metrics
| Metric | Value | Source tool |
|---|---|---|
(one row per key metric taken from the payload; "N/A" for signals not collected)
### Anomalies
- bullet list of abnormal findings backed by payload data, or "None identified from collected data."
### Action items
1. numbered list, highest priority first, each tied to a finding above
### Sources
- one bullet per tool result: tool name and status
""".strip()


class Summarizer:
    """Produces the operator-facing report from one query's results."""

    def __init__(self, client: CompletionClient) -> None:
        self.client = client

    def summarize(
        self,
        question: str,
        plan: list[ToolPlanStep],
        results: list[ToolExecutionResult],
        signals: list[SignalStatus],
        *,
        deadline: Deadline | None = None,
    ) -> str:
        """Return the model's report.

        Raises:
            SummarizationError: the completion failed or was empty.
            DeadlineExceededError: the request deadline expired.
        """

        payload = build_summary_payload(question, plan, results, signals)
        try:
            answer = self.client.complete(
                _SYSTEM_PROMPT,
                json.dumps(payload, ensure_ascii=False, default=str),
                deadline=deadline,
            )
        except DeadlineExceededError:
            raise
        except MySQLAgentError as exc:
            raise SummarizationError(f"summarization failed: {exc}") from exc
        return answer.strip()


def build_summary_payload(
    question: str,
    plan: list[ToolPlanStep],
    results: list[ToolExecutionResult],
    signals: list[SignalStatus],
) -> dict[str, Any]:
    return {
        "question": question,
        "plan": [
            {"tool": step.tool, "reason": step.reason, "params": step.params}
            for step in plan
        ],
        "toolResults": [result.as_entry() for result in results],
        "requiredSignals": [
            {
                "key": signal.key,
                "name": signal.name,
                "tool": signal.tool,
                "status": signal.status,
                "notes": signal.notes,
            }
            for signal in signals
        ],
    }
