"""Request/response contract of the query endpoint."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class PlanStepRequest(BaseModel):
    """Caller-supplied plan step; bypasses the planner."""

    tool: str
    reason: str = ""
    params: dict[str, Any] = Field(default_factory=dict)


class QueryRequest(BaseModel):
    query: str = ""
    tools: list[PlanStepRequest] = Field(default_factory=list)
    timeout_seconds: float | None = Field(default=None, gt=0.0)


class SourceEntry(BaseModel):
    tool: str
    description: str
    status: Literal["success", "error"]
    params: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""
    duration_ms: float = 0.0
    error: str | None = None


class RawEntry(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: str | None = None


class SignalEntry(BaseModel):
    key: str
    name: str
    tool: str
    status: Literal["collected", "error", "not_collected", "unsupported"]
    notes: str = ""


class QueryResponse(BaseModel):
    answer: str
    sources: list[SourceEntry] = Field(default_factory=list)
    raw: dict[str, list[RawEntry]] = Field(default_factory=dict)
    signals: list[SignalEntry] = Field(default_factory=list)
    plan_source: Literal["none", "llm", "default", "request"] = "none"
