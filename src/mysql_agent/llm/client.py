"""Chat completion client shared by the planner and the summarizer."""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

from mysql_agent.agent.deadline import Deadline
from mysql_agent.config import LLMConfig
from mysql_agent.errors import CompletionError, DeadlineExceededError, LLMUnavailableError
from mysql_agent.obs.tracing import preview

logger = logging.getLogger(__name__)

_FENCE = "```"


def create_chat_model(config: LLMConfig) -> Any:
    """Build an OpenAI-compatible chat model, or None without an API key."""
    if not config.api_key:
        logger.warning("LLM api key not configured; planning and summarization will fall back")
        return None

    from langchain_openai import ChatOpenAI

    logger.info("LLM client model=%s endpoint=%s", config.model, config.base_url)
    return ChatOpenAI(
        model=config.model,
        api_key=config.api_key,
        base_url=config.base_url,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.request_timeout_seconds,
        max_retries=0,
    )


class CompletionClient:
    """Sends one system instruction plus one user message, returns text."""

    def __init__(self, llm: Any | None) -> None:
        self.llm = llm

    @property
    def configured(self) -> bool:
        return self.llm is not None

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        deadline: Deadline | None = None,
    ) -> str:
        if self.llm is None:
            raise LLMUnavailableError("LLM api key is not configured")

        kwargs: dict[str, Any] = {}
        if deadline is not None:
            deadline.check("llm completion")
            kwargs["timeout"] = deadline.remaining()

        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_message)]
        try:
            response = self.llm.invoke(messages, **kwargs)
        except Exception as exc:
            if deadline is not None and deadline.expired:
                raise DeadlineExceededError(f"llm completion timed out: {exc}") from exc
            raise CompletionError(f"chat completion failed: {exc}") from exc

        text = _message_text(response)
        logger.debug("completion raw_response=%s", preview(text))
        if not text.strip():
            raise CompletionError("chat completion returned empty content")
        return text


def sanitize_completion(raw: str) -> str:
    """Strip markdown fences and leading prose around a JSON document."""
    text = raw.strip()
    start = text.find(_FENCE)
    if start != -1:
        end = text.rfind(_FENCE)
        segment = text[start + 3 : end] if end > start + 3 else text[start + 3 :]
        segment = segment.strip()
        first_line, newline, rest = segment.partition("\n")
        if newline and not first_line.strip().startswith(("{", "[")):
            segment = rest.strip()
        text = segment

    brace = text.find("{")
    if brace > 0 and not text.startswith("["):
        text = text[brace:]
    closing = text.rfind("}")
    if text.startswith("{") and closing != -1:
        text = text[: closing + 1]
    return text


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return "".join(parts)
    return str(content)
