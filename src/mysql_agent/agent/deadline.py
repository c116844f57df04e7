"""Per-request deadline shared by every blocking call of one query."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from mysql_agent.errors import DeadlineExceededError

_active: ContextVar["Deadline | None"] = ContextVar("mysql_agent_deadline", default=None)


class Deadline:
    """Monotonic deadline derived from a timeout in seconds."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        self._expires_at = time.monotonic() + timeout_seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, stage: str) -> None:
        """Raise `DeadlineExceededError` if the deadline has passed."""
        if self.expired:
            raise DeadlineExceededError(
                f"request deadline of {self.timeout_seconds:g}s exceeded during {stage}"
            )


@contextmanager
def bind_deadline(deadline: Deadline | None) -> Iterator[None]:
    """Make `deadline` visible to database calls made inside the block."""
    token = _active.set(deadline)
    try:
        yield
    finally:
        _active.reset(token)


def current_deadline() -> Deadline | None:
    return _active.get()
