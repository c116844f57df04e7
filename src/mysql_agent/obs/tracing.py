"""Log-preview helper for payloads and tool outputs."""

from __future__ import annotations

import json
from typing import Any

_PREVIEW_LIMIT = 256


def preview(value: Any, limit: int = _PREVIEW_LIMIT) -> str:
    """Render a value for log lines, truncated to `limit` characters."""
    if isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, ensure_ascii=False, default=str)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
