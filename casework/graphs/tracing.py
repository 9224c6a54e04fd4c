from __future__ import annotations

import logging
import os
from typing import Any, Awaitable, Callable, Dict, List

from casework.config import _env_bool

logger = logging.getLogger(__name__)


def _trace_exclude_patterns() -> List[str]:
    """
    Comma-separated denylist of run names (LANGSMITH_TRACE_EXCLUDE).

    An entry ending in '*' matches by prefix, e.g. "tool:get*".
    """
    raw = (os.getenv("LANGSMITH_TRACE_EXCLUDE") or "").strip()
    return [x.strip() for x in raw.split(",") if x.strip()]


def should_trace_run_name(name: str) -> bool:
    n = str(name or "").strip()
    if not n:
        return True
    for pat in _trace_exclude_patterns():
        if pat.endswith("*"):
            if n.startswith(pat[:-1]):
                return False
        elif n == pat:
            return False
    return True


def tracing_enabled() -> bool:
    """True when LangSmith tracing is requested and an API key is present."""
    want = _env_bool("LANGSMITH_TRACING", False) or _env_bool("LANGCHAIN_TRACING_V2", False)
    if not want:
        return False
    key = (os.getenv("LANGSMITH_API_KEY") or "").strip() or (os.getenv("LANGCHAIN_API_KEY") or "").strip()
    if not key:
        logger.warning("LangSmith tracing requested but no API key found. Tracing disabled.")
        return False
    return True


async def trace_tool_call(*, tool: str, args: Dict[str, Any], fn: Callable[[], Awaitable[Any]]) -> Any:
    """
    Await `fn()` inside a LangSmith tool span when tracing is enabled.

    Exceptions from `fn` propagate unchanged; the span records them.
    """
    if not tracing_enabled() or not should_trace_run_name(f"tool:{tool}"):
        return await fn()

    try:
        from langsmith.run_helpers import traceable  # type: ignore[import-not-found]
    except ImportError:
        return await fn()

    @traceable(name=f"tool:{tool}", run_type="tool")
    async def _wrapped(_tool: str, _args: Dict[str, Any]) -> Any:
        return await fn()

    return await _wrapped(str(tool), dict(args or {}))
