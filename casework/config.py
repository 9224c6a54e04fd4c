from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _clamp_probability(x: float) -> float:
    if x != x:  # NaN
        return 0.0
    return max(0.0, min(x, 1.0))


@dataclass(frozen=True)
class ChatPolicy:
    # Master switch
    enabled: bool = True

    # Cost caps
    max_steps: int = 4
    max_tool_calls: int = 8

    # Attempts per tool call (first try included). Only transient failures are retried.
    step_max_attempts: int = 3


@dataclass(frozen=True)
class FailurePolicy:
    """Injected failure chances for the mock case backend."""

    check_status: float = 0.10
    update_case: float = 0.05
    schedule: float = 0.10


@dataclass(frozen=True)
class CaseSettings:
    # Multiplier on the simulated backend latency (0 disables the waits).
    latency_scale: float = 1.0
    random_seed: Optional[int] = None


@dataclass(frozen=True)
class ClientConfig:
    api_url: str = "http://127.0.0.1:8080/api/chat"
    state_dir: str = "./.chat-state"
    max_consecutive_errors: int = 5
    timeout_seconds: int = 120


def load_chat_policy() -> ChatPolicy:
    """
    Load chat runtime policy from env.

    Recommended vars:
    - CHAT_ENABLED=1
    - CHAT_MAX_STEPS=4
    - CHAT_MAX_TOOL_CALLS=8
    - CHAT_STEP_MAX_ATTEMPTS=3
    """
    return ChatPolicy(
        enabled=_env_bool("CHAT_ENABLED", True),
        max_steps=max(1, min(_env_int("CHAT_MAX_STEPS", 4), 12)),
        max_tool_calls=max(1, min(_env_int("CHAT_MAX_TOOL_CALLS", 8), 32)),
        step_max_attempts=max(1, min(_env_int("CHAT_STEP_MAX_ATTEMPTS", 3), 10)),
    )


def load_failure_policy() -> FailurePolicy:
    """
    Failure injection for the mock backend.

    - CASE_FAIL_CHECK_STATUS (default 0.10)
    - CASE_FAIL_UPDATE (default 0.05)
    - CASE_FAIL_SCHEDULE (default 0.10)
    """
    return FailurePolicy(
        check_status=_clamp_probability(_env_float("CASE_FAIL_CHECK_STATUS", 0.10)),
        update_case=_clamp_probability(_env_float("CASE_FAIL_UPDATE", 0.05)),
        schedule=_clamp_probability(_env_float("CASE_FAIL_SCHEDULE", 0.10)),
    )


def load_case_settings() -> CaseSettings:
    raw_seed = (os.getenv("CASE_RANDOM_SEED") or "").strip()
    seed: Optional[int] = None
    if raw_seed:
        try:
            seed = int(raw_seed)
        except Exception:
            seed = None
    return CaseSettings(
        latency_scale=max(0.0, _env_float("CASE_LATENCY_SCALE", 1.0)),
        random_seed=seed,
    )


def load_client_config() -> ClientConfig:
    """
    Client-side settings for the terminal chat.

    - CHAT_API_URL (default http://127.0.0.1:8080/api/chat)
    - CHAT_STATE_DIR (default ./.chat-state)
    - CHAT_MAX_CONSECUTIVE_ERRORS (default 5)
    - CHAT_TIMEOUT_SECONDS (default 120)
    """
    return ClientConfig(
        api_url=(os.getenv("CHAT_API_URL") or "").strip().rstrip("/") or ClientConfig.api_url,
        state_dir=(os.getenv("CHAT_STATE_DIR") or "").strip() or ClientConfig.state_dir,
        max_consecutive_errors=max(1, _env_int("CHAT_MAX_CONSECUTIVE_ERRORS", 5)),
        timeout_seconds=max(5, min(_env_int("CHAT_TIMEOUT_SECONDS", 120), 600)),
    )
