"""
Pytest config.

Tests import the local `casework/` package straight from the checkout. When a
global `pytest` entrypoint is used that does not always put the repo root on
sys.path during collection, so we pin it here.
"""

from __future__ import annotations

import random
import sys
from pathlib import Path
from typing import List

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


class ScriptedRandom(random.Random):
    """
    `random.Random` whose `random()` returns scripted values first.

    Lets a test pin the failure roll of an operation (0.0 fails, 0.99 passes)
    while the rest of the sampling stays seeded and deterministic.
    """

    def __init__(self, values: List[float], seed: int = 7) -> None:
        super().__init__(seed)
        self._values = list(values)

    def random(self) -> float:
        if self._values:
            return self._values.pop(0)
        return super().random()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests off real LLMs, tracing and simulated latency."""
    monkeypatch.setenv("LLM_MOCK", "1")
    monkeypatch.setenv("CASE_LATENCY_SCALE", "0")
    monkeypatch.delenv("LANGSMITH_TRACING", raising=False)
    monkeypatch.delenv("LANGCHAIN_TRACING_V2", raising=False)


@pytest.fixture
def scripted_random():
    return ScriptedRandom
