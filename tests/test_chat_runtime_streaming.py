"""
Unit tests for streaming chat runtime.

Tests chunk emission sequence, tool execution (retry, fatal, input errors) and
final response streaming.
"""

from __future__ import annotations

import json
import random
from typing import Any, Dict, List

import pytest

from casework.cases.operations import CaseOperations
from casework.chat.types import TextPart, UIMessage
from casework.config import ChatPolicy


def _messages(text: str = "What is the status of case DC1?") -> List[UIMessage]:
    return [UIMessage(id="u1", role="user", parts=[TextPart(text=text)])]


def _plan(*calls: Dict[str, Any]) -> Dict[str, Any]:
    return {"schema_version": "casework.tool_plan.v1", "reply": "", "tool_calls": list(calls)}


def _install_planner(monkeypatch, plans: List[Dict[str, Any]]) -> List[str]:
    """Serve `plans` in order, then an empty plan; returns the prompts seen."""
    import casework.chat.runtime_streaming as rs

    queue = list(plans)
    prompts: List[str] = []

    def fake_generate_json(prompt, *, schema=None):
        prompts.append(prompt)
        return (queue.pop(0) if queue else _plan()), None

    monkeypatch.setattr(rs, "generate_json", fake_generate_json)
    return prompts


def _install_reply(monkeypatch, *pieces: str) -> None:
    import casework.chat.runtime_streaming as rs
    from casework.llm.client_streaming import LLMStreamChunk

    async def fake_stream(prompt, **kwargs):
        for p in pieces:
            yield LLMStreamChunk(content=p)

    monkeypatch.setattr(rs, "stream_text_response", fake_stream)


async def _collect(*, operations, policy=None, messages=None) -> List[Dict[str, Any]]:
    from casework.chat.runtime_streaming import run_chat_stream

    out = []
    async for chunk in run_chat_stream(
        policy=policy or ChatPolicy(),
        messages=messages or _messages(),
        operations=operations,
        message_id="m1",
    ):
        out.append(chunk)
    return out


def _types(chunks: List[Dict[str, Any]]) -> List[str]:
    return [c["type"] for c in chunks]


@pytest.mark.asyncio
async def test_no_tool_turn_streams_text(monkeypatch) -> None:
    _install_planner(monkeypatch, [])
    _install_reply(monkeypatch, "Hello! ", "How can I help?")

    chunks = await _collect(operations=CaseOperations(rng=random.Random(1), latency_scale=0))

    assert _types(chunks) == [
        "start",
        "data-workflow",
        "start-step",
        "text-start",
        "text-delta",
        "text-delta",
        "text-end",
        "finish-step",
        "finish",
    ]
    assert chunks[0]["messageId"] == "m1"
    assert chunks[0]["messageMetadata"]["createdAt"] > 0
    assert chunks[1]["data"]["message"] == "Reviewing your request..."
    text_ids = {c["id"] for c in chunks if c["type"].startswith("text-")}
    assert len(text_ids) == 1
    assert "".join(c["delta"] for c in chunks if c["type"] == "text-delta") == "Hello! How can I help?"


@pytest.mark.asyncio
async def test_llm_mock_turn_uses_stub_reply() -> None:
    from casework.llm.client_streaming import MOCK_REPLY

    chunks = await _collect(operations=CaseOperations(rng=random.Random(1), latency_scale=0))
    assert [c["delta"] for c in chunks if c["type"] == "text-delta"] == [MOCK_REPLY]
    assert chunks[-1] == {"type": "finish"}


@pytest.mark.asyncio
async def test_tool_call_chunk_sequence(monkeypatch) -> None:
    _install_planner(monkeypatch, [_plan({"tool": "getEligibilityCriteria", "args": {"disabilityType": "sensory"}})])
    _install_reply(monkeypatch, "Here are the criteria.")

    chunks = await _collect(operations=CaseOperations(rng=random.Random(1), latency_scale=0))

    types = _types(chunks)
    assert types[:7] == [
        "start",
        "data-workflow",
        "start-step",
        "tool-input-start",
        "tool-input-available",
        "data-workflow",
        "tool-output-available",
    ]
    assert types[7] == "finish-step"

    call_ids = {c["toolCallId"] for c in chunks if c["type"].startswith("tool-")}
    assert len(call_ids) == 1
    avail = chunks[4]
    assert avail["toolName"] == "getEligibilityCriteria"
    assert avail["input"] == {"disabilityType": "sensory"}

    output = chunks[6]["output"]
    assert isinstance(output, str)
    inner = json.loads(json.loads(output)["output"]["value"])
    assert inner["disabilityType"] == "Sensory Impairment"


@pytest.mark.asyncio
async def test_transient_failure_is_retried_then_succeeds(monkeypatch, scripted_random) -> None:
    _install_planner(monkeypatch, [_plan({"tool": "checkCaseStatus", "args": {"caseId": "DC1"}})])
    _install_reply(monkeypatch, "ok")

    ops = CaseOperations(rng=scripted_random([0.0, 0.99]), latency_scale=0)
    chunks = await _collect(operations=ops)

    retries = [c for c in chunks if c["type"] == "data-workflow" and c["data"]["message"].startswith("Retrying")]
    assert len(retries) == 1
    assert "attempt 2 of 3" in retries[0]["data"]["message"]
    assert "tool-output-available" in _types(chunks)
    assert "tool-output-error" not in _types(chunks)


@pytest.mark.asyncio
async def test_transient_failure_exhausts_attempts(monkeypatch, scripted_random) -> None:
    _install_planner(monkeypatch, [_plan({"tool": "checkCaseStatus", "args": {"caseId": "DC1"}})])
    _install_reply(monkeypatch, "Sorry.")

    ops = CaseOperations(rng=scripted_random([0.0, 0.0, 0.0]), latency_scale=0)
    chunks = await _collect(operations=ops, policy=ChatPolicy(step_max_attempts=3))

    errors = [c for c in chunks if c["type"] == "tool-output-error"]
    assert len(errors) == 1
    assert errors[0]["errorText"] == "Case management system temporarily unavailable"
    retries = [c for c in chunks if c["type"] == "data-workflow" and c["data"]["message"].startswith("Retrying")]
    assert len(retries) == 2
    assert chunks[-1]["type"] == "finish"


@pytest.mark.asyncio
async def test_fatal_failure_is_not_retried(monkeypatch, scripted_random) -> None:
    args = {"caseId": "DC1", "updateType": "Contact Information", "details": "New phone 555-0100"}
    _install_planner(monkeypatch, [_plan({"tool": "updateCase", "args": args})])
    _install_reply(monkeypatch, "The case is locked.")

    rng = scripted_random([0.0])
    ops = CaseOperations(rng=rng, latency_scale=0)
    chunks = await _collect(operations=ops)

    errors = [c for c in chunks if c["type"] == "tool-output-error"]
    assert len(errors) == 1
    assert "locked for review" in errors[0]["errorText"]
    assert not any(c["type"] == "data-workflow" and c["data"]["message"].startswith("Retrying") for c in chunks)
    assert rng._values == []


@pytest.mark.asyncio
async def test_invalid_tool_input_is_reported_without_running(monkeypatch) -> None:
    class _Untouchable(random.Random):
        def random(self) -> float:
            raise AssertionError("operation ran")

    _install_planner(monkeypatch, [_plan({"tool": "checkCaseStatus", "args": {}})])
    _install_reply(monkeypatch, "Which case?")

    chunks = await _collect(operations=CaseOperations(rng=_Untouchable(), latency_scale=0))

    errors = [c for c in chunks if c["type"] == "tool-output-error"]
    assert len(errors) == 1
    assert "caseId" in errors[0]["errorText"]


@pytest.mark.asyncio
async def test_unknown_tool_is_reported(monkeypatch) -> None:
    _install_planner(monkeypatch, [_plan({"tool": "deleteCase", "args": {"caseId": "DC1"}})])
    _install_reply(monkeypatch, "I can't do that.")

    chunks = await _collect(operations=CaseOperations(rng=random.Random(1), latency_scale=0))
    errors = [c for c in chunks if c["type"] == "tool-output-error"]
    assert errors and "unknown tool" in errors[0]["errorText"]


@pytest.mark.asyncio
async def test_tool_call_budget_is_enforced(monkeypatch) -> None:
    call = {"tool": "getEligibilityCriteria", "args": {"disabilityType": "Hearing Impairment"}}
    _install_planner(monkeypatch, [_plan(call, call, call), _plan(call, call)])
    _install_reply(monkeypatch, "done")

    chunks = await _collect(
        operations=CaseOperations(rng=random.Random(1), latency_scale=0),
        policy=ChatPolicy(max_tool_calls=2),
    )
    assert _types(chunks).count("tool-input-available") == 2


@pytest.mark.asyncio
async def test_tool_results_feed_the_next_planning_step(monkeypatch) -> None:
    prompts = _install_planner(
        monkeypatch, [_plan({"tool": "getEligibilityCriteria", "args": {"disabilityType": "Mental Health"}})]
    )
    _install_reply(monkeypatch, "ok")

    await _collect(operations=CaseOperations(rng=random.Random(1), latency_scale=0))

    assert len(prompts) == 2
    assert "TOOL_RESULTS:\n[]" in prompts[0]
    assert '"tool": "getEligibilityCriteria"' in prompts[1]


@pytest.mark.asyncio
async def test_planning_error_ends_turn_with_error_chunk(monkeypatch) -> None:
    import casework.chat.runtime_streaming as rs

    monkeypatch.setattr(rs, "generate_json", lambda prompt, *, schema=None: (None, "timeout"))

    chunks = await _collect(operations=CaseOperations(rng=random.Random(1), latency_scale=0))

    assert _types(chunks) == ["start", "data-workflow", "error", "finish"]
    assert "timeout" in chunks[2]["errorText"]


@pytest.mark.asyncio
async def test_disabled_policy_short_circuits() -> None:
    chunks = await _collect(
        operations=CaseOperations(rng=random.Random(1), latency_scale=0),
        policy=ChatPolicy(enabled=False),
    )
    assert _types(chunks) == ["start", "error", "finish"]
