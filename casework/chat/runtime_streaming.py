"""
Streaming agent runtime for the case management assistant.

One turn produces a UI message stream:
1. `start`, then a `data-workflow` status ping
2. tool planning: blocking structured-output call (`ToolPlanResponse`)
3. tool execution: `tool-input-start` / `tool-input-available`, then
   `tool-output-available` or `tool-output-error` per call
4. final reply: streamed `text-start` / `text-delta` / `text-end`
5. `finish`

Transient operation failures are retried up to `ChatPolicy.step_max_attempts`
attempts; fatal failures are surfaced once and never retried.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Tuple

from casework.cases.errors import FatalError, TransientError
from casework.cases.operations import CaseOperations
from casework.chat.catalog import ToolInputError, ToolResult, invoke_tool, tool_specs
from casework.chat.presentation import encode_tool_output, unwrap_tool_output
from casework.chat.reconciler import now_ms
from casework.chat.types import ToolPart, UIMessage
from casework.config import ChatPolicy
from casework.graphs.tracing import trace_tool_call
from casework.llm.client import generate_json
from casework.llm.client_streaming import stream_text_response
from casework.llm.schemas import ToolPlanResponse

logger = logging.getLogger(__name__)

CASE_MANAGEMENT_ASSISTANT_PROMPT = """You are a helpful and compassionate disability case management assistant. You help applicants and caseworkers with:
- Creating new disability benefit cases
- Checking the status of existing cases
- Updating case information
- Assigning or reassigning caseworkers
- Adding documentation to cases
- Scheduling appointments (consultations, examinations, hearings)
- Understanding eligibility criteria for different disability types

Be empathetic, professional, and thorough. When creating new cases, ensure you have all required information.
When checking case status, explain what each status means and what the next steps are.
Always provide clear guidance on required documentation and timelines.
If an applicant seems distressed, acknowledge their feelings and provide reassurance about the process.

Important: Always protect applicant privacy. Do not share case details without proper verification."""

_TOOL_START_MESSAGES = {
    "createCase": "Creating your case...",
    "checkCaseStatus": "Looking up the case...",
    "updateCase": "Updating the case...",
    "assignCaseworker": "Finding a caseworker...",
    "addDocumentation": "Recording the document...",
    "scheduleAppointment": "Checking the appointment calendar...",
    "getEligibilityCriteria": "Looking up eligibility criteria...",
}

ToolEvent = Tuple[str, Dict[str, Any], ToolResult]


def _chunk(type_: str, **fields: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": type_}
    for k, v in fields.items():
        if v is not None:
            out[k] = v
    return out


def _status(message: str) -> Dict[str, Any]:
    return _chunk("data-workflow", id=f"status_{uuid.uuid4().hex[:8]}", data={"message": message})


def _tool_start_message(tool: str) -> str:
    return _TOOL_START_MESSAGES.get(tool, f"Running {tool}...")


def _latest_user_text(messages: Sequence[UIMessage]) -> str:
    for m in reversed(messages):
        if m.role == "user":
            return m.text()
    return ""


def _compact_history(messages: Sequence[UIMessage], *, limit: int = 16) -> List[Dict[str, Any]]:
    """
    Prompt-sized view of the conversation. Tool parts keep their input and the
    unwrapped result (or error text) so follow-up questions can refer to them.
    """
    out: List[Dict[str, Any]] = []
    for m in list(messages)[-limit:]:
        entry: Dict[str, Any] = {"role": m.role, "content": m.text()[:1200]}
        tools = []
        for p in m.parts:
            if not isinstance(p, ToolPart):
                continue
            t: Dict[str, Any] = {"tool": p.tool_name, "input": p.input, "state": p.state}
            if p.state == "error":
                t["error"] = p.errorText
            elif p.state == "output-available":
                t["result"] = unwrap_tool_output(p.output)
            tools.append(t)
        if tools:
            entry["tools"] = tools
        out.append(entry)
    return out


def _events_for_prompt(tool_events: Sequence[ToolEvent]) -> List[Dict[str, Any]]:
    return [
        {
            "tool": tool,
            "args": args,
            "ok": res.ok,
            "attempts": res.attempts,
            "error": res.error,
            "result": res.result if res.ok else None,
        }
        for tool, args, res in tool_events
    ]


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _build_tool_plan_prompt(
    *, messages: Sequence[UIMessage], tool_events: Sequence[ToolEvent], remaining_calls: int
) -> str:
    specs = [
        {
            "name": s["name"],
            "description": s["description"],
            "parameters": s["parameters"].get("properties", {}),
            "required": s["parameters"].get("required", []),
        }
        for s in tool_specs()
    ]
    return (
        f"{CASE_MANAGEMENT_ASSISTANT_PROMPT}\n\n"
        "You are now deciding which case operations (tools) to call before answering.\n"
        "Rules:\n"
        "- Call tools only when the request needs a case operation or reference data.\n"
        "- Greetings, thanks and general questions need no tools: return tool_calls: [].\n"
        "- Never invent a case ID. If a required argument is missing, return tool_calls: [] "
        "and ask for it in `reply`.\n"
        "- Do not repeat a call that already appears in TOOL_RESULTS for this turn.\n"
        "- A call that failed after retries should not be repeated; explain the failure instead.\n"
        "- Dates are YYYY-MM-DD, times are HH:MM (24h).\n"
        f"- At most {max(0, remaining_calls)} more tool calls are allowed this turn.\n\n"
        f"TODAY: {_today()}\n\n"
        f"TOOLS:\n{json.dumps(specs, ensure_ascii=False)}\n\n"
        "Output JSON schema (exact keys):\n"
        "{\n"
        '  "schema_version": "casework.tool_plan.v1",\n'
        '  "reply": string,\n'
        '  "tool_calls": [ { "tool": string, "args": object } ]\n'
        "}\n\n"
        f"TOOL_RESULTS:\n{json.dumps(_events_for_prompt(tool_events), ensure_ascii=False)}\n\n"
        f"CHAT_HISTORY:\n{json.dumps(_compact_history(messages), ensure_ascii=False)}\n\n"
        f"USER:\n{_latest_user_text(messages)}\n"
    )


def _build_final_response_prompt(*, messages: Sequence[UIMessage], tool_events: Sequence[ToolEvent]) -> str:
    return (
        f"{CASE_MANAGEMENT_ASSISTANT_PROMPT}\n\n"
        "Write your reply to the user now.\n"
        "- Use ONLY the TOOL_RESULTS and CHAT_HISTORY below; never invent case details.\n"
        "- The user already sees each tool result as a card, so summarize instead of repeating every field.\n"
        "- If a tool failed, say so plainly and suggest what the user can do (try again later, "
        "pick another date, contact their caseworker).\n"
        "- Keep it short and warm.\n\n"
        f"TOOL_RESULTS:\n{json.dumps(_events_for_prompt(tool_events), ensure_ascii=False)}\n\n"
        f"CHAT_HISTORY:\n{json.dumps(_compact_history(messages), ensure_ascii=False)}\n\n"
        f"USER:\n{_latest_user_text(messages)}\n"
    )


async def run_chat_stream(
    *,
    policy: ChatPolicy,
    messages: Sequence[UIMessage],
    operations: CaseOperations,
    message_id: Optional[str] = None,
) -> AsyncGenerator[Dict[str, Any], None]:
    """
    Run one assistant turn over `messages` and yield UI message stream chunks
    (plain dicts, ready for JSON encoding).
    """
    msg_id = message_id or uuid.uuid4().hex[:16]
    yield _chunk("start", messageId=msg_id, messageMetadata={"createdAt": now_ms()})

    if not policy.enabled:
        yield _chunk("error", errorText="Chat is disabled by policy.")
        yield _chunk("finish")
        return

    yield _status("Reviewing your request...")

    tool_events: List[ToolEvent] = []
    remaining_calls = int(policy.max_tool_calls)
    max_attempts = max(1, int(policy.step_max_attempts))

    for step in range(int(policy.max_steps)):
        if remaining_calls <= 0:
            break
        prompt = _build_tool_plan_prompt(messages=messages, tool_events=tool_events, remaining_calls=remaining_calls)
        obj, err = await asyncio.to_thread(generate_json, prompt, schema=ToolPlanResponse)
        if err or not isinstance(obj, dict):
            logger.warning("Tool planning failed at step %d: %s", step, err or "invalid_response")
            yield _chunk("error", errorText=f"The assistant is unavailable right now ({err or 'invalid_response'}).")
            yield _chunk("finish")
            return

        plan = ToolPlanResponse.model_validate(obj)
        if not plan.tool_calls:
            break

        yield _chunk("start-step")
        for tc in plan.tool_calls:
            if remaining_calls <= 0:
                break
            remaining_calls -= 1
            tool, args = tc.tool, dict(tc.args)
            call_id = f"call_{uuid.uuid4().hex[:12]}"

            yield _chunk("tool-input-start", toolCallId=call_id, toolName=tool)
            yield _chunk("tool-input-available", toolCallId=call_id, toolName=tool, input=args)
            yield _status(_tool_start_message(tool))

            res = ToolResult(ok=False)
            for attempt in range(1, max_attempts + 1):
                try:
                    out = await trace_tool_call(
                        tool=tool,
                        args=args,
                        fn=functools.partial(invoke_tool, tool=tool, args=args, operations=operations),
                    )
                    res = ToolResult(ok=True, result=out, attempts=attempt)
                    break
                except ToolInputError as e:
                    res = ToolResult(ok=False, error=str(e), attempts=attempt)
                    break
                except TransientError as e:
                    res = ToolResult(ok=False, error=str(e), retryable=True, attempts=attempt)
                    if attempt < max_attempts:
                        logger.warning("Tool %s failed (attempt %d/%d), retrying: %s", tool, attempt, max_attempts, e)
                        yield _status(f"Retrying {tool} (attempt {attempt + 1} of {max_attempts})...")
                        continue
                    logger.warning("Tool %s failed after %d attempts: %s", tool, attempt, e)
                except FatalError as e:
                    logger.warning("Tool %s failed with a non-retryable error: %s", tool, e)
                    res = ToolResult(ok=False, error=str(e), attempts=attempt)
                    break
                except Exception as e:
                    logger.exception("Tool %s raised unhandled exception", tool)
                    res = ToolResult(ok=False, error=f"tool_exception:{type(e).__name__}", attempts=attempt)
                    break

            if res.ok:
                yield _chunk("tool-output-available", toolCallId=call_id, output=encode_tool_output(res.result))
            else:
                yield _chunk("tool-output-error", toolCallId=call_id, errorText=res.error or "Unknown error")
            tool_events.append((tool, args, res))
        yield _chunk("finish-step")

    final_prompt = _build_final_response_prompt(messages=messages, tool_events=tool_events)
    text_id = f"text_{uuid.uuid4().hex[:8]}"
    yield _chunk("start-step")
    yield _chunk("text-start", id=text_id)
    async for chunk in stream_text_response(final_prompt):
        if chunk.content:
            yield _chunk("text-delta", id=text_id, delta=chunk.content)
    yield _chunk("text-end", id=text_id)
    yield _chunk("finish-step")
    yield _chunk("finish")
