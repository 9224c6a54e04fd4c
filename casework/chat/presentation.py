"""
Tool-result presentation.

Tool outputs travel double-encoded: the runtime wraps the operation's JSON
result in a JSON envelope (`{"output": {"type": "text", "value": "<json>"}}`)
and sends that envelope as a string. `unwrap_tool_output` is the single place
that peels both layers; every renderer works on the plain result dict.

Rendering never raises: malformed or missing output renders nothing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from dateutil import parser as date_parser

from casework.cases.directory import NO_PENDING_ACTIONS, NO_REQUIRED_ACTIONS
from casework.chat.types import DataPart, Part, TextPart, ToolPart, UIMessage

logger = logging.getLogger(__name__)

PlanKind = Literal["text", "status", "tool"]
Tone = Literal["success", "info", "warning", "danger", "muted", "error"]


@dataclass
class RenderField:
    label: str
    value: str
    mono: bool = False
    tone: Optional[Tone] = None


@dataclass
class RenderSection:
    label: str
    items: List[str] = field(default_factory=list)


@dataclass
class RenderPlan:
    kind: PlanKind
    title: str = ""
    tone: Tone = "info"
    fields: List[RenderField] = field(default_factory=list)
    sections: List[RenderSection] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    body: str = ""
    input: Optional[Dict[str, Any]] = None


def encode_tool_output(result: Any) -> str:
    return json.dumps({"output": {"type": "text", "value": json.dumps(result, ensure_ascii=False)}}, ensure_ascii=False)


def unwrap_tool_output(raw: Any) -> Optional[Dict[str, Any]]:
    """Peel the transport envelope and the inner JSON. None when either layer is malformed."""
    if raw is None:
        return None
    try:
        envelope = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(envelope, dict):
            return None
        out = envelope.get("output")
        value = out.get("value") if isinstance(out, dict) else None
        if value is None:
            return None
        inner = json.loads(value) if isinstance(value, str) else value
    except (TypeError, ValueError):
        return None
    return inner if isinstance(inner, dict) else None


def _s(v: Any) -> str:
    if v is None:
        return ""
    return str(v).strip()


def _get(d: Any, *path: str) -> Any:
    cur = d
    for p in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(p)
    return cur


def _items(v: Any) -> List[str]:
    if not isinstance(v, list):
        return []
    return [_s(x) for x in v if _s(x)]


def _suppressible(v: Any, sentinel: str) -> List[str]:
    """List items, or nothing when the list leads with the "no items" sentinel."""
    items = _items(v)
    if items and items[0] == sentinel:
        return []
    return items


def format_date(raw: Any) -> str:
    s = _s(raw)
    if not s:
        return ""
    try:
        return date_parser.isoparse(s).strftime("%m/%d/%Y")
    except (ValueError, TypeError, OverflowError):
        return s


def format_datetime(raw: Any) -> str:
    s = _s(raw)
    if not s:
        return ""
    try:
        return date_parser.isoparse(s).strftime("%m/%d/%Y, %I:%M %p")
    except (ValueError, TypeError, OverflowError):
        return s


def status_tone(status: str) -> Tone:
    if status == "Approved":
        return "success"
    if status == "Denied":
        return "danger"
    if status == "Closed":
        return "muted"
    return "warning"


class _PlanBuilder:
    def __init__(self, title: str, tone: Tone = "info") -> None:
        self.plan = RenderPlan(kind="tool", title=title, tone=tone)

    def field(self, label: str, value: Any, *, mono: bool = False, tone: Optional[Tone] = None) -> "_PlanBuilder":
        s = _s(value)
        if s:
            self.plan.fields.append(RenderField(label=label, value=s, mono=mono, tone=tone))
        return self

    def section(self, label: str, items: Sequence[str]) -> "_PlanBuilder":
        if items:
            self.plan.sections.append(RenderSection(label=label, items=list(items)))
        return self

    def note(self, text: Any) -> "_PlanBuilder":
        s = _s(text)
        if s:
            self.plan.notes.append(s)
        return self


def _render_create_case(r: Dict[str, Any]) -> RenderPlan:
    return (
        _PlanBuilder("Case Created Successfully!", "success")
        .field("Case ID", r.get("caseId"), mono=True)
        .field("Applicant", r.get("applicantName"))
        .field("Disability Type", r.get("disabilityType"))
        .field("Status", r.get("status"), tone="warning")
        .field("Caseworker", _get(r, "assignedCaseworker", "name"))
        .section("Next Steps", _items(r.get("nextSteps")))
        .plan
    )


def _render_check_case_status(r: Dict[str, Any]) -> RenderPlan:
    status = _s(r.get("status"))
    return (
        _PlanBuilder(f"Case {_s(r.get('caseId'))}", "info")
        .field("Status", status, tone=status_tone(status))
        .field("Type", r.get("disabilityType"))
        .field("Filed", format_date(r.get("filingDate")))
        .field("Last Updated", format_date(r.get("lastUpdated")))
        .field("Est. Completion", r.get("estimatedCompletion"))
        .field("Caseworker", _get(r, "assignedCaseworker", "name"))
        .field("Department", _get(r, "assignedCaseworker", "department"))
        .field("Phone", _get(r, "assignedCaseworker", "phone"))
        .section("Pending Actions", _suppressible(r.get("pendingActions"), NO_PENDING_ACTIONS))
        .plan
    )


def _render_update_case(r: Dict[str, Any]) -> RenderPlan:
    return (
        _PlanBuilder("Case Updated!", "success")
        .field("Update ID", r.get("updateId"), mono=True)
        .field("Case", r.get("caseId"))
        .field("Type", r.get("updateType"))
        .note(r.get("message"))
        .plan
    )


def _render_assign_caseworker(r: Dict[str, Any]) -> RenderPlan:
    return (
        _PlanBuilder("Caseworker Assigned!", "success")
        .field("Case", r.get("caseId"))
        .field("Caseworker", _get(r, "assignedCaseworker", "name"))
        .field("Department", _get(r, "assignedCaseworker", "department"))
        .field("Specialty", _get(r, "assignedCaseworker", "specialty"))
        .note(r.get("message"))
        .plan
    )


def _render_add_documentation(r: Dict[str, Any]) -> RenderPlan:
    return (
        _PlanBuilder("Documentation Added!", "success")
        .field("Document ID", r.get("documentId"), mono=True)
        .field("Case", r.get("caseId"))
        .field("Type", r.get("documentType"))
        .field("Status", r.get("status"), tone="warning")
        .note(r.get("message"))
        .section("Required Actions", _suppressible(r.get("requiredActions"), NO_REQUIRED_ACTIONS))
        .plan
    )


def _render_schedule_appointment(r: Dict[str, Any]) -> RenderPlan:
    return (
        _PlanBuilder("Appointment Scheduled!", "success")
        .field("Appointment ID", r.get("appointmentId"), mono=True)
        .field("Case", r.get("caseId"))
        .field("Type", r.get("appointmentType"))
        .field("Date/Time", format_datetime(r.get("dateTime")))
        .field("Location", r.get("location"))
        .field("Duration", r.get("duration"))
        .section("Preparation Instructions", _items(r.get("preparationInstructions")))
        .plan
    )


def _render_eligibility_criteria(r: Dict[str, Any]) -> RenderPlan:
    return (
        _PlanBuilder(f"{_s(r.get('disabilityType'))} - Eligibility Criteria", "info")
        .section("Requirements", _items(r.get("requirements")))
        .section("Required Documentation", _items(r.get("requiredDocumentation")))
        .field("Estimated Processing Time", r.get("estimatedProcessingTime"))
        .note(r.get("additionalInfo"))
        .note(f"Helpline: {_s(r.get('helplineNumber'))}" if _s(r.get("helplineNumber")) else None)
        .plan
    )


_RENDERERS: Dict[str, Callable[[Dict[str, Any]], RenderPlan]] = {
    "createCase": _render_create_case,
    "checkCaseStatus": _render_check_case_status,
    "updateCase": _render_update_case,
    "assignCaseworker": _render_assign_caseworker,
    "addDocumentation": _render_add_documentation,
    "scheduleAppointment": _render_schedule_appointment,
    "getEligibilityCriteria": _render_eligibility_criteria,
}


def render_tool_output(tool: str, raw: Any) -> Optional[RenderPlan]:
    renderer = _RENDERERS.get(str(tool or "").strip())
    if renderer is None:
        return None
    result = unwrap_tool_output(raw)
    if result is None:
        return None
    try:
        return renderer(result)
    except Exception:
        logger.warning("Failed to render %s output", tool, exc_info=True)
        return None


def render_part(part: Part) -> Optional[RenderPlan]:
    if isinstance(part, TextPart):
        if not part.text:
            return None
        return RenderPlan(kind="text", body=part.text)

    if isinstance(part, DataPart):
        msg = _s(part.data.get("message")) if isinstance(part.data, dict) else ""
        if not msg:
            return None
        return RenderPlan(kind="status", body=msg, tone="info")

    if isinstance(part, ToolPart):
        tool = part.tool_name
        tool_input = part.input if isinstance(part.input, dict) else None
        if part.state == "error":
            # Error parts carry errorText only; output is never read.
            return RenderPlan(
                kind="tool",
                title=f"{tool} failed",
                tone="error",
                body=_s(part.errorText) or "Unknown error",
                input=tool_input,
            )
        if part.state == "output-available":
            plan = render_tool_output(tool, part.output)
            if plan is not None:
                plan.input = tool_input
            return plan
        return RenderPlan(kind="tool", title=tool, tone="info", body="Running...", input=tool_input)

    return None


def show_processing_indicator(messages: Sequence[UIMessage], *, busy: bool) -> bool:
    """True while a turn is in flight and the newest assistant message has no text yet."""
    if not busy or not messages:
        return False
    last = messages[-1]
    if last.role != "assistant":
        return busy
    return not any(isinstance(p, TextPart) for p in last.parts)


_TONE_MARKS = {
    "success": "✅ ",
    "error": "❌ ",
    "danger": "",
    "warning": "",
    "muted": "",
    "info": "",
}


def format_plan(plan: RenderPlan) -> str:
    """Plain-text rendering for the terminal chat."""
    if plan.kind == "text":
        return plan.body
    if plan.kind == "status":
        return f"[{plan.body}]"

    lines: List[str] = []
    lines.append(f"{_TONE_MARKS.get(plan.tone, '')}{plan.title}".rstrip())
    for f in plan.fields:
        lines.append(f"  {f.label}: {f.value}")
    if plan.body:
        lines.append(f"  {plan.body}")
    for n in plan.notes:
        lines.append(f"  {n}")
    for sec in plan.sections:
        lines.append(f"  {sec.label}:")
        for item in sec.items:
            lines.append(f"    - {item}")
    return "\n".join(lines)
