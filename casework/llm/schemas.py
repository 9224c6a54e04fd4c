from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PLANNED_CALLS = 4


def _clamp_str(s: Any, *, max_chars: int) -> str:
    txt = "" if s is None else str(s)
    txt = txt.strip()
    if max_chars > 0 and len(txt) > max_chars:
        return txt[: max_chars - 1] + "…"
    return txt


class ToolCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tool: str = Field(default="")
    args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tool", mode="before")
    @classmethod
    def _tool_trim(cls, v: Any) -> str:
        return _clamp_str(v, max_chars=80)

    @field_validator("args", mode="before")
    @classmethod
    def _args_obj(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}


class ToolPlanResponse(BaseModel):
    """
    Versioned envelope for the tool-planning LLM call.

    An empty `tool_calls` list means "answer now".
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal["casework.tool_plan.v1"] = "casework.tool_plan.v1"
    reply: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    warnings: Optional[List[str]] = None

    @field_validator("reply", mode="before")
    @classmethod
    def _reply_trim(cls, v: Any) -> str:
        return _clamp_str(v, max_chars=600)

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _tool_calls_cap(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        out: List[Any] = []
        for x in v[:MAX_PLANNED_CALLS]:
            if isinstance(x, (dict, ToolCall)):
                out.append(x)
        return out
