from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

ChatRole = Literal["user", "assistant", "system"]
ToolPartState = Literal["input-streaming", "input-available", "output-available", "error"]

TOOL_PART_PREFIX = "tool-"
DATA_PART_PREFIX = "data-"

TERMINAL_TOOL_STATES = frozenset({"output-available", "error"})


class TextPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["text"] = "text"
    text: str = ""
    state: Optional[Literal["streaming", "done"]] = None


class DataPart(BaseModel):
    """Custom status event, e.g. `data-workflow` pings from the runtime."""

    model_config = ConfigDict(extra="ignore")

    type: str
    id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class ToolPart(BaseModel):
    """One tool invocation record; `type` is `tool-<operationName>`."""

    model_config = ConfigDict(extra="ignore")

    type: str
    toolCallId: str
    state: ToolPartState = "input-streaming"
    input: Any = None
    output: Any = None
    errorText: Optional[str] = None

    @property
    def tool_name(self) -> str:
        return self.type[len(TOOL_PART_PREFIX) :]

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_TOOL_STATES


Part = Union[TextPart, DataPart, ToolPart]


def parse_part(raw: Any) -> Part:
    if isinstance(raw, (TextPart, DataPart, ToolPart)):
        return raw
    if not isinstance(raw, dict):
        raise ValueError("part must be an object")
    t = str(raw.get("type") or "")
    if t == "text":
        return TextPart.model_validate(raw)
    if t.startswith(DATA_PART_PREFIX):
        return DataPart.model_validate(raw)
    if t.startswith(TOOL_PART_PREFIX):
        return ToolPart.model_validate(raw)
    raise ValueError(f"unknown part type: {t or '<missing>'}")


class MessageMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    createdAt: Optional[int] = None


class UIMessage(BaseModel):
    id: str
    role: ChatRole
    parts: List[Part] = Field(default_factory=list)
    metadata: Optional[MessageMetadata] = None

    @field_validator("parts", mode="before")
    @classmethod
    def _parse_parts(cls, v: Any) -> List[Part]:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("parts must be a list")
        return [parse_part(p) for p in v]

    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class UIChunk(BaseModel):
    """
    One event of the UI message stream.

    Types: start, start-step, finish-step, text-start, text-delta, text-end,
    tool-input-start, tool-input-delta, tool-input-available,
    tool-output-available, tool-output-error, data-*, finish, error.
    """

    model_config = ConfigDict(extra="ignore")

    type: str
    id: Optional[str] = None
    messageId: Optional[str] = None
    delta: Optional[str] = None
    toolCallId: Optional[str] = None
    toolName: Optional[str] = None
    inputTextDelta: Optional[str] = None
    input: Any = None
    output: Any = None
    errorText: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    messageMetadata: Optional[Dict[str, Any]] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ChatRequest(BaseModel):
    messages: List[UIMessage] = Field(default_factory=list)
