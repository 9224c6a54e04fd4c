"""
Conversation state reconciler.

Merges UI message stream chunks into an ordered message list:
- parts keep arrival order inside a message; messages keep send order
- text deltas concatenate into the part opened by `text-start`
- tool parts move input-streaming -> input-available -> output-available | error
  and never leave a terminal state
- after `stop()` further chunks are dropped; nothing is rolled back
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Union

from casework.chat.types import (
    DATA_PART_PREFIX,
    TOOL_PART_PREFIX,
    DataPart,
    MessageMetadata,
    TextPart,
    ToolPart,
    UIChunk,
    UIMessage,
)

logger = logging.getLogger(__name__)

_TOOL_TRANSITIONS = {
    "input-streaming": {"input-streaming", "input-available", "output-available", "error"},
    "input-available": {"output-available", "error"},
    "output-available": set(),
    "error": set(),
}

# Stream bookkeeping chunks with no effect on message content.
_IGNORED_CHUNKS = frozenset({"start-step", "finish-step"})


class InvalidPartTransition(ValueError):
    """A chunk tried to move a tool part backwards or out of a terminal state."""


def now_ms() -> int:
    return int(time.time() * 1000)


def new_message_id() -> str:
    return uuid.uuid4().hex[:16]


class ConversationReconciler:
    def __init__(self, messages: Optional[List[UIMessage]] = None) -> None:
        self.messages: List[UIMessage] = list(messages or [])
        self.stopped = False
        self.finished = False
        self.error: Optional[str] = None
        self._open_text: Dict[str, TextPart] = {}
        self._partial_input: Dict[str, str] = {}

    def add_user_message(self, text: str, *, created_at: Optional[int] = None) -> UIMessage:
        msg = UIMessage(
            id=new_message_id(),
            role="user",
            parts=[TextPart(text=text)],
            metadata=MessageMetadata(createdAt=created_at if created_at is not None else now_ms()),
        )
        self.messages.append(msg)
        return msg

    def begin_turn(self) -> None:
        """Reset per-turn stream bookkeeping before a new stream is applied."""
        self.stopped = False
        self.finished = False
        self.error = None
        self._open_text.clear()
        self._partial_input.clear()

    def stop(self) -> None:
        self.stopped = True

    def _assistant(self, message_id: Optional[str] = None) -> UIMessage:
        last = self.messages[-1] if self.messages else None
        if last is not None and last.role == "assistant" and (message_id is None or last.id == message_id):
            return last
        msg = UIMessage(
            id=message_id or new_message_id(),
            role="assistant",
            parts=[],
            metadata=MessageMetadata(createdAt=now_ms()),
        )
        self.messages.append(msg)
        return msg

    def _tool_part(self, tool_call_id: str) -> Optional[ToolPart]:
        msg = self._assistant()
        for p in msg.parts:
            if isinstance(p, ToolPart) and p.toolCallId == tool_call_id:
                return p
        return None

    def _ensure_tool_part(self, chunk: UIChunk) -> ToolPart:
        call_id = str(chunk.toolCallId or "")
        if not call_id:
            raise ValueError(f"{chunk.type} chunk without toolCallId")
        part = self._tool_part(call_id)
        if part is None:
            if not chunk.toolName:
                raise ValueError(f"{chunk.type} for unknown tool call {call_id}")
            part = ToolPart(type=f"{TOOL_PART_PREFIX}{chunk.toolName}", toolCallId=call_id)
            self._assistant().parts.append(part)
        return part

    @staticmethod
    def _advance(part: ToolPart, new_state: str) -> None:
        allowed = _TOOL_TRANSITIONS.get(part.state, set())
        if new_state not in allowed:
            raise InvalidPartTransition(f"tool call {part.toolCallId}: {part.state} -> {new_state}")
        part.state = new_state  # type: ignore[assignment]

    def apply_chunk(self, raw: Union[UIChunk, Dict[str, Any]]) -> bool:
        """
        Merge one chunk. Returns False when the chunk was dropped (after stop()).
        """
        if self.stopped:
            return False
        chunk = raw if isinstance(raw, UIChunk) else UIChunk.model_validate(raw)
        t = chunk.type

        if t == "start":
            msg = self._assistant(chunk.messageId)
            if chunk.messageMetadata:
                merged = {**(msg.metadata.model_dump() if msg.metadata else {}), **chunk.messageMetadata}
                msg.metadata = MessageMetadata.model_validate(merged)
            return True

        if t in _IGNORED_CHUNKS:
            return True

        if t == "text-start":
            part = TextPart(text="", state="streaming")
            self._assistant().parts.append(part)
            self._open_text[str(chunk.id or "")] = part
            return True

        if t == "text-delta":
            key = str(chunk.id or "")
            part = self._open_text.get(key)
            if part is None:
                # Delta without text-start: open the part implicitly.
                part = TextPart(text="", state="streaming")
                self._assistant().parts.append(part)
                self._open_text[key] = part
            part.text += chunk.delta or ""
            return True

        if t == "text-end":
            part = self._open_text.pop(str(chunk.id or ""), None)
            if part is not None:
                part.state = "done"
            return True

        if t == "tool-input-start":
            part = self._ensure_tool_part(chunk)
            if part.state != "input-streaming":
                raise InvalidPartTransition(f"tool call {part.toolCallId}: input restarted in {part.state}")
            return True

        if t == "tool-input-delta":
            part = self._ensure_tool_part(chunk)
            if part.state != "input-streaming":
                raise InvalidPartTransition(f"tool call {part.toolCallId}: input delta in {part.state}")
            call_id = part.toolCallId
            self._partial_input[call_id] = self._partial_input.get(call_id, "") + (chunk.inputTextDelta or "")
            return True

        if t == "tool-input-available":
            part = self._ensure_tool_part(chunk)
            self._advance(part, "input-available")
            part.input = chunk.input
            self._partial_input.pop(part.toolCallId, None)
            return True

        if t == "tool-output-available":
            part = self._ensure_tool_part(chunk)
            self._advance(part, "output-available")
            part.output = chunk.output
            return True

        if t == "tool-output-error":
            part = self._ensure_tool_part(chunk)
            self._advance(part, "error")
            part.errorText = chunk.errorText or "Unknown error"
            return True

        if t.startswith(DATA_PART_PREFIX):
            self._assistant().parts.append(DataPart(type=t, id=chunk.id, data=dict(chunk.data or {})))
            return True

        if t == "finish":
            self.finished = True
            for part in self._open_text.values():
                part.state = "done"
            self._open_text.clear()
            return True

        if t == "error":
            self.error = chunk.errorText or "Unknown error"
            return True

        logger.debug("Ignoring unknown chunk type %s", t)
        return True
