"""
Streaming LLM client for the assistant's final prose reply.

Tool planning stays on the blocking `generate_json()`; only user-facing text
is streamed. Tokens are batched (N tokens or a short timeout) so the UI gets
steady deltas instead of one event per token.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List

from casework.config import _env_bool
from casework.llm.client import _get_llm_instance, _load_config

logger = logging.getLogger(__name__)

MOCK_REPLY = "LLM_MOCK enabled: streaming disabled."


@dataclass
class LLMStreamChunk:
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return "error" in self.metadata


def _chunk_text(chunk: Any) -> str:
    content = getattr(chunk, "content", None)
    if isinstance(content, str):
        return content
    text = ""
    if isinstance(content, list):
        # Anthropic returns a list of content blocks.
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                text += str(block.get("text") or "")
            elif hasattr(block, "text"):
                text += str(block.text)
    return text


async def stream_text_response(
    prompt: str,
    *,
    batch_size: int = 5,
    batch_timeout_ms: int = 100,
) -> AsyncGenerator[LLMStreamChunk, None]:
    """
    Stream a natural-language reply.

    Errors never raise out of the generator: buffered text is flushed and a
    final chunk with `metadata["error"]` is yielded instead.
    """
    if _env_bool("LLM_MOCK", False):
        yield LLMStreamChunk(content=MOCK_REPLY)
        return

    cfg = _load_config()
    llm, err = _get_llm_instance(cfg)
    if err:
        yield LLMStreamChunk(content=f"LLM initialization failed: {err}", metadata={"error": err})
        return

    buffer: List[str] = []
    last_flush = time.monotonic()
    batch_timeout = batch_timeout_ms / 1000.0
    try:
        async for chunk in llm.astream(prompt):
            content = _chunk_text(chunk)
            if not content:
                continue
            buffer.append(content)
            if len(buffer) >= batch_size or time.monotonic() - last_flush >= batch_timeout:
                yield LLMStreamChunk(content="".join(buffer))
                buffer.clear()
                last_flush = time.monotonic()
        if buffer:
            yield LLMStreamChunk(content="".join(buffer))
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("LLM stream failed: %s", type(e).__name__)
        if buffer:
            yield LLMStreamChunk(content="".join(buffer))
        yield LLMStreamChunk(
            content=f"\n\n[Error during streaming: {type(e).__name__}]",
            metadata={"error": str(e), "error_type": type(e).__name__},
        )
