"""
Client chat session: reconciler + persisted state + transport.

Persistence points:
- on send (run id received): history ending with the new user message, and the run id
- on normal stream end: the full history; the run id is removed
- stop(): nothing is written and the run id stays, so the next start resumes the run
- resume of a run the server no longer has: the run id is removed
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Literal, Optional

import requests

from casework.chat.reconciler import ConversationReconciler
from casework.chat.state_store import ChatStateStore
from casework.chat.transport import RunNotFoundError, TransportError, WorkflowChatTransport
from casework.chat.types import UIMessage
from casework.config import ClientConfig
from casework.storage.local_store import LocalStorage

logger = logging.getLogger(__name__)

ChatStatus = Literal["ready", "submitted", "streaming", "error"]

SUGGESTIONS = [
    "I need to file a new disability claim",
    "Check the status of my case DC123ABC",
    "What documents do I need for a physical disability claim?",
    "Schedule an appointment for my medical examination",
    "I need to update my contact information on my case",
]

# Multi-step walkthrough offered above the suggestions.
FEATURED_PROMPT = (
    "Create a new disability case for John Smith, born 1985-03-15, with a physical disability affecting "
    "mobility due to a spinal injury. Then schedule an initial consultation appointment for next week."
)


class ChatSession:
    def __init__(
        self,
        *,
        store: ChatStateStore,
        api: str,
        http: Optional[requests.Session] = None,
        timeout: float = 120,
        max_consecutive_errors: int = 5,
    ) -> None:
        self.store = store
        self.reconciler = ConversationReconciler()
        self.status: ChatStatus = "ready"
        self.transport = WorkflowChatTransport(
            api=api,
            session=http,
            timeout=timeout,
            max_consecutive_errors=max_consecutive_errors,
            on_chat_send_message=self._on_chat_send_message,
            on_chat_end=self._on_chat_end,
        )

    @classmethod
    def from_config(cls, cfg: ClientConfig, *, http: Optional[requests.Session] = None) -> "ChatSession":
        return cls(
            store=ChatStateStore(LocalStorage(base_dir=cfg.state_dir)),
            api=cfg.api_url,
            http=http,
            timeout=cfg.timeout_seconds,
            max_consecutive_errors=cfg.max_consecutive_errors,
        )

    @property
    def messages(self) -> List[UIMessage]:
        return self.reconciler.messages

    @property
    def busy(self) -> bool:
        return self.status in ("submitted", "streaming")

    def _on_chat_send_message(self, run_id: str) -> None:
        self.store.save_messages(self.messages)
        self.store.save_run_id(run_id)

    def _on_chat_end(self, run_id: str, chunk_index: int) -> None:
        logger.info("Chat run finished run_id=%s chunks=%d", run_id, chunk_index)
        self.store.save_messages(self.messages)
        self.store.clear_run_id()

    def restore(self) -> Optional[str]:
        """Load persisted history; returns the run id of an interrupted turn, if any."""
        self.reconciler = ConversationReconciler(self.store.load_messages())
        self.status = "ready"
        return self.store.load_run_id()

    def resume(self, run_id: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """
        Re-attach to an in-flight run from chunk 0 and apply its chunks.

        Raises TransportError when no run id is given or persisted.
        """
        rid = run_id or self.store.load_run_id()
        if not rid:
            raise TransportError("No active workflow run ID found")
        self.reconciler.begin_turn()
        self.status = "streaming"
        yield from self._consume(self.transport.reconnect_to_stream(rid))

    def send(self, text: str) -> Iterator[Dict[str, Any]]:
        text = str(text or "").strip()
        if not text:
            raise ValueError("message text must not be empty")
        if self.busy:
            raise RuntimeError("a turn is already in flight")
        self.reconciler.begin_turn()
        self.reconciler.add_user_message(text)
        self.status = "submitted"
        yield from self._consume(self.transport.send_messages(self.messages))

    def stop(self) -> None:
        """Stop applying chunks. Partial state is kept as-is and nothing is persisted."""
        self.reconciler.stop()
        self.status = "ready"

    def _consume(self, stream: Iterator[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
        try:
            for chunk in stream:
                if not self.reconciler.apply_chunk(chunk):
                    break
                self.status = "streaming"
                yield chunk
                if self.reconciler.stopped:
                    break
        except RunNotFoundError as e:
            logger.warning("Dropping stale run id %s: the server no longer has it", e.run_id)
            self.store.clear_run_id()
            self.status = "error"
            raise
        except Exception:
            self.status = "error"
            raise
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        if self.reconciler.stopped:
            return
        self.status = "error" if self.reconciler.error else "ready"
