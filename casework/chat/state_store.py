"""
Persisted client chat state.

Two independent keys:
- `chat-history`: the full message list (JSON array)
- `active-workflow-run-id`: run id of an in-flight turn, removed when the
  stream ends normally
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from casework.chat.types import UIMessage
from casework.storage.local_store import LocalStorage

logger = logging.getLogger(__name__)

CHAT_HISTORY_KEY = "chat-history"
ACTIVE_RUN_ID_KEY = "active-workflow-run-id"


class ChatStateStore:
    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage

    def load_messages(self) -> List[UIMessage]:
        try:
            raw = self.storage.get_json(CHAT_HISTORY_KEY)
        except ValueError:
            logger.warning("Ignoring unreadable chat history", exc_info=True)
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed chat history (expected a list)")
            return []
        try:
            return [UIMessage.model_validate(m) for m in raw]
        except ValidationError:
            logger.warning("Ignoring malformed chat history", exc_info=True)
            return []

    def save_messages(self, messages: Sequence[UIMessage]) -> None:
        self.storage.put_json(CHAT_HISTORY_KEY, [m.to_json() for m in messages])

    def load_run_id(self) -> Optional[str]:
        try:
            raw = self.storage.get_json(ACTIVE_RUN_ID_KEY)
        except ValueError:
            logger.warning("Ignoring unreadable active run id", exc_info=True)
            return None
        if raw is None:
            return None
        s = str(raw).strip()
        return s or None

    def save_run_id(self, run_id: str) -> None:
        self.storage.put_json(ACTIVE_RUN_ID_KEY, str(run_id))

    def clear_run_id(self) -> None:
        self.storage.delete(ACTIVE_RUN_ID_KEY)

    def clear(self) -> None:
        self.storage.delete(CHAT_HISTORY_KEY)
        self.storage.delete(ACTIVE_RUN_ID_KEY)
