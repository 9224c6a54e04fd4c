"""
Workflow chat transport (client side).

Sends the conversation to the chat endpoint, records the run id from the
`x-workflow-run-id` response header and yields UI message stream chunks.
When the stream drops before `[DONE]` the transport reconnects to
`{api}/{run_id}/stream?startIndex=N`, where N is the number of chunks already
received. Reconnection stops after `max_consecutive_errors` failures in a row.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterator, Optional, Sequence
from urllib.parse import quote

import requests

from casework.chat.types import UIMessage

logger = logging.getLogger(__name__)

RUN_ID_HEADER = "x-workflow-run-id"
SSE_DONE = "[DONE]"

OnChatSendMessage = Callable[[str], None]
OnChatEnd = Callable[[str, int], None]


class TransportError(RuntimeError):
    """The stream cannot be started or resumed."""


class RunNotFoundError(TransportError):
    """The server no longer knows the run (restarted or evicted)."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Workflow run {run_id} not found")
        self.run_id = run_id


def build_reconnect_url(api: str, run_id: str) -> str:
    return f"{api.rstrip('/')}/{quote(str(run_id), safe='')}/stream"


def _check_status(resp: requests.Response, *, run_id: Optional[str] = None) -> None:
    """HTTP failures become TransportError; a 404 on a run stream is RunNotFoundError."""
    try:
        resp.raise_for_status()
    except requests.HTTPError as e:
        resp.close()
        if run_id and resp.status_code == 404:
            raise RunNotFoundError(run_id) from e
        raise TransportError(f"Chat server returned HTTP {resp.status_code}") from e


def iter_sse_data(resp: requests.Response) -> Iterator[str]:
    """Yield the payload of each `data:` line; other SSE fields are ignored."""
    for line in resp.iter_lines(decode_unicode=True):
        if not line or line.startswith(":"):
            continue
        if line.startswith("data:"):
            yield line[5:].lstrip()


class WorkflowChatTransport:
    def __init__(
        self,
        *,
        api: str,
        session: Optional[requests.Session] = None,
        timeout: float = 120,
        max_consecutive_errors: int = 5,
        on_chat_send_message: Optional[OnChatSendMessage] = None,
        on_chat_end: Optional[OnChatEnd] = None,
    ) -> None:
        self.api = api.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_consecutive_errors = max(1, int(max_consecutive_errors))
        self.on_chat_send_message = on_chat_send_message
        self.on_chat_end = on_chat_end

    def send_messages(self, messages: Sequence[UIMessage]) -> Iterator[Dict[str, Any]]:
        body = {"messages": [m.to_json() for m in messages]}
        try:
            resp = self.session.post(self.api, json=body, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Chat request failed: {e}") from e
        _check_status(resp)
        run_id = (resp.headers.get(RUN_ID_HEADER) or "").strip()
        if not run_id:
            resp.close()
            raise TransportError(f"Workflow run ID not found in {RUN_ID_HEADER!r} response header")
        logger.info("Chat run started run_id=%s", run_id)
        if self.on_chat_send_message is not None:
            self.on_chat_send_message(run_id)
        yield from self._follow(run_id, resp)

    def reconnect_to_stream(self, run_id: Optional[str], *, start_index: int = 0) -> Iterator[Dict[str, Any]]:
        if not run_id:
            raise TransportError("No active workflow run ID found")
        logger.info("Resuming chat run run_id=%s startIndex=%d", run_id, start_index)
        yield from self._follow(run_id, None, start_index=start_index)

    def _open_resume(self, run_id: str, start_index: int) -> requests.Response:
        resp = self.session.get(
            build_reconnect_url(self.api, run_id),
            params={"startIndex": start_index},
            stream=True,
            timeout=self.timeout,
        )
        _check_status(resp, run_id=run_id)
        return resp

    def _follow(
        self, run_id: str, resp: Optional[requests.Response], *, start_index: int = 0
    ) -> Iterator[Dict[str, Any]]:
        index = max(0, int(start_index))
        errors = 0
        while True:
            done = False
            try:
                if resp is None:
                    resp = self._open_resume(run_id, index)
                for data in iter_sse_data(resp):
                    if data == SSE_DONE:
                        done = True
                        break
                    chunk = json.loads(data)
                    index += 1
                    errors = 0
                    yield chunk
                if not done:
                    raise requests.ConnectionError("stream ended before [DONE]")
            except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
                errors += 1
                if errors > self.max_consecutive_errors:
                    raise TransportError(
                        f"Giving up on run {run_id} after {errors} consecutive stream failures"
                    ) from e
                logger.warning("Chat stream interrupted run_id=%s chunk=%d (%s); reconnecting", run_id, index, e)
            finally:
                if resp is not None:
                    resp.close()
                    resp = None
            if done:
                if self.on_chat_end is not None:
                    self.on_chat_end(run_id, index)
                return
