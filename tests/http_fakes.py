"""In-memory stand-ins for `requests` sessions streaming SSE."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import requests


def sse_lines(chunks: List[Dict[str, Any]], *, done: bool = True) -> List[str]:
    lines: List[str] = []
    for c in chunks:
        lines.extend([f"data: {json.dumps(c)}", ""])
    if done:
        lines.extend(["data: [DONE]", ""])
    return lines


class FakeResponse:
    def __init__(self, lines: List[str], *, headers: Optional[Dict[str, str]] = None, drop: bool = False, status: int = 200):
        self._lines = lines
        self.headers = headers or {}
        self._drop = drop
        self.status_code = status
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)  # type: ignore[arg-type]

    def iter_lines(self, decode_unicode: bool = False):
        for line in self._lines:
            yield line
        if self._drop:
            raise requests.exceptions.ChunkedEncodingError("connection dropped")

    def close(self) -> None:
        self.closed = True


class FakeSession:
    def __init__(self, *, post: Any = None, gets: Optional[List[Any]] = None):
        self._post = post
        self._gets = list(gets or [])
        self.calls: List[Dict[str, Any]] = []

    def post(self, url, json=None, stream=False, timeout=None):
        self.calls.append({"method": "POST", "url": url, "json": json})
        if isinstance(self._post, Exception):
            raise self._post
        return self._post

    def get(self, url, params=None, stream=False, timeout=None):
        self.calls.append({"method": "GET", "url": url, "params": dict(params or {})})
        nxt = self._gets.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt
