from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from casework.chat.transport import (
    RUN_ID_HEADER,
    RunNotFoundError,
    TransportError,
    WorkflowChatTransport,
    build_reconnect_url,
)
from casework.chat.types import TextPart, UIMessage
from http_fakes import FakeResponse, FakeSession, sse_lines

API = "http://chat.test/api/chat"


def _messages() -> List[UIMessage]:
    return [UIMessage(id="u1", role="user", parts=[TextPart(text="hi")])]


def test_reconnect_url_is_run_scoped() -> None:
    assert build_reconnect_url(API, "wrun_123") == f"{API}/wrun_123/stream"
    assert build_reconnect_url(API + "/", "a/b c") == f"{API}/a%2Fb%20c/stream"


def test_send_reports_run_id_and_end() -> None:
    chunks = [{"type": "start"}, {"type": "text-delta", "id": "t", "delta": "hi"}, {"type": "finish"}]
    session = FakeSession(post=FakeResponse(sse_lines(chunks), headers={RUN_ID_HEADER: "wrun_1"}))
    seen: Dict[str, Any] = {}
    t = WorkflowChatTransport(
        api=API,
        session=session,  # type: ignore[arg-type]
        on_chat_send_message=lambda rid: seen.setdefault("sent", rid),
        on_chat_end=lambda rid, n: seen.setdefault("end", (rid, n)),
    )

    out = list(t.send_messages(_messages()))

    assert out == chunks
    assert seen == {"sent": "wrun_1", "end": ("wrun_1", 3)}
    assert session.calls[0]["json"]["messages"][0]["parts"] == [{"type": "text", "text": "hi"}]


def test_missing_run_id_header_fails_immediately() -> None:
    resp = FakeResponse(sse_lines([{"type": "start"}]))
    t = WorkflowChatTransport(api=API, session=FakeSession(post=resp))  # type: ignore[arg-type]
    with pytest.raises(TransportError, match=RUN_ID_HEADER):
        next(t.send_messages(_messages()))
    assert resp.closed


def test_resume_without_run_id_fails_immediately() -> None:
    session = FakeSession()
    t = WorkflowChatTransport(api=API, session=session)  # type: ignore[arg-type]
    with pytest.raises(TransportError):
        list(t.reconnect_to_stream(None))
    assert session.calls == []


def test_resume_targets_run_path_not_chat_path() -> None:
    session = FakeSession(gets=[FakeResponse(sse_lines([{"type": "start"}, {"type": "finish"}]))])
    t = WorkflowChatTransport(api=API, session=session)  # type: ignore[arg-type]
    out = list(t.reconnect_to_stream("wrun_9"))
    assert [c["type"] for c in out] == ["start", "finish"]
    assert session.calls == [{"method": "GET", "url": f"{API}/wrun_9/stream", "params": {"startIndex": 0}}]


def test_dropped_stream_reconnects_from_chunk_index() -> None:
    first = [{"type": "start"}, {"type": "text-delta", "id": "t", "delta": "a"}]
    rest = [{"type": "text-delta", "id": "t", "delta": "b"}, {"type": "finish"}]
    session = FakeSession(
        post=FakeResponse(sse_lines(first, done=False), headers={RUN_ID_HEADER: "wrun_2"}, drop=True),
        gets=[FakeResponse(sse_lines(rest))],
    )
    ended = []
    t = WorkflowChatTransport(api=API, session=session, on_chat_end=lambda rid, n: ended.append(n))  # type: ignore[arg-type]

    out = list(t.send_messages(_messages()))

    assert out == first + rest
    assert session.calls[1] == {"method": "GET", "url": f"{API}/wrun_2/stream", "params": {"startIndex": 2}}
    assert ended == [4]


def test_stream_closing_without_done_counts_as_drop() -> None:
    session = FakeSession(
        post=FakeResponse(sse_lines([{"type": "start"}], done=False), headers={RUN_ID_HEADER: "wrun_3"}),
        gets=[FakeResponse(sse_lines([{"type": "finish"}]))],
    )
    t = WorkflowChatTransport(api=API, session=session)  # type: ignore[arg-type]
    out = list(t.send_messages(_messages()))
    assert [c["type"] for c in out] == ["start", "finish"]
    assert session.calls[1]["params"] == {"startIndex": 1}


def test_reconnect_gives_up_after_consecutive_failures() -> None:
    session = FakeSession(
        post=FakeResponse([], headers={RUN_ID_HEADER: "wrun_4"}, drop=True),
        gets=[requests.ConnectionError("refused") for _ in range(5)],
    )
    ended = []
    t = WorkflowChatTransport(
        api=API,
        session=session,  # type: ignore[arg-type]
        max_consecutive_errors=3,
        on_chat_end=lambda rid, n: ended.append(rid),
    )
    with pytest.raises(TransportError, match="4 consecutive"):
        list(t.send_messages(_messages()))
    # 1 POST + 3 reconnect attempts, then it stops trying.
    assert len(session.calls) == 4
    assert ended == []


def test_successful_chunk_resets_the_error_count() -> None:
    session = FakeSession(
        post=FakeResponse(sse_lines([{"type": "start"}], done=False), headers={RUN_ID_HEADER: "wrun_5"}, drop=True),
        gets=[
            requests.ConnectionError("refused"),
            FakeResponse(sse_lines([{"type": "text-delta", "id": "t", "delta": "x"}], done=False), drop=True),
            requests.ConnectionError("refused"),
            FakeResponse(sse_lines([{"type": "finish"}])),
        ],
    )
    t = WorkflowChatTransport(api=API, session=session, max_consecutive_errors=2)  # type: ignore[arg-type]
    out = list(t.send_messages(_messages()))
    assert [c["type"] for c in out] == ["start", "text-delta", "finish"]


def test_resume_of_unknown_run_reports_run_not_found() -> None:
    resp = FakeResponse([], status=404)
    t = WorkflowChatTransport(api=API, session=FakeSession(gets=[resp]))  # type: ignore[arg-type]
    with pytest.raises(RunNotFoundError) as exc:
        list(t.reconnect_to_stream("wrun_missing"))
    assert exc.value.run_id == "wrun_missing"
    assert isinstance(exc.value.__cause__, requests.HTTPError)
    assert resp.closed


def test_server_errors_become_transport_errors() -> None:
    t = WorkflowChatTransport(api=API, session=FakeSession(post=FakeResponse([], status=500)))  # type: ignore[arg-type]
    with pytest.raises(TransportError, match="HTTP 500") as exc:
        list(t.send_messages(_messages()))
    assert not isinstance(exc.value, RunNotFoundError)

    t = WorkflowChatTransport(api=API, session=FakeSession(post=requests.ConnectionError("refused")))  # type: ignore[arg-type]
    with pytest.raises(TransportError, match="refused"):
        list(t.send_messages(_messages()))
