from __future__ import annotations

import requests

import main
from casework.chat.session import ChatSession
from casework.chat.state_store import ChatStateStore
from casework.chat.transport import RUN_ID_HEADER
from casework.chat.types import TextPart, UIMessage
from casework.storage.local_store import LocalStorage
from http_fakes import FakeResponse, FakeSession, sse_lines

API = "http://chat.test/api/chat"


def _store(tmp_path) -> ChatStateStore:
    return ChatStateStore(LocalStorage(base_dir=str(tmp_path)))


def test_stale_resume_is_reported_and_not_retried(tmp_path, capsys) -> None:
    store = _store(tmp_path)
    store.save_messages([UIMessage(id="u1", role="user", parts=[TextPart(text="hi")])])
    store.save_run_id("wrun_gone")

    session = ChatSession(store=store, api=API, http=FakeSession(gets=[FakeResponse([], status=404)]))
    pending = session.restore()
    main._stream_turn(session, session.resume(pending))

    assert "no longer available" in capsys.readouterr().err
    assert _store(tmp_path).load_run_id() is None


def test_unreachable_server_is_reported(tmp_path, capsys) -> None:
    http = FakeSession(post=requests.ConnectionError("connection refused"))
    session = ChatSession(store=_store(tmp_path), api=API, http=http)
    session.restore()

    main._stream_turn(session, session.send("hi"))

    assert "Connection error" in capsys.readouterr().err
    assert session.status == "error"


def test_turn_prints_text_and_tool_cards(tmp_path, capsys) -> None:
    chunks = [
        {"type": "start", "messageId": "a1"},
        {"type": "tool-input-available", "toolCallId": "c1", "toolName": "updateCase", "input": {"caseId": "DC1"}},
        {"type": "tool-output-error", "toolCallId": "c1", "errorText": "The case may be locked for review."},
        {"type": "text-start", "id": "t1"},
        {"type": "text-delta", "id": "t1", "delta": "Sorry about that."},
        {"type": "text-end", "id": "t1"},
        {"type": "finish"},
    ]
    http = FakeSession(post=FakeResponse(sse_lines(chunks), headers={RUN_ID_HEADER: "wrun_1"}))
    session = ChatSession(store=_store(tmp_path), api=API, http=http)
    session.restore()

    main._stream_turn(session, session.send("update DC1"))

    out = capsys.readouterr().out
    assert "updateCase failed" in out
    assert "locked for review" in out
    assert "Assistant: Sorry about that." in out


def test_suggestion_numbers_pick_prompts() -> None:
    from casework.chat.session import FEATURED_PROMPT, SUGGESTIONS

    assert main.pick_suggestion("0") == FEATURED_PROMPT
    assert main.pick_suggestion("2") == SUGGESTIONS[1]
    assert main.pick_suggestion("9") == "9"
    assert main.pick_suggestion("hello") == "hello"
