#!/usr/bin/env python3
"""
Disability case management chat.

- `serve`: run the chat API (FastAPI + SSE)
- `chat`: terminal chat client with persisted history and resumable turns
"""

import argparse
import logging
import sys
from typing import Any, Dict, Iterator

# Configure logging
logging.basicConfig(
    level=logging.WARNING, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep casework imports lazy (inside functions) so `serve` does not load
# the client stack and `chat` does not load FastAPI.
#


def _print_message(message) -> None:
    from casework.chat.presentation import format_plan, render_part

    who = "You" if message.role == "user" else "Assistant"
    print(f"{who}:")
    for part in message.parts:
        plan = render_part(part)
        if plan is not None:
            print(format_plan(plan))
    print()


def _tool_part(session, tool_call_id: str):
    from casework.chat.types import ToolPart

    for part in session.messages[-1].parts if session.messages else []:
        if isinstance(part, ToolPart) and part.toolCallId == tool_call_id:
            return part
    return None


def _stream_turn(session, chunks: Iterator[Dict[str, Any]]) -> None:
    """Apply a turn's chunks, printing text deltas and tool cards as they land."""
    from casework.chat.presentation import format_plan, render_part, show_processing_indicator
    from casework.chat.transport import RunNotFoundError, TransportError

    processing_shown = False
    in_text = False
    try:
        for chunk in chunks:
            t = chunk.get("type")
            if not processing_shown and show_processing_indicator(session.messages, busy=session.busy):
                print("Processing...", flush=True)
                processing_shown = True
            if t == "text-delta":
                if not in_text:
                    print("Assistant: ", end="", flush=True)
                    in_text = True
                print(chunk.get("delta") or "", end="", flush=True)
            elif t == "text-end" and in_text:
                print()
                in_text = False
            elif t in ("tool-output-available", "tool-output-error"):
                part = _tool_part(session, str(chunk.get("toolCallId") or ""))
                plan = render_part(part) if part is not None else None
                if plan is not None:
                    print(format_plan(plan), flush=True)
            elif t == "data-workflow":
                msg = (chunk.get("data") or {}).get("message")
                if msg:
                    print(f"[{msg}]", flush=True)
            elif t == "error":
                print(f"Error: {chunk.get('errorText')}", file=sys.stderr)
    except KeyboardInterrupt:
        session.stop()
        print("\n[stopped]")
    except RunNotFoundError:
        print("\nThe previous response is no longer available on the server.", file=sys.stderr)
    except TransportError as e:
        print(f"\nConnection error: {e}", file=sys.stderr)
    if in_text:
        print()
    print()


def pick_suggestion(text: str) -> str:
    """Map a suggestion number (0 is the featured prompt) to its text; anything else passes through."""
    from casework.chat.session import FEATURED_PROMPT, SUGGESTIONS

    if not text.isdigit():
        return text
    n = int(text)
    if n == 0:
        return FEATURED_PROMPT
    if 1 <= n <= len(SUGGESTIONS):
        return SUGGESTIONS[n - 1]
    return text


def run_chat(*, resume: bool = False) -> None:
    from casework.chat.session import FEATURED_PROMPT, SUGGESTIONS, ChatSession
    from casework.config import load_client_config

    session = ChatSession.from_config(load_client_config())
    pending_run = session.restore()
    for message in session.messages:
        _print_message(message)

    if resume and not pending_run:
        print("No interrupted response to resume.", file=sys.stderr)
        sys.exit(1)
    if pending_run:
        print("Resuming the previous response...")
        _stream_turn(session, session.resume(pending_run))

    if not session.messages:
        print("Disability Case Management Assistant")
        print("Try one of these suggestions or ask anything about disability cases:")
        print(f"  0. {FEATURED_PROMPT}")
        for i, s in enumerate(SUGGESTIONS, 1):
            print(f"  {i}. {s}")
        print()
    print("Commands: /clear to reset the conversation, /quit to exit.\n")

    while True:
        try:
            text = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not text:
            continue
        if text in ("/quit", "/exit"):
            return
        if text == "/clear":
            session.store.clear()
            session.restore()
            print("Conversation cleared.\n")
            continue
        if not session.messages:
            picked = pick_suggestion(text)
            if picked != text:
                text = picked
                print(f"> {text}")
        _stream_turn(session, session.send(text))


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Disability case management chat",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the chat API on :8080
  python main.py serve

  # Chat from the terminal (history persists in CHAT_STATE_DIR)
  python main.py chat
        """,
    )
    sub = parser.add_subparsers(dest="command")

    p_serve = sub.add_parser("serve", help="Run the chat API server")
    p_serve.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    p_serve.add_argument("--port", type=int, default=8080, help="Listen port (default: 8080)")

    p_chat = sub.add_parser("chat", help="Interactive terminal chat")
    p_chat.add_argument(
        "--resume",
        action="store_true",
        help="Require resuming the interrupted turn (fails when no run id is persisted)",
    )
    p_chat.add_argument("-v", "--verbose", action="store_true", help="Log client activity to stderr")

    args = parser.parse_args()

    if args.command == "serve":
        from casework.api.server import run as run_server

        run_server(host=args.host, port=args.port)
        return

    if args.command == "chat":
        if args.verbose:
            logging.getLogger().setLevel(logging.INFO)
        run_chat(resume=args.resume)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
