from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from casework.api.runs import Run, RunRegistry
from casework.cases.operations import CaseOperations, build_operations
from casework.chat.runtime_streaming import run_chat_stream
from casework.chat.types import ChatRequest, UIMessage
from casework.config import load_chat_policy

logger = logging.getLogger(__name__)

RUN_ID_HEADER = "x-workflow-run-id"
SSE_DONE = "[DONE]"

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

app = FastAPI(title="Disability case management chat")

_registry = RunRegistry()
_operations: Optional[CaseOperations] = None


def get_registry() -> RunRegistry:
    return _registry


def get_operations() -> CaseOperations:
    global _operations
    if _operations is None:
        _operations = build_operations()
    return _operations


def _format_sse_data(payload: Any) -> str:
    """One SSE event carrying a JSON chunk (or the `[DONE]` marker)."""
    if isinstance(payload, str):
        return f"data: {payload}\n\n"
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _produce(run: Run, messages: List[UIMessage]) -> None:
    registry = get_registry()
    logger.info("Starting case management workflow run_id=%s messages=%d", run.run_id, len(messages))
    started = time.time()
    try:
        async for chunk in run_chat_stream(
            policy=load_chat_policy(),
            messages=messages,
            operations=get_operations(),
        ):
            await registry.append(run, chunk)
    except Exception as e:
        logger.exception("Workflow run %s failed", run.run_id)
        await registry.append(run, {"type": "error", "errorText": f"workflow_failed:{type(e).__name__}"})
    finally:
        await registry.finish(run)
        logger.info(
            "Finished case management workflow run_id=%s chunks=%d (%.2fs)",
            run.run_id,
            len(run.chunks),
            time.time() - started,
        )


async def _stream_run(run: Run, start_index: int) -> AsyncGenerator[str, None]:
    async for chunk in get_registry().follow(run, start_index):
        yield _format_sse_data(chunk)
    yield _format_sse_data(SSE_DONE)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, time.time() - start_time, e)
        raise
    logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, time.time() - start_time)
    return response


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/api/chat")
async def chat(req: ChatRequest) -> StreamingResponse:
    """Start a chat turn as a run and stream its chunks (SSE)."""
    if not req.messages:
        raise HTTPException(status_code=400, detail="messages must not be empty")

    run = get_registry().create()
    run.task = asyncio.create_task(_produce(run, list(req.messages)))
    return StreamingResponse(
        _stream_run(run, 0),
        media_type="text/event-stream",
        headers={**_SSE_HEADERS, RUN_ID_HEADER: run.run_id},
    )


@app.get("/api/chat/{run_id}/stream")
async def chat_stream(run_id: str, start_index: int = Query(0, alias="startIndex", ge=0)) -> StreamingResponse:
    """Replay a run's chunks from `startIndex` and follow it to completion."""
    run = get_registry().get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return StreamingResponse(
        _stream_run(run, start_index),
        media_type="text/event-stream",
        headers={**_SSE_HEADERS, RUN_ID_HEADER: run.run_id},
    )


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting chat server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
