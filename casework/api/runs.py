"""
In-process run registry.

Every chat turn is a run: the producer appends chunks to the run's log and
readers follow the log from any index. Producers are independent of readers,
so a dropped connection can resume with `startIndex` while the turn keeps
running.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional

logger = logging.getLogger(__name__)

RUN_ID_PREFIX = "wrun_"


def new_run_id() -> str:
    return f"{RUN_ID_PREFIX}{uuid.uuid4().hex}"


@dataclass
class Run:
    run_id: str
    chunks: List[Dict[str, Any]] = field(default_factory=list)
    finished: bool = False
    cond: asyncio.Condition = field(default_factory=asyncio.Condition)
    task: Optional["asyncio.Task[None]"] = None


class RunRegistry:
    def __init__(self, *, max_runs: int = 256) -> None:
        self.max_runs = max(1, int(max_runs))
        self._runs: "OrderedDict[str, Run]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._runs)

    def create(self) -> Run:
        run = Run(run_id=new_run_id())
        self._runs[run.run_id] = run
        self._evict()
        return run

    def get(self, run_id: str) -> Optional[Run]:
        return self._runs.get(str(run_id or ""))

    def _evict(self) -> None:
        # Oldest finished runs go first; in-flight runs are never dropped.
        while len(self._runs) > self.max_runs:
            victim = next((rid for rid, r in self._runs.items() if r.finished), None)
            if victim is None:
                return
            del self._runs[victim]
            logger.debug("Evicted run %s", victim)

    async def append(self, run: Run, chunk: Dict[str, Any]) -> None:
        async with run.cond:
            if run.finished:
                raise RuntimeError(f"run {run.run_id} already finished")
            run.chunks.append(chunk)
            run.cond.notify_all()

    async def finish(self, run: Run) -> None:
        async with run.cond:
            run.finished = True
            run.cond.notify_all()
        self._evict()

    async def follow(self, run: Run, start_index: int = 0) -> AsyncGenerator[Dict[str, Any], None]:
        """Yield chunks from `start_index` until the run is finished and drained."""
        i = max(0, int(start_index))
        while True:
            async with run.cond:
                while i >= len(run.chunks) and not run.finished:
                    await run.cond.wait()
                batch = run.chunks[i:]
                done = run.finished
            for chunk in batch:
                yield chunk
            i += len(batch)
            if done and i >= len(run.chunks):
                return
