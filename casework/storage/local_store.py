"""Local filesystem key-value storage for client-side chat state."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass
class LocalStorage:
    """
    One file per key under `base_dir`.

    Writes are plain overwrites (last writer wins); two processes sharing a
    directory are not coordinated.
    """

    base_dir: str = "./.chat-state"

    def __post_init__(self) -> None:
        """Ensure base directory exists."""
        self.base_dir = os.path.abspath(self.base_dir)
        Path(self.base_dir).mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        """Convert a key to its file path (keys are flat names, no directories)."""
        safe = os.path.basename(str(key).strip().strip("/"))
        if not safe:
            raise ValueError("empty storage key")
        return Path(self.base_dir) / f"{safe}.json"

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded value, or None when the key is absent."""
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def put_json(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
