"""Persisted set of session keys hidden by an operator."""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger("agent_dashboard.dismissals")


class DismissalPersistError(RuntimeError):
    """The dismissal document could not be written."""


class DismissalStore:
    """Add-only dismissal set backed by a JSON list of keys.

    Mutations are serialized through one asyncio lock, and the in-memory set
    only advances after the document has been replaced on disk.
    """

    def __init__(self, path: Path):
        self.path = path
        self._keys: frozenset[str] = frozenset()
        self._lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            content = self.path.read_text(encoding="utf-8")
            if not content.strip():
                return
            data = json.loads(content)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load dismissal set {self.path}: {e}")
            return
        if isinstance(data, dict):
            data = data.get("dismissed", [])
        if not isinstance(data, list):
            logger.error(f"Dismissal set {self.path} is not a list")
            return
        self._keys = frozenset(str(k) for k in data if isinstance(k, str) and k)

    @property
    def keys(self) -> frozenset[str]:
        return self._keys

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def _write(self, keys: frozenset[str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".dismissed-", suffix=".json", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(sorted(keys), handle, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise DismissalPersistError(f"Cannot write dismissal set {self.path}: {e}") from e

    async def add(self, key: str) -> bool:
        """Dismiss ``key``. Returns False when it was already dismissed."""
        async with self._lock:
            if key in self._keys:
                return False
            updated = self._keys | {key}
            await asyncio.to_thread(self._write, updated)
            self._keys = updated
            logger.info(f"Dismissed session {key}")
            return True
