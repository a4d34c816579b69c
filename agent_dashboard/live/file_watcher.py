"""File watcher service using watchfiles.

Monitors session store directories (one level, non-recursive) and hands
relevant create/modify events to a callback, typically a debouncer. The
agents root and each agent directory are watched too, so a store created
after startup is picked up without a restart.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchfiles import awatch, Change

logger = logging.getLogger("agent_dashboard.watcher")

_RELEVANT_SUFFIXES = (".json", ".jsonl")

ChangeCallback = Callable[[list[tuple[str, Path]]], None]
StoreDiscovery = Callable[[], Iterable[Path]]


class FileWatcher:
    """Background watcher that reports store changes.

    Uses `watchfiles` (Rust-accelerated) for efficient watching.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False
        self.watched: list[Path] = []
        self.rounds = 0

    async def start(
        self,
        discover_stores: StoreDiscovery,
        on_change: ChangeCallback,
        agents_root: Optional[Path] = None,
    ) -> None:
        """Start watching in a background task.

        ``discover_stores`` is called again whenever a new directory shows up
        under ``agents_root``.
        """
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(discover_stores, on_change, agents_root))

    async def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(
        self,
        discover_stores: StoreDiscovery,
        on_change: ChangeCallback,
        agents_root: Optional[Path],
    ) -> None:
        """Main watching loop; one round per store layout."""
        try:
            while self._running:
                stores = _existing(discover_stores())
                layout = layout_dirs(agents_root)
                self.watched = stores
                watch_paths = _existing(stores + layout)
                if not watch_paths:
                    logger.warning("No session stores exist, watcher has nothing to monitor")
                    break

                self.rounds += 1
                logger.info(f"Watching {len(stores)} session stores: {[str(p) for p in stores]}")
                layout_changed = await self._watch_round(watch_paths, layout, on_change)
                if not layout_changed:
                    break
                logger.info("Agent layout changed, rediscovering session stores")
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False

    async def _watch_round(self, watch_paths: list[Path], layout: list[Path], on_change: ChangeCallback) -> bool:
        """Watch until stopped (False) or until a new agent/store directory appears (True)."""
        layout_set = {p.resolve() for p in layout}
        async with aclosing(awatch(*watch_paths, stop_event=self._stop_event, recursive=False)) as batches:
            async for changes in batches:
                if not self._running:
                    return False

                classified = classify_changes(changes)
                new_dirs = new_layout_dirs(changes, layout_set)
                if new_dirs:
                    classified.extend(("added", p) for p in new_dirs)
                if classified:
                    logger.debug(f"Detected {len(classified)} store changes")
                    try:
                        on_change(classified)
                    except Exception as e:
                        logger.error(f"Error handling store changes: {e}")
                if new_dirs:
                    return True
        return False


def _existing(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    result = []
    for path in paths:
        if not path.is_dir():
            continue
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        result.append(path)
    return result


def layout_dirs(agents_root: Optional[Path]) -> list[Path]:
    """The agents root plus every agent directory directly under it."""
    if agents_root is None or not agents_root.is_dir():
        return []
    return [agents_root] + sorted(p for p in agents_root.iterdir() if p.is_dir())


def new_layout_dirs(changes: Iterable[tuple[Change, str]], layout: set[Path]) -> list[Path]:
    """Directories created directly inside a watched layout directory."""
    result = []
    for change_type, path_str in changes:
        if change_type != Change.added:
            continue
        path = Path(path_str)
        if path.is_dir() and path.parent.resolve() in layout:
            result.append(path)
    return sorted(result)


def classify_changes(changes: Iterable[tuple[Change, str]]) -> list[tuple[str, Path]]:
    """Keep added/modified index and log files as (change_type, path) pairs."""
    result = []
    for change_type, path_str in changes:
        path = Path(path_str)
        if path.suffix not in _RELEVANT_SUFFIXES:
            continue
        if change_type == Change.added:
            result.append(("added", path))
        elif change_type == Change.modified:
            result.append(("modified", path))
    return result


# Singleton instance
file_watcher = FileWatcher()
