import asyncio
import tempfile
import unittest
from pathlib import Path

from watchfiles import Change

from agent_dashboard.live.file_watcher import FileWatcher, classify_changes, layout_dirs, new_layout_dirs
from agent_dashboard.parsers.sessions import discover_store_dirs


class ClassifyChangesTests(unittest.TestCase):
    def test_keeps_added_and_modified_store_files(self) -> None:
        changes = {
            (Change.added, "/store/abc.jsonl"),
            (Change.modified, "/store/sessions.json"),
            (Change.deleted, "/store/old.jsonl"),
            (Change.modified, "/store/notes.txt"),
            (Change.added, "/store/.sessions.json.swp"),
        }
        result = sorted(classify_changes(changes))
        self.assertEqual(result, [
            ("added", Path("/store/abc.jsonl")),
            ("modified", Path("/store/sessions.json")),
        ])


class LayoutDirsTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name) / "agents"
        (self.root / "main" / "sessions").mkdir(parents=True)
        (self.root / "notes.txt").write_text("x", encoding="utf-8")

    def test_layout_is_root_and_agent_dirs(self) -> None:
        self.assertEqual(layout_dirs(self.root), [self.root, self.root / "main"])
        self.assertEqual(layout_dirs(None), [])
        self.assertEqual(layout_dirs(self.root / "missing"), [])

    def test_new_layout_dirs_only_reports_created_directories(self) -> None:
        (self.root / "ops").mkdir()
        layout = {p.resolve() for p in layout_dirs(self.root)}
        changes = {
            (Change.added, str(self.root / "ops")),
            (Change.added, str(self.root / "notes.txt")),
            (Change.deleted, str(self.root / "gone")),
            (Change.added, str(self.root / "main" / "sessions" / "s.jsonl")),
        }
        self.assertEqual(new_layout_dirs(changes, layout), [self.root / "ops"])


class FileWatcherTests(unittest.IsolatedAsyncioTestCase):
    async def _wait_for(self, condition, timeout: float = 10.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not condition():
            if loop.time() > deadline:
                self.fail("condition not reached in time")
            await asyncio.sleep(0.05)

    async def test_nothing_to_watch_stops_itself(self) -> None:
        watcher = FileWatcher()
        await watcher.start(lambda: [Path("/nonexistent/agent-dashboard-store")], lambda changes: None)
        await asyncio.sleep(0.05)
        self.assertFalse(watcher.is_running)
        self.assertEqual(watcher.watched, [])
        await watcher.stop()

    async def test_reports_new_log_file(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        store = Path(tmpdir.name)
        received: list[tuple[str, Path]] = []

        watcher = FileWatcher()
        await watcher.start(lambda: [store], received.extend)
        self.addAsyncCleanup(watcher.stop)
        await asyncio.sleep(0.3)

        (store / "s-1.jsonl").write_text("{}\n", encoding="utf-8")
        await self._wait_for(lambda: "s-1.jsonl" in [p.name for _, p in received])
        self.assertTrue(watcher.is_running)

    async def test_store_created_after_start_is_watched(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        agents = Path(tmpdir.name) / "agents"
        (agents / "main" / "sessions").mkdir(parents=True)
        received: list[tuple[str, Path]] = []

        watcher = FileWatcher()
        await watcher.start(lambda: discover_store_dirs(agents, []), received.extend, agents_root=agents)
        self.addAsyncCleanup(watcher.stop)
        await self._wait_for(lambda: watcher.rounds == 1)
        await asyncio.sleep(0.3)

        new_store = agents / "ops" / "sessions"
        new_store.mkdir(parents=True)
        await self._wait_for(lambda: new_store in watcher.watched)
        self.assertGreaterEqual(watcher.rounds, 2)
        await asyncio.sleep(0.3)

        (new_store / "o-1.jsonl").write_text("{}\n", encoding="utf-8")
        await self._wait_for(lambda: "o-1.jsonl" in [p.name for _, p in received])


if __name__ == "__main__":
    unittest.main()
