"""
Tests for the debounced file watcher
"""

import asyncio
from types import SimpleNamespace

from conftest import claude_record, write_jsonl
from transcript_indexer.watcher import ConversationWatcher, DebounceRegistry, LogEventHandler


def test_burst_collapses_to_one_call():
    calls = []

    async def callback(key):
        calls.append(key)

    async def scenario():
        registry = DebounceRegistry(delay=0.2)
        for _ in range(5):
            registry.arm("/logs/a.jsonl", callback)
            await asyncio.sleep(0.01)
        registry.arm("/logs/b.jsonl", callback)
        assert sorted(registry.pending) == ["/logs/a.jsonl", "/logs/b.jsonl"]
        await asyncio.sleep(0.5)
        assert registry.pending == []

    asyncio.run(scenario())
    assert sorted(calls) == ["/logs/a.jsonl", "/logs/b.jsonl"]


def test_cancel_all_drops_pending_calls():
    calls = []

    async def callback(key):
        calls.append(key)

    async def scenario():
        registry = DebounceRegistry(delay=0.05)
        registry.arm("/logs/a.jsonl", callback)
        registry.arm("/logs/b.jsonl", callback)
        await registry.cancel_all()
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert calls == []


def test_callback_errors_do_not_stop_later_calls():
    calls = []

    async def callback(key):
        calls.append(key)
        if key == "/logs/bad.jsonl":
            raise RuntimeError("reindex failed")

    async def scenario():
        registry = DebounceRegistry(delay=0.01)
        registry.arm("/logs/bad.jsonl", callback)
        await asyncio.sleep(0.05)
        registry.arm("/logs/good.jsonl", callback)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert calls == ["/logs/bad.jsonl", "/logs/good.jsonl"]


def test_event_handler_skips_hidden_files_and_directories():
    forwarded = []
    handler = LogEventHandler(forwarded.append)

    handler.on_modified(SimpleNamespace(is_directory=False, src_path="/home/me/.claude/projects/p/s.jsonl"))
    handler.on_modified(SimpleNamespace(is_directory=False, src_path="/home/me/.claude/projects/p/.s.jsonl.swp"))
    handler.on_created(SimpleNamespace(is_directory=True, src_path="/home/me/.claude/projects/new"))
    handler.on_moved(SimpleNamespace(is_directory=False, src_path="/tmp/x", dest_path="/home/me/.codex/sessions/r.jsonl"))

    assert forwarded == ["/home/me/.claude/projects/p/s.jsonl", "/home/me/.codex/sessions/r.jsonl"]


def test_watcher_only_reindexes_log_files(tmp_path):
    seen = []

    async def on_change(path):
        seen.append(path)
        return SimpleNamespace(added=1, errors=[])

    async def scenario():
        watcher = ConversationWatcher([tmp_path], on_change, debounce_delay=0.02)
        watcher.handle_change(str(tmp_path / "notes.txt"))
        watcher.handle_change(str(tmp_path / "s.jsonl"))
        watcher.handle_change(str(tmp_path / "s.jsonl"))
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert seen == [str(tmp_path / "s.jsonl")]


def test_watcher_without_directories_stays_idle(tmp_path):
    async def on_change(path):
        return None

    async def scenario():
        watcher = ConversationWatcher([tmp_path / "missing"], on_change)
        watcher.start()
        assert not watcher.is_running
        await watcher.stop()

    asyncio.run(scenario())


def test_watcher_picks_up_written_log(tmp_path):
    root = tmp_path / "projects"
    (root / "proj").mkdir(parents=True)
    seen = []

    async def on_change(path):
        seen.append(path)

    async def scenario():
        watcher = ConversationWatcher([root], on_change, debounce_delay=0.2)
        watcher.start()
        try:
            await asyncio.sleep(0.2)
            path = root / "proj" / "live.jsonl"
            write_jsonl(path, [claude_record("user", "A question that is long enough to index")])
            for _ in range(50):
                if seen:
                    break
                await asyncio.sleep(0.1)
        finally:
            await watcher.stop()

    asyncio.run(scenario())
    assert seen == [str(root / "proj" / "live.jsonl")]
