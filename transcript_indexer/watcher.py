"""
Debounced file watcher for incremental indexing

Watches the log roots with watchdog and reindexes a session log once its
writes have settled.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class DebounceRegistry:
    """One cancellable delayed task per key; re-arming restarts the delay"""

    def __init__(self, delay: float):
        self.delay = delay
        self._tasks: Dict[str, asyncio.Task] = {}
        self._firing: Set[asyncio.Task] = set()

    @property
    def pending(self) -> List[str]:
        return [key for key, task in self._tasks.items() if not task.done()]

    def arm(self, key: str, callback: Callable[[str], Awaitable[None]]) -> None:
        """Schedule callback(key) after the delay, replacing any pending call"""
        self.cancel(key)
        self._tasks[key] = asyncio.get_running_loop().create_task(self._fire(key, callback))

    def cancel(self, key: str) -> None:
        task = self._tasks.pop(key, None)
        if task and not task.done():
            task.cancel()

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values()) + list(self._firing)
        self._tasks.clear()
        self._firing.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fire(self, key: str, callback: Callable[[str], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)

        # Past the delay this task is no longer replaceable, only cancellable
        task = asyncio.current_task()
        if self._tasks.get(key) is task:
            del self._tasks[key]
        self._firing.add(task)
        try:
            await callback(key)
        except Exception as e:
            logger.error(f"Error handling change for {key}: {e}")
        finally:
            self._firing.discard(task)


class LogEventHandler(FileSystemEventHandler):
    """Forwards created/modified log paths, skipping directories and hidden files"""

    def __init__(self, schedule_callback: Callable[[str], None]):
        super().__init__()
        self.schedule_callback = schedule_callback

    def _forward(self, path) -> None:
        path = str(path)
        # Judge by the file name only; the roots themselves sit under ~/.claude and ~/.codex
        if Path(path).name.startswith('.'):
            return
        self.schedule_callback(path)

    def on_created(self, event):
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event):
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event):
        # Atomic-rename writers show up as a move onto the log path
        if not event.is_directory:
            self._forward(event.dest_path)


class ConversationWatcher:
    """Turns file change notifications into debounced single-file reindexes"""

    def __init__(
        self,
        watch_dirs: List[Path],
        on_change: Callable[[str], Awaitable[object]],
        debounce_delay: float = 3.0,
        extension: str = '.jsonl'
    ):
        """
        Args:
            watch_dirs: Directories to watch recursively
            on_change: Async callback run with the path once writes settle
            debounce_delay: Seconds of quiet required before on_change runs
            extension: Only paths with this suffix are considered
        """
        self.watch_dirs = [Path(d) for d in watch_dirs]
        self.on_change = on_change
        self.extension = extension
        self.debouncer = DebounceRegistry(debounce_delay)

        self.observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_running(self) -> bool:
        return self.observer is not None

    def start(self) -> None:
        """Start watching; must be called from a running event loop"""
        if self.is_running:
            logger.warning("File watcher is already running")
            return

        self._loop = asyncio.get_running_loop()
        existing = [d for d in self.watch_dirs if d.is_dir()]
        if not existing:
            logger.info("No conversation directories found to watch")
            return

        handler = LogEventHandler(self._schedule_threadsafe)
        self.observer = Observer()
        for watch_dir in existing:
            self.observer.schedule(handler, str(watch_dir), recursive=True)
        self.observer.start()

        logger.info(f"Watching {', '.join(str(d) for d in existing)} for changes...")

    async def stop(self) -> None:
        """Stop the observer and cancel every pending reindex"""
        if self.observer:
            self.observer.stop()
            await asyncio.to_thread(self.observer.join)
            self.observer = None

        await self.debouncer.cancel_all()
        logger.info("File watcher stopped")

    def _schedule_threadsafe(self, file_path: str) -> None:
        # Called on the watchdog thread
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self.handle_change, file_path)

    def handle_change(self, file_path: str) -> None:
        """Arm (or re-arm) the debounce timer for a changed log file"""
        if not file_path.endswith(self.extension):
            return
        self.debouncer.arm(file_path, self._reindex)

    async def _reindex(self, file_path: str) -> None:
        logger.info(f"Re-indexing {Path(file_path).name}...")
        result = await self.on_change(file_path)

        added = getattr(result, 'added', 0)
        if added:
            logger.info(f"Added {added} chunks from {Path(file_path).name}")
