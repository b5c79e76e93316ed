"""File watching and change dispatch for pagebuild.

A watchdog observer runs in its own thread and turns filesystem events
into ``ChangeEvent`` values on an asyncio queue. The ``Watcher`` consumes
that queue on the event loop and dispatches each event to the first
matching ``WatchRule``: either re-running a task, or sending a reload
signal to connected browsers.

Key classes:
- ChangeEvent: A single filesystem change.
- WatchRule: Maps a file group to a task, or to a bare reload.
- TaskRunner: Runs a task, coalescing triggers that arrive mid-run.
- Watcher: The idle/watching orchestrator.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import click
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .protocols import ReloadNotifier
from .tasks import Task, TaskError


@dataclass(frozen=True)
class ChangeEvent:
    """A filesystem change observed by the watcher.

    Attributes:
        path: Absolute path of the changed file.
        kind: Event type ('created', 'modified', 'deleted', 'moved').
    """

    path: Path
    kind: str = "modified"


@dataclass(frozen=True)
class WatchRule:
    """Associates changed files with a reaction.

    Attributes:
        matches: Predicate over absolute paths.
        task: Task to re-run, or None to only send a reload signal.
        label: Name shown in logs.
    """

    matches: Callable[[Path], bool]
    task: Task | None = None
    label: str = ""


class TaskRunner:
    """Runs a task on demand and coalesces overlapping triggers.

    A trigger that arrives while the task is running schedules exactly one
    follow-up run after the current one finishes. Failures are reported and
    swallowed so that watching continues.
    """

    def __init__(self, task: Task):
        self.task = task
        self._running: asyncio.Task | None = None
        self._pending = False
        self.runs = 0

    def trigger(self) -> asyncio.Task:
        if self._running is not None and not self._running.done():
            self._pending = True
            return self._running
        self._running = asyncio.ensure_future(self._run_until_settled())
        return self._running

    async def _run_until_settled(self) -> None:
        while True:
            self._pending = False
            self.runs += 1
            try:
                await self.task()
            except TaskError as exc:
                click.echo(click.style(f"  {exc}", fg="red"), err=True)
            except OSError as exc:
                click.echo(click.style(f"  [{self.task.name}] {exc}", fg="red"), err=True)
            if not self._pending:
                return


class _ChangeHandler(FileSystemEventHandler):
    """Hands watchdog events over to the event loop's queue."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        super().__init__()
        self.loop = loop
        self.queue = queue

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in (
            "created",
            "modified",
            "deleted",
            "moved",
        ):
            return
        path = event.dest_path if event.event_type == "moved" else event.src_path
        change = ChangeEvent(Path(str(path)), event.event_type)
        self.loop.call_soon_threadsafe(self.queue.put_nowait, change)


class Watcher:
    """Watches directories and dispatches changes to rules.

    The watcher is either ``idle`` or ``watching``. ``start`` moves it to
    ``watching`` exactly once; there is no way back other than ``stop``
    at process exit.

    Attributes:
        rules: Rules checked in order; the first match handles an event.
        directories: Directories observed recursively.
        reloader: Receives reload signals for rules without a task.
    """

    def __init__(
        self,
        rules: Sequence[WatchRule],
        directories: Sequence[Path],
        reloader: ReloadNotifier,
    ):
        self.rules = list(rules)
        self.directories = list(directories)
        self.reloader = reloader
        self.state = "idle"
        self.queue: asyncio.Queue[ChangeEvent] | None = None
        self._observer: Observer | None = None
        self._consumer: asyncio.Task | None = None
        self._runners: dict[int, TaskRunner] = {}

    def _runner_for(self, task: Task) -> TaskRunner:
        runner = self._runners.get(id(task))
        if runner is None:
            runner = self._runners[id(task)] = TaskRunner(task)
        return runner

    def start(self) -> None:
        """Start observing; must be called from within the event loop."""
        if self.state != "idle":
            raise RuntimeError("Watcher is already watching")
        self.state = "watching"
        loop = asyncio.get_running_loop()
        self.queue = asyncio.Queue()
        observer = Observer()
        handler = _ChangeHandler(loop, self.queue)
        for directory in self.directories:
            if directory.exists():
                observer.schedule(handler, str(directory), recursive=True)
        observer.start()
        self._observer = observer
        self._consumer = loop.create_task(self._consume())

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        if self._consumer:
            self._consumer.cancel()

    async def _consume(self) -> None:
        while True:
            event = await self.queue.get()
            await self.dispatch(event)

    async def dispatch(self, event: ChangeEvent) -> asyncio.Task | None:
        """Handle one change event.

        Returns:
            The task run scheduled for the event, or None when the event
            only caused a reload signal or matched no rule.
        """
        for rule in self.rules:
            if not rule.matches(event.path):
                continue
            if rule.task is None:
                await self.reloader.reload()
                return None
            return self._runner_for(rule.task).trigger()
        return None
