"""Task primitives and composition for pagebuild.

A task is a named asynchronous unit of work. Tasks are composed into
pipelines with ``series`` (each task waits for the previous one) and
``parallel`` (all tasks start together on the event loop). Composition is
static: pipelines are assembled once at start-up.

Key objects:
- TaskError: Base error for a failed task, with file context.
- Task: Base class for runnable tasks.
- series / parallel: Composition helpers.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

import click


class TaskError(Exception):
    """Error raised when a task fails.

    Attributes:
        task: Name of the failing task.
        message: Human-readable error message.
        source_path: Source file that caused the error, when known.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        task: str,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.task = task
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        location = f"{source_path}: " if source_path else ""
        super().__init__(f"[{task}] {location}{message}")


class TransformError(TaskError):
    """A delegated transformation failed for one source file."""


class BuildReferenceError(TaskError):
    """A build-reference block points at an asset that cannot be found."""


def _stamp() -> str:
    return click.style(datetime.now().strftime("[%H:%M:%S]"), fg="bright_black")


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"


class Task(ABC):
    """Base class for named asynchronous tasks.

    Calling a task runs it and reports start, finish and failure lines.
    Subclasses implement ``run``.
    """

    quiet = False

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    async def __call__(self) -> None:
        if self.quiet:
            await self.run()
            return
        click.echo(f"{_stamp()} Starting '{click.style(self.name, fg='cyan')}'...")
        started = time.perf_counter()
        try:
            await self.run()
        except Exception:
            failed = click.style(f"'{self.name}' errored", fg="red")
            click.echo(
                f"{_stamp()} {failed} "
                f"after {_format_duration(time.perf_counter() - started)}",
                err=True,
            )
            raise
        click.echo(
            f"{_stamp()} Finished '{click.style(self.name, fg='cyan')}' "
            f"after {_format_duration(time.perf_counter() - started)}"
        )

    @abstractmethod
    async def run(self) -> None:
        """Do the task's work; raise to signal failure."""
        ...


class FunctionTask(Task):
    """Task wrapping a coroutine function."""

    def __init__(self, name: str, func: Callable[[], Awaitable[None]]):
        super().__init__(name)
        self.func = func

    async def run(self) -> None:
        await self.func()


class Series(Task):
    """Runs tasks one after another; the first failure stops the sequence."""

    def __init__(self, name: str, tasks: list[Task], quiet: bool = False):
        super().__init__(name)
        self.tasks = tasks
        self.quiet = quiet

    async def run(self) -> None:
        for task in self.tasks:
            await task()


class Parallel(Task):
    """Starts tasks concurrently and waits for all of them.

    Sibling branches are not cancelled when one fails; once every branch
    has settled, the first failure is re-raised.
    """

    def __init__(self, name: str, tasks: list[Task], quiet: bool = False):
        super().__init__(name)
        self.tasks = tasks
        self.quiet = quiet

    async def run(self) -> None:
        results = await asyncio.gather(
            *(task() for task in self.tasks), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result


def _composite_name(kind: str, tasks: tuple[Task, ...]) -> str:
    return f"<{kind}:{','.join(task.name for task in tasks)}>"


def series(*tasks: Task, name: str | None = None) -> Series:
    """Compose tasks to run sequentially. Unnamed composites run silently."""
    return Series(name or _composite_name("series", tasks), list(tasks), quiet=name is None)


def parallel(*tasks: Task, name: str | None = None) -> Parallel:
    """Compose tasks to run concurrently. Unnamed composites run silently."""
    return Parallel(name or _composite_name("parallel", tasks), list(tasks), quiet=name is None)
