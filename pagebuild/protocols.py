"""Protocol definitions for pagebuild.

Each transformation capability the pipeline delegates to a library or an
external tool is described by one small interface here. Tasks depend on
these protocols only, so implementations can be swapped at start-up (or
replaced with fakes in tests) without touching the task wiring.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class FileTransformer(Protocol):
    """Protocol for transforming one source file into one output file.

    Implementations may change the destination's extension (``.scss`` to
    ``.css`` for example) and return the path actually written, or ``None``
    when the source is intentionally skipped.
    """

    @abstractmethod
    def process(self, source: Path, dest: Path) -> Path | None:
        """Transform ``source`` and write the result.

        Args:
            source: Source file path.
            dest: Suggested destination path.

        Returns:
            Path written, or None if the file was skipped.
        """
        ...


@runtime_checkable
class StyleCompiler(FileTransformer, Protocol):
    """Compiles stylesheet sources (Sass/SCSS) into CSS."""


@runtime_checkable
class ScriptTranspiler(FileTransformer, Protocol):
    """Transpiles modern script sources into browser-compatible JavaScript."""


@runtime_checkable
class PageRenderer(FileTransformer, Protocol):
    """Renders page templates into HTML."""


@runtime_checkable
class ImageOptimizer(FileTransformer, Protocol):
    """Optimizes images; passes files it does not understand through."""


@runtime_checkable
class Minifier(Protocol):
    """Protocol for minifying text assets selected by file extension."""

    @abstractmethod
    def can_minify(self, path: Path) -> bool:
        """Check if this minifier handles the given file.

        Args:
            path: Path of the artifact being written.

        Returns:
            True if this minifier can handle it.
        """
        ...

    @abstractmethod
    def minify(self, text: str) -> str:
        """Return the minified form of ``text``."""
        ...

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return minifier priority (higher = checked first)."""
        ...


@runtime_checkable
class ReloadNotifier(Protocol):
    """Protocol for pushing change notifications to connected browsers."""

    @abstractmethod
    async def notify(self, paths: list[Path]) -> None:
        """Refresh the given assets in place (stylesheets) or reload the page."""
        ...

    @abstractmethod
    async def reload(self) -> None:
        """Trigger a full page reload."""
        ...
