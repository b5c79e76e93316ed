"""Build tasks and pipelines for pagebuild.

This module wires file groups and capabilities into tasks, and tasks into
the named pipelines exposed on the command line:

- ``clean``: remove the intermediate and output directories.
- ``build``: clean, then compile and post-process pages while images,
  fonts and public files are written alongside.
- ``dev``: compile, then serve with watching and live reload.

Key classes:
- TransformTask: Applies one capability to every file of a group.
- CleanTask, CopyTask, PostProcessTask: The remaining build steps.
- Pipeline: Builds all tasks for one configuration.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from jinja2 import TemplateSyntaxError

from .config import EffectiveConfig
from .files import FileGroup, file_groups
from .processors import MinifierRegistry, Transformers, create_default_transformers
from .protocols import FileTransformer, ReloadNotifier
from .references import resolve_references
from .reload import LiveReloadServer
from .server import DevServer
from .tasks import FunctionTask, Task, TaskError, TransformError, parallel, series
from .watch import WatchRule


def _format_error_message(exc: Exception) -> str:
    """Format an exception raised by a capability into a readable message."""
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"

    error_type = type(exc).__name__
    error_msg = str(exc)
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "CompileError":
        return f"Sass compile error: {error_msg}"
    return f"{error_type}: {error_msg}"


class TransformTask(Task):
    """Applies one capability to every file of a file group.

    Attributes:
        group: Files to transform and where to write them.
        transformer: Capability applied to each file.
        reloader: Optional notifier told about the written files.
    """

    def __init__(
        self,
        name: str,
        group: FileGroup,
        transformer: FileTransformer,
        reloader: ReloadNotifier | None = None,
    ):
        super().__init__(name)
        self.group = group
        self.transformer = transformer
        self.reloader = reloader

    def transform_all(self) -> list[Path]:
        """Transform every file synchronously, returning the paths written."""
        written: list[Path] = []
        for source in self.group.iter_files():
            dest = self.group.dest_for(source)
            try:
                result = self.transformer.process(source, dest)
            except TaskError:
                raise
            except Exception as exc:
                raise TransformError(
                    self.name, _format_error_message(exc), source, exc
                ) from exc
            if result is not None:
                written.append(result)
        return written

    async def run(self) -> None:
        written = await asyncio.to_thread(self.transform_all)
        if self.reloader is not None and written:
            await self.reloader.notify(written)


class CleanTask(Task):
    """Deletes directories recursively; absent directories are skipped."""

    def __init__(self, name: str, directories: Sequence[Path]):
        super().__init__(name)
        self.directories = list(directories)

    def remove_all(self) -> None:
        for directory in self.directories:
            if directory.is_dir() and not directory.is_symlink():
                shutil.rmtree(directory)
            elif directory.exists() or directory.is_symlink():
                directory.unlink()

    async def run(self) -> None:
        await asyncio.to_thread(self.remove_all)


class CopyTask(Task):
    """Copies every file of a group verbatim to its destination."""

    def __init__(self, name: str, group: FileGroup):
        super().__init__(name)
        self.group = group

    def copy_all(self) -> list[Path]:
        copied = []
        for source in self.group.iter_files():
            dest = self.group.dest_for(source)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
            copied.append(dest)
        return copied

    async def run(self) -> None:
        await asyncio.to_thread(self.copy_all)


class PostProcessTask(Task):
    """Resolves build references in compiled pages and minifies the results.

    Attributes:
        group: Compiled pages in the intermediate directory.
        search_dirs: Directories referenced assets are looked up in.
        minifiers: Minifiers selected by artifact extension.
    """

    encoding = "utf-8"

    def __init__(
        self,
        name: str,
        group: FileGroup,
        search_dirs: Sequence[Path],
        minifiers: MinifierRegistry,
    ):
        super().__init__(name)
        self.group = group
        self.search_dirs = list(search_dirs)
        self.minifiers = minifiers

    def _write(self, rel: PurePosixPath, text: str, source: Path) -> Path:
        dest = self.group.dest_dir / rel
        try:
            minified = self.minifiers.minify(dest, text)
        except Exception as exc:
            raise TransformError(self.name, _format_error_message(exc), source, exc) from exc
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(minified, encoding=self.encoding)
        return dest

    def process_all(self) -> list[Path]:
        written: list[Path] = []
        for page in self.group.iter_files():
            rel = PurePosixPath(page.relative_to(self.group.base_dir).as_posix())
            resolved = resolve_references(
                page.read_text(encoding=self.encoding),
                rel,
                self.search_dirs,
                task=self.name,
            )
            for bundle, content in resolved.bundles.items():
                written.append(self._write(bundle, content, page))
            written.append(self._write(rel, resolved.html, page))
        return written

    async def run(self) -> None:
        await asyncio.to_thread(self.process_all)


class Pipeline:
    """All tasks and named pipelines for one configuration.

    Attributes:
        config: Effective configuration.
        transformers: Capability implementations.
        reloader: Live reload server notified by the compile tasks.
        groups: File groups per asset class.
    """

    def __init__(
        self,
        config: EffectiveConfig,
        transformers: Transformers | None = None,
        reloader: LiveReloadServer | None = None,
    ):
        self.config = config
        self.transformers = transformers or create_default_transformers(config)
        self.reloader = reloader or LiveReloadServer(config.ws_port)
        self.groups = file_groups(config)

        groups = self.groups
        self.style = TransformTask("style", groups["styles"], self.transformers.style, self.reloader)
        self.script = TransformTask("script", groups["scripts"], self.transformers.script, self.reloader)
        self.page = TransformTask("page", groups["pages"], self.transformers.page, self.reloader)
        self.image = TransformTask("image", groups["images"], self.transformers.image)
        self.font = TransformTask("font", groups["fonts"], self.transformers.font)
        self.extra = CopyTask("extra", groups["extra"])
        self.useref = PostProcessTask(
            "useref",
            groups["useref"],
            [config.intermediate_dir, config.root],
            self.transformers.minifiers,
        )
        self.serve = FunctionTask("serve", self._serve)

        self.clean = CleanTask("clean", [config.output_dir, config.intermediate_dir])
        self.compile = parallel(self.style, self.script, self.page, name="compile")
        self.build = series(
            self.clean,
            parallel(
                series(self.compile, self.useref),
                self.image,
                self.font,
                self.extra,
            ),
            name="build",
        )
        self.dev = series(self.compile, self.serve, name="dev")

    def watch_rules(self) -> list[WatchRule]:
        """Rules mapping changed files to tasks or to a bare reload."""
        groups = self.groups
        public_dir = self.config.public_dir
        return [
            WatchRule(groups["styles"].matches, self.style, "styles"),
            WatchRule(groups["scripts"].matches, self.script, "scripts"),
            WatchRule(groups["pages"].matches, self.page, "pages"),
            WatchRule(groups["images"].matches, None, "images"),
            WatchRule(groups["fonts"].matches, None, "fonts"),
            WatchRule(lambda path: path.is_relative_to(public_dir), None, "public"),
        ]

    def dev_server(self) -> DevServer:
        return DevServer(self.config, self.watch_rules(), self.reloader)

    async def _serve(self) -> None:
        await self.dev_server().serve()

    def get(self, name: str) -> Task:
        """Return an exported pipeline by name."""
        if name not in EXPORTED_PIPELINES:
            raise KeyError(name)
        return getattr(self, name)


EXPORTED_PIPELINES = ("clean", "build", "dev")
