"""Capability implementations for pagebuild.

This module contains the concrete implementations of the protocols in
``pagebuild.protocols``. Each class wraps exactly one library or tool.

Key classes:
- SassStyleCompiler: Compiles SCSS with libsass.
- BabelScriptTranspiler: Transpiles scripts with the Babel CLI.
- JinjaPageRenderer: Renders page templates with Jinja2.
- PillowImageOptimizer: Optimizes images with Pillow.
- JSMinifier / CSSMinifier / HTMLMinifier: Minify build artifacts.
- MinifierRegistry: Selects a minifier by file extension.
- Transformers: One implementation per capability, chosen at start-up.
"""

from __future__ import annotations

import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import minify_html
import sass
from jinja2 import Environment, FileSystemLoader, select_autoescape
from PIL import Image
from rjsmin import jsmin

from .config import EffectiveConfig
from .executable_utils import find_executable
from .protocols import (
    ImageOptimizer,
    Minifier,
    PageRenderer,
    ScriptTranspiler,
    StyleCompiler,
)


class BaseProcessor(ABC):
    """Base class for file transformers.

    Provides shared utilities:
        - ensure_dest_dir: Creates parent directories for output files.
    """

    encoding = "utf-8"

    @abstractmethod
    def process(self, source: Path, dest: Path) -> Path | None: ...

    def ensure_dest_dir(self, dest: Path) -> None:
        """Ensure the parent directory of the destination exists."""
        dest.parent.mkdir(parents=True, exist_ok=True)


class SassStyleCompiler(BaseProcessor):
    """Compiles Sass/SCSS files to CSS using libsass.

    Files whose name starts with ``_`` are partials meant to be imported by
    other stylesheets; they are skipped rather than compiled on their own.
    """

    def __init__(self, output_style: str = "expanded", include_paths: Sequence[Path] = ()):
        self.output_style = output_style
        self.include_paths = [str(p) for p in include_paths]

    def process(self, source: Path, dest: Path) -> Path | None:
        if source.name.startswith("_"):
            return None
        css = sass.compile(
            filename=str(source),
            output_style=self.output_style,
            include_paths=self.include_paths,
        )
        dest = dest.with_suffix(".css")
        self.ensure_dest_dir(dest)
        dest.write_text(css, encoding=self.encoding)
        return dest


class BabelScriptTranspiler(BaseProcessor):
    """Transpiles JavaScript with the Babel CLI and ``@babel/preset-env``.

    Looks for ``babel`` in the project's node_modules first, then in PATH.
    When Babel is not installed, scripts are copied unchanged.
    """

    def __init__(self, project_root: Path, presets: Sequence[str] = ("@babel/preset-env",)):
        self.project_root = project_root
        self.presets = list(presets)
        self._warned = False

    def process(self, source: Path, dest: Path) -> Path | None:
        self.ensure_dest_dir(dest)

        babel = find_executable("babel", self.project_root)
        if not babel:
            if not self._warned:
                print("Babel CLI not found; copying scripts untranspiled.")
                print("Install with `npm install -D @babel/core @babel/cli @babel/preset-env`.")
                self._warned = True
            shutil.copy2(source, dest)
            return dest

        cmd = [babel, str(source), "--out-file", str(dest)]
        if self.presets:
            cmd += ["--presets", ",".join(self.presets)]
        result = subprocess.run(
            cmd, capture_output=True, text=True, cwd=self.project_root
        )
        if result.returncode != 0:
            raise RuntimeError(f"Babel failed: {result.stderr.strip()}")
        return dest


class JinjaPageRenderer(BaseProcessor):
    """Renders page templates with Jinja2.

    The loader is rooted at the source directory so pages can extend
    layouts and include partials by their source-relative path. Template
    caching is disabled so edits show up on the next render.

    Attributes:
        source_dir: Directory templates are loaded from.
        data: Variables made available to every page.
        env: Jinja2 environment.
    """

    def __init__(self, source_dir: Path, data: Mapping[str, Any] | None = None):
        self.source_dir = source_dir
        self.data = dict(data or {})
        self.env = Environment(
            loader=FileSystemLoader(str(source_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            cache_size=0,
            auto_reload=True,
        )

    def process(self, source: Path, dest: Path) -> Path | None:
        name = source.relative_to(self.source_dir).as_posix()
        rendered = self.env.get_template(name).render(**self.data)
        self.ensure_dest_dir(dest)
        dest.write_text(rendered, encoding=self.encoding)
        return dest


class PillowImageOptimizer(BaseProcessor):
    """Optimizes raster images using Pillow.

    Supports PNG, JPEG, GIF and WebP. Animated GIF and WebP files keep all
    their frames along with the frame duration and loop count. Anything
    else (SVG, fonts) is copied byte-for-byte.
    """

    SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

    def process(self, source: Path, dest: Path) -> Path | None:
        self.ensure_dest_dir(dest)
        if source.suffix.lower() in self.SUPPORTED_EXTENSIONS:
            with Image.open(source) as img:
                params = {"optimize": True}
                if getattr(img, "is_animated", False):
                    params["save_all"] = True
                    for key in ("duration", "loop"):
                        if key in img.info:
                            params[key] = img.info[key]
                img.save(dest, **params)
        else:
            shutil.copy2(source, dest)
        return dest


class BaseMinifier(ABC):
    """Base class for extension-selected minifiers."""

    extensions: frozenset[str] = frozenset()

    @property
    @abstractmethod
    def priority(self) -> int: ...

    def can_minify(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    @abstractmethod
    def minify(self, text: str) -> str: ...


class JSMinifier(BaseMinifier):
    """Minifies JavaScript bundles with rjsmin."""

    extensions = frozenset({".js"})

    @property
    def priority(self) -> int:
        return 80

    def minify(self, text: str) -> str:
        return jsmin(text)


class CSSMinifier(BaseMinifier):
    """Minifies CSS bundles with lightningcss."""

    extensions = frozenset({".css"})

    def __init__(self, browsers_list: Sequence[str] | None = ("defaults",)):
        self.browsers_list = list(browsers_list) if browsers_list else None

    @property
    def priority(self) -> int:
        return 90

    def minify(self, text: str) -> str:
        import lightningcss

        return lightningcss.process_stylesheet(
            text,
            filename="bundle.css",
            error_recovery=False,
            parser_flags=lightningcss.calc_parser_flags(),
            unused_symbols=None,
            browsers_list=self.browsers_list,
            minify=True,
        )


class HTMLMinifier(BaseMinifier):
    """Minifies HTML pages with minify-html.

    Whitespace is collapsed and inline ``<style>`` and ``<script>``
    contents are minified as well.
    """

    extensions = frozenset({".html", ".htm"})
    minify_css = True
    minify_js = True

    @property
    def priority(self) -> int:
        return 100

    def minify(self, text: str) -> str:
        return minify_html.minify(text, minify_css=self.minify_css, minify_js=self.minify_js)


class MinifierRegistry:
    """Registry selecting a minifier by the artifact's file extension."""

    def __init__(self):
        self._minifiers: list[Minifier] = []

    def register(self, minifier: Minifier) -> None:
        """Register a minifier; minifiers are kept sorted by priority (highest first)."""
        self._minifiers.append(minifier)
        self._minifiers.sort(key=lambda m: m.priority, reverse=True)

    def get_minifier(self, path: Path) -> Minifier | None:
        """Return the first minifier that handles ``path``, or None."""
        for minifier in self._minifiers:
            if minifier.can_minify(path):
                return minifier
        return None

    def minify(self, path: Path, text: str) -> str:
        """Minify ``text`` for ``path``; unknown extensions pass through unchanged."""
        minifier = self.get_minifier(path)
        if minifier:
            return minifier.minify(text)
        return text


def create_default_minifiers() -> MinifierRegistry:
    registry = MinifierRegistry()
    registry.register(JSMinifier())
    registry.register(CSSMinifier())
    registry.register(HTMLMinifier())
    return registry


@dataclass
class Transformers:
    """One implementation per transformation capability.

    Attributes:
        style: Stylesheet compiler.
        script: Script transpiler.
        page: Page template renderer.
        image: Image optimizer.
        font: Font optimizer (usually the image optimizer).
        minifiers: Minifiers used by post-processing.
    """

    style: StyleCompiler
    script: ScriptTranspiler
    page: PageRenderer
    image: ImageOptimizer
    font: ImageOptimizer
    minifiers: MinifierRegistry = field(default_factory=create_default_minifiers)


def create_default_transformers(config: EffectiveConfig) -> Transformers:
    """Create the default capability implementations for a configuration.

    Args:
        config: Effective configuration.

    Returns:
        Configured Transformers.
    """
    optimizer = PillowImageOptimizer()
    return Transformers(
        style=SassStyleCompiler(include_paths=[config.root / "node_modules"]),
        script=BabelScriptTranspiler(config.root),
        page=JinjaPageRenderer(config.source_dir, config.data),
        image=optimizer,
        font=optimizer,
    )
