"""File groups for pagebuild.

A file group ties an asset class to the files it covers: a glob pattern
evaluated relative to ``cwd``, a ``base_dir`` that output paths are made
relative to, and the ``dest_dir`` the transformed files are written to.

Functions:
    glob_to_regex: Translate a glob pattern into a compiled regex.
    file_groups: Build the file group of every asset class from a config.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath

from .config import EffectiveConfig


@lru_cache(maxsize=128)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into a regex over POSIX relative paths.

    Supports ``**`` (any number of path segments), ``*`` and ``?`` (within
    one segment), ``[...]`` character classes and ``{a,b}`` alternatives.

    Examples:
        >>> bool(glob_to_regex("assets/images/**").match("assets/images/a/b.png"))
        True

        >>> bool(glob_to_regex("*.html").match("layouts/base.html"))
        False
    """
    out: list[str] = []
    i = 0
    depth = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    # "**/" also matches zero directories
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        elif char == "{":
            depth += 1
            out.append("(?:")
        elif char == "}" and depth:
            depth -= 1
            out.append(")")
        elif char == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("".join(out) + r"\Z")


@dataclass(frozen=True)
class FileGroup:
    """Source pattern, base, working and destination directories of an asset class.

    Attributes:
        pattern: Glob pattern relative to ``cwd``.
        base_dir: Directory output paths are computed relative to.
        cwd: Directory the pattern is evaluated in.
        dest_dir: Directory transformed files are written to.
    """

    pattern: str
    base_dir: Path
    cwd: Path
    dest_dir: Path

    def matches(self, path: Path) -> bool:
        """Check whether an absolute or cwd-relative path belongs to this group."""
        if path.is_absolute():
            try:
                path = path.relative_to(self.cwd)
            except ValueError:
                return False
        return bool(glob_to_regex(self.pattern).match(PurePosixPath(path).as_posix()))

    def iter_files(self) -> Iterator[Path]:
        """Yield matching files in a stable order."""
        if not self.cwd.is_dir():
            return
        for path in sorted(self.cwd.rglob("*")):
            if path.is_file() and self.matches(path):
                yield path

    def dest_for(self, path: Path) -> Path:
        """Map a source file to its destination, keeping the path below base_dir."""
        return self.dest_dir / path.relative_to(self.base_dir)


def file_groups(config: EffectiveConfig) -> dict[str, FileGroup]:
    """Build every asset class's file group.

    Args:
        config: Effective configuration.

    Returns:
        Mapping of asset class name to FileGroup. ``useref`` covers the
        compiled pages in the intermediate directory.
    """
    src = config.source_dir
    temp = config.intermediate_dir
    dist = config.output_dir
    patterns = config.patterns
    return {
        "styles": FileGroup(patterns.styles, src, src, temp),
        "scripts": FileGroup(patterns.scripts, src, src, temp),
        "pages": FileGroup(patterns.pages, src, src, temp),
        "images": FileGroup(patterns.images, src, src, dist),
        "fonts": FileGroup(patterns.fonts, src, src, dist),
        "extra": FileGroup("**", config.public_dir, config.public_dir, dist),
        "useref": FileGroup(patterns.pages, temp, temp, dist),
    }
