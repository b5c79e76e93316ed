"""Configuration loading for pagebuild.

This module resolves the effective build configuration for a project:
the built-in defaults, shallow-merged with an optional ``pagebuild.yaml``
override file found in the working directory.

Key objects:
- DEFAULT_CONFIG: Built-in configuration used when no override exists.
- EffectiveConfig: Immutable configuration handed to every task.
- load_config: Load and merge the configuration for a project root.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

CONFIG_FILENAME = "pagebuild.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "build": {
        "src": "src",
        "temp": "temp",
        "dist": "dist",
        "public": "public",
        "pages": "*.html",
        "styles": "assets/styles/*.scss",
        "scripts": "assets/scripts/*.js",
        "images": "assets/images/**",
        "fonts": "assets/fonts/**",
    },
    "data": {},
    "server": {
        "port": 2080,
        "ws_port": 2081,
    },
}


@dataclass(frozen=True)
class Patterns:
    """Glob patterns per asset class, relative to the source directory."""

    pages: str
    styles: str
    scripts: str
    images: str
    fonts: str


@dataclass(frozen=True)
class EffectiveConfig:
    """Resolved configuration for a single pagebuild invocation.

    Attributes:
        root: Working directory every relative path is resolved against.
        src: Source directory name.
        temp: Intermediate directory name.
        dist: Output directory name.
        public: Static files directory name.
        patterns: Glob patterns per asset class.
        data: Read-only template data passed to page rendering.
        port: Preview server HTTP port.
        ws_port: Live reload websocket port.
    """

    root: Path
    src: str
    temp: str
    dist: str
    public: str
    patterns: Patterns
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    port: int = 2080
    ws_port: int = 2081

    @property
    def source_dir(self) -> Path:
        return self.root / self.src

    @property
    def intermediate_dir(self) -> Path:
        return self.root / self.temp

    @property
    def output_dir(self) -> Path:
        return self.root / self.dist

    @property
    def public_dir(self) -> Path:
        return self.root / self.public

    def with_ports(self, port: int | None = None, ws_port: int | None = None) -> EffectiveConfig:
        """Return a copy with the server ports overridden.

        When only the HTTP port is given, the websocket port follows it.
        """
        http_port = port if port is not None else self.port
        if ws_port is None:
            ws_port = http_port + 1 if port is not None else self.ws_port
        return EffectiveConfig(
            root=self.root,
            src=self.src,
            temp=self.temp,
            dist=self.dist,
            public=self.public,
            patterns=self.patterns,
            data=self.data,
            port=http_port,
            ws_port=ws_port,
        )


def _read_override(config_path: Path) -> dict[str, Any]:
    """Read the override file, returning an empty mapping on any failure."""
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError, UnicodeDecodeError):
        return {}
    if not isinstance(loaded, dict):
        return {}
    return loaded


def resolve_config(root: Path, config_file: Path | None = None) -> dict[str, Any]:
    """Return the raw merged configuration mapping.

    Top-level keys of the override replace the default keys wholesale.

    Args:
        root: Project working directory.
        config_file: Optional explicit override file path.

    Returns:
        Dictionary with every top-level key of DEFAULT_CONFIG present.
    """
    config_path = config_file if config_file is not None else root / CONFIG_FILENAME
    if not config_path.is_absolute():
        config_path = root / config_path
    config = copy.deepcopy(DEFAULT_CONFIG)
    config.update(_read_override(config_path))
    return config


def _section(config: dict[str, Any], key: str) -> dict[str, Any]:
    value = config.get(key)
    return value if isinstance(value, dict) else {}


def _pick(section: dict[str, Any], defaults: dict[str, Any], key: str, kind: type) -> Any:
    value = section.get(key, defaults[key])
    if isinstance(value, bool) or not isinstance(value, kind):
        return defaults[key]
    return value


def load_config(root: Path, config_file: Path | None = None) -> EffectiveConfig:
    """Load the effective configuration for a project.

    A missing or malformed override file is treated as no override at all.
    Fields missing from an overridden ``build`` or ``server`` section fall
    back to their default values.

    Args:
        root: Project working directory.
        config_file: Optional explicit override file path.

    Returns:
        Immutable EffectiveConfig.
    """
    config = resolve_config(root, config_file)
    build = _section(config, "build")
    server = _section(config, "server")
    build_defaults = DEFAULT_CONFIG["build"]
    server_defaults = DEFAULT_CONFIG["server"]
    data = config.get("data")

    return EffectiveConfig(
        root=root,
        src=_pick(build, build_defaults, "src", str),
        temp=_pick(build, build_defaults, "temp", str),
        dist=_pick(build, build_defaults, "dist", str),
        public=_pick(build, build_defaults, "public", str),
        patterns=Patterns(
            pages=_pick(build, build_defaults, "pages", str),
            styles=_pick(build, build_defaults, "styles", str),
            scripts=_pick(build, build_defaults, "scripts", str),
            images=_pick(build, build_defaults, "images", str),
            fonts=_pick(build, build_defaults, "fonts", str),
        ),
        data=MappingProxyType(dict(data) if isinstance(data, dict) else {}),
        port=_pick(server, server_defaults, "port", int),
        ws_port=_pick(server, server_defaults, "ws_port", int),
    )
