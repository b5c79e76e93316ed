"""Build-reference resolution for pagebuild.

Compiled pages can mark groups of assets that should be combined for
production with HTML comments::

    <!-- build:css assets/styles/vendor.css -->
    <link rel="stylesheet" href="/node_modules/bootstrap/dist/css/bootstrap.css">
    <!-- endbuild -->

Each block is replaced by one tag pointing at the combined bundle, and the
referenced files are concatenated into that bundle. ``build:remove`` blocks
are dropped entirely. An alternate search directory may be given in
parentheses, as in ``<!-- build:js(app) main.js -->``.

Functions:
    resolve_references: Resolve every block in a page.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .tasks import BuildReferenceError

_BLOCK_RE = re.compile(
    r"<!--\s*build:(?P<kind>\w+)(?:\((?P<alt>[^)]*)\))?(?:\s+(?P<target>[^\s]+?))?\s*-->"
    r"(?P<body>.*?)"
    r"<!--\s*endbuild\s*-->",
    re.DOTALL,
)

# src/href attributes of the tags inside a block
_REF_ATTR_RE = re.compile(r'\b(?:src|href)\s*=\s*["\'](?P<url>[^"\']+)["\']')

_TAG_TEMPLATES = {
    "css": '<link rel="stylesheet" href="{target}">',
    "js": '<script src="{target}"></script>',
}


@dataclass
class ResolvedPage:
    """A page with its build-reference blocks resolved.

    Attributes:
        html: Page markup with every block replaced.
        bundles: Bundle contents keyed by path relative to the output root.
    """

    html: str
    bundles: dict[PurePosixPath, str] = field(default_factory=dict)


def _strip_url(url: str) -> str:
    return url.split("#", 1)[0].split("?", 1)[0]


def find_asset(url: str, page_dir: PurePosixPath, search_dirs: Sequence[Path]) -> Path | None:
    """Find the file a reference points at.

    Root-relative URLs (``/node_modules/...``) are looked up directly below
    each search directory; other URLs are taken relative to the page's
    directory first.

    Args:
        url: Value of the src/href attribute.
        page_dir: Page directory relative to the search roots.
        search_dirs: Directories searched in order.

    Returns:
        The first existing file, or None.
    """
    cleaned = _strip_url(url)
    if cleaned.startswith("/"):
        candidates = [cleaned.lstrip("/")]
    else:
        candidates = [posixpath.normpath(str(page_dir / cleaned)), cleaned]
    for base in search_dirs:
        for candidate in candidates:
            path = base / candidate
            if path.is_file():
                return path
    return None


def _bundle_path(target: str, page_dir: PurePosixPath) -> PurePosixPath:
    if target.startswith("/"):
        return PurePosixPath(target.lstrip("/"))
    return PurePosixPath(posixpath.normpath(str(page_dir / target)))


def resolve_references(
    html: str,
    page_path: PurePosixPath,
    search_dirs: Sequence[Path],
    task: str = "useref",
) -> ResolvedPage:
    """Resolve every build-reference block in a page.

    Args:
        html: Page markup.
        page_path: Page path relative to the output root (e.g. ``about/index.html``).
        search_dirs: Directories referenced assets are searched in, in order.
        task: Task name used in error reports.

    Returns:
        ResolvedPage with the rewritten markup and bundle contents.

    Raises:
        BuildReferenceError: If a referenced asset cannot be found or a
            block has no target.
    """
    page_dir = page_path.parent
    bundles: dict[PurePosixPath, str] = {}

    def repl(match: re.Match) -> str:
        kind = match.group("kind")
        if kind == "remove":
            return ""
        template = _TAG_TEMPLATES.get(kind)
        if template is None:
            return match.group(0)
        target = match.group("target")
        if not target:
            raise BuildReferenceError(
                task, f"build:{kind} block without a target path", Path(page_path)
            )

        dirs = list(search_dirs)
        if match.group("alt"):
            alt = [s.strip() for s in match.group("alt").split(",") if s.strip()]
            base = search_dirs[0] if search_dirs else Path(".")
            dirs = [base / a for a in alt] + dirs

        contents: list[str] = []
        for ref in _REF_ATTR_RE.finditer(match.group("body")):
            url = ref.group("url")
            asset = find_asset(url, page_dir, dirs)
            if asset is None:
                searched = ", ".join(str(d) for d in dirs)
                raise BuildReferenceError(
                    task,
                    f"Referenced asset '{url}' not found. Searched: {searched}",
                    Path(page_path),
                )
            contents.append(asset.read_text(encoding="utf-8"))

        bundles[_bundle_path(target, page_dir)] = "\n".join(contents)
        return template.format(target=target)

    resolved = _BLOCK_RE.sub(repl, html)
    return ResolvedPage(html=resolved, bundles=bundles)
