from pathlib import Path, PurePosixPath

import pytest

from pagebuild.references import find_asset, resolve_references
from pagebuild.tasks import BuildReferenceError

PAGE = """<html><head>
<!-- build:css assets/styles/vendor.css -->
<link rel="stylesheet" href="/node_modules/lib/lib.css">
<!-- endbuild -->
<!-- build:css assets/styles/main.css -->
<link rel="stylesheet" href="assets/styles/main.css?v=1">
<!-- endbuild -->
</head><body>
<!-- build:js assets/scripts/main.js -->
<script src="assets/scripts/a.js"></script>
<script src="assets/scripts/b.js"></script>
<!-- endbuild -->
<!-- build:remove -->
<script src="/livereload.js"></script>
<!-- endbuild -->
</body></html>"""


def write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture()
def project(tmp_path):
    write(tmp_path / "node_modules" / "lib" / "lib.css", ".lib{}")
    write(tmp_path / "temp" / "assets" / "styles" / "main.css", "body{}")
    write(tmp_path / "temp" / "assets" / "scripts" / "a.js", "var a;")
    write(tmp_path / "temp" / "assets" / "scripts" / "b.js", "var b;")
    return tmp_path


def test_resolves_blocks_into_bundles(project):
    resolved = resolve_references(
        PAGE, PurePosixPath("index.html"), [project / "temp", project]
    )
    assert resolved.bundles == {
        PurePosixPath("assets/styles/vendor.css"): ".lib{}",
        PurePosixPath("assets/styles/main.css"): "body{}",
        PurePosixPath("assets/scripts/main.js"): "var a;\nvar b;",
    }
    html = resolved.html
    assert '<link rel="stylesheet" href="assets/styles/vendor.css">' in html
    assert '<link rel="stylesheet" href="assets/styles/main.css">' in html
    assert '<script src="assets/scripts/main.js"></script>' in html
    assert "build:" not in html
    assert "endbuild" not in html
    assert "livereload" not in html
    assert "a.js" not in html


def test_search_order_prefers_first_directory(project):
    write(project / "assets" / "styles" / "main.css", "stale{}")
    found = find_asset("assets/styles/main.css", PurePosixPath("."), [project / "temp", project])
    assert found == project / "temp" / "assets" / "styles" / "main.css"


def test_nested_page_targets_are_relative_to_page(project):
    html = (
        "<!-- build:js ../assets/scripts/all.js -->"
        '<script src="../assets/scripts/a.js"></script>'
        "<!-- endbuild -->"
        "<!-- build:js /assets/scripts/root.js -->"
        '<script src="/assets/scripts/b.js"></script>'
        "<!-- endbuild -->"
    )
    resolved = resolve_references(
        html, PurePosixPath("blog/index.html"), [project / "temp", project]
    )
    assert set(resolved.bundles) == {
        PurePosixPath("assets/scripts/all.js"),
        PurePosixPath("assets/scripts/root.js"),
    }
    assert '<script src="/assets/scripts/root.js"></script>' in resolved.html


def test_alternate_search_path(project):
    write(project / "temp" / "vendor" / "x.js", "var x;")
    html = "<!-- build:js(vendor) x.bundle.js --><script src=\"x.js\"></script><!-- endbuild -->"
    resolved = resolve_references(html, PurePosixPath("index.html"), [project / "temp", project])
    assert resolved.bundles[PurePosixPath("x.bundle.js")] == "var x;"


def test_missing_asset_raises(project):
    html = "<!-- build:js app.js --><script src=\"missing.js\"></script><!-- endbuild -->"
    with pytest.raises(BuildReferenceError) as excinfo:
        resolve_references(html, PurePosixPath("index.html"), [project / "temp"], task="useref")
    assert excinfo.value.task == "useref"
    assert "missing.js" in excinfo.value.message


def test_block_without_target_raises(project):
    html = "<!-- build:js --><script src=\"a.js\"></script><!-- endbuild -->"
    with pytest.raises(BuildReferenceError):
        resolve_references(html, PurePosixPath("index.html"), [project / "temp"])


def test_unknown_block_kind_is_kept(project):
    html = "<!-- build:svg sprite.svg --><img src=\"missing.svg\"><!-- endbuild -->"
    resolved = resolve_references(html, PurePosixPath("index.html"), [project / "temp"])
    assert resolved.html == html
    assert resolved.bundles == {}


def test_page_without_blocks_is_unchanged():
    html = "<html><body><p>plain</p></body></html>"
    resolved = resolve_references(html, PurePosixPath("index.html"), [])
    assert resolved.html == html
    assert resolved.bundles == {}
