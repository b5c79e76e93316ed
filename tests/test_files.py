from pathlib import Path

import pytest

from pagebuild.config import load_config
from pagebuild.files import FileGroup, file_groups, glob_to_regex


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("*.html", "index.html", True),
        ("*.html", "layouts/base.html", False),
        ("assets/styles/*.scss", "assets/styles/main.scss", True),
        ("assets/styles/*.scss", "assets/styles/sub/main.scss", False),
        ("assets/styles/*.scss", "assets/styles/main.css", False),
        ("assets/images/**", "assets/images/logo.png", True),
        ("assets/images/**", "assets/images/icons/a.svg", True),
        ("assets/images/**", "assets/fonts/a.woff", False),
        ("**/*.js", "app.js", True),
        ("**/*.js", "a/b/app.js", True),
        ("*.{html,htm}", "about.htm", True),
        ("page?.html", "page1.html", True),
        ("page[0-9].html", "pageA.html", False),
        ("**", "deep/nested/file.txt", True),
    ],
)
def test_glob_to_regex(pattern, path, expected):
    assert bool(glob_to_regex(pattern).match(path)) is expected


def create_tree(root: Path) -> None:
    for rel in [
        "src/index.html",
        "src/about.html",
        "src/layouts/basic.html",
        "src/assets/styles/main.scss",
        "src/assets/styles/_vars.scss",
        "src/assets/images/logo.png",
        "src/assets/images/icons/star.svg",
        "public/favicon.ico",
        "public/docs/readme.txt",
    ]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")


def test_file_group_iter_and_dest(tmp_path):
    create_tree(tmp_path)
    groups = file_groups(load_config(tmp_path))

    pages = list(groups["pages"].iter_files())
    assert pages == [tmp_path / "src" / "about.html", tmp_path / "src" / "index.html"]
    assert groups["pages"].dest_for(pages[1]) == tmp_path / "temp" / "index.html"

    images = [p.relative_to(tmp_path).as_posix() for p in groups["images"].iter_files()]
    assert images == ["src/assets/images/icons/star.svg", "src/assets/images/logo.png"]
    assert groups["images"].dest_for(tmp_path / "src/assets/images/logo.png") == (
        tmp_path / "dist" / "assets" / "images" / "logo.png"
    )

    extra = [p.relative_to(tmp_path).as_posix() for p in groups["extra"].iter_files()]
    assert extra == ["public/docs/readme.txt", "public/favicon.ico"]
    assert groups["extra"].dest_for(tmp_path / "public/docs/readme.txt") == (
        tmp_path / "dist" / "docs" / "readme.txt"
    )


def test_file_group_matches_absolute_and_outside(tmp_path):
    group = FileGroup("assets/styles/*.scss", tmp_path / "src", tmp_path / "src", tmp_path / "temp")
    assert group.matches(tmp_path / "src" / "assets" / "styles" / "a.scss")
    assert group.matches(Path("assets/styles/a.scss"))
    assert not group.matches(tmp_path / "public" / "assets" / "styles" / "a.scss")


def test_missing_directory_yields_nothing(tmp_path):
    group = FileGroup("**", tmp_path / "public", tmp_path / "public", tmp_path / "dist")
    assert list(group.iter_files()) == []


def test_useref_group_reads_intermediate(tmp_path):
    groups = file_groups(load_config(tmp_path))
    useref = groups["useref"]
    assert useref.cwd == tmp_path / "temp"
    assert useref.dest_dir == tmp_path / "dist"
    assert useref.pattern == "*.html"
