from __future__ import annotations

import os
from pathlib import Path

import pytest

from vaultpack.discover import (
    DEFAULT_EXCLUDES,
    effective_excludes,
    escape_pattern,
    scan_directory,
)


def _write_tree(root: Path, files: dict[str, str]) -> None:
    for rel, text in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")


def test_scan_basic_is_sorted_and_relative(tmp_path: Path) -> None:
    _write_tree(
        tmp_path,
        {"b.txt": "b", "a/x.xml": "x", "a/.content.xml": "c", "c/d/e.txt": "e"},
    )

    disc = scan_directory(tmp_path)

    assert disc.root == tmp_path
    assert disc.files == ["a/.content.xml", "a/x.xml", "b.txt", "c/d/e.txt"]
    assert disc.absolute()[0] == tmp_path / "a" / ".content.xml"


def test_scan_missing_directory_is_empty(tmp_path: Path) -> None:
    disc = scan_directory(tmp_path / "missing")
    assert disc.files == []
    assert disc.empty_dirs == []


def test_default_excludes_skip_vcs_metadata(tmp_path: Path) -> None:
    _write_tree(
        tmp_path,
        {
            "apps/a.txt": "a",
            "apps/.svn/entries": "svn",
            "apps/.DS_Store": "",
            "apps/b.txt~": "backup",
        },
    )

    assert scan_directory(tmp_path).files == ["apps/a.txt"]
    everything = scan_directory(tmp_path, use_default_excludes=False).files
    assert "apps/.svn/entries" in everything
    assert "apps/.DS_Store" in everything


def test_excludes_are_relative_to_the_scanned_directory(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"vault.txt": "top", "apps/vault.txt": "nested"})

    disc = scan_directory(tmp_path, excludes=["vault.txt"])

    assert disc.files == ["apps/vault.txt"]


def test_double_star_excludes_match_at_any_depth(tmp_path: Path) -> None:
    _write_tree(
        tmp_path,
        {"a/.vlt": "", "a/b/.vlt": "", "a/b/.vltignore": "", "a/b/c.txt": "c"},
    )

    disc = scan_directory(tmp_path, excludes=["**/.vlt", "**/.vltignore"])

    assert disc.files == ["a/b/c.txt"]


def test_excluded_directories_are_pruned(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"keep/a.txt": "a", "drop/b.txt": "b", "drop/c/d.txt": "d"})

    disc = scan_directory(tmp_path, excludes=["drop/"])

    assert disc.files == ["keep/a.txt"]


def test_includes_restrict_selection(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"a.xml": "", "b.txt": "", "sub/c.xml": ""})

    disc = scan_directory(tmp_path, includes=["**/*.xml"])

    assert disc.files == ["a.xml", "sub/c.xml"]
    assert disc.empty_dirs == []


def test_empty_directories_are_reported(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"full/a.txt": "a"})
    (tmp_path / "empty").mkdir()
    (tmp_path / "nested" / "deeper").mkdir(parents=True)

    disc = scan_directory(tmp_path)

    assert disc.empty_dirs == ["empty", "nested/deeper"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_symlinks_are_not_followed(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    _write_tree(outside, {"secret.txt": "s"})
    src = tmp_path / "src"
    _write_tree(src, {"a.txt": "a"})
    try:
        (src / "link").symlink_to(outside, target_is_directory=True)
        (src / "file-link.txt").symlink_to(outside / "secret.txt")
    except OSError:
        pytest.skip("cannot create symlinks")

    assert scan_directory(src).files == ["a.txt"]


def test_escape_pattern_excludes_exactly_one_path(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"a[1].txt": "x", "a1.txt": "y", "sub/a[1].txt": "z"})

    disc = scan_directory(tmp_path, excludes=[escape_pattern("a[1].txt")])

    assert disc.files == ["a1.txt", "sub/a[1].txt"]


def test_effective_excludes_prepends_defaults() -> None:
    assert effective_excludes(["x"], False) == ["x"]
    merged = effective_excludes(["x"], True)
    assert merged[: len(DEFAULT_EXCLUDES)] == DEFAULT_EXCLUDES
    assert merged[-1] == "x"


def test_single_star_stays_within_one_segment(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"apps/a.txt": "a", "apps/sub/deep.txt": "d"})

    assert scan_directory(tmp_path, includes=["apps/*"]).files == ["apps/a.txt"]
    assert scan_directory(tmp_path, excludes=["apps/*"]).files == ["apps/sub/deep.txt"]


def test_question_mark_matches_exactly_one_character(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"ab.txt": "", "abc.txt": "", "a.txt": ""})

    assert scan_directory(tmp_path, includes=["a?.txt"]).files == ["ab.txt"]


def test_file_pattern_does_not_swallow_matching_directory(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"notes.txt/readme.md": "r", "x.md": "x", "y.txt": "y"})

    disc = scan_directory(tmp_path, excludes=["**/*.txt"])

    assert disc.files == ["notes.txt/readme.md", "x.md"]


def test_default_excludes_keep_contents_of_backup_named_directory(
    tmp_path: Path,
) -> None:
    _write_tree(
        tmp_path,
        {"apps/old~/page.html": "p", "apps/._res/x.css": "c", "apps/page.html~": "b"},
    )

    assert scan_directory(tmp_path).files == ["apps/._res/x.css", "apps/old~/page.html"]


def test_trailing_double_star_reaches_every_level(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"apps/a.txt": "a", "apps/b/c/d.txt": "d", "libs/e.txt": "e"})

    disc = scan_directory(tmp_path, includes=["apps/**"])

    assert disc.files == ["apps/a.txt", "apps/b/c/d.txt"]
