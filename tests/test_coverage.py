from __future__ import annotations

from pathlib import Path

from vaultpack.coverage import find_uncovered


def _write_tree(root: Path, files: list[str]) -> None:
    for rel in files:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(rel, encoding="utf-8")


def test_files_are_split_by_destination_membership(tmp_path: Path) -> None:
    _write_tree(tmp_path, ["apps/a.txt", "apps/b.txt", "libs/c.txt"])

    result = find_uncovered(
        tmp_path,
        [],
        "jcr_root",
        ["jcr_root/apps/a.txt", "jcr_root/apps/b.txt", "META-INF/vault/filter.xml"],
    )

    assert result.covered_files == [tmp_path / "apps/a.txt", tmp_path / "apps/b.txt"]
    assert result.uncovered_files == [tmp_path / "libs/c.txt"]


def test_covered_and_uncovered_partition_the_scan(tmp_path: Path) -> None:
    _write_tree(tmp_path, ["a.txt", "b/c.txt", "b/d/e.txt", "f/g.txt"])

    result = find_uncovered(tmp_path, [], "jcr_root", ["jcr_root/b/c.txt"])

    covered = set(result.covered_files)
    uncovered = set(result.uncovered_files)
    assert covered.isdisjoint(uncovered)
    assert covered | uncovered == {
        tmp_path / "a.txt",
        tmp_path / "b/c.txt",
        tmp_path / "b/d/e.txt",
        tmp_path / "f/g.txt",
    }
    assert result.all_files == sorted(covered | uncovered, key=lambda p: p.as_posix())


def test_backslash_entry_names_are_normalized(tmp_path: Path) -> None:
    _write_tree(tmp_path, ["apps/a.txt"])

    result = find_uncovered(tmp_path, [], "jcr_root", ["jcr_root\\apps\\a.txt"])

    assert result.uncovered_files == []
    assert "jcr_root/apps/a.txt" in result.covered_paths


def test_excluded_files_are_never_uncovered(tmp_path: Path) -> None:
    _write_tree(tmp_path, ["apps/.vlt", "apps/a.txt~", "apps/b.txt"])

    result = find_uncovered(tmp_path, ["**/.vlt"], "jcr_root", [])

    assert result.uncovered_files == [tmp_path / "apps/b.txt"]


def test_files_below_backup_named_directories_are_checked(tmp_path: Path) -> None:
    _write_tree(tmp_path, ["apps/old~/page.html", "apps/page.html~"])

    result = find_uncovered(tmp_path, [], "jcr_root", [])

    assert result.uncovered_files == [tmp_path / "apps/old~/page.html"]
