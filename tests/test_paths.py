from __future__ import annotations

from pathlib import Path

import pytest

from vaultpack.paths import (
    as_directory_prefix,
    chomp,
    is_path_prefix,
    join,
    normalize,
    source_path,
)


def test_normalize_collapses_separators_and_dots() -> None:
    assert normalize("jcr_root//apps/./foo") == "jcr_root/apps/foo"
    assert normalize("jcr_root/apps/bar/../foo") == "jcr_root/apps/foo"
    assert normalize("jcr_root\\apps\\foo") == "jcr_root/apps/foo"


def test_normalize_keeps_leading_and_trailing_separator() -> None:
    assert normalize("/apps//foo/") == "/apps/foo/"
    assert normalize("/") == "/"
    assert normalize("") == ""


def test_normalize_rejects_escaping_parent_segments() -> None:
    with pytest.raises(ValueError):
        normalize("../outside")


def test_as_directory_prefix_keeps_empty_prefix_empty() -> None:
    assert as_directory_prefix("") == ""
    assert as_directory_prefix("jcr_root") == "jcr_root/"
    assert as_directory_prefix("jcr_root///") == "jcr_root/"


def test_join_uses_exactly_one_separator() -> None:
    assert join("jcr_root/", "/apps") == "jcr_root/apps"
    assert join("", "apps/foo") == "apps/foo"
    assert join("jcr_root", "") == "jcr_root"


def test_chomp_drops_last_segment() -> None:
    assert chomp("jcr_root/apps/foo") == "jcr_root/apps"
    assert chomp("jcr_root/apps") == "jcr_root"
    assert chomp("jcr_root") == "jcr_root"


def test_is_path_prefix_is_a_string_test(tmp_path: Path) -> None:
    root = tmp_path / "jcr_root"
    assert is_path_prefix(root / "apps", root)
    assert is_path_prefix(root, root)
    assert not is_path_prefix(tmp_path, root)


def test_source_path_maps_root_rel_to_root(tmp_path: Path) -> None:
    assert source_path(tmp_path, "/") == tmp_path
    assert source_path(tmp_path, "/apps/foo") == tmp_path / "apps" / "foo"
