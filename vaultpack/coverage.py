from __future__ import annotations

from collections.abc import Collection, Sequence
from pathlib import Path

from .discover import scan_directory
from .model import CoverageResult
from .paths import join, normalize


def find_uncovered(
    source_directory: Path,
    excludes: Sequence[str],
    destination_prefix: str,
    covered_paths: Collection[str],
    use_default_excludes: bool = True,
) -> CoverageResult:
    """Split the files below ``source_directory`` into covered and uncovered.

    A file is covered when ``destination_prefix/<relative path>`` is one of
    ``covered_paths``. Entry names may use ``\\`` separators; they are
    normalized before comparison.
    """
    covered = frozenset(normalize(p) for p in covered_paths)
    disc = scan_directory(
        source_directory,
        excludes=excludes,
        use_default_excludes=use_default_excludes,
    )

    covered_files: list[Path] = []
    uncovered_files: list[Path] = []
    for rel in disc.files:
        if join(destination_prefix, rel) in covered:
            covered_files.append(source_directory / rel)
        else:
            uncovered_files.append(source_directory / rel)

    return CoverageResult(
        covered_paths=covered,
        covered_files=covered_files,
        uncovered_files=uncovered_files,
    )
