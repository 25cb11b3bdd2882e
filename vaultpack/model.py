from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Origin = Literal["metadata", "working", "embedded", "source"]
InclusionKind = Literal["aggregate", "ancestor", "embedded"]


@dataclass(frozen=True)
class FilterRule:
    """A filter root in declaration order."""

    root: str  # repository path, e.g. "/apps/foo"
    position: int = 0


@dataclass(frozen=True)
class FileSetEntry:
    directory: Path
    prefix: str  # "" or ends with "/"
    includes: tuple[str, ...] = ()  # empty means everything
    excludes: tuple[str, ...] = ()
    use_default_excludes: bool = True
    include_empty_dirs: bool = True


@dataclass(frozen=True)
class FileInclusion:
    """A single file placed at an explicit destination."""

    source: Path
    destination: str
    kind: InclusionKind


Inclusion = FileSetEntry | FileInclusion


@dataclass(frozen=True)
class ArchiveEntry:
    destination: str
    source: Path
    protected: bool
    origin: Origin


@dataclass(frozen=True)
class DuplicateRecord:
    destination: str
    first_source: Path
    second_source: Path
    origin: Origin  # origin of the second claim

    def message(self) -> str:
        return (
            f"Found duplicate file '{self.destination}' from sources "
            f"'{self.first_source}' and '{self.second_source}'."
        )


@dataclass(frozen=True)
class CoverageResult:
    covered_paths: frozenset[str]
    covered_files: list[Path]
    uncovered_files: list[Path]

    @property
    def all_files(self) -> list[Path]:
        return sorted(
            [*self.covered_files, *self.uncovered_files], key=lambda p: p.as_posix()
        )


@dataclass
class BuildReport:
    infos: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
