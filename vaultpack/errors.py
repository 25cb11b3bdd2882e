from __future__ import annotations

from pathlib import Path

from .model import DuplicateRecord


class PackageError(Exception):
    """Base error for a failed package build."""


class ConflictError(PackageError):
    def __init__(self, duplicates: list[DuplicateRecord]) -> None:
        self.duplicates = list(duplicates)
        super().__init__(
            f"Found {len(self.duplicates)} duplicate file(s) in content package:\n"
            + "\n".join(d.message() for d in self.duplicates)
        )


class CoverageError(PackageError):
    def __init__(self, uncovered: list[Path]) -> None:
        self.uncovered = list(uncovered)
        super().__init__(
            "The following files are not covered by a filter rule:\n"
            + ",\n".join(str(p) for p in self.uncovered)
        )


class FilteringError(PackageError):
    """Token substitution of a resource failed."""


class FilterDefinitionError(PackageError):
    """The workspace filter document could not be parsed."""
