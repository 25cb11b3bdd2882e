from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .model import ArchiveEntry, DuplicateRecord, Origin
from .paths import CONFIG_XML, META_DIR, SETTINGS_XML

# Always present in both the metadata and the working directory.
STATIC_META_INF_FILES: frozenset[str] = frozenset(
    {f"{META_DIR}/{CONFIG_XML}", f"{META_DIR}/{SETTINGS_XML}"}
)


class ClaimStatus(enum.Enum):
    FIRST_WRITE = "first-write"
    SILENT = "silent"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class Claim:
    status: ClaimStatus
    entry: ArchiveEntry
    existing: ArchiveEntry | None = None
    record: DuplicateRecord | None = None

    @property
    def accepted(self) -> bool:
        return self.status is ClaimStatus.FIRST_WRITE


def _same_file(a: Path, b: Path) -> bool:
    if a == b:
        return True
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


class DuplicateTracker:
    """Map from archive destination to the source that first claimed it.

    One instance per build. Claims must arrive in origin order (metadata,
    working, embedded, source tree) so the recorded source is always the one
    with precedence.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ArchiveEntry] = {}
        self._duplicates: list[DuplicateRecord] = []

    def claim(
        self,
        destination: str,
        source: Path,
        protected: bool,
        origin: Origin,
    ) -> Claim:
        entry = ArchiveEntry(
            destination=destination, source=source, protected=protected, origin=origin
        )
        existing = self._entries.get(destination)
        if existing is None:
            self._entries[destination] = entry
            return Claim(status=ClaimStatus.FIRST_WRITE, entry=entry)
        if _same_file(existing.source, source):
            return Claim(status=ClaimStatus.SILENT, entry=entry, existing=existing)

        record = DuplicateRecord(
            destination=destination,
            first_source=existing.source,
            second_source=source,
            origin=origin,
        )
        self._duplicates.append(record)
        return Claim(
            status=ClaimStatus.DUPLICATE, entry=entry, existing=existing, record=record
        )

    def source_for(self, destination: str) -> Path | None:
        entry = self._entries.get(destination)
        return entry.source if entry is not None else None

    def is_protected(self, destination: str) -> bool:
        entry = self._entries.get(destination)
        return entry is not None and entry.protected

    def protected_paths(self) -> list[str]:
        return sorted(d for d, e in self._entries.items() if e.protected)

    def entries(self) -> list[ArchiveEntry]:
        return list(self._entries.values())

    @property
    def duplicates(self) -> list[DuplicateRecord]:
        return list(self._duplicates)

    def __contains__(self, destination: object) -> bool:
        return destination in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def severity(destination: str) -> Literal["info", "warning"]:
    return "info" if destination in STATIC_META_INF_FILES else "warning"
