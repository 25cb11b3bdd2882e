from __future__ import annotations

import logging
import stat
import zipfile
from datetime import datetime
from pathlib import Path

from .discover import scan_directory
from .model import FileSetEntry
from .paths import join, normalize

logger = logging.getLogger(__name__)

ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)  # earliest valid ZIP timestamp


def zip_date_time(timestamp: datetime | None) -> tuple[int, int, int, int, int, int]:
    if timestamp is None:
        return ZIP_EPOCH
    parts = (
        timestamp.year,
        timestamp.month,
        timestamp.day,
        timestamp.hour,
        timestamp.minute,
        timestamp.second,
    )
    return max(parts, ZIP_EPOCH)


class ContentPackageArchiver:
    """Collects archive entries in call order; a later add for a path wins.

    Directory entries are stored with a trailing ``/`` and no source.
    """

    def __init__(self, *, include_empty_dirs: bool = True) -> None:
        self.include_empty_dirs = include_empty_dirs
        self._files: dict[str, Path | None] = {}

    @property
    def files(self) -> dict[str, Path | None]:
        return dict(self._files)

    def add_file(self, source: Path, destination: str) -> None:
        dest = normalize(destination).lstrip("/")
        logger.debug("Adding file '%s' to package at '%s'", source, dest)
        self._files[dest] = source

    def add_file_set(self, file_set: FileSetEntry) -> list[str]:
        logger.debug(
            "Adding fileSet [directory=%s prefix=%s excludes=%s]",
            file_set.directory,
            file_set.prefix,
            ", ".join(file_set.excludes),
        )
        disc = scan_directory(
            file_set.directory,
            includes=file_set.includes,
            excludes=file_set.excludes,
            use_default_excludes=file_set.use_default_excludes,
        )
        added: list[str] = []
        for rel in disc.files:
            dest = join(file_set.prefix, rel)
            self._files[dest] = file_set.directory / rel
            added.append(dest)
        if self.include_empty_dirs and file_set.include_empty_dirs:
            for rel in disc.empty_dirs:
                self._files.setdefault(join(file_set.prefix, rel) + "/", None)
        return added

    def create_archive(self, output: Path, *, timestamp: datetime | None = None) -> Path:
        """Write the collected entries as a reproducible ZIP file."""
        output.parent.mkdir(parents=True, exist_ok=True)
        date_time = zip_date_time(timestamp)

        with zipfile.ZipFile(
            output,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=9,
        ) as zf:
            for dest in sorted(self._files):
                source = self._files[dest]
                zi = zipfile.ZipInfo(filename=dest, date_time=date_time)
                zi.create_system = 3  # Unix
                if source is None:
                    zi.external_attr = (stat.S_IFDIR | 0o755) << 16
                    zi.external_attr |= 0x10  # MS-DOS directory flag
                    zi.compress_type = zipfile.ZIP_STORED
                    zf.writestr(zi, b"")
                    continue
                zi.external_attr = (stat.S_IFREG | 0o644) << 16
                zi.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(zi, source.read_bytes())

        logger.info("Wrote content package %s (%d entries)", output, len(self._files))
        return output
