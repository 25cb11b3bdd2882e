from __future__ import annotations

import logging
from pathlib import Path

from .model import FileInclusion
from .paths import DOT_CONTENT_XML, chomp, is_path_prefix, join

logger = logging.getLogger(__name__)


def ancestor_levels(
    start_dir: Path, source_root: Path, start_destination: str
) -> list[tuple[Path, str]]:
    """Return ``(directory, destination)`` pairs from ``start_dir`` up to the root.

    Both ends are inclusive. Each step moves one directory up and drops one
    destination segment. The walk ends as soon as the directory is no longer
    string-prefixed by ``source_root``.
    """
    levels: list[tuple[Path, str]] = []
    stack: list[tuple[Path, str]] = [(start_dir, start_destination)]
    while stack:
        directory, destination = stack.pop()
        if not is_path_prefix(directory, source_root):
            break
        levels.append((directory, destination))
        parent = directory.parent
        if parent == directory:
            break
        stack.append((parent, chomp(destination)))
    return levels


def close_ancestors(
    start_dir: Path, source_root: Path, start_destination: str
) -> list[FileInclusion]:
    out: list[FileInclusion] = []
    for directory, destination in ancestor_levels(
        start_dir, source_root, start_destination
    ):
        # full-coverage aggregates (<name>.xml) are handled by the resolver
        candidate = directory / DOT_CONTENT_XML
        if candidate.is_file():
            dest = join(destination, DOT_CONTENT_XML)
            logger.debug("Adding ancestor file '%s' at '%s'", candidate, dest)
            out.append(FileInclusion(source=candidate, destination=dest, kind="ancestor"))
    return out
