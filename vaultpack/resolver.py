from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from pathlib import Path

from .ancestors import close_ancestors
from .model import FileInclusion, FileSetEntry, FilterRule, Inclusion
from .names import platform_path
from .paths import (
    as_directory_prefix,
    chomp,
    is_path_prefix,
    join,
    normalize,
    source_path,
)

logger = logging.getLogger(__name__)


def _file_set(
    directory: Path,
    prefix: str,
    excludes: Sequence[str],
    use_default_excludes: bool,
) -> FileSetEntry:
    return FileSetEntry(
        directory=directory,
        prefix=prefix,
        excludes=tuple(excludes),
        use_default_excludes=use_default_excludes,
    )


def resolve_filter_roots(
    source_root: Path,
    filter_rules: Sequence[FilterRule],
    destination_prefix: str,
    already_embedded: Collection[str] = (),
    *,
    excludes: Sequence[str] = (),
    use_default_excludes: bool = True,
    unresolved: list[FilterRule] | None = None,
) -> list[Inclusion]:
    """Resolve ordered filter roots to file sets and single-file inclusions.

    ``destination_prefix`` is the archive location of ``source_root`` (for
    example ``jcr_root``). Rules whose destination is in ``already_embedded``
    are skipped. A rule that matches nothing contributes nothing; it is appended
    to ``unresolved`` when a list is passed.
    """
    if not filter_rules:
        return [
            _file_set(
                source_root,
                as_directory_prefix(destination_prefix),
                excludes,
                use_default_excludes,
            )
        ]

    out: list[Inclusion] = []
    for rule in filter_rules:
        rel = platform_path(normalize("/" + rule.root.strip("/")))
        dest = normalize(join(destination_prefix, rel))

        if dest in already_embedded:
            logger.debug("Skipping filter root %s: already embedded", rule.root)
            continue

        aggregate = source_path(source_root, rel + ".xml") if rel != "/" else None
        if aggregate is not None and aggregate.is_file():
            agg_dest = dest + ".xml"
            out.append(FileInclusion(source=aggregate, destination=agg_dest, kind="aggregate"))
            out.extend(close_ancestors(aggregate.parent, source_root, chomp(agg_dest)))
            continue

        candidate = source_path(source_root, rel)
        if not candidate.is_dir():
            # nearest existing ancestor directory short of the source root
            while not candidate.is_dir() and candidate != source_root:
                if not is_path_prefix(candidate.parent, source_root):
                    break
                candidate = candidate.parent
                rel = chomp(rel)
            if candidate == source_root or not candidate.is_dir():
                logger.debug(
                    "Filter root %s matches nothing below %s", rule.root, source_root
                )
                if unresolved is not None:
                    unresolved.append(rule)
                continue
            dest = normalize(join(destination_prefix, rel))

        out.append(
            _file_set(
                candidate, as_directory_prefix(dest), excludes, use_default_excludes
            )
        )
        out.extend(close_ancestors(candidate, source_root, dest))
    return out
