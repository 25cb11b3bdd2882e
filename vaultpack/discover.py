from __future__ import annotations

import os
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pathspec
from pathspec.pattern import RegexPattern
from pathspec.patterns import GitWildMatchPattern

# Classic Ant/Plexus default excludes: editor backups, VCS metadata, OS artefacts.
DEFAULT_EXCLUDES = [
    "**/*~",
    "**/#*#",
    "**/.#*",
    "**/%*%",
    "**/._*",
    "**/CVS",
    "**/CVS/**",
    "**/.cvsignore",
    "**/.svn",
    "**/.svn/**",
    "**/.arch-ids",
    "**/.arch-ids/**",
    "**/.bzr",
    "**/.bzr/**",
    "**/.MySCMServerInfo",
    "**/.DS_Store",
    "**/.metadata",
    "**/.metadata/**",
    "**/.hg",
    "**/.hg/**",
    "**/.git",
    "**/.git/**",
    "**/.gitignore",
    "**/.gitattributes",
    "**/BitKeeper",
    "**/BitKeeper/**",
    "**/ChangeSet",
    "**/ChangeSet/**",
    "**/_darcs",
    "**/_darcs/**",
    "**/.darcsrepo",
    "**/.darcsrepo/**",
    "**/-darcs-backup*",
    "**/.darcs-temp-mail",
]

_SPECIAL_RE = re.compile(r"([\\\[\]*?!#])")
_WINDOWS_SEP_RE = re.compile(r"(?<!\\)\\(?![\\\[\]*?!#])")
# gitwildmatch lets a match on a directory cover everything below it; Ant does not.
_SUBTREE_SUFFIX_RE = re.compile(r"\(\?:(?:\(\?P<\w+>/\)|/)\.\*\)\?\$$")


@dataclass(frozen=True)
class Discovery:
    root: Path
    files: list[str] = field(default_factory=list)  # relative POSIX paths
    empty_dirs: list[str] = field(default_factory=list)

    def absolute(self) -> list[Path]:
        return [self.root / rel for rel in self.files]


def _to_gitwildmatch(pattern: str) -> str | None:
    # Windows separators become "/"; glob escapes are kept.
    p = _WINDOWS_SEP_RE.sub("/", pattern.strip())
    if not p:
        return None
    if p.endswith("/"):
        p += "**"
    # Ant patterns are relative to the scan root, not basename matches.
    if not (p.startswith("/") or p.startswith("**")):
        p = "/" + p
    return p


def _path_regex(pattern: str) -> str | None:
    """Full-path regex for one anchored pattern.

    ``*`` and ``?`` stay within one segment and a match on a directory does not
    extend to its contents; only a trailing ``**`` reaches below.
    """
    regex, include = GitWildMatchPattern.pattern_to_regex(pattern)
    if regex is None or include is None:
        return None
    if pattern.rstrip("/").endswith("**"):
        return regex
    return _SUBTREE_SUFFIX_RE.sub("$", regex)


def compile_patterns(
    patterns: Sequence[str], *, case_sensitive: bool = True
) -> pathspec.PathSpec:
    compiled: list[RegexPattern] = []
    for raw in patterns:
        p = _to_gitwildmatch(str(raw))
        if p is None:
            continue
        regex = _path_regex(p if case_sensitive else p.lower())
        if regex is not None:
            compiled.append(RegexPattern(re.compile(regex), include=True))
    return pathspec.PathSpec(compiled)


def escape_pattern(rel_path: str) -> str:
    """Anchored pattern matching exactly one relative file path."""
    return "/" + _SPECIAL_RE.sub(r"\\\1", rel_path.lstrip("/"))


def effective_excludes(
    excludes: Sequence[str] | None, use_default_excludes: bool
) -> list[str]:
    out = list(excludes or [])
    if use_default_excludes:
        out = DEFAULT_EXCLUDES + out
    return out


def scan_directory(
    directory: Path,
    includes: Sequence[str] | None = None,
    excludes: Sequence[str] | None = None,
    use_default_excludes: bool = True,
    *,
    case_sensitive: bool = True,
) -> Discovery:
    """Enumerate files below ``directory`` matching include/exclude patterns.

    Notes:
    - A missing directory yields an empty result rather than an error.
    - Symbolic links are neither followed nor returned.
    - Empty ``includes`` selects everything; ``empty_dirs`` is only filled then.
    - Results are sorted lexically by relative POSIX path.
    """
    if not directory.is_dir():
        return Discovery(root=directory)

    inc = compile_patterns(includes or [], case_sensitive=case_sensitive)
    exc = compile_patterns(
        effective_excludes(excludes, use_default_excludes),
        case_sensitive=case_sensitive,
    )
    apply_inc = bool(includes)

    def _key(rel: str) -> str:
        return rel if case_sensitive else rel.lower()

    files: list[str] = []
    kept_dirs: list[str] = []
    for dirpath, dirnames, filenames in os.walk(directory, followlinks=False):
        base = Path(dirpath)
        rel_dir = base.relative_to(directory).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept: list[str] = []
        for name in sorted(dirnames):
            if (base / name).is_symlink():
                continue
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if exc.match_file(_key(rel) + "/"):
                continue
            kept.append(name)
            kept_dirs.append(rel)
        dirnames[:] = kept

        for name in filenames:
            p = base / name
            if p.is_symlink():
                continue
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if apply_inc and not inc.match_file(_key(rel)):
                continue
            if exc.match_file(_key(rel)):
                continue
            files.append(rel)

    files.sort()

    empty_dirs: list[str] = []
    if not apply_inc:
        non_empty: set[str] = set()
        for rel in [*files, *kept_dirs]:
            parent = rel.rpartition("/")[0]
            while parent and parent not in non_empty:
                non_empty.add(parent)
                parent = parent.rpartition("/")[0]
        empty_dirs = sorted(d for d in kept_dirs if d not in non_empty)

    return Discovery(root=directory, files=files, empty_dirs=empty_dirs)
