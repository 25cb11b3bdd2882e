from __future__ import annotations

from pathlib import Path

ROOT_DIR = "jcr_root"
META_INF = "META-INF"
META_DIR = "META-INF/vault"
FILTER_XML = "filter.xml"
CONFIG_XML = "config.xml"
SETTINGS_XML = "settings.xml"
DOT_CONTENT_XML = ".content.xml"


def normalize(path: str) -> str:
    """Normalize an archive path.

    Backslashes become ``/``, repeated separators collapse and ``.``/``..``
    segments are resolved. A leading or trailing ``/`` is preserved.
    """
    text = path.replace("\\", "/")
    if not text:
        return text
    leading = text.startswith("/")
    trailing = text.endswith("/") and len(text) > 1

    parts: list[str] = []
    for seg in text.split("/"):
        if seg in {"", "."}:
            continue
        if seg == "..":
            if not parts:
                raise ValueError(f"Path escapes its root: {path}")
            parts.pop()
            continue
        parts.append(seg)

    out = "/".join(parts)
    if leading:
        out = "/" + out
    if trailing and out and not out.endswith("/"):
        out += "/"
    return out


def strip_trailing_separators(path: str) -> str:
    return path.rstrip("/")


def as_directory_prefix(prefix: str) -> str:
    # "" stays "" so entries land at the archive root
    stripped = strip_trailing_separators(prefix)
    return f"{stripped}/" if stripped else ""


def join(prefix: str, rel: str) -> str:
    head = strip_trailing_separators(prefix)
    tail = rel.lstrip("/")
    if not head:
        return tail
    if not tail:
        return head
    return f"{head}/{tail}"


def chomp(path: str) -> str:
    """Drop the last ``/``-separated segment; no separator leaves ``path`` as is."""
    idx = path.rfind("/")
    if idx < 0:
        return path
    return path[:idx]


def is_path_prefix(candidate: Path, root: Path) -> bool:
    return str(candidate).startswith(str(root))


def source_path(root: Path, rel: str) -> Path:
    rel = rel.strip("/")
    return root / rel if rel else root
