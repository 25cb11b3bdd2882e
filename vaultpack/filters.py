from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

from .errors import FilterDefinitionError
from .model import FilterRule
from .paths import FILTER_XML, META_DIR


def default_filter_path(work_dir: Path) -> Path:
    return work_dir / META_DIR / FILTER_XML


def rules_from_roots(roots: Iterable[str]) -> list[FilterRule]:
    return [
        FilterRule(root=str(r).strip(), position=i)
        for i, r in enumerate(r for r in roots if str(r).strip())
    ]


def parse_filter_rules(text: str, *, source: str = "<string>") -> list[FilterRule]:
    """Read ``<filter root="...">`` elements of a workspace filter in order."""
    try:
        doc = ET.fromstring(text)
    except ET.ParseError as e:
        raise FilterDefinitionError(f"Malformed filter definition {source}: {e}") from e
    if doc.tag != "workspaceFilter":
        raise FilterDefinitionError(
            f"Unexpected root element <{doc.tag}> in {source}, "
            "expected <workspaceFilter>"
        )

    roots: list[str] = []
    for el in doc.findall("filter"):
        root = (el.get("root") or "").strip()
        if not root:
            raise FilterDefinitionError(f"Filter without root attribute in {source}")
        roots.append(root)
    return rules_from_roots(roots)


def load_filter_rules(path: Path) -> list[FilterRule]:
    if not path.is_file():
        return []
    return parse_filter_rules(path.read_text(encoding="utf-8"), source=str(path))
