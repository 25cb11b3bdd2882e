from __future__ import annotations

from pathlib import Path

import pytest

from vaultpack.errors import FilterDefinitionError
from vaultpack.filters import (
    default_filter_path,
    load_filter_rules,
    parse_filter_rules,
    rules_from_roots,
)

FILTER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<workspaceFilter version="1.0">
    <filter root="/apps/foo"/>
    <filter root="/etc/designs/foo">
        <include pattern="/etc/designs/foo/.*"/>
    </filter>
    <filter root="/content/foo" mode="merge"/>
</workspaceFilter>
"""


def test_parse_keeps_declaration_order() -> None:
    rules = parse_filter_rules(FILTER_XML)

    assert [r.root for r in rules] == ["/apps/foo", "/etc/designs/foo", "/content/foo"]
    assert [r.position for r in rules] == [0, 1, 2]


def test_parse_rejects_wrong_document() -> None:
    with pytest.raises(FilterDefinitionError, match="workspaceFilter"):
        parse_filter_rules("<filters/>")


def test_parse_rejects_malformed_xml() -> None:
    with pytest.raises(FilterDefinitionError, match="Malformed"):
        parse_filter_rules("<workspaceFilter>", source="filter.xml")


def test_parse_requires_root_attribute() -> None:
    with pytest.raises(FilterDefinitionError, match="root attribute"):
        parse_filter_rules('<workspaceFilter><filter mode="merge"/></workspaceFilter>')


def test_load_missing_file_yields_no_rules(tmp_path: Path) -> None:
    assert load_filter_rules(tmp_path / "filter.xml") == []


def test_load_reads_default_location(tmp_path: Path) -> None:
    path = default_filter_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(FILTER_XML, encoding="utf-8")

    assert path == tmp_path / "META-INF" / "vault" / "filter.xml"
    assert len(load_filter_rules(path)) == 3


def test_rules_from_roots_skips_blank_entries() -> None:
    rules = rules_from_roots(["/apps", " ", "/libs "])
    assert [(r.root, r.position) for r in rules] == [("/apps", 0), ("/libs", 1)]
