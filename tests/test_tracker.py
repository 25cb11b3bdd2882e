from __future__ import annotations

from pathlib import Path

from vaultpack.tracker import ClaimStatus, DuplicateTracker, severity


def test_first_claim_is_recorded(tmp_path: Path) -> None:
    tracker = DuplicateTracker()

    claim = tracker.claim("jcr_root/a.txt", tmp_path / "a.txt", False, "source")

    assert claim.status is ClaimStatus.FIRST_WRITE
    assert claim.accepted
    assert claim.record is None
    assert "jcr_root/a.txt" in tracker
    assert tracker.source_for("jcr_root/a.txt") == tmp_path / "a.txt"
    assert len(tracker) == 1


def test_reclaim_from_same_source_is_silent(tmp_path: Path) -> None:
    tracker = DuplicateTracker()
    tracker.claim("jcr_root/a.txt", tmp_path / "a.txt", False, "source")

    claim = tracker.claim("jcr_root/a.txt", tmp_path / "a.txt", False, "source")

    assert claim.status is ClaimStatus.SILENT
    assert not claim.accepted
    assert tracker.duplicates == []


def test_claim_from_other_source_is_a_duplicate(tmp_path: Path) -> None:
    tracker = DuplicateTracker()
    first = tmp_path / "one" / "a.txt"
    second = tmp_path / "two" / "a.txt"
    tracker.claim("jcr_root/a.txt", first, False, "source")

    claim = tracker.claim("jcr_root/a.txt", second, False, "source")

    assert claim.status is ClaimStatus.DUPLICATE
    assert claim.existing is not None and claim.existing.source == first
    assert claim.record is not None
    assert claim.record.first_source == first
    assert claim.record.second_source == second
    assert tracker.duplicates == [claim.record]
    # the first source keeps the destination
    assert tracker.source_for("jcr_root/a.txt") == first


def test_duplicate_message_names_both_sources(tmp_path: Path) -> None:
    tracker = DuplicateTracker()
    tracker.claim("x", tmp_path / "first", True, "metadata")
    record = tracker.claim("x", tmp_path / "second", False, "source").record

    assert record is not None
    message = record.message()
    assert "'x'" in message
    assert str(tmp_path / "first") in message
    assert str(tmp_path / "second") in message


def test_protected_paths_only_lists_protected_entries(tmp_path: Path) -> None:
    tracker = DuplicateTracker()
    tracker.claim("META-INF/vault/config.xml", tmp_path / "c", True, "metadata")
    tracker.claim("jcr_root/a.txt", tmp_path / "a", False, "source")

    assert tracker.protected_paths() == ["META-INF/vault/config.xml"]
    assert tracker.is_protected("META-INF/vault/config.xml")
    assert not tracker.is_protected("jcr_root/a.txt")
    assert not tracker.is_protected("missing")
    assert [e.origin for e in tracker.entries()] == ["metadata", "source"]


def test_trackers_do_not_share_state(tmp_path: Path) -> None:
    a = DuplicateTracker()
    a.claim("x", tmp_path / "x", False, "source")

    assert "x" not in DuplicateTracker()


def test_static_meta_inf_files_are_informational() -> None:
    assert severity("META-INF/vault/config.xml") == "info"
    assert severity("META-INF/vault/settings.xml") == "info"
    assert severity("META-INF/vault/properties.xml") == "warning"
    assert severity("jcr_root/a.txt") == "warning"
