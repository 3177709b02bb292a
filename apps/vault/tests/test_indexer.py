import json
from pathlib import Path

import pytest

from mapanote_vault.domain.entities import AddNoteRequest, Visibility, VaultStats
from mapanote_vault.vault import Vault


def _dated(monkeypatch: pytest.MonkeyPatch, date: str) -> None:
    monkeypatch.setattr("mapanote_vault.writer.today_iso", lambda: date)


@pytest.fixture()
def vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Vault:
    v = Vault.open(tmp_path, create=True)
    _dated(monkeypatch, "2025-01-01")
    v.add_note(AddNoteRequest(country_slug="fi", text="one", tags=["a", "b"], pinned=True))
    _dated(monkeypatch, "2025-01-03")
    v.add_note(AddNoteRequest(country_slug="fi", text="two", tags=["b"]))
    _dated(monkeypatch, "2025-01-02")
    v.add_note(
        AddNoteRequest(country_slug="se", text="three", tags=["c"], visibility=Visibility.PRIVATE)
    )
    return v


def test_stats(vault: Vault) -> None:
    assert vault.stats() == VaultStats(country_count=2, note_count=3, pinned_count=1, tag_count=3)


def test_malformed_page_is_skipped_in_scans(vault: Vault, tmp_path: Path) -> None:
    broken = tmp_path / "countries" / "no" / "index.md"
    broken.parent.mkdir(parents=True)
    broken.write_text("---\ntitle: [oops\n---\n\n### 2025-02-01 · z · internal\n[id:01BROKEN]\n\nhidden\n", encoding="utf-8")

    assert vault.stats().country_count == 2
    assert vault.search("hidden") == []
    assert all(s.note.id != "01BROKEN" for s in vault.recent_notes())


def test_recent_notes_newest_first(vault: Vault) -> None:
    recent = vault.recent_notes(limit=2)
    assert [s.note.text for s in recent] == ["two", "three"]
    assert [s.source_name for s in recent] == ["fi", "se"]


def test_reindex_rebuilds_manifest(vault: Vault, tmp_path: Path) -> None:
    expected = vault.load_manifest().entities
    raw = json.loads((tmp_path / "vault.json").read_text(encoding="utf-8"))
    raw["entities"] = {"fi": {"note_count": 99, "last_updated": None, "tags": []}, "zz": {"note_count": 1}}
    (tmp_path / "vault.json").write_text(json.dumps(raw), encoding="utf-8")

    assert vault.reindex_all() == {"ok": True, "count": 2}
    assert vault.load_manifest().entities == expected


def test_countries_with_stats(vault: Vault) -> None:
    rows = vault.countries_with_stats()
    assert [(r.slug, r.name, r.note_count) for r in rows] == [("fi", "Finland", 2), ("se", "Sweden", 1)]
    assert rows[0].last_updated == "2025-01-03"
    assert rows[0].tags == ["a", "b"]


def test_export_country_markdown(vault: Vault) -> None:
    md = vault.export_country_markdown("fi")
    assert md.startswith("# Finland\n")
    assert "Nordic country between Sweden and Russia." in md
    assert md.index("two") < md.index("one")
    assert "### 2025-01-01 · a, b · pinned" in md
    assert "[id:" not in md
    assert md.endswith("\n")


def test_export_leaves_out_private_notes(vault: Vault) -> None:
    assert "three" not in vault.export_country_markdown("se")
    assert "three" in vault.export_country_markdown("se", include_private=True)


def test_scans_skip_hidden_and_unreadable_country_dirs(vault: Vault, tmp_path: Path) -> None:
    trash = tmp_path / "countries" / ".trash" / "index.md"
    trash.parent.mkdir(parents=True)
    trash.write_text("---\ntitle: Trash\n---\n\n### 2025-02-01 · z · internal\n[id:01TRASH]\n\nhidden\n", encoding="utf-8")
    (tmp_path / "countries" / "no" / "index.md").mkdir(parents=True)

    assert ".trash" not in vault.list_countries()
    assert vault.stats() == VaultStats(country_count=2, note_count=3, pinned_count=1, tag_count=3)
    assert vault.search("hidden") == []
    assert [h.note_id for h in vault.search("two")] == [vault.country_notes("fi")[0].id]
    assert vault.reindex_all() == {"ok": True, "count": 2}
