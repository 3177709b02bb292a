from pathlib import Path

import pytest

from mapanote_vault.domain.entities import AddNoteRequest, Note, UpdateNoteRequest, Visibility
from mapanote_vault.domain.exceptions import NotFoundError, ParseError, UnknownEntityError
from mapanote_vault.manifest import load_manifest
from mapanote_vault.notes import render_note
from mapanote_vault.reader import VaultReader
from mapanote_vault.writer import VaultWriter


def _page(tmp_path: Path, slug: str) -> Path:
    return tmp_path / "countries" / slug / "index.md"


def test_add_note_creates_country_from_catalog(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    note = writer.add_note(AddNoteRequest(country_slug="fi", text="Elections next spring.", tags=["politics"]))

    page = VaultReader(tmp_path).read_country("fi")
    assert page.country.title == "Finland"
    assert page.country.region == "Northern Europe"
    assert page.country.aliases == ["Suomi", "Republic of Finland"]
    assert page.notes == [note]
    assert note.date == page.country.updated_at
    assert "## Overview" in page.raw_content

    entry = load_manifest(tmp_path).entities["fi"]
    assert entry.note_count == 1
    assert entry.tags == ["politics"]
    assert entry.last_updated == note.date


def test_add_note_to_unknown_country(tmp_path: Path) -> None:
    with pytest.raises(UnknownEntityError):
        VaultWriter(tmp_path).add_note(AddNoteRequest(country_slug="zz", text="nowhere"))
    assert not _page(tmp_path, "zz").exists()


def test_ensure_country_only_creates_once(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    assert writer.ensure_country("se") is True
    assert writer.ensure_country("se") is False


def test_added_tags_are_split_into_tokens(tmp_path: Path) -> None:
    note = VaultWriter(tmp_path).add_note(
        AddNoteRequest(country_slug="fi", text="x", tags=["energy policy", "grid"], also=["se", " no "])
    )
    assert note.tags == ["energy", "policy", "grid"]
    assert note.also == ["se", "no"]
    assert VaultReader(tmp_path).read_country("fi").notes == [note]


def test_delete_middle_of_three(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    writer = VaultWriter(tmp_path)
    writer.ensure_country("fi")
    dates = iter(["2025-01-01", "2025-01-02", "2025-01-03"])
    monkeypatch.setattr("mapanote_vault.writer.today_iso", lambda: next(dates, "2025-01-03"))

    first = writer.add_note(AddNoteRequest(country_slug="fi", text="first", tags=["a"]))
    middle = writer.add_note(AddNoteRequest(country_slug="fi", text="middle", tags=["b"]))
    last = writer.add_note(AddNoteRequest(country_slug="fi", text="last", tags=["c"]))

    writer.delete_note("fi", middle.id)

    contents = _page(tmp_path, "fi").read_text(encoding="utf-8")
    assert render_note(first) + "\n" + render_note(last) in contents
    assert middle.id not in contents
    assert VaultReader(tmp_path).country_notes("fi") == [last, first]

    entry = load_manifest(tmp_path).entities["fi"]
    assert entry.note_count == 2
    assert entry.tags == ["a", "c"]
    assert entry.last_updated == "2025-01-03"


def test_update_keeps_original_date(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    writer.ensure_country("fi")
    old = Note(id="01OLDNOTE", date="2020-01-01", tags=["old"], text="before")
    path = _page(tmp_path, "fi")
    path.write_text(path.read_text(encoding="utf-8") + "\n" + render_note(old), encoding="utf-8")

    updated = writer.update_note(
        UpdateNoteRequest(
            country_slug="fi",
            note_id=old.id,
            text="after",
            tags=["new"],
            visibility=Visibility.PUBLISHABLE,
            pinned=True,
        )
    )
    assert updated.date == "2020-01-01"
    assert VaultReader(tmp_path).read_country("fi").notes == [updated]


def test_update_overwrites_manifest_tags(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    first = writer.add_note(AddNoteRequest(country_slug="fi", text="one", tags=["a"]))
    writer.add_note(AddNoteRequest(country_slug="fi", text="two", tags=["b"]))
    assert load_manifest(tmp_path).entities["fi"].tags == ["a", "b"]

    writer.update_note(UpdateNoteRequest(country_slug="fi", note_id=first.id, text="one", tags=["x"]))
    entry = load_manifest(tmp_path).entities["fi"]
    assert entry.tags == ["x"]
    assert entry.note_count == 2


def test_add_then_delete_restores_file_and_manifest(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    writer.ensure_country("fi")
    before = _page(tmp_path, "fi").read_text(encoding="utf-8")

    note = writer.add_note(AddNoteRequest(country_slug="fi", text="temporary", tags=["tmp"]))
    writer.delete_note("fi", note.id)

    assert _page(tmp_path, "fi").read_text(encoding="utf-8") == before
    assert load_manifest(tmp_path).entities == {}


def test_update_and_delete_unknown_note(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    writer.add_note(AddNoteRequest(country_slug="fi", text="x"))

    with pytest.raises(NotFoundError):
        writer.update_note(UpdateNoteRequest(country_slug="fi", note_id="01MISSING", text="y"))
    with pytest.raises(NotFoundError):
        writer.delete_note("fi", "01MISSING")


def test_update_on_missing_country_page(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        VaultWriter(tmp_path).update_note(UpdateNoteRequest(country_slug="se", note_id="01A", text="y"))


def test_delete_ignores_marker_quoted_in_earlier_note(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    first = writer.add_note(AddNoteRequest(country_slug="fi", text="first"))
    target = writer.add_note(AddNoteRequest(country_slug="fi", text="target"))
    first = writer.update_note(
        UpdateNoteRequest(country_slug="fi", note_id=first.id, text=f"see [id:{target.id}] for context")
    )

    writer.delete_note("fi", target.id)
    assert VaultReader(tmp_path).read_country("fi").notes == [first]


@pytest.mark.parametrize("text", ["Intro\n### Details\nmore", "###no space"])
def test_add_rejects_text_with_header_lines(tmp_path: Path, text: str) -> None:
    with pytest.raises(ParseError):
        VaultWriter(tmp_path).add_note(AddNoteRequest(country_slug="fi", text=text))
    assert not _page(tmp_path, "fi").exists()


def test_update_rejects_text_with_header_lines(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    note = writer.add_note(AddNoteRequest(country_slug="fi", text="ok"))
    before = _page(tmp_path, "fi").read_text(encoding="utf-8")

    with pytest.raises(ParseError):
        writer.update_note(UpdateNoteRequest(country_slug="fi", note_id=note.id, text="a\n### b"))
    assert _page(tmp_path, "fi").read_text(encoding="utf-8") == before


def test_added_note_reads_back_unchanged(tmp_path: Path) -> None:
    writer = VaultWriter(tmp_path)
    note = writer.add_note(
        AddNoteRequest(
            country_slug="fi",
            text="line1\r\nline2\rline3",
            tags=["energy\npolicy", "grid\t"],
            also=["se\nno", "ee,"],
        )
    )
    assert note.text == "line1\nline2\nline3"
    assert note.tags == ["energy", "policy", "grid"]
    assert note.also == ["se", "no", "ee"]
    assert VaultReader(tmp_path).read_country("fi").notes == [note]
