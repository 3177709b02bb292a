from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from mapanote_vault import catalog
from mapanote_vault.domain.entities import AddNoteRequest, Country, Note, UpdateNoteRequest, Visibility
from mapanote_vault.domain.exceptions import NotFoundError, ParseError, UnknownEntityError, VaultIOError
from mapanote_vault.domain.schemas import CountryMetadata
from mapanote_vault.manifest import ManifestStore, record_note_added, record_note_deleted, record_note_updated
from mapanote_vault.notes import render_note, splice_note, split_tags
from mapanote_vault.parsing import render_country_frontmatter
from mapanote_vault.reader import VaultReader, normalize_slug, parse_country_page, read_text
from mapanote_vault.util import atomic_write_text, new_ulid, normalize_newlines, today_iso

logger = logging.getLogger("mapanote.vault")

MetadataLookup = Callable[[str], "CountryMetadata | None"]


def clean_tags(tags: Iterable[str]) -> list[str]:
    """Flatten to tokens the header grammar reads back unchanged."""
    return [t for raw in tags for t in split_tags(" ".join(raw.replace("·", " ").split()))]


def clean_refs(refs: Iterable[str]) -> list[str]:
    return [r for raw in refs for r in raw.replace("·", " ").replace(",", " ").split()]


def clean_text(text: str, *, operation: str, identifier: str) -> str:
    """Normalise newlines and refuse text the note grammar would cut short."""
    text = normalize_newlines(text).strip()
    for line in text.split("\n"):
        if line.startswith("###"):
            raise ParseError(
                f"note text may not contain a line starting with '###': {line!r}",
                operation=operation,
                identifier=identifier,
            )
    return text


def render_country_stub(meta: CountryMetadata, today: str) -> str:
    country = Country(
        slug=meta.slug,
        title=meta.name,
        region=meta.subregion or meta.region,
        summary=meta.summary,
        aliases=list(meta.aliases),
        updated_at=today,
    )
    return (
        render_country_frontmatter(country)
        + f"\n## Overview\n\n{meta.summary}\n\n## Notes\n\n<!-- Add your first note below -->\n"
    )


class VaultWriter:
    def __init__(self, vault_dir: Path, lookup: MetadataLookup = catalog.lookup) -> None:
        self.vault_dir = vault_dir
        self.reader = VaultReader(vault_dir)
        self.manifests = ManifestStore(vault_dir)
        self._lookup = lookup

    def _write(self, path: Path, content: str, *, operation: str, identifier: str) -> None:
        try:
            atomic_write_text(path, content)
        except OSError as e:
            raise VaultIOError(f"failed to write {identifier}: {e}", operation=operation, identifier=identifier) from e

    def ensure_country(self, slug: str) -> bool:
        """Create the country's page from catalog metadata if it has none yet."""
        path = self.reader.country_path(slug)
        if path.exists():
            return False

        meta = self._lookup(slug)
        if meta is None:
            raise UnknownEntityError(f"unknown country: {slug}", operation="add_note", identifier=slug)

        self._write(path, render_country_stub(meta, today_iso()), operation="ensure_country", identifier=slug)
        logger.info("country_create", extra={"slug": slug, "path": str(path)})
        return True

    def add_note(self, request: AddNoteRequest) -> Note:
        slug = normalize_slug(request.country_slug)
        text = clean_text(request.text, operation="add_note", identifier=slug)
        self.ensure_country(slug)
        path = self.reader.country_path(slug)
        contents = read_text(path, operation="add_note", identifier=slug)

        note = Note(
            id=new_ulid(),
            date=today_iso(),
            tags=clean_tags(request.tags),
            text=text,
            also=clean_refs(request.also),
            visibility=Visibility.parse(request.visibility),
            pinned=bool(request.pinned),
        )

        if contents and not contents.endswith("\n"):
            contents += "\n"
        contents += "\n" + render_note(note)
        self._write(path, contents, operation="add_note", identifier=slug)

        manifest = self.manifests.load()
        record_note_added(manifest, slug, note)
        self.manifests.save(manifest)

        logger.info("note_add", extra={"slug": slug, "id": note.id, "tags": note.tags})
        return note

    def update_note(self, request: UpdateNoteRequest) -> Note:
        slug = normalize_slug(request.country_slug)
        path = self.reader.country_path(slug)
        contents = read_text(path, operation="update_note", identifier=slug)
        text = clean_text(request.text, operation="update_note", identifier=request.note_id)
        page = parse_country_page(contents, slug)

        existing = page.find_note(request.note_id)
        if existing is None:
            raise NotFoundError(
                f"note {request.note_id} not found in {slug}",
                operation="update_note",
                identifier=request.note_id,
            )

        note = Note(
            id=existing.id,
            date=existing.date,
            tags=clean_tags(request.tags),
            text=text,
            also=clean_refs(request.also),
            visibility=Visibility.parse(request.visibility),
            pinned=bool(request.pinned),
        )
        self._write(path, splice_note(contents, note.id, render_note(note)), operation="update_note", identifier=slug)

        manifest = self.manifests.load()
        record_note_updated(manifest, slug, note, page.notes)
        self.manifests.save(manifest)

        logger.info("note_update", extra={"slug": slug, "id": note.id})
        return note

    def delete_note(self, country_slug: str, note_id: str) -> None:
        slug = normalize_slug(country_slug)
        path = self.reader.country_path(slug)
        contents = read_text(path, operation="delete_note", identifier=slug)

        new_contents = splice_note(contents, note_id, None)
        self._write(path, new_contents, operation="delete_note", identifier=slug)

        manifest = self.manifests.load()
        record_note_deleted(manifest, slug, parse_country_page(new_contents, slug).notes)
        self.manifests.save(manifest)

        logger.info("note_delete", extra={"slug": slug, "id": note_id})
