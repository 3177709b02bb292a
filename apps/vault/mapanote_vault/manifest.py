from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from mapanote_vault.domain.entities import Note
from mapanote_vault.domain.exceptions import ParseError, VaultIOError
from mapanote_vault.domain.schemas import CountryStats, TopicsManifest, VaultManifest
from mapanote_vault.util import atomic_write_json

logger = logging.getLogger("mapanote.vault")

VAULT_MANIFEST_FILENAME = "vault.json"
TOPICS_MANIFEST_FILENAME = "topics.json"

M = TypeVar("M", bound=BaseModel)


class _JsonManifestStore(Generic[M]):
    filename: str
    model: type[M]

    def __init__(self, vault_dir: Path) -> None:
        self.vault_dir = vault_dir
        self.path = vault_dir / self.filename

    def load(self) -> M:
        """Load the manifest, creating and persisting an empty one when missing."""
        if not self.path.exists():
            manifest = self.model()
            self.save(manifest)
            logger.info("manifest_create", extra={"path": str(self.path)})
            return manifest

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise VaultIOError(f"failed to read {self.filename}: {e}", operation="load_manifest", identifier=self.filename) from e

        try:
            return self.model.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ParseError(f"failed to parse {self.filename}: {e}", operation="load_manifest", identifier=self.filename) from e

    def save(self, manifest: M) -> None:
        try:
            atomic_write_json(self.path, manifest.model_dump(mode="json"))
        except OSError as e:
            raise VaultIOError(f"failed to write {self.filename}: {e}", operation="save_manifest", identifier=self.filename) from e


class ManifestStore(_JsonManifestStore[VaultManifest]):
    filename = VAULT_MANIFEST_FILENAME
    model = VaultManifest


class TopicsManifestStore(_JsonManifestStore[TopicsManifest]):
    filename = TOPICS_MANIFEST_FILENAME
    model = TopicsManifest


def load_manifest(vault_dir: Path) -> VaultManifest:
    return ManifestStore(vault_dir).load()


def save_manifest(vault_dir: Path, manifest: VaultManifest) -> None:
    ManifestStore(vault_dir).save(manifest)


def _merge_tags(existing: Iterable[str], new: Iterable[str]) -> list[str]:
    return list(dict.fromkeys([*existing, *new]))


def _latest(a: str | None, b: str | None) -> str | None:
    if not a:
        return b
    if not b:
        return a
    return max(a, b)


def record_note_added(manifest: VaultManifest, slug: str, note: Note) -> CountryStats:
    entry = manifest.entities.setdefault(slug, CountryStats())
    entry.note_count += 1
    entry.tags = _merge_tags(entry.tags, note.tags)
    entry.last_updated = _latest(entry.last_updated, note.date)
    return entry


def record_note_updated(manifest: VaultManifest, slug: str, note: Note, notes: list[Note]) -> CountryStats:
    """Overwrite the entry's tags with the updated note's tags.

    Not a union across the country's notes; existing vaults depend on this
    behaviour, so it is kept as is.
    """
    entry = manifest.entities.get(slug)
    if entry is None:
        entry = manifest.entities[slug] = CountryStats(
            note_count=len(notes),
            last_updated=max((n.date for n in notes), default=None),
        )
    entry.tags = list(note.tags)
    return entry


def record_note_deleted(manifest: VaultManifest, slug: str, remaining: list[Note]) -> CountryStats | None:
    """Decrement the count; drop the entry at zero, else recompute tags/last_updated."""
    entry = manifest.entities.get(slug)
    if entry is None:
        return None
    entry.note_count = max(0, entry.note_count - 1)
    if entry.note_count == 0:
        manifest.entities.pop(slug, None)
        return None
    entry.tags = _merge_tags([], (t for n in remaining for t in n.tags))
    entry.last_updated = max((n.date for n in remaining), default=None)
    return entry


def stats_from_notes(notes: list[Note]) -> CountryStats:
    return CountryStats(
        note_count=len(notes),
        last_updated=max((n.date for n in notes), default=None),
        tags=_merge_tags([], (t for n in notes for t in n.tags)),
    )
