"""Single entry point the command layer talks to.

One ``Vault`` instance must own a vault directory at a time: mutations are
serialised by an in-process lock, but nothing guards against a second process
(or a second ``Vault``) writing the same files.
"""

from __future__ import annotations

import logging
import threading
from functools import wraps
from pathlib import Path
from typing import Callable, Iterable, TypeVar

from mapanote_vault import catalog
from mapanote_vault.config import Settings
from mapanote_vault.domain.entities import (
    AddNoteRequest,
    CountryPage,
    Note,
    NoteWithSource,
    SearchResult,
    TopicNote,
    UpdateNoteRequest,
    VaultStats,
)
from mapanote_vault.domain.exceptions import NotFoundError, VaultIOError
from mapanote_vault.domain.schemas import (
    CountryMetadata,
    CountryWithStats,
    Topic,
    TopicCountryRelation,
    TopicWithCountries,
    VaultManifest,
)
from mapanote_vault.export import export_country_markdown
from mapanote_vault.indexing.indexer import Indexer
from mapanote_vault.indexing.search import search_notes
from mapanote_vault.reader import VaultReader, normalize_slug
from mapanote_vault.topics import TopicStore
from mapanote_vault.writer import MetadataLookup, VaultWriter

logger = logging.getLogger("mapanote.vault")

T = TypeVar("T")


def _locked(fn: Callable[..., T]) -> Callable[..., T]:
    @wraps(fn)
    def wrapper(self: "Vault", *args, **kwargs) -> T:
        with self._lock:
            return fn(self, *args, **kwargs)

    return wrapper


class Vault:
    def __init__(
        self,
        vault_dir: Path,
        *,
        lookup: MetadataLookup = catalog.lookup,
        snippet_radius: int = 60,
        max_results: int = 50,
        recent_limit: int = 20,
    ) -> None:
        self.vault_dir = vault_dir
        self.reader = VaultReader(vault_dir)
        self.writer = VaultWriter(vault_dir, lookup=lookup)
        self.topics = TopicStore(vault_dir)
        self.indexer = Indexer(self.reader, self.topics, self.writer.manifests)
        self.snippet_radius = snippet_radius
        self.max_results = max_results
        self.recent_limit = recent_limit
        self._lookup = lookup
        self._lock = threading.RLock()

    @classmethod
    def open(cls, vault_dir: Path, *, create: bool = False, **kwargs) -> "Vault":
        """Verify (or with ``create`` initialise) a vault directory and return a handle on it."""
        vault_dir = Path(vault_dir)
        if create:
            try:
                vault_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise VaultIOError(f"failed to create vault {vault_dir}: {e}", operation="open_vault", identifier=str(vault_dir)) from e

        vault = cls(vault_dir, **kwargs)
        manifest = vault.reader.load_config()
        vault.topics.load_manifest()
        logger.info("vault_open", extra={"path": str(vault_dir), "version": manifest.version, "entities": len(manifest.entities)})
        return vault

    @classmethod
    def from_settings(cls, settings: Settings, *, create: bool = True) -> "Vault":
        return cls.open(
            settings.vault_dir,
            create=create,
            snippet_radius=settings.search_snippet_radius,
            max_results=settings.search_max_results,
            recent_limit=settings.recent_limit,
        )

    # Country pages

    def list_countries(self) -> list[str]:
        return self.reader.list_countries()

    def read_country(self, slug: str) -> CountryPage:
        return self.reader.read_country(slug)

    def country_notes(self, slug: str) -> list[Note]:
        return self.reader.country_notes(slug)

    @_locked
    def ensure_country(self, slug: str) -> bool:
        return self.writer.ensure_country(normalize_slug(slug))

    @_locked
    def add_note(self, request: AddNoteRequest) -> Note:
        return self.writer.add_note(request)

    @_locked
    def update_note(self, request: UpdateNoteRequest) -> Note:
        return self.writer.update_note(request)

    @_locked
    def delete_note(self, country_slug: str, note_id: str) -> None:
        self.writer.delete_note(country_slug, note_id)

    # Manifest

    def load_manifest(self) -> VaultManifest:
        return self.writer.manifests.load()

    @_locked
    def save_manifest(self, manifest: VaultManifest) -> None:
        self.writer.manifests.save(manifest)

    @_locked
    def reindex_all(self) -> dict:
        return self.indexer.reindex_all()

    # Topics

    def list_topics(self) -> list[TopicWithCountries]:
        return self.topics.list_topics()

    def get_topic(self, topic_id: str) -> TopicWithCountries:
        return self.topics.get_topic(topic_id)

    @_locked
    def create_topic(
        self,
        title: str,
        summary: str | None = None,
        color: str | None = None,
        country_slugs: Iterable[str] = (),
    ) -> Topic:
        return self.topics.create_topic(title, summary=summary, color=color, country_slugs=country_slugs)

    @_locked
    def update_topic(
        self,
        topic_id: str,
        title: str,
        summary: str | None = None,
        color: str | None = None,
        pinned: bool = False,
    ) -> Topic:
        return self.topics.update_topic(topic_id, title, summary=summary, color=color, pinned=pinned)

    @_locked
    def delete_topic(self, topic_id: str) -> None:
        self.topics.delete_topic(topic_id)

    @_locked
    def add_country_to_topic(self, topic_id: str, country_slug: str) -> TopicCountryRelation:
        return self.topics.add_country_to_topic(topic_id, country_slug)

    @_locked
    def remove_country_from_topic(self, topic_id: str, country_slug: str) -> None:
        self.topics.remove_country_from_topic(topic_id, country_slug)

    def topics_for_country(self, country_slug: str) -> list[Topic]:
        return self.topics.topics_for_country(country_slug)

    @_locked
    def add_topic_note(
        self,
        topic_id: str,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        country_targets: Iterable[str] = (),
    ) -> TopicNote:
        return self.topics.add_topic_note(topic_id, title, content, tags=tags, country_targets=country_targets)

    def topic_notes(self, topic_id: str) -> list[TopicNote]:
        return self.topics.topic_notes(topic_id)

    @_locked
    def update_topic_note(
        self,
        topic_id: str,
        note_id: str,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        country_targets: Iterable[str] = (),
    ) -> TopicNote:
        return self.topics.update_topic_note(topic_id, note_id, title, content, tags=tags, country_targets=country_targets)

    @_locked
    def delete_topic_note(self, topic_id: str, note_id: str) -> bool:
        return self.topics.delete_topic_note(topic_id, note_id)

    def country_notes_with_topics(self, country_slug: str) -> list[NoteWithSource]:
        return self.topics.country_notes_with_topics(country_slug)

    # Scans

    def search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        results = search_notes(
            self.indexer.iter_sources(),
            query,
            limit=self.max_results if limit is None else limit,
            radius=self.snippet_radius,
        )
        logger.debug("search", extra={"query": query, "hits": len(results)})
        return results

    def stats(self) -> VaultStats:
        return self.indexer.stats()

    def recent_notes(self, limit: int | None = None) -> list[NoteWithSource]:
        return self.indexer.recent_notes(self.recent_limit if limit is None else limit)

    def export_country_markdown(self, slug: str, *, include_private: bool = False) -> str:
        return export_country_markdown(self.reader.read_country(slug), include_private=include_private)

    # Catalog

    def lookup(self, slug: str) -> CountryMetadata | None:
        return self._lookup(slug)

    def get_country_metadata(self, slug: str) -> CountryMetadata:
        meta = self._lookup(slug)
        if meta is None:
            raise NotFoundError(f"country {slug} not found", operation="get_country_metadata", identifier=slug)
        return meta

    def all_countries(self) -> list[CountryMetadata]:
        return catalog.all_countries()

    def countries_with_stats(self) -> list[CountryWithStats]:
        """Catalog countries that have notes, joined with their manifest stats."""
        manifest = self.load_manifest()
        out: list[CountryWithStats] = []
        for slug, entry in sorted(manifest.entities.items()):
            meta = self._lookup(slug)
            if meta is None:
                continue
            out.append(
                CountryWithStats(
                    **meta.model_dump(),
                    note_count=entry.note_count,
                    last_updated=entry.last_updated,
                    tags=list(entry.tags),
                )
            )
        return out
