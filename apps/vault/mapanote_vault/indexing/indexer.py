from __future__ import annotations

import logging
from typing import Iterator

from mapanote_vault.domain.entities import CountryPage, NoteWithSource, VaultStats
from mapanote_vault.domain.exceptions import VaultError
from mapanote_vault.manifest import ManifestStore, stats_from_notes
from mapanote_vault.reader import VaultReader
from mapanote_vault.topics import TopicStore

logger = logging.getLogger("mapanote.index")


class Indexer:
    """Whole-vault scans. A malformed file is logged and skipped, never fatal."""

    def __init__(self, reader: VaultReader, topics: TopicStore, manifests: ManifestStore) -> None:
        self.reader = reader
        self.topics = topics
        self.manifests = manifests

    def iter_pages(self) -> Iterator[CountryPage]:
        for slug in self.reader.list_countries():
            try:
                yield self.reader.read_country(slug)
            except VaultError as e:
                logger.warning("country_skip", extra={"slug": slug, "error": str(e)})

    def iter_sources(self) -> Iterator[NoteWithSource]:
        for page in self.iter_pages():
            for note in page.notes:
                yield NoteWithSource(note=note, source_type="country", source_name=page.country.slug)

        manifest = self.topics.load_manifest()
        for topic in manifest.topics:
            for note in self.topics.iter_topic_notes(topic.id):
                yield NoteWithSource(note=note, source_type="topic", source_name=topic.title, topic_color=topic.color)

    def stats(self) -> VaultStats:
        country_count = 0
        note_count = 0
        pinned_count = 0
        tags: set[str] = set()
        for page in self.iter_pages():
            country_count += 1
            note_count += len(page.notes)
            pinned_count += sum(1 for n in page.notes if n.pinned)
            tags.update(t for n in page.notes for t in n.tags)
        return VaultStats(
            country_count=country_count,
            note_count=note_count,
            pinned_count=pinned_count,
            tag_count=len(tags),
        )

    def recent_notes(self, limit: int = 20) -> list[NoteWithSource]:
        items = sorted(self.iter_sources(), key=lambda s: s.date, reverse=True)
        return items[: max(0, limit)]

    def reindex_all(self) -> dict:
        """Rebuild ``vault.json`` entries and topic relation counts from the files on disk."""
        manifest = self.manifests.load()
        manifest.entities = {}
        count = 0
        for page in self.iter_pages():
            if page.notes:
                manifest.entities[page.country.slug] = stats_from_notes(page.notes)
            count += 1
        self.manifests.save(manifest)

        topics_manifest = self.topics.load_manifest()
        for topic in topics_manifest.topics:
            self.topics.refresh_relations(topics_manifest, topic.id)
        self.topics.manifests.save(topics_manifest)

        logger.info("reindex_all", extra={"countries": count, "topics": len(topics_manifest.topics)})
        return {"ok": True, "count": count}
