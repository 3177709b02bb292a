"""Cross-country topics: ``topics.json`` plus one Markdown file per topic note.

Layout::

    topics.json
    topics/<topic_id>/<note_id>.md

Relations link a topic to the countries it covers. A topic note additionally
lists ``country_targets``; only targeted countries see the note in their
combined timeline, even when the topic is related to more countries.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

from mapanote_vault.domain.entities import NoteWithSource, TopicNote
from mapanote_vault.domain.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    ParseError,
    UnknownEntityError,
    VaultIOError,
)
from mapanote_vault.domain.schemas import Topic, TopicCountryRelation, TopicsManifest, TopicWithCountries
from mapanote_vault.manifest import TopicsManifestStore
from mapanote_vault.parsing import parse_note_document, render_topic_note
from mapanote_vault.reader import VaultReader, normalize_slug, read_text
from mapanote_vault.util import atomic_write_text, new_ulid, rfc3339_now, today_iso

logger = logging.getLogger("mapanote.topics")

TOPICS_DIR = "topics"
NOTE_SUFFIX = ".md"


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(normalize_slug(v) for v in values))


def _with_countries(manifest: TopicsManifest, topic: Topic) -> TopicWithCountries:
    relations = manifest.relations_for_topic(topic.id)
    return TopicWithCountries(
        topic=topic,
        countries=[r.country_slug for r in relations],
        note_count=sum(r.note_count for r in relations),
    )


class TopicStore:
    def __init__(self, vault_dir: Path) -> None:
        self.vault_dir = vault_dir
        self.topics_dir = vault_dir / TOPICS_DIR
        self.manifests = TopicsManifestStore(vault_dir)
        self.reader = VaultReader(vault_dir)

    def load_manifest(self) -> TopicsManifest:
        return self.manifests.load()

    def _require_topic(self, manifest: TopicsManifest, topic_id: str, operation: str) -> Topic:
        topic = manifest.find_topic(topic_id)
        if topic is None:
            raise NotFoundError(f"topic {topic_id} not found", operation=operation, identifier=topic_id)
        return topic

    # Topics

    def list_topics(self) -> list[TopicWithCountries]:
        manifest = self.manifests.load()
        return [_with_countries(manifest, t) for t in manifest.topics]

    def get_topic(self, topic_id: str) -> TopicWithCountries:
        manifest = self.manifests.load()
        return _with_countries(manifest, self._require_topic(manifest, topic_id, "get_topic"))

    def create_topic(
        self,
        title: str,
        summary: str | None = None,
        color: str | None = None,
        country_slugs: Iterable[str] = (),
    ) -> Topic:
        manifest = self.manifests.load()
        now = rfc3339_now()
        topic = Topic(id=new_ulid(), title=title, summary=summary, color=color, created_at=now, updated_at=now)
        manifest.topics.append(topic)
        for slug in _unique(country_slugs):
            manifest.relations.append(TopicCountryRelation(topic_id=topic.id, country_slug=slug))
        self.manifests.save(manifest)

        logger.info("topic_create", extra={"topic_id": topic.id, "countries": len(manifest.relations_for_topic(topic.id))})
        return topic

    def update_topic(
        self,
        topic_id: str,
        title: str,
        summary: str | None = None,
        color: str | None = None,
        pinned: bool = False,
    ) -> Topic:
        manifest = self.manifests.load()
        topic = self._require_topic(manifest, topic_id, "update_topic")
        topic.title = title
        topic.summary = summary
        topic.color = color
        topic.pinned = pinned
        topic.updated_at = rfc3339_now()
        self.manifests.save(manifest)

        logger.info("topic_update", extra={"topic_id": topic_id})
        return topic

    def delete_topic(self, topic_id: str) -> None:
        """Drop the topic and its relations. Note files on disk are left in place."""
        manifest = self.manifests.load()
        manifest.topics = [t for t in manifest.topics if t.id != topic_id]
        manifest.relations = [r for r in manifest.relations if r.topic_id != topic_id]
        self.manifests.save(manifest)
        logger.info("topic_delete", extra={"topic_id": topic_id})

    # Relations

    def add_country_to_topic(self, topic_id: str, country_slug: str) -> TopicCountryRelation:
        slug = normalize_slug(country_slug)
        manifest = self.manifests.load()
        if manifest.find_relation(topic_id, slug) is not None:
            raise AlreadyExistsError(
                f"country {slug} already in topic {topic_id}",
                operation="add_country_to_topic",
                identifier=slug,
            )

        relation = TopicCountryRelation(topic_id=topic_id, country_slug=slug)
        manifest.relations.append(relation)
        self.refresh_relations(manifest, topic_id)
        self.manifests.save(manifest)

        logger.info("relation_add", extra={"topic_id": topic_id, "slug": slug})
        return relation

    def remove_country_from_topic(self, topic_id: str, country_slug: str) -> None:
        manifest = self.manifests.load()
        manifest.relations = [
            r for r in manifest.relations if not (r.topic_id == topic_id and r.country_slug == country_slug)
        ]
        self.manifests.save(manifest)
        logger.info("relation_remove", extra={"topic_id": topic_id, "slug": country_slug})

    def topics_for_country(self, country_slug: str) -> list[Topic]:
        manifest = self.manifests.load()
        topic_ids = {r.topic_id for r in manifest.relations if r.country_slug == country_slug}
        return [t for t in manifest.topics if t.id in topic_ids]

    # Topic notes

    def note_path(self, topic_id: str, note_id: str) -> Path:
        return self.topics_dir / normalize_slug(topic_id) / f"{normalize_slug(note_id)}{NOTE_SUFFIX}"

    def _write(self, path: Path, note: TopicNote, operation: str) -> None:
        try:
            atomic_write_text(path, render_topic_note(note))
        except OSError as e:
            raise VaultIOError(f"failed to write {path.name}: {e}", operation=operation, identifier=note.id) from e

    def iter_topic_notes(self, topic_id: str) -> Iterator[TopicNote]:
        """Yield the topic's notes in file name order, skipping unreadable files."""
        topic_dir = self.topics_dir / normalize_slug(topic_id)
        if not topic_dir.is_dir():
            return
        try:
            paths = sorted(p for p in topic_dir.iterdir() if p.suffix == NOTE_SUFFIX and p.is_file())
        except OSError as e:
            raise VaultIOError(f"failed to list topic {topic_id}: {e}", operation="topic_notes", identifier=topic_id) from e

        for path in paths:
            try:
                parsed = parse_note_document(read_text(path, operation="topic_notes", identifier=path.stem))
            except (ParseError, VaultIOError) as e:
                logger.warning("topic_note_skip", extra={"path": str(path), "error": str(e)})
                continue
            for note in parsed:
                if isinstance(note, TopicNote):
                    yield note

    def topic_notes(self, topic_id: str) -> list[TopicNote]:
        return sorted(self.iter_topic_notes(topic_id), key=lambda n: n.date, reverse=True)

    def read_topic_note(self, topic_id: str, note_id: str) -> TopicNote:
        path = self.note_path(topic_id, note_id)
        for note in parse_note_document(read_text(path, operation="read_topic_note", identifier=note_id)):
            if isinstance(note, TopicNote):
                return note
        raise ParseError(f"{path.name} is not a topic note", operation="read_topic_note", identifier=note_id)

    def add_topic_note(
        self,
        topic_id: str,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        country_targets: Iterable[str] = (),
    ) -> TopicNote:
        manifest = self.manifests.load()
        if manifest.find_topic(topic_id) is None:
            raise UnknownEntityError(f"unknown topic: {topic_id}", operation="add_topic_note", identifier=topic_id)

        note = TopicNote(
            id=new_ulid(),
            title=title,
            content=content.strip(),
            date=today_iso(),
            tags=list(tags),
            topic_id=topic_id,
            country_targets=_unique(country_targets),
        )
        self._write(self.note_path(topic_id, note.id), note, "add_topic_note")

        self.refresh_relations(manifest, topic_id)
        self.manifests.save(manifest)

        logger.info("topic_note_add", extra={"topic_id": topic_id, "id": note.id, "targets": note.country_targets})
        return note

    def update_topic_note(
        self,
        topic_id: str,
        note_id: str,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        country_targets: Iterable[str] = (),
    ) -> TopicNote:
        existing = self.read_topic_note(topic_id, note_id)
        note = TopicNote(
            id=existing.id,
            title=title,
            content=content.strip(),
            date=existing.date,
            tags=list(tags),
            topic_id=topic_id,
            country_targets=_unique(country_targets),
        )
        self._write(self.note_path(topic_id, note_id), note, "update_topic_note")

        manifest = self.manifests.load()
        self.refresh_relations(manifest, topic_id)
        self.manifests.save(manifest)

        logger.info("topic_note_update", extra={"topic_id": topic_id, "id": note_id})
        return note

    def delete_topic_note(self, topic_id: str, note_id: str) -> bool:
        """Remove the note file; returns False when there was nothing to remove."""
        path = self.note_path(topic_id, note_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise VaultIOError(f"failed to delete {path.name}: {e}", operation="delete_topic_note", identifier=note_id) from e

        manifest = self.manifests.load()
        self.refresh_relations(manifest, topic_id)
        self.manifests.save(manifest)

        logger.info("topic_note_delete", extra={"topic_id": topic_id, "id": note_id})
        return True

    def refresh_relations(self, manifest: TopicsManifest, topic_id: str) -> None:
        """Recount ``note_count``/``last_updated`` on the topic's relations from its note files."""
        relations = manifest.relations_for_topic(topic_id)
        if not relations:
            return
        notes = list(self.iter_topic_notes(topic_id))
        for relation in relations:
            targeted = [n for n in notes if relation.country_slug in n.country_targets]
            relation.note_count = len(targeted)
            relation.last_updated = max((n.date for n in targeted), default=None)

    # Combined timeline

    def country_notes_with_topics(self, country_slug: str) -> list[NoteWithSource]:
        """Country notes plus the notes of related topics that target this country, newest first."""
        slug = normalize_slug(country_slug)
        combined = [
            NoteWithSource(note=n, source_type="country", source_name=slug) for n in self.reader.country_notes(slug)
        ]

        manifest = self.manifests.load()
        for topic_id in dict.fromkeys(r.topic_id for r in manifest.relations if r.country_slug == slug):
            topic = manifest.find_topic(topic_id)
            name = topic.title if topic is not None else topic_id
            color = topic.color if topic is not None else None
            for note in self.iter_topic_notes(topic_id):
                if slug in note.country_targets:
                    combined.append(NoteWithSource(note=note, source_type="topic", source_name=name, topic_color=color))

        combined.sort(key=lambda s: s.date, reverse=True)
        return combined
