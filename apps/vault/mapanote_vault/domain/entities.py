from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Visibility(str, Enum):
    PRIVATE = "private"
    INTERNAL = "internal"
    PUBLISHABLE = "publishable"

    @classmethod
    def parse(cls, value: str | None) -> "Visibility":
        """Unknown or missing values fall back to ``INTERNAL``."""
        if isinstance(value, Visibility):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.INTERNAL


@dataclass(frozen=True)
class Country:
    slug: str
    title: str
    region: str
    summary: str
    aliases: list[str] = field(default_factory=list)
    updated_at: str = ""

    @classmethod
    def minimal(cls, slug: str) -> "Country":
        return cls(slug=slug, title=slug.upper(), region="Unknown", summary="", aliases=[], updated_at="")


@dataclass(frozen=True)
class Note:
    id: str
    date: str
    tags: list[str]
    text: str
    also: list[str] = field(default_factory=list)
    visibility: Visibility = Visibility.INTERNAL
    pinned: bool = False


@dataclass(frozen=True)
class CountryPage:
    country: Country
    notes: list[Note]
    raw_content: str

    def find_note(self, note_id: str) -> Note | None:
        for note in self.notes:
            if note.id == note_id:
                return note
        return None


@dataclass(frozen=True)
class TopicNote:
    id: str
    title: str
    content: str
    date: str
    tags: list[str] = field(default_factory=list)
    topic_id: str | None = None
    country_targets: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NoteWithSource:
    note: Note | TopicNote
    source_type: str
    source_name: str
    topic_color: str | None = None

    @property
    def date(self) -> str:
        return self.note.date


@dataclass(frozen=True)
class AddNoteRequest:
    country_slug: str
    text: str
    tags: list[str] = field(default_factory=list)
    also: list[str] = field(default_factory=list)
    visibility: Visibility = Visibility.INTERNAL
    pinned: bool = False


@dataclass(frozen=True)
class UpdateNoteRequest:
    country_slug: str
    note_id: str
    text: str
    tags: list[str] = field(default_factory=list)
    also: list[str] = field(default_factory=list)
    visibility: Visibility = Visibility.INTERNAL
    pinned: bool = False


@dataclass(frozen=True)
class SearchResult:
    note_id: str
    country_slug: str | None
    topic_id: str | None
    snippet: str
    date: str
    tags: list[str]


@dataclass(frozen=True)
class VaultStats:
    country_count: int
    note_count: int
    pinned_count: int
    tag_count: int
