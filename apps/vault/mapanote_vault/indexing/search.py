from __future__ import annotations

from typing import Iterable

from mapanote_vault.domain.entities import Note, NoteWithSource, SearchResult, TopicNote

ELLIPSIS = "..."


def note_text(note: Note | TopicNote) -> str:
    if isinstance(note, TopicNote):
        return f"{note.title}\n\n{note.content}" if note.title else note.content
    return note.text


def find_ignore_case(text: str, query: str) -> tuple[int, int] | None:
    """Return the ``(start, end)`` span in ``text`` of the first case-insensitive match.

    Lower-casing can lengthen a character ("İ" becomes two), so offsets found in
    the lowered text are mapped back to ``text``.
    """
    needle = query.lower()
    if not needle:
        return None
    lowered: list[str] = []
    origin: list[int] = []
    for i, ch in enumerate(text):
        low = ch.lower()
        lowered.append(low)
        origin.extend([i] * len(low))
    pos = "".join(lowered).find(needle)
    if pos == -1:
        return None
    return origin[pos], origin[pos + len(needle) - 1] + 1


def make_snippet(text: str, query: str, radius: int = 60) -> str:
    """Cut ``text`` to ``radius`` characters either side of the first match of ``query``.

    Falls back to the head of the text when it does not contain the query
    (a tag-only match). Newlines are flattened to spaces.
    """
    flat = " ".join(text.split())
    span = find_ignore_case(flat, query)
    if span is None:
        start, end = 0, 2 * radius
    else:
        start = max(0, span[0] - radius)
        end = span[1] + radius

    snippet = flat[start:end].strip()
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(flat):
        snippet += ELLIPSIS
    return snippet


def matches(note: Note | TopicNote, needle: str) -> bool:
    needle = needle.lower()
    if needle in note_text(note).lower():
        return True
    return any(needle in tag.lower() for tag in note.tags)


def search_notes(
    sources: Iterable[NoteWithSource],
    query: str,
    *,
    limit: int = 50,
    radius: int = 60,
) -> list[SearchResult]:
    """Case-insensitive substring search over note text and tags, newest first."""
    needle = query.strip()
    if not needle or limit <= 0:
        return []

    hits: list[SearchResult] = []
    for source in sources:
        note = source.note
        if not matches(note, needle):
            continue
        is_topic = isinstance(note, TopicNote)
        hits.append(
            SearchResult(
                note_id=note.id,
                country_slug=None if is_topic else source.source_name,
                topic_id=note.topic_id if is_topic else None,
                snippet=make_snippet(note_text(note), needle, radius),
                date=note.date,
                tags=list(note.tags),
            )
        )

    hits.sort(key=lambda h: h.date, reverse=True)
    return hits[:limit]
