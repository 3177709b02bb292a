"""Compact note-block format used inside ``countries/<slug>/index.md``.

Grammar (one note)::

    header   := "###" WS date WS? "·" WS? tags WS? ( "·" WS? meta )? WS? EOL
    date     := DIGIT{4} "-" DIGIT{2} "-" DIGIT{2}
    tags     := token ( ("," | " ")+ token )*
    meta     := segment ( "·" segment )*
    segment  := "also:" slug ("," slug)*
              | "private" | "internal" | "publishable"
              | "pinned"
              | <anything else, ignored>
    marker   := "[id:" [A-Z0-9]+ "]"
    body     := every line after the header up to the next line starting
                with "###", or end of text

Example::

    ### 2025-10-07 · politics, current · also:se,no · publishable · pinned
    [id:01J84N8P3E4]

    Parliamentary debate over defense spending continues.

The body is trimmed and the first marker is cut out of it to give ``text``.
Everything here works on plain strings; file I/O lives in the reader/writer.
"""

from __future__ import annotations

import re
from typing import Iterator

from mapanote_vault.domain.entities import Note, Visibility
from mapanote_vault.domain.exceptions import NotFoundError
from mapanote_vault.util import new_ulid, normalize_newlines

SEPARATOR = "·"

_HEADER_RE = re.compile(r"^###\s+(\d{4}-\d{2}-\d{2})\s*·\s*(.*?)\s*(?:·\s*(.*?))?\s*$")
_ID_RE = re.compile(r"\[id:([A-Z0-9]+)\]")
_TAG_SPLIT_RE = re.compile(r"[, ]")


def id_marker(note_id: str) -> str:
    return f"[id:{note_id}]"


def split_tags(raw: str) -> list[str]:
    return [t for t in (p.strip() for p in _TAG_SPLIT_RE.split(raw)) if t]


def _parse_metadata(raw: str) -> tuple[list[str], Visibility, bool]:
    also: list[str] = []
    visibility = Visibility.INTERNAL
    pinned = False
    for part in raw.split(SEPARATOR):
        part = part.strip()
        if part.startswith("also:"):
            also = [s for s in (v.strip() for v in part[len("also:") :].split(",")) if s]
        elif part in ("private", "publishable"):
            visibility = Visibility(part)
        elif part == "pinned":
            pinned = True
    return also, visibility, pinned


def iter_notes(body: str) -> Iterator[Note]:
    # Only "\n" ends a line; str.splitlines() also breaks on \u2028, \x0c and others.
    lines = normalize_newlines(body).split("\n")
    i = 0
    while i < len(lines):
        m = _HEADER_RE.match(lines[i])
        if not m:
            i += 1
            continue

        note_date, tags_raw, meta_raw = m.group(1), m.group(2) or "", m.group(3) or ""
        also, visibility, pinned = _parse_metadata(meta_raw)

        i += 1
        body_lines: list[str] = []
        while i < len(lines) and not lines[i].startswith("###"):
            body_lines.append(lines[i])
            i += 1
        text = "\n".join(body_lines).strip()

        id_match = _ID_RE.search(text)
        # Well-formed files always carry a marker.
        note_id = id_match.group(1) if id_match else new_ulid()
        text = _ID_RE.sub("", text, count=1).strip()

        yield Note(
            id=note_id,
            date=note_date,
            tags=split_tags(tags_raw),
            text=text,
            also=also,
            visibility=visibility,
            pinned=pinned,
        )


def parse_notes(body: str) -> list[Note]:
    return list(iter_notes(body))


def render_header(note: Note) -> str:
    meta: list[str] = []
    if note.also:
        meta.append("also:" + ",".join(note.also))
    meta.append(Visibility.parse(note.visibility).value)
    if note.pinned:
        meta.append("pinned")
    return f"### {note.date} {SEPARATOR} {', '.join(note.tags)} {SEPARATOR} {f' {SEPARATOR} '.join(meta)}"


def render_note(note: Note) -> str:
    return f"{render_header(note)}\n{id_marker(note.id)}\n\n{note.text.strip()}\n"


def note_span(file_text: str, note_id: str) -> tuple[int, int]:
    """Return ``(start, end)`` of the note carrying ``[id:<note_id>]``.

    Only a marker on its own line directly below a header line counts; the same
    marker quoted inside another note's text is ignored. ``start`` is the
    header's offset; ``end`` is the offset of the newline that precedes the
    next ``###`` line, or ``len(file_text)``.
    """
    marker_re = re.compile(rf"^{re.escape(id_marker(note_id))}[ \t\r]*$", re.M)
    for m in marker_re.finditer(file_text):
        if m.start() == 0:
            continue
        header_start = file_text.rfind("\n", 0, m.start() - 1) + 1
        if not _HEADER_RE.match(file_text[header_start : m.start() - 1]):
            continue
        end = file_text.find("\n###", m.end())
        if end == -1:
            end = len(file_text)
        return header_start, end

    raise NotFoundError(f"note {note_id} not found", operation="splice_note", identifier=note_id)


def splice_note(file_text: str, note_id: str, replacement: str | None) -> str:
    """Replace (or with ``None`` remove) one note's span, leaving every other byte alone."""
    start, end = note_span(file_text, note_id)

    if replacement is not None:
        if not replacement.endswith("\n"):
            replacement += "\n"
        return file_text[:start] + replacement + file_text[end:]

    if end < len(file_text):
        return file_text[:start] + file_text[end + 1 :]
    # Last note: drop the blank line that separated it from its predecessor.
    if start > 0 and file_text[start - 1] == "\n":
        start -= 1
    return file_text[:start]
