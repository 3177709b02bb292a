from __future__ import annotations

from mapanote_vault.domain.entities import CountryPage, Note, Visibility
from mapanote_vault.reader import sort_newest_first


def _note_heading(note: Note) -> str:
    parts = [note.date]
    if note.tags:
        parts.append(", ".join(note.tags))
    if note.pinned:
        parts.append("pinned")
    return "### " + " · ".join(parts)


def export_country_markdown(page: CountryPage, *, include_private: bool = False) -> str:
    """Flatten a country page into a standalone Markdown document.

    The frontmatter becomes a title block, id markers are dropped and notes are
    listed newest first. Private notes are left out unless asked for.
    """
    country = page.country
    lines = [f"# {country.title or country.slug.upper()}", ""]

    meta = [p for p in (country.region, f"updated {country.updated_at}" if country.updated_at else "") if p]
    if meta:
        lines += [f"*{' · '.join(meta)}*", ""]
    if country.summary:
        lines += [country.summary, ""]
    if country.aliases:
        lines += [f"Also known as: {', '.join(country.aliases)}", ""]

    notes = [n for n in sort_newest_first(page.notes) if include_private or n.visibility != Visibility.PRIVATE]
    lines += ["## Notes", ""]
    if not notes:
        lines += ["_No notes._", ""]
    for note in notes:
        lines += [_note_heading(note), ""]
        if note.also:
            lines += [f"See also: {', '.join(note.also)}", ""]
        if note.text:
            lines += [note.text, ""]

    return "\n".join(lines).rstrip() + "\n"
