from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

import yaml

from mapanote_vault.domain.entities import Country, Note, TopicNote
from mapanote_vault.domain.exceptions import ParseError
from mapanote_vault.notes import parse_notes
from mapanote_vault.util import normalize_newlines

DELIMITER = "---"

# Keys that identify the explicit topic-note layout. title/date/tags also appear
# in country frontmatter and do not decide the format on their own.
TOPIC_NOTE_KEYS = ("id", "title", "date", "tags", "topic_id", "country_targets")
_TOPIC_IDENTITY_KEYS = frozenset({"id", "topic_id", "country_targets"})


def split_frontmatter(document: str) -> tuple[str | None, str]:
    """Return ``(frontmatter, body)``.

    A document that opens with ``---`` but never closes it has no frontmatter:
    the whole (trimmed) document is returned as body.
    """
    content = normalize_newlines(document).strip()
    if not content.startswith(DELIMITER):
        return None, content

    after_first = content[len(DELIMITER) :]
    end_pos = after_first.find("\n" + DELIMITER)
    if end_pos == -1:
        return None, content

    frontmatter = after_first[:end_pos].strip()
    body = after_first[end_pos + 1 + len(DELIMITER) :].strip()
    return frontmatter, body


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return ""
    return str(value)


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [_as_str(v) for v in value if v is not None and not isinstance(v, (dict, list))]


def decode_country_frontmatter(text: str, slug: str) -> Country:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"invalid frontmatter for {slug}: {e}", operation="read_country", identifier=slug) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(
            f"frontmatter for {slug} must be a mapping, got {type(data).__name__}",
            operation="read_country",
            identifier=slug,
        )

    return Country(
        slug=slug,
        title=_as_str(data.get("title")),
        region=_as_str(data.get("region")),
        summary=_as_str(data.get("summary")),
        aliases=_as_str_list(data.get("aliases")),
        updated_at=_as_str(data.get("updated_at")),
    )


def _yaml_scalar(value: str) -> str:
    value = " ".join(value.split())
    if not value:
        return '""'
    try:
        if yaml.safe_load(value) == value:
            return value
    except yaml.YAMLError:
        pass
    return json.dumps(value, ensure_ascii=False)


def render_country_frontmatter(country: Country) -> str:
    aliases = ", ".join(json.dumps(a, ensure_ascii=False) for a in country.aliases)
    lines = [
        DELIMITER,
        f"title: {_yaml_scalar(country.title)}",
        f"slug: {_yaml_scalar(country.slug)}",
        f"region: {_yaml_scalar(country.region)}",
        f"summary: {_yaml_scalar(country.summary)}",
        f"aliases: [{aliases}]",
        f"updated_at: {country.updated_at}",
        DELIMITER,
    ]
    return "\n".join(lines) + "\n"


def _frontmatter_fields(frontmatter: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in frontmatter.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if key in TOPIC_NOTE_KEYS and key not in fields:
            fields[key] = value.strip()
    return fields


def _bracket_list(value: str) -> list[str]:
    inner = value.strip().strip("[]")
    return [item for item in (v.strip().strip('"').strip() for v in inner.split(",")) if item]


def is_topic_note_document(document: str) -> bool:
    frontmatter, _body = split_frontmatter(document)
    if frontmatter is None:
        return False
    return bool(_TOPIC_IDENTITY_KEYS.intersection(_frontmatter_fields(frontmatter)))


def parse_topic_note(document: str) -> TopicNote:
    frontmatter, body = split_frontmatter(document)
    if frontmatter is None:
        raise ParseError("topic note has no frontmatter block", operation="parse_topic_note")

    fields = _frontmatter_fields(frontmatter)
    note_id = fields.get("id", "")
    if not note_id:
        raise ParseError("topic note frontmatter has no id", operation="parse_topic_note")

    return TopicNote(
        id=note_id,
        title=fields.get("title", ""),
        content=body,
        date=fields.get("date", ""),
        tags=_bracket_list(fields.get("tags", "")),
        topic_id=fields.get("topic_id") or None,
        country_targets=_bracket_list(fields.get("country_targets", "")),
    )


def render_topic_note(note: TopicNote) -> str:
    title = " ".join(note.title.split())
    return (
        f"{DELIMITER}\n"
        f"id: {note.id}\n"
        f"title: {title}\n"
        f"date: {note.date}\n"
        f"tags: [{', '.join(note.tags)}]\n"
        f"topic_id: {note.topic_id or ''}\n"
        f"country_targets: [{', '.join(note.country_targets)}]\n"
        f"{DELIMITER}\n\n"
        f"{note.content.strip()}\n"
    )


def parse_note_document(document: str) -> list[Note | TopicNote]:
    """Decode either note layout, chosen by the shape of the frontmatter."""
    if is_topic_note_document(document):
        return [parse_topic_note(document)]
    _frontmatter, body = split_frontmatter(document)
    return list(parse_notes(body))
