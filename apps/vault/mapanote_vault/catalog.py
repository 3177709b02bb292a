"""Read-only country metadata shipped with the package.

Loaded once per process; nothing mutates it at runtime.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from mapanote_vault.domain.exceptions import ParseError
from mapanote_vault.domain.schemas import CountryMetadata

CATALOG_PATH = Path(__file__).parent / "data" / "countries.json"


def _load(path: Path) -> Mapping[str, CountryMetadata]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid country catalog {path}: {e}", operation="load_catalog") from e
    if not isinstance(raw, list):
        raise ParseError(f"country catalog {path} must be a list", operation="load_catalog")
    entries = (CountryMetadata.model_validate(item) for item in raw)
    return MappingProxyType({c.slug: c for c in entries})


@lru_cache()
def load_catalog() -> Mapping[str, CountryMetadata]:
    return _load(CATALOG_PATH)


def lookup(slug: str) -> CountryMetadata | None:
    return load_catalog().get(slug)


def all_countries() -> list[CountryMetadata]:
    return sorted(load_catalog().values(), key=lambda c: c.slug)
