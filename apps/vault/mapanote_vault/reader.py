from __future__ import annotations

from pathlib import Path, PurePosixPath

from mapanote_vault.domain.entities import Country, CountryPage, Note
from mapanote_vault.domain.exceptions import NotFoundError, ParseError, PathError, VaultIOError
from mapanote_vault.manifest import ManifestStore
from mapanote_vault.domain.schemas import VaultManifest
from mapanote_vault.notes import parse_notes
from mapanote_vault.parsing import decode_country_frontmatter, split_frontmatter

COUNTRIES_DIR = "countries"
PAGE_FILENAME = "index.md"


def normalize_slug(slug: str) -> str:
    """Validate a slug (or topic/note id) used as a single path component."""
    if "\x00" in slug:
        raise PathError("slug_contains_nul", operation="normalize_slug", identifier=slug)
    cleaned = slug.strip()
    if not cleaned:
        raise PathError("slug_empty", operation="normalize_slug", identifier=slug)
    if "/" in cleaned or "\\" in cleaned:
        raise PathError("slug_contains_separator", operation="normalize_slug", identifier=slug)
    p = PurePosixPath(cleaned)
    if cleaned in (".", "..") or p.name != cleaned or cleaned.startswith("."):
        raise PathError("slug_reserved", operation="normalize_slug", identifier=slug)
    return cleaned


def read_text(path: Path, *, operation: str, identifier: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFoundError(f"{identifier} not found", operation=operation, identifier=identifier) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"{identifier} is not valid UTF-8", operation=operation, identifier=identifier) from e
    except OSError as e:
        raise VaultIOError(f"failed to read {identifier}: {e}", operation=operation, identifier=identifier) from e


def parse_country_page(contents: str, slug: str) -> CountryPage:
    frontmatter, body = split_frontmatter(contents)
    if frontmatter is not None:
        country = decode_country_frontmatter(frontmatter, slug)
    else:
        country = Country.minimal(slug)
    return CountryPage(country=country, notes=parse_notes(body), raw_content=body)


def _is_slug(name: str) -> bool:
    try:
        return normalize_slug(name) == name
    except PathError:
        return False


def sort_newest_first(notes: list[Note]) -> list[Note]:
    return sorted(notes, key=lambda n: n.date, reverse=True)


class VaultReader:
    def __init__(self, vault_dir: Path) -> None:
        self.vault_dir = vault_dir
        self.countries_dir = vault_dir / COUNTRIES_DIR

    def country_path(self, slug: str) -> Path:
        return self.countries_dir / normalize_slug(slug) / PAGE_FILENAME

    def load_config(self) -> VaultManifest:
        if not self.vault_dir.is_dir():
            raise NotFoundError(f"vault {self.vault_dir} not found", operation="open_vault", identifier=str(self.vault_dir))
        return ManifestStore(self.vault_dir).load()

    def list_countries(self) -> list[str]:
        if not self.countries_dir.exists():
            return []
        try:
            names = sorted(p.name for p in self.countries_dir.iterdir() if p.is_dir())
        except OSError as e:
            raise VaultIOError(f"failed to list countries: {e}", operation="list_countries") from e
        return [name for name in names if _is_slug(name)]

    def read_country(self, slug: str) -> CountryPage:
        path = self.country_path(slug)
        contents = read_text(path, operation="read_country", identifier=slug)
        return parse_country_page(contents, slug)

    def country_notes(self, slug: str) -> list[Note]:
        """Notes newest first; a country without a directory simply has none."""
        path = self.country_path(slug)
        if not path.parent.exists():
            return []
        return sort_newest_first(self.read_country(slug).notes)
