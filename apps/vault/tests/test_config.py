from pathlib import Path

import pytest

from mapanote_vault import dependencies
from mapanote_vault.config import load_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in ("VAULT_DIR", "LOG_LEVEL", "SEARCH_SNIPPET_RADIUS", "SEARCH_MAX_RESULTS", "RECENT_NOTES_LIMIT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)

    settings = load_settings()
    assert settings.vault_dir == (tmp_path / "vault").resolve()
    assert settings.log_level == "INFO"
    assert settings.search_snippet_radius == 60
    assert settings.search_max_results == 50
    assert settings.recent_limit == 20


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VAULT_DIR", str(tmp_path / "v"))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("SEARCH_SNIPPET_RADIUS", "15")
    monkeypatch.setenv("SEARCH_MAX_RESULTS", "5")
    monkeypatch.setenv("RECENT_NOTES_LIMIT", "3")

    settings = load_settings()
    assert settings.vault_dir == (tmp_path / "v").resolve()
    assert settings.log_level == "DEBUG"
    assert settings.search_snippet_radius == 15
    assert settings.search_max_results == 5
    assert settings.recent_limit == 3


def test_invalid_numbers_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEARCH_SNIPPET_RADIUS", "wide")
    monkeypatch.setenv("SEARCH_MAX_RESULTS", "0")
    settings = load_settings()
    assert settings.search_snippet_radius == 60
    assert settings.search_max_results == 1


def test_dependency_getters_build_one_vault(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VAULT_DIR", str(tmp_path / "vault"))
    monkeypatch.setenv("SEARCH_MAX_RESULTS", "7")
    dependencies.get_settings.cache_clear()
    dependencies.get_vault.cache_clear()
    try:
        vault = dependencies.get_vault()
        assert vault is dependencies.get_vault()
        assert vault.vault_dir == (tmp_path / "vault").resolve()
        assert vault.max_results == 7
        assert (tmp_path / "vault" / "vault.json").exists()
    finally:
        dependencies.get_settings.cache_clear()
        dependencies.get_vault.cache_clear()
