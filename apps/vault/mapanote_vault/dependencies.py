from functools import lru_cache

from mapanote_vault.config import load_settings, setup_logging
from mapanote_vault.vault import Vault

@lru_cache()
def get_settings():
    settings = load_settings()
    setup_logging(settings)
    return settings

@lru_cache()
def get_vault():
    return Vault.from_settings(get_settings())
