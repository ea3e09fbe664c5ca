"""Configuration management using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


ROOT = Path(__file__).resolve().parents[1]

_REPO_PATH = "diorhc/YTP"
_BRANCH = "main"
_LOCALES_DIR = "locales"

DEFAULT_PRIMARY_BASE_URL = f"https://cdn.jsdelivr.net/gh/{_REPO_PATH}@{_BRANCH}/{_LOCALES_DIR}"
DEFAULT_SECONDARY_BASE_URL = f"https://raw.githubusercontent.com/{_REPO_PATH}/{_BRANCH}/{_LOCALES_DIR}"


class FetchSettings(BaseSettings):
    timeout_seconds: float = 10.0
    max_attempts: int = Field(default=3, ge=1)
    backoff_min_seconds: float = 1.0
    backoff_max_seconds: float = 8.0


class Settings(BaseSettings):
    """Top-level configuration for the locale loader and its sources."""

    known_keys: List[str] = Field(
        default_factory=lambda: ["en", "ru", "kr", "fr", "du", "cn", "tw", "jp", "tr"]
    )
    default_key: str = "en"

    primary_base_url: str = DEFAULT_PRIMARY_BASE_URL
    secondary_base_url: str = DEFAULT_SECONDARY_BASE_URL
    url_template: str = "{base}/{key}.json"

    fetch: FetchSettings = Field(default_factory=FetchSettings)

    @field_validator("known_keys")
    @classmethod
    def normalize_keys(cls, keys: List[str]) -> List[str]:
        cleaned = [key.strip().lower() for key in keys if key.strip()]
        if not cleaned:
            raise ValueError("known_keys must contain at least one key")
        return cleaned

    @field_validator("url_template")
    @classmethod
    def ensure_key_placeholder(cls, template: str) -> str:
        if "{key}" not in template:
            raise ValueError("url_template must contain a {key} placeholder")
        return template

    @model_validator(mode="after")
    def ensure_default_known(self) -> "Settings":
        self.default_key = self.default_key.strip().lower()
        if self.default_key not in self.known_keys:
            raise ValueError(f"default_key {self.default_key!r} is not one of known_keys")
        return self

    model_config = {
        "env_prefix": "PAGECORE_",
        "env_file": ROOT / ".env",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
