import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class CachePolicy:
    max_age: int
    stale_while_revalidate: int = 0

    @property
    def ttl(self) -> int:
        return self.max_age + self.stale_while_revalidate

    def header(self) -> str:
        return (
            f"public, max-age={self.max_age}, "
            f"stale-while-revalidate={self.stale_while_revalidate}"
        )


@dataclass(frozen=True)
class ClientConfig:
    """
    Everything the HTTP client needs, fixed at construction time.

    Successful responses are cached for 6 hours and 404s for 5 minutes,
    both with a short stale-while-revalidate window. Any other error
    status is never cached. Retries are disabled by default.
    """
    base_url: str
    timeout: float = 10.0
    retry_limit: int = 0
    retry_status_codes: Tuple[int, ...] = (408, 413, 429, 500, 502, 503, 504)
    backoff_limit: float = 3.0
    success_cache: CachePolicy = field(
        default_factory=lambda: CachePolicy(max_age=21600, stale_while_revalidate=60))
    not_found_cache: CachePolicy = field(
        default_factory=lambda: CachePolicy(max_age=300, stale_while_revalidate=60))

    def __post_init__(self):
        object.__setattr__(self, 'base_url', self.base_url.rstrip('/'))


class Settings(BaseSettings):
    OMDB_API_KEY: str
    OMDB_BASE_URL: str
    REDIS_URL: Optional[str] = None
    HTTP_TIMEOUT: float = 10.0
    LOG_LEVEL: str = 'INFO'

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator('OMDB_API_KEY', 'OMDB_BASE_URL')
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('must not be blank')
        return value.strip()

    @field_validator('LOG_LEVEL')
    @classmethod
    def _level_name(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    def client_config(self) -> ClientConfig:
        return ClientConfig(base_url=self.OMDB_BASE_URL, timeout=self.HTTP_TIMEOUT)


@lru_cache
def get_settings() -> Settings:
    """
    Load settings from the environment (and `.env`).

    Raises pydantic.ValidationError when OMDB_API_KEY or OMDB_BASE_URL is
    missing, so a misconfigured process fails at startup.
    """
    return Settings()
