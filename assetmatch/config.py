"""Runtime settings read from the environment (after .env is loaded)."""

import os
from dataclasses import dataclass, replace
from pathlib import Path

DEFAULT_BASE_URL = "https://api.sightmap.com/v1"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    per_page: int = 250
    timeout: int = 20
    page_retries: int = 2
    batch_size: int = 5
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=os.getenv("SIGHTMAP_API_KEY") or None,
            base_url=(os.getenv("SIGHTMAP_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            per_page=_env_int("SIGHTMAP_PER_PAGE", cls.per_page),
            timeout=_env_int("SIGHTMAP_TIMEOUT", cls.timeout),
            page_retries=_env_int("SIGHTMAP_PAGE_RETRIES", cls.page_retries),
            batch_size=_env_int("ASSETMATCH_BATCH_SIZE", cls.batch_size),
            log_level=os.getenv("ASSETMATCH_LOG_LEVEL") or cls.log_level,
            log_dir=Path(os.getenv("ASSETMATCH_LOG_DIR") or cls.log_dir),
            log_to_file=_env_bool("ASSETMATCH_LOG_FILE", cls.log_to_file),
        )

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied (CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
