"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """Process-wide settings resolved once at bootstrap."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    cache_sweep_interval_seconds: int = 300
    materialize_batch_size: int = 500
    materialize_batch_delay_ms: int = 50
    db_pool_size: int = 5
    db_max_overflow: int = 10
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )

    @property
    def database_configured(self) -> bool:
        """Whether a store DSN is available."""
        return bool(self.database_url)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL")
            or os.getenv("DATABASE_POOLING_URL")
            or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cache_sweep_interval_seconds=_int_env(
                "CACHE_SWEEP_INTERVAL_SECONDS", 300
            ),
            materialize_batch_size=max(1, _int_env("MATERIALIZE_BATCH_SIZE", 500)),
            materialize_batch_delay_ms=max(
                0, _int_env("MATERIALIZE_BATCH_DELAY_MS", 50)
            ),
            db_pool_size=_int_env("DB_POOL_SIZE", 5),
            db_max_overflow=_int_env("DB_MAX_OVERFLOW", 10),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )
