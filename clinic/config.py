"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Configuration for the clinic store and its HTTP surface."""

    storage_dir: Path = Path("data")
    seed_demo_data: bool = True
    session_timeout_minutes: int = 60
    login_attempts_per_minute: int = 5
    log_level: str = "INFO"
    audit_log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CLINIC_* environment variables."""
        return cls(
            storage_dir=Path(os.getenv("CLINIC_STORAGE_DIR", "data")),
            seed_demo_data=_env_bool("CLINIC_SEED_DEMO_DATA", True),
            session_timeout_minutes=int(os.getenv("CLINIC_SESSION_TIMEOUT_MINUTES", "60")),
            login_attempts_per_minute=int(os.getenv("CLINIC_LOGIN_ATTEMPTS_PER_MINUTE", "5")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            audit_log_level=os.getenv("CLINIC_AUDIT_LOG_LEVEL", "INFO"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings.from_env()
