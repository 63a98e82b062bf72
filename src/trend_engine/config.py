from __future__ import annotations

"""Settings loaded from environment variables.

``get_settings`` reads the environment once and caches the resulting
``Settings`` object.  Tests may call ``reset_settings_cache`` to force a
reload when they modify environment variables at runtime.
"""

from dataclasses import dataclass
import os
from functools import lru_cache


@dataclass
class Settings:
    artifacts_dir: str = "artifacts"
    log_level: str = "INFO"
    tests_source: str | None = None
    mortality_source: str | None = None


@lru_cache()
def get_settings() -> Settings:
    """Return settings loaded from environment variables."""

    artifacts_dir = os.getenv("TREND_ARTIFACTS_DIR", "artifacts")
    log_level = os.getenv("TREND_LOG_LEVEL", "INFO").upper()
    tests_source = os.getenv("TREND_TESTS_SOURCE")
    mortality_source = os.getenv("TREND_MORTALITY_SOURCE")
    return Settings(
        artifacts_dir=artifacts_dir,
        log_level=log_level,
        tests_source=tests_source,
        mortality_source=mortality_source,
    )


def reset_settings_cache() -> None:
    """Clear the settings cache (mainly for tests)."""

    get_settings.cache_clear()
