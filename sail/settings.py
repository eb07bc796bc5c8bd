from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Endpoint
    host: str = os.getenv("SAIL_HOST", "sailabove.io")
    timeout_s: int = _env_int("SAIL_TIMEOUT_S", 30)

    # Credentials, passed through as HTTP basic auth.
    user: str | None = os.getenv("SAIL_USER")
    password: str | None = os.getenv("SAIL_PASSWORD")

    # Output
    output_format: str = os.getenv("SAIL_FORMAT", "pretty")  # pretty|json
    verbose: bool = _env_bool("SAIL_VERBOSE", False)

    @property
    def pretty(self) -> bool:
        return self.output_format == "pretty"


settings = Settings()
