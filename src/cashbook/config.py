"""Cashbook configuration as a plain frozen dataclass.

``load_config()`` builds it from environment variables; tests and
embedding applications can construct it directly.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

from cashbook.constants import BCRYPT_ROUNDS, DEFAULT_TOKEN_TTL_SECS

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}

# Placeholder shipped in example env files; never valid in production.
_PLACEHOLDER_SECRET = "change-me"


class ConfigError(Exception):
    """Raised when required settings are missing or malformed."""


def parse_duration(value: str) -> int:
    """Parse ``7d`` / ``12h`` / ``30m`` / ``45s`` / ``3600`` into seconds."""
    match = _DURATION_RE.match(value)
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class CashbookConfig:
    storage_backend: str = "memory"  # memory | drive
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_refresh_token: str | None = None
    drive_folder_id: str | None = None
    allow_container_recreate: bool = False
    storage_timeout_secs: float = 30.0
    jwt_secret: str | None = None
    token_ttl_secs: int = DEFAULT_TOKEN_TTL_SECS
    bcrypt_rounds: int = BCRYPT_ROUNDS
    frontend_url: str = "http://localhost:5173"
    port: int = 5000

    def validate(self) -> None:
        """Raise ConfigError describing every missing or invalid setting."""
        problems = []
        if self.storage_backend not in {"memory", "drive"}:
            problems.append(f"STORAGE_BACKEND must be 'memory' or 'drive', got {self.storage_backend!r}")
        if self.storage_backend == "drive":
            for env_name, value in (
                ("GOOGLE_CLIENT_ID", self.google_client_id),
                ("GOOGLE_CLIENT_SECRET", self.google_client_secret),
                ("GOOGLE_REFRESH_TOKEN", self.google_refresh_token),
            ):
                if not value:
                    problems.append(f"{env_name} is required for the drive backend")
        if not self.jwt_secret or self.jwt_secret == _PLACEHOLDER_SECRET:
            problems.append("JWT_SECRET must be set")
        if not 4 <= self.bcrypt_rounds <= 31:
            problems.append("BCRYPT_ROUNDS must be between 4 and 31")
        if problems:
            raise ConfigError("; ".join(problems))


def load_config(environ: Mapping[str, str] | None = None) -> CashbookConfig:
    """Build a CashbookConfig from environment variables."""
    env = os.environ if environ is None else environ
    try:
        return CashbookConfig(
            storage_backend=env.get("STORAGE_BACKEND", "memory").strip().lower(),
            google_client_id=env.get("GOOGLE_CLIENT_ID") or None,
            google_client_secret=env.get("GOOGLE_CLIENT_SECRET") or None,
            google_refresh_token=env.get("GOOGLE_REFRESH_TOKEN") or None,
            drive_folder_id=env.get("GOOGLE_DRIVE_FOLDER_ID") or None,
            allow_container_recreate=_parse_bool(env.get("ALLOW_CONTAINER_RECREATE")),
            storage_timeout_secs=float(env.get("STORAGE_TIMEOUT_SECS", "30")),
            jwt_secret=env.get("JWT_SECRET") or None,
            token_ttl_secs=parse_duration(env.get("JWT_EXPIRES_IN", "7d")),
            bcrypt_rounds=int(env.get("BCRYPT_ROUNDS", str(BCRYPT_ROUNDS))),
            frontend_url=env.get("FRONTEND_URL", "http://localhost:5173"),
            port=int(env.get("PORT", "5000")),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e
