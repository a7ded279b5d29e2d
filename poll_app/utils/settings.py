"""Runtime settings read from the environment, with defaults from the constants modules."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from poll_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, STORE_TIMEOUT_SECONDS
from poll_app.constants.poll_constants import CIVIL_TIMEZONE


@dataclass(slots=True, frozen=True)
class AppSettings:
    """Server configuration.

    An empty ``database_url`` selects the in-memory table store. An empty
    ``cookie_secret`` makes the server sign cookies with a per-process key, so
    anonymous answers do not survive a restart.
    ``session_tokens`` maps bearer tokens to user ids for the static verifier.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timezone: str = CIVIL_TIMEZONE
    database_url: str = ""
    admin_password: str = "admin123"
    store_timeout_seconds: float = STORE_TIMEOUT_SECONDS
    seed_file: Path | None = None
    log_level: str = "INFO"
    session_tokens: Mapping[str, str] | None = None
    cookie_secret: str = ""
    seed_samples: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppSettings":
        env = os.environ if environ is None else environ
        seed_file = env.get("POLL_SEED_FILE", "").strip()
        return cls(
            host=env.get("POLL_HOST", DEFAULT_HOST),
            port=int(env.get("POLL_PORT", DEFAULT_PORT)),
            timezone=env.get("POLL_TIMEZONE", CIVIL_TIMEZONE),
            database_url=env.get("POLL_DATABASE_URL", "").strip(),
            admin_password=env.get("POLL_ADMIN_PASSWORD", "admin123"),
            store_timeout_seconds=float(env.get("POLL_STORE_TIMEOUT_SECONDS", STORE_TIMEOUT_SECONDS)),
            seed_file=Path(seed_file) if seed_file else None,
            log_level=env.get("POLL_LOG_LEVEL", "INFO").upper(),
            session_tokens=_parse_tokens(env.get("POLL_SESSION_TOKENS", "")),
            cookie_secret=env.get("POLL_COOKIE_SECRET", ""),
            seed_samples=env.get("POLL_SEED_SAMPLES", "1").strip().lower() not in _FALSE_VALUES,
        )


_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_tokens(raw: str) -> dict[str, str]:
    """Parse ``token:user,token2:user2``."""
    tokens: dict[str, str] = {}
    for pair in raw.split(","):
        token, _, user_id = pair.strip().partition(":")
        if token and user_id:
            tokens[token] = user_id
    return tokens
