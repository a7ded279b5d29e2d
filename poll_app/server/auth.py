"""Resolution of bearer session tokens to user ids.

Sign-in itself (magic links, token issuance) belongs to an external provider; the
server only needs to learn which user a request speaks for.
"""

from __future__ import annotations

import secrets
from typing import Mapping, Protocol

from fastapi import Request


class SessionVerifier(Protocol):
    def verify(self, token: str) -> str | None:
        """Return the user id for a valid token, ``None`` otherwise."""
        ...


class StaticTokenVerifier:
    """Verifier backed by a fixed token-to-user mapping."""

    def __init__(self, tokens: Mapping[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})

    def verify(self, token: str) -> str | None:
        for known, user_id in self._tokens.items():
            if secrets.compare_digest(known.encode(), token.encode()):
                return user_id
        return None


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
