"""Cookie codecs for anonymous voters.

Two cookies live in the browser for a year: a random client id that names the
anonymous voter, and ``guess_data``, a JSON object of that browser's answers keyed
by question id. ``guess_data`` carries an HMAC signature; the server ignores
values it did not sign.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
from typing import Any
from urllib.parse import quote, unquote

from fastapi import Request, Response

from poll_app.constants.poll_constants import (
    CLIENT_ID_COOKIE,
    COOKIE_MAX_AGE_DAYS,
    GUESS_DATA_COOKIE,
)
from poll_app.core.services.vote_store import CookieVoteBackend

logger = logging.getLogger(__name__)

_COOKIE_MAX_AGE = COOKIE_MAX_AGE_DAYS * 24 * 60 * 60
_CLIENT_ID_BYTES = 16


def sign_cookie_value(payload: str, secret: str) -> str:
    """Append an HMAC-SHA256 signature: ``<payload>.<hex digest>``."""
    return f"{payload}.{_signature(payload, secret)}"


def _signature(payload: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def encode_guess_cookie(entries: dict[str, dict[str, Any]], secret: str) -> str:
    payload = quote(json.dumps(entries, separators=(",", ":"), sort_keys=True))
    return sign_cookie_value(payload, secret)


def decode_guess_cookie(value: str | None, secret: str) -> dict[str, dict[str, Any]]:
    """Entries of a cookie this server signed; anything unsigned or altered reads as empty."""
    if not value:
        return {}
    payload, _, signature = value.rpartition(".")
    expected = _signature(payload, secret)
    if not payload or not hmac.compare_digest(signature.encode(), expected.encode()):
        logger.warning("Discarding unsigned or altered %s cookie", GUESS_DATA_COOKIE)
        return {}
    try:
        decoded = json.loads(unquote(payload))
    except ValueError:
        logger.warning("Discarding unreadable %s cookie", GUESS_DATA_COOKIE)
        return {}
    if not isinstance(decoded, dict):
        return {}
    return {
        str(question_id): entry
        for question_id, entry in decoded.items()
        if isinstance(entry, dict) and entry.get("answer")
    }


def _is_valid_client_id(value: str | None) -> bool:
    if not value or len(value) != _CLIENT_ID_BYTES * 2:
        return False
    try:
        int(value, 16)
    except ValueError:
        return False
    return True


def ensure_client_id(request: Request, response: Response) -> str:
    """Return the browser's anonymous id, issuing a new cookie when missing or malformed."""
    client_id = request.cookies.get(CLIENT_ID_COOKIE)
    if _is_valid_client_id(client_id):
        return client_id
    client_id = secrets.token_hex(_CLIENT_ID_BYTES)
    response.set_cookie(
        key=CLIENT_ID_COOKIE,
        value=client_id,
        max_age=_COOKIE_MAX_AGE,
        samesite="lax",
        httponly=True,
    )
    return client_id


def load_cookie_votes(request: Request, voter_id: str, secret: str) -> CookieVoteBackend:
    entries = decode_guess_cookie(request.cookies.get(GUESS_DATA_COOKIE), secret)
    return CookieVoteBackend(voter_id, entries)


def store_cookie_votes(response: Response, votes: CookieVoteBackend, secret: str) -> None:
    if not votes.dirty:
        return
    response.set_cookie(
        key=GUESS_DATA_COOKIE,
        value=encode_guess_cookie(votes.to_cookie_data(), secret),
        max_age=_COOKIE_MAX_AGE,
        samesite="lax",
    )
