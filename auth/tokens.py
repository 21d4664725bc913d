"""
auth/tokens.py -- JWT and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET and carry
       the user id (as both "id" and "sub"), issue time and expiry. Any
       verification failure -- malformed token, bad signature, expired,
       missing subject -- raises the same InvalidToken so callers cannot be
       used as an oracle for which check failed.

  Passwords: bcrypt with a configurable cost factor (BCRYPT_ROUNDS, default
       12). Bcrypt is the right choice for low-entropy secrets because its
       cost factor makes offline brute force expensive, and every hash gets
       its own random salt. dummy_hash() enables timing equalization in
       CredentialStore.verify_credentials() so response time does not reveal
       whether an email is registered.

  JWT_SECRET: sourced from core.config.get_settings(). Rotating it
       invalidates every outstanding token; there is no revocation list.

Layer rule: no imports from api/, catalog/, or realtime/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings
from core.errors import InvalidToken

logger = logging.getLogger("catalog.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt rejects secrets longer than 72 bytes. The registration rule table
    caps passwords at 72 UTF-8 bytes so that limit is reported as a
    validation error rather than a 500.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Malformed hashes and
    over-long inputs count as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


@lru_cache
def dummy_hash() -> str:
    """Hash used to burn bcrypt time when the account does not exist.

    Cached so only the first unknown-email login pays for generating it.
    """
    return hash_password("catalog_timing_dummy")


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies signed, time-limited identity tokens."""

    def __init__(self, secret: str, expires_in: int) -> None:
        self._secret = secret
        self.expires_in = expires_in

    def issue(self, user_id: str, *, now: datetime | None = None) -> str:
        """Encode a signed JWT for user_id expiring expires_in seconds after now."""
        issued = now or datetime.now(timezone.utc)
        expire = issued + timedelta(seconds=self.expires_in)
        payload = {
            "id": user_id,
            "sub": user_id,
            "iat": int(issued.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> dict[str, str]:
        """Check signature and expiry in one pass. Returns {"id": user_id}.

        Raises InvalidToken on any failure.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise InvalidToken() from exc
        user_id = payload.get("id")
        if not user_id or not isinstance(user_id, str):
            raise InvalidToken()
        return {"id": user_id}


@lru_cache
def get_token_service() -> TokenService:
    """Process-wide TokenService built from Settings."""
    settings = get_settings()
    return TokenService(settings.jwt_secret, settings.jwt_expires_in)


# ---------------------------------------------------------------------------
# Header parsing
# ---------------------------------------------------------------------------


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header.

    A missing header, another scheme, or an empty token all return None --
    whether that is an error is the caller's decision.
    """
    value = headers.get("authorization") or headers.get("Authorization") or ""
    scheme, _, token = value.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token or " " in token:
        return None
    return token
