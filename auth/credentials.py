"""
auth/credentials.py -- Credential lifecycle on top of UserStore.

CredentialStore owns the rules around accounts: email normalization,
duplicate detection, hashing before persistence, and the constant-time
login check. UserStore only moves rows.

Failures are raised from core.errors so the API layer maps them uniformly:
  DuplicateEmail       -- registration against an existing address
  InvalidCredentials   -- unknown email OR wrong password (never says which)
  NotFound             -- id lookup for an account that does not exist

Layer rule: no imports from api/, catalog/, or realtime/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import ROLE_ADMIN, ROLE_USER, ROLES, User
from auth.store import UserStore
from auth.tokens import dummy_hash, hash_password, verify_password
from core.errors import DuplicateEmail, InvalidCredentials, NotFound

logger = logging.getLogger("catalog.auth")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Register, authenticate and resolve user accounts.

    Hashing is CPU-bound and deliberately slow. Call these methods from sync
    route handlers (FastAPI's threadpool) so the event loop keeps serving
    other requests while bcrypt runs.
    """

    def __init__(self, users: UserStore, bcrypt_rounds: int | None = None) -> None:
        self.users = users
        self._rounds = bcrypt_rounds

    def register(self, name: str, email: str, raw_password: str, role: str | None = None) -> User:
        """Create an account. Returns the stored user without its hash."""
        email = normalize_email(email)
        role = role or ROLE_USER
        if role not in ROLES:
            raise ValueError(f"Unknown role {role!r}")
        if self.users.get_by_email(email) is not None:
            raise DuplicateEmail()

        hashed = hash_password(raw_password, self._rounds)
        try:
            user = self.users.create_user(User(name=name.strip(), email=email, role=role), hashed)
        except IntegrityError as exc:
            # A concurrent registration won the race for the UNIQUE index.
            raise DuplicateEmail() from exc
        logger.info("Registered user %s (role=%s)", user.id, user.role)
        return user

    def verify_credentials(self, email: str, raw_password: str) -> User:
        """Return the matching user or raise InvalidCredentials.

        Always runs bcrypt whether or not the account exists:
        - Unknown email: bcrypt runs against dummy_hash() (same cost as real check)
        - Wrong password: bcrypt runs against the real hash (same cost)
        """
        user = self.users.get_by_email(normalize_email(email), include_password=True)
        if user is None or not user.hashed_password:
            verify_password(raw_password, dummy_hash())
            raise InvalidCredentials()
        if not verify_password(raw_password, user.hashed_password):
            raise InvalidCredentials()
        user.hashed_password = None
        return user

    def find_by_id(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def change_password(self, user_id: str, raw_password: str) -> User:
        """Re-hash and store a new password. updated_at is refreshed by the store."""
        if not self.users.update_user(user_id, hashed_password=hash_password(raw_password, self._rounds)):
            raise NotFound("User not found")
        return self.find_by_id(user_id)

    def update_profile(self, user_id: str, *, name: str) -> User:
        if not self.users.update_user(user_id, name=name.strip()):
            raise NotFound("User not found")
        return self.find_by_id(user_id)

    def ensure_admin(self, name: str, email: str, raw_password: str) -> User:
        """Create an admin account, or promote and re-password an existing one.

        Used by `python main.py create-admin`; registration over HTTP never
        grants admin unless ALLOW_REGISTRATION_ROLE is set.
        """
        existing = self.users.get_by_email(normalize_email(email))
        if existing is None:
            return self.register(name, email, raw_password, role=ROLE_ADMIN)
        self.users.update_user(
            existing.id,
            role=ROLE_ADMIN,
            hashed_password=hash_password(raw_password, self._rounds),
        )
        logger.info("Promoted user %s to admin", existing.id)
        return self.find_by_id(existing.id)
