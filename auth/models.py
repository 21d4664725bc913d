"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/, catalog/, or realtime/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES: tuple[str, ...] = (ROLE_USER, ROLE_ADMIN)


@dataclass
class User:
    """An account that can log in and receive tokens.

    email is always stored trimmed and lowercased; the store's UNIQUE index
    is on that normalized form.

    hashed_password is only populated when the store is explicitly asked for
    it (verify_credentials). Every other read leaves it None so a User can be
    serialized without risk of leaking the hash.
    """

    name: str
    email: str
    role: str = ROLE_USER
    id: str | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
