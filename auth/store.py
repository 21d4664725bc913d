"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as catalog/store.py).
UserStore is the repository; _row_to_user is the mapper. Services and
dependencies never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The password hash is excluded from every read unless the caller passes
  include_password=True. Only credential verification asks for it.

  Email uniqueness is a UNIQUE index on the normalized (trimmed, lowercased)
  address. Callers normalize before calling in; the index is the final
  authority when two registrations race.

Layer rule: no imports from api/, catalog/, or realtime/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from auth.models import ROLE_USER, User
from core.config import get_settings
from core.db import make_engine
from core.ids import new_id

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("id", String(24), nullable=False, unique=True),
    Column("name", String(50), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default=ROLE_USER),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_PUBLIC_COLUMNS = [c for c in _users.c if c.name != "hashed_password"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.create_user(User(name="Ada", email="ada@example.com"), hashed_password)
        same = store.get_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_user(self, user: User, hashed_password: str) -> User:
        """Insert a new user and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The returned record never carries the hash.
        """
        now = _now_iso()
        user_id = new_id()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    name=user.name,
                    email=user.email,
                    hashed_password=hashed_password,
                    role=user.role,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return User(
            id=user_id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=now,
            updated_at=now,
        )

    def get_by_email(self, email: str, *, include_password: bool = False) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        columns = list(_users.c) if include_password else _PUBLIC_COLUMNS
        with self.engine.connect() as conn:
            row = conn.execute(select(*columns).where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str, *, include_password: bool = False) -> User | None:
        """Look up a user by public id. Returns None if not found."""
        columns = list(_users.c) if include_password else _PUBLIC_COLUMNS
        with self.engine.connect() as conn:
            row = conn.execute(select(*columns).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields (name, role, hashed_password) and stamp updated_at.

        Returns True if a row was updated, False if user_id was not found.
        """
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # hashed_password is only present when the query selected it.
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        hashed_password=getattr(row, "hashed_password", None),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
