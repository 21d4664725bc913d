"""
tests/conftest.py -- Shared test fixtures for catalog API integration tests.

This module provides:
  - make_test_stores(): isolated in-memory DBs for users + products
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: one TestClient per module plus ready-made user and admin tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

APP_ENV must be set before any core/auth import so get_settings()
auto-generates JWT_SECRET in dev mode rather than raising ValueError.
BCRYPT_ROUNDS=4 keeps hashing fast.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any core/auth import.
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_services, detach_services
from auth.credentials import CredentialStore
from auth.models import ROLE_ADMIN
from auth.store import UserStore
from auth.tokens import get_token_service
from catalog.store import ProductStore
from core.config import get_settings

USER_PASSWORD = "Userpass1"
ADMIN_PASSWORD = "Adminpass1"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[UserStore, ProductStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'realtime').
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    products_url = f"sqlite:///file:test_products_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), ProductStore(db_url=products_url)


def _patch_lifespan(user_store: UserStore, product_store: ProductStore, **overrides):
    """Return a lifespan that wires pre-created test stores into app.state.

    overrides replace Settings fields (e.g. realtime_enabled=False).
    """
    settings = get_settings().model_copy(update=overrides)

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, settings=settings, user_store=user_store, product_store=product_store)
        yield
        await detach_services(app)

    return test_lifespan


@dataclass
class ApiContext:
    client: TestClient
    user_token: str
    admin_token: str
    credentials: CredentialStore

    def auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by fresh stores for the requesting module.

    A regular user (user@example.com) and an admin (admin@example.com) exist
    before the client starts; tokens for both are issued up front.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, product_store = make_test_stores(suffix)
    credentials = CredentialStore(user_store, bcrypt_rounds=4)
    user = credentials.register("Regular User", "user@example.com", USER_PASSWORD)
    admin = credentials.register("Admin User", "admin@example.com", ADMIN_PASSWORD, role=ROLE_ADMIN)
    tokens = get_token_service()

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(user_store, product_store)
    try:
        with TestClient(app) as client:
            yield ApiContext(
                client=client,
                user_token=tokens.issue(user.id),
                admin_token=tokens.issue(admin.id),
                credentials=credentials,
            )
    finally:
        app.router.lifespan_context = original_lifespan
