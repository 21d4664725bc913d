"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The only credential accepted is an `Authorization: Bearer <token>` header.
Identity is re-derived from the token on every request; nothing is cached
between requests.

get_current_user() raises Unauthenticated (401) if the caller is anonymous.
require_roles(*roles) builds a dependency that authenticates first, then
raises Forbidden (403) if the caller's role is not in the allowed set.

Per-request state machine:
    Unauthenticated -> Authenticated -> (Authorized | Forbidden)

Layer rule: no imports from catalog/ or realtime/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.credentials import CredentialStore
from auth.models import User
from auth.tokens import TokenService, extract_bearer_token
from core.errors import Forbidden, InvalidToken, NotFound, Unauthenticated


def _authenticate(request: Request) -> User:
    credentials: CredentialStore = request.app.state.credentials
    tokens: TokenService = request.app.state.tokens

    token = extract_bearer_token(request.headers)
    if token is None:
        raise Unauthenticated("Access denied. No token provided.")
    try:
        claims = tokens.verify(token)
    except InvalidToken as exc:
        raise Unauthenticated("Invalid or expired token") from exc
    try:
        user = credentials.find_by_id(claims["id"])
    except NotFound as exc:
        raise Unauthenticated("User not found. Token is invalid.") from exc

    request.state.user = user
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    return _authenticate(request)


def require_roles(*roles: str) -> Callable[[Request], User]:
    """Build a dependency that admits only callers whose role is in roles.

    Use as a FastAPI dependency:
        @router.delete("/things/{id}")
        def route(user: User = Depends(require_roles("admin"))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> User:
        user = _authenticate(request)
        if user.role not in allowed:
            raise Forbidden(f"Access denied. {user.role} role is not authorized to access this resource.")
        return user

    return dependency
