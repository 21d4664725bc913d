"""
api/routes/auth.py -- Registration, login and identity endpoints.

Routes:
  POST /api/auth/register  -- create an account; returns token + user (201)
  POST /api/auth/login     -- exchange email/password for a token
  GET  /api/auth/me        -- current user (requires auth)

Security:
  verify_credentials() runs bcrypt even for unknown emails and raises the
  same InvalidCredentials for both failure modes. Do NOT inline
  get_by_email() + verify_password() -- that re-introduces the timing leak.
  Token responses carry Cache-Control: no-store.

  A role in the registration body is validated but ignored unless
  ALLOW_REGISTRATION_ROLE is set; admins are created with
  `python main.py create-admin`.

Handlers are sync so bcrypt runs on FastAPI's threadpool, not the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, RegisterRequest, UserOut, envelope
from auth.credentials import CredentialStore
from auth.dependencies import get_current_user
from auth.models import User
from auth.tokens import TokenService

logger = logging.getLogger("catalog.api")

router = APIRouter()


def _token_response(status_code: int, message: str, token: str, user: User) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=envelope(success=True, message=message, token=token, data=UserOut.from_domain(user).dump()),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return a token for it."""
    credentials: CredentialStore = request.app.state.credentials
    tokens: TokenService = request.app.state.tokens

    role = body.role
    if role is not None and not request.app.state.settings.allow_registration_role:
        logger.info("Ignoring client-supplied role %r on registration", role)
        role = None

    user = credentials.register(body.name, body.email, body.password, role)
    return _token_response(201, "User registered successfully", tokens.issue(user.id), user)


@router.post("/auth/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong password and unknown email produce the identical 401.
    """
    credentials: CredentialStore = request.app.state.credentials
    tokens: TokenService = request.app.state.tokens

    user = credentials.verify_credentials(body.email, body.password)
    return _token_response(200, "Login successful", tokens.issue(user.id), user)


@router.get("/auth/me")
def me(current_user: User = Depends(get_current_user)) -> dict:
    """Return the account behind the presented token."""
    return envelope(success=True, data=UserOut.from_domain(current_user).dump())
