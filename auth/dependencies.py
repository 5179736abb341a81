"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources, checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "token" cookie -- set by POST /auth/login for browser sessions.

get_current_user() resolves the token through AuthGateway.authenticate() and
stores the user and raw token on request.state so later handlers (logout)
can reach them. require_role() builds role guards on top of it; the three
platform roles each get a ready-made instance.

All helpers are plain def functions: FastAPI runs them in its thread pool,
so the store lookups never block the event loop.

Errors are raised as AuthError subclasses (Unauthorized -> 401, Forbidden ->
403) and rendered by the exception handler in api/main.py.

Layer rule: no imports from api/, core/, or fleet/.
  auth/dependencies.py may import from fastapi (for Depends/Request) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.gateway import AuthGateway
from auth.models import Role, User

TOKEN_COOKIE = "token"


def extract_token(request: Request) -> str | None:
    """Return the raw token from the Bearer header, else the cookie, else None."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(TOKEN_COOKIE) or None


def get_gateway(request: Request) -> AuthGateway:
    return request.app.state.auth


def get_current_user(request: Request) -> User:
    """Require authentication. Raises Unauthorized (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_token(request)
    user = get_gateway(request).authenticate(token)
    request.state.user = user
    request.state.token = token
    return user


def require_role(role: str) -> Callable[..., User]:
    """Build a dependency that admits only users whose stored role is role.

    Raises Unauthorized (401) if unauthenticated, Forbidden (403) on a role
    mismatch.
    """

    def _checker(request: Request, user: User = Depends(get_current_user)) -> User:
        return get_gateway(request).require_role(user, role)

    _checker.__name__ = f"require_{role}"
    return _checker


require_admin = require_role(Role.admin.value)
require_operator = require_role(Role.operator.value)
require_commuter = require_role(Role.commuter.value)
