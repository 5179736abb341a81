"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account (any role); 201 + token
  POST /api/v1/auth/login      -- password login; sets "token" cookie + body token
  POST /api/v1/auth/logout     -- revoke the current session, clear cookie
  GET  /api/v1/auth/me         -- current user info (requires auth)
  GET  /api/v1/auth/sessions   -- current user's live sessions (requires auth)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT, default 10/minute).
  Wrong email and wrong password return the same 400 body; the gateway runs
  bcrypt in both cases so response time does not leak which one it was.
  Cache-Control: no-store on every response that carries a token.

All handlers are sync def: FastAPI runs them in its thread pool, keeping
bcrypt off the event loop.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import AuthResponse, LoginRequest, MessageResponse, PublicUser, RegisterRequest, SessionInfo
from auth.dependencies import TOKEN_COOKIE, get_current_user, get_gateway
from auth.models import User
from core.config import Settings

# Auth policy:
# - POST /api/v1/auth/register:  public
# - POST /api/v1/auth/login:     public, rate limited
# - POST /api/v1/auth/logout:    requires auth (get_current_user) -- needs the token to revoke
# - GET  /api/v1/auth/me:        requires auth
# - GET  /api/v1/auth/sessions:  requires auth
router = APIRouter()


def _set_auth_cookie(response: JSONResponse, token: str, settings: Settings) -> None:
    """Write the token as an httpOnly cookie that expires with the token.

    secure is on only in production so local HTTP development still works.
    """
    response.set_cookie(
        TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.token_expire_seconds,
    )


def _token_response(status_code: int, message: str, token: str, user: User) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, token=token, user=PublicUser.from_user(user)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return a token for it.

    The token is returned in the body only; the registry records it like a
    login session, so logout works for it too.
    """
    result = get_gateway(request).register(body.email, body.password, body.role.value)
    return _token_response(201, "User registered successfully", result.token, result.user)


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    The token is delivered twice: as an httpOnly cookie for browsers and in
    the body for API clients.
    """
    result = get_gateway(request).login(body.email, body.password)
    resp = _token_response(200, "Login successful", result.token, result.user)
    _set_auth_cookie(resp, result.token, request.app.state.settings)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Revoke the session behind this request's token and clear the cookie."""
    get_gateway(request).logout(request.state.token, current_user.id)
    settings: Settings = request.app.state.settings
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    resp.delete_cookie(TOKEN_COOKIE, httponly=True, secure=settings.secure_cookies, samesite="lax")
    return resp


@router.get("/auth/me", response_model=PublicUser)
def me(current_user: User = Depends(get_current_user)) -> PublicUser:
    """Return identity information for the currently authenticated user."""
    return PublicUser.from_user(current_user)


@router.get("/auth/sessions", response_model=list[SessionInfo])
def list_sessions(request: Request, current_user: User = Depends(get_current_user)) -> list[SessionInfo]:
    """List the caller's unexpired sessions. Raw tokens are never returned."""
    sessions = get_gateway(request).store.list_sessions(current_user.id)
    return [
        SessionInfo(
            issued_at=s.issued_at,
            expires_at=s.expires_at,
            current=s.token == request.state.token,
        )
        for s in sessions
    ]
