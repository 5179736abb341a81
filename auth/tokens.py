"""
auth/tokens.py -- JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256 by default. Tokens are signed with the process
       secret and carry user_id, role and expiry. The role claim is a
       snapshot taken at issuance; the gateway never trusts it for
       authorization and always re-reads the stored user.

  Errors: verify() raises a specific TokenError subclass so the gateway can
       log why a token was refused. Callers outside auth/ only ever see
       Unauthorized.

  Configuration: TokenIssuer is constructed explicitly with the secret and
       lifetime (see api/main.py lifespan). There is no module-level secret,
       so tests can build issuers with their own keys and lifetimes.

Layer rule: no imports from api/, core/, or fleet/.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredToken, InternalFailure, InvalidSignature, MalformedToken

logger = logging.getLogger("ntcbus.auth")


@dataclass(frozen=True)
class TokenClaims:
    """Identity recovered from a verified token."""

    user_id: int
    role: str
    expires_at: datetime


class TokenIssuer:
    """Issue and verify signed, time-limited session tokens.

    Usage:
        issuer = TokenIssuer(settings.secret_key, ttl_seconds=3600)
        token = issuer.issue(user.id, user.role)
        claims = issuer.verify(token)  # raises TokenError subclasses
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl_seconds: int = 3600) -> None:
        if not secret_key:
            raise ValueError("TokenIssuer requires a non-empty secret key.")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = timedelta(seconds=ttl_seconds)

    def expires_at(self, issued_at: datetime) -> datetime:
        return issued_at + self.ttl

    def issue(self, user_id: int, role: str, issued_at: datetime | None = None) -> str:
        """Encode a signed JWT for the user, valid for the configured TTL.

        Args:
            user_id:   Numeric user ID stored in the DB.
            role:      Role at issuance time.
            issued_at: Issue timestamp; defaults to now (UTC). Passing it lets
                       the caller record the same expiry in the session
                       registry.
        """
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "role": role,
            "iat": now,
            "exp": self.expires_at(now),
            # Unique per token: two logins in the same second still differ.
            "jti": secrets.token_urlsafe(16),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        except JWTError as exc:
            logger.error("Token signing failed: %s", exc)
            raise InternalFailure() from exc

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT.

        Raises:
            MalformedToken:   not a JWT, or required claims are missing.
            InvalidSignature: signature (or algorithm) does not match.
            ExpiredToken:     signature is valid but exp has passed.
        """
        # Parse without verifying first so "garbage" and "forged" stay distinct.
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken(str(exc)) from exc

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredToken(str(exc)) from exc
        except JWTError as exc:
            raise InvalidSignature(str(exc)) from exc

        user_id = payload.get("user_id")
        role = payload.get("role")
        exp = payload.get("exp")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(role, str):
            raise MalformedToken("Token is missing user_id or role claims.")
        if not isinstance(exp, (int, float)):
            raise MalformedToken("Token is missing the exp claim.")
        return TokenClaims(
            user_id=user_id,
            role=role,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
