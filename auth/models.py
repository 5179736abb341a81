"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in fleet/models.py -- dataclasses own domain shape; stores and the gateway do
the work.

Layer rule: no imports from api/, core/, or fleet/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    admin = "admin"
    operator = "operator"
    commuter = "commuter"


@dataclass
class User:
    """Represents an identity that can log in to the booking platform.

    email is unique and compared exactly as stored (no case folding).

    session_tokens is read-only from the caller's point of view: it is filled
    by UserStore from the user_sessions table (unexpired entries, oldest
    first) and ignored on insert. Sessions are written through
    UserStore.record_session() / revoke_session() only.
    """

    email: str
    role: str  # "admin", "operator", "commuter"
    hashed_password: str = ""
    id: int | None = None
    created_at: str | None = None
    session_tokens: list[str] = field(default_factory=list)

    def public_view(self) -> dict:
        """Non-secret fields safe to return to clients."""
        return {"id": self.id, "email": self.email, "role": self.role}


@dataclass
class Session:
    """One issued token tracked as valid for a user until expiry or logout."""

    user_id: int
    token: str
    issued_at: str  # ISO 8601
    expires_at: str  # ISO 8601
    id: int | None = None
