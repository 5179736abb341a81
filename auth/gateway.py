"""
auth/gateway.py -- Orchestration of register / login / logout / authenticate.

AuthGateway is framework-free: it raises AuthError subclasses and returns
domain objects. auth/dependencies.py adapts it to FastAPI, and the API layer
maps AuthError to HTTP responses.

Policies:
  - Every issued token is recorded in the session registry, whether it came
    from register() or login(). logout() removes it.
  - With enforce_sessions=True (the default) authenticate() also requires the
    token to still be registered, so logout is a real revocation. With False,
    a token stays usable until expiry as long as its user exists.
  - authenticate() always returns the freshly loaded user. Role checks use
    the stored role, never the role claim baked into the token.
  - login() answers unknown-email and wrong-password with the same
    InvalidCredentials and runs bcrypt in both cases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    Forbidden,
    InternalFailure,
    InvalidCredentials,
    InvalidRole,
    NotFound,
    TokenError,
    Unauthorized,
    ValidationConflict,
)
from auth.models import Role, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("ntcbus.auth")

_ROLE_MESSAGES = {
    Role.admin.value: "Access denied. Admin privileges required.",
    Role.operator.value: "Access denied. Operator privileges required.",
    Role.commuter.value: "Access denied. Commuter privileges required.",
}


@dataclass(frozen=True)
class AuthResult:
    """Token plus the user it was issued for."""

    token: str
    user: User


class AuthGateway:
    """Entry point for every authentication and authorization decision.

    Usage:
        gateway = AuthGateway(store, PasswordHasher(10), TokenIssuer(secret))
        result = gateway.login("a@x.com", "pw1")
        user = gateway.authenticate(result.token)
        gateway.require_role(user, "commuter")
        gateway.logout(result.token, user.id)
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        enforce_sessions: bool = True,
        max_sessions: int = 10,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.enforce_sessions = enforce_sessions
        self.max_sessions = max_sessions

    # ------------------------------------------------------------------
    # Register / login / logout
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, role: str) -> AuthResult:
        """Create an account with any role and return a token for it.

        Raises InvalidRole for a role outside Role, ValidationConflict if the
        email is taken.
        """
        user = self._create_user(email, password, role)
        logger.info("Registered user id=%s role=%s", user.id, user.role)
        return AuthResult(token=self._start_session(user), user=user)

    def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and open a new session.

        Raises InvalidCredentials for an unknown email or a wrong password.
        """
        user = self.store.get_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.burn(password)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.hashed_password):
            logger.info("Login failed: bad password for user id=%s", user.id)
            raise InvalidCredentials()
        return AuthResult(token=self._start_session(user), user=user)

    def logout(self, token: str, user_id: int) -> None:
        """Revoke the session. Best-effort: a vanished user is not an error."""
        if self.store.get_by_id(user_id) is None:
            logger.warning("Logout for missing user id=%s; reporting success", user_id)
            return
        if not self.store.revoke_session(user_id, token):
            logger.info("Logout for user id=%s found no registered session", user_id)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def authenticate(self, token: str | None) -> User:
        """Resolve a raw token to the current stored user.

        Raises Unauthorized when the token is absent, fails verification,
        names a user that no longer exists, or (with enforce_sessions) has
        been revoked.
        """
        if not token:
            raise Unauthorized("Access denied. No token provided.")
        try:
            claims = self.tokens.verify(token)
        except TokenError as exc:
            logger.info("Token rejected: %s (%s)", type(exc).__name__, exc)
            raise Unauthorized("Invalid or expired token.") from exc

        user = self.store.get_by_id(claims.user_id)
        if user is None:
            raise Unauthorized("User not found.")
        if self.enforce_sessions and not self.store.has_session(user.id, token):
            logger.info("Revoked session used by user id=%s", user.id)
            raise Unauthorized("Session has been revoked.")
        return user

    def require_role(self, user: User, role: str) -> User:
        """Raise Forbidden unless the user's stored role equals role."""
        if user.role != role:
            raise Forbidden(_ROLE_MESSAGES.get(role, "Access denied."))
        return user

    # ------------------------------------------------------------------
    # Operator management (admin actions)
    # ------------------------------------------------------------------

    def add_operator(self, email: str, password: str) -> User:
        """Create an operator account. The role is always forced to operator."""
        user = self._create_user(
            email,
            password,
            Role.operator.value,
            conflict_message="Operator with this email already exists",
        )
        logger.info("Added operator id=%s", user.id)
        return user

    def list_operators(self) -> list[User]:
        return self.store.list_users(role=Role.operator.value)

    def update_operator(self, user_id: int, email: str | None = None, password: str | None = None) -> User:
        """Change an operator's email and/or password.

        Raises NotFound if user_id is not an operator, ValidationConflict if
        the new email belongs to someone else. Existing sessions are kept.
        """
        self._get_operator(user_id)
        updates: dict = {}
        if email is not None:
            updates["email"] = email
        if password is not None:
            updates["hashed_password"] = self.hasher.hash(password)
        try:
            self.store.update_user(user_id, **updates)
        except IntegrityError as exc:
            raise ValidationConflict("Operator with this email already exists") from exc
        return self._get_operator(user_id)

    def delete_operator(self, user_id: int) -> None:
        """Delete an operator and its sessions. Raises NotFound otherwise."""
        self._get_operator(user_id)
        self.store.delete_user(user_id)
        logger.info("Deleted operator id=%s", user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_user(
        self,
        email: str,
        password: str,
        role: str,
        conflict_message: str = "User already exists with this email",
    ) -> User:
        try:
            role = Role(role).value
        except ValueError as exc:
            raise InvalidRole(f"Invalid role: {role!r}") from exc
        if self.store.get_by_email(email) is not None:
            raise ValidationConflict(conflict_message)
        new_user = User(email=email, role=role, hashed_password=self.hasher.hash(password))
        try:
            user_id = self.store.create_user(new_user)
        except IntegrityError as exc:
            # Lost the race against a concurrent insert of the same email.
            raise ValidationConflict(conflict_message) from exc
        created = self.store.get_by_id(user_id)
        if created is None:
            raise InternalFailure("User not found after write.")
        return created

    def _get_operator(self, user_id: int) -> User:
        user = self.store.get_by_id(user_id)
        if user is None or user.role != Role.operator.value:
            raise NotFound("Operator not found")
        return user

    def _start_session(self, user: User) -> str:
        issued_at = datetime.now(timezone.utc)
        token = self.tokens.issue(user.id, user.role, issued_at=issued_at)
        self.store.record_session(
            user.id,
            token,
            self.tokens.expires_at(issued_at),
            max_sessions=self.max_sessions,
        )
        return token
