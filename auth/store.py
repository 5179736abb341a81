"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper (same as fleet/store.py).
UserStore is the repository; _row_to_user / _row_to_session are the mappers.
Gateway and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the schema. The gateway checks for an existing
  email before inserting, but two concurrent registrations can both pass that
  check; the constraint turns the loser into an IntegrityError instead of a
  duplicate account.

Session registry:
  Each issued token is one row in user_sessions rather than an entry in a
  list column. Logins and logouts for the same user therefore insert or
  delete independent rows and cannot overwrite each other. record_session()
  prunes that user's expired rows and trims the oldest rows beyond the cap
  in the same transaction, so the table stays bounded per user.

Layer rule: no imports from api/ or fleet/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import Session, User
from core.database import iso as _iso
from core.database import make_engine
from core.database import now_iso as _now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="commuter"),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "user_sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("token", Text, nullable=False),
    Column("issued_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    UniqueConstraint("user_id", "token", name="uq_user_session_token"),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their session registry.

    Usage:
        store = UserStore(settings.database_url)
        uid = store.create_user(User(email="a@x.com", role="commuter", hashed_password=digest))
        user = store.get_by_email("a@x.com")
        store.record_session(uid, token, expires_at)
        store.close()
    """

    # Columns update_user() may touch -- validated before any SQL write.
    _UPDATABLE_FIELDS: set = {"email", "hashed_password", "role"}

    def __init__(self, db_url: str, timeout: float | None = None) -> None:
        self.engine: Engine = make_engine(db_url, timeout)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        session_tokens on the dataclass is ignored; sessions are written via
        record_session().
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, self._tokens_for(conn, row.id))

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, self._tokens_for(conn, row.id))

    def list_users(self, role: str | None = None) -> list[User]:
        """Return users ordered by email, optionally restricted to one role.

        session_tokens is left empty on list results.
        """
        query = _users.select().order_by(_users.c.email)
        if role is not None:
            query = query.where(_users.c.role == role)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, hashed_password, role. Unknown keys raise
        ValueError rather than being silently dropped.

        Returns True if a row was updated, False if user_id was not found.
        Raises sqlalchemy.exc.IntegrityError if a new email is already taken.
        """
        unknown = set(fields) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Delete a user and all of its sessions. Returns False if not found."""
        with self.engine.begin() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session registry
    # ------------------------------------------------------------------

    def record_session(self, user_id: int, token: str, expires_at: datetime, max_sessions: int = 10) -> None:
        """Register an issued token for the user.

        In one transaction: drop the user's expired sessions, insert the new
        one, then evict the oldest sessions beyond max_sessions.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _sessions.delete().where((_sessions.c.user_id == user_id) & (_sessions.c.expires_at <= now))
            )
            conn.execute(
                _sessions.insert().values(
                    user_id=user_id,
                    token=token,
                    issued_at=now,
                    expires_at=_iso(expires_at),
                )
            )
            overflow = conn.execute(
                select(_sessions.c.id)
                .where(_sessions.c.user_id == user_id)
                .order_by(_sessions.c.issued_at.desc(), _sessions.c.id.desc())
                .offset(max_sessions)
            ).fetchall()
            if overflow:
                conn.execute(_sessions.delete().where(_sessions.c.id.in_([r.id for r in overflow])))

    def revoke_session(self, user_id: int, token: str) -> bool:
        """Remove the exact (user, token) entry. Missing entries are a no-op.

        Returns True if a session was removed.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _sessions.delete().where((_sessions.c.user_id == user_id) & (_sessions.c.token == token))
            )
        return result.rowcount > 0

    def has_session(self, user_id: int, token: str) -> bool:
        """Return True if the token is registered for the user and not expired."""
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(_sessions)
                .where(
                    (_sessions.c.user_id == user_id)
                    & (_sessions.c.token == token)
                    & (_sessions.c.expires_at > _now_iso())
                )
            ).scalar()
        return (count or 0) > 0

    def list_sessions(self, user_id: int) -> list[Session]:
        """Return the user's unexpired sessions, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _sessions.select()
                .where((_sessions.c.user_id == user_id) & (_sessions.c.expires_at > _now_iso()))
                .order_by(_sessions.c.issued_at, _sessions.c.id)
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def purge_expired_sessions(self) -> int:
        """Delete every expired session across all users. Returns rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= _now_iso()))
        return result.rowcount or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()

    def _tokens_for(self, conn, user_id: int) -> list[str]:
        rows = conn.execute(
            select(_sessions.c.token)
            .where((_sessions.c.user_id == user_id) & (_sessions.c.expires_at > _now_iso()))
            .order_by(_sessions.c.issued_at, _sessions.c.id)
        ).fetchall()
        return [r.token for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, session_tokens: list[str] | None = None) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        session_tokens=session_tokens or [],
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
    )
