"""
auth/store.py -- SQLAlchemy Core persistence for users and sessions.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user is the mapper. Flow code never touches SQL.

UserStore satisfies three auth.ports protocols at once:
  PasswordUserDirectory      login, register, find_by_username, change_password
  PasswordlessUserDirectory  find_by_email, register_passwordless
  SessionStore               store_token, find_user_by_token, logout

Lookups return "" when nothing matches and raise only on real failures, which
is the contract the flows expect.

Security:
  All queries use bound parameters. No f-strings in SQL.
  login() always runs bcrypt, against _DUMMY_HASH when the email is unknown,
  so response time does not reveal which emails are registered.
  Sessions carry their own expiry; find_user_by_token() ignores expired rows
  and purge_expired_sessions() deletes them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.tokens import _DUMMY_HASH, hash_password, verify_password
from core.models import ClientContext

logger = logging.getLogger("gatehouse.store")

DEFAULT_SESSION_SECONDS = 2 * 60 * 60

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(255), nullable=False, server_default=""),
    Column("last_name", String(255), nullable=False, server_default=""),
    Column("hashed_password", Text),  # NULL for passwordless accounts
    Column("created_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("token", String(64), primary_key=True),
    Column("user_id", String(32), nullable=False, index=True),
    Column("ip", String(64), nullable=False, server_default=""),
    Column("user_agent", Text, nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite settings every store in this package uses."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    return _now().isoformat()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for user accounts and session rows.

    Usage:
        store = UserStore("sqlite:///gatehouse.db")
        store.register("ann@example.com", "S3cret!pass", "Ann", "Lee", ClientContext())
        user_id = store.login("ann@example.com", "S3cret!pass", ClientContext())
        store.close()
    """

    def __init__(self, db_url: str, session_seconds: int = DEFAULT_SESSION_SECONDS) -> None:
        self.session_seconds = session_seconds
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User records
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its id.

        Raises sqlalchemy.exc.IntegrityError if the email is already taken.
        """
        user_id = user.id or uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=_normalize_email(user.email),
                    first_name=user.first_name,
                    last_name=user.last_name,
                    hashed_password=user.hashed_password,
                    created_at=_now_iso(),
                    is_active=1 if user.is_active else 0,
                )
            )
            conn.commit()
        return user_id

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # PasswordUserDirectory
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, ctx: ClientContext) -> str:
        """Return the user id for valid credentials, "" otherwise."""
        user = self.get_by_email(email)
        if user is None or user.hashed_password is None:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(password, _DUMMY_HASH)
            return ""
        if not verify_password(password, user.hashed_password):
            return ""
        if not user.is_active:
            return ""
        return user.id or ""

    def register(self, email: str, password: str, first_name: str, last_name: str, ctx: ClientContext) -> None:
        """Create a password account. Raises ValueError when the email is taken."""
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            hashed_password=hash_password(password),
        )
        try:
            self.create_user(user)
        except IntegrityError as exc:
            raise ValueError("email already registered") from exc
        logger.info("User registered (ip=%s)", ctx.ip)

    def find_by_username(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> str:
        """Return the id of the active user with this email.

        When first_name / last_name are given they must match too
        (case-insensitive) -- password restore uses them as an extra identity
        check. Empty names are not compared.
        """
        user = self.get_by_email(email)
        if user is None or not user.is_active:
            return ""
        if first_name and user.first_name.lower() != first_name.lower():
            return ""
        if last_name and user.last_name.lower() != last_name.lower():
            return ""
        return user.id or ""

    def change_password(self, user_id: str, password: str, ctx: ClientContext) -> None:
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(hashed_password=hash_password(password))
            )
            conn.commit()
        if result.rowcount == 0:
            raise LookupError(f"user {user_id} not found")

    # ------------------------------------------------------------------
    # PasswordlessUserDirectory
    # ------------------------------------------------------------------

    def find_by_email(self, email: str, ctx: ClientContext) -> str:
        return self.find_by_username(email, "", "", ctx)

    def register_passwordless(self, email: str, first_name: str, last_name: str, ctx: ClientContext) -> None:
        """Create an account without a password. Raises ValueError when the email is taken."""
        try:
            self.create_user(User(email=email, first_name=first_name, last_name=last_name))
        except IntegrityError as exc:
            raise ValueError("email already registered") from exc
        logger.info("Passwordless user registered (ip=%s)", ctx.ip)

    # ------------------------------------------------------------------
    # SessionStore
    # ------------------------------------------------------------------

    def store_token(self, token: str, user_id: str, ctx: ClientContext) -> None:
        now = _now()
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    token=token,
                    user_id=user_id,
                    ip=ctx.ip,
                    user_agent=ctx.user_agent,
                    created_at=now.isoformat(),
                    expires_at=(now + timedelta(seconds=self.session_seconds)).isoformat(),
                )
            )
            conn.commit()

    def find_user_by_token(self, token: str, ctx: ClientContext) -> str:
        """Return the user id owning an unexpired session, "" for unknown or expired tokens."""
        if not token:
            return ""
        with self.engine.connect() as conn:
            row = conn.execute(
                _sessions.select().where((_sessions.c.token == token) & (_sessions.c.expires_at > _now_iso()))
            ).fetchone()
        return row.user_id if row is not None else ""

    def logout(self, user_id: str, ctx: ClientContext) -> None:
        """Delete every session of the user."""
        with self.engine.connect() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            conn.commit()

    def purge_expired_sessions(self) -> int:
        """Delete expired sessions. Returns number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= _now_iso()))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        is_active=bool(row.is_active),
    )
