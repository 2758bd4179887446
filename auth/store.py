"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and TokenStore are the repositories; _row_to_user / _row_to_token
are the mappers. Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  TokenStore is the sole source of revocation truth. A refresh, reset or
  confirm token whose row is gone is dead, whatever its signature says.
  Rows are never deduplicated or capped: every login and every refresh adds
  one, which is what allows several concurrent sessions per user.

  Expired token rows are not swept. Expiry is checked lazily by the codec.

DB path: auth/authcore.db unless DATABASE_URL says otherwise. Both stores
accept the same URL; tables are created on first use.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.credentials import hash_password
from auth.errors import UserAlreadyExistsError, UserNotFoundError
from auth.models import StoredToken, TokenKind, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("password", Text),  # NULL for Google-only accounts
    Column("role", String(30), nullable=False),
    Column("language", String(10), nullable=False, server_default="en"),
    Column("native_language", String(10)),
    Column("is_email_confirmed", Integer, nullable=False, server_default="0"),
    Column("is_first_login", Integer, nullable=False, server_default="1"),
    Column("last_login", String(32)),
    Column("created_at", String(32), nullable=False),
)

_tokens = Table(
    "tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("token", Text, nullable=False, index=True),
    Column("kind", String(20), nullable=False),
    Column("created_at", String(32), nullable=False),
)

# Only these columns may be changed through UserStore.update().
_UPDATABLE_USER_FIELDS = {
    "first_name",
    "last_name",
    "password",
    "role",
    "language",
    "native_language",
    "is_email_confirmed",
    "is_first_login",
    "last_login",
}
_BOOL_USER_FIELDS = {"is_email_confirmed", "is_first_login"}


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# User repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.create("student", "Ada", "Lovelace", "ada@example.com", "secret", "en", "en")
        store.update(user.id, is_email_confirmed=True)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = _make_engine(db_url)

    def create(
        self,
        role: str,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        language: str,
        native_language: str | None,
    ) -> User:
        """Insert a new user with a freshly hashed password and return it.

        Raises UserAlreadyExistsError if the email is taken. The UNIQUE
        constraint is the arbiter, so two concurrent signups for one email
        cannot both succeed.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        first_name=first_name,
                        last_name=last_name,
                        password=hash_password(password) if password else None,
                        role=role,
                        language=language,
                        native_language=native_language,
                        is_email_confirmed=0,
                        is_first_login=1,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise UserAlreadyExistsError() from exc
        return self.get_by_id(user_id)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update(self, user_id: int, **fields) -> User:
        """Update mutable fields on an existing user and return the fresh record.

        Unknown field names raise ValueError rather than being silently
        dropped. Raises UserNotFoundError if user_id matches no row.
        """
        unknown = set(fields) - _UPDATABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        for key in _BOOL_USER_FIELDS & set(fields):
            fields[key] = 1 if fields[key] else 0
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                conn.commit()
            if result.rowcount == 0:
                raise UserNotFoundError()
        user = self.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Token repository
# ---------------------------------------------------------------------------


class TokenStore:
    """Registry of currently valid refresh, reset and confirm tokens.

    Usage:
        tokens = TokenStore("sqlite:///:memory:")
        tokens.save(user_id, refresh_token, TokenKind.REFRESH_TOKEN)
        tokens.find(refresh_token, TokenKind.REFRESH_TOKEN)    # StoredToken or None
        tokens.remove(refresh_token, TokenKind.REFRESH_TOKEN)  # logout
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = _make_engine(db_url)

    def save(self, user_id: int, token: str, kind: TokenKind) -> StoredToken:
        """Insert one token row. Existing rows for the user are left alone."""
        created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tokens.insert().values(user_id=user_id, token=token, kind=kind.value, created_at=created_at)
            )
            conn.commit()
        return StoredToken(
            id=result.inserted_primary_key[0],
            user_id=user_id,
            token=token,
            kind=kind,
            created_at=created_at,
        )

    def find(self, token: str, kind: TokenKind) -> StoredToken | None:
        """Return the stored row for (token, kind), or None if revoked/unknown."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _tokens.select().where((_tokens.c.token == token) & (_tokens.c.kind == kind.value))
            ).fetchone()
        return _row_to_token(row) if row is not None else None

    def list_for_user(self, user_id: int, kind: TokenKind) -> list[StoredToken]:
        """Return every stored token of one kind for a user, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _tokens.select()
                .where((_tokens.c.user_id == user_id) & (_tokens.c.kind == kind.value))
                .order_by(_tokens.c.id)
            ).fetchall()
        return [_row_to_token(r) for r in rows]

    def remove(self, token: str, kind: TokenKind | None = None) -> int:
        """Delete the rows holding this token string. Returns rows removed.

        With kind given, rows of other kinds are left alone. Removing an
        unknown token is not an error -- logout is idempotent.
        """
        condition = _tokens.c.token == token
        if kind is not None:
            condition = condition & (_tokens.c.kind == kind.value)
        with self.engine.connect() as conn:
            result = conn.execute(_tokens.delete().where(condition))
            conn.commit()
        return result.rowcount

    def remove_all_for_user(self, user_id: int, kind: TokenKind) -> int:
        """Delete all of one user's tokens of one kind. Returns rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tokens.delete().where((_tokens.c.user_id == user_id) & (_tokens.c.kind == kind.value))
            )
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
        password=row.password,
        role=row.role,
        language=row.language,
        native_language=row.native_language,
        is_email_confirmed=bool(row.is_email_confirmed),
        is_first_login=bool(row.is_first_login),
        last_login=row.last_login,
        created_at=row.created_at,
    )


def _row_to_token(row) -> StoredToken:
    return StoredToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        kind=TokenKind(row.kind),
        created_at=row.created_at,
    )
