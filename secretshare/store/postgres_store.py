from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional, Sequence, Tuple

import psycopg
from psycopg import sql

from secretshare.errors import DuplicateUsername, PersistenceError
from secretshare.store.base import User, check_federated_field, new_user_id

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, username, password_hash, salt, google_id, facebook_id, secret, created_at"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
  id text PRIMARY KEY,
  username text UNIQUE,
  password_hash text,
  salt text,
  google_id text UNIQUE,
  facebook_id text UNIQUE,
  secret text,
  created_at timestamptz NOT NULL DEFAULT now()
);
"""


def _connect(dsn: str):
    return psycopg.connect(dsn, autocommit=True)


def ensure_schema(conn) -> None:
    conn.execute(SCHEMA_SQL)


def _row_to_user(row: Sequence[Any]) -> User:
    user_id, username, password_hash, salt, google_id, facebook_id, secret, created_at = row[:8]
    return User(
        id=str(user_id),
        username=username,
        password_hash=password_hash,
        salt=salt,
        google_id=google_id,
        facebook_id=facebook_id,
        secret=secret,
        created_at=created_at,
    )


class PostgresUserStore:
    """
    Users table in PostgreSQL.

    An autocommit connection is opened at startup and shared by the request
    threads; statements are serialized with a lock. A connection that drops
    (database restart, network failure) is discarded and replaced on the next
    statement.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._conn = None
        self._opened = False
        self._lock = threading.Lock()

    def open(self) -> None:
        if self._opened:
            return
        try:
            self._conn = _connect(self._dsn)
            ensure_schema(self._conn)
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to open Postgres user store: {e}") from e
        self._opened = True
        logger.info("Postgres user store ready")

    def close(self) -> None:
        self._opened = False
        self._discard_connection()

    def _discard_connection(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except psycopg.Error as e:
            logger.debug("Ignoring error while closing Postgres connection: %s", e)

    def _connection(self):
        if not self._opened:
            raise PersistenceError("User store is not open")
        conn = self._conn
        if conn is not None and not (getattr(conn, "closed", False) or getattr(conn, "broken", False)):
            return conn
        self._discard_connection()
        try:
            self._conn = _connect(self._dsn)
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to reconnect to Postgres: {e}") from e
        logger.info("Reconnected to Postgres")
        return self._conn

    def _execute(self, query, params: Tuple[Any, ...]):
        """Run one statement and return its cursor, mapping driver errors to PersistenceError."""
        conn = self._connection()
        try:
            return conn.execute(query, params)
        except psycopg.OperationalError as e:
            logger.warning("Postgres connection failed; reconnecting on next statement: %s", e)
            self._discard_connection()
            raise PersistenceError(str(e)) from e
        except psycopg.Error as e:
            raise PersistenceError(str(e)) from e

    def create_local_user(self, username: str, password_hash: str, salt: str) -> User:
        with self._lock:
            row = self._execute(
                f"""
                INSERT INTO users (id, username, password_hash, salt)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (username) DO NOTHING
                RETURNING {USER_COLUMNS}
                """,
                (new_user_id(), username, password_hash, salt),
            ).fetchone()
        if not row:
            raise DuplicateUsername(username)
        return _row_to_user(row)

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            row = self._execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def get_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            row = self._execute(f"SELECT {USER_COLUMNS} FROM users WHERE username = %s", (username,)).fetchone()
        return _row_to_user(row) if row else None

    def find_or_create(self, id_field: str, value: str) -> Tuple[User, bool]:
        column = sql.Identifier(check_federated_field(id_field))
        # The no-op update makes RETURNING yield the existing row on conflict;
        # xmax = 0 only for a freshly inserted tuple.
        query = sql.SQL(
            """
            INSERT INTO users (id, {col})
            VALUES (%s, %s)
            ON CONFLICT ({col}) DO UPDATE SET {col} = EXCLUDED.{col}
            RETURNING {cols}, (xmax = 0) AS created
            """
        ).format(col=column, cols=sql.SQL(USER_COLUMNS))
        with self._lock:
            row = self._execute(query, (new_user_id(), value)).fetchone()
        if not row:
            raise PersistenceError(f"find_or_create returned no row for {id_field}")
        return _row_to_user(row), bool(row[8])

    def set_secret(self, user_id: str, secret: str) -> bool:
        with self._lock:
            row = self._execute(
                "UPDATE users SET secret = %s WHERE id = %s RETURNING id",
                (secret, user_id),
            ).fetchone()
        return row is not None

    def list_with_secrets(self) -> List[User]:
        with self._lock:
            rows = self._execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE secret IS NOT NULL ORDER BY created_at, id",
                (),
            ).fetchall()
        return [_row_to_user(r) for r in rows]


def init_db(dsn: str) -> None:
    """Create the users table if it does not exist."""
    with _connect(dsn) as conn:
        ensure_schema(conn)
