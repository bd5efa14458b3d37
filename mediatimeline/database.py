"""SQLite storage: connections, transactions and schema migrations."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from .errors import DatabaseError

DEFAULT_DATABASE_PATH = "data/db.sqlite3"

_MIGRATIONS = (
    """
    CREATE TABLE IF NOT EXISTS subscribed_hashtags (
        name TEXT PRIMARY KEY,
        votes INTEGER NOT NULL DEFAULT 0,
        approved INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    CREATE TABLE IF NOT EXISTS recent_statuses (
        tag TEXT PRIMARY KEY,
        status_id TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS statuses (
        id TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        account_id TEXT NOT NULL,
        account_acct TEXT NOT NULL,
        replies_count INTEGER NOT NULL DEFAULT 0,
        reblogs_count INTEGER NOT NULL DEFAULT 0,
        favourites_count INTEGER NOT NULL DEFAULT 0,
        engagements_count INTEGER GENERATED ALWAYS AS
            (replies_count + reblogs_count + favourites_count) VIRTUAL
    );
    CREATE INDEX IF NOT EXISTS statuses_created_at ON statuses (created_at);
    CREATE TABLE IF NOT EXISTS status_tags (
        status_id TEXT NOT NULL,
        name TEXT NOT NULL,
        PRIMARY KEY (status_id, name)
    );
    CREATE INDEX IF NOT EXISTS status_tags_name ON status_tags (name);
    CREATE TABLE IF NOT EXISTS status_refreshes (
        id TEXT PRIMARY KEY,
        refreshed_at TEXT NOT NULL
    );
    """,
)


def create_tables(connection):
    """Apply the schema migrations the database has not seen yet."""
    try:
        version = connection.execute("PRAGMA user_version").fetchone()[0]
        for number, script in enumerate(_MIGRATIONS[version:], start=version + 1):
            try:
                connection.executescript(
                    f"BEGIN;\n{script}\nPRAGMA user_version = {number};\nCOMMIT;"
                )
            except sqlite3.Error:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise
    except sqlite3.Error as exc:
        raise DatabaseError(f"unable to migrate the database: {exc}") from exc


class Database:
    """Opens connections to one SQLite database file."""

    def __init__(self, path=DEFAULT_DATABASE_PATH):
        self.path = Path(path)

    @contextmanager
    def connection(self):
        """Yield an autocommitting connection, closed afterwards."""
        try:
            conn = sqlite3.connect(self.path, isolation_level=None)
        except sqlite3.Error as exc:
            raise DatabaseError(f"unable to open {self.path}: {exc}") from exc
        try:
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA journal_mode = MEMORY")
            yield conn
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """Yield a connection inside a transaction, committed on success."""
        with self.connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")


def open_database(path=DEFAULT_DATABASE_PATH):
    """Open the database at ``path`` and bring its schema up to date."""
    database = Database(path)
    with database.connection() as conn:
        create_tables(conn)
    return database