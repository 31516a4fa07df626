"""
SQLite-backed store shared by the user resolver, the context tracker and the
interaction logger.

SQLite is an embedded, serverless database engine; every call here opens its
own connection and closes it before returning, so concurrent request threads
never share a connection and each write is atomic on its own. There is no
transaction spanning a whole request.

Tables:
- users: identities, created by external collaborators (signup flows, operators)
- user_flexids: channel addresses (e-mail, phone) attached to a user
- interactions: one audit row per completed request, never updated
"""

from __future__ import annotations

import datetime as _dt
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        name        TEXT NOT NULL DEFAULT '',
        email       TEXT NOT NULL DEFAULT '',
        created_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_flexids (
        user_id     INTEGER NOT NULL REFERENCES users(id),
        flexid      TEXT NOT NULL,
        flexidtype  INTEGER NOT NULL,
        PRIMARY KEY (flexid, flexidtype)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS interactions (
        id            INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id       INTEGER NOT NULL DEFAULT 0,
        flexid        TEXT NOT NULL DEFAULT '',
        flexidtype    INTEGER NOT NULL DEFAULT 0,
        command       TEXT NOT NULL DEFAULT '',
        confidence    REAL NOT NULL DEFAULT 0,
        scores        TEXT NOT NULL DEFAULT '[]',
        sentence      TEXT NOT NULL,
        reply         TEXT NOT NULL,
        package_name  TEXT NOT NULL DEFAULT '',
        route         TEXT NOT NULL DEFAULT '',
        created_at    TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_interactions_user ON interactions (user_id, id)",
    "CREATE INDEX IF NOT EXISTS idx_interactions_flexid ON interactions (flexid, flexidtype, id)",
)


def utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Open a connection with row access by column name, commit on success, always close.

    Errors propagate to the caller; each component decides whether a storage
    failure degrades the request or aborts it.
    """
    con = sqlite3.connect(db_path)
    con.row_factory = sqlite3.Row
    try:
        yield con
        con.commit()
    finally:
        con.close()


def init_db(db_path: str) -> None:
    """
    Create parent directories and all tables if they do not exist yet.

    Args:
        db_path (str): Filesystem path to the SQLite database file.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    with connect(db_path) as con:
        for statement in SCHEMA:
            con.execute(statement)


def create_user(db_path: str, name: str = "", email: str = "") -> int:
    """Insert a user and return its id. Used by operators and tests, not by the request path."""
    with connect(db_path) as con:
        cur = con.execute(
            "INSERT INTO users (name, email, created_at) VALUES (?, ?, ?)",
            (name, email, utcnow().isoformat()),
        )
        return int(cur.lastrowid)


def add_flexid(db_path: str, user_id: int, flexid: str, flexidtype: int) -> None:
    """Attach a channel address to an existing user."""
    with connect(db_path) as con:
        con.execute(
            "INSERT INTO user_flexids (user_id, flexid, flexidtype) VALUES (?, ?, ?)",
            (user_id, flexid, int(flexidtype)),
        )
