"""SQLite-backed storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Callable, TypeVar

from .models import Feed, FeedFollow, FeedFollowRow, Post, User

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL,
    description TEXT NOT NULL,
    published_at TEXT NOT NULL,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_USER_COLUMNS = "id, created_at, updated_at, name"
_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched"
_FOLLOW_COLUMNS = "id, created_at, updated_at, user_id, feed_id"


class NoRowsError(LookupError):
    """A query that expects one row found none."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    return value.isoformat()


def _dt(text: str) -> datetime:
    return datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(uuid.UUID(row["id"]), _dt(row["created_at"]), _dt(row["updated_at"]), row["name"])


def _feed(row: sqlite3.Row) -> Feed:
    last = row["last_fetched"]
    return Feed(
        id=uuid.UUID(row["id"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched=None if last is None else _dt(last),
    )


def _follow(row: sqlite3.Row) -> FeedFollow:
    return FeedFollow(
        id=row["id"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
    )


def _follow_row(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        id=row["id"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
        feed_name=row["feed_name"],
        user_name=row["user_name"],
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        id=row["id"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_dt(row["published_at"]),
        feed_id=uuid.UUID(row["feed_id"]),
    )


_FOLLOW_JOIN = """
SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id,
       f.name AS feed_name, u.name AS user_name
FROM feed_follows ff
JOIN feeds f ON ff.feed_id = f.id
JOIN users u ON ff.user_id = u.id
"""


class Queries:
    """Typed queries over a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def migrate(self) -> None:
        """Create the tables if they do not exist yet."""
        self._conn.executescript(SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def _one(self, sql: str, params: tuple, convert: Callable[[sqlite3.Row], T]) -> T:
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NoRowsError("no rows in result set")
        return convert(row)

    def _many(self, sql: str, params: tuple, convert: Callable[[sqlite3.Row], T]) -> list[T]:
        return [convert(row) for row in self._conn.execute(sql, params)]

    # feeds

    def add_feed(self, id, created_at, updated_at, name, url, user_id) -> Feed:
        with self._conn:
            self._conn.execute(
                "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (str(id), _ts(created_at), _ts(updated_at), name, url, str(user_id)),
            )
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),), _feed)

    def create_feed_follow(self, feed_id, user_id) -> FeedFollowRow:
        now = _ts(_now())
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO feed_follows (created_at, updated_at, feed_id, user_id) "
                "VALUES (?, ?, ?, ?)",
                (now, now, str(feed_id), str(user_id)),
            )
        return self._one(_FOLLOW_JOIN + "WHERE ff.id = ?", (cursor.lastrowid,), _follow_row)

    def get_feed_by_url(self, url: str) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed)

    def get_feed_follows_for_user(self, user_id) -> list[FeedFollowRow]:
        return self._many(_FOLLOW_JOIN + "WHERE ff.user_id = ?", (str(user_id),), _follow_row)

    def get_feeds(self) -> list[Feed]:
        return self._many(f"SELECT {_FEED_COLUMNS} FROM feeds", (), _feed)

    def get_next_feed_to_fetch(self, user_id) -> Feed:
        """Return the followed feed fetched longest ago, never-fetched first."""
        return self._one(
            "SELECT f.id, f.created_at, f.updated_at, f.name, f.url, f.user_id, f.last_fetched "
            "FROM feeds f JOIN feed_follows ff ON f.id = ff.feed_id "
            "WHERE ff.user_id = ? "
            "ORDER BY f.last_fetched IS NOT NULL, f.last_fetched ASC LIMIT 1",
            (str(user_id),),
            _feed,
        )

    def mark_feed_fetched(self, id) -> Feed:
        now = _ts(_now())
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE feeds SET last_fetched = ?, updated_at = ? WHERE id = ?",
                (now, now, str(id)),
            )
        if cursor.rowcount == 0:
            raise NoRowsError("no rows in result set")
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),), _feed)

    def unfollow_feed(self, feed_id, user_id) -> FeedFollow:
        params = (str(feed_id), str(user_id))
        with self._conn:
            removed = self._one(
                f"SELECT {_FOLLOW_COLUMNS} FROM feed_follows WHERE feed_id = ? AND user_id = ?",
                params,
                _follow,
            )
            self._conn.execute(
                "DELETE FROM feed_follows WHERE feed_id = ? AND user_id = ?", params
            )
        return removed

    # posts

    def create_post(self, title, url, description, published_at, feed_id) -> None:
        now = _ts(_now())
        with self._conn:
            self._conn.execute(
                "INSERT INTO posts (created_at, updated_at, title, url, description, "
                "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (now, now, title, url, description, _ts(published_at), str(feed_id)),
            )

    def get_posts_for_user(self, user_id, limit: int) -> list[Post]:
        """Return up to ``limit`` posts from feeds the user follows, newest first."""
        if limit < 0:
            raise ValueError("LIMIT must not be negative")
        return self._many(
            "SELECT p.id, p.created_at, p.updated_at, p.title, p.url, p.description, "
            "p.published_at, p.feed_id "
            "FROM posts p JOIN feed_follows ff ON p.feed_id = ff.feed_id "
            "WHERE ff.user_id = ? ORDER BY p.updated_at DESC, p.id DESC LIMIT ?",
            (str(user_id), limit),
            _post,
        )

    # users

    def create_user(self, id, created_at, updated_at, name) -> User:
        with self._conn:
            self._conn.execute(
                "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
                (str(id), _ts(created_at), _ts(updated_at), name),
            )
        return self.get_user_by_id(id)

    def get_user(self, name: str) -> User:
        return self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), _user)

    def get_user_by_id(self, id) -> User:
        return self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(id),), _user)

    def get_users(self) -> list[User]:
        return self._many(f"SELECT {_USER_COLUMNS} FROM users", (), _user)

    def reset(self) -> None:
        """Delete every user, and with them their feeds, follows and posts."""
        with self._conn:
            self._conn.execute("DELETE FROM users")


def open_database(url: str) -> Queries:
    """Open a SQLite database and make sure its tables exist.

    ``url`` is a file path, ``:memory:``, or either prefixed with ``sqlite://``.
    """
    path = url[len("sqlite://"):] if url.startswith("sqlite://") else url
    if not path:
        raise ValueError("database URL names no database")
    queries = Queries(sqlite3.connect(path))
    queries.migrate()
    return queries