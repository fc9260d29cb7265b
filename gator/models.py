"""Records stored in the gator database."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched: datetime | None = None


@dataclass(frozen=True)
class FeedFollow:
    id: int
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedFollowRow:
    """A follow joined with the names of its feed and user."""

    id: int
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID
    feed_name: str
    user_name: str


@dataclass(frozen=True)
class Post:
    id: int
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str
    published_at: datetime
    feed_id: uuid.UUID