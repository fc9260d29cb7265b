import dataclasses
import uuid
from datetime import datetime, timezone

import pytest

from gator.models import Feed, FeedFollowRow, Post, User

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_equal_users_collapse_in_set():
    uid = uuid.uuid4()
    users = {User(uid, NOW, NOW, "alice"), User(uid, NOW, NOW, "alice")}
    assert len(users) == 1


def test_user_is_frozen():
    user = User(uuid.uuid4(), NOW, NOW, "alice")
    with pytest.raises(dataclasses.FrozenInstanceError):
        user.name = "bob"
    assert user.name == "alice"


def test_feed_last_fetched_defaults_to_none():
    feed = Feed(uuid.uuid4(), NOW, NOW, "news", "http://example.com/rss", uuid.uuid4())
    assert feed.last_fetched is None


def test_follow_row_replace_changes_one_field():
    row = FeedFollowRow(1, NOW, NOW, uuid.uuid4(), uuid.uuid4(), "news", "alice")
    changed = dataclasses.replace(row, feed_name="other")
    assert changed.feed_name == "other"
    assert dataclasses.replace(changed, feed_name="news") == row


def test_post_fields_kept():
    fid = uuid.uuid4()
    post = Post(7, NOW, NOW, "t", "http://example.com/p", "d", NOW, fid)
    assert (post.id, post.title, post.feed_id) == (7, "t", fid)