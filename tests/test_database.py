import sqlite3
import uuid
from datetime import datetime, timezone

import pytest

from gator.database import NoRowsError, open_database
from gator.models import Feed

NOW = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


@pytest.fixture
def db():
    queries = open_database(":memory:")
    yield queries
    queries.close()


def make_user(db, name):
    return db.create_user(uuid.uuid4(), NOW, NOW, name)


def make_feed(db, user, name, url):
    return db.add_feed(uuid.uuid4(), NOW, NOW, name, url, user.id)


def test_create_and_get_user(db):
    uid = uuid.uuid4()
    user = db.create_user(uid, NOW, NOW, "alice")
    assert user.id == uid
    assert user.created_at == NOW
    assert db.get_user("alice") == user
    assert db.get_user_by_id(uid) == user


def test_missing_user_raises(db):
    with pytest.raises(NoRowsError):
        db.get_user("nobody")
    with pytest.raises(NoRowsError):
        db.get_user_by_id(uuid.uuid4())


def test_duplicate_user_name_rejected(db):
    make_user(db, "alice")
    with pytest.raises(sqlite3.IntegrityError):
        make_user(db, "alice")


def test_get_users_lists_all(db):
    names = {"alice", "bob", "carol"}
    for name in names:
        make_user(db, name)
    assert {u.name for u in db.get_users()} == names


def test_reset_removes_users_and_feeds(db):
    user = make_user(db, "alice")
    make_feed(db, user, "news", "http://example.com/rss")
    db.reset()
    assert db.get_users() == []
    assert db.get_feeds() == []


def test_add_feed_round_trip(db):
    user = make_user(db, "alice")
    feed = make_feed(db, user, "news", "http://example.com/rss")
    assert isinstance(feed, Feed)
    assert feed.last_fetched is None
    assert feed.user_id == user.id
    assert db.get_feed_by_url("http://example.com/rss") == feed
    assert db.get_feeds() == [feed]


def test_feed_by_unknown_url_raises(db):
    with pytest.raises(NoRowsError):
        db.get_feed_by_url("http://example.com/none")


def test_follow_carries_names(db):
    user = make_user(db, "alice")
    feed = make_feed(db, user, "news", "http://example.com/rss")
    row = db.create_feed_follow(feed.id, user.id)
    assert (row.feed_name, row.user_name) == ("news", "alice")
    assert (row.feed_id, row.user_id) == (feed.id, user.id)
    assert db.get_feed_follows_for_user(user.id) == [row]


def test_follow_twice_rejected(db):
    user = make_user(db, "alice")
    feed = make_feed(db, user, "news", "http://example.com/rss")
    db.create_feed_follow(feed.id, user.id)
    with pytest.raises(sqlite3.IntegrityError):
        db.create_feed_follow(feed.id, user.id)


def test_unfollow(db):
    user = make_user(db, "alice")
    feed = make_feed(db, user, "news", "http://example.com/rss")
    row = db.create_feed_follow(feed.id, user.id)
    removed = db.unfollow_feed(feed.id, user.id)
    assert removed.id == row.id
    assert db.get_feed_follows_for_user(user.id) == []
    with pytest.raises(NoRowsError):
        db.unfollow_feed(feed.id, user.id)


def test_next_feed_prefers_never_fetched(db):
    user = make_user(db, "alice")
    first = make_feed(db, user, "a", "http://example.com/a")
    second = make_feed(db, user, "b", "http://example.com/b")
    db.create_feed_follow(first.id, user.id)
    db.create_feed_follow(second.id, user.id)
    picked = db.get_next_feed_to_fetch(user.id)
    marked = db.mark_feed_fetched(picked.id)
    assert marked.last_fetched is not None
    assert marked.updated_at == marked.last_fetched
    other = db.get_next_feed_to_fetch(user.id)
    assert {picked.id, other.id} == {first.id, second.id}
    assert other.last_fetched is None


def test_next_feed_without_follows_raises(db):
    user = make_user(db, "alice")
    with pytest.raises(NoRowsError):
        db.get_next_feed_to_fetch(user.id)


def test_mark_unknown_feed_raises(db):
    with pytest.raises(NoRowsError):
        db.mark_feed_fetched(uuid.uuid4())


def test_posts_limited_and_only_followed(db):
    user = make_user(db, "alice")
    followed = make_feed(db, user, "a", "http://example.com/a")
    ignored = make_feed(db, user, "b", "http://example.com/b")
    db.create_feed_follow(followed.id, user.id)
    for n in range(3):
        db.create_post(f"t{n}", f"http://example.com/a/{n}", "d", NOW, followed.id)
    db.create_post("x", "http://example.com/b/0", "d", NOW, ignored.id)
    posts = db.get_posts_for_user(user.id, 2)
    assert len(posts) == 2
    assert all(p.feed_id == followed.id for p in posts)
    assert posts[0].published_at == NOW
    everything = db.get_posts_for_user(user.id, 10)
    assert {p.title for p in everything} == {"t0", "t1", "t2"}


def test_negative_limit_rejected(db):
    user = make_user(db, "alice")
    with pytest.raises(ValueError):
        db.get_posts_for_user(user.id, -1)


def test_open_database_file_url(tmp_path):
    target = tmp_path / "gator.db"
    with open_database(f"sqlite://{target}") as db:
        make_user(db, "alice")
    with open_database(str(target)) as db:
        assert db.get_user("alice").name == "alice"


def test_open_database_empty_url():
    with pytest.raises(ValueError):
        open_database("sqlite://")