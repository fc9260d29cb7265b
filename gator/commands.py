"""The gator commands and the dispatcher that runs them."""

from __future__ import annotations

import contextlib
import functools
import re
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable

from .config import Config
from .database import NoRowsError, Queries
from .models import User
from .rss import fetch_feed

DEFAULT_POST_LIMIT = 2

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_RFC1123 = re.compile(
    "(?:" + "|".join(_WEEKDAYS) + r"), ([0-9]{2}) (" + "|".join(_MONTHS) + r") ([0-9]{4}) "
    r"([0-9]{2}):([0-9]{2}):([0-9]{2}) ([A-Z]{3,5})"
)

_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")
_MAX_NANOSECONDS = 2**63 - 1
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


class CommandError(Exception):
    """A command was used wrongly or cannot be carried out."""


@dataclass
class State:
    config: Config
    db: Queries


@dataclass
class Command:
    name: str
    args: list[str] = field(default_factory=list)


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


@dataclass
class Commands:
    """A table of named command handlers."""

    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        if not cmd.name:
            raise CommandError("No command specified")
        try:
            handler = self.handlers[cmd.name]
        except KeyError:
            raise CommandError(f"Unknown command: {cmd.name}") from None
        handler(state, cmd)


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1m30s"``, ``"1.5h"`` or ``"-300ms"``."""
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total = Fraction(0)
    limit = _MAX_NANOSECONDS + (1 if negative else 0)
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise ValueError(f"invalid duration {text!r}")
        if not unit:
            raise ValueError(f"missing unit in duration {text!r}")
        scale = _DURATION_UNITS.get(unit)
        if scale is None:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        value = Fraction(int(whole or "0"))
        if fraction:
            value += Fraction(int(fraction), 10 ** len(fraction))
        total += value * scale
        if total > limit:
            raise ValueError(f"invalid duration {text!r}")
        pos = match.end()
    microseconds = int(total) // 1000
    return timedelta(microseconds=-microseconds if negative else microseconds)


def _parse_rfc1123(text: str) -> datetime:
    match = _RFC1123.fullmatch(text)
    if match is None:
        raise ValueError(f"cannot parse {text!r} as an RFC 1123 date")
    day, month, year, hour, minute, second, _zone = match.groups()
    return datetime(
        int(year),
        _MONTHS.index(month) + 1,
        int(day),
        int(hour),
        int(minute),
        int(second),
        tzinfo=timezone.utc,
    )


def _format_rfc1123(moment: datetime) -> str:
    zone = moment.tzname() or "UTC"
    return (
        f"{_WEEKDAYS[moment.weekday()]}, {moment.day:02d} {_MONTHS[moment.month - 1]} "
        f"{moment.year:04d} {moment:%H:%M:%S} {zone}"
    )


def _parse_int32(text: str) -> int:
    if not re.fullmatch(r"[+-]?[0-9]+", text):
        raise ValueError(f"invalid number {text!r}")
    value = int(text)
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError(f"number {text!r} out of range")
    return value


def _now() -> datetime:
    return datetime.now(timezone.utc)


def middleware_logged_in(handler: UserHandler) -> Handler:
    """Wrap ``handler`` so that it receives the logged-in user."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        user = state.db.get_user(state.config.current_user_name)
        handler(state, cmd, user)

    return wrapper


def handler_login(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("Expected a username")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except NoRowsError:
        raise CommandError("User does not exist, please register first") from None
    state.config.set_user(name)
    print(f"Username set to {name}")


def handler_register(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("Expected a username")
    name = cmd.args[0]
    with contextlib.suppress(NoRowsError):
        state.db.get_user(name)
        raise CommandError("User already exists")
    now = _now()
    user = state.db.create_user(uuid.uuid4(), now, now, name)
    print(f"User {user.name} registered")
    print(f"ID: {user.id}")
    print(f"Created at: {user.created_at}")
    print(f"Updated at: {user.updated_at}")
    print(f"Name: {user.name}")
    handler_login(state, cmd)


def handler_reset(state: State, cmd: Command) -> None:
    state.db.reset()
    print("Database reset")


def handler_get_users(state: State, cmd: Command) -> None:
    for user in state.db.get_users():
        if user.name == state.config.current_user_name:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")


def handler_agg(state: State, cmd: Command, user: User) -> None:
    """Scrape the user's feeds now and then once every interval, forever."""
    if not cmd.args:
        raise CommandError("Usage: agg <interval>")
    print(f"Collecting feeds every {cmd.args[0]}")
    interval = parse_duration(cmd.args[0]).total_seconds()
    if interval <= 0:
        raise CommandError("interval must be positive")
    next_tick = time.monotonic()
    while True:
        # A failed round is dropped; the next tick tries again.
        with contextlib.suppress(LookupError, OSError, ValueError, sqlite3.Error):
            scrape_feeds(state, cmd, user)
        now = time.monotonic()
        missed = max(0, (now - next_tick) // interval)
        next_tick += (missed + 1) * interval
        time.sleep(max(0.0, next_tick - now))


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError("Usage: addfeed <feed_name> <feed_url>")
    name, url = cmd.args
    now = _now()
    feed = state.db.add_feed(uuid.uuid4(), now, now, name, url, user.id)
    state.db.create_feed_follow(feed.id, user.id)
    current = state.config.current_user_name
    print("Feed added successfully")
    print(f"Feed ID: {feed.id}")
    print(f"Feed CreatedAt: {feed.created_at}")
    print(f"Feed UpdatedAt: {feed.updated_at}")
    print(f"Feed Name: {feed.name}")
    print(f"Feed URL: {feed.url}")
    print(f"Feed User: {current}")
    print(f"Feed UserID: {feed.user_id}")
    print(f"Feed: {feed.name} now followed by {current}")


def handler_get_feeds(state: State, cmd: Command) -> None:
    feeds = state.db.get_feeds()
    if not feeds:
        print("No feeds found")
        return
    print("Feeds:")
    for feed in feeds:
        owner = state.db.get_user_by_id(feed.user_id)
        print(f"Feed Name: {feed.name}")
        print(f"Feed URL: {feed.url}")
        print(f"Feed User: {owner.name}")
        print(f"Feed UserID: {feed.user_id}")


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if not cmd.args:
        raise CommandError("Usage: follow <feed_url>")
    feed = state.db.get_feed_by_url(cmd.args[0])
    follow = state.db.create_feed_follow(feed.id, user.id)
    print(f"Feed Name: {follow.feed_name}")
    print(f"Feed User: {follow.user_name}")


def handler_following(state: State, cmd: Command, user: User) -> None:
    follows = state.db.get_feed_follows_for_user(user.id)
    if not follows:
        print("No feeds followed")
        return
    print("Feeds followed:")
    for follow in follows:
        print(f"Feed Name: {follow.feed_name}")
        print(f"Feed User: {follow.user_name}")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if not cmd.args:
        raise CommandError("Usage: unfollow <feed_url>")
    feed = state.db.get_feed_by_url(cmd.args[0])
    state.db.unfollow_feed(feed.id, user.id)
    print(f"Feed: {feed.name} now unfollowed by {user.name}")


def scrape_feeds(state: State, cmd: Command, user: User) -> None:
    """Fetch the user's least recently fetched feed and store its posts."""
    next_feed = state.db.get_next_feed_to_fetch(user.id)
    state.db.mark_feed_fetched(next_feed.id)
    feed = fetch_feed(next_feed.url)
    for item in feed.items:
        published_at = _parse_rfc1123(item.pub_date)
        state.db.create_post(item.title, item.link, item.description, published_at, next_feed.id)


def handler_get_posts(state: State, cmd: Command, user: User) -> None:
    limit = _parse_int32(cmd.args[0]) if len(cmd.args) == 1 else DEFAULT_POST_LIMIT
    posts = state.db.get_posts_for_user(user.id, limit)
    if not posts:
        print("No posts found")
        return
    print("Posts:")
    for post in posts:
        print(f"Title: {post.title}")
        print(f"Link: {post.url}")
        print(f"Published At: {_format_rfc1123(post.published_at)}")


def build_commands() -> Commands:
    """Return the dispatcher with every gator command registered."""
    commands = Commands()
    table: list[tuple[str, Handler]] = [
        ("login", handler_login),
        ("register", handler_register),
        ("reset", handler_reset),
        ("users", handler_get_users),
        ("agg", middleware_logged_in(handler_agg)),
        ("addfeed", middleware_logged_in(handler_add_feed)),
        ("feeds", handler_get_feeds),
        ("follow", middleware_logged_in(handler_follow)),
        ("following", middleware_logged_in(handler_following)),
        ("unfollow", middleware_logged_in(handler_unfollow)),
        ("browse", middleware_logged_in(handler_get_posts)),
    ]
    for name, handler in table:
        commands.register(name, handler)
    return commands