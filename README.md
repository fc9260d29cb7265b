# gator

`gator` is a small command-line RSS aggregator. It keeps users, feeds, follows
and posts in a SQLite database, lets each user follow the feeds they care
about, periodically collects posts from those feeds, and shows the latest
posts on demand. It needs nothing beyond the Python standard library.

## Installation

```
pip install .
```

This installs the `gator` command. `python -m gator.cli` runs the same thing.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home directory.
The file must exist before any command is run:

```json
{
  "db_url": "gator.db",
  "current_user_name": ""
}
```

- `db_url` is the SQLite database: a file path, `:memory:`, or either of those
  prefixed with `sqlite://`. The tables are created on first use.
- `current_user_name` is the user that commands act as. `gator login` and
  `gator register` update it and write the file back.

## Usage

```
gator register <username>     create a user and log in as them
gator login <username>        switch to an existing user
gator users                   list all users, marking the current one
gator reset                   delete all users, with their feeds, follows and posts

gator addfeed <name> <url>    add a feed and follow it as the current user
gator feeds                   list every feed and who added it
gator follow <url>            follow an existing feed
gator following               list the feeds the current user follows
gator unfollow <url>          stop following a feed

gator agg <interval>          collect posts forever, one feed per tick
gator browse [limit]          show the newest posts from followed feeds (default 2)
```

The command exits with status 0 on success and 1 on any error, printing the
reason (for example `Usage: gator follow <feed_url>` or
`Error running command: ...`).

Commands that act for a user (`agg`, `addfeed`, `follow`, `following`,
`unfollow`, `browse`) fail if the current user from the configuration file
does not exist. Registering a name that is already taken fails, as does
logging in as a name that has not been registered.

### Collecting posts

`gator agg` takes a duration such as `30s`, `1m`, `1.5h` or `1h30m` (units
`ns`, `us`, `ms`, `s`, `m`, `h`); it must be positive. It scrapes once at
once and then once every interval. Each round picks the followed feed that
was fetched longest ago (never-fetched feeds first), marks it fetched,
downloads it with the user agent `gator`, and stores each `<item>` as a post.

An item's `pubDate` must be an RFC 1123 date such as
`Mon, 02 Jan 2006 15:04:05 GMT`; the zone name is read but the time is stored
as UTC. A round that fails (network error, bad XML, a date that does not
parse) is dropped and the next tick tries again. Stop `agg` with Ctrl-C.

### Example session

```
gator register alice
gator addfeed "Example News" https://example.com/rss.xml
gator agg 1m
gator browse 5
```

## Library use

The pieces can be used on their own:

- `gator.config`: `Config`, `read_config`, `write_config`, `config_file_path`.
- `gator.database`: `open_database(url)` returns a `Queries` object with typed
  queries (`create_user`, `get_user`, `add_feed`, `create_feed_follow`,
  `get_posts_for_user`, ...); lookups that find nothing raise `NoRowsError`.
- `gator.models`: the frozen records `User`, `Feed`, `FeedFollow`,
  `FeedFollowRow` and `Post`.
- `gator.rss`: `parse_feed(data)` and `fetch_feed(url)` return an `RSSFeed`
  with its `RSSItem`s.
- `gator.commands`: `build_commands()`, the handlers, `parse_duration`, and
  `CommandError`.

## What it does not do

- Storage is SQLite only; `db_url` is not a connection string for a database
  server.
- HTML entities in feed titles and descriptions are stored as they come, not
  unescaped.
- Posts are not de-duplicated: scraping a feed again stores its items again.

## Running the tests

```
pip install ".[test]"
pytest
```