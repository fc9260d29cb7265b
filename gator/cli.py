"""Command-line entry point for gator."""

from __future__ import annotations

import sqlite3
import sys
from collections.abc import Sequence

from .commands import Command, CommandError, State, build_commands
from .config import read_config
from .database import open_database

# Command name -> (arguments required, usage line).
USAGE = {
    "login": (1, "gator login <username>"),
    "register": (1, "gator register <username>"),
    "reset": (0, "gator reset"),
    "users": (0, "gator users"),
    "agg": (1, "gator agg <interval>"),
    "addfeed": (2, "gator addfeed <feed_name> <feed_url>"),
    "feeds": (0, "gator feeds"),
    "follow": (1, "gator follow <feed_url>"),
    "following": (0, "gator following"),
    "unfollow": (1, "gator unfollow <feed_url>"),
    "browse": (0, "gator browse"),
}


def main(argv: Sequence[str] | None = None) -> int:
    """Run one gator command and return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        config = read_config()
    except (OSError, ValueError) as err:
        print("Error reading config:", err)
        return 1
    try:
        db = open_database(config.db_url)
    except (sqlite3.Error, ValueError) as err:
        print("Error opening database:", err)
        return 1

    with db:
        if not args:
            print("Usage: gator <command> [args...]")
            return 1
        name, rest = args[0], args[1:]
        if name not in USAGE:
            print("Unknown command:", name)
            return 1
        needed, usage = USAGE[name]
        if len(rest) < needed:
            print(f"Usage: {usage}")
            return 1
        try:
            build_commands().run(State(config=config, db=db), Command(name, rest))
        except (CommandError, LookupError, ValueError, OSError, sqlite3.Error) as err:
            print("Error running command:", err)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())