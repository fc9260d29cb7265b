"""Reading and writing the user's gator configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


@dataclass
class Config:
    """Connection string and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, str]:
        return {"db_url": self.db_url, "current_user_name": self.current_user_name}

    def set_user(self, username: str) -> None:
        """Make ``username`` the current user and save the configuration."""
        self.current_user_name = username
        write_config(self)


def _string_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read_config(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path`` (the home-directory file by default)."""
    target = Path(path) if path is not None else config_file_path()
    data = json.loads(target.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user_name=_string_field(data, "current_user_name"),
        path=target,
    )


def write_config(config: Config, path: str | Path | None = None) -> None:
    """Save ``config`` as indented JSON."""
    if path is not None:
        target = Path(path)
    elif config.path is not None:
        target = config.path
    else:
        target = config_file_path()
    target.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")