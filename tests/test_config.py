import json
from pathlib import Path

import pytest

from gator.config import Config, config_file_path, read_config, write_config


def test_config_file_path_is_in_home():
    assert config_file_path() == Path.home() / ".gatorconfig.json"


def test_round_trip(tmp_path):
    target = tmp_path / "cfg.json"
    original = Config(db_url="sqlite://gator.db", current_user_name="alice")
    write_config(original, target)
    loaded = read_config(target)
    assert loaded == original
    assert loaded.path == target


def test_written_keys_match_format(tmp_path):
    target = tmp_path / "cfg.json"
    write_config(Config(db_url="x", current_user_name="bob"), target)
    data = json.loads(target.read_text())
    assert data == {"db_url": "x", "current_user_name": "bob"}
    assert target.read_text().startswith("{\n  ")


def test_missing_fields_default_empty(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text('{"db_url": "abc"}')
    loaded = read_config(target)
    assert loaded.db_url == "abc"
    assert loaded.current_user_name == ""


def test_set_user_persists(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text('{"db_url": "abc", "current_user_name": ""}')
    cfg = read_config(target)
    cfg.set_user("carol")
    assert cfg.current_user_name == "carol"
    assert read_config(target).current_user_name == "carol"
    assert read_config(target).db_url == "abc"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_config(tmp_path / "absent.json")


def test_invalid_json_raises(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text("{not json")
    with pytest.raises(ValueError):
        read_config(target)


def test_wrong_type_raises(tmp_path):
    target = tmp_path / "cfg.json"
    target.write_text('{"db_url": 5}')
    with pytest.raises(ValueError):
        read_config(target)