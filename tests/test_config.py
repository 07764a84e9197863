from __future__ import annotations

from pathlib import Path

import pytest

from people.config import DEFAULT_CHANNEL, Settings, load_settings


def test_defaults_without_file_or_environment(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml", environ={})

    assert settings.database_path.name == "people.sqlite3"
    assert settings.pool_size == 30
    assert settings.channel == DEFAULT_CHANNEL
    assert settings.backfill is False
    assert settings.log_level == "INFO"


def test_yaml_file_is_read_relative_to_its_directory(tmp_path: Path) -> None:
    config_path = tmp_path / "people.yaml"
    config_path.write_text(
        "database_path: data/store.sqlite3\n"
        "pool_size: 5\n"
        "channel: people_events\n"
        "backfill: true\n"
        "log_level: debug\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path, environ={})

    assert settings.database_path == (tmp_path / "data" / "store.sqlite3").resolve()
    assert settings.pool_size == 5
    assert settings.channel == "people_events"
    assert settings.backfill is True
    assert settings.log_level == "DEBUG"


def test_environment_overrides_file(tmp_path: Path) -> None:
    config_path = tmp_path / "people.yaml"
    config_path.write_text("pool_size: 5\nchannel: from_file\n", encoding="utf-8")
    db_path = tmp_path / "env.sqlite3"

    settings = load_settings(
        config_path,
        environ={
            "PEOPLE_DB_POOL": "12",
            "PEOPLE_DB_PATH": str(db_path),
            "PEOPLE_BACKFILL": "yes",
        },
    )

    assert settings.pool_size == 12
    assert settings.channel == "from_file"
    assert settings.database_path == db_path.resolve()
    assert settings.backfill is True


def test_config_path_from_environment(tmp_path: Path) -> None:
    config_path = tmp_path / "custom.yaml"
    config_path.write_text("channel: custom_channel\n", encoding="utf-8")

    settings = load_settings(environ={"PEOPLE_CONFIG": str(config_path)})

    assert settings.channel == "custom_channel"


@pytest.mark.parametrize(
    "data",
    [
        {"pool_size": 0},
        {"pool_size": "many"},
        {"channel": "drop table;"},
        {"poll_interval": -1},
        {"query_timeout": 0},
        {"backfill": "maybe"},
        {"log_level": "chatty"},
        {"unexpected": 1},
    ],
)
def test_invalid_values_are_rejected(data: dict) -> None:
    with pytest.raises(ValueError):
        Settings.from_dict(data)
