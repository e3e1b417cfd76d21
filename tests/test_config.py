from __future__ import annotations

from datetime import timedelta

import pytest

from sensor_relay.database.config import (
    ALLOWED_STREAM_TABLES,
    Config,
    get_postgres_config,
    parse_number,
    validate_stream_name,
)
from sensor_relay.exceptions import ConfigurationError


@pytest.mark.parametrize(
    "value, default, expected",
    [
        ("100", None, 100.0),
        ("2.5", None, 2.5),
        (42, None, 42.0),
        ("hellothere", None, None),
        ("nan", 5, 5),
        (None, 0, 0),
        ("", 8080, 8080),
    ],
)
def test_parse_number_falls_back_to_default(value, default, expected) -> None:
    assert parse_number(value, default) == expected


def test_config_defaults() -> None:
    config = Config.from_env({})

    assert config.WEBSOCKET_PORT == 8080
    assert config.POLL_INTERVAL_SECONDS == 60
    assert config.lookback == timedelta(days=30)
    assert config.forward_skew == timedelta(minutes=1)
    assert config.stream_tables() == {"temperature": None, "id": None}
    assert config.DEBUG is False


def test_config_keeps_allow_listed_tables() -> None:
    config = Config.from_env({"TEMPERATURE_TABLE": "temperature_readings", "IDS_TABLE": " ids "})

    assert config.stream_tables() == {"temperature": "temperature_readings", "id": "ids"}


def test_config_disables_stream_outside_allow_list() -> None:
    config = Config.from_env(
        {"TEMPERATURE_TABLE": "temperatures; DROP TABLE ids", "IDS_TABLE": "id_scans"}
    )

    assert config.TEMPERATURE_TABLE is None
    assert config.IDS_TABLE == "id_scans"


def test_config_unparsable_numbers_use_defaults() -> None:
    config = Config.from_env({"WEBSOCKET_PORT": "not-a-port", "POLL_INTERVAL_SECONDS": "soon", "DEBUG": "TRUE"})

    assert config.WEBSOCKET_PORT == 8080
    assert config.POLL_INTERVAL_SECONDS == 60
    assert config.DEBUG is True


@pytest.mark.parametrize(
    "env",
    [
        {"LOOKBACK_SECONDS": "0"},
        {"FORWARD_SKEW_SECONDS": "-1"},
        {"POLL_INTERVAL_SECONDS": "0"},
        {"SEND_TIMEOUT_SECONDS": "0"},
    ],
)
def test_config_rejects_invalid_durations(env) -> None:
    with pytest.raises(ConfigurationError):
        Config.from_env(env)


def test_validate_stream_name() -> None:
    for name in ALLOWED_STREAM_TABLES:
        assert validate_stream_name(name) == name
    with pytest.raises(ConfigurationError):
        validate_stream_name("users")


def test_get_postgres_config_direct_and_cloudsql() -> None:
    direct = get_postgres_config(
        Config.from_env({"DATABASE_READ_HOST": "db", "DATABASE_READ_USER": "reader", "DATABASE_READ_DATABASE": "rpi"})
    )
    assert direct == {"host": "db", "port": 5432, "database": "rpi", "user": "reader", "password": ""}

    cloudsql = get_postgres_config(
        Config.from_env({"CLOUDSQL_USE_PROXY": "true", "CLOUDSQL_CONNECTION_NAME": "proj:region:inst"})
    )
    assert cloudsql["use_proxy"] is True
    assert cloudsql["connection_name"] == "proj:region:inst"
    assert cloudsql["use_iam"] is False
