from datetime import timedelta

import pytest

from mediatimeline.settings import (
    ApplicationSettings,
    Mode,
    ServerSettings,
    StatusRefreshSettings,
    load_settings,
    parse_duration,
)

CONFIG = """
[actix]
hosts = [["127.0.0.1", 8080]]
mode = "production"
enable-compression = false
enable-log = true

[application]
timeline-update-frequency = "5 minutes"
timeline-statuses-count = 40

[[application.status-refresh]]
max-age = "1 day"
frequency = "10 minutes"

[[application.status-refresh]]
max-age = "7 days"
frequency = "1 hour"
"""


@pytest.mark.parametrize(
    "text, expected",
    [
        ("30 seconds", timedelta(seconds=30)),
        ("1 second", timedelta(seconds=1)),
        ("45", timedelta(seconds=45)),
        ("5 minutes", timedelta(minutes=5)),
        ("2 hours", timedelta(hours=2)),
        ("3 days", timedelta(days=3)),
    ],
)
def test_parse_duration_units(text, expected):
    assert parse_duration(text) == expected


def test_parse_duration_singular_and_plural_agree():
    assert parse_duration("1 minute") == parse_duration("1 minutes")
    assert parse_duration("1 hour") == parse_duration("60 minutes")
    assert parse_duration("1 day") == parse_duration("24 hours")


def test_parse_duration_spacing_is_optional():
    assert parse_duration("10minutes") == parse_duration("10 minutes")
    assert parse_duration("10   minutes") == parse_duration("10 minutes")


@pytest.mark.parametrize(
    "text", ["", "minutes", "5 weeks", "-5 seconds", " 5 seconds", "5 seconds ", "1.5 hours", "5 Minutes"]
)
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_parse_duration_rejects_non_string():
    with pytest.raises(ValueError):
        parse_duration(300)


def test_parse_duration_rejects_huge_numbers():
    with pytest.raises(ValueError):
        parse_duration("99999999999999999999999 seconds")


def test_application_settings_from_mapping():
    settings = ApplicationSettings.from_mapping(
        {
            "timeline-update-frequency": "2 minutes",
            "timeline-statuses-count": 20,
            "status-refresh": [{"max-age": "1 day", "frequency": "30 minutes"}],
        }
    )
    assert settings.timeline_update_frequency == parse_duration("120 seconds")
    assert settings.timeline_statuses_count == 20
    assert settings.status_refresh == (
        StatusRefreshSettings(
            max_age=parse_duration("1 day"), frequency=parse_duration("30 minutes")
        ),
    )


def test_application_settings_missing_field():
    with pytest.raises(ValueError, match="timeline-statuses-count"):
        ApplicationSettings.from_mapping(
            {"timeline-update-frequency": "2 minutes", "status-refresh": []}
        )


@pytest.mark.parametrize("count", [-1, 70000, "40", True])
def test_application_settings_rejects_bad_count(count):
    with pytest.raises(ValueError):
        ApplicationSettings.from_mapping(
            {
                "timeline-update-frequency": "2 minutes",
                "timeline-statuses-count": count,
                "status-refresh": [],
            }
        )


def test_server_settings_defaults():
    settings = ServerSettings.from_mapping({})
    assert settings == ServerSettings()
    assert settings.mode is Mode.DEVELOPMENT
    assert settings.enable_log is True


def test_server_settings_rejects_bad_mode():
    with pytest.raises(ValueError):
        ServerSettings.from_mapping({"mode": "staging"})


def test_load_settings_reads_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG)
    settings = load_settings(path, environ={})
    assert settings.server.hosts == (("127.0.0.1", 8080),)
    assert settings.server.mode is Mode.PRODUCTION
    assert settings.server.enable_compression is False
    assert settings.application.timeline_statuses_count == 40
    assert [r.max_age for r in settings.application.status_refresh] == [
        parse_duration("1 day"),
        parse_duration("7 days"),
    ]


def test_load_settings_environment_overrides(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG)
    settings = load_settings(
        path,
        environ={"ACTIX_HOSTS": '[["0.0.0.0", 9090], ["localhost", 9091]]', "ACTIX_MODE": "development"},
    )
    assert settings.server.hosts == (("0.0.0.0", 9090), ("localhost", 9091))
    assert settings.server.mode is Mode.DEVELOPMENT


def test_load_settings_bad_environment(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG)
    with pytest.raises(ValueError):
        load_settings(path, environ={"ACTIX_MODE": "nope"})
    with pytest.raises(ValueError):
        load_settings(path, environ={"ACTIX_HOSTS": "[[not toml"})


def test_load_settings_missing_application(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[actix]\nmode = "production"\n')
    with pytest.raises(ValueError, match="application"):
        load_settings(path, environ={})


def test_load_settings_invalid_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("this is = = not toml")
    with pytest.raises(ValueError):
        load_settings(path, environ={})