"""Application and server settings loaded from a TOML file."""

from __future__ import annotations

import enum
import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path

_DURATION_RE = re.compile(
    r"(?P<digits>\d+)\s*(?P<units>seconds?|minutes?|hours?|days?|)"
)
_UNIT_SECONDS = {
    "": 1,
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 3600 * 24,
    "days": 3600 * 24,
}
_DURATION_EXPECTED = (
    'a string of the format "N seconds", "N minutes", "N hours" or "N days" '
    "where N is an integer > 0"
)
_U64_MAX = 2**64 - 1
_U16_MAX = 2**16 - 1


def parse_duration(text):
    """Parse a duration such as ``"5 minutes"`` into a ``timedelta``."""
    if not isinstance(text, str):
        raise ValueError(f"invalid value {text!r}: expected {_DURATION_EXPECTED}")
    match = _DURATION_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid value {text!r}: expected {_DURATION_EXPECTED}")
    digits = int(match["digits"])
    if digits > _U64_MAX:
        raise ValueError(f"number too large in duration {text!r}")
    try:
        return timedelta(seconds=digits * _UNIT_SECONDS[match["units"]])
    except OverflowError as exc:
        raise ValueError(f"duration out of range: {text!r}") from exc


def _u16(value, name):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= _U16_MAX:
        raise ValueError(f"{name} must be between 0 and {_U16_MAX}, got {value}")
    return value


def _bool(value, name):
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    return value


def _mapping(value, name):
    if not isinstance(value, Mapping):
        raise ValueError(f"{name} must be a table, got {value!r}")
    return value


class Mode(enum.Enum):
    """Running mode of the server."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass(frozen=True)
class StatusRefreshSettings:
    """How often statuses younger than ``max_age`` are refreshed."""

    max_age: timedelta
    frequency: timedelta


def _refresh_from_mapping(data):
    data = _mapping(data, "status-refresh entry")
    try:
        return StatusRefreshSettings(
            max_age=parse_duration(data["max-age"]),
            frequency=parse_duration(data["frequency"]),
        )
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r} in status-refresh") from None


@dataclass(frozen=True)
class ApplicationSettings:
    """Settings specific to the timeline application."""

    timeline_update_frequency: timedelta
    timeline_statuses_count: int
    status_refresh: tuple[StatusRefreshSettings, ...] = ()

    @classmethod
    def from_mapping(cls, data):
        """Build the settings from a kebab-case mapping."""
        data = _mapping(data, "application")
        try:
            refresh = data["status-refresh"]
            if isinstance(refresh, (str, bytes)) or not isinstance(refresh, (list, tuple)):
                raise ValueError("status-refresh must be an array of tables")
            return cls(
                timeline_update_frequency=parse_duration(
                    data["timeline-update-frequency"]
                ),
                timeline_statuses_count=_u16(
                    data["timeline-statuses-count"], "timeline-statuses-count"
                ),
                status_refresh=tuple(_refresh_from_mapping(item) for item in refresh),
            )
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r} in application") from None


_DEFAULT_HOSTS = (("0.0.0.0", 9000),)


def _parse_hosts(value):
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise ValueError(f"hosts must be an array of [host, port] pairs, got {value!r}")
    hosts = []
    for entry in value:
        if (
            not isinstance(entry, (list, tuple))
            or len(entry) != 2
            or not isinstance(entry[0], str)
        ):
            raise ValueError(f"invalid host entry {entry!r}")
        hosts.append((entry[0], _u16(entry[1], "port")))
    return tuple(hosts)


@dataclass(frozen=True)
class ServerSettings:
    """Settings of the HTTP server."""

    hosts: tuple[tuple[str, int], ...] = _DEFAULT_HOSTS
    mode: Mode = Mode.DEVELOPMENT
    enable_log: bool = True
    enable_compression: bool = True

    @classmethod
    def from_mapping(cls, data):
        """Build the settings from a kebab-case mapping, using defaults for missing keys."""
        data = _mapping(data, "actix")
        try:
            mode = Mode(data.get("mode", Mode.DEVELOPMENT.value))
        except ValueError:
            raise ValueError(f"invalid mode {data.get('mode')!r}") from None
        return cls(
            hosts=_parse_hosts(data.get("hosts", _DEFAULT_HOSTS)),
            mode=mode,
            enable_log=_bool(data.get("enable-log", True), "enable-log"),
            enable_compression=_bool(
                data.get("enable-compression", True), "enable-compression"
            ),
        )


@dataclass(frozen=True)
class Settings:
    """All settings of the program."""

    application: ApplicationSettings
    server: ServerSettings = field(default_factory=ServerSettings)


def _hosts_from_env(value):
    try:
        parsed = tomllib.loads(f"hosts = {value}")["hosts"]
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"invalid ACTIX_HOSTS value {value!r}") from exc
    return _parse_hosts(parsed)


def load_settings(path="config.toml", environ=None):
    """Read settings from a TOML file, applying ACTIX_HOSTS and ACTIX_MODE overrides."""
    environ = os.environ if environ is None else environ
    try:
        with Path(path).open("rb") as handle:
            document = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"failed to parse settings from {path}: {exc}") from exc

    if "application" not in document:
        raise ValueError("missing table 'application'")
    server = ServerSettings.from_mapping(document.get("actix", {}))
    application = ApplicationSettings.from_mapping(document["application"])

    if "ACTIX_HOSTS" in environ:
        server = replace(server, hosts=_hosts_from_env(environ["ACTIX_HOSTS"]))
    if "ACTIX_MODE" in environ:
        try:
            server = replace(server, mode=Mode(environ["ACTIX_MODE"]))
        except ValueError:
            raise ValueError(f"invalid ACTIX_MODE value {environ['ACTIX_MODE']!r}") from None

    return Settings(application=application, server=server)