"""Configuration file loading and validation for device-locator."""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import voluptuous as vol
import yaml

from .const import (
    CONFIG_DIRS,
    CONFIG_NAMES,
    DEFAULT_PREFIX,
    MAX_RETRIES,
    REFRESH_INTERVAL,
    REFRESH_JITTER,
)
from .errors import ConfigError
from .models import Credentials
from .publisher import MqttConfig
from .worker import ErrorPolicy

_LOGGER = logging.getLogger(__name__)

non_empty_string = vol.All(vol.Coerce(str), vol.Length(min=1))
optional_string = vol.Any(None, vol.Coerce(str))

MQTT_SCHEMA = vol.Schema(
    {
        vol.Required("broker"): non_empty_string,
        vol.Optional("id", default=""): optional_string,
        vol.Optional("username"): optional_string,
        vol.Optional("password"): optional_string,
        vol.Optional("lwt"): optional_string,
        vol.Optional("prefix"): non_empty_string,
        # Spelling used by older config files
        vol.Optional("preffix"): non_empty_string,
    }
)

ACCOUNT_SCHEMA = vol.Schema(
    {
        vol.Required("username"): non_empty_string,
        vol.Required("password"): non_empty_string,
    }
)

POLLING_SCHEMA = vol.Schema(
    {
        vol.Optional("interval", default=REFRESH_INTERVAL): vol.All(vol.Coerce(float), vol.Range(min=1)),
        vol.Optional("jitter", default=REFRESH_JITTER): vol.All(vol.Coerce(float), vol.Range(min=0)),
        vol.Optional("max_retries", default=MAX_RETRIES): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("on_error", default=ErrorPolicy.FAIL_FAST.value): vol.In([p.value for p in ErrorPolicy]),
    }
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required("mqtt"): MQTT_SCHEMA,
        vol.Required("accounts"): vol.All([ACCOUNT_SCHEMA], vol.Length(min=1)),
        vol.Optional("polling"): vol.Any(None, dict),
    },
    extra=vol.ALLOW_EXTRA,
)


@dataclasses.dataclass(frozen=True)
class PollingConfig:
    interval: float = REFRESH_INTERVAL
    jitter: float = REFRESH_JITTER
    max_retries: int = MAX_RETRIES
    policy: ErrorPolicy = ErrorPolicy.FAIL_FAST


@dataclasses.dataclass(frozen=True)
class Config:
    mqtt: MqttConfig
    accounts: tuple[Credentials, ...]
    polling: PollingConfig = dataclasses.field(default_factory=PollingConfig)


def find_config_file() -> Path | None:
    """Return the first config.yaml/config.yml in the search directories."""
    for directory in CONFIG_DIRS:
        for name in CONFIG_NAMES:
            candidate = Path(directory) / name
            if candidate.is_file():
                return candidate
    return None


def load_config(path: str | Path | None = None) -> Config:
    """
    Load and validate the configuration file.

    When path is None the file is looked up in the current directory and
    then in /etc/device-locator. Keys are case-insensitive.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            raise ConfigError("No configuration file found")
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Can't read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing config file {path}: {e}") from e

    _LOGGER.debug("Loaded configuration from %s", path)
    return parse_config(raw)


def parse_config(raw: dict) -> Config:
    """Validate an already decoded configuration mapping."""
    try:
        data = CONFIG_SCHEMA(_lower_keys(raw))
        polling = POLLING_SCHEMA(data.get("polling") or {})
    except vol.Invalid as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    mqtt = data["mqtt"]
    return Config(
        mqtt=MqttConfig(
            broker=mqtt["broker"],
            client_id=mqtt.get("id") or "",
            username=mqtt.get("username") or None,
            password=mqtt.get("password") or None,
            lwt=mqtt.get("lwt") or None,
            prefix=mqtt.get("prefix") or mqtt.get("preffix") or DEFAULT_PREFIX,
        ),
        accounts=tuple(
            Credentials(account["username"], account["password"]) for account in data["accounts"]
        ),
        polling=PollingConfig(
            interval=polling["interval"],
            jitter=polling["jitter"],
            max_retries=polling["max_retries"],
            policy=ErrorPolicy(polling["on_error"]),
        ),
    )


def _lower_keys(value):
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value
