"""
Domain models for device-locator.

This module contains pure data classes for credentials, the rotating
session pair and the device readings returned by the Find My iPhone service.
These classes have no dependencies on HTTP, MQTT or asyncio.
"""
from __future__ import annotations

import dataclasses
import logging

from .errors import DecodeError

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Credentials:
    """Username and password for one account."""

    username: str
    password: str = dataclasses.field(repr=False)


@dataclasses.dataclass(frozen=True)
class ServerContext:
    """
    Session id / auth token pair issued by the service.

    Both values rotate on every response and must always travel together,
    so the pair is replaced as a whole, never field by field.
    """

    prs_id: int = 0
    auth_token: str = dataclasses.field(default="", repr=False)

    @property
    def has_session(self) -> bool:
        return self.prs_id > 0


@dataclasses.dataclass(frozen=True)
class DeviceSnapshot:
    """Point-in-time reading of one device."""

    id: str
    name: str
    display_name: str
    battery_level: float
    battery_status: str
    latitude: float | None = None
    longitude: float | None = None
    altitude: float | None = None
    horizontal_accuracy: float | None = None
    vertical_accuracy: float | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclasses.dataclass(frozen=True)
class SessionResponse:
    """Parsed response of initClient / refreshClient."""

    context: ServerContext
    devices: tuple[DeviceSnapshot, ...] = ()

    @classmethod
    def from_json(cls, raw) -> SessionResponse:
        """
        Build a SessionResponse from the decoded JSON body.

        Raises DecodeError when serverContext is missing or malformed.
        """
        if not isinstance(raw, dict):
            raise DecodeError(f"Unexpected response format: {type(raw).__name__}")

        server_context = raw.get("serverContext")
        if not isinstance(server_context, dict):
            raise DecodeError("Response has no serverContext")
        try:
            prs_id = _parse_prs_id(server_context["prsId"])
            auth_token = server_context["authToken"]
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Malformed serverContext: {e}") from e
        if not isinstance(auth_token, str) or not auth_token:
            raise DecodeError("Malformed serverContext: authToken is not a non-empty string")
        context = ServerContext(prs_id=prs_id, auth_token=auth_token)

        content = raw.get("content") or []
        if not isinstance(content, list):
            raise DecodeError("Response content is not a list")

        try:
            devices = tuple(_parse_device(device) for device in content)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(f"Malformed device entry: {e}") from e

        return cls(context=context, devices=devices)


def _parse_device(device: dict) -> DeviceSnapshot:
    """Map a single raw content entry onto a DeviceSnapshot."""
    location = device.get("location")
    snapshot = DeviceSnapshot(
        id=str(device.get("id", "")),
        name=device.get("name") or "",
        display_name=device.get("deviceDisplayName") or "",
        battery_level=float(device.get("batteryLevel") or 0.0),
        battery_status=device.get("batteryStatus") or "",
    )
    if not location or location.get("latitude") is None or location.get("longitude") is None:
        _LOGGER.debug("Device %s reported no location", snapshot.name)
        return snapshot
    return dataclasses.replace(
        snapshot,
        latitude=float(location["latitude"]),
        longitude=float(location["longitude"]),
        altitude=float(location.get("altitude") or 0.0),
        horizontal_accuracy=float(location.get("horizontalAccuracy") or 0.0),
        vertical_accuracy=float(location.get("verticalAccuracy") or 0.0),
    )


def _parse_prs_id(value) -> int:
    """Accept an integer or a decimal string; anything else is malformed."""
    if isinstance(value, bool):
        raise TypeError("prsId is a boolean")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"prsId {value} is not integral")
        return int(value)
    if isinstance(value, (int, str)):
        return int(value)
    raise TypeError(f"prsId has unexpected type {type(value).__name__}")
