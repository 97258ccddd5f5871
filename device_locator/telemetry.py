"""
Mapping of device snapshots onto broker-ready telemetry records.

No network dependencies, these functions are pure data primitives.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import time

from .models import DeviceSnapshot, SessionResponse

_LOGGER = logging.getLogger(__name__)

# '-' is dropped for compatibility with existing topics, the rest are MQTT reserved.
_TOPIC_STRIP = str.maketrans("", "", "-+#/\0")
_RESERVED_STRIP = str.maketrans("", "", "+#/\0")


def destination_key(prefix: str, account: str, display_name: str) -> str:
    """Return the topic for one device, e.g. owntracks/alice/iPhone12."""
    return f"{prefix}/{account.translate(_RESERVED_STRIP)}/{display_name.translate(_TOPIC_STRIP)}"


@dataclasses.dataclass(frozen=True)
class TelemetryRecord:
    """Normalized location message for one device."""

    topic: str
    tst: int
    name: str
    batt: float
    battery_status: str
    lat: float
    lon: float
    alt: float
    acc: float
    vac: float

    @classmethod
    def from_snapshot(cls, topic: str, device: DeviceSnapshot, tst: int) -> TelemetryRecord:
        return cls(
            topic=topic,
            tst=tst,
            name=device.name,
            batt=device.battery_level * 100,
            battery_status=device.battery_status,
            lat=device.latitude,
            lon=device.longitude,
            alt=device.altitude,
            acc=device.horizontal_accuracy,
            vac=device.vertical_accuracy,
        )

    def as_dict(self) -> dict:
        return {
            "_type": "location",
            "tst": self.tst,
            "name": self.name,
            "vac": self.vac,
            "acc": self.acc,
            "lat": self.lat,
            "lon": self.lon,
            "alt": self.alt,
            "batt": self.batt,
        }

    def payload(self) -> bytes:
        return json.dumps(self.as_dict()).encode()


def build_records(
    prefix: str, account: str, response: SessionResponse, now: int | None = None
) -> list[TelemetryRecord]:
    """
    Turn every located device of response into a TelemetryRecord.

    Devices without a location are skipped.
    """
    tst = int(time.time()) if now is None else now
    records = []
    for device in response.devices:
        if not device.has_location:
            _LOGGER.debug("Skipping %s/%s: no location", account, device.display_name)
            continue
        topic = destination_key(prefix, account, device.display_name)
        records.append(TelemetryRecord.from_snapshot(topic, device, tst))
    return records
