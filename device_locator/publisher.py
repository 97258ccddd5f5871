"""
MQTT publisher for telemetry records.

Owns the broker connection, the last-will topic and paho's network loop,
which reconnects automatically. publish() is safe to call from many workers.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from .const import (
    DEFAULT_PREFIX,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTTS_PORT,
    MQTT_QOS,
    MQTT_CONNECT_TIMEOUT,
    LWT_ONLINE,
    LWT_OFFLINE,
)
from .errors import BrokerConnectionError

_LOGGER = logging.getLogger(__name__)

TLS_SCHEMES = {"ssl", "tls", "mqtts"}
PLAIN_SCHEMES = {"tcp", "mqtt"}


@dataclasses.dataclass(frozen=True)
class MqttConfig:
    """Broker connection parameters."""

    broker: str
    client_id: str = ""
    username: str | None = None
    password: str | None = dataclasses.field(default=None, repr=False)
    lwt: str | None = None
    prefix: str = DEFAULT_PREFIX


def parse_broker(broker: str) -> tuple[str, int, bool]:
    """
    Split a broker address into (host, port, use_tls).

    Accepts tcp://host:port, ssl://host:port and the like, or a bare host[:port].
    """
    if "://" not in broker:
        broker = f"tcp://{broker}"
    parts = urlsplit(broker)
    scheme = parts.scheme.lower()
    if scheme not in TLS_SCHEMES | PLAIN_SCHEMES:
        raise ValueError(f"Unsupported broker scheme: {scheme}")
    if not parts.hostname:
        raise ValueError(f"Broker address has no host: {broker}")
    use_tls = scheme in TLS_SCHEMES
    port = parts.port or (DEFAULT_MQTTS_PORT if use_tls else DEFAULT_MQTT_PORT)
    return parts.hostname, port, use_tls


class MqttPublisher:
    """Publishes telemetry payloads to an MQTT broker."""

    def __init__(self, client: mqtt.Client, cfg: MqttConfig) -> None:
        self._client = client
        self.cfg = cfg

    @classmethod
    async def connect(cls, cfg: MqttConfig, timeout: float = MQTT_CONNECT_TIMEOUT) -> MqttPublisher:
        """
        Connect to the broker and wait for its acknowledgement.

        Raises BrokerConnectionError when the broker is unreachable, refuses
        the connection, or does not answer within timeout seconds.
        """
        try:
            host, port, use_tls = parse_broker(cfg.broker)
        except ValueError as e:
            raise BrokerConnectionError(str(e)) from e

        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=cfg.client_id,
            protocol=mqtt.MQTTv311,
        )
        if use_tls:
            client.tls_set()
        if cfg.username:
            client.username_pw_set(cfg.username, cfg.password or None)
        if cfg.lwt:
            client.will_set(cfg.lwt, LWT_OFFLINE, qos=MQTT_QOS, retain=True)

        loop = asyncio.get_running_loop()
        acknowledged: asyncio.Future = loop.create_future()

        def _resolve(reason_code) -> None:
            if not acknowledged.done():
                acknowledged.set_result(reason_code)

        def _on_connect(c, userdata, flags, reason_code, properties=None):
            if reason_code.is_failure:
                _LOGGER.warning("Broker %s refused connection: %s", cfg.broker, reason_code)
            else:
                _LOGGER.info("Connected to %s", cfg.broker)
                if cfg.lwt:
                    c.publish(cfg.lwt, LWT_ONLINE, qos=MQTT_QOS, retain=True)
            loop.call_soon_threadsafe(_resolve, reason_code)

        def _on_disconnect(c, userdata, flags, reason_code, properties=None):
            if reason_code.is_failure:
                _LOGGER.warning("Disconnected from %s: %s, reconnecting", cfg.broker, reason_code)

        client.on_connect = _on_connect
        client.on_disconnect = _on_disconnect

        try:
            await loop.run_in_executor(None, client.connect, host, port)
        except OSError as e:
            raise BrokerConnectionError(f"Can't connect to {cfg.broker}: {e}") from e

        client.loop_start()
        try:
            reason_code = await asyncio.wait_for(acknowledged, timeout)
        except asyncio.TimeoutError as e:
            client.loop_stop()
            raise BrokerConnectionError(f"No answer from {cfg.broker} within {timeout}s") from e

        if reason_code.is_failure:
            client.loop_stop()
            raise BrokerConnectionError(f"Broker {cfg.broker} refused connection: {reason_code}")

        return cls(client, cfg)

    def publish(self, topic: str, payload: bytes) -> None:
        """Fire-and-forget publish; failures are logged, not raised."""
        try:
            info = self._client.publish(topic, payload, qos=MQTT_QOS, retain=False)
        except ValueError as e:
            _LOGGER.warning("Publish to %s rejected: %s", topic, e)
            return
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            _LOGGER.warning("Publish to %s failed: %s", topic, mqtt.error_string(info.rc))

    async def close(self) -> None:
        """Mark the client offline, disconnect and stop the network loop."""
        if self.cfg.lwt:
            self._client.publish(self.cfg.lwt, LWT_OFFLINE, qos=MQTT_QOS, retain=True)
        self._client.disconnect()
        await asyncio.get_running_loop().run_in_executor(None, self._client.loop_stop)
        _LOGGER.debug("MQTT connection to %s closed", self.cfg.broker)
