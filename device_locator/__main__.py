"""
Command line entry point.

Loads the configuration, connects to the broker and runs the supervisor
until SIGINT/SIGTERM (exit 0) or the first account failure (exit 1).
"""
import argparse
import asyncio
import logging
import sys

from .config import load_config
from .errors import AccountFailure, LocatorError
from .publisher import MqttPublisher
from .session import LocationSession
from .supervisor import Supervisor
from .transport import create_http_session

_LOGGER = logging.getLogger("device_locator")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="device-locator",
        description="Publish Find My iPhone device locations to MQTT",
    )
    parser.add_argument("-c", "--config", help="Path to config.yaml (default: ./ then /etc/device-locator/)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def async_main(config) -> int:
    try:
        publisher = await MqttPublisher.connect(config.mqtt)
    except LocatorError as e:
        _LOGGER.error("Can't connect to MQTT server, %s", e)
        return 1

    try:
        http = await create_http_session()
    except LocatorError as e:
        _LOGGER.error("Can't init https client, %s", e)
        await publisher.close()
        return 1

    def session_factory(credentials):
        return LocationSession(credentials.username, http, max_retries=config.polling.max_retries)

    supervisor = Supervisor(
        config.accounts,
        publisher,
        session_factory,
        prefix=config.mqtt.prefix,
        interval=config.polling.interval,
        jitter=config.polling.jitter,
        policy=config.polling.policy,
    )
    supervisor.install_signal_handlers()
    try:
        await supervisor.run()
    except AccountFailure as e:
        _LOGGER.error("Stopped: %s", e)
        return 1
    finally:
        await http.close()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        config = load_config(args.config)
    except LocatorError as e:
        _LOGGER.error("%s", e)
        return 1
    return asyncio.run(async_main(config))


if __name__ == "__main__":
    sys.exit(main())
