from datetime import datetime, timedelta, timezone
import logging
import os
import sys

import structlog

from sunnyboy.config import Config
from sunnyboy.inverter import InverterClient


logger = structlog.stdlib.get_logger(__name__)


def get_config() -> Config | None:
    def get_required_env(key: str, default: str | None = None) -> str:
        value = os.environ.get(key)
        if not value:
            if default:
                return default
            logger.error(f"{key} environment variable is required")
            raise ValueError(f"{key} is required")
        return value

    def get_float_env(key: str, default: str) -> float:
        value = os.environ.get(key, default)
        try:
            return float(value)
        except ValueError:
            logger.error(f"{key} must be a number of seconds, e.g 30")
            raise

    try:
        return Config(
            host=get_required_env("SUNNYBOY_HOST"),
            password=get_required_env("SUNNYBOY_PASSWORD"),
            timeout=get_float_env("SUNNYBOY_TIMEOUT", "30"),
            scheme=get_required_env("SUNNYBOY_SCHEME", "http"),
            log_level=get_required_env("LOG_LEVEL", "INFO"),
        )
    except ValueError:
        return None


def configure_logging(log_level: str):
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper(), logging.INFO))
    )


def format_snapshot(client: InverterClient, session) -> str:
    """Read the current values once and render them for the terminal"""
    device = client.device_info(session)
    health = client.health_status(session)
    clock = client.current_time(session)
    watts = client.current_watts(session)
    total = client.total_yield(session)

    local_time = datetime.fromtimestamp(clock.unix_seconds, tz=timezone(timedelta(hours=clock.utc_offset_hours)))
    lines = [
        f"Inverter {device.name} (serial {device.serial_number})",
        "=" * 40,
        f"Health:        {health}",
        f"Inverter time: {local_time.isoformat()}",
        f"Current power: {watts:,} W",
        f"Total yield:   {total:,} Wh",
    ]
    return "\n".join(lines)


def run():
    config = get_config()
    if not config:
        sys.exit(1)

    configure_logging(config.log_level)

    client = InverterClient.from_config(config)
    try:
        with client.session(config.host, config.password) as session:
            print(format_snapshot(client, session))
    except Exception:
        logger.exception("Reading inverter failed", host=config.host)
        sys.exit(1)


if __name__ == "__main__":
    run()
