#!/usr/bin/env python3
"""Print the yield history of the inverter between two unix timestamps.

Usage:
    python yield-history.py <start> <end> [daily|5min]

Example:
    python yield-history.py 1584309600 1584410400 daily
"""

import sys
from datetime import datetime, timezone

import structlog
from sunnyboy.app import configure_logging, get_config
from sunnyboy.inverter import InverterClient, yield_deltas

logger = structlog.stdlib.get_logger(__name__)


def main():
    if len(sys.argv) not in (3, 4):
        print("Usage: python yield-history.py <start> <end> [daily|5min]")
        print("Example: python yield-history.py 1584309600 1584410400 daily")
        sys.exit(1)

    try:
        start_time, end_time = int(sys.argv[1]), int(sys.argv[2])
    except ValueError:
        print("Error: <start> and <end> must be unix timestamps in seconds")
        sys.exit(1)
    granularity = sys.argv[3] if len(sys.argv) == 4 else "daily"
    if granularity not in ("daily", "5min"):
        print(f"Error: unknown granularity {granularity!r}, use daily or 5min")
        sys.exit(1)

    config = get_config()
    if not config:
        print("Error: SUNNYBOY_HOST and SUNNYBOY_PASSWORD environment variables are required")
        sys.exit(1)
    configure_logging(config.log_level)

    client = InverterClient.from_config(config)
    try:
        with client.session(config.host, config.password) as session:
            if granularity == "daily":
                samples = client.yield_daily(session, start_time, end_time)
            else:
                samples = client.yield_5min(session, start_time, end_time)

        if not samples:
            print("No yield data in this range.")
            return

        print(f"\n{len(samples)} {granularity} sample(s):\n")
        for sample in samples:
            stamp = datetime.fromtimestamp(sample.timestamp, tz=timezone.utc).isoformat()
            print(f"{stamp}  {sample.watt_count:>12,} Wh")

        print("-" * 60)
        for delta in yield_deltas(samples):
            start = datetime.fromtimestamp(delta.start, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
            end = datetime.fromtimestamp(delta.end, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
            print(f"{start} → {end}  {delta.watt_count:>8,} Wh")

    except Exception as e:
        logger.exception("Failed to read yield history")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
