"""Unwrapping of the inverter's JSON response envelope.

Every endpoint answers with ``{"result": {<key>: <payload>}}``. The name of
the intermediate key varies by device and carries no meaning, so it is
skipped. Value lookups then expect ``{"1": [{"val": ...}]}`` per device key.
"""

from typing import Any, NamedTuple

import structlog

from sunnyboy.auth import UnexpectedResponseError

logger = structlog.stdlib.get_logger(__name__)


class YieldSample(NamedTuple):
    timestamp: int  # unix seconds
    watt_count: int  # cumulative yield at this timestamp


def unwrap_result(response: Any) -> dict[str, Any]:
    """Return the object held under the top-level "result" key"""
    if not isinstance(response, dict) or "result" not in response:
        logger.error("Response has no result", response=response)
        raise UnexpectedResponseError("Response has no result object", response)
    result = response["result"]
    if not isinstance(result, dict):
        logger.error("Result is not an object", result=result)
        raise UnexpectedResponseError("Result is not an object", result)
    return result


def unwrap_envelope(response: Any) -> Any:
    """Skip the single intermediate key and return the payload beneath it"""
    result = unwrap_result(response)
    if len(result) != 1:
        logger.error("Expected exactly one entry in result", entries=len(result))
        raise UnexpectedResponseError("Expected exactly one entry in result", result)
    return next(iter(result.values()))


def extract_value(payload: Any, key: str) -> Any:
    """Look up the "val" stored for a device key.

    The returned value may be None when the inverter has nothing to report.
    """
    if not isinstance(payload, dict):
        raise UnexpectedResponseError("Payload is not an object", payload, key=key)
    entry = payload.get(key)
    match entry:
        case {"1": [{"val": value}]}:
            return value
        case _:
            logger.error("Value not found for device key", key=key, entry=entry)
            raise UnexpectedResponseError("Value not found", entry, key=key)


def to_samples(series: Any) -> list[YieldSample]:
    """Convert a list of {"t": time, "v": value} points, preserving server order"""
    if not isinstance(series, list):
        logger.error("Logger series is not a list", series=series)
        raise UnexpectedResponseError("Logger series is not a list", series)
    samples: list[YieldSample] = []
    for point in series:
        match point:
            case {"t": t, "v": v}:
                samples.append(YieldSample(timestamp=t, watt_count=v))
            case _:
                logger.error("Malformed logger point", point=point)
                raise UnexpectedResponseError("Malformed logger point", point)
    return samples
