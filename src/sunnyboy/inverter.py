from contextlib import contextmanager
from enum import Enum, IntEnum
from typing import Any, Iterator, NamedTuple

import requests
import structlog

from sunnyboy.auth import AuthenticationError, Session, UnexpectedResponseError, authentication_required
from sunnyboy.config import Config
from sunnyboy.envelope import YieldSample, extract_value, to_samples, unwrap_envelope, unwrap_result

logger = structlog.stdlib.get_logger(__name__)


class DeviceKey:
    """Vendor identifiers of the telemetry channels read through getValues"""

    DEVICE_NAME = "6800_10821E00"
    SERIAL_NUMBER = "6800_00A21E00"
    HEALTH_STATUS = "6180_08214800"
    CURRENT_WATTS = "6100_40263F00"
    TOTAL_YIELD = "6400_00260100"


class Interval(IntEnum):
    """Granularity codes accepted by getLogger"""

    DAILY = 28704
    FIVE_MINUTES = 28672


class HealthClassification(Enum):
    ALM = "alm"
    OFF = "off"
    OK = "ok"
    WRN = "wrn"
    COM_NOK = "com_nok"
    NOT_CONN = "not_conn"
    CONN_SETT = "conn_sett"
    CONN_FAIL = "conn_fail"
    WPS_IS_ACT = "wps_is_act"
    UNKNOWN = "unknown"

    @classmethod
    def from_tag(cls, tag: int) -> "HealthClassification":
        return HEALTH_TAGS.get(tag, cls.UNKNOWN)


HEALTH_TAGS: dict[int, HealthClassification] = {
    35: HealthClassification.ALM,
    303: HealthClassification.OFF,
    307: HealthClassification.OK,
    455: HealthClassification.WRN,
    1719: HealthClassification.COM_NOK,
    1725: HealthClassification.NOT_CONN,
    2130: HealthClassification.CONN_SETT,
    3325: HealthClassification.CONN_FAIL,
    3426: HealthClassification.WPS_IS_ACT,
}


class HealthStatus(NamedTuple):
    tag: int
    classification: HealthClassification

    def __str__(self) -> str:
        return f"{self.classification.value} ({self.tag})"


class DeviceInfo(NamedTuple):
    name: str
    serial_number: int


class InverterTime(NamedTuple):
    unix_seconds: int
    utc_offset_hours: int


class YieldDelta(NamedTuple):
    start: int
    end: int
    watt_count: int


def yield_deltas(samples: list[YieldSample]) -> list[YieldDelta]:
    """Convert a cumulative yield series into production per interval.

    Each delta covers two consecutive samples, so N samples give N - 1 deltas.
    """
    return [
        YieldDelta(start=previous.timestamp, end=current.timestamp, watt_count=current.watt_count - previous.watt_count)
        for previous, current in zip(samples, samples[1:])
    ]


class InverterClient:
    """Client for the inverter's local /dyn/*.json web interface.

    Sessions are immutable values: ``login`` returns a new one and every other
    call takes it explicitly. The inverter limits the number of open sessions,
    so always ``logout`` (or use ``session()``) when done.
    """

    def __init__(self, timeout: float = 30, scheme: str = "http"):
        self._timeout = timeout
        self._scheme = scheme

    @classmethod
    def from_config(cls, config: Config) -> "InverterClient":
        return cls(timeout=config.timeout, scheme=config.scheme)

    def _post(self, session: Session, path: str, body: dict[str, Any]) -> Any:
        url = f"{self._scheme}://{session.host}{path}"
        params = {"sid": session.sid} if session.sid else None
        logger.debug("Posting to inverter", host=session.host, path=path)
        try:
            response = requests.post(url, json=body, params=params, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.warning("Request to inverter failed", host=session.host, path=path, error=str(e))
            raise

    def login(self, host: str, password: str) -> Session:
        """Log in with the "usr" (user) group and return an authenticated session"""
        session = Session(host)
        data = self._post(session, "/dyn/login.json", {"right": "usr", "pass": password})
        result = unwrap_result(data)
        if "sid" not in result:
            raise UnexpectedResponseError("Login response has no sid", result, key="sid")
        sid = result["sid"]
        if not sid:
            logger.error("Login refused by inverter", host=host)
            raise AuthenticationError("Incorrect password")
        logger.info("Logged in to inverter", host=host)
        return session.with_sid(sid)

    @authentication_required
    def logout(self, session: Session) -> None:
        data = self._post(session, "/dyn/logout.json", {})
        result = unwrap_result(data)
        if result.get("isLogin") is not False:
            logger.error("Inverter did not confirm logout", host=session.host, result=result)
            raise UnexpectedResponseError("Logout not confirmed", result, key="isLogin")
        logger.info("Logged out of inverter", host=session.host)

    @contextmanager
    def session(self, host: str, password: str) -> Iterator[Session]:
        """Log in, yield the session and always log out afterwards"""
        session = self.login(host, password)
        try:
            yield session
        except BaseException:
            try:
                self.logout(session)
            except Exception:
                logger.exception("Logout failed while handling another error", host=host)
            raise
        self.logout(session)

    @authentication_required
    def current_time(self, session: Session) -> InverterTime:
        """Return the inverter clock as (unix seconds, UTC offset in hours)"""
        data = self._post(session, "/dyn/getTime.json", {"destDev": []})
        match unwrap_envelope(data):
            case {"tm": tm, "ofs": ofs}:
                return InverterTime(unix_seconds=tm, utc_offset_hours=ofs)
            case other:
                logger.error("Unexpected time payload", payload=other)
                raise UnexpectedResponseError("Unexpected time payload", other)

    def _get_values(self, session: Session, keys: list[str]) -> Any:
        data = self._post(session, "/dyn/getValues.json", {"destDev": [], "keys": keys})
        return unwrap_envelope(data)

    @authentication_required
    def device_info(self, session: Session) -> DeviceInfo:
        payload = self._get_values(session, [DeviceKey.DEVICE_NAME, DeviceKey.SERIAL_NUMBER])
        return DeviceInfo(
            name=extract_value(payload, DeviceKey.DEVICE_NAME),
            serial_number=extract_value(payload, DeviceKey.SERIAL_NUMBER),
        )

    @authentication_required
    def health_status(self, session: Session) -> HealthStatus:
        payload = self._get_values(session, [DeviceKey.HEALTH_STATUS])
        match extract_value(payload, DeviceKey.HEALTH_STATUS):
            case [{"tag": int(tag)}]:
                return HealthStatus(tag=tag, classification=HealthClassification.from_tag(tag))
            case other:
                logger.error("Unexpected health status value", value=other)
                raise UnexpectedResponseError("Unexpected health status value", other, key=DeviceKey.HEALTH_STATUS)

    @authentication_required
    def current_watts(self, session: Session) -> int:
        """Current output in watts. A missing value is reported as 0"""
        payload = self._get_values(session, [DeviceKey.CURRENT_WATTS])
        watts = extract_value(payload, DeviceKey.CURRENT_WATTS)
        if watts is None:
            logger.debug("No current output reported, treating as 0 W", host=session.host)
            return 0
        return watts

    @authentication_required
    def total_yield(self, session: Session) -> int:
        """Total yield to date in watt hours"""
        payload = self._get_values(session, [DeviceKey.TOTAL_YIELD])
        return extract_value(payload, DeviceKey.TOTAL_YIELD)

    def yield_daily(self, session: Session, start_time: int, end_time: int) -> list[YieldSample]:
        return self._yield(session, Interval.DAILY, start_time, end_time)

    def yield_5min(self, session: Session, start_time: int, end_time: int) -> list[YieldSample]:
        return self._yield(session, Interval.FIVE_MINUTES, start_time, end_time)

    @authentication_required
    def _yield(self, session: Session, interval: Interval, start_time: int, end_time: int) -> list[YieldSample]:
        for name, value in (("start_time", start_time), ("end_time", end_time)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer unix timestamp, got {value!r}")
        if start_time < 0:
            raise ValueError(f"start_time must not be negative, got {start_time}")
        if start_time > end_time:
            raise ValueError(f"start_time must not be later than end_time, got {start_time} > {end_time}")

        body = {"destDev": [], "key": int(interval), "tStart": start_time, "tEnd": end_time}
        data = self._post(session, "/dyn/getLogger.json", body)
        samples = to_samples(unwrap_envelope(data))
        logger.debug("Fetched yield series", interval=interval.name, samples=len(samples))
        return samples
