from dataclasses import dataclass, replace
from functools import wraps
from typing import Any, Callable

import structlog

logger = structlog.stdlib.get_logger(__name__)


class InverterAPIError(Exception): ...


class AuthenticationError(InverterAPIError):
    """Raised when login is refused or a call is made without a session id"""

    pass


class UnexpectedResponseError(InverterAPIError):
    """Raised when a decoded response does not have the expected shape"""

    def __init__(self, message: str, fragment: Any = None, key: str | None = None):
        self.fragment = fragment
        self.key = key
        detail = f"{message} (key={key!r}): {fragment!r}" if key else f"{message}: {fragment!r}"
        super().__init__(detail)


@dataclass(frozen=True)
class Session:
    """Holds the inverter host and, once logged in, the session id (sid)"""

    host: str
    sid: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.sid)

    def with_sid(self, sid: str | None) -> "Session":
        return replace(self, sid=sid)

    def __repr__(self) -> str:
        # Keep the sid out of logs and tracebacks
        return f"Session(host={self.host!r}, authenticated={self.is_authenticated})"


def authentication_required(method: Callable):
    @wraps(method)
    def _impl(self, session: Session, *args, **kwargs):
        if not session.is_authenticated:
            logger.error("Authentication required. No session id found", host=session.host)
            raise AuthenticationError("Authentication required. No session id found")
        return method(self, session, *args, **kwargs)

    return _impl
