from __future__ import annotations

import calendar
import math
import re
import time
import typing as tp
from abc import ABC, abstractmethod
from email.utils import formatdate, parsedate_tz

__all__ = ("BaseClock", "Clock", "parse_date", "generate_http_date", "parse_int", "round_half_up")

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


class BaseClock(ABC):
    """
    Source of the current time, in seconds since the epoch.

    Policies never read the wall clock directly, so tests can
    plug in a fixed or shifted clock.
    """

    @abstractmethod
    def now(self) -> float:
        pass


class Clock(BaseClock):
    def now(self) -> float:
        return time.time()


def parse_date(date: tp.Optional[str]) -> tp.Optional[float]:
    """
    Parse an HTTP date into a POSIX timestamp.

    Returns None when the value is absent or cannot be parsed.
    """
    if not date:
        return None
    parsed = parsedate_tz(date)
    if parsed is None:
        return None
    try:
        timestamp = calendar.timegm(parsed[:6])
    except (ValueError, OverflowError):
        return None
    return float(timestamp - (parsed[9] or 0))


def generate_http_date(timeval: tp.Optional[float] = None) -> str:
    """
    Generate a Date header value for HTTP responses.
    Returns date in RFC 1123 format (required by HTTP/1.1).

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    return formatdate(timeval=timeval, localtime=False, usegmt=True)


def parse_int(value: tp.Union[str, bool, None]) -> tp.Optional[int]:
    """
    Parse the leading integer of a header or directive value.

    Trailing garbage is ignored ("60s" is 60), anything without
    leading digits is None.

    Examples:
        >>> parse_int("3600")
        3600
        >>> parse_int(" 12, 13")
        12
        >>> parse_int("abc") is None
        True
    """
    if not isinstance(value, str):
        return None
    match = _INT_PREFIX.match(value)
    if match is None:
        return None
    return int(match.group(1))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
