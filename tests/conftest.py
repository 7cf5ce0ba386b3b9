from __future__ import annotations

import pytest

from cachepolicy import BaseClock
from cachepolicy._utils import generate_http_date

NOW = 1440504001.0  # Tue, 25 Aug 2015 12:00:01 GMT


class MockedClock(BaseClock):
    def __init__(self, now: float = NOW) -> None:
        self.value = now

    def now(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


def http_date(clock: MockedClock, delta: float) -> str:
    """HTTP date `delta` seconds away from the clock's current time."""
    return generate_http_date(clock.now() + delta)


@pytest.fixture()
def clock() -> MockedClock:
    return MockedClock()
