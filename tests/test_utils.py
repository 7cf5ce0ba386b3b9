import datetime as dt

import time_machine

from cachepolicy import Clock
from cachepolicy._utils import generate_http_date, parse_date, parse_int, round_half_up


def test_parse_date():
    assert parse_date("Tue, 25 Aug 2015 12:00:01 GMT") == 1440504001.0


def test_parse_date_with_offset():
    assert parse_date("Tue, 25 Aug 2015 14:00:01 +0200") == 1440504001.0


def test_parse_invalid_date():
    assert parse_date("not a date") is None
    assert parse_date("") is None
    assert parse_date(None) is None


def test_generate_http_date():
    assert generate_http_date(1440504001) == "Tue, 25 Aug 2015 12:00:01 GMT"


def test_parse_int():
    assert parse_int("3600") == 3600
    assert parse_int(" 60s") == 60
    assert parse_int("-5") == -5
    assert parse_int("soon") is None
    assert parse_int("") is None
    assert parse_int(True) is None
    assert parse_int(None) is None


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(1.4) == 1
    assert round_half_up(0) == 0


@time_machine.travel(dt.datetime(2015, 8, 25, 12, 0, 1, tzinfo=dt.timezone.utc), tick=False)
def test_clock_uses_wall_time():
    assert Clock().now() == 1440504001.0
