from __future__ import annotations

from typing import Any

import msgpack
import pytest
from inline_snapshot import snapshot

from cachepolicy import (
    CacheOptions,
    CachePolicy,
    InvalidSerializationError,
    ReinitializedError,
    Request,
    Response,
    pack_policy,
    unpack_policy,
)
from tests.conftest import MockedClock


def create_policy(clock: MockedClock, **response_headers: Any) -> CachePolicy:
    return CachePolicy(
        Request(method="GET", url="/", headers={"Host": "example.com", "Accept-Language": "en"}),
        Response(status=200, headers={"Cache-Control": "max-age=60", "ETag": '"v1"', **response_headers}),
        options=CacheOptions(shared=False, cache_heuristic=0.2),
        clock=clock,
    )


class TestToObject:
    def test_record(self, clock: MockedClock) -> None:
        policy = create_policy(clock)

        assert policy.to_object() == snapshot(
            {
                "v": 1,
                "response_time": 1440504001.0,
                "shared": False,
                "cache_heuristic": 0.2,
                "immutable_min_time_to_live": 86400,
                "status": 200,
                "response_headers": {"cache-control": "max-age=60", "etag": '"v1"'},
                "response_cache_control": {"max-age": "60"},
                "method": "GET",
                "url": "/",
                "host": "example.com",
                "no_authorization": True,
                "request_headers": None,
                "request_cache_control": {},
            }
        )

    def test_request_headers_kept_for_vary(self, clock: MockedClock) -> None:
        policy = create_policy(clock, vary="accept-language")

        assert policy.to_object()["request_headers"] == {"host": "example.com", "accept-language": "en"}


class TestFromObject:
    def test_round_trip(self, clock: MockedClock) -> None:
        policy = create_policy(clock, vary="accept-language")

        restored = CachePolicy.from_object(policy.to_object(), clock=clock)

        assert restored.to_object() == policy.to_object()

    def test_restored_policy_behaves_the_same(self, clock: MockedClock) -> None:
        policy = create_policy(clock, vary="accept-language")
        restored = CachePolicy.from_object(policy.to_object(), clock=clock)

        clock.advance(30)

        assert restored.age() == 30
        assert restored.time_to_live() == policy.time_to_live() == 30000
        assert restored.satisfies_without_revalidation(
            Request(method="GET", url="/", headers={"host": "example.com", "accept-language": "en"})
        )
        assert not restored.satisfies_without_revalidation(
            Request(method="GET", url="/", headers={"host": "example.com", "accept-language": "fr"})
        )
        assert restored.revalidation_headers(
            Request(method="GET", url="/", headers={"host": "example.com", "accept-language": "en"})
        ) == {
            "host": "example.com",
            "accept-language": "en",
            "if-none-match": '"v1"',
        }

    def test_missing_immutable_min_time_to_live(self, clock: MockedClock) -> None:
        obj = dict(create_policy(clock, **{"cache-control": "immutable"}).to_object())
        del obj["immutable_min_time_to_live"]

        restored = CachePolicy.from_object(obj, clock=clock)

        assert restored.max_age() == 86400

    @pytest.mark.parametrize("obj", [None, [], "v1", {}, {"v": 2}, {"v": "1"}, {"v": True}, {"v": 1}])
    def test_invalid_serialization(self, obj: Any) -> None:
        with pytest.raises(InvalidSerializationError, match="Invalid serialization"):
            CachePolicy.from_object(obj)

    def test_reinitialized(self, clock: MockedClock) -> None:
        policy = create_policy(clock)

        with pytest.raises(ReinitializedError, match="Reinitialized"):
            policy._from_object(policy.to_object())


class TestMsgpack:
    def test_round_trip(self, clock: MockedClock) -> None:
        policy = create_policy(clock)

        restored = unpack_policy(pack_policy(policy), clock=clock)

        assert restored.to_object() == policy.to_object()
        assert restored.max_age() == 60

    def test_record_is_plain_msgpack(self, clock: MockedClock) -> None:
        policy = create_policy(clock)

        assert msgpack.unpackb(pack_policy(policy)) == policy.to_object()

    @pytest.mark.parametrize("data", [b"", b"\xc1", b"\x92\x01", b"not msgpack", msgpack.packb([1, 2])])
    def test_invalid_bytes(self, data: bytes) -> None:
        with pytest.raises(InvalidSerializationError):
            unpack_policy(data)
