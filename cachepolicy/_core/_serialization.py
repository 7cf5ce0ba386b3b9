from __future__ import annotations

from typing import Optional, cast

import msgpack

from cachepolicy._core._policy import CachePolicy
from cachepolicy._exceptions import InvalidSerializationError
from cachepolicy._utils import BaseClock

__all__ = ("pack_policy", "unpack_policy")


def pack_policy(policy: CachePolicy) -> bytes:
    """Encode the versioned policy record with msgpack."""
    return cast(bytes, msgpack.packb(policy.to_object()))


def unpack_policy(data: bytes, clock: Optional[BaseClock] = None) -> CachePolicy:
    """
    Decode bytes produced by `pack_policy`.

    Raises:
        InvalidSerializationError: the bytes are not a msgpack policy record
            of a known version.
    """
    try:
        obj = msgpack.unpackb(data, raw=False)
    except (ValueError, TypeError, msgpack.exceptions.UnpackException) as exc:
        raise InvalidSerializationError("Invalid serialization") from exc
    return CachePolicy.from_object(obj, clock=clock)
