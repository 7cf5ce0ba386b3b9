from cachepolicy._core import (
    CacheControl as CacheControl,
    CacheOptions as CacheOptions,
    CachePolicy as CachePolicy,
    DirectiveValue as DirectiveValue,
    Headers as Headers,
    Request as Request,
    Response as Response,
    RevalidationResult as RevalidationResult,
    SerializedPolicy as SerializedPolicy,
    Vary as Vary,
    format_cache_control as format_cache_control,
    normalize_cargo_cult as normalize_cargo_cult,
    pack_policy as pack_policy,
    parse_cache_control as parse_cache_control,
    unpack_policy as unpack_policy,
)
from cachepolicy._exceptions import (
    CachePolicyError as CachePolicyError,
    InvalidSerializationError as InvalidSerializationError,
    MissingHeadersError as MissingHeadersError,
    ReinitializedError as ReinitializedError,
)
from cachepolicy._utils import BaseClock as BaseClock, Clock as Clock

__all__ = (
    # Policy
    "CacheOptions",
    "CachePolicy",
    "RevalidationResult",
    "normalize_cargo_cult",
    # Models
    "Request",
    "Response",
    "SerializedPolicy",
    # Headers
    "CacheControl",
    "DirectiveValue",
    "Headers",
    "Vary",
    "format_cache_control",
    "parse_cache_control",
    # Serialization
    "pack_policy",
    "unpack_policy",
    # Clocks
    "BaseClock",
    "Clock",
    # Exceptions
    "CachePolicyError",
    "InvalidSerializationError",
    "MissingHeadersError",
    "ReinitializedError",
)
