from cachepolicy._core._headers import (
    CacheControl as CacheControl,
    DirectiveValue as DirectiveValue,
    Headers as Headers,
    Vary as Vary,
    format_cache_control as format_cache_control,
    parse_cache_control as parse_cache_control,
)
from cachepolicy._core._policy import (
    CacheOptions as CacheOptions,
    CachePolicy as CachePolicy,
    RevalidationResult as RevalidationResult,
    normalize_cargo_cult as normalize_cargo_cult,
)
from cachepolicy._core._serialization import pack_policy as pack_policy, unpack_policy as unpack_policy
from cachepolicy._core.models import (
    Request as Request,
    Response as Response,
    SerializedPolicy as SerializedPolicy,
)

__all__ = (
    ## Policy
    "CacheOptions",
    "CachePolicy",
    "RevalidationResult",
    "normalize_cargo_cult",
    ## Models
    "Request",
    "Response",
    "SerializedPolicy",
    ## Headers
    "CacheControl",
    "DirectiveValue",
    "Headers",
    "Vary",
    "format_cache_control",
    "parse_cache_control",
    ## Serialization
    "pack_policy",
    "unpack_policy",
)
