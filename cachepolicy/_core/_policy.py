from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from typing_extensions import Self

from cachepolicy._core._headers import (
    CacheControl,
    Headers,
    Vary,
    copy_without_hop_by_hop,
    filter_list_header,
    format_cache_control,
    parse_cache_control,
)
from cachepolicy._core.models import Request, Response, SerializedPolicy
from cachepolicy._exceptions import InvalidSerializationError, MissingHeadersError, ReinitializedError
from cachepolicy._utils import BaseClock, Clock, generate_http_date, parse_date, parse_int, round_half_up

__all__ = (
    "CacheOptions",
    "CachePolicy",
    "RevalidationResult",
    "normalize_cargo_cult",
    "CACHEABLE_BY_DEFAULT_STATUS_CODES",
    "UNDERSTOOD_STATUS_CODES",
)

logger = logging.getLogger("cachepolicy.core.policy")

ONE_DAY = 86_400

# RFC 7231 Section 6.1
CACHEABLE_BY_DEFAULT_STATUS_CODES = (200, 203, 204, 206, 300, 301, 404, 405, 410, 414, 501)

# Partial responses (206) are never understood.
UNDERSTOOD_STATUS_CODES = (200, 203, 204, 300, 301, 302, 303, 307, 308, 404, 405, 410, 414, 501)

# The stored body is reused after a 304, so the fields describing it stay as they were.
EXCLUDED_FROM_REVALIDATION_UPDATE = frozenset({"content-length", "content-encoding", "transfer-encoding", "content-range"})

CARGO_CULT_DIRECTIVES = ("pre-check", "post-check", "no-cache", "no-store", "must-revalidate")

HEURISTIC_EXPIRATION_WARNING = '113 - "rfc7234 5.5.4"'

_WEAK_VALIDATOR = re.compile(r"^\s*W/")


@dataclass
class CacheOptions:
    """
    Configuration options for a cache policy.

    Attributes:
    ----------
    shared : bool
        Whether the policy is evaluated for a shared cache (proxy, CDN)
        or a private one (browser).

        A shared cache refuses `private` responses, requires explicit
        permission to store responses to authenticated requests, honours
        `s-maxage` and `proxy-revalidate`, and never reuses responses that
        set cookies unless they are `public` or `immutable`.

        Default: True

    cache_heuristic : float
        Fraction of the time since `Last-Modified` used as the freshness
        lifetime when the response carries no explicit expiration.

        Default: 0.1 (10%, the value Internet Explorer used)

    immutable_min_time_to_live : float
        Minimum freshness lifetime, in seconds, of responses marked with
        the `immutable` directive and no explicit `max-age`.

        Default: 86400 (one day)

    ignore_cargo_cult : bool
        Treat responses carrying both `pre-check` and `post-check` as if
        their `no-cache`, `no-store`, `must-revalidate`, `Expires` and
        `Pragma` were copy-pasted boilerplate rather than an intent to
        prevent caching.

        Default: False

    Examples:
    --------
    >>> # Browser-like cache
    >>> options = CacheOptions(shared=False)

    >>> # Proxy that ignores legacy anti-caching boilerplate
    >>> options = CacheOptions(ignore_cargo_cult=True)
    """

    shared: bool = True
    cache_heuristic: float = 0.1
    immutable_min_time_to_live: float = ONE_DAY
    ignore_cargo_cult: bool = False


@dataclass(frozen=True)
class RevalidationResult:
    policy: "CachePolicy"
    """Policy to keep in place of the previous one."""

    modified: bool
    """False when the stored body can still be used with the new policy."""

    matches: bool
    """Whether the revalidation response refers to the stored response."""


def normalize_cargo_cult(directives: CacheControl, headers: Headers) -> Tuple[CacheControl, Headers]:
    """
    Strip the legacy anti-caching directives sent alongside `pre-check`/`post-check`.

    Returns cleaned copies; the `Cache-Control` header is rewritten from the
    remaining directives (or removed when none remain) and `Expires` and
    `Pragma` are dropped.
    """
    cleaned_directives = directives.without(CARGO_CULT_DIRECTIVES)
    cleaned_headers = headers.copy()

    cache_control = format_cache_control(cleaned_directives)
    if cache_control is None:
        cleaned_headers.pop("cache-control", None)
    else:
        cleaned_headers["cache-control"] = cache_control

    cleaned_headers.pop("expires", None)
    cleaned_headers.pop("pragma", None)
    return cleaned_directives, cleaned_headers


def _assert_request_has_headers(request: Optional[Request]) -> None:
    if request is None or request.headers is None:
        raise MissingHeadersError("Request headers missing")


def _assert_response_has_headers(response: Optional[Response]) -> None:
    if response is None or response.headers is None:
        raise MissingHeadersError("Response headers missing")


class CachePolicy:
    """
    Caching decisions for one request/response exchange.

    The policy is built once, when the response is received, and never
    changes afterwards. Revalidation produces a new policy.

    Example:
    --------
    >>> policy = CachePolicy(
    ...     Request(method="GET", url="/", headers={}),
    ...     Response(status=200, headers={"cache-control": "max-age=60"}),
    ... )
    >>> policy.storable()
    True
    >>> policy.max_age()
    60
    """

    _response_time: Optional[float] = None

    def __init__(
        self,
        request: Request,
        response: Response,
        options: Optional[CacheOptions] = None,
        clock: Optional[BaseClock] = None,
    ) -> None:
        _assert_response_has_headers(response)
        _assert_request_has_headers(request)
        assert request.headers is not None and response.headers is not None

        options = options if options is not None else CacheOptions()
        self._clock = clock if clock is not None else Clock()

        raw_response_headers = Headers(response.headers)
        response_headers = raw_response_headers
        request_headers = Headers(request.headers)
        response_cache_control = parse_cache_control(response_headers.get("cache-control"))

        if (
            options.ignore_cargo_cult
            and "pre-check" in response_cache_control
            and "post-check" in response_cache_control
        ):
            logger.debug("Ignoring the legacy anti-caching directives sent along with pre-check and post-check.")
            response_cache_control, response_headers = normalize_cargo_cult(response_cache_control, response_headers)

        # HTTP/1.0 caches only understand Pragma.
        if "cache-control" not in raw_response_headers and "no-cache" in raw_response_headers.get("pragma", ""):
            response_cache_control = CacheControl({**response_cache_control, "no-cache": True})

        self._shared = options.shared
        self._cache_heuristic = options.cache_heuristic
        self._immutable_min_ttl = options.immutable_min_time_to_live
        self._status = response.status if response.status is not None else 200
        self._response_headers = response_headers
        self._response_cc = response_cache_control
        self._method = request.method if request.method is not None else "GET"
        self._url = request.url
        self._host = request_headers.get("host")
        self._no_authorization = not request_headers.get("authorization")
        # Request headers are only needed to evaluate Vary.
        self._request_headers = request_headers if response_headers.get("vary") else None
        self._request_cc = parse_cache_control(request_headers.get("cache-control"))
        self._response_time = self._clock.now()

    def now(self) -> float:
        return self._clock.now()

    # Storing

    def storable(self) -> bool:
        """
        Whether the response may be stored at all.

        RFC 7234 Section 3: Storing Responses in Caches
        https://www.rfc-editor.org/rfc/rfc7234#section-3
        """
        reason = self._unstorable_reason()
        if reason is not None:
            logger.debug(f"Cannot store the response because {reason}.")
            return False
        return True

    def _unstorable_reason(self) -> Optional[str]:
        if self._request_cc.present("no-store"):
            return "the request contains the no-store directive"

        if not (
            self._method in ("GET", "HEAD") or (self._method == "POST" and self._has_explicit_expiration())
        ):
            return f"the request method ({self._method}) is not cacheable"

        if self._status not in UNDERSTOOD_STATUS_CODES:
            return f"the response status code ({self._status}) is not understood by the cache"

        if self._response_cc.present("no-store"):
            return "the response contains the no-store directive"

        if self._shared and self._response_cc.present("private"):
            return "a shared cache cannot store a response with the private directive"

        if self._shared and not self._no_authorization and not self._allows_storing_authenticated():
            return "the request is authenticated and the response does not allow a shared cache to store it"

        if not (
            self._response_headers.get("expires")
            or self._response_cc.present("max-age")
            or (self._shared and self._response_cc.present("s-maxage"))
            or self._response_cc.present("public")
            or self._status in CACHEABLE_BY_DEFAULT_STATUS_CODES
        ):
            return "the response has no explicit expiration and its status code is not cacheable by default"

        return None

    def _has_explicit_expiration(self) -> bool:
        return bool(
            (self._shared and self._response_cc.present("s-maxage"))
            or self._response_cc.present("max-age")
            or self._response_headers.get("expires")
        )

    def _allows_storing_authenticated(self) -> bool:
        # RFC 7234 Section 3.2
        return (
            self._response_cc.present("must-revalidate")
            or self._response_cc.present("public")
            or self._response_cc.present("s-maxage")
        )

    # Freshness

    def date(self) -> float:
        """Value of the Date response header, or the time the response was received if it is invalid."""
        server_date = parse_date(self._response_headers.get("date"))
        if server_date is not None:
            return server_date
        assert self._response_time is not None
        return self._response_time

    def age(self) -> float:
        """
        Current age of the response in seconds, may be fractional.

        The Age header reported by upstream caches plus the time the
        response has been resident here.
        """
        assert self._response_time is not None
        age_value = parse_int(self._response_headers.get("age")) or 0
        resident_time = self.now() - self._response_time
        return age_value + resident_time

    def max_age(self) -> float:
        """
        Freshness lifetime in seconds, counted from the response's Date.

        For the remaining lifetime, see `time_to_live`.

        RFC 7234 Section 4.2.1: Calculating Freshness Lifetime
        https://www.rfc-editor.org/rfc/rfc7234#section-4.2.1
        """
        if not self.storable() or self._response_cc.present("no-cache"):
            return 0

        # Shared responses that set cookies are not reused unless they explicitly say so,
        # which is stricter than RFC 7234 requires.
        if (
            self._shared
            and self._response_headers.get("set-cookie")
            and not self._response_cc.present("public")
            and not self._response_cc.present("immutable")
        ):
            return 0

        if self._response_headers.get("vary", "").strip() == "*":
            return 0

        if self._shared:
            if self._response_cc.present("proxy-revalidate"):
                return 0
            if self._response_cc.present("s-maxage"):
                return self._response_cc.get_seconds("s-maxage") or 0

        if self._response_cc.present("max-age"):
            return self._response_cc.get_seconds("max-age") or 0

        default_min_ttl = self._immutable_min_ttl if self._response_cc.present("immutable") else 0

        server_date = self.date()
        if self._response_headers.get("expires"):
            expires = parse_date(self._response_headers["expires"])
            if expires is None or expires < server_date:
                return 0
            return max(default_min_ttl, expires - server_date)

        # RFC 7234 Section 4.2.2: Calculating Heuristic Freshness
        last_modified = parse_date(self._response_headers.get("last-modified"))
        if last_modified is not None and server_date > last_modified:
            return max(default_min_ttl, (server_date - last_modified) * self._cache_heuristic)

        return default_min_ttl

    def time_to_live(self) -> float:
        """Remaining freshness in milliseconds."""
        return max(0, self.max_age() - self.age()) * 1000

    def stale(self) -> bool:
        return self.max_age() <= self.age()

    # Reuse

    def satisfies_without_revalidation(self, request: Request) -> bool:
        """
        Whether the stored response can be served for `request` without contacting the origin.

        RFC 7234 Section 4: Constructing Responses from Caches
        https://www.rfc-editor.org/rfc/rfc7234#section-4
        """
        _assert_request_has_headers(request)
        request_headers = Headers(request.headers)
        request_cc = parse_cache_control(request_headers.get("cache-control"))

        if request_cc.present("no-cache") or "no-cache" in request_headers.get("pragma", ""):
            logger.debug("Cannot reuse the stored response because the request contains the no-cache directive.")
            return False

        # Unparseable values never limit reuse, except for max-stale which then allows nothing.
        max_age = request_cc.get_seconds("max-age")
        if max_age is not None and self.age() > max_age:
            logger.debug("Cannot reuse the stored response because it is older than the request's max-age.")
            return False

        min_fresh = request_cc.get_seconds("min-fresh")
        if min_fresh is not None and self.time_to_live() < 1000 * min_fresh:
            logger.debug("Cannot reuse the stored response because it will not stay fresh for min-fresh seconds.")
            return False

        if self.stale():
            max_stale_seconds = request_cc.get_seconds("max-stale")
            allows_stale = (
                request_cc.present("max-stale")
                and not self._response_cc.present("must-revalidate")
                and (
                    request_cc.is_flag("max-stale")
                    or (max_stale_seconds is not None and max_stale_seconds > self.age() - self.max_age())
                )
            )
            if not allows_stale:
                logger.debug("Cannot reuse the stored response because it is stale.")
                return False

        return self._request_matches(request, request_headers, allow_head_method=False)

    def _request_matches(self, request: Request, request_headers: Headers, allow_head_method: bool) -> bool:
        if self._url and self._url != request.url:
            logger.debug(f"The stored response was received for {self._url}, not for {request.url}.")
            return False

        if self._host != request_headers.get("host"):
            logger.debug("The stored response was received for a different host.")
            return False

        if request.method and self._method != request.method and not (allow_head_method and request.method == "HEAD"):
            logger.debug(f"The stored response was received for a {self._method} request, not {request.method}.")
            return False

        if not self._vary_matches(request_headers):
            logger.debug("The request headers nominated by Vary do not match the stored request.")
            return False

        return True

    def _vary_matches(self, request_headers: Headers) -> bool:
        """
        RFC 7234 Section 4.1: Calculating Secondary Keys with Vary
        https://www.rfc-editor.org/rfc/rfc7234#section-4.1
        """
        vary = self._response_headers.get("vary")
        if not vary:
            return True

        stored_request_headers = self._request_headers if self._request_headers is not None else Headers()
        for name in Vary.from_value(vary).values:
            # A "*" member always fails to match.
            if name == "*":
                return False
            if request_headers.get(name) != stored_request_headers.get(name):
                return False
        return True

    def response_headers(self) -> Headers:
        """
        Headers to send along with the stored body when it is served.

        RFC 7234 Section 4: Constructing Responses from Caches
        https://www.rfc-editor.org/rfc/rfc7234#section-4
        """
        headers = copy_without_hop_by_hop(self._response_headers)
        age = self.age()

        # RFC 7234 Section 5.5.4
        if age > ONE_DAY and not self._has_explicit_expiration() and self.max_age() > ONE_DAY:
            warning = headers.get("warning")
            headers["warning"] = (f"{warning}, " if warning else "") + HEURISTIC_EXPIRATION_WARNING

        headers["age"] = str(round_half_up(age))
        headers["date"] = generate_http_date(self.now())
        return headers

    # Revalidation

    def revalidation_headers(self, request: Request) -> Headers:
        """
        Headers to send to the origin server to revalidate the stored response.

        Allows the server to answer with 304 Not Modified so that the stored
        body can be reused. Hop-by-hop headers are always stripped.

        RFC 7234 Section 4.3.1: Sending a Validation Request
        https://www.rfc-editor.org/rfc/rfc7234#section-4.3.1
        """
        _assert_request_has_headers(request)
        request_headers = Headers(request.headers)
        headers = copy_without_hop_by_hop(request_headers)

        # Range requests are not supported.
        headers.pop("if-range", None)

        if not self._request_matches(request, request_headers, allow_head_method=True) or not self.storable():
            headers.pop("if-none-match", None)
            headers.pop("if-modified-since", None)
            return headers

        etag = self._response_headers.get("etag")
        if etag:
            if_none_match = headers.get("if-none-match")
            headers["if-none-match"] = f"{if_none_match}, {etag}" if if_none_match else etag

        forbids_weak_validators = bool(
            headers.get("accept-ranges")
            or headers.get("if-match")
            or headers.get("if-unmodified-since")
            or (self._method and self._method != "GET")
        )

        if forbids_weak_validators:
            headers.pop("if-modified-since", None)

            if_none_match = headers.get("if-none-match")
            if if_none_match:
                strong_etags, any_left = filter_list_header(if_none_match, _WEAK_VALIDATOR)
                if any_left:
                    headers["if-none-match"] = strong_etags
                else:
                    del headers["if-none-match"]
        elif self._response_headers.get("last-modified") and not headers.get("if-modified-since"):
            headers["if-modified-since"] = self._response_headers["last-modified"]

        return headers

    def revalidated_policy(self, request: Request, response: Response) -> RevalidationResult:
        """
        Combine the stored response with the origin's answer to a revalidation request.

        When the answer refers to the stored response (usually a 304), the
        stored headers are refreshed and the stored body stays valid.
        Otherwise the answer replaces the stored response.

        RFC 7234 Section 4.3.4: Freshening Stored Responses upon Validation
        https://www.rfc-editor.org/rfc/rfc7234#section-4.3.4
        """
        _assert_request_has_headers(request)
        _assert_response_has_headers(response)
        new_headers = Headers(response.headers)

        if not self._validators_match(response.status, new_headers):
            logger.debug("The revalidation response does not match the stored response.")
            return RevalidationResult(
                policy=type(self)(request, response, clock=self._clock),
                # A 304 without matching validators has no body to replace the stored one.
                modified=response.status != 304,
                matches=False,
            )

        logger.debug("The revalidation response matches the stored response, refreshing the stored headers.")
        headers = Headers(
            {
                name: new_headers[name]
                if name in new_headers and name not in EXCLUDED_FROM_REVALIDATION_UPDATE
                else value
                for name, value in self._response_headers.items()
            }
        )
        policy = type(self)(
            Request(method=self._method, url=request.url, headers=request.headers),
            Response(status=self._status, headers=headers),
            options=self._options(),
            clock=self._clock,
        )
        return RevalidationResult(policy=policy, modified=False, matches=True)

    def _validators_match(self, status: Optional[int], new_headers: Headers) -> bool:
        if status is not None and status != 304:
            return False

        stored_etag = self._response_headers.get("etag")
        new_etag = new_headers.get("etag")
        stored_last_modified = self._response_headers.get("last-modified")

        # Strong comparison
        if new_etag and not _WEAK_VALIDATOR.match(new_etag):
            return bool(stored_etag) and _WEAK_VALIDATOR.sub("", stored_etag) == new_etag

        # Weak comparison
        if stored_etag and new_etag:
            return _WEAK_VALIDATOR.sub("", stored_etag) == _WEAK_VALIDATOR.sub("", new_etag)

        if stored_last_modified:
            return stored_last_modified == new_headers.get("last-modified")

        # Nothing to compare, so the response can only match if neither side has validators.
        return not (stored_etag or stored_last_modified or new_etag or new_headers.get("last-modified"))

    def _options(self) -> CacheOptions:
        return CacheOptions(
            shared=self._shared,
            cache_heuristic=self._cache_heuristic,
            immutable_min_time_to_live=self._immutable_min_ttl,
        )

    # Serialization

    def to_object(self) -> SerializedPolicy:
        """Plain, versioned representation of the policy, suitable for JSON or msgpack."""
        assert self._response_time is not None
        return {
            "v": 1,
            "response_time": self._response_time,
            "shared": self._shared,
            "cache_heuristic": self._cache_heuristic,
            "immutable_min_time_to_live": self._immutable_min_ttl,
            "status": self._status,
            "response_headers": self._response_headers.to_dict(),
            "response_cache_control": self._response_cc.to_dict(),
            "method": self._method,
            "url": self._url,
            "host": self._host,
            "no_authorization": self._no_authorization,
            "request_headers": self._request_headers.to_dict() if self._request_headers is not None else None,
            "request_cache_control": self._request_cc.to_dict(),
        }

    @classmethod
    def from_object(cls, obj: Optional[Mapping[str, Any]], clock: Optional[BaseClock] = None) -> Self:
        """Restore a policy from the output of `to_object`."""
        policy = cls.__new__(cls)
        policy._clock = clock if clock is not None else Clock()
        policy._from_object(obj)
        return policy

    def _from_object(self, obj: Optional[Mapping[str, Any]]) -> None:
        if self._response_time is not None:
            raise ReinitializedError("Reinitialized")

        if not isinstance(obj, Mapping):
            raise InvalidSerializationError("Invalid serialization")

        version = obj.get("v")
        loader = None if isinstance(version, bool) else _RECORD_LOADERS.get(version)
        if loader is None:
            raise InvalidSerializationError("Invalid serialization")

        try:
            loader(self, obj)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise InvalidSerializationError("Invalid serialization") from exc

    def _load_v1(self, obj: Mapping[str, Any]) -> None:
        immutable_min_ttl = obj.get("immutable_min_time_to_live")
        request_headers = obj.get("request_headers")

        self._shared = bool(obj["shared"])
        self._cache_heuristic = float(obj["cache_heuristic"])
        self._immutable_min_ttl = float(immutable_min_ttl) if immutable_min_ttl is not None else ONE_DAY
        self._status = int(obj["status"])
        self._response_headers = Headers(obj["response_headers"])
        self._response_cc = CacheControl(obj["response_cache_control"])
        self._method = obj["method"]
        self._url = obj.get("url")
        self._host = obj.get("host")
        self._no_authorization = bool(obj["no_authorization"])
        self._request_headers = Headers(request_headers) if request_headers is not None else None
        self._request_cc = CacheControl(obj["request_cache_control"])
        self._response_time = float(obj["response_time"])


# New record layouts get a new version and loader; existing versions never change shape.
_RECORD_LOADERS: Dict[Any, Callable[[CachePolicy, Mapping[str, Any]], None]] = {
    1: CachePolicy._load_v1,
}
