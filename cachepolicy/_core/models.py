from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, TypedDict, Union


@dataclass
class Request:
    """
    The parts of an HTTP request a cache policy looks at.

    `headers` is required by every policy operation; it is optional here
    only so that a missing map can be reported as `MissingHeadersError`
    rather than as a `TypeError` at construction time.
    """

    method: Optional[str] = None
    url: Optional[str] = None
    headers: Optional[Mapping[str, Any]] = None


@dataclass
class Response:
    status: Optional[int] = None
    headers: Optional[Mapping[str, Any]] = None


class SerializedPolicy(TypedDict, total=False):
    """Version 1 of the persisted policy record."""

    v: int
    response_time: float
    shared: bool
    cache_heuristic: float
    immutable_min_time_to_live: float
    status: int
    response_headers: Dict[str, str]
    response_cache_control: Dict[str, Union[bool, str]]
    method: str
    url: Optional[str]
    host: Optional[str]
    no_authorization: bool
    request_headers: Optional[Dict[str, str]]
    request_cache_control: Dict[str, Union[bool, str]]
