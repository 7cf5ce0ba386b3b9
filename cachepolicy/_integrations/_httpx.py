from __future__ import annotations

from typing import Union, overload

import httpx

from cachepolicy._core.models import Request, Response


@overload
def httpx_to_internal(
    value: httpx.Request,
) -> Request: ...


@overload
def httpx_to_internal(
    value: httpx.Response,
) -> Response: ...


def httpx_to_internal(
    value: Union[httpx.Request, httpx.Response],
) -> Union[Request, Response]:
    """
    Convert httpx.Request/httpx.Response to the records a cache policy reads.

    Repeated header fields are joined with ", ".
    """
    if isinstance(value, httpx.Request):
        return Request(
            method=value.method,
            url=str(value.url),
            headers=dict(value.headers.items()),
        )
    elif isinstance(value, httpx.Response):
        return Response(
            status=value.status_code,
            headers=dict(value.headers.items()),
        )
    raise TypeError(f"Expected httpx.Request or httpx.Response, got {type(value).__name__}")
