from __future__ import annotations

import re
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Literal,
    Mapping,
    MutableMapping,
    Optional,
    Tuple,
    Union,
)

from cachepolicy._utils import parse_int

__all__ = (
    "CacheControl",
    "DirectiveValue",
    "Headers",
    "Vary",
    "copy_without_hop_by_hop",
    "format_cache_control",
    "parse_cache_control",
)

DirectiveValue = Union[Literal[True], str]
"""`True` for a bare directive (``no-store``), the unquoted value otherwise (``max-age=60``)."""

HOP_BY_HOP_HEADERS = frozenset(
    {
        # Date is replaced when a stored response is served, so it is dropped with the others.
        "date",
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

_LIST_SEPARATOR = re.compile(r"\s*,\s*")
_DIRECTIVE_SEPARATOR = re.compile(r"\s*=\s*")
_HEURISTIC_WARNING = re.compile(r"^\s*1[0-9][0-9]")


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive header map with one value per field.

    Keys are stored lower-cased. List values are joined with ``", "``
    and any other value is converted with ``str()``, so ``{"Age": 60}``
    is the same as ``{"age": "60"}``.
    """

    def __init__(self, headers: Optional[Mapping[str, Any]] = None) -> None:
        self._headers: Dict[str, str] = {}
        for key, value in (headers or {}).items():
            # An absent value means the header is absent.
            if value is not None:
                self[key] = value

    def __getitem__(self, key: str) -> str:
        return self._headers[key.lower()]

    def __setitem__(self, key: str, value: Any) -> None:
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        self._headers[key.lower()] = value if isinstance(value, str) else str(value)

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def copy(self) -> "Headers":
        return Headers(self._headers)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._headers)

    def __repr__(self) -> str:
        return repr(self._headers)

    def __str__(self) -> str:
        return str(self._headers)

    def __eq__(self, other_headers: Any) -> bool:
        if isinstance(other_headers, Headers):
            return self._headers == other_headers._headers
        if isinstance(other_headers, Mapping):
            return self._headers == Headers(other_headers)._headers
        return NotImplemented


class Vary:
    def __init__(self, values: List[str]) -> None:
        self.values = values

    @classmethod
    def from_value(cls, vary_value: str) -> "Vary":
        return Vary([field_name for field_name in _LIST_SEPARATOR.split(vary_value.strip().lower()) if field_name])


class CacheControl(Mapping[str, DirectiveValue]):
    """
    Parsed Cache-Control directives of a request or a response.

    Directive names are lower-cased. A bare directive maps to ``True``,
    a directive with a value maps to that value with surrounding quotes
    removed. Numeric values are kept as text and only interpreted when
    read through `get_seconds`, so an unparseable value never makes
    parsing fail.

    Examples:
    --------
    >>> cc = parse_cache_control('public, max-age="3600"')
    >>> cc["public"]
    True
    >>> cc["max-age"]
    '3600'
    >>> cc.get_seconds("max-age")
    3600
    """

    def __init__(self, directives: Optional[Mapping[str, DirectiveValue]] = None) -> None:
        self._directives: Dict[str, DirectiveValue] = dict(directives or {})

    def __getitem__(self, key: str) -> DirectiveValue:
        return self._directives[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._directives)

    def __len__(self) -> int:
        return len(self._directives)

    def present(self, name: str) -> bool:
        """True when the directive is set as a flag or with a non-empty value."""
        value = self._directives.get(name)
        return value is True or bool(value)

    def is_flag(self, name: str) -> bool:
        return self._directives.get(name) is True

    def get_seconds(self, name: str) -> Optional[int]:
        """Integer value of a delta-seconds directive, None if absent or not a number."""
        return parse_int(self._directives.get(name))

    def without(self, names: Iterable[str]) -> "CacheControl":
        excluded = set(names)
        return CacheControl({k: v for k, v in self._directives.items() if k not in excluded})

    def to_dict(self) -> Dict[str, DirectiveValue]:
        return dict(self._directives)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, CacheControl):
            return self._directives == other._directives
        if isinstance(other, Mapping):
            return self._directives == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {format_cache_control(self) or ''}>"


def _unquote(value: str) -> str:
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def parse_cache_control(value: Optional[str]) -> CacheControl:
    """
    Parse a Cache-Control header from either a request or response.

    Parsing is deliberately lenient: the header is split on commas, each
    part on its first ``=``. Nothing here raises, malformed parts simply
    end up as directives nobody asks for.

    Args:
        value: The Cache-Control header value

    Returns:
        CacheControl object containing all parsed directives

    Examples:
        >>> cc = parse_cache_control("public, max-age=3600, must-revalidate")
        >>> dict(cc)
        {'public': True, 'max-age': '3600', 'must-revalidate': True}

        >>> dict(parse_cache_control("  "))
        {}
    """
    directives: Dict[str, DirectiveValue] = {}

    if not value or not value.strip():
        return CacheControl(directives)

    for part in _LIST_SEPARATOR.split(value.strip()):
        if not part:
            continue
        pieces = _DIRECTIVE_SEPARATOR.split(part, maxsplit=1)
        key = pieces[0].lower()
        # Duplicates are not detected, the last one wins.
        directives[key] = True if len(pieces) == 1 else _unquote(pieces[1])

    return CacheControl(directives)


def format_cache_control(directives: Mapping[str, DirectiveValue]) -> Optional[str]:
    """
    Serialize directives back into a Cache-Control header value.

    Returns None when there is nothing to serialize.

    Examples:
        >>> format_cache_control({"public": True, "max-age": "60"})
        'public, max-age=60'
        >>> format_cache_control({}) is None
        True
    """
    parts = [key if value is True else f"{key}={value}" for key, value in directives.items()]
    if not parts:
        return None
    return ", ".join(parts)


def split_list(value: str) -> List[str]:
    """Split a comma separated header value, dropping the blanks around commas."""
    return _LIST_SEPARATOR.split(value.strip())


def filter_list_header(value: str, drop: "re.Pattern[str]") -> Tuple[str, bool]:
    """
    Remove the comma separated entries matching `drop`.

    Returns the remaining value and whether anything is left.
    """
    kept = [entry for entry in value.split(",") if not drop.match(entry)]
    return ",".join(kept).strip(), bool(kept)


def copy_without_hop_by_hop(headers: Mapping[str, str]) -> Headers:
    """
    Copy headers that are meaningful beyond a single connection.

    Drops the standard hop-by-hop fields, every field nominated by
    ``Connection``, and the 1xx ``Warning`` entries, which describe the
    stored copy and must not be repeated once it is served again.
    """
    copied = Headers({name: value for name, value in headers.items() if name.lower() not in HOP_BY_HOP_HEADERS})

    connection = headers.get("connection")
    if connection:
        for name in split_list(connection):
            copied.pop(name, None)

    warning = copied.get("warning")
    if warning is not None:
        remaining, anything_left = filter_list_header(warning, _HEURISTIC_WARNING)
        if anything_left:
            copied["warning"] = remaining
        else:
            del copied["warning"]

    return copied
