try:
    import httpx  # noqa: F401
except ImportError as e:
    raise ImportError(
        "httpx is required to use cachepolicy.httpx module. "
        "Please install cachepolicy with the 'httpx' extra, "
        "e.g., 'pip install cachepolicy[httpx]'."
    ) from e


from ._integrations._httpx import httpx_to_internal as httpx_to_internal

__all__ = ("httpx_to_internal",)
