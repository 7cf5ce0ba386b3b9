__all__ = ("CachePolicyError", "MissingHeadersError", "InvalidSerializationError", "ReinitializedError")


class CachePolicyError(Exception): ...


class MissingHeadersError(CachePolicyError): ...


class InvalidSerializationError(CachePolicyError): ...


class ReinitializedError(CachePolicyError): ...
