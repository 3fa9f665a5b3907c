"""Mapping between RPC status codes and HTTP status codes."""

import grpc

# grpc-gateway's table; several RPC codes share an HTTP status.
RPC_TO_HTTP: dict[grpc.StatusCode, int] = {
    grpc.StatusCode.OK: 200,
    grpc.StatusCode.CANCELLED: 499,
    grpc.StatusCode.UNKNOWN: 500,
    grpc.StatusCode.INVALID_ARGUMENT: 400,
    grpc.StatusCode.DEADLINE_EXCEEDED: 504,
    grpc.StatusCode.NOT_FOUND: 404,
    grpc.StatusCode.ALREADY_EXISTS: 409,
    grpc.StatusCode.PERMISSION_DENIED: 403,
    grpc.StatusCode.RESOURCE_EXHAUSTED: 429,
    grpc.StatusCode.FAILED_PRECONDITION: 400,
    grpc.StatusCode.ABORTED: 409,
    grpc.StatusCode.OUT_OF_RANGE: 400,
    grpc.StatusCode.UNIMPLEMENTED: 501,
    grpc.StatusCode.INTERNAL: 500,
    grpc.StatusCode.UNAVAILABLE: 503,
    grpc.StatusCode.DATA_LOSS: 500,
    grpc.StatusCode.UNAUTHENTICATED: 401,
}

# Only a best guess: the original RPC code is lost once mapped to HTTP.
HTTP_TO_RPC: dict[int, grpc.StatusCode] = {
    400: grpc.StatusCode.INTERNAL,
    401: grpc.StatusCode.UNAUTHENTICATED,
    403: grpc.StatusCode.PERMISSION_DENIED,
    404: grpc.StatusCode.UNIMPLEMENTED,
    429: grpc.StatusCode.UNAVAILABLE,
    502: grpc.StatusCode.UNAVAILABLE,
    503: grpc.StatusCode.UNAVAILABLE,
    504: grpc.StatusCode.UNAVAILABLE,
}

_CODES_BY_NUMBER: dict[int, grpc.StatusCode] = {code.value[0]: code for code in grpc.StatusCode}


def status_code(code: grpc.StatusCode | int) -> grpc.StatusCode:
    """Normalize a numeric RPC status to a ``grpc.StatusCode``.

    Numbers outside the RPC code space map to UNKNOWN.
    """
    if isinstance(code, grpc.StatusCode):
        return code
    return _CODES_BY_NUMBER.get(code, grpc.StatusCode.UNKNOWN)


def code_number(code: grpc.StatusCode | int) -> int:
    """Return the numeric value of an RPC status."""
    return status_code(code).value[0]


def to_http(code: grpc.StatusCode | int) -> int:
    """Map an RPC status to the HTTP status reported to JSON clients."""
    return RPC_TO_HTTP[status_code(code)]


def from_http(status: int) -> grpc.StatusCode:
    """Guess the RPC status behind an HTTP status, for diagnostics only."""
    if 200 <= status < 300:
        return grpc.StatusCode.OK
    return HTTP_TO_RPC.get(status, grpc.StatusCode.UNKNOWN)
