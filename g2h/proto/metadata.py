"""Translation between RPC call metadata and HTTP headers."""

import base64
import binascii
from collections.abc import Iterable, Mapping

MetadataValue = str | bytes
Metadata = list[tuple[str, MetadataValue]]
Headers = list[tuple[str, str]]

BINARY_SUFFIX = "-bin"

# Owned by the transports; never surfaced as call metadata.
RESERVED_HEADERS = frozenset(
    [
        "connection",
        "content-length",
        "content-type",
        "host",
        "keep-alive",
        "proxy-connection",
        "te",
        "transfer-encoding",
        "upgrade",
        "user-agent",
    ]
)


class MetadataError(RuntimeError):
    """Raised when a header or metadata entry cannot be translated."""


def is_reserved(key: str) -> bool:
    """Check whether a (lower-case) header name belongs to the transport."""
    return key.startswith(":") or key.startswith("grpc-") or key in RESERVED_HEADERS


def _pairs(items: Iterable[tuple[str, MetadataValue]] | Mapping[str, MetadataValue]):
    if hasattr(items, "items"):
        return items.items()
    return items


def to_headers(
    metadata: Iterable[tuple[str, MetadataValue]] | Mapping[str, MetadataValue],
) -> Headers:
    """Convert RPC metadata to HTTP header lines.

    Repeated keys become repeated header lines in their original order.
    Binary (``-bin``) values are sent as unpadded base64.
    """
    headers: Headers = []
    for key, value in _pairs(metadata):
        key = key.lower()
        if is_reserved(key):
            continue

        if key.endswith(BINARY_SUFFIX):
            if isinstance(value, str):
                value = value.encode()
            value = base64.b64encode(value).decode("ascii").rstrip("=")
        elif isinstance(value, bytes):
            raise MetadataError(f"Binary metadata {key} must end with {BINARY_SUFFIX}")

        headers.append((key, value))
    return headers


def from_headers(
    headers: Iterable[tuple[str, str]] | Mapping[str, str],
) -> Metadata:
    """Convert HTTP header lines to RPC metadata.

    Header names are case-insensitive and come out lower-cased. Reserved and
    pseudo headers are dropped.
    """
    metadata: Metadata = []
    for key, value in _pairs(headers):
        key = key.lower()
        if is_reserved(key):
            continue

        if key.endswith(BINARY_SUFFIX):
            padded = value + "=" * (-len(value) % 4)
            try:
                metadata.append((key, base64.b64decode(padded, validate=True)))
            except binascii.Error as exc:
                raise MetadataError(f"Header {key} is not valid base64") from exc
        else:
            metadata.append((key, value))
    return metadata
