"""Runtime support for g2h generated HTTP/JSON bridges."""

from .bridge import (
    Bridge,
    HttpRequest,
    HttpResponse,
    Route,
    RouteTable,
    RpcCallError,
    RpcReply,
    error_response,
)
from .codec import (
    Cardinality,
    CodecError,
    CodecRegistry,
    EncodeError,
    FieldCodec,
    FieldKind,
    MalformedBody,
    MessageCodec,
    UnknownEnumValue,
)
from .metadata import MetadataError, from_headers, to_headers
from .status import from_http, to_http
from .tables import ValueTable

__all__ = [
    "Bridge",
    "Cardinality",
    "CodecError",
    "CodecRegistry",
    "EncodeError",
    "FieldCodec",
    "FieldKind",
    "HttpRequest",
    "HttpResponse",
    "MalformedBody",
    "MessageCodec",
    "MetadataError",
    "Route",
    "RouteTable",
    "RpcCallError",
    "RpcReply",
    "UnknownEnumValue",
    "ValueTable",
    "error_response",
    "from_headers",
    "from_http",
    "to_headers",
    "to_http",
]
