"""Request-time bridge from HTTP/JSON calls to RPC handlers.

The bridge is independent of any HTTP framework: adapt the framework's
request into an ``HttpRequest`` and write the returned ``HttpResponse`` back.

Example (sync):
    bridge = Bridge(ROUTES)
    bridge.bind_servicer("hello_world.Greeter", GreeterService())
    response = bridge.handle(HttpRequest(path="/hello_world.Greeter/SayHello", body=body))

Example (async):
    response = await bridge.handle(request, async_=True)
"""

import inspect
import json
import logging
from collections.abc import Callable, Coroutine, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, overload

import grpc

from . import status
from .codec import CodecError, MalformedBody, MessageCodec
from .metadata import Headers, Metadata, MetadataError, from_headers, to_headers

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

Handler = Callable[[dict[str, Any], Metadata], Any]


@dataclass(frozen=True)
class Route:
    """One HTTP route bound to an RPC method."""

    path: str
    verb: str
    service: str
    method: str
    request: MessageCodec
    response: MessageCodec


class RouteTable(Mapping[str, Route]):
    """Routes keyed by HTTP path."""

    def __init__(self, routes: Iterable[Route] = ()) -> None:
        self._routes: dict[str, Route] = {}
        for route in routes:
            self.add(route)

    def add(self, route: Route) -> None:
        if route.path in self._routes:
            raise ValueError(f"Route {route.path} already registered")
        self._routes[route.path] = route

    def find(self, service: str, method: str) -> Route | None:
        for route in self._routes.values():
            if route.service == service and route.method == method:
                return route
        return None

    def __getitem__(self, path: str) -> Route:
        return self._routes[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)


@dataclass
class HttpRequest:
    path: str
    method: str = "POST"
    headers: Headers = field(default_factory=list)
    body: bytes = b""


@dataclass
class HttpResponse:
    status: int
    headers: Headers
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class RpcReply:
    """A handler result carrying response metadata alongside the message."""

    message: Mapping[str, Any]
    metadata: Metadata = field(default_factory=list)


class RpcCallError(RuntimeError):
    """Raised by handlers to fail a call with a specific RPC status."""

    def __init__(self, code: grpc.StatusCode | int, message: str = "") -> None:
        super().__init__(message)
        self.code = status.status_code(code)
        self.message = message


def _dumps(payload: Any) -> bytes:
    return json.dumps(payload, allow_nan=False).encode("utf-8")


def error_response(
    code: grpc.StatusCode | int,
    message: str,
    *,
    http_status: int | None = None,
    field: str | None = None,
    headers: Iterable[tuple[str, str]] = (),
) -> HttpResponse:
    """Build the JSON error response for a failed call."""
    code = status.status_code(code)
    body: dict[str, Any] = {
        "code": status.code_number(code),
        "status": code.name,
        "message": message,
    }
    if field:
        body["field"] = field

    return HttpResponse(
        status=http_status or status.to_http(code),
        headers=[("content-type", JSON_CONTENT_TYPE), *headers],
        body=_dumps(body),
    )


class Bridge:
    """Dispatches HTTP/JSON requests to RPC handlers through route codecs.

    Calls share no state, so one bridge may serve any number of concurrent
    requests.
    """

    def __init__(self, routes: RouteTable | Iterable[Route]) -> None:
        self._routes = routes if isinstance(routes, RouteTable) else RouteTable(routes)
        self._handlers: dict[str, Handler] = {}

    @property
    def routes(self) -> RouteTable:
        return self._routes

    def bind(self, service: str, method: str, handler: Handler) -> None:
        """Bind a handler to one RPC method."""
        route = self._routes.find(service, method)
        if route is None:
            raise KeyError(f"No route for {service}/{method}")
        self._handlers[route.path] = handler

    def bind_servicer(self, service: str, servicer: object) -> None:
        """Bind every method of ``servicer`` named after an RPC of ``service``."""
        for route in self._routes.values():
            if route.service != service:
                continue
            handler = getattr(servicer, route.method, None)
            if callable(handler):
                self._handlers[route.path] = handler

    @overload
    def handle(self, request: HttpRequest, *, async_: Literal[False] = False) -> HttpResponse: ...

    @overload
    def handle(
        self, request: HttpRequest, *, async_: Literal[True]
    ) -> Coroutine[Any, Any, HttpResponse]: ...

    def handle(
        self, request: HttpRequest, *, async_: bool = False
    ) -> HttpResponse | Coroutine[Any, Any, HttpResponse]:
        """Handle one HTTP request.

        Args:
            request: The incoming request.
            async_: If True, returns a coroutine that awaits async handlers.

        Returns:
            The HTTP response, or a coroutine for async.
        """
        if async_:
            return self._handle_async(request)

        prepared = self._prepare(request)
        if isinstance(prepared, HttpResponse):
            return prepared
        route, handler, message, metadata = prepared

        try:
            result = handler(message, metadata)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise RuntimeError(f"Handler for {route.path} is async; use async_=True")
        except Exception as exc:
            return self._call_failed(route, exc)

        return self._finish(route, result)

    async def _handle_async(self, request: HttpRequest) -> HttpResponse:
        """Async implementation of handle."""
        prepared = self._prepare(request)
        if isinstance(prepared, HttpResponse):
            return prepared
        route, handler, message, metadata = prepared

        try:
            result = handler(message, metadata)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            return self._call_failed(route, exc)

        return self._finish(route, result)

    def _prepare(
        self, request: HttpRequest
    ) -> HttpResponse | tuple[Route, Handler, dict[str, Any], Metadata]:
        route = self._routes.get(request.path)
        if route is None:
            return error_response(
                grpc.StatusCode.UNIMPLEMENTED,
                f"No route for {request.path}",
                http_status=404,
            )

        if request.method.upper() != route.verb:
            return error_response(
                grpc.StatusCode.UNIMPLEMENTED,
                f"{request.path} only accepts {route.verb}",
                http_status=405,
                headers=[("allow", route.verb)],
            )

        handler = self._handlers.get(route.path)
        if handler is None:
            return error_response(
                grpc.StatusCode.UNIMPLEMENTED, f"{route.service}/{route.method} is not implemented"
            )

        try:
            body = json.loads(request.body) if request.body else {}
        except ValueError:
            return self._decode_failed(
                MalformedBody("request body is not valid JSON", message_type=route.request.name)
            )

        try:
            message = route.request.decode(body)
        except CodecError as exc:
            return self._decode_failed(exc)

        try:
            metadata = from_headers(request.headers)
        except MetadataError as exc:
            return error_response(grpc.StatusCode.INVALID_ARGUMENT, str(exc))

        return route, handler, message, metadata

    def _decode_failed(self, exc: CodecError) -> HttpResponse:
        return error_response(grpc.StatusCode.INVALID_ARGUMENT, str(exc), field=exc.path or None)

    def _call_failed(self, route: Route, exc: Exception) -> HttpResponse:
        if isinstance(exc, RpcCallError):
            return error_response(exc.code, exc.message)

        # grpc.Call errors (e.g. from a stub) expose code() and details().
        if isinstance(exc, grpc.RpcError) and callable(getattr(exc, "code", None)):
            return error_response(exc.code(), exc.details() or "")

        logger.exception("Handler for %s failed", route.path)
        return error_response(grpc.StatusCode.INTERNAL, str(exc) or type(exc).__name__)

    def _finish(self, route: Route, result: Any) -> HttpResponse:
        reply_metadata: Metadata = []
        if isinstance(result, RpcReply):
            reply_metadata = result.metadata
            result = result.message

        try:
            payload = route.response.encode(result if result is not None else {})
            headers = to_headers(reply_metadata)
            body = _dumps(payload)
        except (CodecError, MetadataError, TypeError, ValueError) as exc:
            logger.error("Failed to encode response for %s: %s", route.path, exc)
            return error_response(
                grpc.StatusCode.INTERNAL, str(exc), field=getattr(exc, "path", None) or None
            )

        return HttpResponse(
            status=200,
            headers=[("content-type", JSON_CONTENT_TYPE), *headers],
            body=body,
        )
