"""Maps RPC methods to HTTP routes."""

import logging
from collections.abc import Iterable

from g2h.proto.bridge import Route

from .codec import CodecBuilder
from .errors import RouteConflict
from .types import Service, ServiceMethod

logger = logging.getLogger(__name__)

HTTP_VERB = "POST"


def route_path(service: Service, method: ServiceMethod) -> str:
    """Return the fixed HTTP path of a method: ``/<package>.<Service>/<Method>``."""
    return f"/{service.full_name}/{method.name}"


class RouteBuilder:
    """Builds one POST route per unary method, bound to its message codecs."""

    def __init__(self, codecs: CodecBuilder) -> None:
        self.codecs = codecs

    def build(self, services: Iterable[Service]) -> list[Route]:
        routes: dict[str, Route] = {}
        owners: dict[str, str] = {}

        for service in services:
            for method in service.methods:
                qualified = f"{service.full_name}.{method.name} ({service.file})"
                if method.client_streaming or method.server_streaming:
                    logger.warning("Skipping streaming method %s", qualified)
                    continue

                path = route_path(service, method)
                if path in routes:
                    raise RouteConflict(path, owners[path], qualified)

                registry = self.codecs.build([method.input_type, method.output_type])
                routes[path] = Route(
                    path=path,
                    verb=HTTP_VERB,
                    service=service.full_name,
                    method=method.name,
                    request=registry[method.input_type],
                    response=registry[method.output_type],
                )
                owners[path] = qualified
                logger.debug("Route %s %s -> %s", HTTP_VERB, path, qualified)

        return list(routes.values())
