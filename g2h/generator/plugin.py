"""Generation entry points: the pure ``generate`` call and the protoc plugin."""

import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from g2h.proto.bridge import Route
from g2h.proto.codec import CodecRegistry
from g2h.proto.tables import ValueTable

from . import python
from .codec import CodecBuilder
from .config import GeneratorConfig, parse_parameter
from .errors import GenerationError
from .index import DescriptorIndex
from .resolver import EnumResolver
from .routes import RouteBuilder, route_path
from .types import ProtoFile
from .util import module_path

logger = logging.getLogger(__name__)


@dataclass
class GeneratedFile:
    name: str
    content: str


@dataclass
class GenerationRequest:
    """Everything one generation run needs.

    ``files`` must include every imported file; ``files_to_generate`` selects
    the files that get a bridge module (all of them when empty).
    """

    files: list[descriptor_pb2.FileDescriptorProto]
    files_to_generate: list[str] = field(default_factory=list)
    config: GeneratorConfig = field(default_factory=GeneratorConfig)

    @classmethod
    def from_descriptor_set(
        cls,
        descriptor_set: descriptor_pb2.FileDescriptorSet,
        files_to_generate: Iterable[str] = (),
        config: GeneratorConfig | None = None,
    ) -> "GenerationRequest":
        return cls(
            files=list(descriptor_set.file),
            files_to_generate=list(files_to_generate),
            config=config or GeneratorConfig(),
        )

    @classmethod
    def from_plugin_request(cls, request: plugin_pb2.CodeGeneratorRequest) -> "GenerationRequest":
        return cls(
            files=list(request.proto_file),
            files_to_generate=list(request.file_to_generate),
            config=parse_parameter(request.parameter),
        )


@dataclass
class GenerationResult:
    files: list[GeneratedFile]
    routes: list[Route]
    tables: dict[str, ValueTable]
    registry: CodecRegistry
    sources: list[ProtoFile] = field(default_factory=list)


def generate(request: GenerationRequest) -> GenerationResult:
    """Generate bridge modules for the requested files.

    Any error aborts the whole run; no partial result is returned.
    """
    index = DescriptorIndex(request.files)
    targets = request.files_to_generate or list(index.files)
    for name in targets:
        index.file(name)

    config = request.config
    resolver = EnumResolver(index)
    codecs = CodecBuilder(index, resolver, config)

    # Built across all targets at once so conflicts between files are caught.
    services = [service for name in targets for service in index.services_in(name)]
    routes = RouteBuilder(codecs).build(services)

    files: list[GeneratedFile] = []
    for name in targets:
        file_services = index.services_in(name)
        paths = {route_path(s, m) for s in file_services for m in s.methods}
        file_routes = [route for route in routes if route.path in paths]

        roots = [
            message.full_name
            for message in index.messages.values()
            if message.file == name and not message.map_entry
        ]
        roots.extend(route.request.name for route in file_routes)
        roots.extend(route.response.name for route in file_routes)
        codecs.build(roots)
        file_codecs = [
            codecs.registry[message.full_name]
            for message in index.reachable_messages(roots)
            if not message.map_entry
        ]

        content = python.render(
            index.file(name), file_codecs, file_routes, runtime_import=config.runtime_import
        )
        output = str(config.output_target / module_path(name))
        files.append(GeneratedFile(name=output, content=content))
        logger.debug("Generated %s from %s", output, name)

    codecs.check_omit_empty()

    return GenerationResult(
        files=files,
        routes=routes,
        tables=dict(resolver.tables),
        registry=codecs.registry,
        sources=[index.file(name) for name in targets],
    )


def process(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Run generation for a protoc request, reporting failures in the response."""
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    try:
        result = generate(GenerationRequest.from_plugin_request(request))
    except (GenerationError, ValueError) as exc:
        response.error = str(exc)
        return response

    for generated in result.files:
        response_file = response.file.add()
        response_file.name = generated.name
        response_file.content = generated.content
    return response


def main() -> None:
    """protoc-gen-g2h entry point."""
    request = plugin_pb2.CodeGeneratorRequest.FromString(sys.stdin.buffer.read())
    response = process(request)
    sys.stdout.buffer.write(response.SerializeToString())


if __name__ == "__main__":
    main()
