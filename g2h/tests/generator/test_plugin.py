"""Tests for the generation call boundary and the protoc plugin."""

from pathlib import PurePosixPath

import pytest
from google.protobuf.compiler import plugin_pb2

from g2h.generator.config import GeneratorConfig
from g2h.generator.errors import DescriptorError
from g2h.generator.plugin import GenerationRequest, generate, process


def plugin_request(descriptor_set, parameter=""):
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.proto_file.extend(descriptor_set.file)
    request.file_to_generate.append("protos/hello-world.proto")
    return request


def describe_generate():
    def reports_routes_and_tables(expect, result):
        expect(len(result.routes)) == 4
        expect("hello_world.AuthenticationStatus" in result.tables) == True
        expect("hello_world.DeepNestedMessage.InnerMessage.Level2" in result.tables) == True
        expect(result.sources[0].package) == "hello_world"

    def includes_messages_not_used_by_any_route(expect, result):
        expect("hello_world.NestedEnumTestMessage" in result.registry) == True
        expect("hello_world.DeepNestedMessage.InnerMessage" in result.registry) == True

    def prefixes_output_target(expect, descriptor_set):
        config = GeneratorConfig(output_target=PurePosixPath("gen"))
        result = generate(GenerationRequest.from_descriptor_set(descriptor_set, config=config))
        expect(result.files[0].name) == "gen/protos/hello_world_g2h.py"

    def rejects_unknown_target_files(expect, descriptor_set):
        request = GenerationRequest.from_descriptor_set(descriptor_set, ["missing.proto"])
        with pytest.raises(DescriptorError):
            generate(request)

    def is_deterministic(expect, descriptor_set):
        first = generate(GenerationRequest.from_descriptor_set(descriptor_set))
        second = generate(GenerationRequest.from_descriptor_set(descriptor_set))
        expect(first.files) == second.files


def describe_process():
    def returns_generated_files(expect, descriptor_set, result):
        response = process(plugin_request(descriptor_set))
        expect(response.error) == ""
        expect(len(response.file)) == 1
        expect(response.file[0].name) == "protos/hello_world_g2h.py"
        expect(response.file[0].content) == result.files[0].content
        expect(response.supported_features) == (
            plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
        )

    def applies_parameters(expect, descriptor_set):
        response = process(plugin_request(descriptor_set, "runtime=app.rt,output=out"))
        expect(response.file[0].name) == "out/protos/hello_world_g2h.py"
        expect("from app.rt import (" in response.file[0].content) == True

    def reports_bad_parameters(expect, descriptor_set):
        response = process(plugin_request(descriptor_set, "bogus=1"))
        expect("bogus" in response.error) == True
        expect(len(response.file)) == 0

    def reports_generation_errors(expect, descriptor_set):
        descriptor_set.file[0].enum_type[2].options.allow_alias = False
        response = process(plugin_request(descriptor_set))
        expect("allow_alias" in response.error) == True
        expect(len(response.file)) == 0
