"""Tests for Python bridge module generation."""

from g2h.generator import python
from g2h.proto.codec import Cardinality, FieldCodec, FieldKind


def gen_code(content):
    gbl: dict = {}
    exec(compile(content, "<generated>", "exec"), gbl)
    return gbl


def describe_field_codec():
    def renders_only_non_default_arguments(expect):
        codec = FieldCodec("name", FieldKind.SCALAR, "string")
        expect(python._field_codec(codec)) == 'FieldCodec("name", FieldKind.SCALAR, "string")'

    def renders_tables_by_reference(expect, registry):
        codec = registry["hello_world.ConflictTestRequest"].field_named("auth_history")
        expect(python._field_codec(codec)) == (
            'FieldCodec("auth_history", FieldKind.ENUM, "hello_world.AuthenticationStatus", '
            'cardinality=Cardinality.REPEATED, json_name="authHistory", '
            'table=ENUMS["hello_world.AuthenticationStatus"])'
        )

    def renders_map_and_omit_empty_flags(expect, registry):
        metadata = registry["hello_world.ErrorDetail"].field_named("metadata")
        expect('map_key="string"' in python._field_codec(metadata)) == True
        error_code = registry["hello_world.PaymentResponse"].field_named("error_code")
        expect("omit_empty=True" in python._field_codec(error_code)) == True


def describe_render():
    def generates_a_module_per_file(expect, result):
        expect([generated.name for generated in result.files]) == ["protos/hello_world_g2h.py"]
        content = result.files[0].content
        expect(content.startswith('"""HTTP/JSON bridge for protos/hello-world.proto.')) == True
        expect("from g2h.proto import (" in content) == True

    def honors_runtime_import(expect, result):
        route = result.routes[0]
        content = python.render(
            result.sources[0],
            [route.request, route.response],
            [route],
            runtime_import="g2h_runtime",
        )
        expect("from g2h_runtime import (" in content) == True

    def emits_only_referenced_tables(expect, registry):
        tables = python.referenced_tables([registry["hello_world.HelloReply"]])
        expect([table.enum for table in tables]) == ["hello_world.HelloReply.ResponseStatus"]

    def generates_importable_code(expect, result):
        gen = gen_code(result.files[0].content)
        expect(sorted(gen["ROUTES"])) == sorted(route.path for route in result.routes)
        table = gen["ENUMS"]["hello_world.AuthenticationStatus"]
        expect(table.name_of(1)) == "VERIFYING"
        expect(table.value_of("DISCOVER")) == 1
        expect(table.closed) == False

    def generated_codecs_match_in_process_codecs(expect, result):
        gen = gen_code(result.files[0].content)
        for name, codec in result.registry.items():
            expect(gen["CODECS"][name].fields) == codec.fields

    def generated_codecs_translate_enums(expect, result):
        gen = gen_code(result.files[0].content)
        codec = gen["ROUTES"]["/hello_world.EnumTestService/TestEnumConflicts"].request
        message = codec.decode({"paymentStatus": "PENDING", "authStatus": "DISCOVER"})
        expect(message["payment_status"]) == 1
        expect(message["auth_status"]) == 1
        expect(codec.encode(message)["auth_status"]) == "VERIFYING"

    def generated_field_cardinality_survives(expect, result):
        gen = gen_code(result.files[0].content)
        codec = gen["CODECS"]["hello_world.NestedEnumTestMessage"]
        expect(codec.field_named("optional_status").cardinality) == Cardinality.OPTIONAL


def describe_runtime():
    def returns_runtime_modules(expect):
        files = python.runtime()
        expect(sorted(files)) == sorted(python.RUNTIME_FILES)
        expect("class Bridge" in files["bridge.py"]) == True
        expect("from .tables import ValueTable" in files["codec.py"]) == True
