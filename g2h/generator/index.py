"""Index of the messages, enums and services in a descriptor set."""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from google.protobuf import descriptor_pb2

from g2h.proto.codec import Cardinality, FieldKind

from .errors import DescriptorError
from .types import (
    EnumType,
    EnumValue,
    Field,
    FieldType,
    MessageType,
    ProtoFile,
    ScopedName,
    Service,
    ServiceMethod,
)
from .util import to_camel_case

logger = logging.getLogger(__name__)

_FieldProto = descriptor_pb2.FieldDescriptorProto

SCALAR_NAMES: dict[int, str] = {
    _FieldProto.TYPE_DOUBLE: "double",
    _FieldProto.TYPE_FLOAT: "float",
    _FieldProto.TYPE_INT64: "int64",
    _FieldProto.TYPE_UINT64: "uint64",
    _FieldProto.TYPE_INT32: "int32",
    _FieldProto.TYPE_FIXED64: "fixed64",
    _FieldProto.TYPE_FIXED32: "fixed32",
    _FieldProto.TYPE_BOOL: "bool",
    _FieldProto.TYPE_STRING: "string",
    _FieldProto.TYPE_BYTES: "bytes",
    _FieldProto.TYPE_UINT32: "uint32",
    _FieldProto.TYPE_SFIXED32: "sfixed32",
    _FieldProto.TYPE_SFIXED64: "sfixed64",
    _FieldProto.TYPE_SINT32: "sint32",
    _FieldProto.TYPE_SINT64: "sint64",
}

_MESSAGE_TYPES = frozenset([_FieldProto.TYPE_MESSAGE, _FieldProto.TYPE_GROUP])

OMIT_EMPTY_PATTERN = re.compile(r"omitted\s+(?:if|when)\s+empty", re.IGNORECASE)

# Source location paths address declarations by descriptor field number.
_FILE_MESSAGE = descriptor_pb2.FileDescriptorProto.MESSAGE_TYPE_FIELD_NUMBER
_FILE_ENUM = descriptor_pb2.FileDescriptorProto.ENUM_TYPE_FIELD_NUMBER
_FILE_SERVICE = descriptor_pb2.FileDescriptorProto.SERVICE_FIELD_NUMBER
_MESSAGE_FIELD = descriptor_pb2.DescriptorProto.FIELD_FIELD_NUMBER
_MESSAGE_NESTED = descriptor_pb2.DescriptorProto.NESTED_TYPE_FIELD_NUMBER
_MESSAGE_ENUM = descriptor_pb2.DescriptorProto.ENUM_TYPE_FIELD_NUMBER
_ENUM_VALUE = descriptor_pb2.EnumDescriptorProto.VALUE_FIELD_NUMBER
_SERVICE_METHOD = descriptor_pb2.ServiceDescriptorProto.METHOD_FIELD_NUMBER


@dataclass
class _FileContext:
    name: str
    package: str
    syntax: str
    comments: dict[tuple[int, ...], str]

    def comment(self, path: tuple[int, ...]) -> str | None:
        return self.comments.get(path)


def _comments(info: descriptor_pb2.SourceCodeInfo) -> dict[tuple[int, ...], str]:
    comments: dict[tuple[int, ...], str] = {}
    for location in info.location:
        text = (location.leading_comments or location.trailing_comments).strip()
        if text:
            comments[tuple(location.path)] = text
    return comments


def _cardinality(proto: descriptor_pb2.FieldDescriptorProto, syntax: str) -> Cardinality:
    if proto.label == _FieldProto.LABEL_REPEATED:
        return Cardinality.REPEATED
    if proto.proto3_optional or proto.HasField("oneof_index"):
        return Cardinality.OPTIONAL
    if syntax == "proto2" and proto.label == _FieldProto.LABEL_OPTIONAL:
        return Cardinality.OPTIONAL
    return Cardinality.SINGULAR


class DescriptorIndex:
    """Lookup tables for every declaration in a set of file descriptors.

    Messages and enums are keyed by fully-qualified scoped name, so nested
    declarations sharing a bare name in different scopes stay distinct.
    The input must include every imported file.
    """

    def __init__(self, files: Iterable[descriptor_pb2.FileDescriptorProto]) -> None:
        self.files: dict[str, ProtoFile] = {}
        self.messages: dict[str, MessageType] = {}
        self.enums: dict[str, EnumType] = {}
        self.services: list[Service] = []
        self._pending: list[tuple[MessageType, Field, descriptor_pb2.FieldDescriptorProto]] = []

        for file in files:
            self._add_file(file)
        self._link()

        logger.debug(
            "Indexed %d files: %d messages, %d enums, %d services",
            len(self.files),
            len(self.messages),
            len(self.enums),
            len(self.services),
        )

    @classmethod
    def from_descriptor_set(
        cls, descriptor_set: descriptor_pb2.FileDescriptorSet
    ) -> "DescriptorIndex":
        return cls(descriptor_set.file)

    def message(self, name: str) -> MessageType:
        try:
            return self.messages[name.lstrip(".")]
        except KeyError:
            raise DescriptorError(f"Unknown message type {name}") from None

    def enum(self, name: str) -> EnumType:
        try:
            return self.enums[name.lstrip(".")]
        except KeyError:
            raise DescriptorError(f"Unknown enum type {name}") from None

    def file(self, name: str) -> ProtoFile:
        try:
            return self.files[name]
        except KeyError:
            raise DescriptorError(f"Unknown file {name}") from None

    def file_for(self, type_name: str) -> ProtoFile:
        """Return the file declaring a message or enum."""
        name = type_name.lstrip(".")
        declaration = self.messages.get(name) or self.enums.get(name)
        if declaration is None:
            raise DescriptorError(f"Unknown type {type_name}")
        return self.files[declaration.file]

    def services_in(self, file_name: str) -> list[Service]:
        return [service for service in self.services if service.file == file_name]

    def reachable_messages(self, roots: Iterable[str]) -> list[MessageType]:
        """Return the messages reachable through fields from ``roots``.

        Roots come first, then dependencies in first-visit order.
        """
        seen: dict[str, MessageType] = {}
        stack = [self.message(name) for name in reversed(list(roots))]
        while stack:
            message = stack.pop()
            if message.full_name in seen:
                continue
            seen[message.full_name] = message
            for field in reversed(message.fields):
                value_type = field.value_type
                if value_type.kind is FieldKind.MESSAGE and value_type.name not in seen:
                    stack.append(self.message(value_type.name))
        return list(seen.values())

    def _check_unique(self, scope: ScopedName, kind: str) -> None:
        name = scope.full_name
        if name in self.messages or name in self.enums:
            raise DescriptorError(f"Duplicate {kind} {name}")

    def _add_file(self, proto: descriptor_pb2.FileDescriptorProto) -> None:
        if proto.name in self.files:
            raise DescriptorError(f"Duplicate file {proto.name}")

        ctx = _FileContext(
            name=proto.name,
            package=proto.package,
            syntax=proto.syntax or "proto2",
            comments=_comments(proto.source_code_info),
        )
        file = ProtoFile(
            name=proto.name,
            package=proto.package,
            syntax=ctx.syntax,
            dependencies=list(proto.dependency),
        )
        self.files[proto.name] = file

        for i, message in enumerate(proto.message_type):
            scope = ScopedName(proto.package, (message.name,))
            self._add_message(message, scope, (_FILE_MESSAGE, i), ctx)
            file.messages.append(scope.full_name)

        for i, enum in enumerate(proto.enum_type):
            scope = ScopedName(proto.package, (enum.name,))
            self._add_enum(enum, scope, (_FILE_ENUM, i), ctx)
            file.enums.append(scope.full_name)

        for i, service in enumerate(proto.service):
            self._add_service(service, (_FILE_SERVICE, i), ctx)
            file.services.append(ScopedName(proto.package, (service.name,)).full_name)

    def _add_message(
        self,
        proto: descriptor_pb2.DescriptorProto,
        scope: ScopedName,
        location: tuple[int, ...],
        ctx: _FileContext,
    ) -> None:
        self._check_unique(scope, "message")
        message = MessageType(
            scope=scope,
            fields=[],
            map_entry=proto.options.map_entry,
            file=ctx.name,
            comment=ctx.comment(location),
        )
        self.messages[scope.full_name] = message

        for i, nested in enumerate(proto.nested_type):
            nested_location = (*location, _MESSAGE_NESTED, i)
            self._add_message(nested, scope.child(nested.name), nested_location, ctx)

        for i, enum in enumerate(proto.enum_type):
            self._add_enum(enum, scope.child(enum.name), (*location, _MESSAGE_ENUM, i), ctx)

        for i, field_proto in enumerate(proto.field):
            comment = ctx.comment((*location, _MESSAGE_FIELD, i))
            field = Field(
                name=field_proto.name,
                number=field_proto.number,
                type=FieldType(FieldKind.SCALAR, ""),
                cardinality=_cardinality(field_proto, ctx.syntax),
                json_name=field_proto.json_name or to_camel_case(field_proto.name),
                omit_empty=bool(comment and OMIT_EMPTY_PATTERN.search(comment)),
                comment=comment,
            )
            if field_proto.HasField("type") and field_proto.type in SCALAR_NAMES:
                field.type = FieldType(FieldKind.SCALAR, SCALAR_NAMES[field_proto.type])
            elif not field_proto.type_name:
                raise DescriptorError(f"Field {message.field_path(field)} has no type")
            else:
                self._pending.append((message, field, field_proto))
            message.fields.append(field)

    def _add_enum(
        self,
        proto: descriptor_pb2.EnumDescriptorProto,
        scope: ScopedName,
        location: tuple[int, ...],
        ctx: _FileContext,
    ) -> None:
        self._check_unique(scope, "enum")
        self.enums[scope.full_name] = EnumType(
            scope=scope,
            values=[
                EnumValue(
                    name=value.name,
                    number=value.number,
                    comment=ctx.comment((*location, _ENUM_VALUE, i)),
                )
                for i, value in enumerate(proto.value)
            ],
            allow_alias=proto.options.allow_alias,
            closed=ctx.syntax == "proto2",
            file=ctx.name,
            comment=ctx.comment(location),
        )

    def _add_service(
        self,
        proto: descriptor_pb2.ServiceDescriptorProto,
        location: tuple[int, ...],
        ctx: _FileContext,
    ) -> None:
        scope = ScopedName(ctx.package, (proto.name,))
        service = Service(scope=scope, methods=[], file=ctx.name, comment=ctx.comment(location))
        for i, method in enumerate(proto.method):
            service.methods.append(
                ServiceMethod(
                    name=method.name,
                    input_type=method.input_type,
                    output_type=method.output_type,
                    client_streaming=method.client_streaming,
                    server_streaming=method.server_streaming,
                    comment=ctx.comment((*location, _SERVICE_METHOD, i)),
                )
            )
        self.services.append(service)

    def _resolve(self, type_name: str, scope: ScopedName, owner: str) -> str:
        """Resolve a type reference the way protoc does.

        Absolute references start with a dot. Relative ones are tried in the
        innermost enclosing scope first, then each outer scope in turn. A
        dotted reference like ``Inner.Level2`` binds to the first scope that
        declares ``Inner``; outer scopes are not tried after that.
        """
        if type_name.startswith("."):
            name = type_name[1:]
            if name in self.messages or name in self.enums:
                return name
            raise DescriptorError(f"Unresolved type {type_name} referenced by {owner}")

        first, _, rest = type_name.partition(".")
        packages = self._packages()
        parts = [*scope.package.split("."), *scope.path] if scope.package else list(scope.path)
        for i in range(len(parts), -1, -1):
            name = ".".join([*parts[:i], type_name])
            if name in self.messages or name in self.enums:
                return name
            leading = ".".join([*parts[:i], first])
            if rest and (leading in self.messages or leading in self.enums or leading in packages):
                raise DescriptorError(
                    f"Unresolved type {type_name} referenced by {owner}: "
                    f"{leading} has no member {rest}"
                )
        raise DescriptorError(f"Unresolved type {type_name} referenced by {owner}")

    def _packages(self) -> set[str]:
        """Every declared package along with its parent packages."""
        packages = set()
        for file in self.files.values():
            parts = file.package.split(".") if file.package else []
            packages.update(".".join(parts[:i]) for i in range(1, len(parts) + 1))
        return packages

    def _link(self) -> None:
        for message, field, proto in self._pending:
            owner = message.field_path(field)
            name = self._resolve(proto.type_name, message.scope, owner)
            declared = proto.type if proto.HasField("type") else None

            if declared == _FieldProto.TYPE_ENUM or (declared is None and name in self.enums):
                if name not in self.enums:
                    raise DescriptorError(f"Field {owner} expects an enum but {name} is a message")
                field.type = FieldType(FieldKind.ENUM, name)
            elif declared in _MESSAGE_TYPES or declared is None:
                if name not in self.messages:
                    raise DescriptorError(f"Field {owner} expects a message but {name} is an enum")
                field.type = FieldType(FieldKind.MESSAGE, name)
            else:
                raise DescriptorError(f"Field {owner} has unsupported type {declared}")

        # Map entries are only complete once every pending type is resolved.
        for message, field, _proto in self._pending:
            if field.type.kind is not FieldKind.MESSAGE:
                continue
            if field.cardinality is not Cardinality.REPEATED:
                continue
            entry = self.messages[field.type.name]
            if not entry.map_entry:
                continue
            by_number = {entry_field.number: entry_field for entry_field in entry.fields}
            if 1 not in by_number or 2 not in by_number:
                raise DescriptorError(f"Map entry {entry.full_name} lacks a key or value field")
            field.map_key = by_number[1].type
            field.map_value = by_number[2].type
        self._pending.clear()

        for service in self.services:
            for method in service.methods:
                owner = f"{service.full_name}.{method.name}"
                scope = service.scope
                method.input_type = self._resolve(method.input_type, scope, owner)
                method.output_type = self._resolve(method.output_type, scope, owner)
                for name in (method.input_type, method.output_type):
                    if name not in self.messages:
                        raise DescriptorError(f"Method {owner} uses {name}, which is not a message")
