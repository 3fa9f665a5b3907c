"""Type definitions for descriptor analysis and code generation."""

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin

from g2h.proto.codec import Cardinality, FieldKind


@dataclass(frozen=True)
class ScopedName(DataClassJsonMixin):
    """Identity of a declaration: its package plus enclosing declarations.

    ``Level2`` nested in ``DeepNestedMessage.InnerMessage`` of package
    ``hello_world`` has path ``("DeepNestedMessage", "InnerMessage", "Level2")``.
    """

    package: str
    path: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.path[-1]

    @property
    def full_name(self) -> str:
        return ".".join([self.package, *self.path] if self.package else self.path)

    @property
    def parent(self) -> "ScopedName | None":
        if len(self.path) <= 1:
            return None
        return ScopedName(self.package, self.path[:-1])

    def child(self, name: str) -> "ScopedName":
        return ScopedName(self.package, (*self.path, name))

    def __str__(self) -> str:
        return self.full_name


@dataclass
class EnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    number: int
    comment: str | None = None


@dataclass
class EnumType(DataClassJsonMixin):
    """Represents an enum type definition.

    ``values`` keeps declaration order, which decides the canonical name of
    aliased numbers. ``closed`` enums (proto2) reject undeclared numbers.
    """

    scope: ScopedName
    values: list[EnumValue]
    allow_alias: bool = False
    closed: bool = False
    file: str = ""
    comment: str | None = None

    @property
    def name(self) -> str:
        return self.scope.name

    @property
    def full_name(self) -> str:
        return self.scope.full_name


@dataclass
class FieldType(DataClassJsonMixin):
    """Declared type of a field: a scalar name or a fully-qualified type name."""

    kind: FieldKind
    name: str


@dataclass
class Field(DataClassJsonMixin):
    """Represents a field of a message.

    Map fields are repeated in the descriptor; for them ``map_key`` and
    ``map_value`` carry the entry's key and value types.
    """

    name: str
    number: int
    type: FieldType
    cardinality: Cardinality = Cardinality.SINGULAR
    json_name: str = ""
    map_key: FieldType | None = None
    map_value: FieldType | None = None
    omit_empty: bool = False
    comment: str | None = None

    @property
    def is_map(self) -> bool:
        return self.map_value is not None

    @property
    def value_type(self) -> FieldType:
        """Type of each value held: the element type, or the map value type."""
        return self.map_value if self.map_value is not None else self.type


@dataclass
class MessageType(DataClassJsonMixin):
    """Represents a message type definition."""

    scope: ScopedName
    fields: list[Field]
    map_entry: bool = False
    file: str = ""
    comment: str | None = None

    @property
    def name(self) -> str:
        return self.scope.name

    @property
    def full_name(self) -> str:
        return self.scope.full_name

    def field_path(self, field: Field) -> str:
        return f"{self.full_name}.{field.name}"


@dataclass
class ServiceMethod(DataClassJsonMixin):
    """Represents an RPC method of a service."""

    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    comment: str | None = None


@dataclass
class Service(DataClassJsonMixin):
    """Represents a service definition."""

    scope: ScopedName
    methods: list[ServiceMethod]
    file: str = ""
    comment: str | None = None

    @property
    def name(self) -> str:
        return self.scope.name

    @property
    def full_name(self) -> str:
        return self.scope.full_name


@dataclass
class ProtoFile(DataClassJsonMixin):
    """Represents one loaded proto file and what it declares."""

    name: str
    package: str
    syntax: str
    dependencies: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    enums: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)

