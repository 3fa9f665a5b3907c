"""JSON codecs for protobuf messages with string enum support.

Messages on the RPC side are plain dicts keyed by field name: scalars are
Python values, enums are ints, nested messages are dicts, repeated fields are
lists and map fields are dicts. A missing key means the field is unset.

On the HTTP side enums travel as their canonical names, optional fields are
dropped when unset and repeated fields are always present as arrays.
"""

import base64
import binascii
import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Any

from .tables import ValueTable


class FieldKind(StrEnum):
    """What a field (or map value) holds."""

    SCALAR = auto()
    MESSAGE = auto()
    ENUM = auto()


class Cardinality(StrEnum):
    """How many values a field holds and whether it tracks presence."""

    SINGULAR = auto()
    OPTIONAL = auto()
    REPEATED = auto()


class CodecError(RuntimeError):
    """Base exception for encode/decode failures.

    ``path`` locates the offending value inside the message, e.g.
    ``inner.process_steps[2]``; ``message_type`` names the message whose
    field failed.
    """

    def __init__(self, reason: str, *, path: str = "", message_type: str | None = None) -> None:
        super().__init__(f"{path}: {reason}" if path else reason)
        self.reason = reason
        self.path = path
        self.message_type = message_type


class UnknownEnumValue(CodecError):
    """Raised when an enum field receives a value its enum does not declare."""

    def __init__(
        self, value: Any, *, enum: str, path: str = "", message_type: str | None = None
    ) -> None:
        super().__init__(
            f"unknown value {value!r} for enum {enum}", path=path, message_type=message_type
        )
        self.value = value
        self.enum = enum


class MalformedBody(CodecError):
    """Raised when a JSON body does not have the shape its message expects."""


class EncodeError(CodecError):
    """Raised when an RPC message cannot be encoded to JSON."""


SCALAR_DEFAULTS: dict[str, Any] = {
    "double": 0.0,
    "float": 0.0,
    "int32": 0,
    "int64": 0,
    "uint32": 0,
    "uint64": 0,
    "sint32": 0,
    "sint64": 0,
    "fixed32": 0,
    "fixed64": 0,
    "sfixed32": 0,
    "sfixed64": 0,
    "bool": False,
    "string": "",
    "bytes": b"",
}

INTEGER_SCALARS = frozenset(
    [
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
    ]
)

FLOAT_SCALARS = frozenset(["double", "float"])

# Non-finite floats travel as strings; JSON has no literal for them.
SPECIAL_FLOATS = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping))


@dataclass(frozen=True)
class FieldCodec:
    """Encode/decode rules for a single message field.

    For map fields ``map_key`` holds the key's scalar type and ``kind``,
    ``type_name`` and ``table`` describe the map value.

    ``table`` is only set for enum fields when string enums are enabled;
    without it enum fields pass through as numbers.
    """

    name: str
    kind: FieldKind
    type_name: str
    cardinality: Cardinality = Cardinality.SINGULAR
    json_name: str | None = None
    table: ValueTable | None = None
    omit_empty: bool = False
    map_key: str | None = None

    @property
    def is_map(self) -> bool:
        return self.map_key is not None

    @property
    def has_presence(self) -> bool:
        """Check whether an unset value is distinct from the zero value."""
        if self.cardinality is Cardinality.OPTIONAL:
            return True
        return self.cardinality is Cardinality.SINGULAR and self.kind is FieldKind.MESSAGE

    def default(self) -> Any:
        """Return the zero value of a singular field."""
        if self.kind is FieldKind.ENUM:
            return 0
        return SCALAR_DEFAULTS.get(self.type_name)

    def encode(
        self, message: Mapping[str, Any], out: dict[str, Any], path: str, owner: "MessageCodec"
    ) -> None:
        value = message.get(self.name)
        field_path = _join(path, self.name)

        if self.is_map:
            if value is None:
                value = {}
            if not isinstance(value, Mapping):
                raise EncodeError("expected a map", path=field_path, message_type=owner.name)
            out[self.name] = {
                _encode_key(key): self._encode_value(item, f'{field_path}["{key}"]', owner)
                for key, item in value.items()
            }
        elif self.cardinality is Cardinality.REPEATED:
            if value is None:
                value = []
            if not _is_sequence(value):
                raise EncodeError("expected a list", path=field_path, message_type=owner.name)
            out[self.name] = [
                self._encode_value(item, f"{field_path}[{i}]", owner)
                for i, item in enumerate(value)
            ]
        elif self.has_presence:
            if value is not None:
                out[self.name] = self._encode_value(value, field_path, owner)
        else:
            if value is None:
                value = self.default()
            if self.omit_empty and not value:
                return
            out[self.name] = self._encode_value(value, field_path, owner)

    def decode(
        self, data: Mapping[str, Any], out: dict[str, Any], path: str, owner: "MessageCodec"
    ) -> None:
        value = data.get(self.name)
        if value is None and self.json_name and self.json_name != self.name:
            value = data.get(self.json_name)
        field_path = _join(path, self.name)

        if self.is_map:
            if value is None:
                value = {}
            if not isinstance(value, Mapping):
                raise MalformedBody("expected an object", path=field_path, message_type=owner.name)
            out[self.name] = {
                self._decode_key(key, field_path, owner): self._decode_value(
                    item, f'{field_path}["{key}"]', owner
                )
                for key, item in value.items()
            }
        elif self.cardinality is Cardinality.REPEATED:
            if value is None:
                value = []
            if not isinstance(value, list):
                raise MalformedBody("expected an array", path=field_path, message_type=owner.name)
            out[self.name] = [
                self._decode_value(item, f"{field_path}[{i}]", owner)
                for i, item in enumerate(value)
            ]
        elif self.has_presence:
            if value is not None:
                out[self.name] = self._decode_value(value, field_path, owner)
        elif value is None:
            out[self.name] = self.default()
        else:
            out[self.name] = self._decode_value(value, field_path, owner)

    def _encode_value(self, value: Any, path: str, owner: "MessageCodec") -> Any:
        if self.kind is FieldKind.MESSAGE:
            if not isinstance(value, Mapping):
                raise EncodeError("expected a message", path=path, message_type=owner.name)
            return owner.registry[self.type_name].encode(value, _path=path)

        if self.kind is FieldKind.ENUM:
            return self._encode_enum(value, path, owner)

        return self._encode_scalar(value, path, owner)

    def _encode_scalar(self, value: Any, path: str, owner: "MessageCodec") -> Any:
        if self.type_name == "bytes":
            valid = isinstance(value, (bytes, bytearray))
        elif self.type_name == "string":
            valid = isinstance(value, str)
        elif self.type_name == "bool":
            valid = isinstance(value, bool)
        elif self.type_name in INTEGER_SCALARS:
            valid = isinstance(value, int) and not isinstance(value, bool)
        elif self.type_name in FLOAT_SCALARS:
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        else:
            valid = isinstance(value, (str, int, float))
        if not valid:
            raise EncodeError(
                f"expected a {self.type_name} value, got {type(value).__name__}",
                path=path,
                message_type=owner.name,
            )

        if self.type_name == "bytes":
            return base64.b64encode(bytes(value)).decode("ascii")
        if isinstance(value, float) and not math.isfinite(value):
            if math.isnan(value):
                return "NaN"
            return "Infinity" if value > 0 else "-Infinity"
        return value

    def _encode_enum(self, value: Any, path: str, owner: "MessageCodec") -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise EncodeError(
                f"expected a {self.type_name} number", path=path, message_type=owner.name
            )

        if self.table is None:
            if isinstance(value, str):
                raise EncodeError(
                    f"expected a {self.type_name} number", path=path, message_type=owner.name
                )
            return int(value)

        if isinstance(value, str):
            number = self.table.value_of(value)
            if number is None:
                raise UnknownEnumValue(
                    value, enum=self.table.enum, path=path, message_type=owner.name
                )
            value = number

        name = self.table.name_of(value)
        return name if name is not None else int(value)

    def _decode_value(self, value: Any, path: str, owner: "MessageCodec") -> Any:
        if self.kind is FieldKind.MESSAGE:
            if not isinstance(value, Mapping):
                raise MalformedBody("expected an object", path=path, message_type=owner.name)
            return owner.registry[self.type_name].decode(value, _path=path)

        if self.kind is FieldKind.ENUM:
            return self._decode_enum(value, path, owner)

        if isinstance(value, (Mapping, list)):
            raise MalformedBody(
                f"expected a {self.type_name} value", path=path, message_type=owner.name
            )

        if self.type_name == "bytes":
            return self._decode_bytes(value, path, owner)
        if self.type_name in FLOAT_SCALARS and value in SPECIAL_FLOATS:
            return SPECIAL_FLOATS[value]
        return value

    def _decode_bytes(self, value: Any, path: str, owner: "MessageCodec") -> bytes:
        if not isinstance(value, str):
            raise MalformedBody("expected a base64 string", path=path, message_type=owner.name)
        # Accept the URL-safe alphabet and missing padding as well.
        text = value.replace("-", "+").replace("_", "/")
        text += "=" * (-len(text) % 4)
        try:
            return base64.b64decode(text, validate=True)
        except binascii.Error:
            raise MalformedBody("invalid base64 data", path=path, message_type=owner.name) from None

    def _decode_enum(self, value: Any, path: str, owner: "MessageCodec") -> int:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise MalformedBody(
                "expected an enum name or number", path=path, message_type=owner.name
            )

        if isinstance(value, str):
            if self.table is None:
                raise MalformedBody(
                    f"expected a {self.type_name} number", path=path, message_type=owner.name
                )
            number = self.table.value_of(value)
            if number is None:
                raise UnknownEnumValue(
                    value, enum=self.table.enum, path=path, message_type=owner.name
                )
            return number

        if self.table is not None and not self.table.accepts(value):
            raise UnknownEnumValue(value, enum=self.table.enum, path=path, message_type=owner.name)
        return value

    def _decode_key(self, key: str, path: str, owner: "MessageCodec") -> Any:
        if self.map_key == "bool":
            if key not in ("true", "false"):
                raise MalformedBody(
                    f"invalid bool map key {key!r}", path=path, message_type=owner.name
                )
            return key == "true"
        if self.map_key in INTEGER_SCALARS:
            try:
                return int(key)
            except ValueError:
                raise MalformedBody(
                    f"invalid {self.map_key} map key {key!r}", path=path, message_type=owner.name
                ) from None
        return key


def _encode_key(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)


@dataclass(frozen=True)
class MessageCodec:
    """Whole-message codec composed from its field codecs."""

    name: str
    fields: tuple[FieldCodec, ...]
    registry: "CodecRegistry" = field(repr=False, compare=False)

    def field_named(self, name: str) -> FieldCodec:
        for codec in self.fields:
            if codec.name == name:
                return codec
        raise KeyError(f"{self.name} has no field {name}")

    def encode(self, message: Mapping[str, Any], *, _path: str = "") -> dict[str, Any]:
        """Encode an RPC-side message dict to a JSON-ready dict."""
        if not isinstance(message, Mapping):
            raise EncodeError("expected a message", path=_path, message_type=self.name)

        out: dict[str, Any] = {}
        for codec in self.fields:
            codec.encode(message, out, _path, self)
        return out

    def decode(self, data: Any, *, _path: str = "") -> dict[str, Any]:
        """Decode a parsed JSON object to an RPC-side message dict."""
        if not isinstance(data, Mapping):
            raise MalformedBody("expected a JSON object", path=_path, message_type=self.name)

        out: dict[str, Any] = {}
        for codec in self.fields:
            codec.decode(data, out, _path, self)
        return out


class CodecRegistry(Mapping[str, MessageCodec]):
    """Message codecs keyed by fully-qualified message name.

    Field codecs refer to nested messages by name, so codecs may be added
    in any order and recursive messages need no special handling.
    """

    def __init__(self) -> None:
        self._codecs: dict[str, MessageCodec] = {}

    def add(self, name: str, fields: Iterable[FieldCodec]) -> MessageCodec:
        if name in self._codecs:
            raise ValueError(f"Codec for {name} already registered")
        codec = MessageCodec(name=name, fields=tuple(fields), registry=self)
        self._codecs[name] = codec
        return codec

    def __getitem__(self, name: str) -> MessageCodec:
        try:
            return self._codecs[name]
        except KeyError:
            raise KeyError(f"No codec registered for {name}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._codecs)

    def __len__(self) -> int:
        return len(self._codecs)
