"""Derives message codecs from indexed descriptors."""

import logging
from collections.abc import Iterable

from g2h.proto.codec import Cardinality, CodecRegistry, FieldCodec, FieldKind

from .config import GeneratorConfig
from .index import DescriptorIndex
from .resolver import EnumResolver
from .types import Field, MessageType

logger = logging.getLogger(__name__)


class CodecBuilder:
    """Composes field codecs into message codecs.

    Codecs are collected in one registry, so a message reached from several
    roots is derived once.
    """

    def __init__(
        self,
        index: DescriptorIndex,
        resolver: EnumResolver,
        config: GeneratorConfig | None = None,
    ) -> None:
        self.index = index
        self.resolver = resolver
        self.config = config or GeneratorConfig()
        self.registry = CodecRegistry()

    def build(self, names: Iterable[str]) -> CodecRegistry:
        """Derive codecs for ``names`` and every message they reach."""
        for message in self.index.reachable_messages(names):
            if message.map_entry or message.full_name in self.registry:
                continue
            self.registry.add(
                message.full_name, [self.field_codec(message, field) for field in message.fields]
            )
            logger.debug("Derived codec for %s (%d fields)", message.full_name, len(message.fields))
        return self.registry

    def field_codec(self, message: MessageType, field: Field) -> FieldCodec:
        value_type = field.value_type

        table = None
        if value_type.kind is FieldKind.ENUM and self.config.enable_string_enums:
            table = self.resolver.table_for(field)

        return FieldCodec(
            name=field.name,
            kind=value_type.kind,
            type_name=value_type.name,
            cardinality=field.cardinality,
            json_name=field.json_name,
            table=table,
            omit_empty=self._omit_empty(message, field),
            map_key=field.map_key.name if field.map_key is not None else None,
        )

    def _omit_empty(self, message: MessageType, field: Field) -> bool:
        if field.type.kind is not FieldKind.SCALAR or field.cardinality is not Cardinality.SINGULAR:
            return False
        return field.omit_empty or message.field_path(field) in self.config.omit_empty

    def check_omit_empty(self) -> list[str]:
        """Warn about configured omit-empty paths that match no derived field."""
        unmatched = []
        for path in sorted(self.config.omit_empty):
            message_name, _, field_name = path.rpartition(".")
            codec = self.registry.get(message_name)
            try:
                matched = codec is not None and codec.field_named(field_name).omit_empty
            except KeyError:
                matched = False
            if not matched:
                logger.warning("omit_empty path %s names no singular scalar field", path)
                unmatched.append(path)
        return unmatched
