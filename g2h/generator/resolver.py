"""Enum value tables, resolved per field and scoped to one enum type.

Unrelated enums routinely reuse numbers (``PaymentStatus.PENDING = 1`` and
``AuthenticationStatus.VERIFYING = 1``) and bare names (``SUCCESS`` in a
top-level and a nested enum). Tables are therefore never global: every enum
field is translated through the table of the exact enum it references.
"""

import logging
from collections.abc import Mapping

from g2h.proto.codec import FieldKind
from g2h.proto.tables import ValueTable

from .errors import ConflictError, DescriptorError
from .index import DescriptorIndex
from .types import EnumType, Field

logger = logging.getLogger(__name__)


def build_table(enum: EnumType) -> ValueTable:
    """Build the value table of one enum.

    Names map to their numbers, aliases included. Each number maps to the
    first name declared for it.
    """
    names: dict[int, str] = {}
    values: dict[str, int] = {}

    for value in enum.values:
        declared = values.setdefault(value.name, value.number)
        if declared != value.number:
            raise ConflictError(
                f"{enum.full_name}.{value.name} is declared as both {declared} and {value.number}"
            )

        canonical = names.setdefault(value.number, value.name)
        if canonical != value.name and not enum.allow_alias:
            raise ConflictError(
                f"{enum.full_name}: {value.name} reuses value {value.number} of {canonical}"
                " without allow_alias"
            )

    return ValueTable(enum.full_name, names=names, values=values, closed=enum.closed)


class EnumResolver:
    """Builds and caches value tables per enum type.

    A table is built at most once per enum, so every field referencing the
    same enum shares it.
    """

    def __init__(self, index: DescriptorIndex) -> None:
        self.index = index
        self._tables: dict[str, ValueTable] = {}

    @property
    def tables(self) -> Mapping[str, ValueTable]:
        """Tables built so far, in build order."""
        return self._tables

    def table(self, enum: EnumType | str) -> ValueTable:
        if isinstance(enum, str):
            enum = self.index.enum(enum)

        table = self._tables.get(enum.full_name)
        if table is None:
            table = build_table(enum)
            self._tables[enum.full_name] = table
            logger.debug("Built value table for %s (%d names)", enum.full_name, len(table.values))
        return table

    def table_for(self, field: Field) -> ValueTable:
        """Return the value table of the enum an enum field references.

        For map fields the map value type is used.
        """
        value_type = field.value_type
        if value_type.kind is not FieldKind.ENUM:
            raise DescriptorError(f"Field {field.name} does not hold an enum")
        return self.table(value_type.name)
