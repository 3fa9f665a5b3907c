"""Enum value tables shared by generated codecs."""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class ValueTable:
    """Bidirectional number/name mapping for one enum type.

    ``names`` maps each number to its canonical name. ``values`` maps every
    declared name, aliases included, to its number. Both mappings are
    read-only once the table is constructed.
    """

    enum: str
    names: Mapping[int, str]
    values: Mapping[str, int]
    closed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", MappingProxyType(dict(self.names)))
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def name_of(self, number: int) -> str | None:
        """Return the canonical name for ``number``, or None if undeclared."""
        return self.names.get(number)

    def value_of(self, name: str) -> int | None:
        """Return the number declared for ``name`` (canonical or alias)."""
        return self.values.get(name)

    def aliases(self, number: int) -> list[str]:
        """Return every name declared for ``number``, canonical first."""
        return [name for name, value in self.values.items() if value == number]

    def accepts(self, number: int) -> bool:
        """Check whether ``number`` may appear in a field of this enum."""
        return not self.closed or number in self.names
