"""Python code generator for g2h bridges."""

import json
from collections.abc import Iterable
from importlib import resources

from jinja2 import Environment, PackageLoader

from g2h.proto.bridge import Route
from g2h.proto.codec import Cardinality, FieldCodec, MessageCodec
from g2h.proto.tables import ValueTable

from .config import DEFAULT_RUNTIME_IMPORT
from .types import ProtoFile

RUNTIME_FILES = [
    "__init__.py",
    "tables.py",
    "codec.py",
    "status.py",
    "metadata.py",
    "bridge.py",
]

env = Environment(
    loader=PackageLoader("g2h.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")


def _literal(value: str) -> str:
    """Render a string as a double-quoted Python literal."""
    return json.dumps(value)


def _names_literal(table: ValueTable) -> str:
    items = ", ".join(f"{number}: {_literal(name)}" for number, name in table.names.items())
    return "{" + items + "}"


def _values_literal(table: ValueTable) -> str:
    items = ", ".join(f"{_literal(name)}: {number}" for name, number in table.values.items())
    return "{" + items + "}"


def _field_codec(codec: FieldCodec) -> str:
    """Render the FieldCodec(...) constructor call for a field."""
    args = [_literal(codec.name), f"FieldKind.{codec.kind.name}", _literal(codec.type_name)]
    if codec.cardinality is not Cardinality.SINGULAR:
        args.append(f"cardinality=Cardinality.{codec.cardinality.name}")
    if codec.json_name:
        args.append(f"json_name={_literal(codec.json_name)}")
    if codec.table is not None:
        args.append(f"table=ENUMS[{_literal(codec.table.enum)}]")
    if codec.omit_empty:
        args.append("omit_empty=True")
    if codec.map_key is not None:
        args.append(f"map_key={_literal(codec.map_key)}")
    return f"FieldCodec({', '.join(args)})"


def referenced_tables(codecs: Iterable[MessageCodec]) -> list[ValueTable]:
    """Return each distinct value table the codecs use, in first-use order."""
    tables: dict[str, ValueTable] = {}
    for codec in codecs:
        for field in codec.fields:
            if field.table is not None:
                tables.setdefault(field.table.enum, field.table)
    return list(tables.values())


def render(
    file: ProtoFile,
    codecs: Iterable[MessageCodec],
    routes: Iterable[Route],
    runtime_import: str = DEFAULT_RUNTIME_IMPORT,
) -> str:
    """Render the bridge module of one proto file to Python source code."""
    codecs = list(codecs)
    return template.render(
        file=file,
        tables=referenced_tables(codecs),
        codecs=codecs,
        routes=list(routes),
        literal=_literal,
        names_literal=_names_literal,
        values_literal=_values_literal,
        field_codec=_field_codec,
        runtime_import=runtime_import,
        BLANK_LINE="",
    )


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("g2h.proto").joinpath(filename).read_text()
        result[filename] = content
    return result
