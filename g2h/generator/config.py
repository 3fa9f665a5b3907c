"""Generation settings, passed explicitly into every generation call."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath

DEFAULT_RUNTIME_IMPORT = "g2h.proto"

_TRUE = frozenset(["1", "true", "yes", "on"])
_FALSE = frozenset(["0", "false", "no", "off"])


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings for one generation run.

    ``output_target`` prefixes every generated file name. ``omit_empty``
    lists fully-qualified field paths (``pkg.Message.field``) dropped from
    JSON output when empty, on top of fields whose comments say so.
    """

    enable_string_enums: bool = True
    output_target: PurePosixPath = PurePosixPath(".")
    runtime_import: str = DEFAULT_RUNTIME_IMPORT
    omit_empty: frozenset[str] = field(default_factory=frozenset)


def _parse_bool(key: str, value: str) -> bool:
    if value.lower() in _TRUE:
        return True
    if value.lower() in _FALSE:
        return False
    raise ValueError(f"Invalid boolean for {key}: {value!r}")


def parse_parameter(parameter: str) -> GeneratorConfig:
    """Build a config from a protoc plugin parameter string.

    Example: ``string_enums=false,output=gen,runtime=app.rt,omit_empty=a.B.c;a.B.d``
    """
    string_enums = True
    output = PurePosixPath(".")
    runtime_import = DEFAULT_RUNTIME_IMPORT
    omit_empty: set[str] = set()

    for chunk in parameter.split(","):
        if not chunk.strip():
            continue
        key, _, value = chunk.partition("=")
        key = key.strip()
        value = value.strip()

        if key == "string_enums":
            string_enums = _parse_bool(key, value)
        elif key == "output":
            output = PurePosixPath(value or ".")
        elif key == "runtime":
            runtime_import = value or DEFAULT_RUNTIME_IMPORT
        elif key == "omit_empty":
            omit_empty.update(path.strip() for path in value.split(";") if path.strip())
        else:
            raise ValueError(f"Unknown parameter {key!r}")

    return GeneratorConfig(
        enable_string_enums=string_enums,
        output_target=output,
        runtime_import=runtime_import,
        omit_empty=frozenset(omit_empty),
    )
