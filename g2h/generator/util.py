"""Naming helpers for code generation."""

import posixpath


def to_camel_case(name: str, upper_first: bool = False) -> str:
    """Convert a snake_case field name the way protoc derives JSON names.

    Underscores are dropped and the following letter is upper-cased.
    """
    result: list[str] = []
    capitalize_next = upper_first
    for char in name:
        if char == "_":
            capitalize_next = True
        elif capitalize_next:
            result.append(char.upper())
            capitalize_next = False
        else:
            result.append(char)
    return "".join(result)


def module_path(proto_name: str, suffix: str = "_g2h.py") -> str:
    """Return the generated module path for a proto file path.

    ``protos/hello-world.proto`` becomes ``protos/hello_world_g2h.py``.
    """
    directory, base = posixpath.split(proto_name)
    if base.endswith(".proto"):
        base = base[: -len(".proto")]
    base = base.replace("-", "_").replace(".", "_")
    return posixpath.join(directory, base + suffix)
