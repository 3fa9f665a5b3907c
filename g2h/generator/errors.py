"""Errors that abort a generation run."""


class GenerationError(RuntimeError):
    """Base exception for generation failures."""


class DescriptorError(GenerationError):
    """Raised when a descriptor is missing, duplicated or unresolvable."""


class ConflictError(GenerationError):
    """Raised when an enum declaration contradicts itself."""


class RouteConflict(GenerationError):
    """Raised when two RPC methods map to the same HTTP path."""

    def __init__(self, path: str, first: str, second: str) -> None:
        super().__init__(f"Methods {first} and {second} both map to route {path}")
        self.path = path
        self.methods = (first, second)
