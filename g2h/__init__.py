"""g2h - HTTP/JSON bridge generator for gRPC services."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("g2h")
except PackageNotFoundError:
    __version__ = "(local)"
