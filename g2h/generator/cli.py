"""Command-line interface for g2h code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path, PurePosixPath

import click
from google.protobuf import descriptor_pb2, text_format
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from g2h.generator import python
from g2h.generator.config import DEFAULT_RUNTIME_IMPORT, GeneratorConfig
from g2h.generator.errors import GenerationError
from g2h.generator.plugin import GenerationRequest, GenerationResult, generate

TEXT_FORMAT_SUFFIXES = (".pbtxt", ".textproto", ".txtpb")


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("g2h")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


def load_descriptor_set(path: str) -> descriptor_pb2.FileDescriptorSet:
    """Read a FileDescriptorSet, binary or text format by file extension."""
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    if path.endswith(TEXT_FORMAT_SUFFIXES):
        with open(path, encoding="utf-8") as f:
            text_format.Parse(f.read(), descriptor_set)
    else:
        with open(path, "rb") as f:
            descriptor_set.ParseFromString(f.read())
    return descriptor_set


def _run(input_file: str, files: tuple[str, ...], config: GeneratorConfig) -> GenerationResult:
    try:
        descriptor_set = load_descriptor_set(input_file)
    except (OSError, text_format.ParseError) as exc:
        click.echo(f"Cannot read descriptor set {input_file}: {exc}", err=True)
        sys.exit(1)

    try:
        return generate(GenerationRequest.from_descriptor_set(descriptor_set, files, config))
    except GenerationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
def cli() -> None:
    """gRPC to HTTP/JSON bridge code generator."""


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input FileDescriptorSet")
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--file", "files", multiple=True, help="Proto file to generate (default: all)")
@click.option(
    "--no-string-enums",
    "no_string_enums",
    is_flag=True,
    default=False,
    help="Keep enum values numeric in JSON",
)
@click.option(
    "--runtime-import",
    "runtime_import",
    default=DEFAULT_RUNTIME_IMPORT,
    help="Import path of the runtime package",
)
@click.option(
    "--omit-empty",
    "omit_empty",
    multiple=True,
    help="Field path (pkg.Message.field) to omit from JSON when empty",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log generation progress")
def gen(
    input_file: str,
    output_path: str,
    files: tuple[str, ...],
    no_string_enums: bool,
    runtime_import: str,
    omit_empty: tuple[str, ...],
    verbose: bool,
) -> None:
    """Generate bridge modules from a descriptor set."""
    _configure_logging(verbose)
    config = GeneratorConfig(
        enable_string_enums=not no_string_enums,
        runtime_import=runtime_import,
        omit_empty=frozenset(omit_empty),
    )
    result = _run(input_file, files, config)

    for generated in result.files:
        target = Path(output_path) / PurePosixPath(generated.name)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(generated.content, encoding="utf-8")
        click.echo(f"Generated {target}")


@cli.command()
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--name", default="g2h_runtime", help="Runtime package name")
def runtime(output_path: str, name: str) -> None:
    """Generate runtime support code."""
    runtime_dir = Path(output_path) / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        (runtime_dir / filename).write_text(content, encoding="utf-8")
    click.echo(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input FileDescriptorSet")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display the routes and enum tables of a descriptor set."""
    result = _run(input_file, (), GeneratorConfig())

    if output_json:
        _output_json(result)
    else:
        _output_plain(result)


def _output_json(result: GenerationResult) -> None:
    """Output routes and enum tables as JSON."""
    data: dict = {
        "files": [source.to_dict() for source in result.sources],
        "routes": [],
        "enums": {},
    }

    for route in result.routes:
        data["routes"].append(
            {
                "path": route.path,
                "verb": route.verb,
                "service": route.service,
                "method": route.method,
                "request": route.request.name,
                "response": route.response.name,
            }
        )

    for name, table in result.tables.items():
        data["enums"][name] = {
            "closed": table.closed,
            "values": {value: number for value, number in table.values.items()},
            "aliases": {
                table.names[number]: table.aliases(number)[1:]
                for number in table.names
                if len(table.aliases(number)) > 1
            },
        }

    print(json.dumps(data, indent=2))


def _output_plain(result: GenerationResult) -> None:
    """Output routes and enum tables using rich text formatting."""
    console = Console()

    console.print("[bold cyan]Routes[/bold cyan]")
    route_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    route_table.add_column("Verb", style="green")
    route_table.add_column("Path", style="white")
    route_table.add_column("Request", style="dim")
    route_table.add_column("Response", style="dim")
    for route in result.routes:
        route_table.add_row(route.verb, route.path, route.request.name, route.response.name)
    console.print(route_table)
    console.print()

    console.print("[bold cyan]Enums[/bold cyan]")
    enum_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    enum_table.add_column("Enum", style="white")
    enum_table.add_column("Values", style="yellow")
    enum_table.add_column("Kind", style="dim")
    for name, table in result.tables.items():
        values = ", ".join(
            f"{'|'.join(table.aliases(number))}={number}" for number in table.names
        )
        enum_table.add_row(name, values, "closed" if table.closed else "open")
    console.print(enum_table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
