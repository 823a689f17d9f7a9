"""Command-line interface for protolite."""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from protolite.errors import ProtoliteError
from protolite.schema import collect_sources, load_schema_file, parse, python
from protolite.schema.compat import check_compatibility, has_breaking_changes
from protolite.wire import Message, decode, encode

if TYPE_CHECKING:
    from protolite.schema.descriptors import MessageDescriptor, Schema


def _fail(error: Exception) -> NoReturn:
    print(f"Error: {error}")
    sys.exit(1)


def _load(input_file: str, include_paths: tuple[str, ...]) -> Schema:
    try:
        return load_schema_file(input_file, include_paths)
    except ProtoliteError as e:
        _fail(e)


def _message_type(schema: Schema, name: str) -> MessageDescriptor:
    try:
        return schema.message(name)
    except KeyError:
        print(f"Unknown message type: {name}")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
def cli(verbose: bool) -> None:
    """protolite schema and wire format tools."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--output", "-o", "output_file", required=True, help="Output Python module")
@click.option("--include", "-I", "include_paths", multiple=True, help="Import search path")
@click.option(
    "--runtime-import",
    "runtime_import",
    default="protolite",
    help="Package the generated module imports the runtime from",
)
def gen(
    input_file: str, output_file: str, include_paths: tuple[str, ...], runtime_import: str
) -> None:
    """Generate a Python module from a schema file."""
    try:
        root, sources = collect_sources(input_file, include_paths)
        generated_file = python.render(sources, root, runtime_import=runtime_import)
    except ProtoliteError as e:
        _fail(e)

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(generated_file)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--include", "-I", "include_paths", multiple=True, help="Import search path")
@click.option("--json", "output_json", is_flag=True, help="Output the syntax tree as JSON")
def info(input_file: str, include_paths: tuple[str, ...], output_json: bool) -> None:
    """Display the messages, fields and enums of a schema."""
    if output_json:
        with open(input_file, encoding="utf-8") as f:
            text = f.read()
        try:
            proto = parse(text, path=input_file)
        except ProtoliteError as e:
            _fail(e)
        print(proto.to_json(indent=2))
        return

    _output_plain(_load(input_file, include_paths))


def _output_plain(schema: Schema) -> None:
    """Output schema info using rich text formatting."""
    console = Console()

    if schema.package or schema.syntax:
        console.print("[bold cyan]Schema[/bold cyan]")
        schema_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        schema_table.add_column("Label", style="dim")
        schema_table.add_column("Value", style="white")
        schema_table.add_row("Package", schema.package or "")
        schema_table.add_row("Syntax", schema.syntax or "proto2")
        console.print(schema_table)
        console.print()

    for message in schema.all_messages():
        console.print(f"[bold cyan]{message.full_name}[/bold cyan]")
        field_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        field_table.add_column("#", style="green", justify="right")
        field_table.add_column("Name", style="white")
        field_table.add_column("Type", style="yellow")
        field_table.add_column("Label", style="dim")

        for fd in message.fields_in_wire_order:
            label = "repeated" if fd.repeated else ""
            if fd.packed:
                label += " packed"
            field_table.add_row(str(fd.number), fd.name, fd.type_name or str(fd.type), label)

        console.print(field_table)
        console.print()

    for enum in schema.all_enums():
        console.print(f"[bold cyan]enum {enum.full_name}[/bold cyan]")
        enum_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        enum_table.add_column("Name", style="white")
        enum_table.add_column("Value", style="green", justify="right")
        for value in enum.values:
            enum_table.add_row(value.name, str(value.number))
        console.print(enum_table)
        console.print()


@cli.command()
@click.argument("old_file")
@click.argument("new_file")
@click.option("--include", "-I", "include_paths", multiple=True, help="Import search path")
@click.option("--json", "output_json", is_flag=True, help="Output issues as JSON")
def check(
    old_file: str, new_file: str, include_paths: tuple[str, ...], output_json: bool
) -> None:
    """Check that NEW_FILE can read data written with OLD_FILE."""
    issues = check_compatibility(_load(old_file, include_paths), _load(new_file, include_paths))

    if output_json:
        print(json.dumps([issue.to_dict() for issue in issues], indent=2))
    elif not issues:
        print("No compatibility issues")
    else:
        for issue in issues:
            print(issue)

    if has_breaking_changes(issues):
        sys.exit(1)


@cli.command("encode")
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--message", "-m", "message_name", required=True, help="Message type")
@click.option("--data", "-d", "data_file", default="-", help="JSON input (default: stdin)")
@click.option("--output", "-o", "output_file", required=True, help="Output binary file")
@click.option("--include", "-I", "include_paths", multiple=True, help="Import search path")
def encode_cmd(
    input_file: str,
    message_name: str,
    data_file: str,
    output_file: str,
    include_paths: tuple[str, ...],
) -> None:
    """Encode a JSON document to the binary wire format."""
    descriptor = _message_type(_load(input_file, include_paths), message_name)

    with click.open_file(data_file, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            _fail(e)

    try:
        message = Message.from_dict(data, descriptor, json_compatible=True)
        encoded = encode(message)
    except (AttributeError, TypeError, ProtoliteError) as e:
        _fail(e)

    with open(output_file, "wb") as f:
        f.write(encoded)


@cli.command("decode")
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--message", "-m", "message_name", required=True, help="Message type")
@click.option("--data", "-d", "data_file", default="-", help="Binary input (default: stdin)")
@click.option("--include", "-I", "include_paths", multiple=True, help="Import search path")
@click.option("--keep-unknown", is_flag=True, help="Report fields missing from the schema")
def decode_cmd(
    input_file: str,
    message_name: str,
    data_file: str,
    include_paths: tuple[str, ...],
    keep_unknown: bool,
) -> None:
    """Decode binary wire data and print it as JSON."""
    descriptor = _message_type(_load(input_file, include_paths), message_name)

    with click.open_file(data_file, "rb") as f:
        data = f.read()

    try:
        message = decode(data, descriptor, keep_unknown=keep_unknown)
    except ProtoliteError as e:
        _fail(e)

    # Called through the class, schema fields may shadow these names
    output = Message.to_dict(message, json_compatible=True)
    unknown_fields = Message.unknown_fields.fget(message)
    if keep_unknown and unknown_fields:
        output["_unknown"] = [
            {"number": u.number, "wire_type": u.wire_type, "data": u.data.hex()}
            for u in unknown_fields
        ]
    print(json.dumps(output, indent=2))


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
