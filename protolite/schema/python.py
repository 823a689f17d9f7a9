"""Python code generator for protolite schemas."""

import keyword
from collections.abc import Mapping

from jinja2 import Environment, PackageLoader

from .descriptors import EnumDescriptor, FieldDescriptor, FieldType, MessageDescriptor, Schema
from .loader import load_schema_sources
from .parser import parse

env = Environment(
    loader=PackageLoader("protolite.schema", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)

template = env.get_template("python.py.j2")

# Map field types to Python type annotations
PRIMITIVE_TYPE_MAP = {
    FieldType.INT32: "int",
    FieldType.INT64: "int",
    FieldType.UINT32: "int",
    FieldType.UINT64: "int",
    FieldType.SINT32: "int",
    FieldType.SINT64: "int",
    FieldType.FIXED32: "int",
    FieldType.FIXED64: "int",
    FieldType.SFIXED32: "int",
    FieldType.SFIXED64: "int",
    FieldType.BOOL: "bool",
    FieldType.FLOAT: "float",
    FieldType.DOUBLE: "float",
    FieldType.STRING: "str",
    FieldType.BYTES: "bytes",
}

INDENT = "    "


def _class_path(full_name: str, package: str | None) -> str:
    """Python name of a generated class, relative to the module."""
    if package and full_name.startswith(package + "."):
        return full_name[len(package) + 1 :]
    return full_name


def _is_generated(full_name: str, generated: set[str]) -> bool:
    return any(full_name == name or full_name.startswith(name + ".") for name in generated)


def _map_type(fd: FieldDescriptor, package: str | None, generated: set[str]) -> str:
    if fd.type in PRIMITIVE_TYPE_MAP:
        type_name = PRIMITIVE_TYPE_MAP[fd.type]
    elif not _is_generated(fd.type_name or "", generated):
        # Declared in an imported file
        type_name = "int" if fd.type == FieldType.ENUM else "Message"
    else:
        assert fd.type_name is not None
        type_name = _class_path(fd.type_name, package)
        if fd.type == FieldType.ENUM:
            type_name = f"{type_name} | int"

    if fd.repeated:
        return f"list[{type_name}]"
    return type_name


def _gen_enum(enum: EnumDescriptor, indent: str) -> list[str]:
    lines = [f"{indent}class {enum.name}(IntEnum):"]
    for value in enum.values:
        lines.append(f"{indent}{INDENT}{value.name} = {value.number}")
    return lines


def _gen_message(
    message: MessageDescriptor, package: str | None, generated: set[str], indent: str
) -> list[str]:
    inner = indent + INDENT
    lines = [
        f"{indent}class {message.name}(_GeneratedMessage):",
        f'{inner}"""{message.full_name}"""',
        "",
        f"{inner}__slots__ = ()",
    ]

    for nested_enum in message.enum_types:
        lines.append("")
        lines.extend(_gen_enum(nested_enum, inner))

    for nested in message.nested_types:
        lines.append("")
        lines.extend(_gen_message(nested, package, generated, inner))

    lines.append("")
    lines.append(
        f"{inner}DESCRIPTOR: ClassVar[MessageDescriptor] = "
        f'_SCHEMA.message("{message.full_name}")'
    )
    for fd in message.fields:
        if keyword.iskeyword(fd.name):
            continue
        lines.append(f"{inner}{fd.name}: {_map_type(fd, package, generated)}")

    return lines


def _declared_types(text: str, path: str) -> set[str]:
    """Full names of the top-level types declared in the root file itself."""
    proto = parse(text, path=path)
    prefix = f"{proto.package}." if proto.package else ""
    return {prefix + node.name for node in (*proto.messages, *proto.enums)}


def render(
    sources: Mapping[str, str],
    root: str,
    runtime_import: str = "protolite",
) -> str:
    """Render a schema to a Python module.

    Args:
        sources: Schema texts keyed by file/import name (see collect_sources).
        root: Key of the root schema in sources.
        runtime_import: Package the generated module imports the runtime from.
    """
    schema: Schema = load_schema_sources(sources, root)
    generated = _declared_types(sources[root], root)

    return template.render(
        root=root,
        sources=sorted(sources.items()),
        enums=[_gen_enum(e, "") for e in schema.enums if e.full_name in generated],
        messages=[
            _gen_message(m, schema.package, generated, "")
            for m in schema.messages
            if m.full_name in generated
        ],
        runtime_import=runtime_import,
        repr=repr,
    )
