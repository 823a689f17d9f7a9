"""Build descriptors from parsed schema files."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import SchemaError
from .descriptors import (
    EnumDescriptor,
    EnumValueDescriptor,
    FieldDescriptor,
    FieldType,
    MessageDescriptor,
    Schema,
)
from .types import ProtoEnum, ProtoField, ProtoFile, ProtoMessage, ProtoOption, is_scalar

logger = logging.getLogger(__name__)


@dataclass
class _Declaration:
    """A message or enum found in a file, keyed by full name."""

    full_name: str
    node: ProtoMessage | ProtoEnum
    syntax: str | None


def _qualify(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


def _bool_option(option: ProtoOption, where: str) -> bool:
    if not isinstance(option.value, bool):
        raise SchemaError(f"{where}: option {option.name} must be true or false")
    return option.value


class SchemaBuilder:
    """Turns ProtoFile syntax trees into a linked Schema.

    Files must be given dependencies first; the last file is the root whose
    package and syntax the resulting Schema reports.
    """

    def __init__(self, files: Sequence[ProtoFile]) -> None:
        if not files:
            raise SchemaError("No schema files to build")
        self.files = list(files)
        self._declarations: dict[str, _Declaration] = {}
        self._enums: dict[str, EnumDescriptor] = {}
        self._messages: dict[str, MessageDescriptor] = {}

    def build(self) -> Schema:
        for proto in self.files:
            scope = proto.package or ""
            for node in (*proto.messages, *proto.enums):
                self._declare(node, scope, proto.syntax)

        for full_name, declaration in self._declarations.items():
            if isinstance(declaration.node, ProtoEnum):
                self._enums[full_name] = self._build_enum(declaration)

        top_messages: list[MessageDescriptor] = []
        top_enums: list[EnumDescriptor] = []
        for proto in self.files:
            scope = proto.package or ""
            for message in proto.messages:
                top_messages.append(self._build_message(message, scope))
            for enum in proto.enums:
                top_enums.append(self._enums[_qualify(scope, enum.name)])

        self._link()

        root = self.files[-1]
        schema = Schema(top_messages, top_enums, package=root.package, syntax=root.syntax)
        logger.debug(
            "Built schema %s: %d messages, %d enums from %d file(s)",
            root.path or root.package or "<schema>",
            len(self._messages),
            len(self._enums),
            len(self.files),
        )
        return schema

    def _declare(self, node: ProtoMessage | ProtoEnum, scope: str, syntax: str | None) -> None:
        full_name = _qualify(scope, node.name)
        if full_name in self._declarations:
            raise SchemaError(f"{full_name} is already defined")
        self._declarations[full_name] = _Declaration(full_name, node, syntax)

        if isinstance(node, ProtoMessage):
            for nested in (*node.messages, *node.enums):
                self._declare(nested, full_name, syntax)

    def _build_enum(self, declaration: _Declaration) -> EnumDescriptor:
        node = declaration.node
        assert isinstance(node, ProtoEnum)
        full_name = declaration.full_name

        for value in node.values:
            for reserved in node.reserved:
                if value.name in reserved.names:
                    raise SchemaError(f"{full_name}.{value.name}: value name is reserved")
                if any(value.number in r for r in reserved.ranges):
                    raise SchemaError(
                        f"{full_name}.{value.name}: number {value.number} is reserved"
                    )

        if declaration.syntax == "proto3" and node.values and node.values[0].number != 0:
            raise SchemaError(f"{full_name}: the first enum value must be zero in proto3")

        return EnumDescriptor(
            name=node.name,
            full_name=full_name,
            values=tuple(EnumValueDescriptor(v.name, v.number) for v in node.values),
        )

    def _build_message(self, node: ProtoMessage, scope: str) -> MessageDescriptor:
        full_name = _qualify(scope, node.name)

        nested = tuple(self._build_message(m, full_name) for m in node.messages)
        enums = tuple(self._enums[_qualify(full_name, e.name)] for e in node.enums)
        fields = tuple(self._build_field(f, full_name) for f in node.fields)

        descriptor = MessageDescriptor(
            name=node.name,
            full_name=full_name,
            fields=fields,
            nested_types=nested,
            enum_types=enums,
            reserved_ranges=tuple((r.start, r.end) for res in node.reserved for r in res.ranges),
            reserved_names=frozenset(name for res in node.reserved for name in res.names),
        )
        self._messages[full_name] = descriptor
        return descriptor

    def _build_field(self, node: ProtoField, scope: str) -> FieldDescriptor:
        where = f"{scope}.{node.name}"

        packed = False
        deprecated = False
        for option in node.options:
            if option.name == "packed":
                packed = _bool_option(option, where)
            elif option.name == "deprecated":
                deprecated = _bool_option(option, where)
            else:
                logger.debug("%s: ignoring field option %s", where, option.name)

        if is_scalar(node.type):
            field_type = FieldType(node.type)
            type_name = None
        else:
            type_name = self._resolve(node.type, scope, where)
            if type_name in self._enums:
                field_type = FieldType.ENUM
            else:
                field_type = FieldType.MESSAGE

        return FieldDescriptor(
            number=node.number,
            name=node.name,
            type=field_type,
            repeated=node.label == "repeated",
            type_name=type_name,
            packed=packed,
            deprecated=deprecated,
        )

    def _resolve(self, ref: str, scope: str, where: str) -> str:
        """Resolve a type reference from within a message scope.

        The innermost scope is searched first, then each enclosing scope out to
        the global one. A leading dot makes the reference fully qualified.
        """
        if ref.startswith("."):
            if ref[1:] in self._declarations:
                return ref[1:]
            raise SchemaError(f"{where}: unknown type {ref}")

        parts = scope.split(".") if scope else []
        while True:
            candidate = _qualify(".".join(parts), ref)
            if candidate in self._declarations:
                return candidate
            if not parts:
                break
            parts.pop()

        raise SchemaError(f"{where}: unknown type {ref}")

    def _link(self) -> None:
        for message in self._messages.values():
            for fd in message.fields:
                if fd.type == FieldType.MESSAGE:
                    object.__setattr__(fd, "message_type", self._messages[fd.type_name])
                elif fd.type == FieldType.ENUM:
                    object.__setattr__(fd, "enum_type", self._enums[fd.type_name])


def build_schema(files: ProtoFile | Sequence[ProtoFile]) -> Schema:
    """Validate parsed files and build a linked Schema from them."""
    if isinstance(files, ProtoFile):
        files = [files]
    return SchemaBuilder(files).build()
