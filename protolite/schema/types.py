"""Syntax tree types produced by the schema parser."""

from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class ProtoOption(DataClassJsonMixin):
    """A `name = value` option on a file, field or enum value."""

    name: str
    value: Any


@dataclass
class ProtoRange(DataClassJsonMixin):
    """An inclusive range of reserved numbers."""

    start: int
    end: int

    def __contains__(self, number: int) -> bool:
        return self.start <= number <= self.end


@dataclass
class ProtoReserved(DataClassJsonMixin):
    """A `reserved` statement: either number ranges or field names."""

    ranges: list[ProtoRange] = field(default_factory=list)
    names: list[str] = field(default_factory=list)


@dataclass
class ProtoField(DataClassJsonMixin):
    """Represents a field of a message.

    `type` is either a scalar type name or a (possibly dotted) reference to a
    message or enum, resolved when descriptors are built.
    """

    name: str
    type: str
    number: int
    label: str | None
    options: list[ProtoOption]


@dataclass
class ProtoEnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    number: int
    options: list[ProtoOption]


@dataclass
class ProtoEnum(DataClassJsonMixin):
    """Represents an enum type definition."""

    name: str
    values: list[ProtoEnumValue]
    options: list[ProtoOption]
    reserved: list[ProtoReserved]


@dataclass
class ProtoMessage(DataClassJsonMixin):
    """Represents a message definition, including nested definitions."""

    name: str
    fields: list[ProtoField]
    messages: list["ProtoMessage"]
    enums: list[ProtoEnum]
    reserved: list[ProtoReserved]


@dataclass
class ProtoImport(DataClassJsonMixin):
    """Represents an `import` statement."""

    path: str
    modifier: str | None = None


@dataclass
class ProtoFile(DataClassJsonMixin):
    """Represents a complete schema source file."""

    syntax: str | None
    package: str | None
    imports: list[ProtoImport]
    options: list[ProtoOption]
    messages: list[ProtoMessage]
    enums: list[ProtoEnum]
    path: str | None = None


SCALAR_TYPES = frozenset(
    [
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "bool",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
        "float",
        "double",
        "string",
        "bytes",
    ]
)

SUPPORTED_SYNTAX = frozenset(["proto2", "proto3"])


def is_scalar(type_name: str) -> bool:
    """Check if a type name refers to a scalar type."""
    return type_name in SCALAR_TYPES
