"""Immutable descriptors for messages, fields and enums.

Descriptors are built once from a schema and never modified afterwards, so
they can be shared freely between threads and between encode/decode calls.
All validation happens at construction time and raises SchemaError.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum, auto
from types import MappingProxyType
from typing import Any, Union

from ..errors import SchemaError

MAX_FIELD_NUMBER = (1 << 29) - 1

# Numbers reserved for the implementation, never valid as field numbers
FIRST_RESERVED_NUMBER = 19000
LAST_RESERVED_NUMBER = 19999


class FieldType(StrEnum):
    """Declared type of a field."""

    INT32 = auto()
    INT64 = auto()
    UINT32 = auto()
    UINT64 = auto()
    SINT32 = auto()
    SINT64 = auto()
    BOOL = auto()
    FIXED32 = auto()
    FIXED64 = auto()
    SFIXED32 = auto()
    SFIXED64 = auto()
    FLOAT = auto()
    DOUBLE = auto()
    STRING = auto()
    BYTES = auto()
    ENUM = auto()
    MESSAGE = auto()


class Cardinality(StrEnum):
    """Whether a field holds one value or a sequence of values."""

    SINGULAR = auto()
    REPEATED = auto()


# Inclusive value ranges of the integer types
INTEGER_RANGES: dict[FieldType, tuple[int, int]] = {
    FieldType.INT32: (-(1 << 31), (1 << 31) - 1),
    FieldType.SINT32: (-(1 << 31), (1 << 31) - 1),
    FieldType.SFIXED32: (-(1 << 31), (1 << 31) - 1),
    FieldType.ENUM: (-(1 << 31), (1 << 31) - 1),
    FieldType.INT64: (-(1 << 63), (1 << 63) - 1),
    FieldType.SINT64: (-(1 << 63), (1 << 63) - 1),
    FieldType.SFIXED64: (-(1 << 63), (1 << 63) - 1),
    FieldType.UINT32: (0, (1 << 32) - 1),
    FieldType.FIXED32: (0, (1 << 32) - 1),
    FieldType.UINT64: (0, (1 << 64) - 1),
    FieldType.FIXED64: (0, (1 << 64) - 1),
}

# Types that may be declared [packed = true]
PACKABLE_TYPES = frozenset(
    t for t in FieldType if t not in (FieldType.STRING, FieldType.BYTES, FieldType.MESSAGE)
)

_ZERO_VALUES: dict[FieldType, Any] = {
    FieldType.BOOL: False,
    FieldType.FLOAT: 0.0,
    FieldType.DOUBLE: 0.0,
    FieldType.STRING: "",
    FieldType.BYTES: b"",
}


@dataclass(frozen=True, slots=True)
class EnumValueDescriptor:
    """A named enum value."""

    name: str
    number: int


@dataclass(frozen=True)
class EnumDescriptor:
    """Describes an enum type. The first value is the default."""

    name: str
    values: tuple[EnumValueDescriptor, ...]
    full_name: str = ""
    _by_name: Mapping[str, EnumValueDescriptor] = field(init=False, repr=False, compare=False)
    _by_number: Mapping[int, EnumValueDescriptor] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))
        if not self.full_name:
            object.__setattr__(self, "full_name", self.name)
        if not self.values:
            raise SchemaError(f"Enum {self.full_name} has no values")

        by_name: dict[str, EnumValueDescriptor] = {}
        by_number: dict[int, EnumValueDescriptor] = {}
        for value in self.values:
            if value.name in by_name:
                raise SchemaError(f"Enum {self.full_name}: duplicate value name {value.name}")
            if value.number in by_number:
                raise SchemaError(
                    f"Enum {self.full_name}: {value.name} reuses number {value.number} "
                    f"of {by_number[value.number].name}"
                )
            by_name[value.name] = value
            by_number[value.number] = value

        object.__setattr__(self, "_by_name", MappingProxyType(by_name))
        object.__setattr__(self, "_by_number", MappingProxyType(by_number))

    @property
    def default(self) -> int:
        return self.values[0].number

    def value_by_name(self, name: str) -> EnumValueDescriptor | None:
        return self._by_name.get(name)

    def value_by_number(self, number: int) -> EnumValueDescriptor | None:
        return self._by_number.get(number)


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Describes a field of a message.

    For enum and message fields:
    - type_name is the full name of the referenced type
    - enum_type/message_type hold the resolved descriptor once linked
    """

    number: int
    name: str
    type: FieldType
    repeated: bool = False
    type_name: str | None = None
    packed: bool = False
    deprecated: bool = False
    message_type: Union["MessageDescriptor", None] = field(
        default=None, compare=False, repr=False
    )
    enum_type: EnumDescriptor | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.type_name is None:
            if self.message_type is not None:
                object.__setattr__(self, "type_name", self.message_type.full_name)
            elif self.enum_type is not None:
                object.__setattr__(self, "type_name", self.enum_type.full_name)

        if self.type in (FieldType.MESSAGE, FieldType.ENUM) and self.type_name is None:
            raise SchemaError(f"Field {self.name}: {self.type} field needs a type name")
        if self.packed and not self.repeated:
            raise SchemaError(f"Field {self.name}: only repeated fields can be packed")
        if self.packed and self.type not in PACKABLE_TYPES:
            raise SchemaError(f"Field {self.name}: {self.type} fields cannot be packed")

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.REPEATED if self.repeated else Cardinality.SINGULAR

    @property
    def is_message(self) -> bool:
        return self.type == FieldType.MESSAGE

    @property
    def default(self) -> Any:
        """Zero value of a singular field. Message fields have no scalar default."""
        if self.type == FieldType.MESSAGE:
            return None
        if self.type == FieldType.ENUM:
            return self.enum_type.default if self.enum_type is not None else 0
        return _ZERO_VALUES.get(self.type, 0)


@dataclass(frozen=True)
class MessageDescriptor:
    """Describes a message type with its fields and nested types.

    Field lookups by number (decoding) and by name (application access) are
    dictionary backed.
    """

    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    full_name: str = ""
    nested_types: tuple["MessageDescriptor", ...] = ()
    enum_types: tuple[EnumDescriptor, ...] = ()
    reserved_ranges: tuple[tuple[int, int], ...] = ()
    reserved_names: frozenset[str] = frozenset()
    _by_number: Mapping[int, FieldDescriptor] = field(init=False, repr=False, compare=False)
    _by_name: Mapping[str, FieldDescriptor] = field(init=False, repr=False, compare=False)
    _wire_order: tuple[FieldDescriptor, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "nested_types", tuple(self.nested_types))
        object.__setattr__(self, "enum_types", tuple(self.enum_types))
        object.__setattr__(self, "reserved_ranges", tuple(self.reserved_ranges))
        object.__setattr__(self, "reserved_names", frozenset(self.reserved_names))
        if not self.full_name:
            object.__setattr__(self, "full_name", self.name)

        by_number: dict[int, FieldDescriptor] = {}
        by_name: dict[str, FieldDescriptor] = {}
        for fd in self.fields:
            self._check_number(fd)
            if fd.name in self.reserved_names:
                raise SchemaError(f"{self.full_name}.{fd.name}: field name is reserved")
            if fd.number in by_number:
                raise SchemaError(
                    f"{self.full_name}.{fd.name}: field number {fd.number} "
                    f"already used by {by_number[fd.number].name}"
                )
            if fd.name in by_name:
                raise SchemaError(f"{self.full_name}: duplicate field name {fd.name}")
            by_number[fd.number] = fd
            by_name[fd.name] = fd

        type_names: set[str] = set()
        for nested in (*self.nested_types, *self.enum_types):
            if nested.name in type_names:
                raise SchemaError(f"{self.full_name}: duplicate nested type {nested.name}")
            type_names.add(nested.name)

        object.__setattr__(self, "_by_number", MappingProxyType(by_number))
        object.__setattr__(self, "_by_name", MappingProxyType(by_name))
        object.__setattr__(
            self, "_wire_order", tuple(sorted(self.fields, key=lambda fd: fd.number))
        )

    def _check_number(self, fd: FieldDescriptor) -> None:
        where = f"{self.full_name}.{fd.name}"
        if fd.number <= 0:
            raise SchemaError(f"{where}: field number must be positive, got {fd.number}")
        if fd.number > MAX_FIELD_NUMBER:
            raise SchemaError(f"{where}: field number {fd.number} exceeds {MAX_FIELD_NUMBER}")
        if FIRST_RESERVED_NUMBER <= fd.number <= LAST_RESERVED_NUMBER:
            raise SchemaError(
                f"{where}: field numbers {FIRST_RESERVED_NUMBER}-{LAST_RESERVED_NUMBER} "
                "are reserved for the implementation"
            )
        for start, end in self.reserved_ranges:
            if start <= fd.number <= end:
                raise SchemaError(f"{where}: field number {fd.number} is reserved")

    def field_by_number(self, number: int) -> FieldDescriptor | None:
        return self._by_number.get(number)

    def field_by_name(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)

    @property
    def fields_in_wire_order(self) -> tuple[FieldDescriptor, ...]:
        """Fields sorted by ascending number, the order they are encoded in."""
        return self._wire_order

    def is_reserved(self, number: int) -> bool:
        return any(start <= number <= end for start, end in self.reserved_ranges)


TypeDescriptor = MessageDescriptor | EnumDescriptor


class Schema:
    """A pool of message and enum descriptors loaded from one schema.

    Types are registered under their full name (package and enclosing
    messages included). Lookups also accept names relative to the package.
    """

    def __init__(
        self,
        messages: Iterable[MessageDescriptor] = (),
        enums: Iterable[EnumDescriptor] = (),
        package: str | None = None,
        syntax: str | None = None,
    ) -> None:
        self.package = package
        self.syntax = syntax
        self.messages = tuple(messages)
        self.enums = tuple(enums)

        types: dict[str, TypeDescriptor] = {}

        def register(descriptor: TypeDescriptor) -> None:
            if descriptor.full_name in types:
                raise SchemaError(f"{descriptor.full_name} is already defined")
            types[descriptor.full_name] = descriptor
            if isinstance(descriptor, MessageDescriptor):
                for nested in (*descriptor.nested_types, *descriptor.enum_types):
                    register(nested)

        for descriptor in (*self.messages, *self.enums):
            register(descriptor)

        self._types: Mapping[str, TypeDescriptor] = MappingProxyType(types)

    def __contains__(self, name: str) -> bool:
        return self.find(name) is not None

    def __iter__(self) -> Iterator[MessageDescriptor]:
        return iter(self.messages)

    def __repr__(self) -> str:
        return f"Schema(package={self.package!r}, types={list(self._types)!r})"

    def find(self, name: str) -> TypeDescriptor | None:
        """Find a message or enum by full or package-relative name."""
        if name.startswith("."):
            return self._types.get(name[1:])
        if name in self._types:
            return self._types[name]
        if self.package:
            return self._types.get(f"{self.package}.{name}")
        return None

    def message(self, name: str) -> MessageDescriptor:
        descriptor = self.find(name)
        if not isinstance(descriptor, MessageDescriptor):
            raise KeyError(f"Unknown message type {name}")
        return descriptor

    def enum(self, name: str) -> EnumDescriptor:
        descriptor = self.find(name)
        if not isinstance(descriptor, EnumDescriptor):
            raise KeyError(f"Unknown enum type {name}")
        return descriptor

    def all_messages(self) -> Iterator[MessageDescriptor]:
        """Iterate over every message, nested ones included."""
        for descriptor in self._types.values():
            if isinstance(descriptor, MessageDescriptor):
                yield descriptor

    def all_enums(self) -> Iterator[EnumDescriptor]:
        for descriptor in self._types.values():
            if isinstance(descriptor, EnumDescriptor):
                yield descriptor
