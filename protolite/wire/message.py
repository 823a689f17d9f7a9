"""Message instances bound to a MessageDescriptor."""

import base64
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Self

from ..schema.descriptors import FieldDescriptor, FieldType, MessageDescriptor

_MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class UnknownField:
    """A field kept verbatim because its number is not in the descriptor."""

    number: int
    wire_type: int
    data: bytes  # Encoded value, without the tag


class Message:
    """A populated instance of a message type.

    Values are stored by field number and read or written by field name,
    either as attributes or with get/set:

        square = Message(schema.message("Square"))
        square.x = 1
        square.set("red", 255)
        square.green  # 0, unset fields read as their type's zero value

    Repeated fields read as a list that is kept on the instance, so it can be
    appended to. Singular message fields read as a nested Message that is
    kept the same way; it counts as set once it holds a non-zero value.

    Field attributes take precedence over the methods below. A field named
    like a method hides it on the instance; call it through the class
    instead, e.g. Message.items(cart) or Message.descriptor.fget(cart).

    Generated subclasses set DESCRIPTOR and may be created without one.
    Instances are not safe for concurrent mutation.
    """

    __slots__ = ("_descriptor", "_values", "_unknown")

    DESCRIPTOR: ClassVar[MessageDescriptor]
    _registry: ClassVar[Mapping[str, type["Message"]]] = {}

    def __init__(self, descriptor: MessageDescriptor | None = None, /, **values: Any) -> None:
        if descriptor is None:
            descriptor = getattr(type(self), "DESCRIPTOR", None)
            if descriptor is None:
                raise TypeError(f"{type(self).__name__} needs a MessageDescriptor")
        object.__setattr__(self, "_descriptor", descriptor)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_unknown", [])
        for name, value in values.items():
            self._set(name, value)

    @classmethod
    def class_for(cls, descriptor: MessageDescriptor) -> type["Message"]:
        """The class used for instances of descriptor created from this class."""
        return cls._registry.get(descriptor.full_name, Message)

    @property
    def descriptor(self) -> MessageDescriptor:
        return self._descriptor

    @property
    def unknown_fields(self) -> tuple[UnknownField, ...]:
        return tuple(self._unknown)

    def _field(self, name: str) -> FieldDescriptor:
        fd = self._descriptor.field_by_name(name)
        if fd is None:
            raise AttributeError(f"{self._descriptor.full_name} has no field {name!r}")
        return fd

    def _new_message(self, fd: FieldDescriptor) -> "Message":
        assert fd.message_type is not None
        return type(self).class_for(fd.message_type)(fd.message_type)

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_"):
            descriptor = object.__getattribute__(self, "_descriptor")
            if descriptor.field_by_name(name) is not None:
                return object.__getattribute__(self, "_get")(name)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            raise AttributeError(f"Cannot set private attribute {name}")
        self._set(name, value)

    def __delattr__(self, name: str) -> None:
        self._clear(name)

    def get(self, name: str) -> Any:
        """Read a field, resolving unset fields to their zero value."""
        return self._get(name)

    def set(self, name: str, value: Any) -> None:
        """Write a field.

        Dicts given for message fields become nested messages and enum value
        names become their numbers. Other values are checked against the
        field type on encode.
        """
        self._set(name, value)

    def has(self, name: str) -> bool:
        """Whether a field holds a value that would be encoded."""
        return self._has(name)

    def clear(self, name: str) -> None:
        self._clear(name)

    def add(self, name: str, **values: Any) -> "Message":
        """Append a new nested message to a repeated message field and return it."""
        fd = self._field(name)
        if not (fd.repeated and fd.is_message):
            raise TypeError(f"{name} is not a repeated message field")
        item = self._new_message(fd)
        for key, value in values.items():
            item._set(key, value)
        self._get(name).append(item)
        return item

    def items(self) -> Iterator[tuple[FieldDescriptor, Any]]:
        """Stored fields in ascending field-number order, without resolving defaults."""
        return self._items()

    def _get(self, name: str) -> Any:
        fd = self._field(name)
        value = self._values.get(fd.number, _MISSING)
        if value is not _MISSING:
            return value

        if fd.repeated:
            value = []
        elif fd.is_message:
            value = self._new_message(fd)
        else:
            return fd.default

        self._values[fd.number] = value
        return value

    def _set(self, name: str, value: Any) -> None:
        fd = self._field(name)
        if fd.repeated and isinstance(value, (list, tuple)):
            value = [self._normalize(fd, v) for v in value]
        elif not fd.repeated:
            value = self._normalize(fd, value)
        self._values[fd.number] = value

    def _normalize(self, fd: FieldDescriptor, value: Any) -> Any:
        if fd.is_message and isinstance(value, Mapping):
            assert fd.message_type is not None
            cls = type(self).class_for(fd.message_type)
            return cls.from_dict(value, fd.message_type)
        if fd.type == FieldType.ENUM and isinstance(value, str) and fd.enum_type is not None:
            known = fd.enum_type.value_by_name(value)
            if known is not None:
                return known.number
        return value

    def _has(self, name: str) -> bool:
        fd = self._field(name)
        if fd.number not in self._values:
            return False
        value = self._values[fd.number]
        if fd.repeated:
            return bool(value)
        return not (fd.is_message and _is_empty(value))

    def _clear(self, name: str) -> None:
        self._values.pop(self._field(name).number, None)

    def _items(self) -> Iterator[tuple[FieldDescriptor, Any]]:
        for fd in self._descriptor.fields_in_wire_order:
            if fd.number in self._values:
                yield fd, self._values[fd.number]

    def _effective(self, fd: FieldDescriptor) -> Any:
        value = self._values.get(fd.number, _MISSING)
        if value is _MISSING:
            return _unset_value(fd)
        if fd.is_message and not fd.repeated and _is_empty(value):
            return None
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        if self._descriptor.full_name != other._descriptor.full_name:
            return False
        return all(
            self._effective(fd) == other._effective(fd) for fd in self._descriptor.fields
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        values = ", ".join(f"{fd.name}={value!r}" for fd, value in self._items())
        return f"{self._descriptor.name}({values})"

    def to_dict(self, *, json_compatible: bool = False) -> dict[str, Any]:
        """Convert set fields to a dict keyed by field name.

        With json_compatible, bytes are base64 encoded and enum values are
        given by name where the number is known.
        """
        result: dict[str, Any] = {}
        for fd, value in self._items():
            if fd.repeated:
                if not value:
                    continue
                result[fd.name] = [_to_plain(fd, v, json_compatible) for v in value]
            elif fd.is_message and _is_empty(value):
                continue
            else:
                result[fd.name] = _to_plain(fd, value, json_compatible)
        return result

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        descriptor: MessageDescriptor | None = None,
        *,
        json_compatible: bool = False,
    ) -> Self:
        """Build an instance from a dict keyed by field name (see to_dict)."""
        message = cls(descriptor) if descriptor is not None else cls()
        for name, value in data.items():
            fd = message._field(name)
            if fd.repeated:
                message._set(name, [message._from_plain(fd, v, json_compatible) for v in value])
            else:
                message._set(name, message._from_plain(fd, value, json_compatible))
        return message

    def _from_plain(self, fd: FieldDescriptor, value: Any, json_compatible: bool) -> Any:
        if fd.is_message and isinstance(value, Mapping):
            assert fd.message_type is not None
            cls = type(self).class_for(fd.message_type)
            return cls.from_dict(value, fd.message_type, json_compatible=json_compatible)
        if json_compatible and fd.type == FieldType.BYTES and isinstance(value, str):
            return base64.b64decode(value)
        return value

    def encode(self) -> bytes:
        from .encoder import encode

        return encode(self)

    @classmethod
    def decode(cls, data: bytes | bytearray | memoryview, **kwargs: Any) -> Self:
        """Decode data into an instance of this (generated) class."""
        from .decoder import decode

        return decode(  # type: ignore[return-value]
            data, cls.DESCRIPTOR, message_class=cls, **kwargs
        )


def _unset_value(fd: FieldDescriptor) -> Any:
    if fd.repeated:
        return []
    return None if fd.is_message else fd.default


def _is_empty(message: Any) -> bool:
    return isinstance(message, Message) and all(
        message._effective(fd) == _unset_value(fd) for fd in message._descriptor.fields
    )


def _to_plain(fd: FieldDescriptor, value: Any, json_compatible: bool) -> Any:
    if isinstance(value, Message):
        return Message.to_dict(value, json_compatible=json_compatible)
    if json_compatible:
        if fd.type == FieldType.BYTES:
            return base64.b64encode(bytes(value)).decode("ascii")
        if fd.type == FieldType.ENUM and fd.enum_type is not None and isinstance(value, int):
            known = fd.enum_type.value_by_number(value)
            return known.name if known else value
    return value
