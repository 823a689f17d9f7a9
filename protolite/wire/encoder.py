"""Encode message instances to the binary wire format."""

import math
import struct
from collections.abc import Iterator, Mapping
from typing import Any

from ..errors import EncodingError
from ..schema.descriptors import INTEGER_RANGES, FieldDescriptor, FieldType, MessageDescriptor
from .message import Message
from .primitives import (
    FIXED_FORMATS,
    WireType,
    encode_fixed,
    encode_length_delimited,
    encode_signed_varint,
    encode_tag,
    encode_varint,
    wire_type_for,
    zigzag_encode,
)

DEFAULT_RECURSION_LIMIT = 100

Instance = Message | Mapping[str, Any]


def _type_error(fd: FieldDescriptor, value: Any) -> EncodingError:
    return EncodingError(
        f"Field {fd.name}: expected a {fd.type} value, got {type(value).__name__} {value!r}"
    )


def _check_int(fd: FieldDescriptor, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _type_error(fd, value)
    low, high = INTEGER_RANGES[fd.type]
    if not low <= value <= high:
        raise EncodingError(f"Field {fd.name}: {value} is out of range for {fd.type}")
    return value


def _check_scalar(fd: FieldDescriptor, value: Any) -> Any:
    """Validate a scalar or enum value against its field and normalize it."""
    t = fd.type

    if t == FieldType.BOOL:
        if not isinstance(value, bool):
            raise _type_error(fd, value)
        return value

    if t == FieldType.ENUM:
        if isinstance(value, str):
            known = fd.enum_type.value_by_name(value) if fd.enum_type is not None else None
            if known is None:
                raise EncodingError(f"Field {fd.name}: unknown {fd.type_name} value {value!r}")
            return known.number
        return _check_int(fd, value)

    if t in INTEGER_RANGES:
        return _check_int(fd, value)

    if t in (FieldType.FLOAT, FieldType.DOUBLE):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _type_error(fd, value)
        try:
            return float(value)
        except OverflowError as exc:
            raise EncodingError(f"Field {fd.name}: {value} does not fit in a {t}") from exc

    if t == FieldType.STRING:
        if not isinstance(value, str):
            raise _type_error(fd, value)
        return value

    if t == FieldType.BYTES:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise _type_error(fd, value)
        return bytes(value)

    raise _type_error(fd, value)


def _is_default(fd: FieldDescriptor, value: Any) -> bool:
    if fd.type in (FieldType.FLOAT, FieldType.DOUBLE):
        # -0.0 compares equal to 0.0 but is still transmitted
        return value == 0.0 and math.copysign(1.0, value) > 0
    return value == fd.default


def _scalar_bytes(fd: FieldDescriptor, value: Any) -> bytes:
    """Encode a checked scalar value, without its tag."""
    t = fd.type

    if t in (FieldType.INT32, FieldType.INT64, FieldType.ENUM):
        return encode_signed_varint(value)
    if t in (FieldType.UINT32, FieldType.UINT64):
        return encode_varint(value)
    if t == FieldType.SINT32:
        return encode_varint(zigzag_encode(value, 32))
    if t == FieldType.SINT64:
        return encode_varint(zigzag_encode(value, 64))
    if t == FieldType.BOOL:
        return b"\x01" if value else b"\x00"
    if t in FIXED_FORMATS:
        try:
            return encode_fixed(t, value)
        except (OverflowError, ValueError, struct.error) as exc:
            raise EncodingError(f"Field {fd.name}: {value} does not fit a {t}") from exc
    if t == FieldType.STRING:
        try:
            return encode_length_delimited(value.encode("utf-8"))
        except UnicodeEncodeError as exc:
            raise EncodingError(f"Field {fd.name}: string is not valid unicode") from exc
    if t == FieldType.BYTES:
        return encode_length_delimited(value)

    raise EncodingError(f"Field {fd.name}: cannot encode {t} as a scalar")


class _Encoder:
    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth

    def message(
        self, buf: bytearray, instance: Instance, descriptor: MessageDescriptor, depth: int
    ) -> None:
        if depth > self.max_depth:
            raise EncodingError(f"Message nesting exceeds {self.max_depth} levels")

        for fd, value in _fields(instance, descriptor):
            if fd.repeated:
                self.repeated(buf, fd, value, depth)
            else:
                self.singular(buf, fd, value, depth)

        if isinstance(instance, Message):
            for unknown in instance._unknown:
                buf.extend(encode_tag(unknown.number, WireType(unknown.wire_type)))
                buf.extend(unknown.data)

    def singular(self, buf: bytearray, fd: FieldDescriptor, value: Any, depth: int) -> None:
        if fd.is_message:
            payload = self.nested(fd, value, depth)
            if payload:
                buf.extend(encode_tag(fd.number, WireType.LENGTH_DELIMITED))
                buf.extend(encode_length_delimited(payload))
            return

        value = _check_scalar(fd, value)
        if _is_default(fd, value):
            return
        buf.extend(encode_tag(fd.number, wire_type_for(fd.type)))
        buf.extend(_scalar_bytes(fd, value))

    def repeated(self, buf: bytearray, fd: FieldDescriptor, values: Any, depth: int) -> None:
        if not isinstance(values, (list, tuple)):
            raise EncodingError(
                f"Field {fd.name}: repeated field needs a list, got {type(values).__name__}"
            )
        if not values:
            return

        if fd.is_message:
            tag = encode_tag(fd.number, WireType.LENGTH_DELIMITED)
            for item in values:
                buf.extend(tag)
                buf.extend(encode_length_delimited(self.nested(fd, item, depth)))
            return

        if fd.packed:
            payload = b"".join(_scalar_bytes(fd, _check_scalar(fd, v)) for v in values)
            buf.extend(encode_tag(fd.number, WireType.LENGTH_DELIMITED))
            buf.extend(encode_length_delimited(payload))
            return

        tag = encode_tag(fd.number, wire_type_for(fd.type))
        for item in values:
            buf.extend(tag)
            buf.extend(_scalar_bytes(fd, _check_scalar(fd, item)))

    def nested(self, fd: FieldDescriptor, value: Any, depth: int) -> bytes:
        if fd.message_type is None:
            raise EncodingError(f"Field {fd.name}: message type {fd.type_name} is not linked")
        if isinstance(value, Message):
            if value._descriptor.full_name != fd.message_type.full_name:
                raise EncodingError(
                    f"Field {fd.name}: expected {fd.message_type.full_name}, "
                    f"got {value._descriptor.full_name}"
                )
        elif not isinstance(value, Mapping):
            raise _type_error(fd, value)

        nested_buf = bytearray()
        self.message(nested_buf, value, fd.message_type, depth + 1)
        return bytes(nested_buf)


def _fields(
    instance: Instance, descriptor: MessageDescriptor
) -> Iterator[tuple[FieldDescriptor, Any]]:
    if isinstance(instance, Message):
        yield from instance._items()
        return

    found: list[tuple[FieldDescriptor, Any]] = []
    for name, value in instance.items():
        fd = descriptor.field_by_name(name)
        if fd is None:
            raise EncodingError(f"{descriptor.full_name} has no field {name!r}")
        found.append((fd, value))
    yield from sorted(found, key=lambda item: item[0].number)


def encode(
    instance: Instance,
    descriptor: MessageDescriptor | None = None,
    *,
    max_depth: int = DEFAULT_RECURSION_LIMIT,
) -> bytes:
    """Encode a message to bytes.

    Args:
        instance: A Message, or a mapping of field name to value (nested
            mappings are accepted for message fields).
        descriptor: Required for mappings; for a Message it must describe the
            same type as the message's own descriptor.
        max_depth: Maximum nesting of messages.

    Returns:
        The encoded message. Fields are written in ascending field-number
        order and fields holding their zero value are left out.

    Raises:
        EncodingError: If a value does not match its declared type. Nothing
            is returned and the instance is not modified.
    """
    if isinstance(instance, Message):
        if descriptor is not None and descriptor.full_name != instance._descriptor.full_name:
            raise EncodingError(
                f"Cannot encode a {instance._descriptor.full_name} as {descriptor.full_name}"
            )
        descriptor = instance._descriptor
    elif isinstance(instance, Mapping):
        if descriptor is None:
            raise EncodingError("A descriptor is required to encode a mapping")
    else:
        raise EncodingError(f"Cannot encode {type(instance).__name__}, expected a Message")

    buf = bytearray()
    _Encoder(max_depth).message(buf, instance, descriptor, 0)
    return bytes(buf)
