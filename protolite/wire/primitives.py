"""Wire-level primitives: wire types, varints, zigzag, tags and fixed-width values.

Decoding helpers take a buffer and an offset and return `(value, consumed)`,
raising MalformedInputError when the buffer ends early.
"""

import struct
from enum import IntEnum

from ..errors import MalformedInputError
from ..schema.descriptors import FieldType

MAX_VARINT_BYTES = 10

_UINT64_MASK = (1 << 64) - 1

Buffer = bytes | bytearray | memoryview


class WireType(IntEnum):
    """Encoding category of a tagged value."""

    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    FIXED32 = 5


WIRE_TYPES: dict[FieldType, WireType] = {
    FieldType.INT32: WireType.VARINT,
    FieldType.INT64: WireType.VARINT,
    FieldType.UINT32: WireType.VARINT,
    FieldType.UINT64: WireType.VARINT,
    FieldType.SINT32: WireType.VARINT,
    FieldType.SINT64: WireType.VARINT,
    FieldType.BOOL: WireType.VARINT,
    FieldType.ENUM: WireType.VARINT,
    FieldType.FIXED64: WireType.FIXED64,
    FieldType.SFIXED64: WireType.FIXED64,
    FieldType.DOUBLE: WireType.FIXED64,
    FieldType.FIXED32: WireType.FIXED32,
    FieldType.SFIXED32: WireType.FIXED32,
    FieldType.FLOAT: WireType.FIXED32,
    FieldType.STRING: WireType.LENGTH_DELIMITED,
    FieldType.BYTES: WireType.LENGTH_DELIMITED,
    FieldType.MESSAGE: WireType.LENGTH_DELIMITED,
}

# Little-endian struct formats of the fixed-width types
FIXED_FORMATS: dict[FieldType, str] = {
    FieldType.FIXED32: "<I",
    FieldType.SFIXED32: "<i",
    FieldType.FLOAT: "<f",
    FieldType.FIXED64: "<Q",
    FieldType.SFIXED64: "<q",
    FieldType.DOUBLE: "<d",
}

_FIXED_SIZES = {WireType.FIXED32: 4, WireType.FIXED64: 8}


def wire_type_for(field_type: FieldType) -> WireType:
    return WIRE_TYPES[field_type]


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as a base-128 varint."""
    if value < 0:
        raise ValueError(f"varint value must not be negative, got {value}")

    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value == 0:
            out.append(bits)
            return bytes(out)
        out.append(0x80 | bits)


def decode_varint(data: Buffer, offset: int = 0) -> tuple[int, int]:
    """Decode a varint at offset.

    Returns:
        Tuple of (value, bytes_consumed).
    """
    result = 0
    shift = 0
    pos = offset
    end = len(data)

    while True:
        if pos >= end:
            raise MalformedInputError(f"Truncated varint at offset {offset}")
        if pos - offset >= MAX_VARINT_BYTES:
            raise MalformedInputError(f"Varint at offset {offset} exceeds {MAX_VARINT_BYTES} bytes")
        byte = data[pos]
        result |= (byte & 0x7F) << shift
        pos += 1
        if not byte & 0x80:
            return result & _UINT64_MASK, pos - offset
        shift += 7


def encode_signed_varint(value: int) -> bytes:
    """Two's complement varint: negative values always take ten bytes."""
    return encode_varint(value & _UINT64_MASK)


def to_signed(value: int, bits: int) -> int:
    """Reinterpret the low `bits` of an unsigned value as two's complement."""
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        value -= 1 << bits
    return value


def zigzag_encode(value: int, bits: int = 64) -> int:
    """Map signed to unsigned so small magnitudes stay small: 0, -1, 1, -2 -> 0, 1, 2, 3."""
    return ((value << 1) ^ (value >> (bits - 1))) & ((1 << bits) - 1)


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def encode_tag(number: int, wire_type: WireType) -> bytes:
    return encode_varint((number << 3) | wire_type)


def decode_tag(data: Buffer, offset: int = 0) -> tuple[int, int, int]:
    """Decode a tag.

    The wire type is returned as a plain int; validating it is up to the
    caller.

    Returns:
        Tuple of (field_number, wire_type, bytes_consumed).
    """
    key, consumed = decode_varint(data, offset)
    number = key >> 3
    if number == 0:
        raise MalformedInputError(f"Invalid field number 0 at offset {offset}")
    return number, key & 0x07, consumed


def encode_length_delimited(payload: bytes) -> bytes:
    return encode_varint(len(payload)) + payload


def decode_length_delimited(data: Buffer, offset: int = 0) -> tuple[memoryview, int]:
    """Decode a varint length prefix and the payload following it.

    Returns:
        Tuple of (payload, bytes_consumed) where consumed includes the prefix.
    """
    length, consumed = decode_varint(data, offset)
    start = offset + consumed
    if start + length > len(data):
        raise MalformedInputError(
            f"Length {length} at offset {offset} exceeds the remaining "
            f"{len(data) - start} bytes"
        )
    return memoryview(data)[start : start + length], consumed + length


def encode_fixed(field_type: FieldType, value: int | float) -> bytes:
    return struct.pack(FIXED_FORMATS[field_type], value)


def decode_fixed(field_type: FieldType, data: Buffer, offset: int = 0) -> tuple[int | float, int]:
    fmt = FIXED_FORMATS[field_type]
    size = struct.calcsize(fmt)
    if offset + size > len(data):
        raise MalformedInputError(f"Truncated {field_type} value at offset {offset}")
    return struct.unpack_from(fmt, data, offset)[0], size


def skip_field(data: Buffer, offset: int, wire_type: int) -> int:
    """Return the number of bytes taken by a value of the given wire type."""
    if wire_type == WireType.VARINT:
        return decode_varint(data, offset)[1]
    if wire_type == WireType.LENGTH_DELIMITED:
        return decode_length_delimited(data, offset)[1]
    if wire_type in _FIXED_SIZES:
        size = _FIXED_SIZES[WireType(wire_type)]
        if offset + size > len(data):
            raise MalformedInputError(f"Truncated fixed-width value at offset {offset}")
        return size
    raise MalformedInputError(f"Unrecognized wire type {wire_type} at offset {offset}")
