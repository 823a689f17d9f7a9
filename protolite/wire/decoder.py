"""Decode the binary wire format into message instances."""

import logging

from ..errors import MalformedInputError
from ..schema.descriptors import FieldDescriptor, FieldType, MessageDescriptor
from .encoder import DEFAULT_RECURSION_LIMIT
from .message import Message, UnknownField
from .primitives import (
    FIXED_FORMATS,
    Buffer,
    WireType,
    decode_fixed,
    decode_length_delimited,
    decode_tag,
    decode_varint,
    skip_field,
    to_signed,
    wire_type_for,
    zigzag_decode,
)

logger = logging.getLogger(__name__)

_WIRE_TYPES = frozenset(int(w) for w in WireType)


def _from_varint(t: FieldType, raw: int) -> int | bool:
    if t in (FieldType.INT32, FieldType.ENUM):
        return to_signed(raw, 32)
    if t == FieldType.INT64:
        return to_signed(raw, 64)
    if t == FieldType.UINT32:
        return raw & 0xFFFFFFFF
    if t == FieldType.SINT32:
        return zigzag_decode(raw & 0xFFFFFFFF)
    if t == FieldType.SINT64:
        return zigzag_decode(raw)
    if t == FieldType.BOOL:
        return raw != 0
    return raw


class _Decoder:
    def __init__(self, keep_unknown: bool, max_depth: int) -> None:
        self.keep_unknown = keep_unknown
        self.max_depth = max_depth

    def message(
        self,
        data: memoryview,
        descriptor: MessageDescriptor,
        message_class: type[Message],
        depth: int,
    ) -> Message:
        if depth > self.max_depth:
            raise MalformedInputError(f"Message nesting exceeds {self.max_depth} levels")

        message = message_class.class_for(descriptor)(descriptor)
        values = message._values
        offset = 0
        end = len(data)

        while offset < end:
            number, wire_type, consumed = decode_tag(data, offset)
            if wire_type not in _WIRE_TYPES:
                raise MalformedInputError(
                    f"Unrecognized wire type {wire_type} for field {number} at offset {offset}"
                )
            offset += consumed

            fd = descriptor.field_by_number(number)
            if fd is None:
                size = skip_field(data, offset, wire_type)
                if self.keep_unknown:
                    unknown = UnknownField(number, wire_type, bytes(data[offset : offset + size]))
                    message._unknown.append(unknown)
                logger.debug(
                    "%s: %s unknown field %d (wire type %d)",
                    descriptor.full_name,
                    "kept" if self.keep_unknown else "skipped",
                    number,
                    wire_type,
                )
                offset += size
                continue

            expected = wire_type_for(fd.type)
            if (
                fd.repeated
                and wire_type == WireType.LENGTH_DELIMITED
                and expected != WireType.LENGTH_DELIMITED
            ):
                payload, consumed = decode_length_delimited(data, offset)
                values.setdefault(fd.number, []).extend(self.packed(payload, fd))
                offset += consumed
                continue

            if wire_type != expected:
                raise MalformedInputError(
                    f"{descriptor.full_name}.{fd.name}: wire type {wire_type} "
                    f"does not match declared type {fd.type}"
                )

            value, consumed = self.value(data, offset, fd, message_class, depth)
            offset += consumed

            if fd.repeated:
                values.setdefault(fd.number, []).append(value)
            else:
                values[fd.number] = value

        return message

    def value(
        self,
        data: memoryview,
        offset: int,
        fd: FieldDescriptor,
        message_class: type[Message],
        depth: int,
    ) -> tuple[object, int]:
        t = fd.type

        if t in FIXED_FORMATS:
            return decode_fixed(t, data, offset)

        if wire_type_for(t) == WireType.VARINT:
            raw, consumed = decode_varint(data, offset)
            return _from_varint(t, raw), consumed

        payload, consumed = decode_length_delimited(data, offset)
        if t == FieldType.STRING:
            try:
                return bytes(payload).decode("utf-8"), consumed
            except UnicodeDecodeError as exc:
                raise MalformedInputError(f"Field {fd.name}: invalid UTF-8 in string") from exc
        if t == FieldType.BYTES:
            return bytes(payload), consumed

        if fd.message_type is None:
            raise MalformedInputError(f"Field {fd.name}: message type {fd.type_name} is not linked")
        nested = self.message(payload, fd.message_type, message_class, depth + 1)
        return nested, consumed

    def packed(self, payload: memoryview, fd: FieldDescriptor) -> list[object]:
        items: list[object] = []
        offset = 0
        while offset < len(payload):
            if fd.type in FIXED_FORMATS:
                value, consumed = decode_fixed(fd.type, payload, offset)
            else:
                raw, consumed = decode_varint(payload, offset)
                value = _from_varint(fd.type, raw)
            items.append(value)
            offset += consumed
        return items


def decode(
    data: Buffer,
    descriptor: MessageDescriptor,
    *,
    keep_unknown: bool = False,
    max_depth: int = DEFAULT_RECURSION_LIMIT,
    message_class: type[Message] = Message,
) -> Message:
    """Decode bytes into a new message instance.

    Args:
        data: Encoded message.
        descriptor: Descriptor of the encoded message type.
        keep_unknown: Keep fields with unknown numbers on the instance so
            that encoding it again writes them back. They are skipped
            otherwise.
        max_depth: Maximum nesting of messages.
        message_class: Class (or generated base class) that instances,
            nested ones included, are created from.

    Returns:
        The decoded message. Fields absent from data read as their zero
        value.

    Raises:
        MalformedInputError: If data is truncated or invalid. No partial
            instance is returned.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"Cannot decode {type(data).__name__}, expected bytes")

    return _Decoder(keep_unknown, max_depth).message(
        memoryview(data).cast("B"), descriptor, message_class, 0
    )
