"""Exceptions raised by protolite."""


class ProtoliteError(RuntimeError):
    """Base exception for all protolite errors."""


class SchemaError(ProtoliteError):
    """Raised when a schema cannot be parsed, validated or resolved.

    Examples:
        - Duplicate field number or name within one message
        - Field number outside 1..2**29-1 or inside a reserved range
        - Reference to an undefined message or enum type
    """


class EncodingError(ProtoliteError):
    """Raised when a message cannot be encoded.

    The instance being encoded is left untouched and no partial output is
    returned.
    """


class MalformedInputError(ProtoliteError):
    """Raised when a buffer cannot be decoded.

    Examples:
        - Truncated tag, varint, length prefix or fixed-width value
        - Unrecognized wire type
        - Wire type that does not match the declared field type
    """
