"""protolite - schema-driven binary serialization in the Protocol Buffers style."""

from importlib.metadata import PackageNotFoundError, version

from .errors import EncodingError, MalformedInputError, ProtoliteError, SchemaError
from .schema import (
    EnumDescriptor,
    FieldDescriptor,
    FieldType,
    MessageDescriptor,
    Schema,
    load_schema,
    load_schema_file,
)
from .wire import Message, decode, encode

try:
    __version__ = version("protolite")
except PackageNotFoundError:
    __version__ = "(local)"

__all__ = [
    "EncodingError",
    "EnumDescriptor",
    "FieldDescriptor",
    "FieldType",
    "MalformedInputError",
    "Message",
    "MessageDescriptor",
    "ProtoliteError",
    "Schema",
    "SchemaError",
    "decode",
    "encode",
    "load_schema",
    "load_schema_file",
]
