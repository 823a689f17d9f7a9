"""Binary wire format: encoder, decoder and message instances."""

from .decoder import decode as decode
from .encoder import DEFAULT_RECURSION_LIMIT as DEFAULT_RECURSION_LIMIT
from .encoder import encode as encode
from .message import Message as Message
from .message import UnknownField as UnknownField
from .primitives import WireType as WireType
