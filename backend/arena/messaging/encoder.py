"""MessagePack framing for the arena WebSocket.

One frame holds one client or server message, always a map keyed by
strings with a ``type`` entry. Inbound frames are bounded so a client
cannot make the server allocate large buffers.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """An inbound frame could not be turned into a message map."""


MAX_BUFFER_LEN = 64 * 1024

# Chat text is the longest field; nothing in the protocol uses bin or ext.
_UNPACK_LIMITS = {
    "max_str_len": 16 * 1024,
    "max_bin_len": 1024,
    "max_array_len": 256,
    "max_map_len": 64,
    "max_ext_len": 0,
}


def encode(message: dict[str, Any]) -> bytes:
    return msgpack.packb(message, use_bin_type=True)


def decode(frame: bytes) -> dict[str, Any]:
    """Unpack one frame, raising DecodeError for oversized, malformed or non-map data."""
    if len(frame) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(frame)} bytes (max {MAX_BUFFER_LEN})")
    try:
        message = msgpack.unpackb(frame, raw=False, strict_map_key=True, **_UNPACK_LIMITS)
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e
    if isinstance(message, dict):
        return message
    raise DecodeError(f"expected map, got {type(message).__name__}")
