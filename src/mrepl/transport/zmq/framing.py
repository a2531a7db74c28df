"""ZMQ multipart framing for protocol messages.

Request/Response (DEALER<->ROUTER)
    (optional routing prefix...), version, slots_json
"""

from __future__ import annotations

from typing import Sequence, Tuple

from ... import json
from ...protocol import fields
from ...protocol.message import Message


# This is the version of the mrepl on-the-wire framing implemented here,
# identified by a single byte.

PROTOCOL_VERSION = b"1"


class FramingError(ValueError):
    """A multipart message could not be decoded."""


def to_frames(msg: Message, prefix: Tuple[bytes, ...] = ()) -> Tuple[bytes, ...]:
    """Encode a protocol Message to ZMQ multipart frames.

    Raises TypeError if a slot value cannot be represented as JSON.
    """

    return tuple(prefix) + (PROTOCOL_VERSION, json.dumps(msg.slots))


def from_frames(parts: Sequence[bytes]) -> Tuple[Tuple[bytes, ...], Message]:
    """Decode ROUTER/DEALER parts into (routing prefix, Message).

    ROUTER sockets prepend identity frames; everything before the version
    frame is returned as the routing prefix.
    """

    if len(parts) < 2:
        raise FramingError("expected at least 2 frames, got %d" % len(parts))

    prefix = tuple(parts[:-2])
    their_version = parts[-2]

    if their_version != PROTOCOL_VERSION:
        raise FramingError(
            f"message is mrepl protocol {their_version!r}, recipient expects {PROTOCOL_VERSION!r}"
        )

    try:
        slots = json.loads(parts[-1])
    except Exception as exc:
        raise FramingError(f"undecodable message: {exc}") from exc

    if not isinstance(slots, dict):
        raise FramingError("message must be a JSON object")

    return prefix, Message(slots)


def error_frames(prefix: Tuple[bytes, ...], text: str) -> Tuple[bytes, ...]:
    """Frames for an error response to a message that could not be decoded."""

    slots = {fields.ID: None, fields.STATUS: [fields.ERROR, fields.DONE], "err": text}
    return tuple(prefix) + (PROTOCOL_VERSION, json.dumps(slots))
