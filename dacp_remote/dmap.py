"""
DMAP codec for DACP responses.

Every DACP response body is a sequence of DMAP items:

    ┌──────────┬────────────┬─────────────────┐
    │   Tag    │   Length   │     Payload     │
    ├──────────┼────────────┼─────────────────┤
    │ 4 ASCII  │ 4B (BE u32)│ Length bytes    │
    └──────────┴────────────┴─────────────────┘

The payload type is not on the wire; it is implied by the tag. Containers
hold further items, strings are UTF-8, versions are two big-endian u16.
"""

import struct
from typing import Any

from .exceptions import DmapDecodeError

HEADER_SIZE = 8

# Tags whose payload is a nested list of items
CONTAINER_TAGS = frozenset({
    "mlog",  # login response
    "msrv",  # server info
    "mccr",  # content codes
    "mdcl",  # dictionary
    "mlcl",  # listing
    "mlit",  # listing item
    "cmst",  # current status (playstatusupdate)
    "cmgt",  # getproperty response
    "casp",  # speakers
    "caci",  # control interface list
    "apso",  # playlist songs
    "aply",  # playlists
    "avdb",  # databases
    "cacr",  # cue response
})

# Tags whose payload is UTF-8 text
STRING_TAGS = frozenset({
    "minm",  # item / server name
    "cann",  # now-playing track
    "cana",  # now-playing artist
    "canl",  # now-playing album
    "cang",  # now-playing genre
    "asal",  # song album
    "asar",  # song artist
    "mcnm",  # content code number
    "mcna",  # content code name
    "cmnm",  # device name
    "cmty",  # device type
    "ceWM",  # welcome message
})

# Tags whose payload is [major u16][minor u16]
VERSION_TAGS = frozenset({"mpro", "apro", "aeSV"})

_INT_FORMATS = {1: ">B", 2: ">H", 4: ">I", 8: ">Q"}


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode a DMAP byte stream into a field dictionary.

    Args:
        data: Raw response body

    Returns:
        Dict keyed by tag. Containers become nested dicts; tags repeated
        within one container become lists in arrival order.

    Raises:
        DmapDecodeError: If an item header or payload is truncated
    """
    fields: dict[str, Any] = {}
    repeated: set[str] = set()
    offset = 0

    while offset < len(data):
        if len(data) - offset < HEADER_SIZE:
            raise DmapDecodeError(
                f"Truncated item header at offset {offset}: "
                f"{len(data) - offset} bytes left, need {HEADER_SIZE}"
            )

        tag = data[offset:offset + 4].decode("ascii", errors="replace")
        (length,) = struct.unpack(">I", data[offset + 4:offset + 8])
        start = offset + HEADER_SIZE
        end = start + length

        if end > len(data):
            raise DmapDecodeError(
                f"Truncated payload for '{tag}': have {len(data) - start}, need {length}"
            )

        value = decode_value(tag, data[start:end])

        if tag in repeated:
            fields[tag].append(value)
        elif tag in fields:
            fields[tag] = [fields[tag], value]
            repeated.add(tag)
        else:
            fields[tag] = value

        offset = end

    return fields


def decode_value(tag: str, payload: bytes) -> Any:
    """
    Decode a single payload according to its tag.

    Unknown tags with a length of 1, 2, 4 or 8 bytes are read as big-endian
    unsigned integers; anything else is returned as raw bytes.
    """
    if tag in CONTAINER_TAGS:
        return decode(payload)

    if tag in STRING_TAGS:
        return payload.decode("utf-8", errors="replace")

    if tag in VERSION_TAGS and len(payload) == 4:
        major, minor = struct.unpack(">HH", payload)
        return f"{major}.{minor}"

    fmt = _INT_FORMATS.get(len(payload))
    if fmt is not None:
        return struct.unpack(fmt, payload)[0]

    return bytes(payload)


def encode_item(tag: str, value: Any) -> bytes:
    """
    Encode one DMAP item.

    Args:
        tag: 4-character tag
        value: dict (container), str, int, bytes or "major.minor" version

    Returns:
        Item bytes: tag + length + payload

    Raises:
        ValueError: If the tag is not 4 ASCII characters or the value type
            does not fit the tag
    """
    raw_tag = tag.encode("ascii")
    if len(raw_tag) != 4:
        raise ValueError(f"DMAP tag must be 4 characters, got {tag!r}")

    if tag in CONTAINER_TAGS:
        if not isinstance(value, dict):
            raise ValueError(f"Container tag '{tag}' needs a dict, got {type(value).__name__}")
        payload = encode(value)
    elif tag in VERSION_TAGS and isinstance(value, str):
        major, minor = (int(part) for part in value.split(".", 1))
        payload = struct.pack(">HH", major, minor)
    elif isinstance(value, str):
        payload = value.encode("utf-8")
    elif isinstance(value, bool):
        payload = struct.pack(">B", int(value))
    elif isinstance(value, int):
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"Integer for '{tag}' out of u32 range: {value}")
        payload = struct.pack(">I", value)
    elif isinstance(value, (bytes, bytearray)):
        payload = bytes(value)
    else:
        raise ValueError(f"Cannot encode {type(value).__name__} for '{tag}'")

    return raw_tag + struct.pack(">I", len(payload)) + payload


def encode(fields: dict[str, Any]) -> bytes:
    """
    Encode a field dictionary into a DMAP byte stream.

    List values are written as repeated items with the same tag.
    """
    out = bytearray()
    for tag, value in fields.items():
        if isinstance(value, list):
            for item in value:
                out.extend(encode_item(tag, item))
        else:
            out.extend(encode_item(tag, value))
    return bytes(out)
