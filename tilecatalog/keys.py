"""
Canonical keys for nodes of the tile hierarchy.

A key names a coordinate prefix: ``z_3`` for a zoom level, ``z_3_x_5`` for
a column and ``z_3_x_5_y_7`` for a single tile.
"""

from .records import Prefix, is_segment

LABELS = ("z", "x", "y")


class MalformedKey(Exception):
    """Raised when a key does not have the ``z_{z}[_x_{x}[_y_{y}]]`` shape."""

    pass


def encode(z: str, x: str | None = None, y: str | None = None) -> str:
    if y is not None and x is None:
        raise MalformedKey(f"Cannot encode y={y} without an x segment")

    key = f"z_{z}"

    if x is not None:
        key += f"_x_{x}"

    if y is not None:
        key += f"_y_{y}"

    return key


def encode_prefix(prefix: Prefix) -> str:
    return encode(prefix.z, prefix.x, prefix.y)


def decode(key: str) -> Prefix:
    parts = str(key).split("_")

    if len(parts) not in (2, 4, 6):
        raise MalformedKey(f"Key {key!r} has {len(parts)} parts")

    segments = {}
    for label, value in zip(parts[0::2], parts[1::2]):
        expected = LABELS[len(segments)]
        if label != expected:
            raise MalformedKey(f"Key {key!r} has label {label!r} where {expected!r} was expected")
        if not is_segment(value):
            raise MalformedKey(f"Key {key!r} has non-numeric segment {value!r}")
        segments[label] = value

    return Prefix(**segments)


def key_level(key: str) -> int:
    return decode(key).level
