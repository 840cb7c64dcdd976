from __future__ import annotations

from dissect.fixedvhd.c_vhd import c_vhd

_TYPES = {
    16: c_vhd.uint16,
    32: c_vhd.uint32,
    64: c_vhd.uint64,
}


def _type(width: int):
    try:
        return _TYPES[width]
    except KeyError:
        raise ValueError(f"Unsupported integer width: {width} bits")


def to_big_endian(value: int, width: int) -> bytes:
    """Pack an unsigned integer of ``width`` bits in the big-endian order the VHD format mandates.

    Values are masked to ``width`` bits, so negative or oversized values wrap instead of raising.
    """
    return _type(width).dumps(value & ((1 << width) - 1))


def from_big_endian(buf: bytes, width: int) -> int:
    """Unpack a big-endian unsigned integer of ``width`` bits from the start of ``buf``."""
    type_ = _type(width)
    if len(buf) < width // 8:
        raise ValueError(f"Need {width // 8} bytes to unpack a {width} bit integer, got {len(buf)}")
    return int(type_(buf[: width // 8]))
