from __future__ import annotations

from dissect.fixedvhd.c_vhd import SECTOR_SIZE

LINE_SIZE = 16


def printable(buf: bytes) -> str:
    return "".join(chr(b) if 0x20 <= b <= 0x7E else "." for b in buf)


def render_sector_hexdump(buf: bytes, base_offset: int = 0) -> str:
    """Render a sector in the ``xxd`` like layout used by ``vhd-tool -r``.

    Every line covers 16 bytes: an 8 digit hexadecimal offset, eight groups of two bytes and a printable
    ASCII gloss where bytes outside ``0x20 - 0x7e`` are shown as ``.``.

    Args:
        buf: The sector contents, normally exactly ``SECTOR_SIZE`` bytes.
        base_offset: Byte offset of the sector in the image, used for the line offsets.
    """
    if len(buf) % 2:
        raise ValueError("Buffer length must be a multiple of 2")

    lines = []
    for line_offset in range(0, len(buf), LINE_SIZE):
        line = buf[line_offset : line_offset + LINE_SIZE]
        groups = "".join(f"{line[i]:02x}{line[i + 1]:02x} " for i in range(0, len(line), 2))
        lines.append(f"{base_offset + line_offset:08x}: {groups} {printable(line)}")

    return "\n".join(lines)


def render_lba_hexdump(buf: bytes, lba: int) -> str:
    return render_sector_hexdump(buf, lba * SECTOR_SIZE)
