from __future__ import annotations

import logging
import os
from typing import BinaryIO

from dissect.fixedvhd.c_vhd import SECTOR_SIZE
from dissect.fixedvhd.exceptions import ShortReadError, ShortWriteError

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_VHD", "CRITICAL"))


def read_sector(fh: BinaryIO, lba: int) -> bytes:
    """Read one sector from the data region of a fixed disk.

    No bounds checking is done against the size of the disk, that is up to the caller.

    Raises:
        ShortReadError: If less than ``SECTOR_SIZE`` bytes could be read.
    """
    log.debug("read_sector(%d)", lba)

    fh.seek(lba * SECTOR_SIZE)
    buf = fh.read(SECTOR_SIZE)
    if len(buf) != SECTOR_SIZE:
        raise ShortReadError(f"Short read on sector {lba}: got {len(buf)} of {SECTOR_SIZE} bytes")
    return buf


def write_sector(fh: BinaryIO, lba: int, data: bytes) -> None:
    """Write one sector to the data region of a fixed disk.

    No bounds checking is done against the size of the disk, that is up to the caller.

    Raises:
        ShortWriteError: If less than ``SECTOR_SIZE`` bytes were written.
    """
    if len(data) != SECTOR_SIZE:
        raise ValueError(f"Sector data must be exactly {SECTOR_SIZE} bytes, got {len(data)}")

    log.debug("write_sector(%d)", lba)

    fh.seek(lba * SECTOR_SIZE)
    written = fh.write(data)
    if written != SECTOR_SIZE:
        raise ShortWriteError(f"Short write on sector {lba}: wrote {written} of {SECTOR_SIZE} bytes")
