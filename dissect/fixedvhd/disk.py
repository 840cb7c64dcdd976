from __future__ import annotations

import io
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, NamedTuple
from uuid import uuid4

from dissect.util.stream import AlignedStream

from dissect.fixedvhd import block
from dissect.fixedvhd.c_vhd import FOOTER_SIZE, SECTOR_SIZE, VHD_MAX_BYTES, VHD_MIN_BYTES
from dissect.fixedvhd.exceptions import (
    AlreadyExistsError,
    DiskIOError,
    Error,
    InvalidVirtualDisk,
    NotFoundError,
    OutOfBoundsError,
    SizeOutOfRangeError,
)
from dissect.fixedvhd.footer import Footer, read_footer, write_footer

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_VHD", "CRITICAL"))


class DiskImage(NamedTuple):
    path: Path
    size: int
    sector_count: int
    footer: Footer


class FixedVHD:
    """Fixed size Virtual Hard Disk (VHD) implementation.

    A fixed VHD is a raw disk image with a 512 byte footer appended to it. The data region starts at offset 0 and
    is exactly ``footer.current_size`` bytes large. Sectors are addressed by their 0-based LBA within the data region,
    the footer itself can't be reached this way.

    Writing requires a file-like object opened for reading and writing.

    Args:
        fh: File-like object of the VHD file.
        verify: Whether to verify the footer checksum.
    """

    def __init__(self, fh: BinaryIO, verify: bool = True):
        self.fh = fh
        self.footer = read_footer(fh, verify=verify)

        if not self.footer.is_fixed:
            raise InvalidVirtualDisk(f"Not a fixed VHD: {self.footer.disk_type.name}")

        file_size = fh.seek(0, io.SEEK_END)
        if file_size != self.footer.current_size + FOOTER_SIZE:
            raise InvalidVirtualDisk(
                f"File size {file_size} doesn't match disk size {self.footer.current_size} plus footer"
            )

        self.size = self.footer.current_size
        self.sector_count = self.footer.sector_count

    def __repr__(self) -> str:
        return f"<FixedVHD size={self.size} sectors={self.sector_count} unique_id={self.footer.unique_id}>"

    def _check_bounds(self, lba: int, count: int = 1) -> None:
        if lba < 0 or count < 0 or lba + count > self.sector_count:
            raise OutOfBoundsError(
                f"Sectors {lba} - {lba + count - 1} out of range: 0 - {self.sector_count - 1}"
                if count > 1
                else f"LBA {lba} out of range: 0 - {self.sector_count - 1}"
            )

    def read_sector(self, lba: int) -> bytes:
        self._check_bounds(lba)
        return block.read_sector(self.fh, lba)

    def read_sectors(self, lba: int, count: int) -> bytes:
        self._check_bounds(lba, count)
        return b"".join(block.read_sector(self.fh, sector) for sector in range(lba, lba + count))

    def write_sector(self, lba: int, data: bytes) -> None:
        self._check_bounds(lba)
        block.write_sector(self.fh, lba, data)

    def write(self, lba: int, data: bytes) -> int:
        """Write ``data`` to consecutive sectors, starting at ``lba``.

        A trailing partial sector is merged with the existing contents of that sector, the bytes after the end of
        ``data`` are left untouched.

        Returns:
            The number of sectors that were (partially) written.
        """
        if not data:
            return 0

        count = (len(data) + SECTOR_SIZE - 1) // SECTOR_SIZE
        self._check_bounds(lba, count)

        full, remainder = divmod(len(data), SECTOR_SIZE)
        for i in range(full):
            block.write_sector(self.fh, lba + i, data[i * SECTOR_SIZE : (i + 1) * SECTOR_SIZE])

        if remainder:
            tail = data[full * SECTOR_SIZE :]
            existing = block.read_sector(self.fh, lba + full)
            block.write_sector(self.fh, lba + full, tail + existing[remainder:])

        return count

    def open(self) -> DataStream:
        """Open a read-only stream over the data region."""
        return DataStream(self)


class DataStream(AlignedStream):
    def __init__(self, vhd: FixedVHD):
        self.vhd = vhd
        super().__init__(vhd.size, align=SECTOR_SIZE)

    def _read(self, offset: int, length: int) -> bytes:
        length = min(length, self.size - offset)
        self.vhd.fh.seek(offset)
        return self.vhd.fh.read(length)


@contextmanager
def _open(path: Path, mode: str) -> Iterator[BinaryIO]:
    if not path.exists():
        raise NotFoundError(f"File does not exist: {path}")

    try:
        with path.open(mode) as fh:
            yield fh
    except OSError as e:
        raise DiskIOError(f"I/O error on {path}: {e}") from e


def create(path: Path | str, size: int, *, min_size: int = VHD_MIN_BYTES, **kwargs) -> DiskImage:
    """Create a new fixed VHD of ``size`` bytes.

    The data region is allocated with ``truncate``, so it reads as zeroes (and is sparse on most file systems).
    The image is assembled in a temporary file next to ``path`` and only linked into place when complete.

    Args:
        path: Path of the new VHD file.
        size: Size of the data region in bytes.
        min_size: The smallest allowed size, can't be smaller than ``VHD_MIN_BYTES``.
        **kwargs: Passed to :meth:`Footer.new`, e.g. ``timestamp`` or ``unique_id``.

    Raises:
        AlreadyExistsError: If ``path`` already exists.
        SizeOutOfRangeError: If ``size`` is not between ``min_size`` and ``VHD_MAX_BYTES``.
        DiskIOError: If writing the image failed.
    """
    path = Path(path)
    if min_size < VHD_MIN_BYTES:
        raise ValueError(f"Minimum size can't be smaller than {VHD_MIN_BYTES} bytes")

    if path.exists():
        raise AlreadyExistsError(f"File already exists: {path}")

    if not min_size <= size <= VHD_MAX_BYTES:
        raise SizeOutOfRangeError(f"Size {size} out of range: {min_size} - {VHD_MAX_BYTES} bytes")

    footer = Footer.new(size, **kwargs)

    tmp_path = path.with_name(f".{path.name}.{uuid4().hex[:8]}.tmp")
    try:
        with tmp_path.open("xb") as fh:
            fh.truncate(size)
            write_footer(fh, footer, size)

        try:
            os.link(tmp_path, path)
        except FileExistsError:
            raise AlreadyExistsError(f"File already exists: {path}") from None
        tmp_path.unlink()
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise DiskIOError(f"Failed to create {path}: {e}") from e
    except Error:
        tmp_path.unlink(missing_ok=True)
        raise

    log.info("Created %s (%d bytes, %d sectors, unique id %s)", path, size, footer.sector_count, footer.unique_id)
    return DiskImage(path, size, footer.sector_count, footer)


def inspect(path: Path | str, *, verify: bool = True, min_size: int = VHD_MIN_BYTES) -> Footer:
    """Read the footer of a fixed VHD.

    Args:
        path: Path of the VHD file.
        verify: Whether to verify the footer checksum. The cookie is always checked.
        min_size: The smallest allowed size of the data region.

    Raises:
        NotFoundError: If ``path`` doesn't exist.
        SizeOutOfRangeError: If the file is too small or too large to be a VHD.
        MalformedFooterError: If the footer cookie doesn't match.
        ChecksumMismatchError: If ``verify`` is set and the checksum doesn't match.
    """
    path = Path(path)
    with _open(path, "rb") as fh:
        file_size = fh.seek(0, io.SEEK_END)
        if not min_size + FOOTER_SIZE <= file_size <= VHD_MAX_BYTES + FOOTER_SIZE:
            raise SizeOutOfRangeError(
                f"File {path} size {file_size} out of range: {min_size + FOOTER_SIZE} - {VHD_MAX_BYTES + FOOTER_SIZE}"
            )

        return read_footer(fh, verify=verify)


def read_sector(path: Path | str, lba: int, *, verify: bool = True) -> bytes:
    with _open(Path(path), "rb") as fh:
        return FixedVHD(fh, verify=verify).read_sector(lba)


def write_sector(path: Path | str, lba: int, data: bytes, *, verify: bool = True) -> None:
    with _open(Path(path), "r+b") as fh:
        FixedVHD(fh, verify=verify).write_sector(lba, data)


def write_file(path: Path | str, lba: int, source: Path | str, *, verify: bool = True) -> int:
    """Copy the contents of ``source`` into the VHD at ``path``, starting at ``lba``.

    The source is checked against the size of the disk before any of it is read, and then copied one sector at a
    time.

    Returns:
        The number of sectors that were (partially) written.

    Raises:
        OutOfBoundsError: If ``lba`` or the end of ``source`` falls outside of the disk.
    """
    with _open(Path(source), "rb") as fh_in, _open(Path(path), "r+b") as fh:
        vhd = FixedVHD(fh, verify=verify)
        if not 0 <= lba <= vhd.footer.max_lba:
            raise OutOfBoundsError(f"LBA {lba} out of range: 0 - {vhd.footer.max_lba}")

        source_size = fh_in.seek(0, io.SEEK_END)
        if source_size and (source_size - 1) // SECTOR_SIZE + lba > vhd.footer.max_lba:
            raise OutOfBoundsError(f"File {source} ({source_size} bytes) doesn't fit on the disk at LBA {lba}")

        fh_in.seek(0)
        count = 0
        for chunk in iter(lambda: fh_in.read(SECTOR_SIZE), b""):
            count += vhd.write(lba + count, chunk)

    log.info("Wrote %s (%d bytes) to %s at LBA %d", source, source_size, path, lba)
    return count
