from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from typing import BinaryIO
from uuid import UUID, uuid4

from dissect.fixedvhd.c_vhd import (
    CHECKSUM_OFFSET,
    CHECKSUM_SIZE,
    DEFAULT_CREATOR_APPLICATION,
    DEFAULT_CREATOR_HOST_OS,
    DEFAULT_CREATOR_VERSION,
    FILE_FORMAT_VERSION,
    FIXED_DATA_OFFSET,
    FOOTER_SIZE,
    FOOTER_STRUCT_SIZE,
    SECTOR_SIZE,
    VHD_COOKIE,
    VHD_EPOCH,
    CreatorHostOS,
    DiskType,
    Features,
    c_vhd,
)
from dissect.fixedvhd.exceptions import ChecksumMismatchError, MalformedFooterError
from dissect.fixedvhd.geometry import DiskGeometry, derive_geometry
from dissect.fixedvhd.util.byteorder import from_big_endian, to_big_endian


def compute_checksum(buf: bytes) -> int:
    """Calculate the footer checksum.

    The checksum is the one's complement of the sum of all footer bytes, with the checksum field itself counted
    as zero. Only the meaningful part of the footer is summed, the padding is always zero anyway.

    Args:
        buf: The footer bytes, at least ``FOOTER_STRUCT_SIZE`` long.
    """
    if len(buf) < FOOTER_STRUCT_SIZE:
        raise MalformedFooterError(f"Footer too small: {len(buf)} bytes (expected at least {FOOTER_STRUCT_SIZE})")

    data = bytearray(buf[:FOOTER_STRUCT_SIZE])
    data[CHECKSUM_OFFSET : CHECKSUM_OFFSET + CHECKSUM_SIZE] = b"\x00" * CHECKSUM_SIZE
    return ~sum(data) & 0xFFFFFFFF


def verify_checksum(buf: bytes) -> bool:
    """Check the stored footer checksum against the calculated one."""
    stored = from_big_endian(buf[CHECKSUM_OFFSET : CHECKSUM_OFFSET + CHECKSUM_SIZE], 32)
    return stored == compute_checksum(buf)


def pack_version(version: tuple[int, int]) -> int:
    major, minor = version
    return (major & 0xFFFF) << 16 | (minor & 0xFFFF)


def unpack_version(value: int) -> tuple[int, int]:
    return value >> 16, value & 0xFFFF


def to_vhd_timestamp(dt: datetime) -> int:
    # Naive datetimes are taken to be UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int((dt - VHD_EPOCH).total_seconds()) & 0xFFFFFFFF


def from_vhd_timestamp(value: int) -> datetime:
    return VHD_EPOCH + timedelta(seconds=value)


class Footer:
    """The 512 byte VHD footer, found at the end of every VHD file.

    Only the first 85 bytes carry information, the rest is zero padding. All fields are stored big-endian.
    Use :meth:`new` to build a footer for a new fixed disk, or :meth:`from_bytes` to parse an existing one.

    Args:
        footer: A parsed ``c_vhd.footer`` structure.
    """

    def __init__(self, footer: c_vhd.footer):
        self.footer = footer

    def __repr__(self) -> str:
        return (
            f"<Footer type={self.disk_type.name} size={self.current_size} geometry={tuple(self.geometry)}"
            f" unique_id={self.unique_id}>"
        )

    @classmethod
    def new(
        cls,
        size: int,
        *,
        timestamp: datetime | None = None,
        unique_id: UUID | None = None,
        creator_application: str = DEFAULT_CREATOR_APPLICATION,
        creator_version: tuple[int, int] = DEFAULT_CREATOR_VERSION,
        creator_host_os: CreatorHostOS = DEFAULT_CREATOR_HOST_OS,
        saved_state: bool = False,
    ) -> Footer:
        """Build the footer of a new fixed disk of ``size`` bytes.

        The geometry is derived from the sector count of the disk. Unless given, the timestamp is the current
        time and the unique id a random UUID.
        """
        application = creator_application.encode("ascii")
        if len(application) > 4:
            raise ValueError(f"Creator application must be at most 4 characters: {creator_application!r}")

        footer = c_vhd.footer(
            cookie=VHD_COOKIE,
            features=Features.Reserved,
            version=pack_version(FILE_FORMAT_VERSION),
            data_offset=FIXED_DATA_OFFSET,
            timestamp=to_vhd_timestamp(timestamp or datetime.now(timezone.utc)),
            creator_application=application.ljust(4, b"\x00"),
            creator_version=pack_version(creator_version),
            creator_host_os=creator_host_os,
            original_size=size,
            current_size=size,
            disk_geometry=derive_geometry(size // SECTOR_SIZE).to_struct(),
            disk_type=DiskType.Fixed,
            checksum=0,
            unique_id=(unique_id or uuid4()).bytes,
            saved_state=int(saved_state),
        )

        obj = cls(footer)
        obj.footer.checksum = compute_checksum(footer.dumps())
        return obj

    @classmethod
    def from_bytes(cls, buf: bytes, verify: bool = False) -> Footer:
        """Parse a footer.

        Args:
            buf: The footer bytes, between ``FOOTER_STRUCT_SIZE`` and ``FOOTER_SIZE`` bytes.
            verify: Whether to verify the checksum.

        Raises:
            MalformedFooterError: If the buffer is too small or the cookie doesn't match.
            ChecksumMismatchError: If ``verify`` is set and the checksum doesn't match.
        """
        if len(buf) < FOOTER_STRUCT_SIZE:
            raise MalformedFooterError(f"Footer too small: {len(buf)} bytes (expected {FOOTER_SIZE})")

        footer = c_vhd.footer(buf[:FOOTER_STRUCT_SIZE])
        if footer.cookie != VHD_COOKIE:
            raise MalformedFooterError(f"Invalid footer cookie (expected {VHD_COOKIE!r}, got {footer.cookie!r})")

        if verify and not verify_checksum(buf):
            raise ChecksumMismatchError(
                f"Invalid footer checksum (expected {compute_checksum(buf):#010x}, got {footer.checksum:#010x})"
            )

        return cls(footer)

    def dumps(self) -> bytes:
        """Serialize the footer to ``FOOTER_SIZE`` bytes, filling in a fresh checksum."""
        self.footer.checksum = 0
        buf = bytearray(self.footer.dumps())

        checksum = compute_checksum(buf)
        buf[CHECKSUM_OFFSET : CHECKSUM_OFFSET + CHECKSUM_SIZE] = to_big_endian(checksum, 32)
        self.footer.checksum = checksum

        return bytes(buf.ljust(FOOTER_SIZE, b"\x00"))

    def verify(self) -> bool:
        """Whether the stored checksum matches the footer contents."""
        return self.footer.checksum == compute_checksum(self.footer.dumps())

    @property
    def cookie(self) -> bytes:
        return self.footer.cookie

    @property
    def features(self) -> Features:
        return self.footer.features

    @property
    def version(self) -> tuple[int, int]:
        return unpack_version(self.footer.version)

    @property
    def data_offset(self) -> int:
        return self.footer.data_offset

    @property
    def raw_timestamp(self) -> int:
        return self.footer.timestamp

    @property
    def timestamp(self) -> datetime:
        return from_vhd_timestamp(self.footer.timestamp)

    @property
    def creator_application(self) -> str:
        return self.footer.creator_application.rstrip(b"\x00").decode("latin-1")

    @property
    def creator_version(self) -> tuple[int, int]:
        return unpack_version(self.footer.creator_version)

    @property
    def creator_host_os(self) -> CreatorHostOS:
        return self.footer.creator_host_os

    @property
    def original_size(self) -> int:
        return self.footer.original_size

    @property
    def current_size(self) -> int:
        return self.footer.current_size

    @property
    def geometry(self) -> DiskGeometry:
        return DiskGeometry.from_struct(self.footer.disk_geometry)

    @property
    def disk_type(self) -> DiskType:
        return self.footer.disk_type

    @property
    def checksum(self) -> int:
        return self.footer.checksum

    @property
    def unique_id(self) -> UUID:
        return UUID(bytes=self.footer.unique_id)

    @property
    def saved_state(self) -> bool:
        return bool(self.footer.saved_state)

    @property
    def is_fixed(self) -> bool:
        return self.disk_type == DiskType.Fixed and self.data_offset == FIXED_DATA_OFFSET

    @property
    def sector_count(self) -> int:
        return self.current_size // SECTOR_SIZE

    @property
    def max_lba(self) -> int:
        return self.sector_count - 1


def read_footer(fh: BinaryIO, verify: bool = False) -> Footer:
    """Read the footer from the last ``FOOTER_SIZE`` bytes of a VHD file."""
    fh.seek(-FOOTER_SIZE, io.SEEK_END)
    return Footer.from_bytes(fh.read(FOOTER_SIZE), verify=verify)


def write_footer(fh: BinaryIO, footer: Footer, offset: int) -> None:
    """Write the serialized footer at ``offset``, which is the size of the data region for fixed disks."""
    fh.seek(offset)
    fh.write(footer.dumps())
