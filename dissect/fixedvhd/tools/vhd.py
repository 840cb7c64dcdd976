from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import NoReturn

from dissect.fixedvhd.c_vhd import (
    DEFAULT_CREATOR_VERSION,
    VHD_MIN_BYTES,
    CreatorHostOS,
    DiskType,
    Features,
)
from dissect.fixedvhd.disk import create, inspect, read_sector, write_file
from dissect.fixedvhd.exceptions import Error
from dissect.fixedvhd.footer import Footer
from dissect.fixedvhd.util.hexdump import printable, render_lba_hexdump

try:
    from rich.logging import RichHandler
except ImportError:
    RichHandler = logging.StreamHandler


log = logging.getLogger(__name__)

VERSION = "{}.{}".format(*DEFAULT_CREATOR_VERSION)
SEPARATOR = "-" * 24

SIZE_RE = re.compile(r"^(?P<number>\d+)\s*(?P<unit>[KMG]?B?)$", re.IGNORECASE)
SIZE_UNITS = {
    "": 1,
    "B": 1,
    "K": 1024,
    "KB": 1024,
    "M": 1024**2,
    "MB": 1024**2,
    "G": 1024**3,
    "GB": 1024**3,
}

FEATURES_NAMES = {
    Features.NoFeatures: "No features enabled",
    Features.Temporary: "Temporary",
    Features.Reserved: "Reserved",
}

HOST_OS_NAMES = {
    CreatorHostOS.Windows: "Windows",
    CreatorHostOS.Macintosh: "Macintosh",
    CreatorHostOS.Linux: "Linux",
}

DISK_TYPE_NAMES = {
    DiskType.Unspecified: "None",
    DiskType.Reserved0: "Reserved (deprecated)",
    DiskType.Reserved1: "Reserved (deprecated)",
    DiskType.Reserved2: "Reserved (deprecated)",
    DiskType.Fixed: "Fixed hard disk",
    DiskType.Dynamic: "Dynamic hard disk",
    DiskType.Differencing: "Differencing hard disk",
}


class ArgumentParser(argparse.ArgumentParser):
    # Every failure, including usage errors, exits with status 1
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def setup_logging(logger: logging.Logger, verbosity: int) -> None:
    if verbosity == 1:
        level = logging.ERROR
    elif verbosity == 2:
        level = logging.WARNING
    elif verbosity == 3:
        level = logging.INFO
    elif verbosity >= 4:
        level = logging.DEBUG
    else:
        level = logging.CRITICAL

    handler = RichHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)


def parse_size(value: str) -> int:
    """Parse a human readable size like ``4M`` or ``512KB`` into a number of bytes."""
    match = SIZE_RE.match(value.strip())
    if not match:
        raise argparse.ArgumentTypeError(f"Size {value} illegal")

    return int(match.group("number")) * SIZE_UNITS[match.group("unit").upper()]


def format_size(size: int) -> str:
    mb = size // (1024 * 1024)
    gb = mb // 1024
    if gb > 0:
        return f"{gb} GB"
    if mb > 0:
        return f"{mb} MB"
    return f"{size} B"


def format_footer(footer: Footer) -> list[str]:
    geometry = footer.geometry
    return [
        f"cookie: {printable(footer.cookie)}",
        f"features: {FEATURES_NAMES.get(footer.features, 'UNDEFINED')}",
        "file format version: {}.{}".format(*footer.version),
        f"data offset: {footer.data_offset:#018x}",
        f"time stamp: {footer.raw_timestamp:#010x} ({footer.timestamp:%Y-%m-%d %H:%M:%S})",
        f"creator application: {footer.creator_application}",
        "creator version: {}.{}".format(*footer.creator_version),
        f"creator host os: {HOST_OS_NAMES.get(footer.creator_host_os, 'UNDEFINED')}",
        f"original size: {format_size(footer.original_size)}",
        f"current size: {format_size(footer.current_size)}",
        f"Cylinders: {geometry.cylinders}",
        f"Heads: {geometry.heads}",
        f"SectorsPerTrack: {geometry.sectors_per_track}",
        f"disk type: {DISK_TYPE_NAMES.get(footer.disk_type, 'UNDEFINED')}",
        f"checksum: {footer.checksum:#010x}",
        f"unique id: {footer.unique_id}",
        f"saved state: {'In saved state' if footer.saved_state else 'Not in saved state'}",
    ]


def main() -> int:
    parser = ArgumentParser(description="Fixed VHD creation, inspection and sector I/O tool")
    parser.add_argument("image", type=Path, help="path to vhd file")
    parser.add_argument(
        "-s", "--size", type=parse_size, help="create the vhd file with this size (B, K/KB, M/MB, G/GB)"
    )
    parser.add_argument(
        "-r", "--read", type=int, action="append", default=[], metavar="LBA", help="print the sector at LBA"
    )
    parser.add_argument(
        "-w", "--write", type=int, action="append", default=[], metavar="LBA", help="write a binfile at LBA"
    )
    parser.add_argument(
        "-b", "--binfile", type=Path, action="append", default=[], help="binfile to write, paired with -w"
    )
    parser.add_argument(
        "--min-size", type=parse_size, default=VHD_MIN_BYTES, help="smallest allowed vhd size (default: 34K)"
    )
    parser.add_argument("--no-verify", action="store_true", help="don't verify the footer checksum")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="count", default=3, help="increase output verbosity")
    args = parser.parse_args()

    setup_logging(log, args.verbose)

    if len(args.write) != len(args.binfile):
        parser.error("-w and -b must be given in pairs")

    if args.min_size < VHD_MIN_BYTES:
        parser.error(f"--min-size can't be smaller than {VHD_MIN_BYTES} bytes")

    verify = not args.no_verify

    try:
        if args.size is not None:
            image = create(args.image, args.size, min_size=args.min_size)
            log.info("Created %s with unique id %s", image.path, image.footer.unique_id)

        footer = inspect(args.image, verify=verify, min_size=args.min_size)

        if args.size is None and not args.read and not args.write:
            print(SEPARATOR)
            print(f"* FILE {args.image}")
            print(f"* LBA range: 0 - {footer.max_lba}")
            print(SEPARATOR)
            print("\n".join(format_footer(footer)))
            print(SEPARATOR)

        for lba, binfile in zip(args.write, args.binfile):
            write_file(args.image, lba, binfile, verify=verify)
            log.info("Write: VHD %s LBA %d <= BIN %s", args.image, lba, binfile)

        for lba in args.read:
            buf = read_sector(args.image, lba, verify=verify)
            print(SEPARATOR)
            print(f"* LBA {lba} of VHD {args.image}")
            print(SEPARATOR)
            print(render_lba_hexdump(buf, lba))
            print(SEPARATOR)
    except Error as e:
        log.error("%s", e)
        log.debug("", exc_info=e)
        return 1

    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
