from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path
from uuid import UUID

import pytest

from dissect.fixedvhd.c_vhd import VHD_MAX_BYTES, VHD_MIN_BYTES, DiskType
from dissect.fixedvhd.disk import (
    FixedVHD,
    create,
    inspect,
    read_sector,
    write_file,
    write_sector,
)
from dissect.fixedvhd.exceptions import (
    AlreadyExistsError,
    ChecksumMismatchError,
    DiskIOError,
    InvalidVirtualDisk,
    MalformedFooterError,
    NotFoundError,
    OutOfBoundsError,
    SizeOutOfRangeError,
)
from dissect.fixedvhd.footer import Footer
from dissect.fixedvhd.footer import write_footer as _write_footer
from dissect.fixedvhd.geometry import DiskGeometry


def _corrupt(path: Path, offset: int) -> None:
    with path.open("r+b") as fh:
        fh.seek(offset)
        value = fh.read(1)[0]
        fh.seek(offset)
        fh.write(bytes([value ^ 0xFF]))


def test_create(tmp_path: Path, image_size: int) -> None:
    path = tmp_path / "test.vhd"
    image = create(path, image_size)

    assert path.stat().st_size == image_size + 512
    assert image.path == path
    assert image.size == image_size
    assert image.sector_count == 8192
    assert image.footer.geometry == DiskGeometry(120, 4, 17)
    assert list(tmp_path.iterdir()) == [path]

    with path.open("rb") as fh:
        assert fh.read(image_size) == b"\x00" * image_size
        assert fh.read(8) == b"conectix"


def test_inspect(vhd_path: Path, image_size: int, timestamp: datetime, unique_id: UUID) -> None:
    footer = inspect(vhd_path)

    assert footer.disk_type == DiskType.Fixed
    assert footer.original_size == image_size
    assert footer.current_size == image_size
    assert footer.timestamp == timestamp
    assert footer.unique_id == unique_id
    assert footer.verify()


def test_create_already_exists(vhd_path: Path, image_size: int) -> None:
    with pytest.raises(AlreadyExistsError):
        create(vhd_path, image_size)


@pytest.mark.parametrize("size", [VHD_MIN_BYTES - 1, VHD_MAX_BYTES + 1, 0])
def test_create_size_out_of_range(tmp_path: Path, size: int) -> None:
    path = tmp_path / "test.vhd"

    with pytest.raises(SizeOutOfRangeError):
        create(path, size)

    assert not path.exists()


@pytest.mark.parametrize("size", [VHD_MIN_BYTES, VHD_MAX_BYTES])
def test_create_size_bounds(tmp_path: Path, size: int) -> None:
    path = tmp_path / "test.vhd"
    create(path, size)

    assert path.stat().st_size == size + 512

    footer = inspect(path)
    assert footer.current_size == size
    assert footer.geometry.cylinders > 0


def test_create_min_size(tmp_path: Path) -> None:
    with pytest.raises(SizeOutOfRangeError):
        create(tmp_path / "test.vhd", 1024 * 1024, min_size=4 * 1024 * 1024)

    with pytest.raises(ValueError):
        create(tmp_path / "test.vhd", 4 * 1024 * 1024, min_size=512)


def test_create_failure_cleanup(tmp_path: Path, image_size: int, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_write_footer(*args, **kwargs) -> None:
        raise OSError("No space left on device")

    monkeypatch.setattr("dissect.fixedvhd.disk.write_footer", broken_write_footer)

    with pytest.raises(DiskIOError):
        create(tmp_path / "test.vhd", image_size)

    assert list(tmp_path.iterdir()) == []


def test_create_lost_race(tmp_path: Path, image_size: int, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "test.vhd"

    def racing_write_footer(fh, footer, offset) -> None:
        _write_footer(fh, footer, offset)
        path.write_bytes(b"other writer")

    monkeypatch.setattr("dissect.fixedvhd.disk.write_footer", racing_write_footer)

    with pytest.raises(AlreadyExistsError):
        create(path, image_size)

    assert path.read_bytes() == b"other writer"
    assert list(tmp_path.iterdir()) == [path]


def test_inspect_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        inspect(tmp_path / "missing.vhd")


def test_inspect_too_small(tmp_path: Path) -> None:
    path = tmp_path / "small.vhd"
    path.write_bytes(b"\x00" * VHD_MIN_BYTES)

    with pytest.raises(SizeOutOfRangeError):
        inspect(path)


def test_inspect_bad_cookie(vhd_path: Path, image_size: int) -> None:
    _corrupt(vhd_path, image_size)

    with pytest.raises(MalformedFooterError):
        inspect(vhd_path)

    with pytest.raises(MalformedFooterError):
        inspect(vhd_path, verify=False)


def test_inspect_bad_checksum(vhd_path: Path, image_size: int) -> None:
    _corrupt(vhd_path, image_size + 30)

    with pytest.raises(ChecksumMismatchError):
        inspect(vhd_path)

    footer = inspect(vhd_path, verify=False)
    assert not footer.verify()


def test_sector_scenario(vhd_path: Path) -> None:
    write_sector(vhd_path, 0, b"\xaa" * 512)

    assert read_sector(vhd_path, 0) == b"\xaa" * 512
    assert read_sector(vhd_path, 1) == b"\x00" * 512


def test_sector_isolation(vhd_path: Path) -> None:
    write_sector(vhd_path, 99, b"\x11" * 512)
    write_sector(vhd_path, 101, b"\x33" * 512)

    data = bytes(range(256)) * 2
    write_sector(vhd_path, 100, data)

    assert read_sector(vhd_path, 99) == b"\x11" * 512
    assert read_sector(vhd_path, 100) == data
    assert read_sector(vhd_path, 101) == b"\x33" * 512

    # The footer is not reachable through the data region
    assert inspect(vhd_path).verify()


@pytest.mark.parametrize("lba", [-1, 8192, 8193])
def test_sector_out_of_bounds(vhd_path: Path, lba: int) -> None:
    with pytest.raises(OutOfBoundsError):
        read_sector(vhd_path, lba)

    with pytest.raises(OutOfBoundsError):
        write_sector(vhd_path, lba, b"\x00" * 512)


def test_sector_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        read_sector(tmp_path / "missing.vhd", 0)


def test_write_file(vhd_path: Path, tmp_path: Path) -> None:
    write_sector(vhd_path, 3, b"\x55" * 512)

    source = tmp_path / "boot.bin"
    source.write_bytes(b"\xcc" * 1000)

    assert write_file(vhd_path, 2, source) == 2
    assert read_sector(vhd_path, 1) == b"\x00" * 512
    assert read_sector(vhd_path, 2) == b"\xcc" * 512
    assert read_sector(vhd_path, 3) == b"\xcc" * 488 + b"\x55" * 24
    assert read_sector(vhd_path, 4) == b"\x00" * 512


def test_write_file_last_sector(vhd_path: Path, tmp_path: Path) -> None:
    source = tmp_path / "tail.bin"
    source.write_bytes(b"\x77" * 512)

    assert write_file(vhd_path, 8191, source) == 1
    assert read_sector(vhd_path, 8191) == b"\x77" * 512
    assert inspect(vhd_path).verify()


def test_write_file_out_of_bounds(vhd_path: Path, tmp_path: Path) -> None:
    source = tmp_path / "large.bin"
    source.write_bytes(b"\x77" * 513)

    with pytest.raises(OutOfBoundsError):
        write_file(vhd_path, 8191, source)

    with pytest.raises(OutOfBoundsError):
        write_file(vhd_path, 8192, source)

    assert read_sector(vhd_path, 8191) == b"\x00" * 512


def test_write_file_empty(vhd_path: Path, tmp_path: Path) -> None:
    source = tmp_path / "empty.bin"
    source.write_bytes(b"")

    assert write_file(vhd_path, 0, source) == 0


def test_fixed_vhd(vhd_path: Path) -> None:
    with vhd_path.open("r+b") as fh:
        vhd = FixedVHD(fh)

        assert vhd.size == 4 * 1024 * 1024
        assert vhd.sector_count == 8192

        vhd.write(10, b"\x01" * 512 + b"\x02" * 512)
        assert vhd.read_sectors(9, 4) == b"\x00" * 512 + b"\x01" * 512 + b"\x02" * 512 + b"\x00" * 512

        with pytest.raises(OutOfBoundsError):
            vhd.read_sectors(8190, 3)

        with pytest.raises(OutOfBoundsError):
            vhd.write(8191, b"\x00" * 513)

        stream = vhd.open()
        assert stream.size == vhd.size

        stream.seek(10 * 512 + 500)
        assert stream.read(24) == b"\x01" * 12 + b"\x02" * 12

        stream.seek(vhd.size - 16)
        assert stream.read() == b"\x00" * 16


def test_fixed_vhd_dynamic_disk(image_size: int) -> None:
    footer = Footer.new(image_size)
    footer.footer.disk_type = DiskType.Dynamic

    fh = io.BytesIO(b"\x00" * image_size + footer.dumps())
    with pytest.raises(InvalidVirtualDisk):
        FixedVHD(fh)


def test_fixed_vhd_size_mismatch(image_size: int) -> None:
    footer = Footer.new(image_size)

    fh = io.BytesIO(b"\x00" * (image_size - 512) + footer.dumps())
    with pytest.raises(InvalidVirtualDisk):
        FixedVHD(fh)


def test_write_file_oversized_source(vhd_path: Path, tmp_path: Path) -> None:
    source = tmp_path / "huge.bin"
    with source.open("wb") as fh:
        fh.truncate(1024 * 1024 * 1024)

    with pytest.raises(OutOfBoundsError):
        write_file(vhd_path, 0, source)

    assert read_sector(vhd_path, 0) == b"\x00" * 512
    assert inspect(vhd_path).verify()


def test_sector_io_without_verify(vhd_path: Path, image_size: int, tmp_path: Path) -> None:
    _corrupt(vhd_path, image_size + 30)

    with pytest.raises(ChecksumMismatchError):
        read_sector(vhd_path, 0)

    with pytest.raises(ChecksumMismatchError):
        write_sector(vhd_path, 0, b"\x11" * 512)

    source = tmp_path / "source.bin"
    source.write_bytes(b"\x22" * 512)

    with pytest.raises(ChecksumMismatchError):
        write_file(vhd_path, 1, source)

    write_sector(vhd_path, 0, b"\x11" * 512, verify=False)
    assert write_file(vhd_path, 1, source, verify=False) == 1

    assert read_sector(vhd_path, 0, verify=False) == b"\x11" * 512
    assert read_sector(vhd_path, 1, verify=False) == b"\x22" * 512
