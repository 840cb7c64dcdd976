import pytest

from dissect.fixedvhd.c_vhd import MAX_GEOMETRY_SECTORS
from dissect.fixedvhd.geometry import DiskGeometry, derive_geometry


@pytest.mark.parametrize(
    "sectors, expected",
    [
        (67, (0, 4, 17)),
        (68, (1, 4, 17)),
        (8192, (120, 4, 17)),
        (100000, (980, 6, 17)),
        (69632, (140, 16, 31)),
        (300000, (604, 16, 31)),
        (8388607, (8322, 16, 63)),
        (8388608, (8322, 16, 63)),
        (65535 * 16 * 63 - 1, (65534, 16, 63)),
        (65535 * 16 * 63, (16191, 16, 255)),
        (65535 * 16 * 255, (65535, 16, 255)),
        (300000000, (65535, 16, 255)),
    ],
)
def test_derive_geometry(sectors: int, expected: tuple[int, int, int]) -> None:
    geometry = derive_geometry(sectors)

    assert geometry == DiskGeometry(*expected)
    assert geometry.sectors <= min(sectors, MAX_GEOMETRY_SECTORS)


def test_geometry_tier_boundaries() -> None:
    below = derive_geometry(65535 * 16 * 63 - 1)
    at = derive_geometry(65535 * 16 * 63)
    assert (below.heads, below.sectors_per_track) == (16, 63)
    assert (at.heads, at.sectors_per_track) == (16, 255)

    assert derive_geometry(MAX_GEOMETRY_SECTORS) == derive_geometry(MAX_GEOMETRY_SECTORS + 1)


@pytest.mark.parametrize(
    "start, stop, step, sectors_per_track",
    [
        (2000000, 3000000, 9973, 63),
        (65535 * 16 * 63, MAX_GEOMETRY_SECTORS + 1, 1000003, 255),
    ],
)
def test_geometry_monotonic(start: int, stop: int, step: int, sectors_per_track: int) -> None:
    previous = 0
    for sectors in range(start, stop, step):
        geometry = derive_geometry(sectors)

        assert geometry.sectors_per_track == sectors_per_track
        assert geometry.sectors >= previous
        previous = geometry.sectors


def test_geometry_struct() -> None:
    geometry = DiskGeometry(120, 4, 17)

    assert geometry.to_struct().dumps() == b"\x00\x78\x04\x11"
    assert DiskGeometry.from_struct(geometry.to_struct()) == geometry
