from __future__ import annotations

import logging
import os
from typing import NamedTuple

from dissect.fixedvhd.c_vhd import MAX_GEOMETRY_SECTORS, c_vhd

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_VHD", "CRITICAL"))


class DiskGeometry(NamedTuple):
    cylinders: int
    heads: int
    sectors_per_track: int

    @property
    def sectors(self) -> int:
        """The number of sectors addressable through this geometry."""
        return self.cylinders * self.heads * self.sectors_per_track

    @classmethod
    def from_struct(cls, geometry: c_vhd.disk_geometry) -> DiskGeometry:
        return cls(geometry.cylinders, geometry.heads, geometry.sectors_per_track)

    def to_struct(self) -> c_vhd.disk_geometry:
        return c_vhd.disk_geometry(
            cylinders=self.cylinders,
            heads=self.heads,
            sectors_per_track=self.sectors_per_track,
        )


def derive_geometry(total_sectors: int) -> DiskGeometry:
    """Calculate the CHS geometry of a disk from its sector count.

    This is the algorithm from appendix A of the VHD specification. It is not an exact inverse of the sector count,
    the resulting geometry usually covers slightly less than the full disk. Disks larger than
    ``65535 * 16 * 255`` sectors (~127 GiB) are clamped to the largest possible geometry.

    Very small disks (less than 68 sectors) result in a geometry with zero cylinders, it's up to the caller to
    prevent those.

    Args:
        total_sectors: The number of 512 byte sectors on the disk.
    """
    total_sectors = min(total_sectors, MAX_GEOMETRY_SECTORS)

    if total_sectors >= 65535 * 16 * 63:
        sectors_per_track = 255
        heads = 16
        cylinder_times_heads = total_sectors // sectors_per_track
    else:
        sectors_per_track = 17
        cylinder_times_heads = total_sectors // sectors_per_track

        heads = max((cylinder_times_heads + 1023) // 1024, 4)

        if cylinder_times_heads >= heads * 1024 or heads > 16:
            sectors_per_track = 31
            heads = 16
            cylinder_times_heads = total_sectors // sectors_per_track

        if cylinder_times_heads >= heads * 1024:
            sectors_per_track = 63
            heads = 16
            cylinder_times_heads = total_sectors // sectors_per_track

    geometry = DiskGeometry(cylinder_times_heads // heads, heads, sectors_per_track)
    log.debug("Derived geometry %r from %d sectors", geometry, total_sectors)
    return geometry
