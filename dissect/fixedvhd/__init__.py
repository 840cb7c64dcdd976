from dissect.fixedvhd.disk import DiskImage, FixedVHD, create, inspect, read_sector, write_file, write_sector
from dissect.fixedvhd.footer import Footer, compute_checksum, read_footer, verify_checksum
from dissect.fixedvhd.geometry import DiskGeometry, derive_geometry

__all__ = [
    "DiskGeometry",
    "DiskImage",
    "FixedVHD",
    "Footer",
    "compute_checksum",
    "create",
    "derive_geometry",
    "inspect",
    "read_footer",
    "read_sector",
    "verify_checksum",
    "write_file",
    "write_sector",
]
