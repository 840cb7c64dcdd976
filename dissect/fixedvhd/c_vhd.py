from __future__ import annotations

from datetime import datetime, timezone

from dissect.cstruct import cstruct

# https://www.microsoft.com/en-us/download/details.aspx?id=23850
vhd_def = """
enum DiskType : uint32 {
    Unspecified     = 0x00,
    Reserved0       = 0x01,
    Fixed           = 0x02,
    Dynamic         = 0x03,
    Differencing    = 0x04,
    Reserved1       = 0x05,
    Reserved2       = 0x06
};

flag Features : uint32 {
    NoFeatures      = 0x00000000,
    Temporary       = 0x00000001,
    Reserved        = 0x00000002       // Must always be set
};

enum CreatorHostOS : uint32 {
    Windows         = 0x5769326B,       // 'Wi2k'
    Macintosh       = 0x4D616320,       // 'Mac '
    Linux           = 0x4C6E7578        // 'Lnux', not part of the official format
};

struct disk_geometry {
    uint16          cylinders;
    uint8           heads;
    uint8           sectors_per_track;
};

struct footer {
    char            cookie[8];
    Features        features;
    uint32          version;            // major << 16 | minor
    uint64          data_offset;        // 0xFFFFFFFFFFFFFFFF for fixed disks
    uint32          timestamp;          // Seconds since 2000-01-01 00:00:00 UTC
    char            creator_application[4];
    uint32          creator_version;
    CreatorHostOS   creator_host_os;
    uint64          original_size;
    uint64          current_size;
    disk_geometry   disk_geometry;
    DiskType        disk_type;
    uint32          checksum;           // One's complement of the byte sum, with this field set to 0
    char            unique_id[16];
    uint8           saved_state;
    // Followed by 427 bytes of zero padding up to FOOTER_SIZE
};
"""

c_vhd = cstruct(endian=">").load(vhd_def)

DiskType = c_vhd.DiskType
Features = c_vhd.Features
CreatorHostOS = c_vhd.CreatorHostOS

SECTOR_SIZE = 512
FOOTER_SIZE = 512
FOOTER_STRUCT_SIZE = len(c_vhd.footer)
CHECKSUM_OFFSET = 64
CHECKSUM_SIZE = 4

VHD_COOKIE = b"conectix"
FIXED_DATA_OFFSET = 0xFFFFFFFFFFFFFFFF
FILE_FORMAT_VERSION = (1, 0)
VHD_EPOCH = datetime(2000, 1, 1, tzinfo=timezone.utc)

DEFAULT_CREATOR_APPLICATION = "dsct"
DEFAULT_CREATOR_VERSION = (1, 0)
DEFAULT_CREATOR_HOST_OS = CreatorHostOS.Linux

# Images smaller than this derive a geometry with zero cylinders
VHD_MIN_BYTES = 0x8800  # 34 KiB
VHD_MAX_BYTES = 0xFFFFFFFF  # 4 GiB - 1

MAX_GEOMETRY_SECTORS = 65535 * 16 * 255
