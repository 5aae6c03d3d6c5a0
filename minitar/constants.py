from typing import Tuple


# Block geometry
BLOCK_SIZE = 512
FOOTER_SIZE = 2 * BLOCK_SIZE  # two all-zero blocks seal the archive

ZERO_BLOCK = b"\x00" * BLOCK_SIZE


# Format tags
USTAR_MAGIC = b"ustar\x00"  # 6 bytes: "ustar\0"
USTAR_VERSION = b"00"       # 2 bytes


# Type flags
REGTYPE = b"0"
AREGTYPE = b"\x00"  # pre-POSIX regular file
REGULAR_TYPES = (REGTYPE, AREGTYPE)


# Header record layout (name, width); offsets follow from the order.
HEADER_FIELDS: Tuple[Tuple[str, int], ...] = (
    ("name", 100),
    ("mode", 8),
    ("uid", 8),
    ("gid", 8),
    ("size", 12),
    ("mtime", 12),
    ("checksum", 8),
    ("typeflag", 1),
    ("linkname", 100),
    ("magic", 6),
    ("version", 2),
    ("uname", 32),
    ("gname", 32),
    ("devmajor", 8),
    ("devminor", 8),
    ("prefix", 155),
    ("padding", 12),
)

CHECKSUM_OFFSET = 148
CHECKSUM_WIDTH = 8
CHECKSUM_PLACEHOLDER = b" " * CHECKSUM_WIDTH


# Source files are copied into the archive in chunks of this size
COPY_CHUNK_SIZE = 1_048_576  # 1 MiB
