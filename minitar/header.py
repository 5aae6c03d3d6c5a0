from __future__ import annotations

import os
import stat
import struct
from dataclasses import dataclass
from typing import Optional, Union

from .constants import (
    BLOCK_SIZE,
    ZERO_BLOCK,
    USTAR_MAGIC,
    USTAR_VERSION,
    REGTYPE,
    HEADER_FIELDS,
    CHECKSUM_OFFSET,
    CHECKSUM_WIDTH,
    CHECKSUM_PLACEHOLDER,
)
from .errors import (
    ChecksumMismatchError,
    FieldEncodingError,
    MalformedFieldError,
    TruncatedArchiveError,
    UnsupportedEntryError,
)
from .identity import SystemIdentityLookup


# USTAR header record (fixed 512 bytes), fields in on-disk order:
#  name[100] mode[8] uid[8] gid[8] size[12] mtime[12] chksum[8] typeflag[1]
#  linkname[100] magic[6] version[2] uname[32] gname[32]
#  devmajor[8] devminor[8] prefix[155] pad[12]
_HEADER_STRUCT = struct.Struct("100s8s8s8s12s12s8s1s100s6s2s32s32s8s8s155s12s")
_WIDTHS = dict(HEADER_FIELDS)

_OCTAL_DIGITS = b"01234567"


@dataclass(frozen=True)
class Header:
    """One tar entry descriptor.

    Numeric fields hold plain ints, ``mtime`` is whole seconds since the epoch.
    Path-like fields (``name``, ``linkname``, ``prefix``) go through
    ``os.fsencode``/``os.fsdecode`` so undecodable bytes survive a round trip.
    """

    name: str
    mode: int
    uid: int
    gid: int
    size: int
    mtime: int
    uname: str
    gname: str
    typeflag: bytes = REGTYPE
    linkname: Optional[str] = None
    magic: bytes = USTAR_MAGIC
    version: bytes = USTAR_VERSION
    devmajor: int = 0
    devminor: int = 0
    prefix: str = ""

    def __post_init__(self):
        # An empty link name is stored as all zeros, same as no link name.
        if self.linkname == "":
            object.__setattr__(self, "linkname", None)

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike], lookup=None) -> "Header":
        """Build a header from the filesystem metadata of ``path``.

        ``lookup`` resolves uid/gid to names; it defaults to the system user
        database. The entry name is the path exactly as given.
        """
        if lookup is None:
            lookup = SystemIdentityLookup()
        st = os.stat(path)
        if not stat.S_ISREG(st.st_mode):
            raise UnsupportedEntryError(f"{os.fsdecode(path)}: not a regular file")
        return cls(
            name=os.fsdecode(path),
            mode=stat.S_IMODE(st.st_mode),
            uid=st.st_uid,
            gid=st.st_gid,
            size=st.st_size,
            mtime=int(st.st_mtime),
            uname=lookup.user_name(st.st_uid),
            gname=lookup.group_name(st.st_gid),
            devmajor=os.major(st.st_dev),
            devminor=os.minor(st.st_dev),
        )

    def encode(self) -> bytes:
        return encode(self)

    def checksum(self) -> int:
        return compute_checksum(_pack(self, CHECKSUM_PLACEHOLDER))


def padding_size(size: int) -> int:
    """Zero bytes needed after ``size`` content bytes to reach a block boundary."""
    return (BLOCK_SIZE - size % BLOCK_SIZE) % BLOCK_SIZE


def content_span(size: int) -> int:
    """Bytes occupied by content plus padding, i.e. ceil(size / 512) * 512."""
    return size + padding_size(size)


def compute_checksum(record: bytes) -> int:
    """Unsigned byte sum of ``record`` with the checksum field read as spaces."""
    end = CHECKSUM_OFFSET + CHECKSUM_WIDTH
    return sum(record[:CHECKSUM_OFFSET]) + sum(CHECKSUM_PLACEHOLDER) + sum(record[end:])


# encoding

def _octal(value: int, field: str) -> bytes:
    width = _WIDTHS[field]
    digits = width - 1
    if value < 0:
        raise FieldEncodingError(f"{field}: negative value {value}", field=field)
    text = format(value, "0%do" % digits)
    if len(text) != digits:
        raise FieldEncodingError(
            f"{field}: {value} does not fit in {digits} octal digits", field=field
        )
    return text.encode("ascii") + b"\x00"


def _cstring(raw: bytes, field: str) -> bytes:
    width = _WIDTHS[field]
    if b"\x00" in raw:
        raise FieldEncodingError(f"{field}: embedded NUL byte", field=field)
    if len(raw) + 1 > width:
        raise FieldEncodingError(
            f"{field}: {len(raw)} bytes plus terminator exceeds field width {width}",
            field=field,
        )
    return raw + b"\x00" * (width - len(raw))


def _utf8(value: str, field: str) -> bytes:
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise FieldEncodingError(f"{field}: {exc}", field=field) from exc


def _exact(raw: bytes, field: str) -> bytes:
    width = _WIDTHS[field]
    if len(raw) != width:
        raise FieldEncodingError(f"{field}: expected {width} bytes, got {len(raw)}", field=field)
    return raw


def _pack(h: Header, checksum_field: bytes) -> bytes:
    return _HEADER_STRUCT.pack(
        _cstring(os.fsencode(h.name), "name"),
        _octal(h.mode, "mode"),
        _octal(h.uid, "uid"),
        _octal(h.gid, "gid"),
        _octal(h.size, "size"),
        _octal(h.mtime, "mtime"),
        checksum_field,
        _exact(h.typeflag, "typeflag"),
        _cstring(os.fsencode(h.linkname) if h.linkname else b"", "linkname"),
        _exact(h.magic, "magic"),
        _exact(h.version, "version"),
        _cstring(_utf8(h.uname, "uname"), "uname"),
        _cstring(_utf8(h.gname, "gname"), "gname"),
        _octal(h.devmajor, "devmajor"),
        _octal(h.devminor, "devminor"),
        _cstring(os.fsencode(h.prefix), "prefix"),
        b"\x00" * _WIDTHS["padding"],
    )


def encode(header: Header) -> bytes:
    """Encode ``header`` into a 512-byte record with its checksum filled in."""
    blank = _pack(header, CHECKSUM_PLACEHOLDER)
    checksum = _octal(compute_checksum(blank), "checksum")
    end = CHECKSUM_OFFSET + CHECKSUM_WIDTH
    return blank[:CHECKSUM_OFFSET] + checksum + blank[end:]


# decoding

class _FieldCursor:
    """Sequential reader over an immutable header buffer.

    Every read returns exactly the requested number of bytes or raises.
    """

    def __init__(self, buf: bytes, pos: int = 0):
        self._buf = buf
        self.pos = pos

    def read_fixed(self, field: str) -> bytes:
        width = _WIDTHS[field]
        end = self.pos + width
        if end > len(self._buf):
            raise TruncatedArchiveError(
                f"{field}: need {width} bytes at offset {self.pos}, "
                f"only {len(self._buf) - self.pos} remain"
            )
        raw = self._buf[self.pos:end]
        self.pos = end
        return raw

    def read_cstring(self, field: str) -> bytes:
        raw = self.read_fixed(field)
        nul = raw.find(b"\x00")
        if nul < 0:
            raise MalformedFieldError(f"{field}: not null-terminated", field=field)
        return raw[:nul]

    def read_octal(self, field: str) -> int:
        text = self.read_cstring(field)
        if not text or text.translate(None, _OCTAL_DIGITS):
            raise MalformedFieldError(f"{field}: invalid octal value {text!r}", field=field)
        return int(text, 8)

    def read_text(self, field: str) -> str:
        raw = self.read_cstring(field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFieldError(f"{field}: {exc}", field=field) from exc

    def read_path(self, field: str) -> str:
        return os.fsdecode(self.read_cstring(field))


def decode(block: bytes) -> Optional[Header]:
    """Decode one 512-byte record.

    Returns None for an all-zero block (end of archive). The checksum is
    verified against the raw record before any other field is interpreted.
    """
    block = bytes(block)
    if len(block) != BLOCK_SIZE:
        raise TruncatedArchiveError(
            f"header record is {len(block)} bytes, expected {BLOCK_SIZE}"
        )
    if block == ZERO_BLOCK:
        return None

    recorded = _FieldCursor(block, CHECKSUM_OFFSET).read_octal("checksum")
    expected = compute_checksum(block)
    if expected != recorded:
        raise ChecksumMismatchError(expected, recorded)

    cur = _FieldCursor(block)
    name = cur.read_path("name")
    mode = cur.read_octal("mode")
    uid = cur.read_octal("uid")
    gid = cur.read_octal("gid")
    size = cur.read_octal("size")
    mtime = cur.read_octal("mtime")
    cur.read_fixed("checksum")
    typeflag = cur.read_fixed("typeflag")
    linkname = cur.read_path("linkname")
    magic = cur.read_fixed("magic")
    version = cur.read_fixed("version")
    uname = cur.read_text("uname")
    gname = cur.read_text("gname")
    devmajor = cur.read_octal("devmajor")
    devminor = cur.read_octal("devminor")
    prefix = cur.read_path("prefix")
    cur.read_fixed("padding")

    return Header(
        name=name,
        mode=mode,
        uid=uid,
        gid=gid,
        size=size,
        mtime=mtime,
        uname=uname,
        gname=gname,
        typeflag=typeflag,
        linkname=linkname or None,
        magic=magic,
        version=version,
        devmajor=devmajor,
        devminor=devminor,
        prefix=prefix,
    )
