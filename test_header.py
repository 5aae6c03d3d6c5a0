from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from minitar.constants import BLOCK_SIZE, CHECKSUM_OFFSET, CHECKSUM_WIDTH, REGTYPE, USTAR_MAGIC
from minitar.errors import (
    ChecksumMismatchError,
    FieldEncodingError,
    IdentityLookupError,
    MalformedFieldError,
    TruncatedArchiveError,
    UnsupportedEntryError,
)
from minitar.header import Header, compute_checksum, content_span, decode, encode, padding_size
from minitar.identity import SystemIdentityLookup


class StubLookup:
    def user_name(self, uid: int) -> str:
        return "tester"

    def group_name(self, gid: int) -> str:
        return "staff"


def _sample_header(**overrides) -> Header:
    fields = dict(
        name="docs/readme.txt",
        mode=0o644,
        uid=1000,
        gid=100,
        size=1234,
        mtime=1_700_000_000,
        uname="alice",
        gname="users",
        devmajor=8,
        devminor=1,
    )
    fields.update(overrides)
    return Header(**fields)


def _reseal(record: bytes) -> bytes:
    """Rewrite the checksum field so ``record`` passes checksum verification."""
    chk = format(compute_checksum(record), "07o").encode("ascii") + b"\x00"
    return record[:CHECKSUM_OFFSET] + chk + record[CHECKSUM_OFFSET + CHECKSUM_WIDTH:]


def _patch(record: bytes, offset: int, data: bytes) -> bytes:
    return record[:offset] + data + record[offset + len(data):]


class HeaderCodecTests(unittest.TestCase):
    def test_roundtrip(self):
        variants = [
            _sample_header(),
            _sample_header(size=0, mtime=0, uid=0, gid=0, devmajor=0, devminor=0),
            _sample_header(name="x" * 99, uname="u" * 31, gname="g" * 31),
            _sample_header(linkname="target.txt", prefix="some/long/prefix"),
            _sample_header(uname="jörg", gname="grüppe"),
            _sample_header(name=os.fsdecode(b"caf\xe9.txt")),
            _sample_header(size=8 ** 11 - 1, mode=0o7777),
        ]
        for h in variants:
            with self.subTest(name=h.name):
                record = encode(h)
                self.assertEqual(len(record), BLOCK_SIZE)
                self.assertEqual(decode(record), h)

    def test_empty_linkname_is_no_linkname(self):
        h = _sample_header(linkname="")
        self.assertIsNone(h.linkname)
        self.assertEqual(h, _sample_header())
        self.assertEqual(h.encode(), _sample_header().encode())
        self.assertEqual(decode(h.encode()), h)

    def test_field_layout(self):
        record = _sample_header().encode()
        self.assertEqual(record[0:16], b"docs/readme.txt\x00")
        self.assertEqual(record[100:108], b"0000644\x00")
        self.assertEqual(record[108:116], b"0001750\x00")
        self.assertEqual(record[124:136], b"00000002322\x00")
        self.assertEqual(record[156:157], REGTYPE)
        self.assertEqual(record[157:257], b"\x00" * 100)
        self.assertEqual(record[257:263], USTAR_MAGIC)
        self.assertEqual(record[263:265], b"00")
        self.assertEqual(record[265:271], b"alice\x00")
        self.assertEqual(record[297:303], b"users\x00")
        self.assertEqual(record[329:337], b"0000010\x00")
        self.assertEqual(record[337:345], b"0000001\x00")
        self.assertEqual(record[345:512], b"\x00" * 167)

    def test_checksum_matches_stored_value(self):
        h = _sample_header()
        record = encode(h)
        stored = int(record[CHECKSUM_OFFSET:CHECKSUM_OFFSET + 7], 8)
        self.assertEqual(record[CHECKSUM_OFFSET + 7], 0)
        self.assertEqual(stored, compute_checksum(record))
        self.assertEqual(stored, h.checksum())
        spaced = _patch(record, CHECKSUM_OFFSET, b" " * CHECKSUM_WIDTH)
        self.assertEqual(stored, sum(spaced))

    def test_single_byte_flip_is_detected(self):
        record = encode(_sample_header(linkname="l", prefix="p"))
        checksum_range = range(CHECKSUM_OFFSET, CHECKSUM_OFFSET + CHECKSUM_WIDTH)
        for offset in range(BLOCK_SIZE):
            if offset in checksum_range:
                continue
            corrupted = _patch(record, offset, bytes([record[offset] ^ 0xFF]))
            with self.assertRaises(ChecksumMismatchError, msg=f"offset {offset}") as ctx:
                decode(corrupted)
            self.assertEqual(ctx.exception.field, "checksum")

    def test_zero_block_is_end_of_archive(self):
        self.assertIsNone(decode(b"\x00" * BLOCK_SIZE))
        self.assertIsNone(decode(bytearray(BLOCK_SIZE)))

    def test_short_block_is_truncation(self):
        record = encode(_sample_header())
        with self.assertRaises(TruncatedArchiveError):
            decode(record[:511])
        with self.assertRaises(TruncatedArchiveError):
            decode(b"")

    def test_non_octal_numeric_field(self):
        record = _reseal(_patch(encode(_sample_header()), 100, b"00006x4\x00"))
        with self.assertRaises(MalformedFieldError) as ctx:
            decode(record)
        self.assertEqual(ctx.exception.field, "mode")

    def test_signed_numeric_field_rejected(self):
        record = _reseal(_patch(encode(_sample_header()), 108, b"+000017\x00"))
        with self.assertRaises(MalformedFieldError) as ctx:
            decode(record)
        self.assertEqual(ctx.exception.field, "uid")

    def test_empty_numeric_field_rejected(self):
        record = _reseal(_patch(encode(_sample_header()), 329, b"\x00" * 8))
        with self.assertRaises(MalformedFieldError) as ctx:
            decode(record)
        self.assertEqual(ctx.exception.field, "devmajor")

    def test_missing_terminator(self):
        record = _reseal(_patch(encode(_sample_header()), 265, b"a" * 32))
        with self.assertRaises(MalformedFieldError) as ctx:
            decode(record)
        self.assertEqual(ctx.exception.field, "uname")
        self.assertIn("null-terminated", str(ctx.exception))

    def test_invalid_utf8_in_group_name(self):
        record = _reseal(_patch(encode(_sample_header()), 297, b"\xff\xfe\x00"))
        with self.assertRaises(MalformedFieldError) as ctx:
            decode(record)
        self.assertEqual(ctx.exception.field, "gname")

    def test_bad_checksum_field(self):
        record = _patch(encode(_sample_header()), CHECKSUM_OFFSET, b"zzzzzzz\x00")
        with self.assertRaises(MalformedFieldError) as ctx:
            decode(record)
        self.assertEqual(ctx.exception.field, "checksum")

    def test_foreign_checksum_terminator_accepted(self):
        # Six digits, NUL, space: the layout written by other tar implementations.
        record = encode(_sample_header())
        chk = format(compute_checksum(record), "06o").encode("ascii") + b"\x00 "
        record = _patch(record, CHECKSUM_OFFSET, chk)
        self.assertEqual(decode(record), _sample_header())


class HeaderEncodingLimitTests(unittest.TestCase):
    def assertEncodeFails(self, field: str, **overrides):
        with self.assertRaises(FieldEncodingError) as ctx:
            encode(_sample_header(**overrides))
        self.assertEqual(ctx.exception.field, field)

    def test_string_limits(self):
        encode(_sample_header(name="n" * 99))
        self.assertEncodeFails("name", name="n" * 100)
        self.assertEncodeFails("uname", uname="u" * 32)
        self.assertEncodeFails("gname", gname="é" * 16)
        self.assertEncodeFails("prefix", prefix="p" * 155)
        self.assertEncodeFails("linkname", linkname="l" * 100)

    def test_embedded_nul(self):
        self.assertEncodeFails("name", name="a\x00b")

    def test_numeric_limits(self):
        self.assertEncodeFails("size", size=8 ** 11)
        self.assertEncodeFails("mode", mode=8 ** 7)
        self.assertEncodeFails("mtime", mtime=-1)
        self.assertEncodeFails("devminor", devminor=8 ** 7)

    def test_fixed_width_tags(self):
        self.assertEncodeFails("magic", magic=b"ustar")
        self.assertEncodeFails("typeflag", typeflag=b"00")

    def test_unencodable_user_name(self):
        self.assertEncodeFails("uname", uname="bad\udcff")


class BlockMathTests(unittest.TestCase):
    def test_padding_and_span(self):
        cases = {0: 0, 1: 511, 5: 507, 511: 1, 512: 0, 513: 511, 1024: 0, 1500: 36}
        for size, pad in cases.items():
            with self.subTest(size=size):
                self.assertEqual(padding_size(size), pad)
                span = content_span(size)
                self.assertEqual(span, -(-size // BLOCK_SIZE) * BLOCK_SIZE)
                self.assertEqual(span % BLOCK_SIZE, 0)


class HeaderFromPathTests(unittest.TestCase):
    def test_from_regular_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "hello.txt"
            path.write_bytes(b"hello")
            os.chmod(path, 0o640)
            os.utime(path, (1_600_000_000, 1_600_000_000))
            h = Header.from_path(path, StubLookup())
            st = os.stat(path)
            self.assertEqual(h.name, str(path))
            self.assertEqual(h.mode, 0o640)
            self.assertEqual(h.size, 5)
            self.assertEqual(h.mtime, 1_600_000_000)
            self.assertEqual(h.uid, st.st_uid)
            self.assertEqual(h.gid, st.st_gid)
            self.assertEqual((h.uname, h.gname), ("tester", "staff"))
            self.assertEqual(h.devmajor, os.major(st.st_dev))
            self.assertEqual(h.devminor, os.minor(st.st_dev))
            self.assertEqual(h.typeflag, REGTYPE)
            self.assertIsNone(h.linkname)
            self.assertEqual(decode(h.encode()), h)

    def test_directory_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(UnsupportedEntryError):
                Header.from_path(tmp, StubLookup())

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                Header.from_path(os.path.join(tmp, "nope"), StubLookup())

    def test_lookup_miss_is_an_error(self):
        lookup = SystemIdentityLookup()
        with mock.patch("minitar.identity.pwd.getpwuid", side_effect=KeyError("getpwuid(): uid not found")):
            with self.assertRaises(IdentityLookupError) as ctx:
                lookup.user_name(4242)
        self.assertIn("4242", str(ctx.exception))
        with mock.patch("minitar.identity.grp.getgrgid", side_effect=KeyError("getgrgid(): gid not found")):
            with self.assertRaises(IdentityLookupError):
                lookup.group_name(4242)


if __name__ == "__main__":
    unittest.main()
