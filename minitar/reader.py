from __future__ import annotations

import os
from typing import BinaryIO, Callable, Iterator, Optional

from .constants import BLOCK_SIZE
from .errors import HeaderError, TruncatedArchiveError
from .header import Header, content_span, decode, padding_size


Sink = Callable[[bytes], object]
Visitor = Callable[[Header], Optional[Sink]]


class ArchiveScanner:
    """Walk an archive stream entry by entry.

    Each header says how far to jump to reach the next one, so no index is
    needed. Scanning ends at the first all-zero block where a header is
    expected, or when the input ends cleanly on a block boundary.
    """

    def __init__(self, fh: BinaryIO):
        self.f = fh
        self._size: Optional[int] = None
        if fh.seekable():
            self._pos = fh.tell()
            self._size = fh.seek(0, os.SEEK_END)
            fh.seek(self._pos)
        else:
            self._pos = 0
        # Offset of the end-of-archive marker (or of the end of input)
        self.end_offset: Optional[int] = None

    @property
    def position(self) -> int:
        return self._pos

    def for_each_entry(self, visit: Visitor) -> int:
        """Pass each header to ``visit`` and return the number of entries seen.

        ``visit`` returns None to skip the entry's content, or a callable that
        receives the content in chunks of at most 512 bytes.
        """
        count = 0
        while True:
            header = self._next_header()
            if header is None:
                return count
            sink = visit(header)
            if sink is None:
                self._skip(content_span(header.size), header.name)
            else:
                self._consume(header, sink)
            count += 1

    def iter_headers(self) -> Iterator[Header]:
        while True:
            header = self._next_header()
            if header is None:
                return
            yield header
            self._skip(content_span(header.size), header.name)

    # internals
    def _next_header(self) -> Optional[Header]:
        off = self._pos
        block = self._read_upto(BLOCK_SIZE)
        if not block:
            self.end_offset = off
            return None
        if len(block) != BLOCK_SIZE:
            raise TruncatedArchiveError(
                f"header at offset {off}: only {len(block)} of {BLOCK_SIZE} bytes remain"
            )
        self._pos += BLOCK_SIZE
        try:
            header = decode(block)
        except HeaderError as exc:
            exc.offset = off
            raise
        if header is None:
            self.end_offset = off
        return header

    def _read_upto(self, n: int) -> bytes:
        """Read until ``n`` bytes arrive or the stream reports end of input."""
        buf = bytearray()
        while len(buf) < n:
            chunk = self.f.read(n - len(buf))
            if not chunk:
                break
            buf += chunk
        return bytes(buf)

    def _read_exact(self, n: int, name: str) -> bytes:
        b = self._read_upto(n)
        if len(b) != n:
            raise TruncatedArchiveError(
                f"{name}: expected {n} bytes at offset {self._pos}, got {len(b)}"
            )
        self._pos += n
        return b

    def _skip(self, n: int, name: str) -> None:
        if not n:
            return
        if self._size is None:
            while n:
                step = min(n, BLOCK_SIZE)
                self._read_exact(step, name)
                n -= step
            return
        if self._pos + n > self._size:
            raise TruncatedArchiveError(
                f"{name}: entry needs {n} bytes at offset {self._pos}, "
                f"archive ends at {self._size}"
            )
        self.f.seek(n, os.SEEK_CUR)
        self._pos += n

    def _consume(self, header: Header, sink: Sink) -> None:
        remaining = header.size
        while remaining:
            step = min(BLOCK_SIZE, remaining)
            sink(self._read_exact(step, header.name))
            remaining -= step
        self._skip(padding_size(header.size), header.name)
