from __future__ import annotations

import os
from typing import BinaryIO, List, Optional, Union

from .constants import BLOCK_SIZE, FOOTER_SIZE, COPY_CHUNK_SIZE
from .errors import SourceChangedError
from .header import Header, content_span, padding_size


class ArchiveWriter:
    """Streaming writer that appends USTAR entries to an archive file.

    With ``offset=None`` the archive is created (or truncated). Otherwise the
    existing file is opened read/write and writing starts at ``offset``, which
    for an append is the start of the old footer.
    """

    def __init__(
        self,
        out_path: Union[str, os.PathLike],
        *,
        offset: Optional[int] = None,
        lookup=None,
    ):
        self.out_path = out_path
        self.offset = offset
        self.lookup = lookup
        self.f: Optional[BinaryIO] = None
        self.entries: List[Header] = []
        self.written = 0
        self._finalized = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        if self.offset is None:
            self.f = open(self.out_path, "wb")
        else:
            self.f = open(self.out_path, "r+b")
            self.f.seek(self.offset)

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def add_file(self, fs_path: Union[str, os.PathLike]) -> Header:
        """Write header, raw content and zero padding for one regular file.

        Advances the archive by exactly ``512 + size + padding`` bytes.
        """
        if self.f is None:
            raise RuntimeError("Archive not open")
        if self._finalized:
            raise RuntimeError("Archive already finalized")
        header = Header.from_path(fs_path, self.lookup)
        record = header.encode()
        with open(fs_path, "rb") as src:
            self.f.write(record)
            remaining = header.size
            while remaining:
                chunk = src.read(min(COPY_CHUNK_SIZE, remaining))
                if not chunk:
                    raise SourceChangedError(
                        f"{header.name}: file shrank by {remaining} bytes while being archived"
                    )
                self.f.write(chunk)
                remaining -= len(chunk)
        pad = padding_size(header.size)
        if pad:
            self.f.write(b"\x00" * pad)
        self.written += BLOCK_SIZE + content_span(header.size)
        self.entries.append(header)
        return header

    def finalize(self):
        """Seal the archive with the two zero blocks of the footer."""
        if self.f is None:
            raise RuntimeError("Archive not open")
        if self._finalized:
            raise RuntimeError("Archive already finalized")
        self.f.write(b"\x00" * FOOTER_SIZE)
        self.written += FOOTER_SIZE
        # Nothing may follow the new footer.
        if self.offset is not None:
            self.f.truncate()
        self.f.flush()
        self._finalized = True
