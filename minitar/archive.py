from __future__ import annotations

import contextlib
import os
from typing import BinaryIO, Callable, Iterable, Iterator, List, Optional, Union

from .constants import FOOTER_SIZE, REGULAR_TYPES
from .errors import (
    ArchiveIOError,
    MissingFooterError,
    TruncatedArchiveError,
    UnsupportedEntryError,
    UpdatePolicyError,
)
from .header import Header
from .pathutil import norm_member_path
from .reader import ArchiveScanner
from .writer import ArchiveWriter


PathLike = Union[str, os.PathLike]
EntryCallback = Callable[[Header], None]


@contextlib.contextmanager
def _io_errors(operation: str):
    try:
        yield
    except OSError as exc:
        raise ArchiveIOError(operation, exc) from exc


def _write_entries(w: ArchiveWriter, files: Iterable[PathLike], on_entry: Optional[EntryCallback]) -> None:
    for path in files:
        header = w.add_file(path)
        if on_entry is not None:
            on_entry(header)


def _locate_footer(archive_path: PathLike) -> int:
    """Return the offset of the trailing 1024-byte footer."""
    with open(archive_path, "rb") as fh:
        size = fh.seek(0, os.SEEK_END)
        if size < FOOTER_SIZE:
            raise TruncatedArchiveError(
                f"{os.fsdecode(archive_path)}: {size} bytes is too short to hold a footer"
            )
        start = size - FOOTER_SIZE
        fh.seek(start)
        if fh.read(FOOTER_SIZE) != b"\x00" * FOOTER_SIZE:
            raise MissingFooterError(
                f"{os.fsdecode(archive_path)}: archive does not end with a {FOOTER_SIZE}-byte zero footer"
            )
    return start


def create_archive(
    archive_path: PathLike,
    files: Iterable[PathLike],
    *,
    lookup=None,
    on_entry: Optional[EntryCallback] = None,
) -> List[Header]:
    """Create (or truncate) ``archive_path`` holding ``files`` in the given order."""
    with _io_errors("create"):
        with ArchiveWriter(archive_path, lookup=lookup) as w:
            _write_entries(w, files, on_entry)
            w.finalize()
            return w.entries


def append_to_archive(
    archive_path: PathLike,
    files: Iterable[PathLike],
    *,
    lookup=None,
    on_entry: Optional[EntryCallback] = None,
) -> List[Header]:
    """Overwrite the footer of an existing archive with new entries and a fresh footer."""
    with _io_errors("append"):
        footer_start = _locate_footer(archive_path)
        with ArchiveWriter(archive_path, offset=footer_start, lookup=lookup) as w:
            _write_entries(w, files, on_entry)
            w.finalize()
            return w.entries


class ArchiveListing:
    """Entry names of an archive in encounter order.

    Nothing is read until iteration starts, and every iteration re-opens the
    archive, so a listing can be walked any number of times.
    """

    def __init__(self, archive_path: PathLike):
        self.archive_path = archive_path

    def __iter__(self) -> Iterator[str]:
        for header in self.headers():
            yield header.name

    def headers(self) -> Iterator[Header]:
        with _io_errors("list"):
            with open(self.archive_path, "rb") as fh:
                yield from ArchiveScanner(fh).iter_headers()


def list_archive(archive_path: PathLike) -> ArchiveListing:
    return ArchiveListing(archive_path)


def update_archive(
    archive_path: PathLike,
    files: Iterable[PathLike],
    *,
    lookup=None,
    on_entry: Optional[EntryCallback] = None,
) -> List[Header]:
    """Append fresh copies of entries that already exist in the archive.

    Every requested name must already be listed; otherwise nothing is written.
    The old entries stay in place, so the archive keeps both copies.
    """
    files = list(files)
    try:
        existing = set(list_archive(archive_path))
    except ArchiveIOError as exc:
        raise ArchiveIOError("update", exc.cause) from exc.cause
    missing = {os.fsdecode(p) for p in files} - existing
    if missing:
        raise UpdatePolicyError(missing)
    return append_to_archive(archive_path, files, lookup=lookup, on_entry=on_entry)


class _Extractor:
    """Scanner visitor that writes each entry's content to ``dest/name``."""

    def __init__(self, dest: PathLike, on_entry: Optional[EntryCallback]):
        self.dest = dest
        self.on_entry = on_entry
        self.current: Optional[BinaryIO] = None

    def __call__(self, header: Header):
        self.close()
        if header.typeflag not in REGULAR_TYPES:
            raise UnsupportedEntryError(
                f"{header.name}: unsupported entry type {header.typeflag!r}"
            )
        target = os.path.join(self.dest, norm_member_path(header.name))
        os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
        self.current = open(target, "wb")
        if self.on_entry is not None:
            self.on_entry(header)
        return self.current.write

    def close(self):
        if self.current is not None:
            self.current.close()
            self.current = None


def extract_archive(
    archive_path: PathLike,
    dest: PathLike = ".",
    *,
    on_entry: Optional[EntryCallback] = None,
) -> int:
    """Write the content of every entry below ``dest``; returns the entry count.

    Only file content is restored, not permissions, ownership or timestamps.
    A name that occurs more than once ends up with its last copy.
    """
    with _io_errors("extract"):
        with open(archive_path, "rb") as fh:
            extractor = _Extractor(dest, on_entry)
            try:
                return ArchiveScanner(fh).for_each_entry(extractor)
            finally:
                extractor.close()
