from typing import Iterable, Optional


class MinitarError(Exception):
    """Base class for minitar-specific errors."""


# Header codec
class HeaderError(MinitarError):
    """A header record could not be encoded or decoded.

    ``offset`` is filled in by the scanner with the byte offset of the record
    inside the archive, when known.
    """

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.offset: Optional[int] = None

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} (header at offset {self.offset})"


class MalformedFieldError(HeaderError):
    pass


class FieldEncodingError(HeaderError):
    pass


class ChecksumMismatchError(HeaderError):
    def __init__(self, expected: int, recorded: int):
        super().__init__(
            f"Checksums do not match, expected: {expected}, recorded: {recorded}",
            field="checksum",
        )
        self.expected = expected
        self.recorded = recorded


# Archive structure
class TruncatedArchiveError(MinitarError):
    pass


class MissingFooterError(MinitarError):
    pass


class UnsupportedEntryError(MinitarError):
    pass


class UnsafePathError(MinitarError):
    pass


# Operations
class UpdatePolicyError(MinitarError):
    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(
            "One or more of specified files not already present in archive: "
            + ", ".join(self.missing)
        )


class IdentityLookupError(MinitarError):
    pass


class SourceChangedError(MinitarError):
    pass


class ArchiveIOError(MinitarError):
    """An OS-level failure, prefixed with the operation that hit it."""

    def __init__(self, operation: str, cause: OSError):
        super().__init__(f"{operation}: {cause}")
        self.operation = operation
        self.cause = cause
