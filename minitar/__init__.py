"""
minitar — a minimal USTAR archiver for regular files.

Features:

- Fixed 512-byte header records with ASCII-octal numeric fields and a byte-sum checksum.
- Sequential writer (header, content, zero padding, two-block footer) and scanner that
  jumps from header to header without an index.
- create / append / list / update / extract operations and a tar-like CLI.
- Append-only updates: refreshing an entry adds a new copy after the old one.

Not supported: compression, links, directories, sparse or multi-volume archives, GNU/PAX
extensions, and restoring permissions or ownership on extraction.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "header",
    "writer",
    "reader",
    "archive",
]

# Importable programmatic API is available via minitar.archive (create_archive,
# append_to_archive, list_archive, update_archive, extract_archive) and the CLI
# functions in minitar.cli (cmd_create, cmd_extract, ...).
