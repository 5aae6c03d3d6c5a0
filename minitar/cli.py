from __future__ import annotations

import argparse
import stat
import sys
import time
from typing import List

from minitar.archive import (
    append_to_archive,
    create_archive,
    extract_archive,
    list_archive,
    update_archive,
)
from minitar.errors import MinitarError
from minitar.header import Header


def _format_long(h: Header) -> str:
    """One ``ls -l`` style line, as printed by ``-tv``."""
    mode = stat.filemode(stat.S_IFREG | h.mode)
    when = time.strftime("%Y-%m-%d %H:%M", time.localtime(h.mtime))
    return f"{mode} {h.uname}/{h.gname} {h.size:>10} {when} {h.name}"


def _echo_name(h: Header) -> None:
    print(h.name)


def cmd_create(archive: str, inputs: List[str], *, verbose: bool = False) -> bool:
    create_archive(archive, inputs, on_entry=_echo_name if verbose else None)
    return True


def cmd_append(archive: str, inputs: List[str], *, verbose: bool = False) -> bool:
    append_to_archive(archive, inputs, on_entry=_echo_name if verbose else None)
    return True


def cmd_update(archive: str, inputs: List[str], *, verbose: bool = False) -> bool:
    update_archive(archive, inputs, on_entry=_echo_name if verbose else None)
    return True


def cmd_list(archive: str, *, verbose: bool = False) -> bool:
    listing = list_archive(archive)
    if verbose:
        for h in listing.headers():
            print(_format_long(h))
    else:
        for name in listing:
            print(name)
    return True


def cmd_extract(archive: str, *, outdir: str = ".", verbose: bool = False) -> bool:
    extract_archive(archive, outdir, on_entry=_echo_name if verbose else None)
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="minitar",
        description="Minimal USTAR archiver for regular files",
        epilog="Example: minitar -c -f out.tar a.txt b.txt",
    )
    mode = ap.add_mutually_exclusive_group(required=True)
    mode.add_argument("-c", dest="mode", action="store_const", const="create", help="Create a new archive")
    mode.add_argument("-a", dest="mode", action="store_const", const="append", help="Append files to an archive")
    mode.add_argument("-t", dest="mode", action="store_const", const="list", help="List archive contents")
    mode.add_argument(
        "-u",
        dest="mode",
        action="store_const",
        const="update",
        help="Append fresh copies of files already in the archive",
    )
    mode.add_argument("-x", dest="mode", action="store_const", const="extract", help="Extract all files")
    ap.add_argument("-f", dest="archive", required=True, metavar="ARCHIVE", help="Archive path")
    ap.add_argument("-v", dest="verbose", action="store_true", help="Print entry names as they are processed")
    ap.add_argument("-C", dest="directory", metavar="DIR", help="Extract into DIR (default: .); only valid with -x")
    ap.add_argument("files", nargs="*", help="Input files")

    args = ap.parse_args(argv)
    if args.mode in ("list", "extract") and args.files:
        flag = "-t" if args.mode == "list" else "-x"
        ap.error(f"{flag} takes no file arguments")
    if args.directory is not None and args.mode != "extract":
        ap.error("-C is only valid with -x")
    try:
        if args.mode == "create":
            cmd_create(args.archive, args.files, verbose=args.verbose)
        elif args.mode == "append":
            cmd_append(args.archive, args.files, verbose=args.verbose)
        elif args.mode == "list":
            cmd_list(args.archive, verbose=args.verbose)
        elif args.mode == "update":
            cmd_update(args.archive, args.files, verbose=args.verbose)
        elif args.mode == "extract":
            cmd_extract(args.archive, outdir=args.directory or ".", verbose=args.verbose)
        else:
            raise RuntimeError("Unknown operation")
    except (MinitarError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
