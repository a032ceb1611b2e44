#!/usr/bin/env python3
"""Command line entry point for dzip.

Usage:
    dzip [-j] [-O] <OUTPUT> <INPUT>...

Exit codes:
    0 = Archive created
    1 = Not enough arguments
    2 = Build failed (stat/open/write error, existing output, ...)
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from dzip_errors import BuildError
from dzip_zip import BuildOptions, build_zip

_DESCRIPTION = """
dzip creates the zip file <OUTPUT> from all provided <INPUT>s while
stripping metadata that differs between machines and runs (modification
times, fine-grained permissions, input order).

The same inputs always produce the same archive bytes, which is not the
case with the traditional zip tool.
""".strip("\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dzip",
        usage="%(prog)s [-j] [-O] <OUTPUT> <INPUT>...",
        description=_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s out.zip src/ README.md     # Keep directory structure
  %(prog)s -j out.zip build/bin/      # Flat archive of file names only
  %(prog)s -O out.zip src/            # Replace an existing out.zip
        """,
    )
    parser.add_argument(
        "-j",
        dest="junk_paths",
        action="store_true",
        help="junk (don't record) directory names",
    )
    parser.add_argument(
        "-O",
        dest="overwrite",
        action="store_true",
        help="overwrite (if exists) output file",
    )
    parser.add_argument("output", nargs="?", metavar="OUTPUT", help="Archive to create")
    parser.add_argument("inputs", nargs="*", metavar="INPUT", help="Files and directories to add")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    # Flags may follow the positionals: "dzip out.zip -j d" is accepted.
    args = parser.parse_intermixed_args(argv)

    # The output plus at least one input are needed for the command to make sense.
    if args.output is None or not args.inputs:
        print("not enough arguments provided")
        print(parser.format_help())
        return 1

    options = BuildOptions(junk_paths=args.junk_paths, overwrite=args.overwrite)
    try:
        build_zip(args.output, args.inputs, options)
    except BuildError as e:
        print(f"failed creating zip: {e}")
        for note in getattr(e, "__notes__", ()):
            print(f"  {note}")
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
