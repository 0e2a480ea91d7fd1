#!/usr/bin/env python3
"""
E20 Simulator / CLI
====================
Loads an E20 machine-code listing, runs it until the program jumps to
itself, then prints the final PC, registers and the first 128 words of
memory.

Usage:
  python cli.py [-h] FILE
"""

from __future__ import annotations
import argparse
import os
import sys
from typing import Optional

from e20 import E20
from loader import LoadError, load_file

DUMP_WORDS = 128


class _UsageParser(argparse.ArgumentParser):
    """Any argument problem prints the usage text and exits with status 1."""

    def error(self, message: str):
        self.print_help(sys.stderr)
        sys.exit(1)


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = _UsageParser(
        prog=prog,
        description="Simulate E20 machine",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("filename", nargs="?", default=None,
                        help="The file containing machine code, typically "
                             "with .bin suffix")
    parser.add_argument("-h", "--help", action="store_true",
                        help="show this help message and exit")
    return parser


def main(argv: Optional[list[str]] = None):
    parser = build_parser(os.path.basename(sys.argv[0]) if sys.argv else None)
    if argv is None:
        argv = sys.argv[1:]
    # every dash argument other than the help flag is a usage error
    for arg in argv:
        if arg.startswith("-") and arg not in ("-h", "--help"):
            parser.error(f"unrecognized argument: {arg}")
    args = parser.parse_args(argv)

    if args.help or args.filename is None:
        parser.print_help(sys.stderr)
        sys.exit(1)

    try:
        image = load_file(args.filename)
    except OSError:
        print(f"Can't open file {args.filename}", file=sys.stderr)
        sys.exit(1)
    except LoadError as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    cpu = E20(image)
    cpu.run()
    sys.stdout.write(cpu.dump_state(DUMP_WORDS))


if __name__ == "__main__":
    main()
