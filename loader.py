"""
E20 Machine-Code Loader
========================
Reads the listing format produced by the E20 assembler, one word per
line:

    ram[0] = 16'b0010000010000101;
    ram[1] = 16'b0100000000000001;   // optional trailing text

Addresses must start at 0 and increase by one.  Words not listed stay 0.

Usage:
  from loader import load_file
  image = load_file("prog.bin")
"""

from __future__ import annotations
import re
from typing import Iterable

import numpy as np

from e20 import E20Error, MEM_SIZE, WORD_MASK

_LINE_RE = re.compile(r"ram\[(\d+)\] = 16'b([01]+);.*", re.ASCII)


class LoadError(E20Error):
    def __init__(self, line: int, msg: str):
        self.line = line
        super().__init__(msg)


def parse_line(text: str, lineno: int = 0) -> tuple[int, int]:
    """Parse one listing line.  Returns (address, word)."""
    m = _LINE_RE.fullmatch(text)
    if not m:
        raise LoadError(lineno, f"Can't parse line: {text}")
    return int(m.group(1)), int(m.group(2), 2) & WORD_MASK


def load_machine_code(lines: Iterable[str]) -> np.ndarray:
    """Build a memory image from listing lines.  Fails on the first bad line."""
    mem = np.zeros(MEM_SIZE, dtype=np.uint16)
    expected = 0
    for lineno, raw in enumerate(lines, 1):
        addr, word = parse_line(raw.rstrip("\r\n"), lineno)
        if addr != expected:
            raise LoadError(lineno,
                            f"Memory addresses encountered out of sequence: {addr}")
        if addr >= MEM_SIZE:
            raise LoadError(lineno, "Program too big for memory")
        expected += 1
        mem[addr] = word
    return mem


def load_file(path: str) -> np.ndarray:
    """Load a listing file.  OSError from open() propagates."""
    with open(path, "r", encoding="latin-1") as f:
        return load_machine_code(f)
