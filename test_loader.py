"""Loader tests: listing format, sequencing and capacity checks."""

import os
import tempfile
import unittest

import numpy as np

from e20 import E20Error, MEM_SIZE
from loader import LoadError, parse_line, load_machine_code, load_file


def listing(*words: str) -> list[str]:
    return [f"ram[{i}] = 16'b{w};\n" for i, w in enumerate(words)]


class TestParseLine(unittest.TestCase):
    def test_basic(self):
        self.assertEqual(parse_line("ram[3] = 16'b0010000010000101;"),
                         (3, 0x2085))

    def test_trailing_text_ignored(self):
        addr, word = parse_line("ram[0] = 16'b0100000000000000;  // halt")
        self.assertEqual((addr, word), (0, 0x4000))

    def test_long_value_truncated(self):
        _, word = parse_line("ram[0] = 16'b10000000000000001;")
        self.assertEqual(word, 1)

    def test_rejects(self):
        for bad in ("", "ram[0] = 16'b0102;", "ram[x] = 16'b0;",
                    "ram[0]=16'b0000000000000000;", " ram[0] = 16'b0;",
                    "ram[0] = 16'b0000000000000000",
                    "ram[\u0663] = 16'b0000000000000000;"):
            with self.assertRaises(LoadError, msg=repr(bad)):
                parse_line(bad, 7)

    def test_error_message_and_line(self):
        with self.assertRaises(LoadError) as cm:
            parse_line("garbage", 4)
        self.assertEqual(str(cm.exception), "Can't parse line: garbage")
        self.assertEqual(cm.exception.line, 4)


class TestLoadMachineCode(unittest.TestCase):
    def test_image(self):
        mem = load_machine_code(listing("0010000010000101", "0100000000000001"))
        self.assertEqual(mem.dtype, np.uint16)
        self.assertEqual(len(mem), MEM_SIZE)
        self.assertEqual(int(mem[0]), 0x2085)
        self.assertEqual(int(mem[1]), 0x4001)
        self.assertFalse(mem[2:].any())

    def test_empty_input(self):
        mem = load_machine_code([])
        self.assertFalse(mem.any())

    def test_crlf(self):
        mem = load_machine_code(["ram[0] = 16'b1111111111111111;\r\n"])
        self.assertEqual(int(mem[0]), 0xFFFF)

    def test_out_of_sequence(self):
        lines = listing("0", "1")
        lines.append("ram[5] = 16'b1;\n")
        with self.assertRaises(LoadError) as cm:
            load_machine_code(lines)
        self.assertEqual(str(cm.exception),
                         "Memory addresses encountered out of sequence: 5")
        self.assertEqual(cm.exception.line, 3)

    def test_must_start_at_zero(self):
        with self.assertRaises(LoadError):
            load_machine_code(["ram[1] = 16'b1;"])

    def test_program_too_big(self):
        lines = [f"ram[{i}] = 16'b0;" for i in range(MEM_SIZE + 1)]
        with self.assertRaises(LoadError) as cm:
            load_machine_code(lines)
        self.assertEqual(str(cm.exception), "Program too big for memory")
        self.assertEqual(cm.exception.line, MEM_SIZE + 1)

    def test_full_memory_fits(self):
        lines = [f"ram[{i}] = 16'b1;" for i in range(MEM_SIZE)]
        mem = load_machine_code(lines)
        self.assertTrue((mem == 1).all())

    def test_bad_line_after_good(self):
        lines = listing("1") + ["oops\n"]
        with self.assertRaises(LoadError) as cm:
            load_machine_code(lines)
        self.assertEqual(cm.exception.line, 2)

    def test_load_error_is_e20_error(self):
        self.assertTrue(issubclass(LoadError, E20Error))


class TestLoadFile(unittest.TestCase):
    def test_roundtrip_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".bin", delete=False) as f:
            f.writelines(listing("0010000010000101", "0100000000000001"))
            path = f.name
        try:
            mem = load_file(path)
            self.assertEqual([int(w) for w in mem[:3]], [0x2085, 0x4001, 0])
        finally:
            os.unlink(path)

    def test_non_utf8_trailing_text(self):
        with tempfile.NamedTemporaryFile("wb", suffix=".bin", delete=False) as f:
            f.write(b"ram[0] = 16'b0100000000000000; // caf\xe9\n")
            path = f.name
        try:
            mem = load_file(path)
            self.assertEqual(int(mem[0]), 0x4000)
        finally:
            os.unlink(path)

    def test_non_utf8_bad_line(self):
        with tempfile.NamedTemporaryFile("wb", suffix=".bin", delete=False) as f:
            f.write(b"\xff\xfe garbage\n")
            path = f.name
        try:
            with self.assertRaises(LoadError) as cm:
                load_file(path)
            self.assertEqual(cm.exception.line, 1)
        finally:
            os.unlink(path)

    def test_missing_file(self):
        with self.assertRaises(OSError):
            load_file("/nonexistent/dir/prog.bin")


if __name__ == "__main__":
    unittest.main()
