"""
E20 Instruction-Set Simulator
==============================
A word-level emulator for the E20: eight 16-bit registers ($0 wired to
zero), 8192 words of 16-bit memory and a program counter.

Instructions are decoded once into small tagged records, then handed to
one of three executors (ALU, immediate/memory, control).  There is no
HALT opcode: a program stops by jumping to its own address with ``j``.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

NUM_REGS  = 8
MEM_SIZE  = 1 << 13
WORD_MASK = 0xFFFF
ADDR_MASK = MEM_SIZE - 1   # 13-bit address wrap

RA_REG = 7   # jal link register

# Opcode classes (bits 13-15)
OP_ALU  = 0b000
OP_ADDI = 0b001
OP_J    = 0b010
OP_JAL  = 0b011
OP_LW   = 0b100
OP_SW   = 0b101
OP_JEQ  = 0b110
OP_SLTI = 0b111

# ALU function codes (bits 0-3 of class 000)
FUNC_ADD = 0b0000
FUNC_SUB = 0b0001
FUNC_OR  = 0b0010
FUNC_AND = 0b0011
FUNC_SLT = 0b0100
FUNC_JR  = 0b1000

# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def u16(v: int) -> int:
    """Mask to unsigned 16 bits."""
    return v & WORD_MASK

def sign_extend(val: int, bits: int) -> int:
    """Sign-extend a *bits*-wide value to a 16-bit word."""
    mask = (1 << bits) - 1
    val &= mask
    if val & (1 << (bits - 1)):
        val |= WORD_MASK & ~mask
    return val

def wrap_addr(addr: int) -> int:
    return addr & ADDR_MASK

# ---------------------------------------------------------------------------
#  Exceptions
# ---------------------------------------------------------------------------

class E20Error(Exception):
    """Base for simulator errors."""
    pass

class HaltError(E20Error):
    pass

# ---------------------------------------------------------------------------
#  Decoder
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AluInstr:
    """Class 000: three-register operation selected by *func*."""
    func: int
    src_a: int
    src_b: int
    dst: int

@dataclass(frozen=True)
class ImmInstr:
    """addi / jeq / slti.  *imm* is already sign-extended."""
    op: int
    src: int
    dst: int
    imm: int

@dataclass(frozen=True)
class MemInstr:
    """lw / sw.  Register fields sit one bit lower than in ImmInstr."""
    op: int
    base: int
    reg: int
    imm: int

@dataclass(frozen=True)
class JumpInstr:
    """j / jal with a 13-bit absolute target."""
    op: int
    target: int

Instr = Union[AluInstr, ImmInstr, MemInstr, JumpInstr]


def decode(word: int) -> Instr:
    """Split a 16-bit instruction word into its fields.

    Every bit pattern decodes to something; undefined ALU function
    codes are left for the executor to ignore.
    """
    word = u16(word)
    op = (word >> 13) & 0x7

    if op == OP_ALU:
        return AluInstr(func=word & 0xF,
                        src_a=(word >> 10) & 0x7,
                        src_b=(word >> 7) & 0x7,
                        dst=(word >> 4) & 0x7)
    if op in (OP_J, OP_JAL):
        return JumpInstr(op=op, target=word & 0x1FFF)

    imm = sign_extend(word & 0x7F, 7)
    if op in (OP_LW, OP_SW):
        return MemInstr(op=op,
                        base=(word >> 9) & 0x7,
                        reg=(word >> 6) & 0x7,
                        imm=imm)
    # addi, jeq, slti
    return ImmInstr(op=op,
                    src=(word >> 10) & 0x7,
                    dst=(word >> 7) & 0x7,
                    imm=imm)

# ---------------------------------------------------------------------------
#  CPU
# ---------------------------------------------------------------------------

class E20:
    """E20 emulator: one machine state plus its fetch/decode/execute loop."""

    def __init__(self, mem: Optional[Sequence[int]] = None):
        self.mem = np.zeros(MEM_SIZE, dtype=np.uint16)
        if mem is not None:
            self.load_words(0, mem)

        self.regs: list[int] = [0] * NUM_REGS
        self.pc: int = 0

        # State
        self.halted: bool = False
        self.steps: int = 0

        # Callbacks
        self.on_halt: Optional[Callable[[], None]] = None

    def reset(self):
        """Return registers and PC to power-on values.  Memory is kept."""
        self.regs = [0] * NUM_REGS
        self.pc = 0
        self.halted = False
        self.steps = 0

    # -- Memory access --

    def mem_read(self, addr: int) -> int:
        return int(self.mem[wrap_addr(addr)])

    def mem_write(self, addr: int, val: int):
        self.mem[wrap_addr(addr)] = u16(val)

    def load_words(self, addr: int, words: Sequence[int]):
        """Write words into memory starting at the given address."""
        for i, w in enumerate(words):
            self.mem_write(addr + i, int(w))

    # =====================================================================
    #  STEP — fetch, decode, halt check, dispatch
    # =====================================================================

    def step(self) -> Instr:
        """Execute one instruction.  Returns the decoded instruction."""
        if self.halted:
            raise HaltError("CPU is halted")

        instr = decode(self.mem_read(self.pc))

        # Halt idiom: j to the current PC.  Nothing else changes.
        if (isinstance(instr, JumpInstr) and instr.op == OP_J
                and instr.target == self.pc):
            self.halted = True
            if self.on_halt:
                self.on_halt()
            return instr

        if isinstance(instr, AluInstr):
            self._exec_alu(instr)
        elif isinstance(instr, (ImmInstr, MemInstr)):
            self._exec_imm(instr)
        else:
            self._exec_ctrl(instr)

        self.regs[0] = 0
        self.steps += 1
        return instr

    # =====================================================================
    #  Executors
    # =====================================================================

    # -- 000: register/register --
    def _exec_alu(self, ins: AluInstr):
        a = self.regs[ins.src_a]
        b = self.regs[ins.src_b]

        if ins.func == FUNC_ADD:
            self.regs[ins.dst] = u16(a + b)
        elif ins.func == FUNC_SUB:
            self.regs[ins.dst] = u16(a - b)
        elif ins.func == FUNC_OR:
            self.regs[ins.dst] = a | b
        elif ins.func == FUNC_AND:
            self.regs[ins.dst] = a & b
        elif ins.func == FUNC_SLT:
            self.regs[ins.dst] = 1 if a < b else 0
        elif ins.func == FUNC_JR:
            self.pc = a
            return
        # other function codes: no-op
        self.pc = u16(self.pc + 1)

    # -- 001 / 100 / 101 / 110 / 111: immediate and memory --
    def _exec_imm(self, ins: ImmInstr | MemInstr):
        if ins.op == OP_SLTI:
            # both sides compared as unsigned words
            self.regs[ins.dst] = 1 if self.regs[ins.src] < ins.imm else 0
        elif ins.op == OP_ADDI:
            self.regs[ins.dst] = u16(self.regs[ins.src] + ins.imm)
        elif ins.op == OP_JEQ:
            if self.regs[ins.src] == self.regs[ins.dst]:
                self.pc = u16(self.pc + 1 + ins.imm)
                return
        elif ins.op == OP_LW:
            addr = wrap_addr(self.regs[ins.base] + ins.imm)
            self.regs[ins.reg] = self.mem_read(addr)
        elif ins.op == OP_SW:
            addr = wrap_addr(self.regs[ins.base] + ins.imm)
            self.mem_write(addr, self.regs[ins.reg])
        self.pc = u16(self.pc + 1)

    # -- 010 / 011: absolute jumps --
    def _exec_ctrl(self, ins: JumpInstr):
        if ins.op == OP_JAL:
            self.regs[RA_REG] = u16(self.pc + 1)
        self.pc = ins.target

    # -- Run loop --

    def run(self) -> int:
        """Run until the halt idiom.  Returns instructions executed.

        There is no step limit: a program that never jumps to itself
        never returns.
        """
        start = self.steps
        while not self.halted:
            self.step()
        return self.steps - start

    # -- Debug / introspection --

    def dump_state(self, memquantity: int = 128) -> str:
        """Final-state report: PC, all registers, then a hex memory dump."""
        lines = ["Final state:", f"\tpc={self.pc:5d}"]
        for i, r in enumerate(self.regs):
            lines.append(f"\t${i}={r:5d}")
        words = self.mem[:memquantity]
        for start in range(0, len(words), 8):
            lines.append("".join(f"{int(w):04x} " for w in words[start:start + 8]))
        return "\n".join(lines) + "\n"
