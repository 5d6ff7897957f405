"""
CHIP-8 VM - Opcode Decoder / Dispatch Table

Every instruction is two bytes, big-endian. The leading nibble selects
an instruction group; within the group each form is a (mask, pattern)
pair tested against the full 16-bit opcode, so forms that ignore some
nibbles (1NNN, 6XNN, DXYN...) use a narrow mask and forms that are
fixed (00E0, FX65...) use a wide one.

Operand fields:
  X    bits 8-11   register index
  Y    bits 4-7    register index
  N    bits 0-3    4-bit immediate
  NN   bits 0-7    byte immediate
  NNN  bits 0-11   12-bit address

0NNN (call native machine code routine) is deliberately absent: it has
no meaning outside the original hardware, so it falls through to
IllegalOpcode like any other unmapped opcode.
"""

from typing import NamedTuple

from ..errors import IllegalOpcode
from ..mem.memory import ADDR_MASK


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────
# Format: leading nibble -> [(mask, pattern, mnemonic), ...]

OPCODES = {
    0x0: [
        (0xFFFF, 0x00E0, 'CLS'),
        (0xFFFF, 0x00EE, 'RET'),
    ],
    0x1: [(0xF000, 0x1000, 'JP')],
    0x2: [(0xF000, 0x2000, 'CALL')],
    0x3: [(0xF000, 0x3000, 'SE_VX_NN')],
    0x4: [(0xF000, 0x4000, 'SNE_VX_NN')],
    0x5: [(0xF00F, 0x5000, 'SE_VX_VY')],
    0x6: [(0xF000, 0x6000, 'LD_VX_NN')],
    0x7: [(0xF000, 0x7000, 'ADD_VX_NN')],
    0x8: [
        (0xF00F, 0x8000, 'LD_VX_VY'),
        (0xF00F, 0x8001, 'OR'),
        (0xF00F, 0x8002, 'AND'),
        (0xF00F, 0x8003, 'XOR'),
        (0xF00F, 0x8004, 'ADD_VX_VY'),
        (0xF00F, 0x8005, 'SUB'),
        (0xF00F, 0x8006, 'SHR'),
        (0xF00F, 0x8007, 'SUBN'),
        (0xF00F, 0x800E, 'SHL'),
    ],
    0x9: [(0xF00F, 0x9000, 'SNE_VX_VY')],
    0xA: [(0xF000, 0xA000, 'LD_I')],
    0xB: [(0xF000, 0xB000, 'JP_V0')],
    0xC: [(0xF000, 0xC000, 'RND')],
    0xD: [(0xF000, 0xD000, 'DRW')],
    0xE: [
        (0xF0FF, 0xE09E, 'SKP'),
        (0xF0FF, 0xE0A1, 'SKNP'),
    ],
    0xF: [
        (0xF0FF, 0xF007, 'LD_VX_DT'),
        (0xF0FF, 0xF00A, 'LD_VX_K'),
        (0xF0FF, 0xF015, 'LD_DT_VX'),
        (0xF0FF, 0xF018, 'LD_ST_VX'),
        (0xF0FF, 0xF01E, 'ADD_I_VX'),
        (0xF0FF, 0xF029, 'LD_F_VX'),
        (0xF0FF, 0xF033, 'LD_B_VX'),
        (0xF0FF, 0xF055, 'LD_MEM_VX'),
        (0xF0FF, 0xF065, 'LD_VX_MEM'),
    ],
}

# Every mnemonic the table can produce; the emulator's handler table
# must cover exactly this set.
MNEMONICS = frozenset(m for forms in OPCODES.values() for _, _, m in forms)


class Instruction(NamedTuple):
    """A decoded opcode."""
    opcode: int
    mnemonic: str
    x: int
    y: int
    n: int
    nn: int
    nnn: int

    def __str__(self) -> str:
        return f"{self.opcode:04X} {self.mnemonic}"


def decode(opcode: int) -> Instruction:
    """Decode a raw 16-bit opcode.

    Pure function of its argument. Raises IllegalOpcode when no form in
    the opcode's group matches.
    """
    opcode &= 0xFFFF
    for mask, pattern, mnem in OPCODES[opcode >> 12]:
        if opcode & mask == pattern:
            return Instruction(
                opcode=opcode,
                mnemonic=mnem,
                x=(opcode >> 8) & 0xF,
                y=(opcode >> 4) & 0xF,
                n=opcode & 0xF,
                nn=opcode & 0xFF,
                nnn=opcode & 0xFFF,
            )
    raise IllegalOpcode(opcode)


def decode_opcode(memory, pc: int):
    """Fetch and decode the instruction at ``pc``.

    Returns: (instruction, new_pc)
    """
    opcode = memory.read16(pc)
    try:
        instr = decode(opcode)
    except IllegalOpcode:
        raise IllegalOpcode(opcode, pc) from None
    return instr, (pc + 2) & ADDR_MASK
