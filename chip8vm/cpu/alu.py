"""
CHIP-8 VM - ALU Operations

Each function returns a tuple: (result_byte, flag). The caller stores
the result in VX first and only then writes the flag to VF, so an
instruction with X == F ends up with the flag, never the arithmetic
result.

Flag meanings:
  add8   1 = carry out of bit 7
  sub8   1 = no borrow (a >= b)
  shr8   bit 0 of the operand (shifted out)
  shl8   bit 7 of the operand (shifted out)
"""


def add8(a: int, b: int) -> tuple:
    result = a + b
    return (result & 0xFF, 1 if result > 0xFF else 0)


def sub8(a: int, b: int) -> tuple:
    """a - b. Used by 8XY5 (VX - VY) and, operands swapped, 8XY7."""
    return ((a - b) & 0xFF, 1 if a >= b else 0)


def shr8(a: int) -> tuple:
    return (a >> 1, a & 0x01)


def shl8(a: int) -> tuple:
    return ((a << 1) & 0xFF, (a >> 7) & 0x01)


def bcd(value: int) -> tuple:
    """Hundreds, tens, ones digits of an 8-bit value."""
    value &= 0xFF
    return (value // 100, (value // 10) % 10, value % 10)
