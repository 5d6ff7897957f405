"""
CHIP-8 VM - Register File + Return Stack

Register model:
  V0-VF  16 general-purpose 8-bit registers
         VF doubles as the carry / borrow / collision flag. Instructions
         that set it write the flag after storing their primary result.
  I      16-bit index register (only the low 12 bits address memory)
  PC     16-bit program counter, starts at the program origin
  stack  16 return addresses, SP counts used slots (0 = empty)
"""

from typing import Optional

from ..errors import StackOverflow, StackUnderflow
from ..mem.memory import PROGRAM_ORIGIN

NUM_REGISTERS = 16
STACK_DEPTH = 16
VF = 0xF


class Registers:
    """CHIP-8 register set and call stack."""

    __slots__ = ('V', 'I', 'PC', 'SP', 'stack', 'steps')

    def __init__(self):
        self.V = bytearray(NUM_REGISTERS)    # V0-VF
        self.I: int = 0                      # Index register
        self.PC: int = PROGRAM_ORIGIN        # Program counter
        self.SP: int = 0                     # Used stack slots
        self.stack = [0] * STACK_DEPTH       # Return addresses
        self.steps: int = 0                  # Instructions executed

    # --- Flag access ---

    @property
    def flag(self) -> int:
        return self.V[VF]

    @flag.setter
    def flag(self, value: int):
        self.V[VF] = 1 if value else 0

    # --- Stack operations ---

    def push(self, addr: int, at: Optional[int] = None):
        """Push a return address. Raises StackOverflow when all slots are used.

        ``at`` is the CALL's own address for the error report; defaults to PC.
        """
        if self.SP >= STACK_DEPTH:
            raise StackOverflow(self.PC if at is None else at, self.SP)
        self.stack[self.SP] = addr & 0xFFFF
        self.SP += 1

    def pop(self, at: Optional[int] = None) -> int:
        """Pop a return address. Raises StackUnderflow on an empty stack."""
        if self.SP == 0:
            raise StackUnderflow(self.PC if at is None else at)
        self.SP -= 1
        return self.stack[self.SP]

    # --- Display ---

    def display(self) -> str:
        """Format register state for log messages."""
        vregs = ' '.join(f"V{i:X}={v:02X}" for i, v in enumerate(self.V))
        return f"PC={self.PC:03X} I={self.I:03X} SP={self.SP:X} {vregs}"

    def reset(self):
        """Reset to power-on state."""
        self.V[:] = bytes(NUM_REGISTERS)
        self.I = 0
        self.PC = PROGRAM_ORIGIN
        self.SP = 0
        self.stack = [0] * STACK_DEPTH
        self.steps = 0
