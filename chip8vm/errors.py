"""
CHIP-8 VM - Fatal Error Types

Every error the interpreter can raise derives from Chip8Error so the
supervising thread can catch the whole family in one place.

  IllegalOpcode    opcode matched no decode table entry
  StackOverflow    CALL with all 16 return slots in use
  StackUnderflow   RET with an empty stack
  ProgramTooLarge  program bytes do not fit above the program origin
  InvalidKey       key id outside 0x0-0xF handed to the keypad
"""


class Chip8Error(Exception):
    """Base class for interpreter errors."""
    pass


class IllegalOpcode(Chip8Error):
    """Raised when an opcode matches no instruction form."""

    def __init__(self, opcode: int, pc: int = None):
        self.opcode = opcode
        self.pc = pc
        if pc is None:
            msg = f"Unknown opcode ${opcode:04X}"
        else:
            msg = f"Unknown opcode ${opcode:04X} at ${pc:03X}"
        super().__init__(msg)


class StackError(Chip8Error):
    pass


class StackOverflow(StackError):
    def __init__(self, pc: int, depth: int):
        self.pc = pc
        self.depth = depth
        super().__init__(f"Stack overflow at ${pc:03X} (depth {depth})")


class StackUnderflow(StackError):
    def __init__(self, pc: int):
        self.pc = pc
        super().__init__(f"Return with empty stack at ${pc:03X}")


class ProgramTooLarge(Chip8Error):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Program is {size} bytes, limit is {limit}")


class InvalidKey(Chip8Error, ValueError):
    def __init__(self, key):
        self.key = key
        super().__init__(f"Key id must be 0x0-0xF, got {key!r}")
