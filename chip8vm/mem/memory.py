"""
CHIP-8 VM - 4K Memory Map

Memory map:
  $000-$04F  Reserved interpreter area (unused, zero)
  $050-$09F  Hex digit font (16 glyphs x 5 bytes)
  $0A0-$1FF  Reserved interpreter area (unused, zero)
  $200-$FFF  Program space

Addressing policy: every address is masked to 12 bits before use, so
reads and writes past $FFF wrap to $000. There is no out-of-bounds
error anywhere in the memory path.
"""

from ..errors import ProgramTooLarge
from .font import FONT, FONT_OFFSET

MEMORY_SIZE = 0x1000
ADDR_MASK = MEMORY_SIZE - 1
PROGRAM_ORIGIN = 0x200


class Memory:
    """Flat 4096-byte store with the font preloaded.

    Owned by the interpreter thread; nothing on the presentation side
    reads or writes it.
    """

    def __init__(self):
        self._mem = bytearray(MEMORY_SIZE)
        self.load_font()

    def load_font(self):
        self._mem[FONT_OFFSET:FONT_OFFSET + len(FONT)] = FONT

    # --- Core read/write ---

    def read8(self, addr: int) -> int:
        return self._mem[addr & ADDR_MASK]

    def write8(self, addr: int, value: int):
        self._mem[addr & ADDR_MASK] = value & 0xFF

    def read16(self, addr: int) -> int:
        """Read 16-bit value (big-endian, the opcode byte order)."""
        hi = self.read8(addr)
        lo = self.read8(addr + 1)
        return (hi << 8) | lo

    def read_block(self, addr: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``addr``, wrapping past $FFF."""
        return bytes(self._mem[(addr + i) & ADDR_MASK] for i in range(length))

    # --- Bulk load ---

    def load_binary(self, data: bytes, base_addr: int):
        """Copy raw bytes into memory at base_addr (wrapping)."""
        for i, byte in enumerate(data):
            self._mem[(base_addr + i) & ADDR_MASK] = byte

    def load_program(self, data: bytes):
        """Place program bytes at the program origin.

        Unlike load_binary this refuses to wrap into the reserved area.
        """
        limit = MEMORY_SIZE - PROGRAM_ORIGIN
        if len(data) > limit:
            raise ProgramTooLarge(len(data), limit)
        self._mem[PROGRAM_ORIGIN:PROGRAM_ORIGIN + len(data)] = data

    def clear(self):
        self._mem[:] = bytes(MEMORY_SIZE)
        self.load_font()

    def __len__(self) -> int:
        return MEMORY_SIZE
