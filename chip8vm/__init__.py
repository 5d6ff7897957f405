"""
CHIP-8 Virtual Machine
======================
An interpreter for the CHIP-8 hobby computer: 4K memory, sixteen 8-bit
registers, a 64x32 monochrome display, a 16-key hex keypad and two
60 Hz countdown timers.

Architecture:
    ┌───────────┐    ┌───────────┐    ┌───────────┐
    │  Memory   │───>│  Decoder  │───>│  Chip8    │──> Framebuffer ──> presentation thread
    │ (mem/)    │    │  (cpu/)   │    │ Emulator  │<── Keypad      <── input collaborator
    └───────────┘    └───────────┘    └───────────┘
                                           ^
                                      Chip8Runner (interpreter thread, pacing, timers)

    - mem/:     4K byte store + hex font
    - cpu/:     register file, opcode table, ALU helpers
    - periph/:  timers, double-buffered framebuffer, keypad
    - emu.py:   fetch / decode / execute, one instruction per step()
    - runner.py: paced interpreter thread with clean stop
"""

__version__ = "0.1.0"

from .config import MachineConfig
from .emu import Chip8Emulator, StopReason
from .errors import (
    Chip8Error, IllegalOpcode, StackError, StackOverflow, StackUnderflow,
    ProgramTooLarge, InvalidKey,
)
from .periph.display import Frame, Framebuffer
from .periph.keypad import Keypad
from .periph.timer import Timers
from .runner import Chip8Runner
from .log import setup_logging
