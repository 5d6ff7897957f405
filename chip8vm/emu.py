"""
CHIP-8 VM - Interpreter Engine

This is the top-level class that integrates:
  - CPU registers + return stack (cpu/regs.py)
  - Memory map + font (mem/memory.py)
  - Opcode decoder (cpu/decoder.py)
  - ALU helpers (cpu/alu.py)
  - Peripherals: timers, framebuffer, keypad

Execution model for step():
  1. Fetch the 2-byte opcode at PC
  2. Advance PC by 2 (jumps and skips overwrite it)
  3. Decode into an Instruction via the data-driven table
  4. Execute the handler for its mnemonic
  5. If the framebuffer changed, publish it as one complete frame

step() does no pacing of its own. Chip8Runner (runner.py) calls it at
the configured rate on a dedicated thread and drives timer decay.

Fatal conditions (IllegalOpcode, StackOverflow, StackUnderflow) raise
out of step(), as does anything raised by a collaborator callback.
Unpublished pixel changes are rolled back first, so the last good frame
stays visible.
"""

import logging
import random
from enum import Enum
from typing import Callable, Optional

from .config import MachineConfig
from .cpu import alu
from .cpu.decoder import Instruction, decode_opcode
from .cpu.regs import VF, Registers
from .mem.font import glyph_address
from .mem.memory import ADDR_MASK, PROGRAM_ORIGIN, Memory
from .periph.display import Framebuffer
from .periph.keypad import Keypad
from .periph.timer import Timers

log = logging.getLogger(__name__)


class StopReason(Enum):
    STEPS = 'STEPS'          # step budget used up
    KEY_WAIT = 'KEY_WAIT'    # FX0A waiting for a key


class Chip8Emulator:
    """CHIP-8 interpreter.

    The framebuffer and keypad are the only objects shared with other
    threads; pass your own instances in to wire up a presentation loop.

    Usage:
        emu = Chip8Emulator()
        emu.load_program(rom_bytes)
        emu.run(max_steps=1000)
        frame = emu.fb.read_frame()
    """

    def __init__(self, config: Optional[MachineConfig] = None,
                 framebuffer: Optional[Framebuffer] = None,
                 keypad: Optional[Keypad] = None,
                 on_sound: Optional[Callable[[bool], None]] = None):
        self.config = (config or MachineConfig()).validate()

        # Core components
        self.regs = Registers()
        self.mem = Memory()
        self.timers = Timers(self.config.timer_hz, on_sound=on_sound)

        # Shared with the presentation side
        self.fb = framebuffer if framebuffer is not None else Framebuffer()
        self.keypad = keypad if keypad is not None else Keypad()

        self.rng = random.Random(self.config.seed)
        self.waiting_for_key = False

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_program(self, data: bytes):
        """Copy raw program bytes to $200 and point PC at them."""
        data = bytes(data)
        self.mem.load_program(data)
        self.regs.PC = PROGRAM_ORIGIN
        self.waiting_for_key = False
        log.info("Loaded %d-byte program at $%03X", len(data), PROGRAM_ORIGIN)

    def reset(self):
        """Power-on state: registers, memory, timers and a blank frame."""
        self.regs.reset()
        self.mem.clear()
        self.timers.reset()
        self.rng.seed(self.config.seed)
        self.waiting_for_key = False
        self.fb.clear()
        self.fb.publish()

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction.

        Returns StopReason.KEY_WAIT while FX0A is waiting for a key (the
        PC is left on the FX0A so the next step re-checks), else None.
        """
        pc = self.regs.PC
        try:
            instr, self.regs.PC = decode_opcode(self.mem, pc)
            if self.config.trace:
                log.debug("$%03X: %-16s %s", pc, instr, self.regs.display())
            self._dispatch[instr.mnemonic](instr)
        except Exception:
            self.fb.rollback()
            raise

        self.regs.steps += 1
        if self.fb.dirty:
            self.fb.publish()
        return StopReason.KEY_WAIT if self.waiting_for_key else None

    def run(self, max_steps: int) -> StopReason:
        """Run up to ``max_steps`` instructions back to back, no pacing.

        Stops early if the program blocks on a key wait.
        """
        for _ in range(max_steps):
            if self.step() is StopReason.KEY_WAIT:
                return StopReason.KEY_WAIT
        return StopReason.STEPS

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(instr)

    def _build_dispatch(self) -> dict:
        """Build mnemonic -> handler dispatch table."""
        return {
            # ── Display / flow ──
            'CLS':       self._op_cls,
            'RET':       self._op_ret,
            'JP':        self._op_jp,
            'CALL':      self._op_call,
            'JP_V0':     self._op_jp_v0,

            # ── Skips ──
            'SE_VX_NN':  self._op_se_vx_nn,
            'SNE_VX_NN': self._op_sne_vx_nn,
            'SE_VX_VY':  self._op_se_vx_vy,
            'SNE_VX_VY': self._op_sne_vx_vy,
            'SKP':       self._op_skp,
            'SKNP':      self._op_sknp,

            # ── Register load / arithmetic ──
            'LD_VX_NN':  self._op_ld_vx_nn,
            'ADD_VX_NN': self._op_add_vx_nn,
            'LD_VX_VY':  self._op_ld_vx_vy,
            'OR':        self._op_or,
            'AND':       self._op_and,
            'XOR':       self._op_xor,
            'ADD_VX_VY': self._op_add_vx_vy,
            'SUB':       self._op_sub,
            'SHR':       self._op_shr,
            'SUBN':      self._op_subn,
            'SHL':       self._op_shl,
            'RND':       self._op_rnd,

            # ── Index / memory ──
            'LD_I':      self._op_ld_i,
            'ADD_I_VX':  self._op_add_i_vx,
            'LD_F_VX':   self._op_ld_f_vx,
            'LD_B_VX':   self._op_ld_b_vx,
            'LD_MEM_VX': self._op_ld_mem_vx,
            'LD_VX_MEM': self._op_ld_vx_mem,

            # ── Sprites ──
            'DRW':       self._op_drw,

            # ── Timers / keys ──
            'LD_VX_DT':  self._op_ld_vx_dt,
            'LD_DT_VX':  self._op_ld_dt_vx,
            'LD_ST_VX':  self._op_ld_st_vx,
            'LD_VX_K':   self._op_ld_vx_k,
        }

    def _instr_addr(self) -> int:
        """Address of the executing instruction (PC has already moved past it)."""
        return (self.regs.PC - 2) & ADDR_MASK

    def _skip(self, cond: bool):
        if cond:
            self.regs.PC = (self.regs.PC + 2) & ADDR_MASK

    # --- Display / flow ---

    def _op_cls(self, ins: Instruction):
        self.fb.clear()

    def _op_ret(self, ins: Instruction):
        self.regs.PC = self.regs.pop(at=self._instr_addr())

    def _op_jp(self, ins: Instruction):
        self.regs.PC = ins.nnn

    def _op_call(self, ins: Instruction):
        # PC already points past the CALL, which is the return address
        self.regs.push(self.regs.PC, at=self._instr_addr())
        self.regs.PC = ins.nnn

    def _op_jp_v0(self, ins: Instruction):
        offset = self.regs.V[0] if self.config.jump_uses_v0 else 0
        self.regs.PC = (ins.nnn + offset) & ADDR_MASK

    # --- Skips ---

    def _op_se_vx_nn(self, ins: Instruction):
        self._skip(self.regs.V[ins.x] == ins.nn)

    def _op_sne_vx_nn(self, ins: Instruction):
        self._skip(self.regs.V[ins.x] != ins.nn)

    def _op_se_vx_vy(self, ins: Instruction):
        self._skip(self.regs.V[ins.x] == self.regs.V[ins.y])

    def _op_sne_vx_vy(self, ins: Instruction):
        self._skip(self.regs.V[ins.x] != self.regs.V[ins.y])

    def _op_skp(self, ins: Instruction):
        self._skip(self.keypad.is_pressed(self.regs.V[ins.x]))

    def _op_sknp(self, ins: Instruction):
        self._skip(not self.keypad.is_pressed(self.regs.V[ins.x]))

    # --- Register load / arithmetic ---

    def _op_ld_vx_nn(self, ins: Instruction):
        self.regs.V[ins.x] = ins.nn

    def _op_add_vx_nn(self, ins: Instruction):
        # No carry flag for the immediate form
        self.regs.V[ins.x] = (self.regs.V[ins.x] + ins.nn) & 0xFF

    def _op_ld_vx_vy(self, ins: Instruction):
        self.regs.V[ins.x] = self.regs.V[ins.y]

    def _op_or(self, ins: Instruction):
        self.regs.V[ins.x] |= self.regs.V[ins.y]
        if self.config.logic_resets_vf:
            self.regs.flag = 0

    def _op_and(self, ins: Instruction):
        self.regs.V[ins.x] &= self.regs.V[ins.y]
        if self.config.logic_resets_vf:
            self.regs.flag = 0

    def _op_xor(self, ins: Instruction):
        self.regs.V[ins.x] ^= self.regs.V[ins.y]
        if self.config.logic_resets_vf:
            self.regs.flag = 0

    def _op_add_vx_vy(self, ins: Instruction):
        result, carry = alu.add8(self.regs.V[ins.x], self.regs.V[ins.y])
        self.regs.V[ins.x] = result
        self.regs.flag = carry

    def _op_sub(self, ins: Instruction):
        result, no_borrow = alu.sub8(self.regs.V[ins.x], self.regs.V[ins.y])
        self.regs.V[ins.x] = result
        self.regs.flag = no_borrow

    def _op_subn(self, ins: Instruction):
        result, no_borrow = alu.sub8(self.regs.V[ins.y], self.regs.V[ins.x])
        self.regs.V[ins.x] = result
        self.regs.flag = no_borrow

    def _shift_source(self, ins: Instruction) -> int:
        return self.regs.V[ins.y if self.config.shift_uses_vy else ins.x]

    def _op_shr(self, ins: Instruction):
        result, out = alu.shr8(self._shift_source(ins))
        self.regs.V[ins.x] = result
        self.regs.flag = out

    def _op_shl(self, ins: Instruction):
        result, out = alu.shl8(self._shift_source(ins))
        self.regs.V[ins.x] = result
        self.regs.flag = out

    def _op_rnd(self, ins: Instruction):
        self.regs.V[ins.x] = self.rng.randrange(256) & ins.nn

    # --- Index / memory ---

    def _op_ld_i(self, ins: Instruction):
        self.regs.I = ins.nnn

    def _op_add_i_vx(self, ins: Instruction):
        total = self.regs.I + self.regs.V[ins.x]
        self.regs.I = total & ADDR_MASK
        if self.config.index_overflow_flag:
            self.regs.flag = total > ADDR_MASK

    def _op_ld_f_vx(self, ins: Instruction):
        self.regs.I = glyph_address(self.regs.V[ins.x])

    def _op_ld_b_vx(self, ins: Instruction):
        for offset, digit in enumerate(alu.bcd(self.regs.V[ins.x])):
            self.mem.write8(self.regs.I + offset, digit)

    def _op_ld_mem_vx(self, ins: Instruction):
        for i in range(ins.x + 1):
            self.mem.write8(self.regs.I + i, self.regs.V[i])
        if self.config.load_store_increments_index:
            self.regs.I = (self.regs.I + ins.x + 1) & ADDR_MASK

    def _op_ld_vx_mem(self, ins: Instruction):
        for i in range(ins.x + 1):
            self.regs.V[i] = self.mem.read8(self.regs.I + i)
        if self.config.load_store_increments_index:
            self.regs.I = (self.regs.I + ins.x + 1) & ADDR_MASK

    # --- Sprites ---

    def _op_drw(self, ins: Instruction):
        sprite = self.mem.read_block(self.regs.I, ins.n)
        collision = self.fb.draw_sprite(self.regs.V[ins.x], self.regs.V[ins.y],
                                        sprite, clip=self.config.clip_sprites)
        self.regs.flag = collision

    # --- Timers / keys ---

    def _op_ld_vx_dt(self, ins: Instruction):
        self.regs.V[ins.x] = self.timers.delay

    def _op_ld_dt_vx(self, ins: Instruction):
        self.timers.delay = self.regs.V[ins.x]

    def _op_ld_st_vx(self, ins: Instruction):
        self.timers.sound = self.regs.V[ins.x]

    def _op_ld_vx_k(self, ins: Instruction):
        key = self.keypad.first_pressed()
        if key is None:
            # Re-execute this FX0A on the next step
            self.regs.PC = (self.regs.PC - 2) & ADDR_MASK
            self.waiting_for_key = True
            return
        self.waiting_for_key = False
        self.regs.V[ins.x] = key
