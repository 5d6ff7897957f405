"""
Interpreter thread tests: pacing, timer cadence, key wait, clean stop
and error propagation, observed from the presentation side through
Framebuffer.wait_for_frame() the way a display loop would.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading
import time

import pytest

from chip8vm import (
    Chip8Emulator, Chip8Runner, IllegalOpcode, MachineConfig,
)


def words(*ops) -> bytes:
    return b''.join(op.to_bytes(2, 'big') for op in ops)


def wait_until(fb, predicate, timeout=5.0):
    """Poll published frames like a display loop until predicate(frame)."""
    deadline = time.monotonic() + timeout
    frame = fb.read_frame()
    while not predicate(frame):
        remaining = deadline - time.monotonic()
        if remaining <= 0 or fb.closed:
            return frame
        frame = fb.wait_for_frame(after=frame.generation, timeout=remaining)
    return frame


# ═══════════════════════════════════════════════
# End-to-end through the thread
# ═══════════════════════════════════════════════

class TestEndToEnd:

    def test_clear_then_draw_visible_to_reader(self):
        sprite = bytes([0xF0, 0x90, 0x90, 0x90, 0xF0])
        emu = Chip8Emulator()
        emu.load_program(words(
            0x00E0,          # $200 CLS
            0xA20C,          # $202 I = $20C
            0x6000,          # $204 V0 = 0
            0x6100,          # $206 V1 = 0
            0xD015,          # $208 DRW V0, V1, 5
            0x120A,          # $20A spin
        ) + sprite)
        runner = Chip8Runner(emu)
        runner.start()
        try:
            frame = wait_until(emu.fb, lambda f: f.lit() > 0)
        finally:
            runner.stop(timeout=5)

        assert frame.lit() == 14
        for y in range(32):
            for x in range(64):
                expected = (sprite[y] >> (7 - x)) & 1 if (y < 5 and x < 8) else 0
                assert frame.pixel(x, y) == expected

    def test_reader_never_sees_half_a_sprite(self):
        # Toggle a solid 8x15 block forever, unthrottled
        emu = Chip8Emulator(MachineConfig(cpu_hz=0))
        emu.load_program(words(
            0xA20A,          # $200 I = $20A
            0x6000,          # $202 V0 = 0
            0xD00F,          # $204 DRW V0, V0, 15
            0x1204,          # $206 JP $204
            0x0000,          # $208
        ) + bytes([0xFF] * 15))
        runner = Chip8Runner(emu)
        runner.start()
        bad = []
        generations = set()
        try:
            end = time.monotonic() + 0.5
            while time.monotonic() < end:
                frame = emu.fb.read_frame()
                generations.add(frame.generation)
                if frame.lit() not in (0, 120):
                    bad.append(frame.lit())
        finally:
            runner.stop(timeout=5)
        assert not bad
        assert len(generations) > 2


# ═══════════════════════════════════════════════
# Pacing + timers
# ═══════════════════════════════════════════════

class TestPacing:

    def test_instruction_rate_is_throttled(self):
        emu = Chip8Emulator(MachineConfig(cpu_hz=500))
        emu.load_program(words(0x1200))
        runner = Chip8Runner(emu)
        runner.start()
        time.sleep(0.4)
        runner.stop(timeout=5)
        # ~200 expected; generous bounds for loaded machines
        assert 40 <= emu.regs.steps <= 400

    def test_delay_timer_decays_at_60hz(self):
        # delay = 30 (half a second), spin until it reads 0, then draw
        emu = Chip8Emulator(MachineConfig(cpu_hz=2000))
        emu.load_program(words(
            0x6A1E,          # $200 VA = 30
            0xFA15,          # $202 delay = VA
            0xFB07,          # $204 VB = delay
            0x3B00,          # $206 skip if VB == 0
            0x1204,          # $208 JP $204
            0xF029,          # $20A I = glyph 0
            0xD005,          # $20C DRW
            0x120E,          # $20E spin
        ))
        runner = Chip8Runner(emu)
        start = time.monotonic()
        runner.start()
        try:
            frame = wait_until(emu.fb, lambda f: f.lit() > 0)
        finally:
            elapsed = time.monotonic() - start
            runner.stop(timeout=5)
        assert frame.lit() > 0
        assert 0.4 <= elapsed < 3.0
        assert emu.timers.delay == 0

    def test_sound_callback_from_interpreter_thread(self):
        events = []
        emu = Chip8Emulator(MachineConfig(cpu_hz=1000), on_sound=events.append)
        emu.load_program(words(0x6A03, 0xFA18, 0x1204))
        runner = Chip8Runner(emu)
        runner.start()
        deadline = time.monotonic() + 3
        while len(events) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        runner.stop(timeout=5)
        assert events == [True, False]


# ═══════════════════════════════════════════════
# Key wait through the thread
# ═══════════════════════════════════════════════

class TestKeyWait:

    def test_key_wait_resumes_on_press(self):
        emu = Chip8Emulator(MachineConfig(key_poll_interval=0.01))
        emu.load_program(words(
            0xF00A,          # $200 V0 = key
            0xF029,          # $202 I = glyph V0
            0x6100,          # $204 V1 = 0
            0xD115,          # $206 DRW V1, V1, 5
            0x1208,          # $208 spin
        ))
        runner = Chip8Runner(emu)
        runner.start()
        try:
            time.sleep(0.1)
            assert emu.waiting_for_key
            assert emu.fb.read_frame().lit() == 0
            emu.keypad.press(0x1)
            frame = wait_until(emu.fb, lambda f: f.lit() > 0)
        finally:
            runner.stop(timeout=5)
        assert emu.regs.V[0] == 0x1
        # Glyph "1": 0x20 0x60 0x20 0x20 0x70
        assert frame.lit() == 1 + 2 + 1 + 1 + 3

    def test_stop_while_waiting_for_key(self):
        emu = Chip8Emulator(MachineConfig(key_poll_interval=10))
        emu.load_program(words(0xF00A))
        runner = Chip8Runner(emu)
        runner.start()
        time.sleep(0.05)
        start = time.monotonic()
        runner.stop(timeout=5)
        assert not runner.running
        assert time.monotonic() - start < 2


# ═══════════════════════════════════════════════
# Shutdown + errors
# ═══════════════════════════════════════════════

class TestShutdown:

    def test_stop_releases_blocked_reader(self):
        emu = Chip8Emulator()
        emu.load_program(words(0x1200))
        runner = Chip8Runner(emu)
        result = []
        reader = threading.Thread(
            target=lambda: result.append(emu.fb.wait_for_frame(after=0)))
        runner.start()
        reader.start()
        time.sleep(0.05)
        runner.stop(timeout=5)
        reader.join(timeout=2)
        assert not reader.is_alive()
        assert result[0].generation == 0

    def test_fatal_error_reported_to_supervisor(self):
        emu = Chip8Emulator()
        emu.load_program(words(
            0xF029,          # $200 I = glyph 0
            0xD005,          # $202 DRW
            0x0000,          # $204 illegal
        ))
        runner = Chip8Runner(emu)
        runner.start()
        with pytest.raises(IllegalOpcode) as exc:
            runner.join(timeout=5)
        assert exc.value.pc == 0x204
        assert not runner.running
        assert isinstance(runner.error, IllegalOpcode)
        assert emu.fb.closed
        # Last good frame stays published
        assert emu.fb.read_frame().lit() == 14

    def test_callback_error_reported_to_supervisor(self):
        def boom(active):
            raise RuntimeError("audio device gone")

        emu = Chip8Emulator(on_sound=boom)
        emu.load_program(words(
            0x6005,          # $200 V0 = 5
            0xF018,          # $202 sound = V0 -> callback raises
            0x1204,          # $204 spin
        ))
        runner = Chip8Runner(emu)
        runner.start()
        with pytest.raises(RuntimeError, match="audio device gone"):
            runner.join(timeout=5)
        assert not runner.running
        assert isinstance(runner.error, RuntimeError)
        assert emu.fb.closed
        with pytest.raises(RuntimeError):
            runner.stop(timeout=1)

    def test_cannot_start_twice(self):
        emu = Chip8Emulator()
        emu.load_program(words(0x1200))
        runner = Chip8Runner(emu)
        runner.start()
        try:
            with pytest.raises(RuntimeError):
                runner.start()
        finally:
            runner.stop(timeout=5)

    def test_restart_after_stop(self):
        emu = Chip8Emulator()
        emu.load_program(words(0x1200))
        runner = Chip8Runner(emu)
        runner.start()
        runner.stop(timeout=5)
        assert emu.fb.closed
        runner.start()
        assert not emu.fb.closed
        runner.stop(timeout=5)


# ═══════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════

class TestConfig:

    def test_defaults(self):
        cfg = MachineConfig()
        assert cfg.cpu_hz == 1000
        assert cfg.timer_hz == 60
        assert cfg.step_interval == pytest.approx(0.001)

    def test_unthrottled(self):
        assert MachineConfig(cpu_hz=0).step_interval == 0.0

    @pytest.mark.parametrize("bad", [
        {"cpu_hz": -1},
        {"timer_hz": 0},
        {"key_poll_interval": 0},
    ])
    def test_validate(self, bad):
        with pytest.raises(ValueError):
            MachineConfig(**bad).validate()
        with pytest.raises(ValueError):
            Chip8Emulator(MachineConfig(**bad))

    def test_from_dict(self):
        cfg = MachineConfig.from_dict({"cpu_hz": 700, "clip_sprites": True})
        assert cfg.cpu_hz == 700 and cfg.clip_sprites

    def test_from_dict_rejects_unknown(self):
        with pytest.raises(ValueError, match="warp_speed"):
            MachineConfig.from_dict({"warp_speed": True})
