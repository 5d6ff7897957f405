"""
CHIP-8 VM - Interpreter Thread

Chip8Runner owns the instruction-execution thread. Each pass of its loop:

  1. Feeds the wall time since the previous pass into the timers, so the
     delay/sound counters decay at 60 Hz whatever the instruction rate.
  2. Works out how many steps are due at ``cpu_hz`` and runs them as one
     batch (capped, so a stall never turns into a long catch-up burst).
  3. Sleeps on the stop event until the next step is due, which makes
     stop() take effect immediately.

While the program sits in FX0A the loop stops stepping and blocks on
Keypad.wait_for_press() for ``key_poll_interval`` at a time, still
decaying timers between polls.

A Chip8Error from the engine ends the thread, and so does any other
exception escaping step() or a timer callback. The error is logged,
kept in ``runner.error`` and re-raised from join() / stop() in the
supervising thread. However the loop ends, the framebuffer is closed so
presentation threads blocked in wait_for_frame() return.
"""

import logging
import threading
import time
from typing import Optional

from .emu import Chip8Emulator, StopReason
from .errors import Chip8Error

log = logging.getLogger(__name__)

MAX_BATCH = 256            # Most steps run between two timer/stop checks
IDLE_WAIT = 0.002          # Unthrottled mode still yields this often (s)


class Chip8Runner:
    """Runs a Chip8Emulator on a dedicated thread.

    Usage:
        runner = Chip8Runner(emu)
        runner.start()
        ...                       # presentation loop reads emu.fb
        runner.stop()             # re-raises a fatal interpreter error
    """

    def __init__(self, emu: Chip8Emulator, name: str = "chip8-cpu"):
        self.emu = emu
        self.name = name
        self.error: Optional[Exception] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            raise RuntimeError("interpreter thread already running")
        self.error = None
        self._stop.clear()
        self.emu.fb.reopen()
        self._thread = threading.Thread(target=self._run, name=self.name,
                                        daemon=True)
        self._thread.start()
        log.info("Interpreter started at %s steps/s", self.emu.config.cpu_hz or "unthrottled")

    def stop(self, timeout: Optional[float] = None):
        """Signal the thread to stop, then join it."""
        self._stop.set()
        self.emu.keypad.wake()
        self.join(timeout)

    def join(self, timeout: Optional[float] = None):
        """Wait for the thread; re-raise the error that stopped it, if any."""
        if self._thread is not None:
            self._thread.join(timeout)
        if self.error is not None:
            raise self.error

    # ══════════════════════════════════════════════
    # Thread body
    # ══════════════════════════════════════════════

    def _run(self):
        emu = self.emu
        cfg = emu.config
        interval = cfg.step_interval
        last = epoch = time.perf_counter()
        done = 0

        try:
            while not self._stop.is_set():
                now = time.perf_counter()
                emu.timers.advance(now - last)
                last = now

                if emu.waiting_for_key:
                    if emu.keypad.wait_for_press(cfg.key_poll_interval) is None:
                        continue
                    # Re-run the FX0A now, then restart the pacing clock
                    emu.step()
                    epoch, done = time.perf_counter(), 0
                    continue

                if interval:
                    budget = int((now - epoch) / interval) - done
                    if budget <= 0:
                        self._stop.wait(epoch + (done + 1) * interval - now)
                        continue
                    if budget > MAX_BATCH:
                        # Fell behind; drop the backlog instead of bursting
                        epoch, done = now - MAX_BATCH * interval, 0
                        budget = MAX_BATCH
                else:
                    budget = MAX_BATCH

                for _ in range(budget):
                    done += 1
                    if emu.step() is StopReason.KEY_WAIT:
                        break

                if not interval:
                    self._stop.wait(IDLE_WAIT)
        except Chip8Error as e:
            self.error = e
            log.error("Interpreter halted: %s | %s", e, emu.regs.display())
        except Exception as e:
            # Collaborator failure, e.g. on_sound
            self.error = e
            log.exception("Interpreter crashed: %s | %s", e, emu.regs.display())
        finally:
            emu.fb.close()
            log.info("Interpreter stopped after %d steps", emu.regs.steps)
