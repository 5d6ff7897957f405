"""
CHIP-8 VM - Delay / Sound Timers

Two 8-bit down-counters. Each decrements once per 1/60 s of real time
until it reaches zero, and stays there until an instruction sets it
again (FX15 / FX18). The decay clock is independent of how many
instructions run in between: the driving loop feeds measured wall time
into advance(), which converts it to whole ticks and carries the
remainder forward.

The sound timer being nonzero is the "tone on" signal for an external
audio collaborator. It can read ``sound_active`` or register an
``on_sound`` callback that fires on on/off transitions.
"""

import logging
from typing import Callable, Optional

log = logging.getLogger(__name__)

TIMER_HZ = 60


class Timers:
    """Delay + sound timer pair.

    Only the interpreter thread calls into this object. The on_sound
    callback is invoked from that thread.
    """

    def __init__(self, rate_hz: float = TIMER_HZ,
                 on_sound: Optional[Callable[[bool], None]] = None):
        if rate_hz <= 0:
            raise ValueError(f"timer rate must be positive, got {rate_hz}")
        self._rate = rate_hz
        self._delay = 0
        self._sound = 0
        self._carry = 0.0          # Seconds not yet converted to ticks
        self.ticks = 0             # Total decay ticks performed
        self.on_sound = on_sound

    # --- Counters ---

    @property
    def delay(self) -> int:
        return self._delay

    @delay.setter
    def delay(self, value: int):
        self._delay = value & 0xFF

    @property
    def sound(self) -> int:
        return self._sound

    @sound.setter
    def sound(self, value: int):
        was_active = self.sound_active
        self._sound = value & 0xFF
        self._notify(was_active)

    @property
    def sound_active(self) -> bool:
        return self._sound > 0

    # --- Decay ---

    def tick(self):
        """One 60 Hz decay step. Counters never go below zero."""
        was_active = self.sound_active
        if self._delay > 0:
            self._delay -= 1
        if self._sound > 0:
            self._sound -= 1
        self.ticks += 1
        self._notify(was_active)

    def advance(self, elapsed: float) -> int:
        """Feed ``elapsed`` seconds of wall time; returns ticks performed."""
        self._carry += elapsed
        # 1e-9 absorbs rounding in accumulated float sums
        count = int(self._carry * self._rate + 1e-9)
        self._carry = max(0.0, self._carry - count / self._rate)
        for _ in range(count):
            self.tick()
        return count

    def _notify(self, was_active: bool):
        if self.on_sound is not None and was_active != self.sound_active:
            log.debug("sound %s", "on" if self.sound_active else "off")
            self.on_sound(self.sound_active)

    def reset(self):
        self._delay = 0
        self._carry = 0.0
        self.ticks = 0
        self.sound = 0
