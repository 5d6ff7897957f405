"""
CHIP-8 VM - Machine Configuration

Pacing rates and the interpreter quirks that differ between historical
CHIP-8 interpreters. Shifts and BNNN behave as on the COSMAC VIP; the
logic, load/store and FX1E flags follow the later common interpreters.
"""

from dataclasses import dataclass, fields
from typing import Optional

from .periph.timer import TIMER_HZ

DEFAULT_CPU_HZ = 1000


@dataclass
class MachineConfig:
    """Interpreter settings. Passed by reference, never global."""

    # Timing
    cpu_hz: float = DEFAULT_CPU_HZ            # Steps per second, 0 = unthrottled
    timer_hz: float = TIMER_HZ                # Timer decay rate
    key_poll_interval: float = 1.0 / 60       # FX0A re-poll granularity (s)

    # Quirks
    shift_uses_vy: bool = True                # 8XY6/8XYE shift VY into VX
    jump_uses_v0: bool = True                 # BNNN jumps to NNN + V0
    logic_resets_vf: bool = False             # 8XY1/2/3 clear VF
    load_store_increments_index: bool = False # FX55/FX65 leave I = I + X + 1
    index_overflow_flag: bool = True          # FX1E sets VF past $FFF
    clip_sprites: bool = False                # DXYN clips instead of wrapping

    # Misc
    seed: Optional[int] = None                # CXNN random source seed
    trace: bool = False                       # DEBUG-log every instruction

    def validate(self) -> 'MachineConfig':
        if self.cpu_hz < 0:
            raise ValueError(f"cpu_hz must be >= 0, got {self.cpu_hz}")
        if self.timer_hz <= 0:
            raise ValueError(f"timer_hz must be > 0, got {self.timer_hz}")
        if self.key_poll_interval <= 0:
            raise ValueError(
                f"key_poll_interval must be > 0, got {self.key_poll_interval}")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> 'MachineConfig':
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data).validate()

    @property
    def step_interval(self) -> float:
        """Seconds per step, 0.0 when unthrottled."""
        return 1.0 / self.cpu_hz if self.cpu_hz else 0.0
