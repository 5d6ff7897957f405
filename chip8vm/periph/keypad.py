"""
CHIP-8 VM - 16-Key Hex Keypad

Key layout on the original hardware:
  1 2 3 C
  4 5 6 D
  7 8 9 E
  A 0 B F

The presentation / input collaborator is the only writer (press,
release, set_key); the interpreter only reads. State changes go through
a condition variable so the key-wait instruction can block on
wait_for_press() instead of re-executing in a tight loop.
"""

import threading
from typing import Optional, Tuple

from ..errors import InvalidKey

NUM_KEYS = 16


def _check_key(key: int) -> int:
    if not isinstance(key, int) or not 0 <= key < NUM_KEYS:
        raise InvalidKey(key)
    return key


class Keypad:
    """Thread-safe pressed/released state for keys 0x0-0xF."""

    def __init__(self):
        self._keys = [False] * NUM_KEYS
        self._cond = threading.Condition()

    # --- Writer side (input collaborator) ---

    def set_key(self, key: int, pressed: bool):
        _check_key(key)
        with self._cond:
            if self._keys[key] != bool(pressed):
                self._keys[key] = bool(pressed)
                self._cond.notify_all()

    def press(self, key: int):
        self.set_key(key, True)

    def release(self, key: int):
        self.set_key(key, False)

    def release_all(self):
        with self._cond:
            if any(self._keys):
                self._keys = [False] * NUM_KEYS
                self._cond.notify_all()

    def wake(self):
        """Wake a blocked wait_for_press() without changing any key."""
        with self._cond:
            self._cond.notify_all()

    # --- Reader side (interpreter) ---

    def is_pressed(self, key: int) -> bool:
        return self._keys[key & 0x0F]

    def first_pressed(self) -> Optional[int]:
        """Lowest pressed key id, or None."""
        with self._cond:
            for key, down in enumerate(self._keys):
                if down:
                    return key
        return None

    def snapshot(self) -> Tuple[bool, ...]:
        with self._cond:
            return tuple(self._keys)

    def wait_for_press(self, timeout: Optional[float] = None) -> Optional[int]:
        """Block until some key is down, up to ``timeout`` seconds.

        Returns the lowest pressed key, or None if the wait timed out or
        was interrupted by wake().
        """
        with self._cond:
            if not any(self._keys):
                self._cond.wait(timeout)
            for key, down in enumerate(self._keys):
                if down:
                    return key
        return None
