"""
CHIP-8 VM - 64x32 Monochrome Framebuffer + Publish Boundary

The interpreter thread is the only writer; any number of presentation
threads may read. The two sides never share a mutable pixel array:

  back buffer   bytearray owned by the interpreter. CLS and DRW mutate
                it in place with no locking at all.
  front frame   immutable Frame (bytes + generation). publish() builds a
                new Frame from the back buffer and swaps the reference
                under the condition lock; the lock is held only for the
                swap, never while drawing.

A reader therefore sees either the previous complete frame or the new
complete frame. Frames published faster than a reader polls are simply
superseded (latest-frame delivery, no queue).

close() marks the boundary closed and wakes every reader blocked in
wait_for_frame() so shutdown never strands the presentation thread.
"""

import logging
import threading
from typing import Iterator, NamedTuple, Optional

log = logging.getLogger(__name__)

WIDTH = 64
HEIGHT = 32


class Frame(NamedTuple):
    """A complete published frame. One byte (0 or 1) per pixel, row-major."""
    pixels: bytes
    generation: int
    width: int = WIDTH
    height: int = HEIGHT

    def pixel(self, x: int, y: int) -> int:
        return self.pixels[y * self.width + x]

    def rows(self) -> Iterator[bytes]:
        for y in range(self.height):
            yield self.pixels[y * self.width:(y + 1) * self.width]

    def lit(self) -> int:
        """Number of lit pixels."""
        return sum(self.pixels)

    def to_text(self, on: str = '#', off: str = '.') -> str:
        return '\n'.join(
            ''.join(on if p else off for p in row) for row in self.rows()
        )


class Framebuffer:
    """Double-buffered pixel grid shared between two threads."""

    def __init__(self, width: int = WIDTH, height: int = HEIGHT):
        self.width = width
        self.height = height
        self._back = bytearray(width * height)
        self._front = Frame(bytes(width * height), 0, width, height)
        self._cond = threading.Condition()
        self._closed = False
        self.dirty = False

    # ══════════════════════════════════════════════
    # Writer side (interpreter thread only)
    # ══════════════════════════════════════════════

    def clear(self):
        self._back[:] = bytes(len(self._back))
        self.dirty = True

    def draw_sprite(self, x: int, y: int, sprite: bytes,
                    clip: bool = False) -> bool:
        """XOR an 8-pixel-wide sprite onto the back buffer.

        The origin is taken modulo the grid size. Each pixel then wraps
        independently: a column past the right edge comes back on the
        left of the same row, a row past the bottom comes back at the
        top. With ``clip`` set, off-grid pixels are dropped instead.

        Returns True if any lit pixel was turned off (collision).
        """
        w, h = self.width, self.height
        back = self._back
        x0 = x % w
        y0 = y % h
        collision = False
        for line, bits in enumerate(sprite):
            row = y0 + line
            if row >= h:
                if clip:
                    break
                row %= h
            base = row * w
            for bit in range(8):
                if not bits & (0x80 >> bit):
                    continue
                col = x0 + bit
                if col >= w:
                    if clip:
                        break
                    col %= w
                idx = base + col
                if back[idx]:
                    collision = True
                back[idx] ^= 1
        self.dirty = True
        return collision

    def publish(self) -> Frame:
        """Make the back buffer visible to readers as one complete frame."""
        pixels = bytes(self._back)
        with self._cond:
            frame = Frame(pixels, self._front.generation + 1,
                          self.width, self.height)
            self._front = frame
            self._cond.notify_all()
        self.dirty = False
        return frame

    def rollback(self):
        """Discard unpublished changes, restoring the last published frame."""
        self._back[:] = self._front.pixels
        self.dirty = False

    def close(self):
        """Stop the boundary; wakes all readers blocked in wait_for_frame()."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        log.debug("framebuffer closed at generation %d", self._front.generation)

    def reopen(self):
        with self._cond:
            self._closed = False

    # ══════════════════════════════════════════════
    # Reader side (any thread)
    # ══════════════════════════════════════════════

    @property
    def closed(self) -> bool:
        return self._closed

    def read_frame(self) -> Frame:
        """The last published frame."""
        # Attribute read of an immutable object; no lock needed.
        return self._front

    def wait_for_frame(self, after: int = -1,
                       timeout: Optional[float] = None) -> Frame:
        """Block until a frame newer than generation ``after`` exists.

        Returns the latest frame when it arrives, when the boundary is
        closed, or when ``timeout`` expires; callers compare the returned
        generation to tell these apart and simply call again to retry.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._front.generation > after or self._closed,
                timeout=timeout,
            )
            return self._front
