"""
Cancellable transmit stepper.

Plays a list of TimedStep on an emitter (torch, or full-screen flash as
fallback). A stop request aborts at any suspension point; the emitter is
always left off afterwards.
"""

import sys
import threading
from typing import Callable, Iterable, List, Optional

from config import TRANSMIT_COUNTDOWN_S
from encoder import TimedStep


class EmitterUnavailable(RuntimeError):
    """Emitter cannot be opened on this device."""


class EmitterError(RuntimeError):
    """Emitter failed while switching."""


def select_emitter(candidates: Iterable):
    """
    Open the first available emitter.

    Args:
        candidates: Emitters in order of preference (torch first)

    Returns:
        The opened emitter

    Raises:
        EmitterUnavailable: if none can be opened
    """
    reasons: List[str] = []
    for emitter in candidates:
        try:
            emitter.open()
        except EmitterUnavailable as e:
            print(f"Emitter {getattr(emitter, 'name', emitter)!s} unavailable: {e}")
            reasons.append(str(e))
            continue
        return emitter
    raise EmitterUnavailable("No emitter available: " + "; ".join(reasons))


class Transmitter:
    """
    Sequential stepper; one transmission at a time.

    `wait(seconds) -> bool` suspends and returns True when a stop was
    requested. It defaults to the stop event's own wait(), so stop()
    interrupts a step immediately.
    """

    def __init__(self, emitter, countdown_s: int = TRANSMIT_COUNTDOWN_S,
                 wait: Optional[Callable[[float], bool]] = None):
        self.emitter = emitter
        self.countdown_s = countdown_s
        self._stop = threading.Event()
        self._wait = wait if wait is not None else self._stop.wait
        self._active = False

    @property
    def is_transmitting(self) -> bool:
        return self._active

    def stop(self) -> None:
        """Request abort; safe to call from another thread."""
        self._stop.set()

    def arm(self) -> None:
        """Clear a previous stop so the next transmit() can run."""
        self._stop.clear()

    def transmit(self, steps: List[TimedStep],
                 on_countdown: Optional[Callable[[int], None]] = None) -> bool:
        """
        Run the countdown, then every step.

        A stop requested before this call is honoured: nothing plays
        until arm() clears it.

        Returns:
            True if all steps played, False if stopped early
        """
        self._active = True
        try:
            if self._stop.is_set():
                return False
            for remaining in range(self.countdown_s, 0, -1):
                if on_countdown:
                    on_countdown(remaining)
                if self._wait(1.0) or self._stop.is_set():
                    return False

            for step in steps:
                if self._stop.is_set():
                    return False
                self.emitter.set(step.on)
                if self._wait(step.duration_ms / 1000.0) or self._stop.is_set():
                    return False
            return True
        finally:
            self._active = False
            self._force_off()

    def _force_off(self) -> None:
        try:
            self.emitter.set(False)
        except EmitterError as e:
            print(f"Warning: failed to switch emitter off: {e}", file=sys.stderr)
            raise
