"""
Morse timing model shared by the encoder and the decoder.

All durations derive from one speed parameter (words per minute):
- 1 unit = 1200 / WPM milliseconds (PARIS standard, 50 units per word)
- dot = 1u, dash = 3u, intra-letter gap = 1u, letter gap = 3u, word gap = 7u

The decoder thresholds derive from the same unit, so a speed change
swaps everything at once.
"""

import math
from dataclasses import dataclass

from config import (
    DEFAULT_WPM, MIN_SIGNAL_FACTOR, MIN_SIGNAL_FLOOR_MS, DOT_DASH_FACTOR,
    LETTER_GAP_FACTOR, WORD_GAP_FACTOR, MAX_GAP_FACTOR, FILTER_MIN_SAMPLES
)


class InvalidSpeed(ValueError):
    """Raised when a transmission speed is not a usable positive integer."""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class TimingProfile:
    """Immutable set of durations (milliseconds) for one speed."""
    wpm: int
    unit: int

    @property
    def dot(self) -> int:
        return self.unit

    @property
    def dash(self) -> int:
        return 3 * self.unit

    @property
    def intra_letter_gap(self) -> int:
        return self.unit

    @property
    def inter_letter_gap(self) -> int:
        return 3 * self.unit

    @property
    def inter_word_gap(self) -> int:
        return 7 * self.unit

    # --- decoder thresholds ---
    @property
    def min_signal(self) -> float:
        """Shortest run accepted as a real transition (debounce)."""
        return max(MIN_SIGNAL_FACTOR * self.unit, MIN_SIGNAL_FLOOR_MS)

    @property
    def dot_dash_boundary(self) -> float:
        return DOT_DASH_FACTOR * self.unit

    @property
    def letter_gap_threshold(self) -> float:
        return LETTER_GAP_FACTOR * self.unit

    @property
    def word_gap_threshold(self) -> float:
        return WORD_GAP_FACTOR * self.unit

    @property
    def max_gap(self) -> float:
        return MAX_GAP_FACTOR * self.unit

    @property
    def expected_separation(self) -> float:
        """Nominal dash minus dot duration."""
        return float(self.dash - self.dot)


def build_profile(wpm: int) -> TimingProfile:
    """
    Build a timing profile for a speed.

    Raises:
        InvalidSpeed: if wpm is not a positive integer, or so large that
            the unit rounds down to 0 ms
    """
    if isinstance(wpm, bool) or not isinstance(wpm, int):
        raise InvalidSpeed(f"Speed must be an integer WPM, got {wpm!r}")
    if wpm <= 0:
        raise InvalidSpeed(f"Speed must be positive, got {wpm} WPM")

    unit = _round_half_up(1200 / wpm)
    if unit < 1:
        raise InvalidSpeed(f"Speed {wpm} WPM is too fast (unit rounds to 0 ms)")
    return TimingProfile(wpm=wpm, unit=unit)


def frames_per_dot(profile: TimingProfile, frame_rate: float) -> float:
    return profile.dot * frame_rate / 1000.0


def check_decodable(profile: TimingProfile, frame_rate: float,
                    min_frames: int = FILTER_MIN_SAMPLES) -> None:
    """
    Reject a speed the frame filter would erase.

    A dot must span at least min_frames frames to survive the majority
    filter. At that length one frame of phase jitter is at most u/3, which
    keeps every pulse and gap on the right side of its threshold.

    Raises:
        InvalidSpeed: if a dot is shorter than min_frames frames
    """
    frames = frames_per_dot(profile, frame_rate)
    if frames < min_frames:
        fastest = max(
            (wpm for wpm in range(1, profile.wpm)
             if frames_per_dot(build_profile(wpm), frame_rate) >= min_frames),
            default=None
        )
        raise InvalidSpeed(
            f"{profile.wpm} WPM cannot be decoded at {frame_rate:g} fps "
            f"(dot spans {frames:.1f} frames, need {min_frames}); "
            f"fastest decodable speed is {fastest} WPM"
        )


class TimingModel:
    """
    Holder for the active timing profile.

    The profile is replaced as a whole on set_speed(), so readers that
    grab `profile` once per operation never mix old and new durations.
    """

    def __init__(self, wpm: int = DEFAULT_WPM):
        self._profile = build_profile(wpm)

    @property
    def profile(self) -> TimingProfile:
        return self._profile

    def set_speed(self, wpm: int) -> None:
        self._profile = build_profile(wpm)

    def get_speed(self) -> int:
        return self._profile.wpm

    # Convenience accessors
    @property
    def unit(self) -> int:
        return self._profile.unit

    @property
    def dot_duration(self) -> int:
        return self._profile.dot

    @property
    def dash_duration(self) -> int:
        return self._profile.dash

    @property
    def intra_letter_gap(self) -> int:
        return self._profile.intra_letter_gap

    @property
    def inter_letter_gap(self) -> int:
        return self._profile.inter_letter_gap

    @property
    def inter_word_gap(self) -> int:
        return self._profile.inter_word_gap

    def __repr__(self) -> str:
        return f"TimingModel(wpm={self.get_speed()}, unit={self.unit}ms)"
