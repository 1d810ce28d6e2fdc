"""
Adaptive brightness calibration and frame-level noise filtering.

Handles:
- Rolling brightness history with running min/max
- Adaptive on/off threshold (percentage of range, or median fallback)
- Majority-vote smoothing of the raw above/below-threshold boolean
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np

from config import (
    HISTORY_CAPACITY, CALIBRATION_MIN_SAMPLES, DEFAULT_THRESHOLD,
    RANGE_FLOOR, RANGE_FRACTION, MEDIAN_OFFSET, THRESHOLD_MIN, THRESHOLD_MAX,
    FILTER_WINDOW, FILTER_MIN_SAMPLES
)


@dataclass
class CalibrationState:
    """Calibration fields; all reset to these defaults."""
    threshold: float = DEFAULT_THRESHOLD
    baseline_min: Optional[float] = None
    baseline_max: Optional[float] = None
    sample_count: int = 0

    @property
    def range(self) -> float:
        if self.baseline_min is None or self.baseline_max is None:
            return 0.0
        return self.baseline_max - self.baseline_min


def compute_threshold(history, baseline_min: float, baseline_max: float) -> float:
    """
    Derive the on/off threshold from observed brightness.

    A strong signal (range above RANGE_FLOOR) puts the threshold at 40%
    of the range above the darkest sample. A low-contrast scene falls
    back to median + 0.15 so the threshold cannot collapse onto noise.

    Returns:
        Threshold clamped to [THRESHOLD_MIN, THRESHOLD_MAX]
    """
    brightness_range = baseline_max - baseline_min
    if brightness_range > RANGE_FLOOR:
        threshold = baseline_min + RANGE_FRACTION * brightness_range
    else:
        threshold = float(np.median(np.asarray(history, dtype=np.float64))) + MEDIAN_OFFSET
    return float(min(THRESHOLD_MAX, max(THRESHOLD_MIN, threshold)))


class BrightnessCalibrator:
    """
    Self-adjusting brightness threshold.

    Uses collections.deque(maxlen=HISTORY_CAPACITY); the oldest sample is
    evicted on overflow. Min/max are tracked over the whole session so a
    quiet stretch does not shrink the learned contrast.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        self.history: deque = deque(maxlen=capacity)
        self.state = CalibrationState()

    def observe(self, sample: float) -> float:
        """
        Record one brightness sample and recompute the threshold.

        Args:
            sample: Normalized mean frame luminance, clamped into [0, 1]

        Returns:
            The updated threshold
        """
        sample = float(min(1.0, max(0.0, sample)))
        self.history.append(sample)

        state = self.state
        state.sample_count += 1
        if state.baseline_min is None or sample < state.baseline_min:
            state.baseline_min = sample
        if state.baseline_max is None or sample > state.baseline_max:
            state.baseline_max = sample

        if len(self.history) >= CALIBRATION_MIN_SAMPLES:
            state.threshold = compute_threshold(
                self.history, state.baseline_min, state.baseline_max
            )
        return state.threshold

    def threshold(self) -> float:
        return self.state.threshold

    def is_on(self, sample: float) -> bool:
        return sample > self.state.threshold

    def reset(self) -> None:
        self.history.clear()
        self.state = CalibrationState()

    def __len__(self) -> int:
        return len(self.history)


class NoiseFilter:
    """Short-window majority vote that suppresses single-frame flicker."""

    def __init__(self, window: int = FILTER_WINDOW, min_samples: int = FILTER_MIN_SAMPLES):
        self.window: deque = deque(maxlen=window)
        self.min_samples = min_samples

    def filter(self, raw: bool) -> bool:
        """
        Push a raw on/off reading and return the smoothed level.

        The first frames pass through unchanged until the window holds
        min_samples readings.
        """
        raw = bool(raw)
        self.window.append(raw)
        if len(self.window) < self.min_samples:
            return raw
        return sum(self.window) * 2 > len(self.window)

    def reset(self) -> None:
        self.window.clear()
