"""
Per-frame receive pipeline.

Ordering for every brightness sample (single-threaded, synchronous):
1) calibrate threshold, 2) raw on/off, 3) majority filter,
4) classify transitions, 5) stabilize sequence, 6) cleanup + decode
"""

import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional

from calibration import BrightnessCalibrator, NoiseFilter
from classifier import SignalClassifier
from fuzzy_decoder import DecodeResult, FuzzyDecoder
from stabilizer import SequenceStabilizer
from timing import TimingModel


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class ReceiverStatus:
    """Everything the host layer needs after one frame."""
    is_signal_on: bool
    threshold: float
    published_sequence: str
    decoded_text: str
    timing_confidence: float
    confidence: float = 0.0
    carrier_lost: bool = False
    raw_sequence: str = ""
    estimated_wpm: float = 0.0
    token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MorseReceiver:
    """
    Decoder session: owns calibration, filter, classifier, stabilizer
    and fuzzy decoder. Never shared with a transmitter.

    The session clock starts at the first sample; timestamps may be given
    explicitly (simulation) or read from `clock` (live capture).
    """

    def __init__(self, timing: Optional[TimingModel] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.timing = timing if timing is not None else TimingModel()
        self.clock = clock if clock is not None else _monotonic_ms

        self.calibrator = BrightnessCalibrator()
        self.noise_filter = NoiseFilter()
        self.classifier = SignalClassifier(self.timing)
        self.stabilizer = SequenceStabilizer()
        self.decoder = FuzzyDecoder()

        self._started = False
        self._decoded_for: Optional[str] = None
        self._decoded_text = ""
        self._decoded_confidence = 0.0

    def set_speed(self, wpm: int) -> None:
        """Swap the timing model; learned timing belongs to the old speed."""
        self.timing.set_speed(wpm)
        self.classifier.forget_learning()

    def get_speed(self) -> int:
        return self.timing.get_speed()

    def push_sample(self, brightness: float, now_ms: Optional[float] = None) -> ReceiverStatus:
        """
        Feed one frame's brightness.

        Args:
            brightness: Mean luminance in [0, 1]
            now_ms: Frame timestamp in milliseconds (defaults to clock())

        Returns:
            ReceiverStatus for this frame
        """
        if now_ms is None:
            now_ms = self.clock()
        if not self._started:
            self.classifier.reset(now_ms)
            self._started = True

        threshold = self.calibrator.observe(brightness)
        raw_on = self.calibrator.is_on(brightness)
        level = self.noise_filter.filter(raw_on)
        update = self.classifier.update(level, now_ms)
        published = self.stabilizer.update(self.classifier.sequence)

        if published != self._decoded_for:
            result = self.decoder.decode_sequence(self.decoder.cleanup(published))
            self._decoded_for = published
            self._decoded_text = result.text
            self._decoded_confidence = result.confidence

        return ReceiverStatus(
            is_signal_on=update.level,
            threshold=threshold,
            published_sequence=published,
            decoded_text=self._decoded_text,
            timing_confidence=self.classifier.timing_confidence,
            confidence=self._decoded_confidence,
            carrier_lost=update.carrier_lost,
            raw_sequence=self.classifier.sequence,
            estimated_wpm=self.classifier.estimated_wpm(),
            token=update.token
        )

    def decode_current(self) -> DecodeResult:
        """Decode the raw (unstabilized) sequence, e.g. when a message ends."""
        return self.decoder.decode_sequence(self.decoder.cleanup(self.classifier.sequence))

    def reset(self, now_ms: Optional[float] = None) -> None:
        """
        Clear all session state.

        The new session starts at now_ms if given, otherwise at the next
        sample.
        """
        self.calibrator.reset()
        self.noise_filter.reset()
        self.classifier.reset(now_ms if now_ms is not None else 0.0)
        self.stabilizer.reset()
        self._started = now_ms is not None
        self._decoded_for = None
        self._decoded_text = ""
        self._decoded_confidence = 0.0
