"""
Signal-to-symbol classifier for the optical Morse decoder.

Implements the on/off state machine:
- Debounced transitions (min_signal) on the filtered level
- off -> on: the preceding gap becomes a letter / word boundary
- on -> off: the completed pulse becomes a dot or a dash
- Adaptive dot/dash boundary learned from observed pulse durations

Learning is kept in an immutable LearnerState updated through the pure
function learn_duration(), so the state machine can be exercised
without a camera.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

import numpy as np

from config import LEARNER_CAPACITY, LEARNER_MIN_SAMPLES
from encoder import LETTER_SEPARATOR, WORD_SEPARATOR
from timing import TimingModel, TimingProfile


DOT = '.'
DASH = '-'


@dataclass(frozen=True)
class LearnerState:
    """Observed dot/dash durations (ms) and what was learned from them."""
    dot_samples: Tuple[float, ...] = ()
    dash_samples: Tuple[float, ...] = ()
    adaptive_boundary: Optional[float] = None
    timing_confidence: float = 0.0

    @property
    def mean_dot(self) -> Optional[float]:
        return float(np.mean(self.dot_samples)) if self.dot_samples else None

    @property
    def mean_dash(self) -> Optional[float]:
        return float(np.mean(self.dash_samples)) if self.dash_samples else None


def learn_duration(state: LearnerState, duration_ms: float, is_dot: bool,
                   expected_separation: float,
                   capacity: int = LEARNER_CAPACITY,
                   min_samples: int = LEARNER_MIN_SAMPLES) -> LearnerState:
    """
    Fold one classified pulse into the learner.

    Args:
        state: Previous learner state (not modified)
        duration_ms: Pulse duration
        is_dot: Classification of the pulse
        expected_separation: Nominal dash - dot duration at current speed
        capacity: Per-class history bound
        min_samples: Samples needed in BOTH classes before adapting

    Returns:
        New LearnerState. The boundary moves to the midpoint of the two
        means once both histories hold min_samples; timing_confidence is
        diagnostic only.
    """
    if is_dot:
        dots = (state.dot_samples + (float(duration_ms),))[-capacity:]
        dashes = state.dash_samples
    else:
        dots = state.dot_samples
        dashes = (state.dash_samples + (float(duration_ms),))[-capacity:]

    new_state = replace(state, dot_samples=dots, dash_samples=dashes)
    if len(dots) < min_samples or len(dashes) < min_samples:
        return new_state

    mean_dot = float(np.mean(dots))
    mean_dash = float(np.mean(dashes))
    confidence = 0.0
    if expected_separation > 0:
        confidence = min(1.0, abs(mean_dash - mean_dot) / expected_separation)

    return replace(
        new_state,
        adaptive_boundary=(mean_dot + mean_dash) / 2.0,
        timing_confidence=confidence
    )


def classify_gap(gap_ms: float, profile: TimingProfile) -> Optional[str]:
    """Boundary token for an off-run, or None within a letter."""
    if gap_ms > profile.word_gap_threshold:
        return WORD_SEPARATOR
    if gap_ms > profile.letter_gap_threshold:
        return LETTER_SEPARATOR
    return None


def classify_pulse(pulse_ms: float, profile: TimingProfile,
                   boundary: Optional[float] = None) -> Optional[str]:
    """
    Dot or dash for an on-run; None for pulses shorter than min_signal.

    SignalClassifier.update() never passes such a pulse: its debounce
    rejects the transition first. The check covers direct callers.
    """
    if pulse_ms < profile.min_signal:
        return None
    cutoff = boundary if boundary is not None else profile.dot_dash_boundary
    return DOT if pulse_ms < cutoff else DASH


@dataclass
class ClassifierState:
    """Session state; created at session start, replaced on reset."""
    last_level: bool = False
    last_transition_ms: float = 0.0
    sequence: str = ""
    learner: LearnerState = field(default_factory=LearnerState)


@dataclass
class ClassifierUpdate:
    """Outcome of one sample."""
    level: bool
    transition: bool = False
    token: Optional[str] = None
    duration_ms: Optional[float] = None
    carrier_lost: bool = False


class SignalClassifier:
    """
    Decoding state machine fed with filtered on/off levels.

    Usage:
        clf = SignalClassifier(timing)
        clf.reset(now_ms)
        update = clf.update(level, now_ms)   # once per frame
    """

    def __init__(self, timing: Optional[TimingModel] = None, start_ms: float = 0.0):
        self.timing = timing if timing is not None else TimingModel()
        self.state = ClassifierState(last_transition_ms=float(start_ms))

    @property
    def sequence(self) -> str:
        return self.state.sequence

    @property
    def adaptive_boundary(self) -> Optional[float]:
        return self.state.learner.adaptive_boundary

    @property
    def timing_confidence(self) -> float:
        return self.state.learner.timing_confidence

    def update(self, level: bool, now_ms: float) -> ClassifierUpdate:
        """
        Process one filtered level.

        A transition is accepted only when the level differs from the last
        accepted one and more than min_signal has elapsed since it.
        """
        profile = self.timing.profile
        state = self.state
        level = bool(level)
        elapsed = now_ms - state.last_transition_ms

        if level == state.last_level or elapsed <= profile.min_signal:
            return ClassifierUpdate(
                level=state.last_level,
                carrier_lost=elapsed > profile.max_gap
            )

        update = ClassifierUpdate(
            level=level,
            transition=True,
            duration_ms=elapsed,
            carrier_lost=elapsed > profile.max_gap
        )

        if level:
            # Signal starting: the off-run that just ended was a gap
            token = classify_gap(elapsed, profile)
            if token is not None and state.sequence:
                state.sequence += token
                update.token = token
        else:
            # Signal ending: the on-run that just ended was a symbol
            symbol = classify_pulse(elapsed, profile, state.learner.adaptive_boundary)
            if symbol is not None:
                state.sequence += symbol
                update.token = symbol
                if elapsed <= profile.max_gap:
                    state.learner = learn_duration(
                        state.learner, elapsed, symbol == DOT,
                        profile.expected_separation
                    )

        state.last_level = level
        state.last_transition_ms = now_ms
        return update

    def estimated_wpm(self) -> float:
        """Sender speed from learned dot length (1 unit = 1200 / WPM ms)."""
        mean_dot = self.state.learner.mean_dot
        if mean_dot is None or mean_dot <= 0:
            return float(self.timing.get_speed())
        return 1200.0 / mean_dot

    def forget_learning(self) -> None:
        self.state.learner = LearnerState()

    def reset(self, now_ms: float = 0.0) -> None:
        self.state = ClassifierState(last_transition_ms=float(now_ms))
