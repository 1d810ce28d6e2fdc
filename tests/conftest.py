"""
Pytest fixtures for the morse-beacon test suite.

Provides:
- Temporary directories for traces/logs
- Brightness trace generators (rendered from text, written to disk)
- Recording emitters and a fake wait for the transmit stepper
- Helpers that drive the classifier and receiver frame by frame
"""

import sys
import pytest
import numpy as np
import soundfile as sf
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from encoder import Encoder
from timing import TimingModel


# Frame rate used by the loopback tests: a 10 ms period keeps every
# Morse duration an exact number of frames.
TEST_FRAME_RATE = 100


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_trace_dir(tmp_path):
    """Create a temporary directory for brightness traces."""
    trace_dir = tmp_path / "traces"
    trace_dir.mkdir()
    return trace_dir


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create a temporary directory for log files."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


# =============================================================================
# Trace Fixtures
# =============================================================================

@pytest.fixture
def render_text():
    """
    Factory fixture: text -> per-frame brightness trace.

    Usage:
        trace = render_text("SOS", wpm=10, tail_ms=1000)
    """
    from hardware_sim import render_brightness_trace

    def _render(text, wpm=10, frame_rate=TEST_FRAME_RATE, **kwargs):
        encoder = Encoder(TimingModel(wpm))
        steps = encoder.to_timed_steps(encoder.encode(text))
        return render_brightness_trace(steps, frame_rate, **kwargs)

    return _render


@pytest.fixture
def make_trace_file():
    """Factory fixture to create trace files with specific characteristics."""
    def _make_trace(path, data=None, frame_rate=TEST_FRAME_RATE,
                    duration_sec=1.0, constant_value=0.1, stereo=False):
        """
        Create a trace file.

        Args:
            path: Output file path (.wav or .flac)
            data: Samples to write; a constant trace if None
            frame_rate: Samples per second
            duration_sec: Length of the constant trace
            constant_value: Brightness of the constant trace
            stereo: If True, right channel is half the left
        """
        if data is None:
            data = np.full(int(frame_rate * duration_sec), constant_value, dtype=np.float32)
        data = np.asarray(data, dtype=np.float32)

        if stereo:
            data = np.column_stack([data, data * 0.5])

        subtype = 'FLOAT' if str(path).lower().endswith('.wav') else None
        sf.write(path, data, frame_rate, subtype=subtype)
        return path

    return _make_trace


# =============================================================================
# Stub/Mock Fixtures
# =============================================================================

@pytest.fixture
def fake_clock():
    """
    Manually advanced clock.

    Usage:
        clock = fake_clock()
        clock.advance(0.5)
    """
    class FakeClock:
        def __init__(self):
            self.now = 0.0

        def __call__(self):
            return self.now

        def advance(self, seconds):
            self.now += seconds

    return FakeClock()


@pytest.fixture
def recording_wait(fake_clock):
    """
    Replacement for the stepper's wait(): advances the fake clock instead
    of sleeping and records every requested duration.

    stop_after=N makes the N-th call report a stop request.
    """
    class RecordingWait:
        def __init__(self):
            self.calls = []
            self.stop_after = None
            self.on_stop = None

        def __call__(self, seconds):
            self.calls.append(seconds)
            fake_clock.advance(seconds)
            if self.stop_after is not None and len(self.calls) >= self.stop_after:
                if self.on_stop:
                    self.on_stop()
                return True
            return False

    return RecordingWait()


@pytest.fixture
def make_emitter(fake_clock):
    """Factory for SimulatedEmitter bound to the fake clock."""
    from hardware_sim import SimulatedEmitter

    def _make(name="torch", available=True, fail_after=None):
        return SimulatedEmitter(name, available=available,
                                fail_after=fail_after, clock=fake_clock)

    return _make


# =============================================================================
# Drivers
# =============================================================================

def feed_steps(classifier, steps, start_ms=500.0):
    """
    Drive a SignalClassifier with the ideal level changes of `steps`.

    Returns:
        Time (ms) of the final off transition
    """
    t = start_ms
    for step in steps:
        classifier.update(step.on, t)
        t += step.duration_ms
    classifier.update(False, t)
    return t


def feed_trace(receiver, trace, frame_rate=TEST_FRAME_RATE, offset_ms=0.0):
    """Push every frame of a trace; returns the list of ReceiverStatus."""
    period_ms = 1000.0 / frame_rate
    return [
        receiver.push_sample(float(sample), offset_ms + i * period_ms)
        for i, sample in enumerate(trace)
    ]


@pytest.fixture
def sim_paths(tmp_path):
    """
    Set up a complete directory layout for integration tests.

    Returns a dict with paths configured.
    """
    traces = tmp_path / "data" / "traces"
    traces.mkdir(parents=True)

    logs_dir = tmp_path / "logs"
    logs_dir.mkdir()

    return {
        'tmp_path': tmp_path,
        'traces': traces,
        'logs_dir': logs_dir,
        'log_file': logs_dir / "session_log.jsonl"
    }
