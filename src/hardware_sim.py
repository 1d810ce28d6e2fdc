"""
Hardware simulation module for the optical Morse beacon.

Simulates:
- Camera brightness stream, read from recorded trace files in traces/
- Synthetic brightness traces rendered from timed steps
- Torch / screen-flash emitters that record what they were told
- Bounded wait for a camera to become ready
"""

import time
import numpy as np
import soundfile as sf
import librosa
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from config import (
    FRAME_RATE, TRACE_INPUT_DIR, TRACE_ON_LEVEL, TRACE_OFF_LEVEL,
    CAMERA_READY_TIMEOUT_S, CAMERA_READY_POLL_S
)
from encoder import TimedStep
from transmitter import EmitterUnavailable, EmitterError


class BrightnessEnvironment:
    """
    Simulates a camera by streaming brightness traces from files.

    - Scans the input directory for .wav and .flac traces
    - Files sorted alphabetically, played back to back as one stream
    - Each sample is one frame's mean luminance
    - Resamples to the frame rate if needed, stereo averaged to mono
    - Values clipped to [0, 1]
    - read_sample() returns None when all files are exhausted
    """

    SUPPORTED_EXTENSIONS = {'.wav', '.flac'}

    def __init__(self, input_dir: str = TRACE_INPUT_DIR, frame_rate: int = FRAME_RATE):
        """
        Raises:
            FileNotFoundError: If directory doesn't exist or contains no traces
        """
        self.input_dir = Path(input_dir)
        self.frame_rate = frame_rate
        self._file_queue: List[Path] = []
        self._current_file: Optional[Path] = None
        self._current_data: Optional[np.ndarray] = None
        self._position: int = 0
        self._exhausted: bool = False

        self._scan_input_directory()

    @property
    def frame_period_ms(self) -> float:
        return 1000.0 / self.frame_rate

    def _scan_input_directory(self) -> None:
        if not self.input_dir.exists():
            raise FileNotFoundError(f"Trace directory not found: {self.input_dir}")

        trace_files = []
        for ext in self.SUPPORTED_EXTENSIONS:
            trace_files.extend(self.input_dir.glob(f"*{ext}"))
        self._file_queue = sorted(trace_files)

        if not self._file_queue:
            raise FileNotFoundError(
                f"No brightness traces found in {self.input_dir}. "
                f"Supported formats: {self.SUPPORTED_EXTENSIONS}"
            )

        print(f"Found {len(self._file_queue)} trace file(s):")
        for f in self._file_queue:
            print(f"  - {f.name}")

    def _load_next_file(self) -> bool:
        """Load the next readable file; False once the queue is empty."""
        while self._file_queue:
            self._current_file = self._file_queue.pop(0)
            self._position = 0
            try:
                data, sr = sf.read(self._current_file, dtype='float32')
            except RuntimeError as e:
                print(f"Warning: Failed to load {self._current_file}: {e}")
                continue

            if len(data.shape) > 1:
                data = np.mean(data, axis=1)

            if sr != self.frame_rate:
                print(f"  Resampling {self._current_file.name} from {sr} to {self.frame_rate} fps")
                data = librosa.resample(data, orig_sr=sr, target_sr=self.frame_rate)

            self._current_data = np.clip(data, 0.0, 1.0).astype(np.float32)
            print(f"Loaded: {self._current_file.name} "
                  f"({len(self._current_data) / self.frame_rate:.1f}s)")
            return True
        return False

    def read_sample(self) -> Optional[float]:
        """Next frame's brightness, or None when all traces are consumed."""
        if self._exhausted:
            return None

        while self._current_data is None or self._position >= len(self._current_data):
            if not self._load_next_file():
                self._exhausted = True
                self._current_data = None
                return None

        sample = float(self._current_data[self._position])
        self._position += 1
        return sample

    def is_ready(self) -> bool:
        return not self._exhausted

    def is_exhausted(self) -> bool:
        return self._exhausted

    def reset(self) -> None:
        """Rewind to the first file (re-scan)."""
        self._exhausted = False
        self._current_data = None
        self._current_file = None
        self._position = 0
        self._scan_input_directory()


def render_brightness_trace(
    steps: List[TimedStep],
    frame_rate: int = FRAME_RATE,
    on_level: float = TRACE_ON_LEVEL,
    off_level: float = TRACE_OFF_LEVEL,
    noise: float = 0.0,
    lead_ms: float = 500.0,
    tail_ms: float = 1000.0,
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Render what a camera would see while an emitter plays `steps`.

    Frame i is sampled at t = i / frame_rate; the emitter is dark for
    lead_ms before the first step and tail_ms after the last one.

    Returns:
        float32 array of per-frame brightness in [0, 1]
    """
    period_ms = 1000.0 / frame_rate
    durations = np.array([s.duration_ms for s in steps], dtype=np.float64)
    states = np.array([s.on for s in steps], dtype=bool)
    total_ms = lead_ms + float(durations.sum()) + tail_ms
    num_frames = int(np.ceil(total_ms / period_ms))

    times = np.arange(num_frames, dtype=np.float64) * period_ms
    trace = np.full(num_frames, off_level, dtype=np.float64)

    if len(steps):
        ends = lead_ms + np.cumsum(durations)
        idx = np.searchsorted(ends, times, side='right')
        active = (times >= lead_ms) & (idx < len(steps))
        lit = np.zeros(num_frames, dtype=bool)
        lit[active] = states[idx[active]]
        trace[lit] = on_level

    if noise > 0:
        rng = np.random.default_rng(seed)
        trace = trace + rng.normal(0.0, noise, num_frames)

    return np.clip(trace, 0.0, 1.0).astype(np.float32)


def write_trace(path, trace: np.ndarray, frame_rate: int = FRAME_RATE) -> Path:
    """Store a brightness trace as a float WAV/FLAC at the frame rate."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    subtype = 'FLOAT' if path.suffix.lower() == '.wav' else None
    sf.write(path, trace, frame_rate, subtype=subtype)
    return path


class SimulatedEmitter:
    """
    Stand-in for a torch or a full-screen flash.

    Records every switch as (timestamp_s, on) so tests and the CLI can
    inspect what would have been emitted.
    """

    def __init__(self, name: str = "torch", available: bool = True,
                 fail_after: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.available = available
        self.fail_after = fail_after
        self.clock = clock
        self.is_open = False
        self.is_on = False
        self.events: List[Tuple[float, bool]] = []

    def open(self) -> None:
        if not self.available:
            raise EmitterUnavailable(f"{self.name} not supported on this device")
        self.is_open = True

    def set(self, on: bool) -> None:
        on = bool(on)
        if self.fail_after is not None and on and len(self.events) >= self.fail_after:
            raise EmitterError(f"{self.name} failed to switch on")
        self.is_on = on
        self.events.append((self.clock(), on))

    def close(self) -> None:
        self.is_on = False
        self.is_open = False


def wait_until_ready(
    check: Callable[[], bool],
    timeout_s: float = CAMERA_READY_TIMEOUT_S,
    poll_s: float = CAMERA_READY_POLL_S,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep
) -> bool:
    """
    Poll a device until it reports ready, for at most timeout_s.

    Returns:
        True if ready, False if the timeout expired (callers proceed anyway)
    """
    deadline = clock() + timeout_s
    while not check():
        if clock() >= deadline:
            return False
        sleep(poll_s)
    return True
