"""
Session telemetry for the optical Morse beacon.

Handles NDJSON logging of decode and transmit events.
One compact JSON object per line, flushed per event so a tailing
process sees events immediately.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from config import LOG_FILE


class TelemetryLogger:
    """
    NDJSON telemetry logger.

    - Format: NDJSON (Newline Delimited JSON)
    - File: logs/session_log.jsonl (fresh file per run)
    - Event types: DECODED, CARRIER_LOST, SESSION_END,
      TX_START, TX_COMPLETE, TX_ABORTED
    """

    def __init__(self, log_path: str = LOG_FILE):
        self.log_path = Path(log_path)
        self._file_handle: Optional[Any] = None
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def open(self) -> None:
        """Open log file for appending, discarding the previous run."""
        if self.log_path.exists():
            self.log_path.unlink()
        self._file_handle = open(self.log_path, 'a')

    def close(self) -> None:
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def log_event(self, event: Dict[str, Any]) -> None:
        """
        Log an event to the NDJSON file.

        Event format:
            {"ts": float, "event": str, ...}
        """
        if self._file_handle is None:
            self.open()

        line = json.dumps(event, separators=(',', ':'))
        self._file_handle.write(line + '\n')
        self._file_handle.flush()

    def flush(self) -> None:
        """Flush buffered writes to disk."""
        if self._file_handle:
            self._file_handle.flush()
            os.fsync(self._file_handle.fileno())

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.flush()
        self.close()


def log_decoded(
    logger: TelemetryLogger,
    ts_ms: float,
    sequence: str,
    text: str,
    confidence: float,
    wpm: float
) -> None:
    """
    Log a change of the published (stabilized) sequence.

    Args:
        ts_ms: Session time of the frame
        sequence: Published symbol string
        text: Decoded text
        confidence: Mean per-letter confidence
        wpm: Estimated sender speed
    """
    logger.log_event({
        "ts": round(ts_ms, 1),
        "event": "DECODED",
        "seq": sequence,
        "text": text,
        "conf": round(confidence, 2),
        "wpm": round(wpm, 1)
    })


def log_carrier_lost(logger: TelemetryLogger, ts_ms: float, text: str) -> None:
    """Log loss of carrier; `text` is the message committed before reset."""
    logger.log_event({
        "ts": round(ts_ms, 1),
        "event": "CARRIER_LOST",
        "text": text
    })


def log_session_end(logger: TelemetryLogger, ts_ms: float, reason: str) -> None:
    logger.log_event({
        "ts": round(ts_ms, 1),
        "event": "SESSION_END",
        "reason": reason
    })


def log_transmission(
    logger: TelemetryLogger,
    event_name: str,
    text: str,
    wpm: int,
    emitter: str,
    duration_ms: Optional[int] = None
) -> None:
    """
    Log a transmit lifecycle event.

    Args:
        event_name: "TX_START", "TX_COMPLETE" or "TX_ABORTED"
    """
    event = {
        "event": event_name,
        "text": text,
        "wpm": wpm,
        "emitter": emitter
    }
    if duration_ms is not None:
        event["duration_ms"] = duration_ms
    logger.log_event(event)
