#!/usr/bin/env python3
"""
Command-line driver for the optical Morse beacon.

Two mutually exclusive operating modes:
- RECEIVE: stream brightness frames through the decoder
- TRANSMIT: encode a message and play it on an emitter

Each run builds its own components for the selected mode; nothing is
shared between the encode and decode paths.
"""

import sys
import os
import argparse
from enum import Enum, auto
from typing import List, Optional

# Add src directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    DEFAULT_WPM, SPEED_PRESETS, FRAME_RATE, TRACE_INPUT_DIR, LOG_FILE,
    TRANSMIT_COUNTDOWN_S, CAMERA_READY_TIMEOUT_S, RESET_ON_CARRIER_LOST,
    HISTORY_CAPACITY, CALIBRATION_MIN_SAMPLES, THRESHOLD_MIN, THRESHOLD_MAX,
    FILTER_WINDOW, FILTER_MIN_SAMPLES, DOT_DASH_FACTOR, LETTER_GAP_FACTOR,
    WORD_GAP_FACTOR, MAX_GAP_FACTOR, STABILIZER_CONFIRMATIONS,
    FUZZY_MIN_CONFIDENCE, CONTEXT_MIN_CONFIDENCE
)
from timing import TimingModel, InvalidSpeed, build_profile, check_decodable, frames_per_dot
from encoder import Encoder, total_duration_ms
from receiver import MorseReceiver
from transmitter import Transmitter, EmitterUnavailable, EmitterError, select_emitter
from hardware_sim import (
    BrightnessEnvironment, SimulatedEmitter, render_brightness_trace,
    write_trace, wait_until_ready
)
from comms import (
    TelemetryLogger, log_decoded, log_carrier_lost, log_session_end,
    log_transmission
)


class Mode(Enum):
    """Operating modes; exactly one is active per run."""
    TRANSMIT = auto()
    RECEIVE = auto()


class SessionStats:
    """Track receive statistics for the summary report."""

    def __init__(self):
        self.frames = 0
        self.messages: List[str] = []
        self.carrier_losses = 0
        self.symbols = 0


def validate_runtime_config() -> None:
    """
    Validate config values at startup.

    Called from main() at runtime, NOT at import time, so tests can
    patch constants freely.
    """
    assert DEFAULT_WPM > 0, "DEFAULT_WPM must be positive"
    assert all(wpm > 0 for wpm in SPEED_PRESETS.values()), "Speed presets must be positive"
    assert FRAME_RATE > 0, "FRAME_RATE must be positive"
    assert 0.0 < THRESHOLD_MIN < THRESHOLD_MAX < 1.0, "Threshold clamp must lie in (0, 1)"
    assert HISTORY_CAPACITY >= CALIBRATION_MIN_SAMPLES, "History must hold the warm-up"
    assert 0 < FILTER_MIN_SAMPLES <= FILTER_WINDOW, "Filter window too small"
    assert 1.0 < DOT_DASH_FACTOR < 3.0, "Dot/dash boundary must lie between 1u and 3u"
    assert 1.0 < LETTER_GAP_FACTOR < 3.0, "Letter gap threshold must lie between 1u and 3u"
    assert 3.0 < WORD_GAP_FACTOR < 7.0, "Word gap threshold must lie between 3u and 7u"
    assert MAX_GAP_FACTOR > 7.0, "Carrier timeout must exceed a word gap"
    assert frames_per_dot(build_profile(DEFAULT_WPM), FRAME_RATE) >= FILTER_MIN_SAMPLES, \
        "DEFAULT_WPM is too fast for FRAME_RATE"
    assert STABILIZER_CONFIRMATIONS >= 1, "STABILIZER_CONFIRMATIONS must be >= 1"
    assert 0.0 < FUZZY_MIN_CONFIDENCE <= 1.0, "FUZZY_MIN_CONFIDENCE must be in (0, 1]"
    assert 0.0 < CONTEXT_MIN_CONFIDENCE <= 1.0, "CONTEXT_MIN_CONFIDENCE must be in (0, 1]"

    log_dir = os.path.dirname(LOG_FILE) or '.'
    os.makedirs(log_dir, exist_ok=True)
    if not os.access(log_dir, os.W_OK):
        print(f"ERROR: Log directory not writable: {log_dir}", file=sys.stderr)
        sys.exit(1)


def print_session_summary(reason: str, stats: SessionStats, frame_rate: int) -> None:
    seconds = stats.frames / frame_rate if frame_rate else 0.0

    print("=" * 60)
    print("                  RECEIVE SUMMARY")
    print("=" * 60)
    print(f"End Reason         : {reason}")
    print(f"Frames             : {stats.frames} ({seconds:.1f}s)")
    print(f"Symbols            : {stats.symbols}")
    print(f"Carrier Losses     : {stats.carrier_losses}")
    print()
    print("MESSAGES:")
    if stats.messages:
        for i, message in enumerate(stats.messages, start=1):
            print(f"  {i:3d}: {message}")
    else:
        print("  (none)")
    print("=" * 60)


def run_receive(input_dir: str = TRACE_INPUT_DIR, wpm: int = DEFAULT_WPM,
                frame_rate: int = FRAME_RATE) -> List[str]:
    """
    Decode every brightness trace in input_dir.

    Frame timestamps come from the frame index, so playback is as fast
    as the decoder allows.

    Raises:
        InvalidSpeed: if a dot at wpm spans too few frames at frame_rate

    Returns:
        Decoded messages, one per carrier session
    """
    timing = TimingModel(wpm)
    check_decodable(timing.profile, frame_rate)

    print("=" * 60)
    print(f"Optical Morse Receiver ({wpm} WPM, {frame_rate} fps)")
    print("=" * 60)

    env = BrightnessEnvironment(input_dir, frame_rate)
    if not wait_until_ready(env.is_ready, CAMERA_READY_TIMEOUT_S):
        print(f"Warning: camera not ready after {CAMERA_READY_TIMEOUT_S}s, continuing")

    receiver = MorseReceiver(timing)
    logger = TelemetryLogger()
    stats = SessionStats()
    logger.open()

    last_published = ""
    now_ms = 0.0
    reason = "TRACE_EXHAUSTED"

    try:
        while True:
            sample = env.read_sample()
            if sample is None:
                break

            now_ms = stats.frames * env.frame_period_ms
            status = receiver.push_sample(sample, now_ms)
            stats.frames += 1
            if status.token in ('.', '-'):
                stats.symbols += 1

            if status.published_sequence != last_published:
                last_published = status.published_sequence
                if last_published:
                    log_decoded(logger, now_ms, last_published, status.decoded_text,
                                status.confidence, status.estimated_wpm)
                    print(f"[{now_ms / 1000:7.2f}s] {last_published:<40} -> {status.decoded_text}")

            # Policy: a long silence after symbols ends the message
            if status.carrier_lost and RESET_ON_CARRIER_LOST and status.raw_sequence:
                text = receiver.decode_current().text
                stats.messages.append(text)
                stats.carrier_losses += 1
                log_carrier_lost(logger, now_ms, text)
                print(f"[{now_ms / 1000:7.2f}s] Carrier lost, message: {text}")
                receiver.reset()
                last_published = ""

        if receiver.classifier.sequence:
            stats.messages.append(receiver.decode_current().text)

    except KeyboardInterrupt:
        reason = "INTERRUPTED"
        print(f"\n\nReceive interrupted at frame {stats.frames}")

    finally:
        log_session_end(logger, now_ms, reason)
        logger.flush()
        logger.close()

    print_session_summary(reason, stats, frame_rate)
    return stats.messages


def run_transmit(text: str, wpm: int = DEFAULT_WPM, render_path: Optional[str] = None,
                 countdown: bool = True, emitters=None, wait=None) -> bool:
    """
    Encode and play a message.

    Args:
        text: Message to send
        wpm: Transmission speed
        render_path: Also write the brightness a camera would see (WAV/FLAC)
        countdown: Run the start countdown
        emitters: Emitters in order of preference (default: torch, then
            screen flash)
        wait: Suspension function for the stepper (tests)

    Returns:
        True if the whole message was played
    """
    encoder = Encoder(TimingModel(wpm))
    if not text.strip():
        print("ERROR: Empty message", file=sys.stderr)
        return False
    if not encoder.validate(text):
        print("ERROR: Message contains unsupported characters. "
              "Use letters, digits and basic punctuation.", file=sys.stderr)
        return False

    symbols = encoder.encode(text)
    steps = encoder.to_timed_steps(symbols)
    duration = total_duration_ms(steps)

    print(f"Message : {text.upper()}")
    print(f"Morse   : {symbols}")
    print(f"Speed   : {wpm} WPM (unit {encoder.timing.unit}ms), {duration / 1000:.1f}s")

    if render_path:
        path = write_trace(render_path, render_brightness_trace(steps, FRAME_RATE), FRAME_RATE)
        print(f"Rendered brightness trace: {path}")
        try:
            check_decodable(encoder.timing.profile, FRAME_RATE)
        except InvalidSpeed as e:
            print(f"Warning: rendered trace will not decode: {e}")

    if emitters is None:
        emitters = [SimulatedEmitter("torch"), SimulatedEmitter("screen-flash")]
    try:
        emitter = select_emitter(emitters)
    except EmitterUnavailable as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return False

    logger = TelemetryLogger()
    logger.open()
    transmitter = Transmitter(
        emitter,
        countdown_s=TRANSMIT_COUNTDOWN_S if countdown else 0,
        wait=wait
    )

    completed = False
    emitter_name = getattr(emitter, "name", "emitter")
    log_transmission(logger, "TX_START", text, wpm, emitter_name, duration)
    try:
        completed = transmitter.transmit(
            steps,
            on_countdown=lambda n: print(f"Starting transmission in {n}...")
        )
    except KeyboardInterrupt:
        transmitter.stop()
        print("\nTransmission stopped")
    except EmitterError as e:
        print(f"ERROR: Emitter failed: {e}", file=sys.stderr)
    finally:
        log_transmission(logger, "TX_COMPLETE" if completed else "TX_ABORTED",
                         text, wpm, emitter_name)
        emitter.close()
        logger.close()

    print("Transmission complete" if completed else "Transmission aborted")
    return completed


def resolve_speed(wpm: Optional[int], preset: Optional[str]) -> int:
    if preset is not None:
        return SPEED_PRESETS[preset]
    return wpm if wpm is not None else DEFAULT_WPM


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Optical Morse code beacon")
    sub = parser.add_subparsers(dest="mode", required=True)

    def add_speed(p):
        group = p.add_mutually_exclusive_group()
        group.add_argument("--wpm", type=int, help=f"speed in WPM (default {DEFAULT_WPM})")
        group.add_argument("--preset", choices=sorted(SPEED_PRESETS), help="named speed")

    rx = sub.add_parser("receive", help="decode brightness traces")
    rx.add_argument("--input", default=TRACE_INPUT_DIR, help="trace directory")
    rx.add_argument("--fps", type=int, default=FRAME_RATE, help="frame rate")
    add_speed(rx)

    tx = sub.add_parser("transmit", help="send a message")
    tx.add_argument("text", help="message to send")
    tx.add_argument("--render", metavar="PATH", help="write a brightness trace")
    tx.add_argument("--no-countdown", action="store_true", help="start immediately")
    add_speed(tx)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    validate_runtime_config()
    mode = Mode.RECEIVE if args.mode == "receive" else Mode.TRANSMIT

    try:
        wpm = resolve_speed(args.wpm, args.preset)
        TimingModel(wpm)
    except InvalidSpeed as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if mode == Mode.RECEIVE:
        try:
            run_receive(args.input, wpm, args.fps)
        except InvalidSpeed as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2
        except FileNotFoundError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        return 0

    ok = run_transmit(args.text, wpm, render_path=args.render,
                      countdown=not args.no_countdown)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
