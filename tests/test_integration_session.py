"""
Integration tests exercising the receive and transmit drivers end to end
in a fast configuration.

Telemetry is redirected to temp paths and the transmit stepper runs
against a fake wait, so nothing sleeps.
"""

import sys
import json
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def _build_logger_factory(log_path: Path):
    """Return a factory that builds TelemetryLogger bound to the temp log path."""
    from comms import TelemetryLogger

    def factory():
        return TelemetryLogger(str(log_path))

    return factory


def _events(log_file):
    return [json.loads(line) for line in log_file.read_text().splitlines()]


def test_receive_single_message(sim_paths, render_text, make_trace_file, monkeypatch):
    """A trace ending before the carrier timeout is committed at end of stream."""
    make_trace_file(sim_paths['traces'] / "sos.wav", render_text("SOS", wpm=10))

    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

    messages = main.run_receive(str(sim_paths['traces']), wpm=10, frame_rate=100)

    assert messages == ["SOS"]
    events = _events(sim_paths['log_file'])
    assert events[-1]["event"] == "SESSION_END"
    assert events[-1]["reason"] == "TRACE_EXHAUSTED"
    decoded = [e for e in events if e["event"] == "DECODED"]
    assert decoded[-1]["text"] == "SOS"
    assert decoded[-1]["seq"] == "... --- ..."


def test_receive_messages_split_by_carrier_loss(sim_paths, render_text, make_trace_file, monkeypatch):
    trace = np.concatenate([
        render_text("SOS", wpm=10, tail_ms=2000),
        render_text("HI", wpm=10, tail_ms=2000),
    ])
    make_trace_file(sim_paths['traces'] / "two.wav", trace)

    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

    messages = main.run_receive(str(sim_paths['traces']), wpm=10, frame_rate=100)

    assert messages == ["SOS", "HI"]
    lost = [e for e in _events(sim_paths['log_file']) if e["event"] == "CARRIER_LOST"]
    assert [e["text"] for e in lost] == ["SOS", "HI"]


def test_receive_without_carrier_loss_policy(sim_paths, render_text, make_trace_file, monkeypatch):
    make_trace_file(sim_paths['traces'] / "sos.wav", render_text("SOS", wpm=10, tail_ms=2000))

    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))
    monkeypatch.setattr("main.RESET_ON_CARRIER_LOST", False)

    assert main.run_receive(str(sim_paths['traces']), wpm=10, frame_rate=100) == ["SOS"]
    assert not any(e["event"] == "CARRIER_LOST" for e in _events(sim_paths['log_file']))


def test_receive_empty_scene(sim_paths, make_trace_file, monkeypatch, capsys):
    make_trace_file(sim_paths['traces'] / "dark.wav", duration_sec=3.0, constant_value=0.1)

    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

    assert main.run_receive(str(sim_paths['traces']), wpm=10, frame_rate=100) == []
    assert "(none)" in capsys.readouterr().out


def test_transmit_renders_decodable_trace(sim_paths, make_emitter, recording_wait, monkeypatch):
    """Transmit with a trace render, then receive that trace at camera frame rate."""
    import main
    from config import FRAME_RATE
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

    emitters = [make_emitter("torch", available=False), make_emitter("screen-flash")]
    render_path = sim_paths['traces'] / "tx.wav"

    ok = main.run_transmit("sos", wpm=10, render_path=str(render_path),
                           countdown=False, emitters=emitters, wait=recording_wait)

    assert ok is True
    assert render_path.exists()
    assert emitters[1].events[-1][1] is False
    tx_events = [e["event"] for e in _events(sim_paths['log_file'])]
    assert tx_events == ["TX_START", "TX_COMPLETE"]

    messages = main.run_receive(str(sim_paths['traces']), wpm=10, frame_rate=FRAME_RATE)
    assert messages == ["SOS"]


def test_transmit_rejects_unsupported_text(monkeypatch, make_emitter):
    import main
    emitter = make_emitter()
    assert main.run_transmit("100%", emitters=[emitter], countdown=False) is False
    assert main.run_transmit("   ", emitters=[emitter], countdown=False) is False
    assert not emitter.is_open


def test_transmit_without_emitter(sim_paths, make_emitter, monkeypatch, capsys):
    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

    ok = main.run_transmit("SOS", countdown=False,
                           emitters=[make_emitter("torch", available=False)])
    assert ok is False
    assert "No emitter available" in capsys.readouterr().err


def test_transmit_aborted(sim_paths, make_emitter, recording_wait, monkeypatch):
    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))
    recording_wait.stop_after = 2

    emitter = make_emitter()
    ok = main.run_transmit("SOS", countdown=True, emitters=[emitter], wait=recording_wait)

    assert ok is False
    assert not emitter.is_on
    assert _events(sim_paths['log_file'])[-1]["event"] == "TX_ABORTED"


def test_transmit_emitter_failure(sim_paths, make_emitter, recording_wait, monkeypatch):
    import main
    monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

    emitter = make_emitter(fail_after=1)
    ok = main.run_transmit("SOS", countdown=False, emitters=[emitter], wait=recording_wait)

    assert ok is False
    assert not emitter.is_on
    assert _events(sim_paths['log_file'])[-1]["event"] == "TX_ABORTED"


class TestCommandLine:

    def test_invalid_speed_exit_code(self, monkeypatch):
        import main
        monkeypatch.setattr("main.validate_runtime_config", lambda: None)
        assert main.main(["transmit", "SOS", "--wpm", "0"]) == 2

    def test_missing_trace_directory(self, tmp_path, monkeypatch):
        import main
        monkeypatch.setattr("main.validate_runtime_config", lambda: None)
        assert main.main(["receive", "--input", str(tmp_path / "missing")]) == 1

    def test_wpm_and_preset_exclusive(self):
        import main
        with pytest.raises(SystemExit) as exc_info:
            main.build_parser().parse_args(["transmit", "SOS", "--wpm", "5", "--preset", "fast"])
        assert exc_info.value.code == 2

    def test_mode_required(self):
        import main
        with pytest.raises(SystemExit):
            main.build_parser().parse_args([])

    def test_resolve_speed(self):
        import main
        assert main.resolve_speed(None, "fast") == 20
        assert main.resolve_speed(15, None) == 15
        assert main.resolve_speed(None, None) == 10

    def test_receive_via_cli(self, sim_paths, render_text, make_trace_file, monkeypatch):
        import main
        make_trace_file(sim_paths['traces'] / "k.wav", render_text("K", wpm=20))
        monkeypatch.setattr("main.validate_runtime_config", lambda: None)
        monkeypatch.setattr("main.TelemetryLogger", _build_logger_factory(sim_paths['log_file']))

        code = main.main(["receive", "--input", str(sim_paths['traces']),
                          "--preset", "fast", "--fps", "100"])
        assert code == 0

    def test_receive_too_fast_for_camera(self, sim_paths, monkeypatch, capsys):
        import main
        monkeypatch.setattr("main.validate_runtime_config", lambda: None)
        code = main.main(["receive", "--input", str(sim_paths['traces']), "--preset", "fast"])
        assert code == 2
        assert "cannot be decoded at 30 fps" in capsys.readouterr().err

    def test_run_receive_rejects_speed_before_reading(self, tmp_path):
        import main
        from timing import InvalidSpeed
        with pytest.raises(InvalidSpeed):
            main.run_receive(str(tmp_path / "missing"), wpm=30, frame_rate=30)


class TestRuntimeConfig:

    def test_defaults_pass(self, tmp_path, monkeypatch):
        import main
        monkeypatch.chdir(tmp_path)
        main.validate_runtime_config()
        assert (tmp_path / "logs").is_dir()

    def test_bad_gap_factor_rejected(self, tmp_path, monkeypatch):
        import main
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("main.LETTER_GAP_FACTOR", 3.5)
        with pytest.raises(AssertionError):
            main.validate_runtime_config()

    def test_default_speed_too_fast_for_frame_rate(self, tmp_path, monkeypatch):
        import main
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("main.DEFAULT_WPM", 20)
        with pytest.raises(AssertionError, match="too fast"):
            main.validate_runtime_config()

    def test_modes(self):
        from main import Mode
        assert {m.name for m in Mode} == {"TRANSMIT", "RECEIVE"}
