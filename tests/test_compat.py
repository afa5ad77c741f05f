"""Tests for hooks/compat.py platform helpers."""

import logging
import subprocess
from pathlib import Path

import pytest

import hooks.compat as compat
from hooks.compat import find_audio_player, get_claude_home, native_watch_backend, play_sound


def test_get_claude_home_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CLAUDE_HOME", str(tmp_path))
    assert get_claude_home() == tmp_path


def test_get_claude_home_default(monkeypatch):
    monkeypatch.delenv("CLAUDE_HOME", raising=False)
    assert get_claude_home() == Path.home() / ".claude"


def test_setup_logging_writes_debug_file(claude_home, monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    log_file = compat.setup_logging("unit", verbose=True)
    logging.getLogger("hooks.unit").debug("hello log")
    for handler in root.handlers:
        handler.flush()

    assert log_file == claude_home / "debug" / "unit.log"
    assert "hello log" in log_file.read_text(encoding="utf-8")
    for handler in root.handlers:
        handler.close()


@pytest.mark.skipif(compat.IS_WINDOWS or compat.IS_MACOS, reason="Linux player order")
def test_find_audio_player_linux_order(monkeypatch):
    available = {"aplay": "/usr/bin/aplay", "ffplay": "/usr/bin/ffplay"}
    monkeypatch.setattr(compat.shutil, "which", lambda name: available.get(name))

    assert find_audio_player() == ["/usr/bin/aplay", "-q"]

    available.pop("aplay")
    assert find_audio_player()[0] == "/usr/bin/ffplay"

    available.clear()
    assert find_audio_player() is None


@pytest.mark.skipif(compat.IS_WINDOWS, reason="POSIX detach")
def test_play_sound_launches_detached(monkeypatch, tmp_path):
    wav = tmp_path / "tone.wav"
    wav.write_bytes(b"RIFF")
    launched = []

    monkeypatch.setattr(compat, "find_audio_player", lambda: ["/usr/bin/paplay"])
    monkeypatch.setattr(compat.subprocess, "Popen", lambda cmd, **kw: launched.append((cmd, kw)))

    assert play_sound(wav) is True
    cmd, kw = launched[0]
    assert cmd == ["/usr/bin/paplay", str(wav)]
    assert kw["start_new_session"] is True
    assert kw["stdout"] is subprocess.DEVNULL


def test_play_sound_missing_file(tmp_path):
    assert play_sound(tmp_path / "missing.wav") is False


def test_play_sound_swallows_launch_errors(monkeypatch, tmp_path):
    wav = tmp_path / "tone.wav"
    wav.write_bytes(b"RIFF")

    def broken(*args, **kwargs):
        raise OSError("exec format error")

    monkeypatch.setattr(compat, "find_audio_player", lambda: ["/usr/bin/paplay"])
    monkeypatch.setattr(compat.subprocess, "Popen", broken)

    assert play_sound(wav) is False


def test_play_sound_no_player(monkeypatch, tmp_path):
    wav = tmp_path / "tone.wav"
    wav.write_bytes(b"RIFF")
    monkeypatch.setattr(compat, "find_audio_player", lambda: None)

    assert play_sound(wav) is False


def test_native_watch_backend_rejects_polling(monkeypatch):
    import watchdog.observers
    from watchdog.observers.polling import PollingObserver

    monkeypatch.setattr(watchdog.observers, "Observer", PollingObserver)
    assert native_watch_backend() is None


def test_native_watch_backend_names_native_observer(monkeypatch):
    import watchdog.observers
    from watchdog.observers.api import BaseObserver

    class FakeNativeObserver(BaseObserver):
        pass

    monkeypatch.setattr(watchdog.observers, "Observer", FakeNativeObserver)
    assert native_watch_backend() == "FakeNativeObserver"
