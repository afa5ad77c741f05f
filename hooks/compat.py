#!/usr/bin/env python3
"""
Cross-platform helpers shared by the brain sound hooks.

Public API:
    IS_WINDOWS - bool platform flag
    get_claude_home() - CLAUDE_HOME path with platform defaults
    setup_logging(name, verbose=False, stream=False) - debug log under CLAUDE_HOME/debug
    setup_stdin_timeout(seconds, debug_label="") - set stdin read timeout
    cancel_stdin_timeout() - cancel active timeout
    find_audio_player() - command prefix for the first usable WAV player
    play_sound(wav_path) - detached, fire-and-forget playback
    native_watch_backend() - name of the native recursive watch backend, or None

Usage:
    import sys; sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
    from hooks.compat import get_claude_home, play_sound
"""

import logging
import os
import shutil
import subprocess
import sys
import threading
from pathlib import Path

IS_WINDOWS = sys.platform == "win32"
IS_MACOS = sys.platform == "darwin"

# Module-level reference to the stdin timeout Timer so it can be cancelled
_stdin_timer: threading.Timer | None = None

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def get_claude_home() -> Path:
    """Return CLAUDE_HOME with platform-aware default."""
    env = os.environ.get("CLAUDE_HOME")
    if env:
        return Path(env)
    return Path.home() / ".claude"


def setup_logging(name: str, verbose: bool = False, stream: bool = False) -> Path | None:
    """
    Route root logging into CLAUDE_HOME/debug/<name>.log.

    Level is INFO, or DEBUG when verbose is set or SOUNDS_DEBUG=1. With
    stream=True records are also echoed to stderr (long-running processes).
    Returns the log file path, or None when the debug dir is not writable.
    """
    level = logging.DEBUG if verbose or os.environ.get("SOUNDS_DEBUG") == "1" else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    root = logging.getLogger()
    root.setLevel(level)

    log_file: Path | None = get_claude_home() / "debug" / f"{name}.log"
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError:
        # Logging is best-effort, a hook must never fail on it
        log_file = None

    if stream:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


def setup_stdin_timeout(seconds: int, debug_label: str = "") -> None:
    """
    Set a timeout for stdin read operations.

    On POSIX: uses signal.SIGALRM (interrupts blocking reads).
    On Windows: uses a daemon thread with os._exit (forceful but reliable).
    Either way the process exits 0 so the calling agent is never blocked.
    """
    global _stdin_timer
    cancel_stdin_timeout()

    def _log_timeout():
        if debug_label:
            logger.warning("Timeout (%ss): %s", seconds, debug_label)

    if IS_WINDOWS:
        def _timeout_handler():
            _log_timeout()
            os._exit(0)

        _stdin_timer = threading.Timer(seconds, _timeout_handler)
        _stdin_timer.daemon = True
        _stdin_timer.start()
    else:
        import signal

        def _handler(signum, frame):
            _log_timeout()
            sys.exit(0)

        signal.signal(signal.SIGALRM, _handler)
        signal.alarm(seconds)


def cancel_stdin_timeout() -> None:
    """Cancel a previously set stdin timeout."""
    global _stdin_timer
    if IS_WINDOWS:
        if _stdin_timer is not None:
            _stdin_timer.cancel()
            _stdin_timer = None
    else:
        import signal

        signal.alarm(0)


def find_audio_player() -> list[str] | None:
    """
    Return the command prefix of the first usable WAV player, or None.

    macOS: afplay. Linux: paplay, pw-play, aplay (-q). Anywhere: ffplay.
    Windows: PowerShell's Media.SoundPlayer.
    """
    if IS_MACOS and shutil.which("afplay"):
        return ["afplay"]
    if IS_WINDOWS:
        ps = shutil.which("powershell") or shutil.which("pwsh")
        if ps:
            return [ps, "-NoProfile", "-NonInteractive", "-Command"]
        return None
    for player in ("paplay", "pw-play", "aplay"):
        exe = shutil.which(player)
        if exe:
            return [exe, "-q"] if player == "aplay" else [exe]
    ffplay = shutil.which("ffplay")
    if ffplay:
        return [ffplay, "-nodisp", "-autoexit", "-loglevel", "quiet"]
    return None


def play_sound(wav_path: Path) -> bool:
    """
    Play a WAV file detached from the calling process.

    The player runs in its own session (POSIX) or as a detached process
    (Windows), so a hook can exit before playback finishes. Never raises.

    Returns:
        True if a player was launched, False otherwise
    """
    try:
        if not wav_path.is_file():
            logger.debug("Sound asset missing: %s", wav_path)
            return False
        player = find_audio_player()
        if player is None:
            logger.debug("No audio player available")
            return False

        if IS_WINDOWS:
            safe_path = str(wav_path).replace("'", "''")
            cmd = player + [f"(New-Object Media.SoundPlayer '{safe_path}').PlaySync()"]
            subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=subprocess.DETACHED_PROCESS,
            )
        else:
            subprocess.Popen(
                player + [str(wav_path)],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        return True
    except Exception as e:
        logger.debug("Playback failed for %s: %s", wav_path, e)
        return False


def native_watch_backend() -> str | None:
    """
    Name of the recursive change-notification backend watchdog selected.

    Returns None when watchdog could only fall back to polling (or is not
    importable), i.e. no native mechanism exists on this host.
    """
    try:
        from watchdog.observers import Observer
        from watchdog.observers.polling import PollingObserver
    except ImportError:
        return None
    if issubclass(Observer, PollingObserver):
        return None
    return Observer.__name__
