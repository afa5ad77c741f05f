#!/usr/bin/env python3
"""
Audio feedback hook handler for session lifecycle events.

Usage:
    echo '{"hook_event_name": "Stop", "session_id": "4f1c2a9e"}' | python sounds.py
    python sounds.py session-start      # event name from argv, rest from stdin

Stdin schema (hook event):
  {
    "hook_event_name": "SessionStart" | "UserPromptSubmit" | "Stop",
    "notification_type": "",
    "cwd": "/path/to/project",
    "session_id": "4f1c2a9e",
    "permission_mode": ""
  }

Every SessionStart is delivered and its time recorded per session id in
~/.claude/.sounds-state.json. UserPromptSubmit/Stop arriving less than
SUPPRESS_WINDOW_SECONDS after that session's start are dropped, so a session
that opens with several artifacts at once only chimes once.

Audio plays only if:
1. ~/.claude/sounds-enabled marker file exists
2. NOT running as subagent (no CLAUDE_CODE_TASK_LIST_ID or CLAUDE_CODE_SUBAGENT)
3. permission_mode is not "delegate" (agent-driven sessions stay quiet)

Playback is launched detached; this process exits as soon as the decision is
persisted.
"""

import json
import logging
import math
import os
import struct
import sys
import time
from dataclasses import dataclass
from pathlib import Path

_PARENT = Path(__file__).resolve().parent.parent
if str(_PARENT) not in sys.path:
    sys.path.insert(0, str(_PARENT))

from hooks.compat import (
    cancel_stdin_timeout,
    get_claude_home,
    play_sound,
    setup_logging,
    setup_stdin_timeout,
)
from hooks.transaction import (
    TransactionError,
    atomic_write_bytes,
    locked_read_json,
    transactional_update,
    validate_suppression_state,
)

logger = logging.getLogger("hooks.sounds")

SUPPRESS_WINDOW_SECONDS = 3.0
STATE_FILENAME = ".sounds-state.json"
SESSION_START = "SessionStart"
HOOK_EVENTS = (SESSION_START, "UserPromptSubmit", "Stop")

# argv aliases kept for settings.json entries that pass the event by name
ARGV_EVENTS = {
    "session-start": SESSION_START,
    "prompt-submit": "UserPromptSubmit",
    "session-stop": "Stop",
}

SOUND_SLUGS = {
    SESSION_START: "session-start",
    "UserPromptSubmit": "prompt-submit",
    "Stop": "stop",
}

# (frequency Hz, duration ms) per event
CHORDS = {
    SESSION_START: [(523, 120), (659, 180)],  # C5 -> E5, rising
    "UserPromptSubmit": [(880, 60)],          # A5 tick
    "Stop": [(659, 120), (440, 250)],         # E5 -> A4, falling
}

SAMPLE_RATE = 22050  # CD-quality not needed for beeps
TONE_VOLUME = 0.3


@dataclass(frozen=True)
class Decision:
    """Outcome of one hook event."""
    event: str
    notification_id: str
    delivered: bool
    reason: str = ""


def get_state_path() -> Path:
    """Path of the persisted suppression document."""
    return get_claude_home() / STATE_FILENAME


def get_sounds_dir() -> Path:
    """Directory holding sound overrides and the rendered tone cache."""
    return get_claude_home() / "sounds"


def should_play_sound(permission_mode: str = "") -> bool:
    """Check if audio feedback should play."""
    marker = get_claude_home() / "sounds-enabled"
    if not marker.exists():
        return False
    if os.environ.get("CLAUDE_CODE_TASK_LIST_ID"):
        return False
    if os.environ.get("CLAUDE_CODE_SUBAGENT"):
        return False
    if permission_mode == "delegate":
        return False
    return True


# ===========================================================================
# Suppression state
# ===========================================================================

def _empty_state() -> dict:
    return {"session_starts": {}}


def _normalize_state(state) -> dict:
    """Replace anything that is not a valid suppression document with an empty one."""
    if not validate_suppression_state(state):
        return _empty_state()
    return state


def record_session_start(notification_id: str, state_path: Path, now: float) -> dict:
    """Store *now* as the last SessionStart for *notification_id* (locked RMW)."""
    def update(state):
        state = _normalize_state(state)
        state["session_starts"][notification_id] = now
        return state

    return transactional_update(
        state_path,
        update,
        default=_empty_state(),
        validate_fn=validate_suppression_state,
    )


def last_session_start(notification_id: str, state_path: Path) -> float | None:
    """Last recorded SessionStart time for *notification_id*, if any."""
    state = _normalize_state(locked_read_json(state_path, default=_empty_state()))
    return state["session_starts"].get(notification_id)


def decide(
    event: str,
    notification_id: str,
    state_path: Path | None = None,
    now: float | None = None,
) -> Decision:
    """Deliver or suppress one hook event and persist what it implies.

    SessionStart is always delivered and stamps the session. Any other event
    is suppressed while its session's last start is under
    SUPPRESS_WINDOW_SECONDS old. State errors never block delivery.
    """
    state_path = state_path or get_state_path()
    now = time.time() if now is None else now

    if not notification_id:
        return Decision(event, notification_id, True, "no session id")

    if event == SESSION_START:
        try:
            record_session_start(notification_id, state_path, now)
        except TransactionError as e:
            logger.warning("Could not record SessionStart for %s: %s", notification_id, e)
            return Decision(event, notification_id, True, "start not recorded")
        return Decision(event, notification_id, True, "start recorded")

    try:
        started = last_session_start(notification_id, state_path)
    except TransactionError as e:
        logger.warning("Could not read suppression state: %s", e)
        return Decision(event, notification_id, True, "state unreadable")

    if started is not None and 0 <= now - started < SUPPRESS_WINDOW_SECONDS:
        logger.info(
            "Dropped %s for %s (%.2fs after SessionStart)",
            event, notification_id, now - started,
        )
        return Decision(event, notification_id, False, "within suppression window")
    return Decision(event, notification_id, True)


# ===========================================================================
# Sound assets
# ===========================================================================

def _tone_samples(frequency: int, duration_ms: int, volume: float = TONE_VOLUME) -> bytes:
    """Mono 16-bit PCM samples for one tone.

    Args:
        frequency: Tone frequency in Hz (200-2000 recommended)
        duration_ms: Duration in milliseconds
        volume: Volume 0.0-1.0 (0.3 default, not too loud)
    """
    num_samples = int(SAMPLE_RATE * duration_ms / 1000)
    # Fade-in/fade-out envelope (first/last 5ms) avoids clicks
    fade_samples = max(1, int(SAMPLE_RATE * 0.005))
    samples = bytearray()
    for i in range(num_samples):
        t = i / SAMPLE_RATE
        if i < fade_samples:
            envelope = i / fade_samples
        elif i > num_samples - fade_samples:
            envelope = (num_samples - i) / fade_samples
        else:
            envelope = 1.0
        value = int(volume * envelope * 32767 * math.sin(2 * math.pi * frequency * t))
        samples.extend(struct.pack("<h", max(-32768, min(32767, value))))
    return bytes(samples)


def render_chord(tones: list[tuple[int, int]]) -> bytes:
    """Render a sequence of (frequency, duration_ms) tones as one WAV file."""
    data = b"".join(_tone_samples(freq, dur) for freq, dur in tones)
    # WAV header: RIFF + fmt + data chunks
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF", 36 + len(data), b"WAVE",
        b"fmt ", 16, 1, 1, SAMPLE_RATE, SAMPLE_RATE * 2, 2, 16,
        b"data", len(data),
    )
    return header + data


def sound_for_event(event: str, sounds_dir: Path | None = None) -> Path:
    """WAV to play for *event*: a user override, else the rendered tone."""
    sounds_dir = sounds_dir or get_sounds_dir()
    slug = SOUND_SLUGS[event]

    override = sounds_dir / f"{slug}.wav"
    if override.is_file():
        return override

    cached = sounds_dir / "cache" / f"{slug}.wav"
    if not cached.is_file():
        atomic_write_bytes(cached, render_chord(CHORDS[event]))
    return cached


def play_event_sound(event: str, sounds_dir: Path | None = None) -> bool:
    """Fire-and-forget playback; failures are logged and swallowed."""
    try:
        return play_sound(sound_for_event(event, sounds_dir))
    except Exception as e:
        logger.debug("Sound for %s failed: %s", event, e)
        return False


# ===========================================================================
# Hook entry
# ===========================================================================

def handle_hook(
    data: dict,
    state_path: Path | None = None,
    now: float | None = None,
) -> Decision | None:
    """Decide, persist, and (if delivered) play. None for unknown events."""
    event = data.get("hook_event_name", "")
    if event not in HOOK_EVENTS:
        logger.debug("Ignoring hook event %r", event)
        return None

    notification_id = str(data.get("session_id") or "")
    decision = decide(event, notification_id, state_path=state_path, now=now)

    if decision.delivered:
        logger.debug("Delivered %s for %s", event, notification_id or "-")
        if should_play_sound(str(data.get("permission_mode") or "")):
            play_event_sound(event)
    return decision


def main() -> None:
    setup_logging("sounds")
    setup_stdin_timeout(5, debug_label="sounds.py stdin read")

    try:
        raw = sys.stdin.read()
    except (OSError, UnicodeDecodeError):
        raw = ""
    cancel_stdin_timeout()

    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    if len(sys.argv) > 1 and sys.argv[1] in ARGV_EVENTS:
        data["hook_event_name"] = ARGV_EVENTS[sys.argv[1]]

    handle_hook(data)

    # Hooks use the simple schema; never block the caller
    sys.stdout.write('{"continue":true,"suppressOutput":true}')


if __name__ == "__main__":
    main()
