#!/usr/bin/env python3
"""
/sounds skill - Toggle audio feedback for agent session events.

Usage:
    python sounds.py on
    python sounds.py off
    python sounds.py status
"""

import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from hooks.compat import find_audio_player, get_claude_home, native_watch_backend
from hooks.sounds import get_state_path
from hooks.transaction import TransactionError, locked_read_json


def get_marker_path() -> Path:
    """Get path to sounds-enabled marker file."""
    return get_claude_home() / "sounds-enabled"


def enable_sounds():
    """Enable audio feedback."""
    marker = get_marker_path()
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.touch()
    print("Audio feedback enabled")
    print("You'll hear sounds when a session starts, plans, and finishes")


def disable_sounds():
    """Disable audio feedback."""
    marker = get_marker_path()
    if marker.exists():
        marker.unlink()
    print("Audio feedback disabled")


def tracked_sessions() -> int:
    """Number of sessions with a recorded start, -1 if the state is unreadable."""
    try:
        state = locked_read_json(get_state_path(), default={}, timeout=2)
    except TransactionError:
        return -1
    starts = state.get("session_starts") if isinstance(state, dict) else None
    return len(starts) if isinstance(starts, dict) else 0


def show_status():
    """Show current audio state."""
    if get_marker_path().exists():
        print("Audio feedback: ENABLED")
    else:
        print("Audio feedback: DISABLED")
        print("\nRun '/sounds on' to enable")

    backend = native_watch_backend()
    print(f"\nWatch backend: {backend or 'MISSING (brain watcher will not start)'}")
    player = find_audio_player()
    print(f"Audio player:  {player[0] if player else 'MISSING'}")

    sessions = tracked_sessions()
    if sessions < 0:
        print("Sessions:      state file locked or unreadable")
    else:
        print(f"Sessions:      {sessions} with a recorded start")


def main():
    if len(sys.argv) < 2:
        print("Usage: /sounds [on|off|status]")
        sys.exit(1)

    command = sys.argv[1].lower()

    if command == "on":
        enable_sounds()
    elif command == "off":
        disable_sounds()
    elif command == "status":
        show_status()
    else:
        print(f"Unknown command: {command}")
        print("Usage: /sounds [on|off|status]")
        sys.exit(1)


if __name__ == "__main__":
    main()
