"""Shared pytest fixtures for the brain sound hooks."""

import json
import sys
from pathlib import Path
from typing import Callable

import pytest

# Ensure hooks directory is importable
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def claude_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated CLAUDE_HOME with no subagent markers in the environment."""
    home = tmp_path / "claude-home"
    home.mkdir()
    monkeypatch.setenv("CLAUDE_HOME", str(home))
    monkeypatch.delenv("CLAUDE_CODE_TASK_LIST_ID", raising=False)
    monkeypatch.delenv("CLAUDE_CODE_SUBAGENT", raising=False)
    return home


@pytest.fixture
def sounds_enabled(claude_home: Path) -> Path:
    """Create the sounds-enabled marker."""
    marker = claude_home / "sounds-enabled"
    marker.touch()
    return marker


@pytest.fixture
def state_path(claude_home: Path) -> Path:
    """Suppression document inside the isolated CLAUDE_HOME."""
    return claude_home / ".sounds-state.json"


@pytest.fixture
def played(monkeypatch: pytest.MonkeyPatch) -> list[Path]:
    """Capture playback requests instead of launching a player."""
    calls: list[Path] = []

    def fake_play(wav_path: Path) -> bool:
        calls.append(wav_path)
        return True

    monkeypatch.setattr("hooks.sounds.play_sound", fake_play)
    return calls


@pytest.fixture
def brain_root(tmp_path: Path) -> Path:
    """Empty brain directory."""
    root = tmp_path / "brain"
    root.mkdir()
    return root


@pytest.fixture
def write_metadata(brain_root: Path) -> Callable[..., Path]:
    """Write <brain>/<session>/<phase>.md.metadata.json and return its path."""

    def _write(session_id: str, phase: str, artifact_type: str | None = None) -> Path:
        session_dir = brain_root / session_id
        session_dir.mkdir(exist_ok=True)
        path = session_dir / f"{phase}.md.metadata.json"
        doc = {
            "artifactType": artifact_type or f"ARTIFACT_TYPE_{phase.upper()}",
            "summary": f"{phase} for {session_id}",
            "updatedAt": "2026-10-19T12:00:00Z",
            "version": "1",
        }
        path.write_text(json.dumps(doc), encoding="utf-8")
        return path

    return _write
