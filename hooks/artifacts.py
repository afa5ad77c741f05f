#!/usr/bin/env python3
"""
Brain artifact helpers - metadata parsing, session resolution, phase tracking.

The agent writes one metadata file per artifact into its brain directory:

    <brain root>/<session GUID>/task.md.metadata.json
    {"artifactType": "ARTIFACT_TYPE_TASK", "summary": "...", "updatedAt": "..."}

Artifacts appear in a fixed order per session (task, implementation plan,
walkthrough). PhaseTracker turns a stream of these observations into at most
one hook event per forward transition:

    task                -> SessionStart
    implementation_plan -> UserPromptSubmit
    walkthrough         -> Stop

Nothing in this module touches the filesystem or raises on bad input.
"""

import json
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath

ARTIFACT_TYPE_PREFIX = "ARTIFACT_TYPE_"
SESSION_DIR_MARKER = "brain"
METADATA_SUFFIXES = (".metadata.json", ".metadata")
NOTIFICATION_ID_LENGTH = 8
DEFAULT_MAX_SESSIONS = 1024


class ArtifactPhase(str, Enum):
    """Artifact kinds, in the order a session produces them."""
    TASK = "task"
    IMPLEMENTATION_PLAN = "implementation_plan"
    WALKTHROUGH = "walkthrough"


class HookEvent(str, Enum):
    """Hook event names handed to the sounds hook."""
    SESSION_START = "SessionStart"
    PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"


# Lattice position; "none" (no artifact seen yet) is 0
_RANK = {
    None: 0,
    ArtifactPhase.TASK: 1,
    ArtifactPhase.IMPLEMENTATION_PLAN: 2,
    ArtifactPhase.WALKTHROUGH: 3,
}

_EVENT_FOR_PHASE = {
    ArtifactPhase.TASK: HookEvent.SESSION_START,
    ArtifactPhase.IMPLEMENTATION_PLAN: HookEvent.PROMPT_SUBMIT,
    ArtifactPhase.WALKTHROUGH: HookEvent.STOP,
}


@dataclass(frozen=True)
class LifecycleEvent:
    """One hook event derived from a session's phase transition."""
    kind: HookEvent
    session_id: str
    notification_id: str


def parse_metadata(content: bytes | str) -> ArtifactPhase | None:
    """Return the artifact phase named by a metadata document, or None.

    Strips the ARTIFACT_TYPE_ marker and case-folds the remainder. Anything
    malformed (bad encoding, bad JSON, non-object, missing/empty field,
    unknown type) is "unrecognized".
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return None
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError, ValueError, RecursionError):
        return None
    if not isinstance(data, dict):
        return None

    artifact_type = data.get("artifactType")
    if not isinstance(artifact_type, str):
        return None
    artifact_type = artifact_type.strip()
    if artifact_type.upper().startswith(ARTIFACT_TYPE_PREFIX):
        artifact_type = artifact_type[len(ARTIFACT_TYPE_PREFIX):]
    if not artifact_type:
        return None

    try:
        return ArtifactPhase(artifact_type.lower())
    except ValueError:
        return None


def resolve_session_id(path: str | PurePath, marker: str = SESSION_DIR_MARKER) -> str | None:
    """Return the path segment right after the last *marker* segment.

    /home/u/.gemini/antigravity/brain/4f1c.../task.md.metadata.json -> "4f1c..."

    None when the marker is absent or is the final segment.
    """
    parts = PurePath(path).parts
    for idx in range(len(parts) - 1, -1, -1):
        if parts[idx] == marker:
            if idx + 1 < len(parts):
                return parts[idx + 1]
            return None
    return None


def notification_id(session_id: str) -> str:
    """Short session prefix used to key suppression state."""
    return session_id[:NOTIFICATION_ID_LENGTH]


def is_metadata_file(path: str | PurePath) -> bool:
    """True for files following the <artifact>.metadata[.json] convention."""
    return PurePath(path).name.endswith(METADATA_SUFFIXES)


class PhaseTracker:
    """Per-session forward-only phase state.

    Each session moves none -> task -> implementation_plan -> walkthrough.
    An observation emits an event only when it moves the session forward;
    repeats and backwards observations are absorbed. Arrival order is
    authoritative.

    At most ``max_sessions`` records are kept; the least recently observed
    session is dropped when a new one arrives on a full tracker.
    """

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self._phases: OrderedDict[str, ArtifactPhase] = OrderedDict()

    def __len__(self) -> int:
        return len(self._phases)

    def phase_of(self, session_id: str) -> ArtifactPhase | None:
        """Last accepted phase for a session (None if never seen)."""
        return self._phases.get(session_id)

    def observe(self, session_id: str, phase: ArtifactPhase | None) -> LifecycleEvent | None:
        """Record an observation; return the event it triggers, if any."""
        if phase is None or not session_id:
            return None

        last = self._phases.get(session_id)
        if session_id in self._phases:
            self._phases.move_to_end(session_id)

        # Covers repeats, backwards moves, and task on a started session
        if _RANK[phase] <= _RANK[last]:
            return None

        self._remember(session_id, phase)
        return LifecycleEvent(
            kind=_EVENT_FOR_PHASE[phase],
            session_id=session_id,
            notification_id=notification_id(session_id),
        )

    def _remember(self, session_id: str, phase: ArtifactPhase) -> None:
        self._phases[session_id] = phase
        self._phases.move_to_end(session_id)
        while len(self._phases) > self.max_sessions:
            self._phases.popitem(last=False)
