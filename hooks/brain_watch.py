#!/usr/bin/env python3
"""
Brain Watcher - turns agent artifact activity into sound hook events.

Watches the agent's brain directory recursively. Each time an artifact
metadata file is created or rewritten, its session and phase are fed to a
PhaseTracker; forward transitions become hook events that are piped, one at
a time and in arrival order, into hooks/sounds.py.

The watcher waits for each hook process (at most DISPATCH_TIMEOUT seconds)
so a SessionStart stamp is persisted before a later event of the same
session is judged. Playback itself is detached inside the hook.

Usage:
    brain_watch.py [--root DIR] [--dispatcher PATH] [--verbose]

Root defaults to $ANTIGRAVITY_BRAIN_DIR, else ~/.gemini/antigravity/brain.

Exit codes:
    0 = stopped by signal
    1 = a prerequisite is missing (dispatcher script, native watch backend)
    2 = the observer thread died before a stop was requested
"""

import argparse
import json
import logging
import os
import signal
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable

_PARENT = Path(__file__).resolve().parent.parent
if str(_PARENT) not in sys.path:
    sys.path.insert(0, str(_PARENT))

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from hooks.artifacts import (
    SESSION_DIR_MARKER,
    LifecycleEvent,
    PhaseTracker,
    is_metadata_file,
    parse_metadata,
    resolve_session_id,
)
from hooks.compat import native_watch_backend, setup_logging

logger = logging.getLogger("hooks.brain_watch")

DEFAULT_DISPATCHER = Path(__file__).resolve().parent / "sounds.py"
DISPATCH_TIMEOUT = 3  # seconds; the hook returns once its decision is persisted


def default_brain_root() -> Path:
    """Brain directory from ANTIGRAVITY_BRAIN_DIR, else the agent's default."""
    env = os.environ.get("ANTIGRAVITY_BRAIN_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".gemini" / "antigravity" / "brain"


def preflight(dispatcher: Path) -> list[str]:
    """Return one message per missing prerequisite (empty when ready)."""
    problems = []
    if not dispatcher.is_file():
        problems.append(f"sound dispatcher not found: {dispatcher}")
    elif not os.access(dispatcher, os.R_OK):
        problems.append(f"sound dispatcher not readable: {dispatcher}")
    if native_watch_backend() is None:
        problems.append(
            "no native recursive file watching backend (inotify, FSEvents, "
            "kqueue or ReadDirectoryChangesW) is available; refusing to poll"
        )
    return problems


class HookDispatcher:
    """Pipes lifecycle events into the sounds hook as hook JSON."""

    def __init__(self, script: Path, python: str = sys.executable, cwd: str | None = None):
        self.script = script
        self.python = python
        self.cwd = cwd or os.getcwd()

    def hook_payload(self, event: LifecycleEvent) -> dict:
        return {
            "hook_event_name": event.kind.value,
            "notification_type": "",
            "cwd": self.cwd,
            "session_id": event.notification_id,
            "permission_mode": "",
        }

    def __call__(self, event: LifecycleEvent) -> bool:
        """Run the hook for one event. False if it could not be delivered."""
        payload = json.dumps(self.hook_payload(event))
        try:
            result = subprocess.run(
                [self.python, str(self.script)],
                input=payload,
                capture_output=True,
                text=True,
                timeout=DISPATCH_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Dispatcher timed out after %ss for %s", DISPATCH_TIMEOUT, event.kind.value)
            return False
        except OSError as e:
            logger.warning("Dispatcher could not be started: %s", e)
            return False

        if result.returncode != 0:
            logger.warning(
                "Dispatcher exited %s for %s: %s",
                result.returncode, event.kind.value, result.stderr.strip()[:200],
            )
            return False
        return True


class BrainEventHandler(FileSystemEventHandler):
    """watchdog handler feeding metadata changes through the PhaseTracker.

    Lifecycle events go to *emit*; dispatch() belongs to watchdog.
    """

    def __init__(
        self,
        emit: Callable[[LifecycleEvent], object],
        tracker: PhaseTracker | None = None,
        marker: str = SESSION_DIR_MARKER,
    ):
        super().__init__()
        self.emit = emit
        self.tracker = tracker or PhaseTracker()
        self.marker = marker

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.process(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.process(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors write a temp file and rename it over the metadata file
        if not event.is_directory:
            self.process(event.dest_path)

    def process(self, path: str | bytes) -> LifecycleEvent | None:
        """Run one changed path through the pipeline; emit any event.

        Never raises: an error on one path drops that event only, the
        observer thread keeps running.
        """
        path = os.fsdecode(path)
        try:
            return self._process(path)
        except Exception:
            logger.exception("Dropped change to %s", path)
            return None

    def _process(self, path: str) -> LifecycleEvent | None:
        if not is_metadata_file(path):
            return None

        # Resolve on the directory so a file directly under the root is not a session
        session_id = resolve_session_id(Path(path).parent, self.marker)
        if session_id is None:
            logger.debug("No session id in %s", path)
            return None

        try:
            content = Path(path).read_bytes()
        except OSError as e:
            logger.debug("Unreadable metadata %s: %s", path, e)
            return None

        phase = parse_metadata(content)
        if phase is None:
            logger.debug("Unrecognized metadata %s", path)
            return None

        lifecycle_event = self.tracker.observe(session_id, phase)
        if lifecycle_event is None:
            return None

        logger.info(
            "%s for session %s (%s)",
            lifecycle_event.kind.value, session_id, phase.value,
        )
        self.emit(lifecycle_event)
        return lifecycle_event


def watch(root: Path, handler: FileSystemEventHandler, stop: threading.Event) -> bool:
    """Observe *root* until *stop* is set; always stops the observer.

    Returns True when the loop ended because *stop* was set, False when the
    observer thread died on its own.
    """
    observer = Observer()
    observer.schedule(handler, str(root), recursive=True)
    observer.start()
    logger.info("Watching %s with %s", root, type(observer).__name__)
    try:
        while not stop.is_set() and observer.is_alive():
            stop.wait(1.0)
    finally:
        observer.stop()
        observer.join()
        logger.info("Stopped watching %s", root)

    if not stop.is_set():
        logger.error("Observer for %s died before a stop was requested", root)
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Play session sounds from agent brain artifacts")
    parser.add_argument("--root", type=Path, default=None, help="Brain directory to watch")
    parser.add_argument("--dispatcher", type=Path, default=DEFAULT_DISPATCHER, help="Sounds hook script")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging("brain-watch", verbose=args.verbose, stream=True)

    problems = preflight(args.dispatcher)
    if problems:
        for problem in problems:
            print(f"Error: {problem}", file=sys.stderr)
        return 1

    root = (args.root or default_brain_root()).expanduser()
    root.mkdir(parents=True, exist_ok=True)

    stop = threading.Event()
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda *_: stop.set())
    # SIGHUP only available on non-Windows
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda *_: stop.set())

    handler = BrainEventHandler(HookDispatcher(args.dispatcher), marker=root.name)
    if not watch(root, handler, stop):
        print("Error: file watcher stopped unexpectedly, see the log", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
