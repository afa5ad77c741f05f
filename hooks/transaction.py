r"""Locked, atomic JSON state primitives for the sound hooks.

Several hook processes may fire within milliseconds of each other and all of
them read or update the same small state document. Every access goes through
an advisory lock on a sidecar ``<name>.lock`` file, and every write replaces
the document atomically, so readers never observe a half-written file.

**Core primitives:**
- state_lock: Scoped exclusive/shared lock on the sidecar file
- atomic_write_json/bytes: Atomic write-or-fail using temp files + rename
- locked_read_json: Consistent read under the lock
- transactional_update: Read-modify-write under one exclusive lock

**Guarantees:**
- Atomicity: Writes complete fully or not at all (no partial states)
- Isolation: portalocker provides cross-platform file locking; the OS drops
  the lock if the holder dies, so a crashed hook cannot wedge later ones
- Durability: fsync=True forces OS to flush to disk before returning

**Error handling:**
- LockTimeoutError: Acquire timeout (only when a timeout is requested)
- ValidationError: Schema check failed before write
- TransactionError: Any other read/write failure
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import portalocker


# Exception hierarchy
class TransactionError(Exception):
    """Base exception for transaction failures."""
    pass


class LockTimeoutError(TransactionError):
    """Raised when lock acquisition times out."""
    pass


class ValidationError(TransactionError):
    """Raised when schema validation fails."""
    pass


def lock_path_for(path: Path | str) -> Path:
    """Sidecar lock file guarding *path* (state.json -> state.json.lock)."""
    path = Path(path)
    return path.with_name(path.name + ".lock")


@contextmanager
def state_lock(
    path: Path | str,
    exclusive: bool = True,
    timeout: Optional[float] = None,
) -> Iterator[None]:
    """Hold an advisory lock for the state document at *path*.

    The lock lives on a sidecar file because the document itself is replaced
    on every write (a lock on the old inode would protect nothing).

    Args:
        path: State document path (the lock file sits next to it)
        exclusive: LOCK_EX when True, LOCK_SH for read-only access
        timeout: None blocks until the holder releases; otherwise give up
            after this many seconds

    Raises:
        LockTimeoutError: If a timeout was given and it expired
    """
    lock_file = lock_path_for(path)
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    flags = portalocker.LOCK_EX if exclusive else portalocker.LOCK_SH
    if timeout is not None:
        flags |= portalocker.LOCK_NB

    lock = portalocker.Lock(str(lock_file), mode="a", timeout=timeout, flags=flags)
    try:
        lock.acquire()
    except portalocker.exceptions.LockException as e:
        raise LockTimeoutError(f"Lock timeout on {lock_file} after {timeout}s") from e
    try:
        yield
    finally:
        lock.release()


def _atomic_replace(path: Path, write: Callable[[Any], None], mode: str, fsync: bool) -> None:
    """Write through *write* into a temp file beside *path*, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_file = None
    tmp_path = None
    try:
        # Same directory keeps the rename on one filesystem (atomic)
        tmp_file = tempfile.NamedTemporaryFile(
            mode=mode,
            encoding="utf-8" if "b" not in mode else None,
            dir=path.parent,
            prefix=f".{path.name}.",
            delete=False,
            suffix=".tmp",
        )
        tmp_path = Path(tmp_file.name)

        write(tmp_file)
        tmp_file.flush()
        if fsync:
            os.fsync(tmp_file.fileno())
        tmp_file.close()

        os.replace(tmp_path, path)

    except Exception as e:
        if tmp_file is not None and not tmp_file.closed:
            tmp_file.close()
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise TransactionError(f"Atomic write failed for {path}: {e}") from e


def atomic_write_json(
    path: Path | str,
    data: Any,
    fsync: bool = True,
    validate_fn: Optional[Callable[[Any], bool]] = None,
) -> None:
    """Write JSON data atomically using temp file + rename.

    Either the full write succeeds or the original file remains unchanged.
    Does not lock; callers mutating shared state use transactional_update.

    Raises:
        ValidationError: If validate_fn returns False
        TransactionError: On write or rename failure
    """
    path = Path(path)
    if validate_fn is not None and not validate_fn(data):
        raise ValidationError(f"Validation failed for data: {path}")
    _atomic_replace(path, lambda f: json.dump(data, f, indent=2), "w", fsync)


def atomic_write_bytes(path: Path | str, data: bytes, fsync: bool = False) -> None:
    """Write binary content (e.g. a rendered WAV) atomically."""
    _atomic_replace(Path(path), lambda f: f.write(data), "wb", fsync)


def _load_json(path: Path, default: Any) -> Any:
    """Parse *path*; missing, empty or corrupted files yield *default*."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return default
    except OSError as e:
        raise TransactionError(f"Read failed for {path}: {e}") from e
    if not content.strip():
        return default
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return default


def locked_read_json(
    path: Path | str,
    default: Optional[Any] = None,
    timeout: Optional[float] = None,
) -> Any:
    """Read JSON state under a shared lock.

    Returns:
        Parsed JSON data, or default if the file is missing, empty or corrupt

    Raises:
        LockTimeoutError: If a timeout was given and it expired
        TransactionError: On I/O failure
    """
    path = Path(path)
    with state_lock(path, exclusive=False, timeout=timeout):
        return _load_json(path, default)


def transactional_update(
    path: Path | str,
    update_fn: Callable[[Any], Any],
    default: Optional[Any] = None,
    timeout: Optional[float] = None,
    fsync: bool = True,
    validate_fn: Optional[Callable[[Any], bool]] = None,
) -> Any:
    """Read-modify-write *path* under one exclusive lock.

    **Transaction semantics:**
    1. Acquire exclusive lock (blocks other readers and writers)
    2. Read current state (default if missing, empty or corrupt)
    3. Call update_fn(current_state) -> new_state
    4. Atomically replace the document with new_state
    5. Release lock (on every exit path)

    Returns:
        New state returned by update_fn

    Raises:
        LockTimeoutError: If a timeout was given and it expired
        ValidationError: If validate_fn rejects the new state
        TransactionError: On read/write failure
    """
    path = Path(path)
    with state_lock(path, exclusive=True, timeout=timeout):
        current_state = _load_json(path, default)
        new_state = update_fn(current_state)
        atomic_write_json(path, new_state, fsync=fsync, validate_fn=validate_fn)
        return new_state


def validate_suppression_state(data: Any) -> bool:
    """Validate the sounds suppression document.

    **Expected structure:**
    {
        "session_starts": {"<notification id>": <unix seconds>, ...}
    }
    """
    if not isinstance(data, dict):
        return False
    starts = data.get("session_starts")
    if not isinstance(starts, dict):
        return False
    for key, value in starts.items():
        if not isinstance(key, str):
            return False
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
    return True
