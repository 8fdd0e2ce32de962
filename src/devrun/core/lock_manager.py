"""Device lock for cross-process exclusive access to one device.

A lock is a directory ``<lock_dir>/devrun-device-lock-<device_id>`` holding
a ``pid`` file with the owner's process id as plain text. The directory is
prepared under a staging name and renamed into place, so a visible lock
always names its owner.

Every change to a lock directory happens under an exclusive ``flock`` on a
sidecar ``.<lock name>.guard`` file, so checking an owner and removing its
lock is one step among devrun processes. Guard files are never deleted.

Reclamation policy: a waiter that finds an existing lock reads the owner
pid and probes it with signal 0. A live owner is waited on until the
timeout; a dead owner, or a pid that can't be parsed, makes the lock stale
and it is reclaimed immediately. Waiters are not served in arrival order.

Liveness probing uses POSIX signal semantics.
"""

import atexit
import contextlib
import errno
import fcntl
import logging
import os
import re
import shutil
import signal
import tempfile
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from types import FrameType

from ..constants import (
    EXIT_SIGINT,
    EXIT_SIGTERM,
    LOCK_DIR_PREFIX,
    LOCK_PID_FILE,
    LOCK_POLL_INTERVAL,
    LOCK_TIMEOUT,
)
from ..errors import LockError, LockTimeoutError
from ..models import DeviceLockInfo
from .wait import await_condition

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def lock_path(device_id: str, lock_dir: Path | None = None) -> Path:
    """Get the lock directory for a device."""
    base = lock_dir or Path(tempfile.gettempdir())
    return base / f"{LOCK_DIR_PREFIX}{_UNSAFE_CHARS.sub('_', device_id)}"


def guard_path(path: Path) -> Path:
    """Get the guard file serializing changes to a lock directory."""
    return path.with_name(f".{path.name}.guard")


@contextlib.contextmanager
def _guarded(path: Path) -> Iterator[None]:
    """Hold the exclusive guard for a lock directory."""
    with open(guard_path(path), "a") as guard:
        fcntl.flock(guard, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(guard, fcntl.LOCK_UN)


def _is_pid_running(pid: int) -> bool:
    """Check if a process with given PID is running."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)  # Signal 0 doesn't kill, just checks
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Exists but belongs to another user
    except OSError:
        return False
    return True


def _read_owner(path: Path) -> int | None:
    """Read the owner pid of a lock directory.

    Returns:
        The pid, or None if the pid file is corrupt

    Raises:
        FileNotFoundError: If the lock or its pid file is gone
    """
    try:
        return int((path / LOCK_PID_FILE).read_text().strip())
    except ValueError:
        return None
    except NotADirectoryError:
        return None


class DeviceLock:
    """Exclusive lease on one device.

    Use :func:`acquire_device_lock` or :func:`hold_device_lock` rather than
    constructing this directly.
    """

    def __init__(
        self,
        device_id: str,
        lock_dir: Path | None = None,
        timeout: float = LOCK_TIMEOUT,
        poll_interval: float = LOCK_POLL_INTERVAL,
    ) -> None:
        self.device_id = device_id
        self.path = lock_path(device_id, lock_dir)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> "DeviceLock":
        """Block until the lock is held by this process.

        Raises:
            LockTimeoutError: If the timeout elapses first
            LockError: If the lock directory can't be created
        """
        if self._held:
            return self

        logger.info("Acquiring device lock...")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not await_condition(self._try_acquire, self.poll_interval, self.timeout):
            raise LockTimeoutError(
                f"Failed to acquire device lock for {self.device_id} within "
                f"{self.timeout:g} seconds. Please try again later."
            )
        self._held = True
        logger.info("✓ Device lock acquired")
        return self

    def release(self) -> None:
        """Release the lock if held. Safe to call repeatedly; never raises."""
        if not self._held:
            return
        self._held = False
        try:
            with _guarded(self.path):
                if _read_owner(self.path) == os.getpid():
                    shutil.rmtree(self.path)
                    logger.info("✓ Device lock released")
        except OSError:
            pass  # Already gone, or the lock directory itself vanished

    def _try_acquire(self) -> bool:
        """One poll: create the lock, reclaiming a stale one without waiting."""
        with _guarded(self.path):
            if self._try_atomic_create():
                return True

            try:
                owner = _read_owner(self.path)
            except FileNotFoundError:
                # Removed outside devrun, or an empty directory was left behind
                owner = None

            if owner is not None and _is_pid_running(owner):
                return False

            logger.info("Removing stale device lock...")
            if not self._reclaim(owner):
                return False
            return self._try_atomic_create()

    def _try_atomic_create(self) -> bool:
        """Move a prepared lock directory into place.

        Renaming a directory onto an existing non-empty one fails, which
        makes the rename the atomic create.

        Returns:
            True if the lock was created, False if one already exists
        """
        staging = Path(tempfile.mkdtemp(prefix=f".{self.path.name}.", dir=self.path.parent))
        try:
            (staging / LOCK_PID_FILE).write_text(str(os.getpid()))
            try:
                os.rename(staging, self.path)
            except OSError as e:
                if isinstance(e, FileExistsError) or e.errno in (errno.EEXIST, errno.ENOTEMPTY):
                    return False
                raise LockError(f"Error acquiring device lock: {e}") from e
            return True
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _reclaim(self, stale_owner: int | None) -> bool:
        """Remove a stale lock. Must be called with the guard held.

        The owner is read again first; a lock that now names a different
        live process is left in place.

        Returns:
            True if the lock path is free afterwards
        """
        try:
            current = _read_owner(self.path)
        except FileNotFoundError:
            current = None
        if current is not None and current != stale_owner and _is_pid_running(current):
            logger.debug(f"Device lock was taken over by PID {current}")
            return False
        shutil.rmtree(self.path, ignore_errors=True)
        return not self.path.exists()


def acquire_device_lock(
    device_id: str,
    timeout: float = LOCK_TIMEOUT,
    poll_interval: float = LOCK_POLL_INTERVAL,
    lock_dir: Path | None = None,
) -> DeviceLock:
    """Acquire the lock for a device.

    Args:
        device_id: Serial or udid of the device
        timeout: Seconds to wait for a live holder
        poll_interval: Seconds between attempts while a live holder exists
        lock_dir: Directory for lock directories (system temp dir by default)

    Returns:
        The held lock; call ``release()`` when done

    Raises:
        LockTimeoutError: If the lock stays held past the timeout
    """
    return DeviceLock(device_id, lock_dir, timeout, poll_interval).acquire()


SignalHandler = Callable[[int, FrameType | None], object] | int | None


def _install_signal_handlers(lock: DeviceLock) -> dict[int, SignalHandler]:
    """Release the lock and exit with 128+signal on SIGINT/SIGTERM."""
    if threading.current_thread() is not threading.main_thread():
        return {}

    def handler(signum: int, frame: FrameType | None) -> None:
        lock.release()
        raise SystemExit(EXIT_SIGINT if signum == signal.SIGINT else EXIT_SIGTERM)

    previous: dict[int, SignalHandler] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handler)
    return previous


@contextlib.contextmanager
def hold_device_lock(
    device_id: str,
    timeout: float = LOCK_TIMEOUT,
    poll_interval: float = LOCK_POLL_INTERVAL,
    lock_dir: Path | None = None,
) -> Iterator[DeviceLock]:
    """Hold a device lock for the duration of a ``with`` block.

    The lock is released on normal exit, on exceptions, on SIGINT/SIGTERM
    (the process then exits with 130/143) and at interpreter exit.

    Raises:
        LockTimeoutError: If the lock can't be acquired
    """
    lock = acquire_device_lock(device_id, timeout, poll_interval, lock_dir)
    atexit.register(lock.release)
    previous = _install_signal_handlers(lock)
    try:
        yield lock
    finally:
        lock.release()
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        atexit.unregister(lock.release)


def inspect_lock(device_id: str, lock_dir: Path | None = None) -> DeviceLockInfo:
    """Read the state of a device lock without modifying it."""
    path = lock_path(device_id, lock_dir)
    if not path.exists():
        return DeviceLockInfo(device_id=device_id, path=path)
    try:
        pid = _read_owner(path)
    except FileNotFoundError:
        pid = None
    return DeviceLockInfo(
        device_id=device_id,
        path=path,
        exists=True,
        pid=pid,
        alive=pid is not None and _is_pid_running(pid),
    )


def clear_lock(device_id: str, lock_dir: Path | None = None, force: bool = False) -> bool:
    """Remove a device lock.

    Args:
        device_id: Device the lock is scoped to
        lock_dir: Directory holding lock directories
        force: Also remove a lock whose owner is alive

    Returns:
        True if a lock was removed

    Raises:
        LockError: If the owner is alive and force is not set
    """
    path = lock_path(device_id, lock_dir)
    if not path.exists():
        return False
    with _guarded(path):
        info = inspect_lock(device_id, lock_dir)
        if not info.exists:
            return False
        if info.alive and not force:
            raise LockError(f"Device {device_id} is locked by running process {info.pid}")
        shutil.rmtree(info.path, ignore_errors=True)
        return not info.path.exists()
