"""Mutual exclusion over a shared working directory.

Two layers are held together. A mutex shared by every service in the
interpreter coordinates runs within one process. A lock file, created exclusively, coordinates separate processes
on a best-effort basis: while held, a heartbeat thread keeps its modification
time fresh so other processes can tell a live holder from an abandoned one.
"""

import asyncio
import contextlib
import logging
import os
import threading
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import BinaryIO, Self

from fixture_runner.errors import LockError

log = logging.getLogger(__name__)

STALE_AFTER = 1.5
POLL_INTERVAL = 0.5
HEARTBEAT_INTERVAL = 0.5

_PROCESS_GUARD = threading.Lock()


@dataclass(kw_only=True)
class FileLock:
    """Held lock file plus the heartbeat thread that keeps it alive."""

    path: Path
    handle: BinaryIO = field(repr=False)
    done: threading.Event = field(default_factory=threading.Event, repr=False)
    heartbeat: threading.Thread | None = field(default=None, repr=False)

    def start(self, interval: float) -> None:
        """Start bumping the lock file's modification time every ``interval``."""
        self.heartbeat = threading.Thread(
            target=_heartbeat,
            args=(self.handle, self.path, self.done, interval),
            name="fixture-runner-flock",
            daemon=True,
        )
        self.heartbeat.start()

    def release(self) -> None:
        """Stop the heartbeat, then remove the lock file."""
        self.done.set()
        if self.heartbeat is not None:
            self.heartbeat.join()
        self.handle.close()
        with contextlib.suppress(OSError):
            self.path.unlink()


@dataclass(kw_only=True)
class Lock:
    """Handle for both lock layers, released together."""

    path: Path
    guard: threading.Lock = field(repr=False)
    lockfile: FileLock | None = None
    released: bool = False

    @property
    def has_file_lock(self) -> bool:
        """Whether the cross-process layer is held (False when degraded)."""
        return self.lockfile is not None

    def release(self) -> None:
        """Release the file layer first, then the in-process layer."""
        if self.released:
            return
        self.released = True
        try:
            if self.lockfile is not None:
                self.lockfile.release()
        finally:
            self.guard.release()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class LockService:
    """Hands out locks over working directories.

    Any number of services may exist; all of them share one process-wide
    mutex as the in-process layer, so two sessions in the same interpreter
    exclude each other even when the file layer is unavailable.
    Timing parameters default to the values other runs expect, so processes
    sharing a directory must agree on them.
    """

    def __init__(
        self,
        *,
        stale_after: float = STALE_AFTER,
        poll_interval: float = POLL_INTERVAL,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
    ) -> None:
        self.stale_after = stale_after
        self.poll_interval = poll_interval
        self.heartbeat_interval = heartbeat_interval
        self._guard = _PROCESS_GUARD

    def acquire(self, path: Path) -> Lock:
        """Block until both layers are held for ``path``.

        The file layer degrades to not held when the filesystem refuses the
        lock file for any reason other than it already existing.

        Raises:
            LockError: If the heartbeat thread cannot be started

        """
        self._guard.acquire()
        try:
            lockfile = self._acquire_file(path)
        except BaseException:
            self._guard.release()
            raise
        return Lock(path=path, guard=self._guard, lockfile=lockfile)

    @asynccontextmanager
    async def holding(self, path: Path) -> AsyncGenerator[Lock, None]:
        """Hold a lock for the duration of the block without blocking the loop.

        If the waiting task is cancelled, the worker thread still finishes
        acquiring; the lock it obtains is released as soon as it arrives.
        """
        acquiring = asyncio.ensure_future(asyncio.to_thread(self.acquire, path))
        try:
            lock = await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            acquiring.add_done_callback(_release_abandoned)
            raise
        try:
            yield lock
        finally:
            lock.release()

    def _acquire_file(self, path: Path) -> FileLock | None:
        handle = self._create(path)
        if handle is None:
            return None

        lockfile = FileLock(path=path, handle=handle)
        try:
            lockfile.start(self.heartbeat_interval)
        except RuntimeError as e:
            lockfile.release()
            raise LockError(f"failed to start lock heartbeat: {e}") from e
        return lockfile

    def _create(self, path: Path) -> BinaryIO | None:
        while True:
            try:
                return path.open("xb")
            except FileExistsError:
                pass
            except OSError as e:
                log.warning("File locking unavailable at %s: %s", path, e)
                return None

            try:
                modified = path.stat().st_mtime
            except FileNotFoundError:
                # Previous holder finished between our attempts.
                continue
            except OSError as e:
                log.warning("Cannot inspect lock file %s: %s", path, e)
                return None

            now = time.time()
            if modified < now - self.stale_after or modified > now + self.stale_after:
                log.warning("Taking over stale lock file %s", path)
                try:
                    return path.open("wb")
                except OSError as e:
                    log.warning("Cannot take over lock file %s: %s", path, e)
                    return None

            log.debug("Lock file %s is held, retrying", path)
            time.sleep(self.poll_interval)


def _release_abandoned(acquiring: "asyncio.Future[Lock]") -> None:
    if acquiring.cancelled() or acquiring.exception() is not None:
        return
    log.debug("Releasing lock acquired for a cancelled waiter")
    acquiring.result().release()


def _heartbeat(
    handle: BinaryIO, path: Path, done: threading.Event, interval: float
) -> None:
    while not done.wait(interval):
        try:
            os.ftruncate(handle.fileno(), 0)
            os.utime(path)
        except OSError:
            log.debug("Lock heartbeat stopped for %s", path, exc_info=True)
            return
