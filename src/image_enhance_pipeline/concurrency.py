"""Bounded job scheduler and single-instance file locking."""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path

from loguru import logger

from .errors import LockError, describe_error

log = logger.bind(stage="concurrency")


def acquire_global_lock(lock_dir: Path, skip: bool = False) -> object | None:
    """Acquire a global file lock for singleton pipeline execution.

    Returns the lock file handle (keep reference to maintain lock),
    or None if locking was skipped.
    Raises LockError if another instance holds the lock.
    """
    log.debug(f"acquire_global_lock(lock_dir={lock_dir}, skip={skip})")

    if skip:
        log.debug("Skipping lock acquisition")
        return None

    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_file = lock_dir / "pipeline.lock"
    fh = open(lock_file, "w")

    try:
        if sys.platform == "win32":
            import msvcrt

            msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl

            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fh.close()
        log.warning(f"Failed to acquire lock at {lock_file}")
        raise LockError("Another pipeline instance is running")

    log.debug(f"Lock acquired at {lock_file}")
    return fh


class JobScheduler:
    """Concurrency-limited FIFO work queue with per-job failure isolation.

    At most `concurrency` jobs run at once; the rest wait in submission order.
    Every job is wrapped so an exception is logged and counted as a failure
    instead of reaching the pool, the caller, or sibling jobs.

    Attributes:
        succeeded: Jobs that returned normally
        failed: Jobs that raised
        peak_active: Highest number of jobs observed running at once
    """

    def __init__(self, concurrency: int = 4) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self._executor = ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="enhance-job"
        )
        self._lock = threading.Lock()
        self._futures: list[Future] = []
        self._active = 0
        self.submitted = 0
        self.succeeded = 0
        self.failed = 0
        self.peak_active = 0

    def __enter__(self) -> JobScheduler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def submit(self, fn: Callable[..., object], *args, label: str = "") -> Future:
        """Queue fn(*args). The returned future resolves to True/False."""
        with self._lock:
            future = self._executor.submit(self._run_safe, fn, args, label)
            self._futures.append(future)
            self.submitted += 1
        return future

    def _run_safe(self, fn: Callable[..., object], args: tuple, label: str) -> bool:
        """Run one job, converting any exception into a counted failure."""
        name = label or getattr(fn, "__name__", repr(fn))
        with self._lock:
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)
        try:
            fn(*args)
        except Exception as e:
            with self._lock:
                self.failed += 1
            log.error(f"Job failed: {name}: {describe_error(e)}")
            return False
        else:
            with self._lock:
                self.succeeded += 1
            log.debug(f"Job done: {name}")
            return True
        finally:
            with self._lock:
                self._active -= 1

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    def await_all_submitted(self) -> None:
        """Block until every job submitted before this call has finished.

        Jobs submitted while waiting are not waited for.
        """
        with self._lock:
            pending = list(self._futures)
        if pending:
            log.debug(f"Waiting for {len(pending)} submitted jobs")
            wait(pending)

    def close(self) -> None:
        """Shut down the pool, letting queued and running jobs finish."""
        self._executor.shutdown(wait=True)
