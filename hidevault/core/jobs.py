"""
Background Hide Jobs
====================

Hide batches run off the caller's thread, one batch at a time. Each
file is processed independently: a failure is recorded and the batch
moves on to the next file.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from hidevault.core.errors import IOFailure, JobAlreadyRunning, VaultError
from hidevault.core.models import VaultEntry
from hidevault.core.settings import SecurityLevel


HideOne = Callable[[Path, SecurityLevel], VaultEntry]
ProgressCallback = Callable[[int, int, Path], None]


@dataclass(frozen=True, slots=True)
class FileFailure:
    """One file that could not be hidden."""

    path: Path
    error: VaultError

    @property
    def reason(self) -> str:
        return self.error.user_message


@dataclass(slots=True)
class BatchSummary:
    """
    Outcome of a hide batch.

    Attributes:
        level: Security level the batch ran under
        total: Number of paths submitted
        succeeded: Entries created, in submission order
        failures: Files that were skipped
        persistence_failed: Set when the manifest could not be saved
            after the batch; the files were still hidden
    """

    level: SecurityLevel
    total: int
    succeeded: list[VaultEntry] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    persistence_failed: bool = False

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def offers_delete_originals(self) -> bool:
        """Advanced batches leave originals in place until confirmed."""
        return self.level is SecurityLevel.ADVANCED and bool(self.succeeded)


class HideJob:
    """Handle for a submitted batch."""

    __slots__ = ("paths", "level", "_done", "_summary")

    def __init__(self, paths: Sequence[Path], level: SecurityLevel) -> None:
        self.paths = tuple(paths)
        self.level = level
        self._done = threading.Event()
        self._summary: Optional[BatchSummary] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def summary(self) -> Optional[BatchSummary]:
        return self._summary

    def wait(self, timeout: Optional[float] = None) -> BatchSummary:
        """
        Block until the batch has finished.

        Raises:
            TimeoutError: If the batch is still running after ``timeout``
        """
        if not self._done.wait(timeout):
            raise TimeoutError("Hide batch still running")
        assert self._summary is not None
        return self._summary

    def _finish(self, summary: BatchSummary) -> None:
        self._summary = summary
        self._done.set()


class BackgroundJobRunner:
    """
    Runs hide batches on a daemon worker thread.

    Usage:
        runner = BackgroundJobRunner()
        job = runner.submit(paths, level, engine_hide_one)
        summary = job.wait()
    """

    __slots__ = ("_lock", "_current", "_log")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[HideJob] = None
        self._log = logging.getLogger("hidevault.jobs")

    @property
    def is_busy(self) -> bool:
        with self._lock:
            return self._current is not None and not self._current.done

    def submit(
        self,
        paths: Sequence[Path],
        level: SecurityLevel,
        hide_one: HideOne,
        on_progress: Optional[ProgressCallback] = None,
        on_finished: Optional[Callable[[BatchSummary], None]] = None,
    ) -> HideJob:
        """
        Start a batch.

        ``on_progress`` is called after every file and ``on_finished``
        once at the end, both on the worker thread. ``on_finished`` runs
        before waiters are released, so it may still amend the summary.

        Raises:
            JobAlreadyRunning: If the previous batch has not finished
        """
        with self._lock:
            if self._current is not None and not self._current.done:
                raise JobAlreadyRunning()
            job = HideJob(paths, level)
            self._current = job

        worker = threading.Thread(
            target=self._run,
            args=(job, hide_one, on_progress, on_finished),
            name="hidevault-hide-batch",
            daemon=True,
        )
        worker.start()
        return job

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the current batch (if any) has finished. Returns False on timeout."""
        with self._lock:
            job = self._current
        if job is None or job.done:
            return True
        try:
            job.wait(timeout)
        except TimeoutError:
            self._log.warning("Hide batch still running after %s seconds", timeout)
            return False
        return True

    def _run(
        self,
        job: HideJob,
        hide_one: HideOne,
        on_progress: Optional[ProgressCallback],
        on_finished: Optional[Callable[[BatchSummary], None]],
    ) -> None:
        summary = BatchSummary(level=job.level, total=len(job.paths))
        try:
            for index, path in enumerate(job.paths, start=1):
                try:
                    summary.succeeded.append(hide_one(path, job.level))
                except VaultError as e:
                    self._log.warning("Could not hide %s: %s", path.name, e)
                    summary.failures.append(FileFailure(path, e))
                except Exception as e:
                    self._log.exception("Unexpected error hiding %s", path.name)
                    summary.failures.append(FileFailure(path, IOFailure(str(e))))

                if on_progress is not None:
                    try:
                        on_progress(index, summary.total, path)
                    except Exception:
                        self._log.exception("Progress callback failed")

            self._log.info(
                "Hide batch finished: %d of %d succeeded",
                summary.succeeded_count,
                summary.total,
            )
            if on_finished is not None:
                try:
                    on_finished(summary)
                except Exception:
                    self._log.exception("Batch completion callback failed")
        finally:
            job._finish(summary)
