"""
Staging Purge Timer
===================

Preview copies are plaintext. When the host application loses the
foreground, a purge is scheduled after a short grace period; regaining
the foreground inside that window cancels it, so switching to the
viewer that was just launched does not yank the file out from under it.
Shutdown purges immediately.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional


class StagingPurgeTimer:
    """
    One-shot, cancellable purge trigger.

    Usage:
        timer = StagingPurgeTimer(60.0, dirs.purge_staging)

        # Host lost focus:
        timer.schedule()

        # Host regained focus within the grace period:
        timer.cancel()
    """

    __slots__ = ("_grace", "_purge", "_timer", "_lock", "_log")

    def __init__(self, grace_seconds: float, purge: Callable[[], None]) -> None:
        """
        Args:
            grace_seconds: Delay before the purge runs; 0 purges immediately
            purge: Callable that removes staged files; must not raise
        """
        if grace_seconds < 0:
            raise ValueError("grace_seconds must be >= 0")
        self._grace = grace_seconds
        self._purge = purge
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._log = logging.getLogger("hidevault.lifecycle")

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        """Arm the timer, restarting it if already armed."""
        if self._grace == 0:
            self.cancel()
            self._run()
            return

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._grace, self._on_timeout)
            self._timer.daemon = True
            self._timer.start()
        self._log.debug("Staging purge scheduled in %.1fs", self._grace)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def purge_now(self) -> None:
        """Cancel any pending timer and purge immediately."""
        self.cancel()
        self._run()

    def _on_timeout(self) -> None:
        with self._lock:
            if self._timer is None or threading.current_thread() is not self._timer:
                # Cancelled or superseded after firing
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._purge()
        except Exception:
            self._log.exception("Staging purge failed")
