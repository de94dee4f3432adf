"""
Tests for the background job runner.

Covers: per-file isolation, progress callbacks, summary contents,
one-batch-at-a-time, completion hook ordering.
"""

import threading
from pathlib import Path

import pytest

from hidevault.core.errors import IOFailure, JobAlreadyRunning
from hidevault.core.jobs import BackgroundJobRunner
from hidevault.core.models import Advanced, VaultEntry
from hidevault.core.settings import SecurityLevel


def _fake_hide(path, level):
    if path.name.startswith("bad"):
        raise IOFailure(f"cannot read {path}")
    return VaultEntry.create(f"{path.name}.hvenc", path, Advanced())


class TestBatch:
    def test_partial_failure_isolated(self):
        runner = BackgroundJobRunner()
        paths = [Path("/x/a.txt"), Path("/x/bad.txt"), Path("/x/c.txt")]
        summary = runner.submit(paths, SecurityLevel.ADVANCED, _fake_hide).wait(5)

        assert summary.total == 3
        assert summary.succeeded_count == 2
        assert [e.original_path.name for e in summary.succeeded] == ["a.txt", "c.txt"]
        assert len(summary.failures) == 1
        assert summary.failures[0].path == Path("/x/bad.txt")
        assert summary.failures[0].reason == IOFailure.user_message

    def test_unexpected_exception_recorded(self):
        def explode(path, level):
            raise RuntimeError("boom")

        summary = BackgroundJobRunner().submit([Path("/x/a")], SecurityLevel.FAST_HIDE, explode).wait(5)
        assert summary.succeeded_count == 0
        assert isinstance(summary.failures[0].error, IOFailure)

    def test_progress_reported_per_file(self):
        progress = []
        paths = [Path("/x/a"), Path("/x/bad"), Path("/x/c")]
        BackgroundJobRunner().submit(
            paths,
            SecurityLevel.FAST_HIDE,
            _fake_hide,
            on_progress=lambda i, total, p: progress.append((i, total, p.name)),
        ).wait(5)
        assert progress == [(1, 3, "a"), (2, 3, "bad"), (3, 3, "c")]

    def test_on_finished_runs_before_waiters_release(self):
        def finish(summary):
            summary.persistence_failed = True

        summary = BackgroundJobRunner().submit(
            [Path("/x/a")], SecurityLevel.ADVANCED, _fake_hide, on_finished=finish
        ).wait(5)
        assert summary.persistence_failed

    @pytest.mark.parametrize("level, expected", [
        (SecurityLevel.ADVANCED, True),
        (SecurityLevel.FAST_HIDE, False),
    ])
    def test_delete_originals_offer(self, level, expected):
        summary = BackgroundJobRunner().submit([Path("/x/a")], level, _fake_hide).wait(5)
        assert summary.offers_delete_originals is expected

    def test_no_offer_when_everything_failed(self):
        summary = BackgroundJobRunner().submit([Path("/x/bad")], SecurityLevel.ADVANCED, _fake_hide).wait(5)
        assert not summary.offers_delete_originals


class TestConcurrency:
    def test_second_batch_rejected_while_running(self):
        release = threading.Event()

        def slow(path, level):
            release.wait(5)
            return _fake_hide(path, level)

        runner = BackgroundJobRunner()
        job = runner.submit([Path("/x/a")], SecurityLevel.ADVANCED, slow)
        assert runner.is_busy
        with pytest.raises(JobAlreadyRunning):
            runner.submit([Path("/x/b")], SecurityLevel.ADVANCED, slow)

        release.set()
        job.wait(5)
        assert not runner.is_busy
        runner.submit([Path("/x/b")], SecurityLevel.ADVANCED, _fake_hide).wait(5)

    def test_wait_timeout(self):
        release = threading.Event()

        def slow(path, level):
            release.wait(5)
            return _fake_hide(path, level)

        job = BackgroundJobRunner().submit([Path("/x/a")], SecurityLevel.ADVANCED, slow)
        with pytest.raises(TimeoutError):
            job.wait(0.01)
        release.set()
        assert job.wait(5).succeeded_count == 1
        assert job.done
