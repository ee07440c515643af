import time

import pytest

from app.core.errors import LockNotAcquiredError, LockStoreError
from app.core.job_runtime import JobOutcome, JobRuntimeController, JobTrigger
from app.core.lock_coordinator import LockCoordinator
from app.database import Database
from app.repositories import NamedLockRepository

LOCK_NAME = "asset_transfer_processing"


class RecordingStore:
    def __init__(self, *, acquire_result=True, acquire_error=None):
        self.acquire_result = acquire_result
        self.acquire_error = acquire_error
        self.acquire_calls = []
        self.release_calls = []

    def acquire_named_lock(self, name, owner, **kwargs):
        self.acquire_calls.append((name, kwargs["timeout_seconds"]))
        if self.acquire_error is not None:
            raise self.acquire_error
        return self.acquire_result

    def release_named_lock(self, name, owner):
        self.release_calls.append(name)
        return True


class CountingWork:
    def __init__(self, result=0, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _controller(store):
    return JobRuntimeController(LockCoordinator(store, instance_id="worker-a"))


def _run_scheduled(controller, work, timeout=10):
    return controller.run_scheduled(
        job_name="process_asset_transfers",
        label="资产转移任务",
        lock_name=LOCK_NAME,
        lock_timeout_seconds=timeout,
        work=work,
    )


def _run_manual(controller, work, timeout=10):
    return controller.run_manual(
        job_name="process_asset_transfers",
        label="资产转移任务",
        lock_name=LOCK_NAME,
        lock_timeout_seconds=timeout,
        work=work,
    )


def test_scheduled_tick_runs_work_and_releases_lock():
    store = RecordingStore()
    work = CountingWork(result=4)

    run = _run_scheduled(_controller(store), work)

    assert run.trigger == JobTrigger.SCHEDULED
    assert run.outcome == JobOutcome.SUCCEEDED
    assert run.processed == 4
    assert run.lock_held is False
    assert store.acquire_calls == [(LOCK_NAME, 10)]
    assert store.release_calls == [LOCK_NAME]


def test_scheduled_tick_skips_on_contention():
    store = RecordingStore(acquire_result=False)
    work = CountingWork(result=4)

    run = _run_scheduled(_controller(store), work)

    assert run.outcome == JobOutcome.SKIPPED
    assert work.calls == 0
    assert store.release_calls == []


def test_scheduled_tick_is_fail_safe_when_store_unreachable():
    store = RecordingStore(acquire_error=LockStoreError("connection refused"))
    work = CountingWork(result=4)

    run = _run_scheduled(_controller(store), work)

    assert run.outcome == JobOutcome.SKIPPED
    assert work.calls == 0
    assert store.release_calls == []


def test_scheduled_tick_releases_once_when_work_fails_and_next_tick_still_runs():
    store = RecordingStore()
    failing = CountingWork(error=RuntimeError("DB timeout"))
    controller = _controller(store)

    run = _run_scheduled(controller, failing)

    assert run.outcome == JobOutcome.FAILED
    assert str(run.error) == "DB timeout"
    assert store.release_calls == [LOCK_NAME]

    recovered = _run_scheduled(controller, CountingWork(result=2))

    assert recovered.outcome == JobOutcome.SUCCEEDED
    assert recovered.processed == 2
    assert store.release_calls == [LOCK_NAME, LOCK_NAME]


def test_manual_trigger_returns_processed_count():
    store = RecordingStore()

    run = _run_manual(_controller(store), CountingWork(result=3))

    assert run.trigger == JobTrigger.MANUAL
    assert run.as_response() == {"status": "success", "processed": 3}
    assert store.release_calls == [LOCK_NAME]


def test_manual_trigger_raises_on_contention_without_running_work():
    store = RecordingStore(acquire_result=False)
    work = CountingWork(result=3)

    with pytest.raises(LockNotAcquiredError) as exc_info:
        _run_manual(_controller(store), work)

    assert exc_info.value.reason == "contention"
    assert exc_info.value.lock_name == LOCK_NAME
    assert work.calls == 0
    assert store.release_calls == []


def test_manual_trigger_reports_store_failure():
    store = RecordingStore(acquire_error=LockStoreError("connection refused"))
    work = CountingWork(result=3)

    with pytest.raises(LockNotAcquiredError) as exc_info:
        _run_manual(_controller(store), work)

    assert exc_info.value.reason == "store_unavailable"
    assert isinstance(exc_info.value.__cause__, LockStoreError)
    assert work.calls == 0


def test_manual_trigger_propagates_work_error_after_release():
    store = RecordingStore()

    with pytest.raises(RuntimeError, match="DB timeout"):
        _run_manual(_controller(store), CountingWork(error=RuntimeError("DB timeout")))

    assert store.release_calls == [LOCK_NAME]


def test_job_metric_status_per_outcome(monkeypatch):
    statuses = []

    def fake_log_job_metric(*, job_name, status, snapshot, processed=None):
        statuses.append((job_name, status, snapshot.tags.get("trigger")))

    monkeypatch.setattr("app.core.job_runtime.log_job_metric", fake_log_job_metric)

    _run_scheduled(_controller(RecordingStore()), CountingWork(result=1))
    _run_scheduled(_controller(RecordingStore(acquire_result=False)), CountingWork())
    _run_scheduled(_controller(RecordingStore()), CountingWork(error=RuntimeError("boom")))
    with pytest.raises(LockNotAcquiredError):
        _run_manual(_controller(RecordingStore(acquire_result=False)), CountingWork())

    assert statuses == [
        ("process_asset_transfers", "success", "scheduled"),
        ("process_asset_transfers", "skipped", "scheduled"),
        ("process_asset_transfers", "error", "scheduled"),
        ("process_asset_transfers", "skipped", "manual"),
    ]


def test_manual_trigger_while_scheduled_tick_holds_lock(tmp_path):
    db = Database(db_path=str(tmp_path / "shared.db"))
    scheduled_process = LockCoordinator(NamedLockRepository(db), instance_id="worker-a", poll_interval_seconds=0.02)
    admin_process = JobRuntimeController(
        LockCoordinator(NamedLockRepository(db), instance_id="worker-b", poll_interval_seconds=0.02)
    )
    work = CountingWork(result=5)

    with scheduled_process.hold(LOCK_NAME, 1) as lease:
        assert lease.acquired is True
        started = time.monotonic()
        with pytest.raises(LockNotAcquiredError):
            _run_manual(admin_process, work, timeout=0.2)
        elapsed = time.monotonic() - started

    assert work.calls == 0
    assert elapsed < 2

    run = _run_manual(admin_process, work, timeout=0.2)
    assert run.as_response() == {"status": "success", "processed": 5}
    assert work.calls == 1


def test_run_reports_lock_held_until_store_release(monkeypatch):
    from app.core import job_runtime

    runs = []

    class TrackedJobRun(job_runtime.JobRun):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            runs.append(self)

    class ReleaseObservingStore(RecordingStore):
        def __init__(self):
            super().__init__()
            self.lock_held_at_release = []

        def release_named_lock(self, name, owner):
            self.lock_held_at_release.append(runs[-1].lock_held)
            return super().release_named_lock(name, owner)

    monkeypatch.setattr(job_runtime, "JobRun", TrackedJobRun)
    store = ReleaseObservingStore()
    controller = _controller(store)

    ok = _run_scheduled(controller, CountingWork(result=1))
    failed = _run_scheduled(controller, CountingWork(error=RuntimeError("DB timeout")))

    assert store.lock_held_at_release == [True, True]
    assert ok.lock_held is False
    assert failed.lock_held is False
