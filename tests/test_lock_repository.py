import sqlite3
import time

import pytest

from app.core.errors import LockStoreError
from app.database import Database
from app.repositories import NamedLockRepository


def _repo(tmp_path, name="locks.db"):
    return NamedLockRepository(Database(db_path=str(tmp_path / name)))


def test_acquire_is_exclusive_until_release(tmp_path):
    repo = _repo(tmp_path)

    assert repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60) is True
    assert repo.try_acquire_named_lock("asset_transfer_processing", "worker-b", ttl_seconds=60) is False
    assert repo.get_lock_holder("asset_transfer_processing") == "worker-a"

    assert repo.release_named_lock("asset_transfer_processing", "worker-a") is True
    assert repo.try_acquire_named_lock("asset_transfer_processing", "worker-b", ttl_seconds=60) is True


def test_distinct_lock_names_do_not_contend(tmp_path):
    repo = _repo(tmp_path)

    assert repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60) is True
    assert repo.try_acquire_named_lock("pending_user_cleanup", "worker-b", ttl_seconds=60) is True


def test_release_by_non_owner_keeps_holder(tmp_path):
    repo = _repo(tmp_path)
    repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60)

    assert repo.release_named_lock("asset_transfer_processing", "worker-b") is False
    assert repo.release_named_lock("never_acquired", "worker-a") is False
    assert repo.get_lock_holder("asset_transfer_processing") == "worker-a"


def test_expired_lock_can_be_taken_over(tmp_path):
    repo = _repo(tmp_path)
    repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60)

    conn = repo.db._get_connection()
    conn.execute("UPDATE named_locks SET expires_at = ?", (time.time() - 1,))
    conn.commit()
    conn.close()

    assert repo.get_lock_holder("asset_transfer_processing") is None
    assert repo.list_active_locks() == []
    assert repo.try_acquire_named_lock("asset_transfer_processing", "worker-b", ttl_seconds=60) is True
    # 原持有者释放时不会删掉接管者的锁
    assert repo.release_named_lock("asset_transfer_processing", "worker-a") is False
    assert repo.get_lock_holder("asset_transfer_processing") == "worker-b"


def test_acquire_with_timeout_returns_false_after_waiting(tmp_path):
    repo = _repo(tmp_path)
    repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60)

    started = time.monotonic()
    acquired = repo.acquire_named_lock(
        "asset_transfer_processing",
        "worker-b",
        timeout_seconds=0.2,
        ttl_seconds=60,
        poll_interval_seconds=0.05,
    )
    elapsed = time.monotonic() - started

    assert acquired is False
    assert 0.15 <= elapsed < 2


def test_list_active_locks_reports_holder(tmp_path):
    repo = _repo(tmp_path)
    repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60)

    locks = repo.list_active_locks()

    assert len(locks) == 1
    assert locks[0]["name"] == "asset_transfer_processing"
    assert locks[0]["owner"] == "worker-a"
    assert locks[0]["expires_at"] > locks[0]["acquired_at"]


def test_store_errors_are_wrapped():
    class UnreachableDb:
        def _get_connection(self, autocommit=False):
            raise sqlite3.OperationalError("unable to open database file")

    repo = NamedLockRepository(UnreachableDb())

    with pytest.raises(LockStoreError):
        repo.try_acquire_named_lock("asset_transfer_processing", "worker-a", ttl_seconds=60)
    with pytest.raises(LockStoreError):
        repo.release_named_lock("asset_transfer_processing", "worker-a")
