from fastapi.testclient import TestClient
from app.main import app


_CONFIG_ENV_KEYS = (
    "SCHEDULER_TIMEZONE",
    "ENABLE_ASSET_TRANSFER_JOB",
    "ASSET_TRANSFER_CRON",
    "ASSET_TRANSFER_LOCK_NAME",
    "ASSET_TRANSFER_LOCK_TIMEOUT_SECONDS",
    "ENABLE_PENDING_USER_CLEANUP",
    "PENDING_USER_CLEANUP_INTERVAL_MINUTES",
    "PENDING_USER_CLEANUP_LOCK_NAME",
    "PENDING_USER_CLEANUP_LOCK_TIMEOUT_SECONDS",
    "LOCK_TTL_SECONDS",
    "LOCK_POLL_INTERVAL_SECONDS",
    "JOB_MISFIRE_GRACE_SECONDS",
    "ADMIN_API_TOKEN",
    "ENABLE_JOB_METRIC_LOG",
    "WEB_CONCURRENCY",
    "UVICORN_WORKERS",
)


def _client():
    return TestClient(app)


import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in _CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "assets.db"))
    monkeypatch.setenv("ENABLE_SCHEDULER", "0")


@pytest.fixture
def client():
    with _client() as c:
        yield c


@pytest.fixture
def job_scheduler(monkeypatch):
    from app.scheduler import AssetJobScheduler

    monkeypatch.setenv("ASSET_TRANSFER_LOCK_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("PENDING_USER_CLEANUP_LOCK_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("LOCK_POLL_INTERVAL_SECONDS", "0.02")
    scheduler = AssetJobScheduler()
    yield scheduler
    scheduler.stop()
