from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import os
from time import perf_counter

from app.logger import logger


@dataclass
class MetricSnapshot:
    name: str
    started_at: float
    tags: dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0


def _is_enabled(env_name: str, default: str = "0") -> bool:
    return os.getenv(env_name, default).strip().lower() in ("1", "true", "yes")


@contextmanager
def measure_ms(name: str, **tags: object):
    snapshot = MetricSnapshot(
        name=name,
        started_at=perf_counter(),
        tags={k: str(v) for k, v in tags.items()},
    )
    try:
        yield snapshot
    finally:
        snapshot.elapsed_ms = max((perf_counter() - snapshot.started_at) * 1000.0, 0.0)


def log_job_metric(*, job_name: str, status: str, snapshot: MetricSnapshot, processed: int | None = None):
    """每次 tick / 手动触发一行；status 为 success / skipped / error"""
    if not _is_enabled("ENABLE_JOB_METRIC_LOG", "0"):
        return
    logger.info(
        "perf job metric | job=%s trigger=%s status=%s processed=%s elapsed_ms=%.2f",
        job_name,
        snapshot.tags.get("trigger", "-"),
        status,
        "-" if processed is None else processed,
        snapshot.elapsed_ms,
    )
