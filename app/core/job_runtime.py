"""
任务运行时 - 获取锁 -> 执行任务 -> 释放锁

定时与手动两种触发共用同一流程，区别只在失败如何暴露：
定时触发的任何异常都止于本次 tick；手动触发把锁竞争和任务异常抛给调用方。
任务失败不在本次 tick 内重试，下一次调度即为重试（固定间隔、无退避），
前提是"到期待处理"的判定单调：本次到期的数据下次仍然到期。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from app.core.errors import LockNotAcquiredError
from app.core.metrics import log_job_metric, measure_ms
from app.logger import logger


class JobTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class JobOutcome(str, Enum):
    SKIPPED = "skipped-lock-contention"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class JobRun:
    job_name: str
    lock_name: str
    trigger: JobTrigger
    lock_held: bool = False
    outcome: JobOutcome | None = None
    processed: int | None = None
    error: BaseException | None = None

    @property
    def metric_status(self) -> str:
        if self.outcome == JobOutcome.SUCCEEDED:
            return "success"
        if self.outcome == JobOutcome.SKIPPED:
            return "skipped"
        return "error"

    def as_response(self) -> dict:
        return {"status": "success", "processed": int(self.processed or 0)}


class JobRuntimeController:
    def __init__(self, coordinator):
        self.coordinator = coordinator

    def _execute(self, run: JobRun, *, label: str, lock_timeout_seconds: float, work: Callable[[], int]):
        try:
            with self.coordinator.hold(run.lock_name, lock_timeout_seconds) as lease:
                if not lease:
                    run.outcome = JobOutcome.SKIPPED
                    if run.trigger == JobTrigger.MANUAL:
                        reason = "store_unavailable" if lease.store_error else "contention"
                        raise LockNotAcquiredError(run.lock_name, reason=reason) from lease.store_error
                    logger.info(f"⏭️  [{label}] 跳过: 未获取到锁 {run.lock_name}")
                    return

                run.lock_held = True
                try:
                    processed = work()
                except Exception as exc:
                    run.outcome = JobOutcome.FAILED
                    run.error = exc
                    logger.error(f"❌ [{label}] 处理失败: {exc}", exc_info=True)
                    raise

                run.processed = int(processed or 0)
                run.outcome = JobOutcome.SUCCEEDED
                logger.info(f"✅ [{label}] 成功处理 {run.processed} 条记录")
        finally:
            # hold() 退出时已释放锁
            run.lock_held = False

    def run_scheduled(
        self,
        *,
        job_name: str,
        label: str,
        lock_name: str,
        lock_timeout_seconds: float,
        work: Callable[[], int],
    ) -> JobRun:
        """定时触发：从不抛出异常，结果只通过日志与返回值观察"""
        run = JobRun(job_name=job_name, lock_name=lock_name, trigger=JobTrigger.SCHEDULED)
        logger.info(f"🔄 [{label}] 开始定时处理...")
        with measure_ms(f"scheduler.{job_name}", trigger=run.trigger.value) as metric:
            try:
                self._execute(run, label=label, lock_timeout_seconds=lock_timeout_seconds, work=work)
            except Exception as exc:
                if run.outcome is None:
                    run.outcome = JobOutcome.FAILED
                    run.error = exc
                    logger.error(f"❌ [{label}] 调度执行异常: {exc}", exc_info=True)
        log_job_metric(
            job_name=job_name, status=run.metric_status, snapshot=metric, processed=run.processed
        )
        return run

    def run_manual(
        self,
        *,
        job_name: str,
        label: str,
        lock_name: str,
        lock_timeout_seconds: float,
        work: Callable[[], int],
    ) -> JobRun:
        """
        手动触发：同步执行

        Raises:
            LockNotAcquiredError: 锁被占用或锁存储不可用
            Exception: 任务本身的异常（锁已释放后再抛出）
        """
        run = JobRun(job_name=job_name, lock_name=lock_name, trigger=JobTrigger.MANUAL)
        label = f"手动触发 {label}"
        logger.info(f"🔄 [{label}] 开始处理...")
        try:
            with measure_ms(f"scheduler.{job_name}", trigger=run.trigger.value) as metric:
                self._execute(run, label=label, lock_timeout_seconds=lock_timeout_seconds, work=work)
        finally:
            log_job_metric(
                job_name=job_name, status=run.metric_status, snapshot=metric, processed=run.processed
            )
        return run
