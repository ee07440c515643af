import asyncio

from app.core.scheduler_runtime import resolve_worker_count
from app.logger import read_logs
from app.repositories import NamedLockRepository

# 任务 id -> 调度器上对应锁名的属性
SCHEDULER_JOB_LOCKS = {
    "process_asset_transfers": "asset_transfer_lock_name",
    "cleanup_pending_users": "pending_user_cleanup_lock_name",
}


class SystemApiService:
    # 锁轮询与 SQLite 读写都是阻塞调用，统一放到线程池执行

    async def get_logs(self, *, lines: int, keyword: str | None = None):
        log_lines = await asyncio.to_thread(read_logs, lines, keyword)
        return {"logs": log_lines}

    async def list_active_locks(self, *, db):
        lock_repo = NamedLockRepository(db)
        locks = await asyncio.to_thread(lock_repo.list_active_locks)
        return {"locks": locks}

    def get_status(self, *, scheduler):
        running = scheduler is not None and scheduler.running
        jobs = []
        if scheduler is not None:
            for job_id, lock_attr in SCHEDULER_JOB_LOCKS.items():
                job = scheduler.scheduler.get_job(job_id)
                if not job:
                    continue
                next_run = job.next_run_time
                lock_name = getattr(scheduler, lock_attr)
                jobs.append({
                    "id": job_id,
                    "name": job.name,
                    "next_run_time": next_run.isoformat() if next_run else None,
                    "lock_name": lock_name,
                    "lock_held_locally": scheduler.coordinator.is_held_locally(lock_name),
                })
        return {
            "status": "online",
            "scheduler_running": running,
            "instance_id": scheduler.coordinator.instance_id if scheduler is not None else None,
            "worker_count": resolve_worker_count(),
            "jobs": jobs,
        }

    async def run_asset_transfers(self, *, scheduler):
        return await asyncio.to_thread(scheduler.manual_process_asset_transfers)

    async def run_pending_user_cleanup(self, *, scheduler):
        return await asyncio.to_thread(scheduler.manual_cleanup_pending_users)
