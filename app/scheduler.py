"""
定时任务调度器 - 资产转移生效与待激活用户清理

每个 worker 进程持有一个调度器实例，所有实例配置相同、几乎同时触发；
通过共享存储中的命名锁保证每次 tick 只有一个进程真正执行。
"""
from apscheduler.schedulers.background import BackgroundScheduler
from zoneinfo import ZoneInfo
from dotenv import load_dotenv

from app.core.job_runtime import JobRun, JobRuntimeController
from app.core.lock_coordinator import LockCoordinator
from app.core.scheduler_config import SchedulerConfig, load_scheduler_config
from app.core.scheduler_runtime import should_start_scheduler_runtime
from app.database import Database
from app.jobs.asset_transfer_job import run_asset_transfer_manual, run_asset_transfer_tick
from app.jobs.pending_user_cleanup_job import (
    run_pending_user_cleanup_manual,
    run_pending_user_cleanup_tick,
)
from app.jobs.scheduler_startup_jobs import register_scheduler_jobs
from app.logger import logger
from app.repositories import AssetTransferRepository, NamedLockRepository, PendingUserRepository
from app.services.asset_transfer_service import AssetTransferService
from app.services.pending_user_service import PendingUserCleanupService

load_dotenv()


class AssetJobScheduler:
    """资产后台定时任务调度器"""

    _CONFIG_FIELDS = (
        "enable_asset_transfer_job",
        "asset_transfer_cron",
        "asset_transfer_lock_name",
        "asset_transfer_lock_timeout_seconds",
        "enable_pending_user_cleanup",
        "pending_user_cleanup_interval_minutes",
        "pending_user_cleanup_lock_name",
        "pending_user_cleanup_lock_timeout_seconds",
        "lock_ttl_seconds",
        "lock_poll_interval_seconds",
        "job_misfire_grace_seconds",
    )

    def __init__(
        self,
        db: Database | None = None,
        config: SchedulerConfig | None = None,
        coordinator: LockCoordinator | None = None,
    ):
        config = config or load_scheduler_config()
        self.config = config
        self.timezone = ZoneInfo(config.scheduler_timezone)
        self.scheduler = BackgroundScheduler(timezone=self.timezone)
        self._apply_scheduler_config(config)

        self.db = db or Database()
        self.lock_repo = NamedLockRepository(self.db)
        self.coordinator = coordinator or LockCoordinator(
            self.lock_repo,
            ttl_seconds=self.lock_ttl_seconds,
            poll_interval_seconds=self.lock_poll_interval_seconds,
        )
        self.runtime_controller = JobRuntimeController(self.coordinator)
        self.asset_transfer_service = AssetTransferService(
            AssetTransferRepository(self.db),
            timezone=self.timezone,
        )
        self.pending_user_service = PendingUserCleanupService(
            PendingUserRepository(self.db),
            timezone=self.timezone,
        )

    def _apply_scheduler_config(self, config):
        for field in self._CONFIG_FIELDS:
            setattr(self, field, getattr(config, field))

    def process_asset_transfers(self) -> JobRun:
        """定时 tick：处理生效日期已到的资产转移（不抛异常）"""
        return run_asset_transfer_tick(self)

    def manual_process_asset_transfers(self) -> dict:
        """手动触发资产转移生效，返回 {"status": "success", "processed": N}"""
        return run_asset_transfer_manual(self)

    def cleanup_pending_users(self) -> JobRun:
        return run_pending_user_cleanup_tick(self)

    def manual_cleanup_pending_users(self) -> dict:
        return run_pending_user_cleanup_manual(self)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self):
        """启动定时任务"""
        if self.scheduler.running:
            logger.warning("定时任务已在运行，忽略重复启动")
            return
        register_scheduler_jobs(self)
        logger.info(f"定时任务调度器已启动 (instance={self.coordinator.instance_id})")

    def stop(self):
        """停止定时任务（等待正在执行的任务结束，使其释放锁）"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("定时任务已停止")

    def get_next_run_time(self, job_id: str = "process_asset_transfers"):
        """获取下次运行时间"""
        job = self.scheduler.get_job(job_id)
        if job:
            return job.next_run_time
        return None


def should_start_scheduler() -> tuple[bool, str]:
    return should_start_scheduler_runtime()
