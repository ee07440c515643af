from functools import partial

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.jobs.asset_transfer_job import run_asset_transfer_tick
from app.jobs.pending_user_cleanup_job import run_pending_user_cleanup_tick
from app.logger import logger


def register_scheduler_jobs(scheduler):
    tz = scheduler.timezone

    if scheduler.enable_asset_transfer_job:
        scheduler.scheduler.add_job(
            func=partial(run_asset_transfer_tick, scheduler),
            trigger=CronTrigger.from_crontab(scheduler.asset_transfer_cron, timezone=tz),
            id="process_asset_transfers",
            name="资产转移生效",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=scheduler.job_misfire_grace_seconds,
            replace_existing=True,
        )
        logger.info(
            "📅 [资产转移任务] 已注册: "
            f"cron='{scheduler.asset_transfer_cron}' tz={tz}, "
            f"lock={scheduler.asset_transfer_lock_name} timeout={scheduler.asset_transfer_lock_timeout_seconds}s"
        )
    else:
        logger.info("资产转移任务未启用: ENABLE_ASSET_TRANSFER_JOB=0")

    if scheduler.enable_pending_user_cleanup:
        logger.info("立即执行首次待激活用户清理...")
        scheduler.scheduler.add_job(
            func=partial(run_pending_user_cleanup_tick, scheduler),
            trigger="date",
            id="cleanup_pending_users_startup",
            replace_existing=True,
        )
        scheduler.scheduler.add_job(
            func=partial(run_pending_user_cleanup_tick, scheduler),
            trigger=IntervalTrigger(minutes=scheduler.pending_user_cleanup_interval_minutes),
            id="cleanup_pending_users",
            name="待激活用户清理",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=scheduler.job_misfire_grace_seconds,
            replace_existing=True,
        )
        logger.info(
            "待激活用户清理已注册: "
            f"每 {scheduler.pending_user_cleanup_interval_minutes} 分钟执行一次, "
            f"lock={scheduler.pending_user_cleanup_lock_name} "
            f"timeout={scheduler.pending_user_cleanup_lock_timeout_seconds}s"
        )
    else:
        logger.info("待激活用户清理未启用: ENABLE_PENDING_USER_CLEANUP=0")

    scheduler.scheduler.start()
