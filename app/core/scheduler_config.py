from dataclasses import dataclass
from datetime import datetime, timedelta
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger

from app.logger import logger


DEFAULT_TIMEZONE = "Asia/Kuala_Lumpur"
DEFAULT_ASSET_TRANSFER_CRON = "0 3 * * *"
DEFAULT_ASSET_TRANSFER_LOCK_NAME = "asset_transfer_processing"
DEFAULT_PENDING_USER_CLEANUP_LOCK_NAME = "pending_user_cleanup"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"环境变量 {name}={raw} 非法，使用默认值 {default}")
            value = default
    if minimum is not None:
        value = max(minimum, value)
    return value


def _env_float(name: str, default: float, minimum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = float(raw)
        except ValueError:
            logger.warning(f"环境变量 {name}={raw} 非法，使用默认值 {default}")
            value = default
    if minimum is not None:
        value = max(minimum, value)
    return value


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _resolve_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"无效的调度器时区 {name}，使用默认时区 {DEFAULT_TIMEZONE}")
        return DEFAULT_TIMEZONE
    return name


def _resolve_cron(expr: str, timezone: str) -> str:
    try:
        CronTrigger.from_crontab(expr, timezone=ZoneInfo(timezone))
    except ValueError as exc:
        logger.warning(f"无效的 cron 表达式 '{expr}': {exc}，使用默认值 {DEFAULT_ASSET_TRANSFER_CRON}")
        return DEFAULT_ASSET_TRANSFER_CRON
    return expr


def cron_min_interval_seconds(expr: str, timezone: str, samples: int = 8) -> float:
    """估算 cron 表达式相邻两次触发的最小间隔（秒）"""
    tz = ZoneInfo(timezone)
    trigger = CronTrigger.from_crontab(expr, timezone=tz)
    now = datetime.now(tz)
    previous = None
    fire_time = trigger.get_next_fire_time(None, now)
    gaps = []
    for _ in range(samples):
        if fire_time is None:
            break
        if previous is not None:
            gaps.append((fire_time - previous).total_seconds())
        previous = fire_time
        fire_time = trigger.get_next_fire_time(previous, previous + timedelta(seconds=1))
    return min(gaps) if gaps else float("inf")


def clamp_lock_timeout(timeout_seconds: int, interval_seconds: float, *, job_name: str) -> int:
    """锁等待时间必须严格小于调度间隔，否则卡住的获取会与下一次调度重叠"""
    if timeout_seconds < interval_seconds:
        return timeout_seconds
    clamped = max(0, int(interval_seconds) - 1)
    logger.warning(
        f"{job_name} 锁等待时间 {timeout_seconds}s 不小于调度间隔 {interval_seconds:.0f}s，"
        f"已调整为 {clamped}s"
    )
    return clamped


@dataclass(frozen=True)
class SchedulerConfig:
    scheduler_timezone: str
    enable_asset_transfer_job: bool
    asset_transfer_cron: str
    asset_transfer_lock_name: str
    asset_transfer_lock_timeout_seconds: int
    enable_pending_user_cleanup: bool
    pending_user_cleanup_interval_minutes: int
    pending_user_cleanup_lock_name: str
    pending_user_cleanup_lock_timeout_seconds: int
    lock_ttl_seconds: int
    lock_poll_interval_seconds: float
    job_misfire_grace_seconds: int


def load_scheduler_config() -> SchedulerConfig:
    scheduler_timezone = _resolve_timezone(_env_str("SCHEDULER_TIMEZONE", DEFAULT_TIMEZONE))
    asset_transfer_cron = _resolve_cron(
        _env_str("ASSET_TRANSFER_CRON", DEFAULT_ASSET_TRANSFER_CRON),
        scheduler_timezone,
    )
    asset_transfer_lock_name = _env_str("ASSET_TRANSFER_LOCK_NAME", DEFAULT_ASSET_TRANSFER_LOCK_NAME)
    pending_user_cleanup_lock_name = _env_str(
        "PENDING_USER_CLEANUP_LOCK_NAME",
        DEFAULT_PENDING_USER_CLEANUP_LOCK_NAME,
    )
    if asset_transfer_lock_name == pending_user_cleanup_lock_name:
        # 两个任务共用锁名会产生虚假互斥
        logger.warning(
            f"锁名冲突: ASSET_TRANSFER_LOCK_NAME 与 PENDING_USER_CLEANUP_LOCK_NAME 均为 "
            f"{asset_transfer_lock_name}，回退为默认锁名"
        )
        asset_transfer_lock_name = DEFAULT_ASSET_TRANSFER_LOCK_NAME
        pending_user_cleanup_lock_name = DEFAULT_PENDING_USER_CLEANUP_LOCK_NAME

    pending_user_cleanup_interval_minutes = _env_int(
        "PENDING_USER_CLEANUP_INTERVAL_MINUTES", 60, minimum=1
    )

    asset_transfer_lock_timeout_seconds = clamp_lock_timeout(
        _env_int("ASSET_TRANSFER_LOCK_TIMEOUT_SECONDS", 10, minimum=0),
        cron_min_interval_seconds(asset_transfer_cron, scheduler_timezone),
        job_name="资产转移生效任务",
    )
    pending_user_cleanup_lock_timeout_seconds = clamp_lock_timeout(
        _env_int("PENDING_USER_CLEANUP_LOCK_TIMEOUT_SECONDS", 30, minimum=0),
        pending_user_cleanup_interval_minutes * 60,
        job_name="待激活用户清理任务",
    )

    return SchedulerConfig(
        scheduler_timezone=scheduler_timezone,
        enable_asset_transfer_job=_env_bool("ENABLE_ASSET_TRANSFER_JOB", True),
        asset_transfer_cron=asset_transfer_cron,
        asset_transfer_lock_name=asset_transfer_lock_name,
        asset_transfer_lock_timeout_seconds=asset_transfer_lock_timeout_seconds,
        enable_pending_user_cleanup=_env_bool("ENABLE_PENDING_USER_CLEANUP", True),
        pending_user_cleanup_interval_minutes=pending_user_cleanup_interval_minutes,
        pending_user_cleanup_lock_name=pending_user_cleanup_lock_name,
        pending_user_cleanup_lock_timeout_seconds=pending_user_cleanup_lock_timeout_seconds,
        lock_ttl_seconds=_env_int("LOCK_TTL_SECONDS", 3600, minimum=60),
        lock_poll_interval_seconds=_env_float("LOCK_POLL_INTERVAL_SECONDS", 0.5, minimum=0.01),
        job_misfire_grace_seconds=_env_int("JOB_MISFIRE_GRACE_SECONDS", 600, minimum=1),
    )
