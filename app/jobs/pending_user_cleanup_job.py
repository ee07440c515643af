from app.core.job_runtime import JobRun

JOB_NAME = "cleanup_pending_users"
JOB_LABEL = "待激活用户清理"


def run_pending_user_cleanup_tick(scheduler) -> JobRun:
    return scheduler.runtime_controller.run_scheduled(
        job_name=JOB_NAME,
        label=JOB_LABEL,
        lock_name=scheduler.pending_user_cleanup_lock_name,
        lock_timeout_seconds=scheduler.pending_user_cleanup_lock_timeout_seconds,
        work=scheduler.pending_user_service.cleanup_expired_pending_users,
    )


def run_pending_user_cleanup_manual(scheduler) -> dict:
    run = scheduler.runtime_controller.run_manual(
        job_name=JOB_NAME,
        label=JOB_LABEL,
        lock_name=scheduler.pending_user_cleanup_lock_name,
        lock_timeout_seconds=scheduler.pending_user_cleanup_lock_timeout_seconds,
        work=scheduler.pending_user_service.cleanup_expired_pending_users,
    )
    return run.as_response()
