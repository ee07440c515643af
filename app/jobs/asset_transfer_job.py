from app.core.job_runtime import JobRun

JOB_NAME = "process_asset_transfers"
JOB_LABEL = "资产转移任务"


def run_asset_transfer_tick(scheduler) -> JobRun:
    return scheduler.runtime_controller.run_scheduled(
        job_name=JOB_NAME,
        label=JOB_LABEL,
        lock_name=scheduler.asset_transfer_lock_name,
        lock_timeout_seconds=scheduler.asset_transfer_lock_timeout_seconds,
        work=scheduler.asset_transfer_service.effectuate_due_transfers,
    )


def run_asset_transfer_manual(scheduler) -> dict:
    run = scheduler.runtime_controller.run_manual(
        job_name=JOB_NAME,
        label=JOB_LABEL,
        lock_name=scheduler.asset_transfer_lock_name,
        lock_timeout_seconds=scheduler.asset_transfer_lock_timeout_seconds,
        work=scheduler.asset_transfer_service.effectuate_due_transfers,
    )
    return run.as_response()
