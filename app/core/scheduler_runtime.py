import os


def env_is_truthy(value: str | None) -> bool:
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


def resolve_worker_count() -> int:
    raw = os.getenv("WEB_CONCURRENCY") or os.getenv("UVICORN_WORKERS") or "1"
    try:
        count = int(raw)
    except (TypeError, ValueError):
        count = 1
    return max(1, count)


def should_start_scheduler_runtime() -> tuple[bool, str]:
    # 任务由分布式锁保护，多 worker 部署时每个进程都启动调度器
    if not env_is_truthy(os.getenv("ENABLE_SCHEDULER", "1")):
        return False, "disabled"
    return True, "ok"
