from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from app.api.system_api import router as system_api_router
from app.core.scheduler_runtime import resolve_worker_count
from app.logger import logger
from app.scheduler import AssetJobScheduler, should_start_scheduler

# Load environment variables
load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期：每个 worker 进程创建并持有自己的调度器"""
    app.state.scheduler = None
    should_start, reason = should_start_scheduler()
    if should_start:
        scheduler = AssetJobScheduler()
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info(f"调度器已挂载到应用 (workers={resolve_worker_count()}，由分布式锁保证单实例执行)")
    elif reason == "disabled":
        logger.warning("ENABLE_SCHEDULER=0，定时任务未启动")

    try:
        yield
    finally:
        scheduler = app.state.scheduler
        if scheduler:
            scheduler.stop()
            logger.info("定时任务调度器已停止")
        app.state.scheduler = None


app = FastAPI(title="Asset Management Backend", lifespan=lifespan)
app.state.scheduler = None

app.include_router(system_api_router)
