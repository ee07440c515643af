from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.deps import get_db, get_scheduler
from app.core.errors import LockNotAcquiredError
from app.logger import logger
from app.models import ActiveLockList, LogsResponse, ManualTriggerResult, SchedulerStatus
from app.security import require_admin_token
from app.services import SystemApiService

router = APIRouter()
service = SystemApiService()


def _require_scheduler(scheduler):
    if scheduler is None:
        raise HTTPException(status_code=503, detail="调度器未初始化")
    return scheduler


@router.get("/api/logs", response_model=LogsResponse)
async def get_logs(
    lines: int = Query(200, ge=1, le=5000, description="Number of log lines to return"),
    keyword: Optional[str] = Query(None, max_length=100, description="Only lines containing this text"),
):
    return await service.get_logs(lines=lines, keyword=keyword)


@router.get("/api/status", response_model=SchedulerStatus)
async def get_status(scheduler=Depends(get_scheduler)):
    return service.get_status(scheduler=scheduler)


@router.get("/api/jobs/locks", response_model=ActiveLockList, dependencies=[Depends(require_admin_token)])
async def get_active_locks(db=Depends(get_db)):
    return await service.list_active_locks(db=db)


@router.post(
    "/api/jobs/asset-transfers/run",
    response_model=ManualTriggerResult,
    dependencies=[Depends(require_admin_token)],
)
async def run_asset_transfers(scheduler=Depends(get_scheduler)):
    """手动触发资产转移生效"""
    scheduler = _require_scheduler(scheduler)
    try:
        return await service.run_asset_transfers(scheduler=scheduler)
    except LockNotAcquiredError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except Exception as e:
        logger.error(f"手动资产转移失败: {e}")
        raise HTTPException(status_code=500, detail=f"处理失败: {str(e)}")


@router.post(
    "/api/jobs/pending-user-cleanup/run",
    response_model=ManualTriggerResult,
    dependencies=[Depends(require_admin_token)],
)
async def run_pending_user_cleanup(scheduler=Depends(get_scheduler)):
    """手动触发待激活用户清理"""
    scheduler = _require_scheduler(scheduler)
    try:
        return await service.run_pending_user_cleanup(scheduler=scheduler)
    except LockNotAcquiredError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except Exception as e:
        logger.error(f"手动清理待激活用户失败: {e}")
        raise HTTPException(status_code=500, detail=f"处理失败: {str(e)}")
