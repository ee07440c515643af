from pydantic import BaseModel
from typing import List, Optional


class ManualTriggerResult(BaseModel):
    status: str
    processed: int


class ActiveLock(BaseModel):
    name: str
    owner: str
    acquired_at: float
    expires_at: float


class ActiveLockList(BaseModel):
    locks: List[ActiveLock]


class SchedulerJobStatus(BaseModel):
    id: str
    name: Optional[str] = None
    next_run_time: Optional[str] = None
    lock_name: Optional[str] = None
    lock_held_locally: bool = False


class SchedulerStatus(BaseModel):
    status: str
    scheduler_running: bool
    instance_id: Optional[str] = None
    worker_count: int
    jobs: List[SchedulerJobStatus]


class LogsResponse(BaseModel):
    logs: List[str]
