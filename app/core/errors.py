class JobCoordinationError(Exception):
    """定时任务协调相关异常基类"""


class LockStoreError(JobCoordinationError):
    """锁存储不可用或协议错误（基础设施故障，不是锁竞争）"""


class LockNotAcquiredError(JobCoordinationError):
    """手动触发未能拿到分布式锁"""

    def __init__(self, lock_name: str, reason: str = "contention"):
        self.lock_name = lock_name
        self.reason = reason
        if reason == "store_unavailable":
            message = f"无法获取锁 {lock_name}: 锁存储不可用"
        else:
            message = f"无法获取锁 {lock_name}: 其他实例正在处理"
        super().__init__(message)
