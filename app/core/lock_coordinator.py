"""
分布式锁协调器 - 保证多个 worker 进程中同一任务同一时刻只有一个实例在执行

锁由共享存储托管（默认 SQLite named_locks 表），本进程只记录自己持有的 owner 标识。
锁是建议性的：不发放 fencing token，受保护的任务需在行级别保证幂等。
"""
from contextlib import contextmanager
from dataclasses import dataclass
import os
import socket
import threading
from time import perf_counter
from uuid import uuid4

from app.core.errors import LockStoreError
from app.logger import logger


def default_instance_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


@dataclass
class _HeldLock:
    owner: str
    acquired_at: float


@dataclass
class LockLease:
    """hold() 的结果；acquired 为 False 时 store_error 说明是否为存储故障"""

    name: str
    acquired: bool = False
    store_error: LockStoreError | None = None

    def __bool__(self) -> bool:
        return self.acquired


class LockCoordinator:
    def __init__(
        self,
        store,
        *,
        instance_id: str | None = None,
        ttl_seconds: int = 3600,
        poll_interval_seconds: float = 0.5,
    ):
        self.store = store
        self.instance_id = instance_id or default_instance_id()
        self.ttl_seconds = int(ttl_seconds)
        self.poll_interval_seconds = float(poll_interval_seconds)
        # 以 (锁名, 线程) 为键：获取与释放必须发生在同一执行流中
        self._held: dict[tuple[str, int], _HeldLock] = {}
        self._state_lock = threading.Lock()

    def _new_owner(self) -> str:
        # 每次获取都使用新的 owner，同进程内的并发触发也互斥
        return f"{self.instance_id}:{uuid4().hex[:12]}"

    def acquire(self, name: str, timeout_seconds: float) -> bool:
        """
        获取命名锁

        Args:
            name: 锁名（每个定时任务唯一）
            timeout_seconds: 其他持有者存在时的最长等待时间

        Returns:
            bool: 是否获取成功；锁竞争返回 False

        Raises:
            LockStoreError: 锁存储不可用，调用方需按未获取处理
        """
        owner = self._new_owner()
        acquired = self.store.acquire_named_lock(
            name,
            owner,
            timeout_seconds=timeout_seconds,
            ttl_seconds=self.ttl_seconds,
            poll_interval_seconds=self.poll_interval_seconds,
        )
        if not acquired:
            logger.info(f"⏳ 锁 {name} 被其他实例持有 (等待{timeout_seconds}s后超时)")
            return False

        with self._state_lock:
            self._held[(name, threading.get_ident())] = _HeldLock(owner=owner, acquired_at=perf_counter())
        logger.info(f"🔒 已获取锁 {name} (owner={owner})")
        return True

    def release(self, name: str) -> None:
        """释放本执行流持有的锁；未持有时静默返回，存储故障只记录日志"""
        with self._state_lock:
            held = self._held.pop((name, threading.get_ident()), None)
        if held is None:
            logger.info(f"锁 {name} 未由当前执行流持有，忽略释放")
            return

        held_seconds = perf_counter() - held.acquired_at
        if held_seconds > self.ttl_seconds:
            logger.warning(
                f"锁 {name} 持有 {held_seconds:.1f}s 超过 TTL {self.ttl_seconds}s，"
                "期间锁可能已过期，存在并发执行的可能"
            )

        try:
            released = self.store.release_named_lock(name, held.owner)
        except LockStoreError as exc:
            logger.error(f"释放锁 {name} 失败，将在 TTL 到期后自动失效: {exc}")
            return

        if released:
            logger.info(f"🔓 已释放锁 {name} (held={held_seconds:.2f}s)")
        else:
            logger.warning(f"锁 {name} 已过期或被其他实例接管，跳过释放")

    @contextmanager
    def hold(self, name: str, timeout_seconds: float):
        """作用域内持有锁；获取成功时在任何退出路径上都会释放"""
        lease = LockLease(name=name)
        try:
            lease.acquired = self.acquire(name, timeout_seconds)
        except LockStoreError as exc:
            lease.store_error = exc
            logger.error(f"锁存储不可用，按未获取锁 {name} 处理: {exc}")
        try:
            yield lease
        finally:
            if lease.acquired:
                self.release(name)

    def is_held_locally(self, name: str) -> bool:
        with self._state_lock:
            return any(key[0] == name for key in self._held)

    def list_active_locks(self) -> list[dict]:
        return self.store.list_active_locks()
