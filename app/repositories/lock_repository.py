"""命名锁（named_locks）操作。

表中每行代表一个被持有的锁；expires_at 之后视为已释放，下次获取时清理。
"""
import sqlite3
import time

from app.core.errors import LockStoreError


class NamedLockRepository:
    def __init__(self, db):
        self.db = db

    def try_acquire_named_lock(self, name: str, owner: str, ttl_seconds: int) -> bool:
        """单次尝试获取锁，BEGIN IMMEDIATE 保证跨进程原子性"""
        conn = None
        try:
            conn = self.db._get_connection(autocommit=True)
            now = time.time()
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                "DELETE FROM named_locks WHERE name = ? AND expires_at <= ?",
                (name, now),
            )
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO named_locks (name, owner, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (name, owner, now, now + max(1, int(ttl_seconds))),
            )
            conn.execute("COMMIT")
            return cursor.rowcount > 0
        except sqlite3.Error as exc:
            _rollback_quietly(conn)
            raise LockStoreError(f"获取锁 {name} 失败: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

    def acquire_named_lock(
        self,
        name: str,
        owner: str,
        *,
        timeout_seconds: float,
        ttl_seconds: int,
        poll_interval_seconds: float = 0.5,
    ) -> bool:
        """获取锁，持有者存在时最多等待 timeout_seconds"""
        deadline = time.monotonic() + max(0.0, float(timeout_seconds))
        while True:
            if self.try_acquire_named_lock(name, owner, ttl_seconds):
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(poll_interval_seconds, remaining))

    def release_named_lock(self, name: str, owner: str) -> bool:
        """仅释放 owner 持有的锁；返回是否真正删除了记录"""
        conn = None
        try:
            conn = self.db._get_connection()
            cursor = conn.execute(
                "DELETE FROM named_locks WHERE name = ? AND owner = ?",
                (name, owner),
            )
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as exc:
            _rollback_quietly(conn)
            raise LockStoreError(f"释放锁 {name} 失败: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

    def get_lock_holder(self, name: str) -> str | None:
        conn = self.db._get_connection()
        try:
            row = conn.execute(
                "SELECT owner FROM named_locks WHERE name = ? AND expires_at > ?",
                (name, time.time()),
            ).fetchone()
        finally:
            conn.close()
        return row["owner"] if row else None

    def list_active_locks(self) -> list[dict]:
        conn = self.db._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT name, owner, acquired_at, expires_at
                FROM named_locks
                WHERE expires_at > ?
                ORDER BY acquired_at
                """,
                (time.time(),),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]


def _rollback_quietly(conn):
    if conn is None or not conn.in_transaction:
        return
    try:
        conn.rollback()
    except sqlite3.Error:
        pass
