from datetime import datetime
import sqlite3
from zoneinfo import ZoneInfo

from app.logger import logger


class PendingUserCleanupService:
    def __init__(self, pending_user_repo, *, timezone: ZoneInfo):
        self.pending_user_repo = pending_user_repo
        self.timezone = timezone

    def cleanup_expired_pending_users(self) -> int:
        """删除激活码已过期（24小时内未激活）的待激活用户"""
        now_text = datetime.now(self.timezone).strftime("%Y-%m-%d %H:%M:%S")
        try:
            deleted = self.pending_user_repo.delete_expired_pending_users(now_text)
        except sqlite3.OperationalError as exc:
            # 旧库尚未迁移 activation_expires_at 列
            if "activation_expires_at" in str(exc):
                logger.warning("pending_users 缺少 activation_expires_at 列，请先执行迁移")
                return 0
            raise

        if deleted > 0:
            logger.info(f"已清理 {deleted} 个激活码过期的待激活用户")
        return deleted
