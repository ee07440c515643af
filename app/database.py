"""
数据库持久化层 - 使用SQLite存储资产与调度锁数据
"""
import sqlite3
import os
from pathlib import Path
import threading

from app.core.database_schema import init_database_schema
from app.logger import logger


def default_db_path() -> str:
    configured = os.getenv("DATABASE_PATH")
    if configured:
        return configured
    project_root = Path(__file__).parent.parent
    return str(project_root / "data" / "assets.db")


class Database:
    """SQLite数据库管理类"""
    _init_lock = threading.Lock()
    _initialized_db_paths = set()

    def __init__(self, db_path: str = None):
        if db_path is None:
            db_path = default_db_path()

        self.db_path = str(db_path)

        # 确保数据目录存在
        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)

        # 初始化数据库（同一路径仅执行一次）
        self._init_database_once()

    def _db_identity(self) -> str:
        return str(Path(self.db_path).expanduser().resolve())

    def _init_database_once(self):
        identity = self._db_identity()
        if identity in self._initialized_db_paths:
            return
        with self._init_lock:
            if identity in self._initialized_db_paths:
                return
            self._init_database()
            self._initialized_db_paths.add(identity)

    def _get_connection(self, autocommit: bool = False):
        """获取数据库连接"""
        conn = sqlite3.connect(
            self.db_path,
            timeout=30,
            isolation_level=None if autocommit else "",
        )
        conn.row_factory = sqlite3.Row  # 支持字典访问
        conn.execute("PRAGMA busy_timeout=5000;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        return conn

    def _init_database(self):
        init_database_schema(self._get_connection(), logger)
