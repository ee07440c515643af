"""SQLite schema initialization routines."""

CURRENT_SCHEMA_VERSION = 1


def init_database_schema(conn, logger):
        """初始化数据库表结构"""

        # 开启 WAL 模式以支持多 worker 并发读写
        conn.execute("PRAGMA journal_mode=WAL;")

        cursor = conn.cursor()
        cursor.execute("PRAGMA user_version")
        user_version_row = cursor.fetchone()
        current_version = int(user_version_row[0]) if user_version_row else 0
        if current_version >= CURRENT_SCHEMA_VERSION:
            conn.close()
            return

        # 业务表中的日期时间一律为调度器时区（SCHEDULER_TIMEZONE）的本地时间，
        # 格式 "YYYY-MM-DD HH:MM:SS"，日期为 "YYYY-MM-DD"

        # 命名锁（跨进程互斥，过期时间为 epoch 秒）
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS named_locks (
                name TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                acquired_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """)

        # 资产主表
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS assets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                register_number TEXT,
                owner_ramco_id TEXT,
                cost_center_id INTEGER,
                department_id INTEGER,
                location_id INTEGER,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # 资产转移明细（接收后等待生效日期）
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS asset_transfer_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                request_id INTEGER,
                asset_id INTEGER NOT NULL,
                current_owner TEXT,
                new_owner TEXT,
                new_cost_center_id INTEGER,
                new_department_id INTEGER,
                new_location_id INTEGER,
                effective_date TEXT,
                acceptance_date TEXT,
                transferred_on TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_transfer_items_due
            ON asset_transfer_items(transferred_on, effective_date)
        """)

        # 资产归属历史
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS asset_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                asset_id INTEGER NOT NULL,
                transfer_item_id INTEGER,
                previous_owner TEXT,
                new_owner TEXT,
                cost_center_id INTEGER,
                department_id INTEGER,
                location_id INTEGER,
                effective_date TEXT,
                recorded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_asset_history_asset ON asset_history(asset_id)
        """)

        # 待激活用户（激活码24小时有效）
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS pending_users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL,
                activation_expires_at TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        conn.commit()
        conn.close()
        logger.info(f"数据库结构已初始化: user_version={CURRENT_SCHEMA_VERSION}")
