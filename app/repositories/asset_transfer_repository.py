import sqlite3

from app.logger import logger


class AssetTransferRepository:
    def __init__(self, db):
        self.db = db

    def list_due_transfer_items(self, as_of_date: str) -> list[dict]:
        """已接收、生效日期已到且尚未转移的明细"""
        conn = self.db._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT id, request_id, asset_id, current_owner, new_owner,
                       new_cost_center_id, new_department_id, new_location_id,
                       effective_date, acceptance_date
                FROM asset_transfer_items
                WHERE acceptance_date IS NOT NULL
                  AND transferred_on IS NULL
                  AND effective_date IS NOT NULL
                  AND date(effective_date) <= date(?)
                ORDER BY effective_date, id
                """,
                (as_of_date,),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]

    def apply_transfer_item(self, item: dict, transferred_on: str) -> bool:
        """
        将单条转移明细落地到资产表

        transferred_on 为空才会更新，重复执行时返回 False 且不产生任何写入。
        """
        conn = self.db._get_connection(autocommit=True)
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                """
                UPDATE asset_transfer_items
                SET transferred_on = ?
                WHERE id = ? AND transferred_on IS NULL
                """,
                (transferred_on, int(item["id"])),
            )
            if cursor.rowcount == 0:
                conn.execute("ROLLBACK")
                return False

            asset = conn.execute(
                "SELECT owner_ramco_id FROM assets WHERE id = ?",
                (int(item["asset_id"]),),
            ).fetchone()
            if asset is None:
                # 资产不存在时不盖章，保留明细等待数据修复后的下一次调度
                conn.execute("ROLLBACK")
                logger.warning(
                    f"转移明细 {item['id']} 对应的资产 {item['asset_id']} 不存在，未生效"
                )
                return False
            previous_owner = asset["owner_ramco_id"]

            conn.execute(
                """
                INSERT INTO asset_history (
                    asset_id, transfer_item_id, previous_owner, new_owner,
                    cost_center_id, department_id, location_id, effective_date
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(item["asset_id"]),
                    int(item["id"]),
                    previous_owner,
                    item.get("new_owner"),
                    item.get("new_cost_center_id"),
                    item.get("new_department_id"),
                    item.get("new_location_id"),
                    item.get("effective_date"),
                ),
            )
            conn.execute(
                """
                UPDATE assets
                SET owner_ramco_id = COALESCE(?, owner_ramco_id),
                    cost_center_id = COALESCE(?, cost_center_id),
                    department_id = COALESCE(?, department_id),
                    location_id = COALESCE(?, location_id),
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (
                    item.get("new_owner"),
                    item.get("new_cost_center_id"),
                    item.get("new_department_id"),
                    item.get("new_location_id"),
                    int(item["asset_id"]),
                ),
            )
            conn.execute("COMMIT")
            return True
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
