class PendingUserRepository:
    def __init__(self, db):
        self.db = db

    def delete_expired_pending_users(self, now_text: str) -> int:
        conn = self.db._get_connection()
        try:
            cursor = conn.execute(
                """
                DELETE FROM pending_users
                WHERE activation_expires_at IS NOT NULL
                  AND activation_expires_at < ?
                """,
                (now_text,),
            )
            conn.commit()
            return int(cursor.rowcount or 0)
        finally:
            conn.close()
