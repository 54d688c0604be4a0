import sqlite3
from typing import Optional

from billing_admin.adapters.sqlite.core import get_db
from billing_admin.common.utils import now_str


class AuthRepository:
    """Low-level DB operations for users."""

    def get_raw_by_username(self, username: str) -> Optional[sqlite3.Row]:
        db = get_db()
        return db.execute(
            "SELECT * FROM users WHERE username = ?", (username,)
        ).fetchone()

    def get_by_id(self, user_id: int) -> Optional[sqlite3.Row]:
        db = get_db()
        return db.execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        ).fetchone()

    def update_failed_attempts(self, user_id: int, failed_attempts: int, locked_until: Optional[str]):
        db = get_db()
        db.execute(
            "UPDATE users SET failed_attempts=?, locked_until=? WHERE id=?",
            (failed_attempts, locked_until, user_id),
        )
        db.commit()

    def reset_failed_attempts(self, user_id: int):
        db = get_db()
        db.execute(
            "UPDATE users SET failed_attempts=0, locked_until=NULL WHERE id=?",
            (user_id,),
        )
        db.commit()

    def set_last_login(self, user_id: int):
        db = get_db()
        try:
            db.execute(
                "UPDATE users SET last_login=? WHERE id=?",
                (now_str(), user_id),
            )
            db.commit()
        except sqlite3.OperationalError:
            db.rollback()

    def create_user(self, username: str, password_hash: bytes, role: str = "cashier", full_name: Optional[str] = None):
        db = get_db()
        try:
            db.execute(
                "INSERT INTO users (username, password_hash, role, full_name) VALUES (?, ?, ?, ?)",
                (username, password_hash, role, full_name),
            )
            db.commit()
            return True
        except sqlite3.Error as e:
            print(f"[AuthRepository] Error creating user: {e}")
            return False

    def update_user_password(self, user_id: int, password_hash: bytes):
        db = get_db()
        try:
            db.execute(
                "UPDATE users SET password_hash = ? WHERE id = ?",
                (password_hash, user_id),
            )
            db.commit()
            return True
        except sqlite3.Error as e:
            print(f"[AuthRepository] Error updating user password: {e}")
            return False
