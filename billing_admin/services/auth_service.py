from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from werkzeug.security import check_password_hash

from billing_admin.adapters.sqlite.auth_repo import AuthRepository
from billing_admin.common.utils import clinic_now

ROLES = ('admin', 'cashier')
MAX_FAILED_ATTEMPTS = 5
LOCK_MINUTES = 15


class AuthService:
    """Password login with lockout after repeated failures."""

    def __init__(self, repo: AuthRepository | None = None,
                 max_attempts: int = MAX_FAILED_ATTEMPTS, lock_minutes: int = LOCK_MINUTES):
        self.repo = repo or AuthRepository()
        self.max_attempts = max_attempts
        self.lock_minutes = lock_minutes

    # ---- Internal helpers (lockout logic) ----
    def _is_locked(self, user_row: dict) -> bool:
        locked_until = user_row.get("locked_until")
        if not locked_until:
            return False
        try:
            lu = datetime.fromisoformat(str(locked_until))
        except ValueError:
            return False
        return clinic_now() < lu

    def _increment_failed(self, user_row: dict):
        new_val = (user_row.get("failed_attempts") or 0) + 1
        lock_until: Optional[str] = None
        if new_val >= self.max_attempts:
            lock_until = (clinic_now() + timedelta(minutes=self.lock_minutes)).isoformat(timespec="seconds")
            new_val = 0
        self.repo.update_failed_attempts(user_row["id"], new_val, lock_until)

    def _check_password(self, user_dict: dict, password: str) -> bool:
        stored_hash = user_dict.get("password_hash")
        if isinstance(stored_hash, str):
            stored_hash = stored_hash.encode("utf-8")
        if not stored_hash:
            return False

        if stored_hash.startswith(b"$2"):
            try:
                return bcrypt.checkpw(password.encode("utf-8"), stored_hash)
            except ValueError:
                return False

        # Legacy werkzeug hash (pbkdf2/scrypt); migrate to bcrypt on success
        try:
            ok = check_password_hash(stored_hash.decode("utf-8"), password)
        except ValueError:
            return False
        if ok:
            new_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
            self.repo.update_user_password(user_dict["id"], new_hash)
        return ok

    # ---- Core login attempt ----
    def authenticate(self, username: str, password: str) -> Optional[dict]:
        username = (username or "").strip()
        user = self.repo.get_raw_by_username(username)
        if not user:
            return None

        user_dict = dict(user)
        if not user_dict.get("is_active", 1):
            return None

        # Lockout check before password verify
        if self._is_locked(user_dict):
            return None

        if not self._check_password(user_dict, password or ""):
            self._increment_failed(user_dict)
            return None

        self.repo.reset_failed_attempts(user_dict["id"])
        self.repo.set_last_login(user_dict["id"])
        return user_dict

    # ---- User creation for CLI / setup ----
    def register_user(self, username: str, password: str, role: str = "cashier", full_name: str | None = None) -> bool:
        if role not in ROLES:
            print(f"[AuthService] Unknown role '{role}', expected one of {ROLES}")
            return False
        if self.repo.get_raw_by_username(username):
            return False

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
        return self.repo.create_user(username, password_hash, role, full_name)
