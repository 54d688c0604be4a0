"""
Activity Logger Service
Records who did what in the billing admin (audit trail)
"""
import sqlite3

from flask import request, g, has_request_context

from billing_admin.adapters.sqlite.core import get_db
from billing_admin.common.utils import get_datetime_range_for_date_range, now_str


class ActionType:
    # Sign-in
    LOGIN = 'login'
    LOGOUT = 'logout'

    # Billing transactions
    TRANSACTION_CREATE = 'transaction_create'
    TRANSACTION_UPDATE = 'transaction_update'
    TRANSACTION_STATUS = 'transaction_status'
    TRANSACTION_PAID = 'transaction_paid'
    TRANSACTION_DELETE = 'transaction_delete'

    # Doctor payments
    DOCTOR_PAYMENT_CREATE = 'doctor_payment_create'
    DOCTOR_PAYMENT_UPDATE = 'doctor_payment_update'
    DOCTOR_PAYMENT_STATUS = 'doctor_payment_status'
    DOCTOR_PAYMENT_DELETE = 'doctor_payment_delete'

    # Expenses
    EXPENSE_CREATE = 'expense_create'
    EXPENSE_UPDATE = 'expense_update'
    EXPENSE_STATUS = 'expense_status'
    EXPENSE_DELETE = 'expense_delete'

    # HMO providers
    HMO_PROVIDER_CREATE = 'hmo_provider_create'
    HMO_PROVIDER_UPDATE = 'hmo_provider_update'
    HMO_PROVIDER_STATUS = 'hmo_provider_status'
    HMO_PROVIDER_DELETE = 'hmo_provider_delete'

    # Reports
    REPORT_VIEW = 'report_view'
    REPORT_EXPORT = 'report_export'


class ActionCategory:
    AUTH = 'auth'
    TRANSACTION = 'transaction'
    DOCTOR_PAYMENT = 'doctor_payment'
    EXPENSE = 'expense'
    HMO_PROVIDER = 'hmo_provider'
    REPORT = 'report'


ACTION_DESCRIPTIONS = {
    ActionType.LOGIN: 'Signed in',
    ActionType.LOGOUT: 'Signed out',

    ActionType.TRANSACTION_CREATE: 'Created billing transaction',
    ActionType.TRANSACTION_UPDATE: 'Updated billing transaction',
    ActionType.TRANSACTION_STATUS: 'Changed transaction status',
    ActionType.TRANSACTION_PAID: 'Marked transaction as paid',
    ActionType.TRANSACTION_DELETE: 'Deleted billing transaction',

    ActionType.DOCTOR_PAYMENT_CREATE: 'Recorded doctor payment',
    ActionType.DOCTOR_PAYMENT_UPDATE: 'Updated doctor payment',
    ActionType.DOCTOR_PAYMENT_STATUS: 'Changed doctor payment status',
    ActionType.DOCTOR_PAYMENT_DELETE: 'Deleted doctor payment',

    ActionType.EXPENSE_CREATE: 'Recorded expense',
    ActionType.EXPENSE_UPDATE: 'Updated expense',
    ActionType.EXPENSE_STATUS: 'Changed expense status',
    ActionType.EXPENSE_DELETE: 'Deleted expense',

    ActionType.HMO_PROVIDER_CREATE: 'Added HMO provider',
    ActionType.HMO_PROVIDER_UPDATE: 'Updated HMO provider',
    ActionType.HMO_PROVIDER_STATUS: 'Changed HMO provider status',
    ActionType.HMO_PROVIDER_DELETE: 'Deleted HMO provider',

    ActionType.REPORT_VIEW: 'Viewed report',
    ActionType.REPORT_EXPORT: 'Exported report',
}


def log_activity(
    action_type: str,
    action_category: str,
    description: str = None,
    target_type: str = None,
    target_id: int = None,
    target_name: str = None,
    amount=0,
    old_value: str = None,
    new_value: str = None,
    user_id: int = None,
    username: str = None
):
    """
    Write one row to activity_logs.

    user_id/username default to g.user. A failure here is printed and
    swallowed so that auditing never breaks the request being audited.
    """
    try:
        db = get_db()

        if user_id is None and has_request_context() and getattr(g, 'user', None):
            user_id = g.user['id']
            username = g.user['username']

        if user_id is None:
            user_id = 0
            username = 'system'

        if description is None:
            description = ACTION_DESCRIPTIONS.get(action_type, action_type)

        ip_address = None
        user_agent = None
        if has_request_context():
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent', '')[:200]

        db.execute("""
            INSERT INTO activity_logs (
                user_id, username, action_type, action_category, description,
                target_type, target_id, target_name, amount, old_value,
                new_value, ip_address, user_agent, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            user_id, username, action_type, action_category, description,
            target_type, target_id, target_name, float(amount or 0), old_value,
            new_value, ip_address, user_agent, now_str()
        ))
        db.commit()

    except sqlite3.Error as e:
        print(f"[ActivityLogger] Error logging activity: {e}")


def _log_filters(action_category, user_id, date_from, date_to, search_text):
    query = " WHERE 1=1"
    params = []

    if user_id:
        query += " AND user_id = ?"
        params.append(user_id)

    if action_category:
        query += " AND action_category = ?"
        params.append(action_category)

    if date_from and date_to:
        datetime_from, datetime_to = get_datetime_range_for_date_range(date_from, date_to)
        query += " AND created_at >= ? AND created_at < ?"
        params.extend([datetime_from, datetime_to])
    elif date_from:
        query += " AND created_at >= ?"
        params.append(f"{date_from} 00:00:00")
    elif date_to:
        _, datetime_to = get_datetime_range_for_date_range(date_to, date_to)
        query += " AND created_at < ?"
        params.append(datetime_to)

    if search_text:
        query += " AND (description LIKE ? OR target_name LIKE ? OR username LIKE ?)"
        pattern = f"%{search_text}%"
        params.extend([pattern, pattern, pattern])

    return query, params


def get_activity_logs(
    action_category: str = None,
    user_id: int = None,
    date_from: str = None,
    date_to: str = None,
    search_text: str = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    """Newest-first log rows matching the filters."""
    db = get_db()
    where, params = _log_filters(action_category, user_id, date_from, date_to, search_text)
    rows = db.execute(
        f"SELECT * FROM activity_logs{where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
        [*params, limit, offset],
    ).fetchall()
    return [dict(row) for row in rows]


def get_logs_count(
    action_category: str = None,
    user_id: int = None,
    date_from: str = None,
    date_to: str = None,
    search_text: str = None
) -> int:
    db = get_db()
    where, params = _log_filters(action_category, user_id, date_from, date_to, search_text)
    return db.execute(f"SELECT COUNT(*) AS count FROM activity_logs{where}", params).fetchone()['count']
