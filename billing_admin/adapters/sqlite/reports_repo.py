from typing import Optional, List, Dict

from billing_admin.adapters.sqlite.core import get_db


class ReportRepository:
    """Read-side queries for the billing reports and the daily ledger table."""

    # ---- Source entries (one row per billing / doctor payment / expense) ----
    def billing_entries(self, date_from: str, date_to: str) -> List[Dict]:
        db = get_db()
        rows = db.execute("""
            SELECT t.id, t.transaction_id, t.amount, t.payment_method, t.status, t.description,
                   t.transaction_date,
                   TRIM(COALESCE(p.first_name, '') || ' ' || COALESCE(p.last_name, '')) AS patient_name,
                   s.name AS specialist_name,
                   (SELECT COUNT(*) FROM billing_transaction_items i WHERE i.billing_transaction_id = t.id) AS items_count,
                   (SELECT COUNT(*) FROM appointment_billing_links l WHERE l.billing_transaction_id = t.id) AS appointments_count
            FROM billing_transactions t
            LEFT JOIN patients p ON p.id = t.patient_id
            LEFT JOIN specialists s ON s.id = t.doctor_id
            WHERE t.transaction_date >= ? AND t.transaction_date <= ?
            ORDER BY t.transaction_date, t.id
        """, (f"{date_from} 00:00:00", f"{date_to} 23:59:59")).fetchall()
        return [dict(r) for r in rows]

    def doctor_payment_entries(self, date_from: str, date_to: str) -> List[Dict]:
        db = get_db()
        rows = db.execute("""
            SELECT dp.id, dp.net_payment, dp.payment_method, dp.status, dp.notes,
                   dp.payment_date, dp.created_at, s.name AS specialist_name
            FROM doctor_payments dp
            LEFT JOIN specialists s ON s.id = dp.doctor_id
            WHERE dp.payment_date BETWEEN ? AND ?
            ORDER BY dp.payment_date, dp.id
        """, (date_from, date_to)).fetchall()
        return [dict(r) for r in rows]

    def expense_entries(self, date_from: str, date_to: str) -> List[Dict]:
        db = get_db()
        rows = db.execute("""
            SELECT id, expense_name, expense_category, amount, payment_method, status,
                   vendor_name, expense_date, created_at
            FROM expenses
            WHERE expense_date BETWEEN ? AND ?
            ORDER BY expense_date, id
        """, (date_from, date_to)).fetchall()
        return [dict(r) for r in rows]

    # ---- daily_transactions ledger ----
    def replace_daily(self, date: str, entries: List[Dict], created_at: str):
        db = get_db()
        db.execute("DELETE FROM daily_transactions WHERE transaction_date = ?", (date,))
        for e in entries:
            db.execute("""
                INSERT INTO daily_transactions (
                    transaction_date, transaction_type, transaction_id, patient_name,
                    specialist_name, amount, payment_method, status, description,
                    items_count, appointments_count, original_transaction_id,
                    original_table, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                date, e['type'], e['transaction_id'], e['patient_name'],
                e['specialist_name'], float(e['amount']), e['payment_method'], e['status'],
                e['description'], e['items_count'], e['appointments_count'],
                e['original_id'], e['original_table'], e.get('time') or created_at,
            ))
        db.commit()

    def get_daily(self, date: str) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM daily_transactions WHERE transaction_date = ? ORDER BY created_at, id",
            (date,),
        ).fetchall()
        return [dict(r) for r in rows]

    # ---- Aggregates ----
    def hmo_by_provider(self, date_from: str, date_to: str, provider: Optional[str] = None) -> List[Dict]:
        db = get_db()
        params = [f"{date_from} 00:00:00", f"{date_to} 23:59:59"]
        provider_sql = ""
        if provider:
            provider_sql = " AND hmo_provider = ?"
            params.append(provider)
        rows = db.execute(f"""
            SELECT hmo_provider AS provider,
                   COALESCE(SUM(amount), 0) AS total_amount,
                   COUNT(*) AS transaction_count,
                   SUM(CASE WHEN status = 'paid' THEN 1 ELSE 0 END) AS paid_count,
                   SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) AS pending_count,
                   COALESCE(SUM(CASE WHEN status = 'paid' THEN amount ELSE 0 END), 0) AS paid_amount
            FROM billing_transactions
            WHERE payment_method = 'hmo'
              AND hmo_provider IS NOT NULL AND hmo_provider != ''
              AND transaction_date >= ? AND transaction_date <= ?{provider_sql}
            GROUP BY hmo_provider
            ORDER BY total_amount DESC
        """, params).fetchall()
        return [dict(r) for r in rows]

    def hmo_transactions(self, date_from: str, date_to: str, provider: Optional[str] = None) -> List[Dict]:
        db = get_db()
        params = [f"{date_from} 00:00:00", f"{date_to} 23:59:59"]
        provider_sql = ""
        if provider:
            provider_sql = " AND t.hmo_provider = ?"
            params.append(provider)
        rows = db.execute(f"""
            SELECT t.id, t.transaction_id, t.hmo_provider, t.hmo_reference_number, t.amount,
                   t.status, t.transaction_date,
                   TRIM(COALESCE(p.first_name, '') || ' ' || COALESCE(p.last_name, '')) AS patient_name
            FROM billing_transactions t
            LEFT JOIN patients p ON p.id = t.patient_id
            WHERE t.payment_method = 'hmo'
              AND t.hmo_provider IS NOT NULL AND t.hmo_provider != ''
              AND t.transaction_date >= ? AND t.transaction_date <= ?{provider_sql}
            ORDER BY t.transaction_date DESC
        """, params).fetchall()
        return [dict(r) for r in rows]

    def doctor_payment_totals(self, date_from: str, date_to: str, doctor_id: Optional[int] = None) -> List[Dict]:
        db = get_db()
        params = [date_from, date_to]
        doctor_sql = ""
        if doctor_id:
            doctor_sql = " AND dp.doctor_id = ?"
            params.append(doctor_id)
        rows = db.execute(f"""
            SELECT dp.doctor_id, s.name AS doctor_name, s.specialization,
                   COALESCE(SUM(CASE WHEN dp.status = 'paid' THEN dp.net_payment ELSE 0 END), 0) AS total_paid,
                   COALESCE(SUM(CASE WHEN dp.status = 'pending' THEN dp.net_payment ELSE 0 END), 0) AS pending_amount,
                   COUNT(*) AS payment_count,
                   SUM(CASE WHEN dp.status = 'paid' THEN 1 ELSE 0 END) AS paid_payments
            FROM doctor_payments dp
            LEFT JOIN specialists s ON s.id = dp.doctor_id
            WHERE dp.payment_date BETWEEN ? AND ?{doctor_sql}
            GROUP BY dp.doctor_id
        """, params).fetchall()
        return [dict(r) for r in rows]

    def doctor_revenue_totals(self, date_from: str, date_to: str, doctor_id: Optional[int] = None) -> List[Dict]:
        db = get_db()
        params = [f"{date_from} 00:00:00", f"{date_to} 23:59:59"]
        doctor_sql = ""
        if doctor_id:
            doctor_sql = " AND t.doctor_id = ?"
            params.append(doctor_id)
        rows = db.execute(f"""
            SELECT t.doctor_id, s.name AS doctor_name, s.specialization,
                   COALESCE(SUM(t.amount), 0) AS total_revenue,
                   COUNT(*) AS transaction_count
            FROM billing_transactions t
            LEFT JOIN specialists s ON s.id = t.doctor_id
            WHERE t.status = 'paid' AND t.doctor_id IS NOT NULL
              AND t.transaction_date >= ? AND t.transaction_date <= ?{doctor_sql}
            GROUP BY t.doctor_id
        """, params).fetchall()
        return [dict(r) for r in rows]
