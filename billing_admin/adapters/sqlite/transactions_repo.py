from typing import Optional, List, Dict

from billing_admin.adapters.sqlite.core import get_db


def _nest(row: Dict) -> Dict:
    """Group the joined patient/doctor columns the way listing pages read them."""
    row['patient'] = {
        'id': row.get('patient_id'),
        'first_name': row.pop('patient_first_name', None),
        'last_name': row.pop('patient_last_name', None),
        'patient_no': row.pop('patient_no', None),
    } if row.get('patient_id') else None
    row['doctor'] = {
        'id': row.get('doctor_id'),
        'name': row.pop('doctor_name', None),
    } if row.get('doctor_id') else None
    return row


class TransactionRepository:
    """Billing transactions, their items, and appointment links."""

    _SELECT = """
        SELECT t.*,
               p.first_name AS patient_first_name, p.last_name AS patient_last_name, p.patient_no,
               s.name AS doctor_name,
               (SELECT COUNT(*) FROM billing_transaction_items i WHERE i.billing_transaction_id = t.id) AS items_count,
               (SELECT COUNT(*) FROM appointment_billing_links l WHERE l.billing_transaction_id = t.id) AS appointments_count
        FROM billing_transactions t
        LEFT JOIN patients p ON p.id = t.patient_id
        LEFT JOIN specialists s ON s.id = t.doctor_id
    """

    def next_transaction_number(self) -> int:
        db = get_db()
        row = db.execute("SELECT COALESCE(MAX(id), 0) + 1 AS next_id FROM billing_transactions").fetchone()
        return row['next_id']

    def insert(self, data: Dict, commit: bool = True) -> int:
        db = get_db()
        columns = list(data.keys())
        placeholders = ', '.join(f":{c}" for c in columns)
        cur = db.execute(
            f"INSERT INTO billing_transactions ({', '.join(columns)}) VALUES ({placeholders})",
            data,
        )
        if commit:
            db.commit()
        return cur.lastrowid

    def insert_item(self, transaction_id: int, item: Dict, commit: bool = True) -> int:
        db = get_db()
        cur = db.execute(
            """INSERT INTO billing_transaction_items (
                billing_transaction_id, item_type, item_name, item_description,
                quantity, unit_price, total_price, lab_test_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                transaction_id, item['item_type'], item['item_name'], item.get('item_description'),
                item.get('quantity', 1), float(item['unit_price']), float(item['total_price']),
                item.get('lab_test_id'),
            ),
        )
        if commit:
            db.commit()
        return cur.lastrowid

    def insert_link(self, transaction_id: int, appointment_id: int, appointment_type: str,
                    appointment_price: float, total_amount: float, commit: bool = True) -> int:
        db = get_db()
        cur = db.execute(
            """INSERT INTO appointment_billing_links (
                appointment_id, billing_transaction_id, appointment_type,
                appointment_price, total_amount, status
            ) VALUES (?, ?, ?, ?, ?, 'pending')""",
            (appointment_id, transaction_id, appointment_type, appointment_price, total_amount),
        )
        if commit:
            db.commit()
        return cur.lastrowid

    def get_by_id(self, transaction_id: int) -> Optional[Dict]:
        db = get_db()
        row = db.execute(f"{self._SELECT} WHERE t.id = ?", (transaction_id,)).fetchone()
        return _nest(dict(row)) if row else None

    def get_items(self, transaction_id: int) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM billing_transaction_items WHERE billing_transaction_id = ? ORDER BY id",
            (transaction_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_links(self, transaction_id: int) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            """SELECT l.*, a.appointment_date, a.appointment_time
               FROM appointment_billing_links l
               JOIN appointments a ON a.id = l.appointment_id
               WHERE l.billing_transaction_id = ?
               ORDER BY l.id""",
            (transaction_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_linked_appointment_ids(self, transaction_id: int) -> List[int]:
        return [link['appointment_id'] for link in self.get_links(transaction_id)]

    def find(self, status: Optional[str] = None, payment_method: Optional[str] = None,
             doctor_id: Optional[int] = None, date_from: Optional[str] = None,
             date_to: Optional[str] = None, hmo_provider: Optional[str] = None) -> List[Dict]:
        """Rows matching the column filters, newest first. Free-text search is applied by the caller."""
        db = get_db()
        params = {}
        where = ["1=1"]
        if status:
            where.append("t.status = :status"); params['status'] = status
        if payment_method:
            where.append("t.payment_method = :payment_method"); params['payment_method'] = payment_method
        if doctor_id:
            where.append("t.doctor_id = :doctor_id"); params['doctor_id'] = doctor_id
        if hmo_provider:
            where.append("t.hmo_provider = :hmo_provider"); params['hmo_provider'] = hmo_provider
        if date_from:
            where.append("t.transaction_date >= :date_from"); params['date_from'] = f"{date_from} 00:00:00"
        if date_to:
            where.append("t.transaction_date <= :date_to"); params['date_to'] = f"{date_to} 23:59:59"
        where_sql = " AND ".join(where)

        rows = db.execute(
            f"{self._SELECT} WHERE {where_sql} ORDER BY t.transaction_date DESC, t.id DESC",
            params,
        ).fetchall()
        return [_nest(dict(r)) for r in rows]

    def update(self, transaction_id: int, fields: Dict, commit: bool = True):
        if not fields:
            return
        db = get_db()
        assignments = ', '.join(f"{k} = :{k}" for k in fields)
        db.execute(
            f"UPDATE billing_transactions SET {assignments} WHERE id = :_id",
            {**fields, '_id': transaction_id},
        )
        if commit:
            db.commit()

    def set_links_status(self, transaction_id: int, status: str, commit: bool = True):
        db = get_db()
        db.execute(
            "UPDATE appointment_billing_links SET status = ? WHERE billing_transaction_id = ?",
            (status, transaction_id),
        )
        if commit:
            db.commit()

    def delete(self, transaction_id: int, commit: bool = True):
        db = get_db()
        db.execute("DELETE FROM billing_transaction_items WHERE billing_transaction_id = ?", (transaction_id,))
        db.execute("DELETE FROM appointment_billing_links WHERE billing_transaction_id = ?", (transaction_id,))
        db.execute("DELETE FROM billing_transactions WHERE id = ?", (transaction_id,))
        if commit:
            db.commit()

    def totals_by_status(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> Dict[str, Dict]:
        """{status: {'count': n, 'amount': sum}}"""
        db = get_db()
        params = []
        where = "1=1"
        if date_from and date_to:
            where = "transaction_date >= ? AND transaction_date <= ?"
            params = [f"{date_from} 00:00:00", f"{date_to} 23:59:59"]
        rows = db.execute(
            f"""SELECT status, COUNT(*) AS count, COALESCE(SUM(amount), 0) AS amount
                FROM billing_transactions WHERE {where} GROUP BY status""",
            params,
        ).fetchall()
        return {r['status']: {'count': r['count'], 'amount': r['amount']} for r in rows}
