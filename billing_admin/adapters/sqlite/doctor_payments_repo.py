from typing import Optional, List, Dict

from billing_admin.adapters.sqlite.core import get_db


class DoctorPaymentRepository:
    """Repository for doctor (specialist) payments."""

    _SELECT = """
        SELECT dp.*, s.name AS doctor_name, s.specialization AS doctor_specialization
        FROM doctor_payments dp
        LEFT JOIN specialists s ON s.id = dp.doctor_id
    """

    def insert(self, data: Dict) -> int:
        db = get_db()
        columns = list(data.keys())
        cur = db.execute(
            f"INSERT INTO doctor_payments ({', '.join(columns)}) VALUES ({', '.join(':' + c for c in columns)})",
            data,
        )
        db.commit()
        return cur.lastrowid

    def get_by_id(self, payment_id: int) -> Optional[Dict]:
        db = get_db()
        row = db.execute(f"{self._SELECT} WHERE dp.id = ?", (payment_id,)).fetchone()
        return dict(row) if row else None

    def find(self, status: Optional[str] = None, doctor_id: Optional[int] = None,
             date_from: Optional[str] = None, date_to: Optional[str] = None) -> List[Dict]:
        db = get_db()
        params = {}
        where = ["1=1"]
        if status:
            where.append("dp.status = :status"); params['status'] = status
        if doctor_id:
            where.append("dp.doctor_id = :doctor_id"); params['doctor_id'] = doctor_id
        if date_from:
            where.append("dp.payment_date >= :date_from"); params['date_from'] = date_from
        if date_to:
            where.append("dp.payment_date <= :date_to"); params['date_to'] = date_to
        where_sql = " AND ".join(where)

        rows = db.execute(
            f"{self._SELECT} WHERE {where_sql} ORDER BY dp.payment_date DESC, dp.id DESC",
            params,
        ).fetchall()
        return [dict(r) for r in rows]

    def update(self, payment_id: int, fields: Dict):
        if not fields:
            return
        db = get_db()
        assignments = ', '.join(f"{k} = :{k}" for k in fields)
        db.execute(
            f"UPDATE doctor_payments SET {assignments} WHERE id = :_id",
            {**fields, '_id': payment_id},
        )
        db.commit()

    def delete(self, payment_id: int):
        db = get_db()
        db.execute("DELETE FROM doctor_payments WHERE id = ?", (payment_id,))
        db.commit()

    def total_paid(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> float:
        db = get_db()
        params = []
        where = "status = 'paid'"
        if date_from and date_to:
            where += " AND payment_date BETWEEN ? AND ?"
            params = [date_from, date_to]
        row = db.execute(
            f"SELECT COALESCE(SUM(net_payment), 0) AS total FROM doctor_payments WHERE {where}",
            params,
        ).fetchone()
        return row['total']
