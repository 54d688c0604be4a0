from typing import Optional, List, Dict

from billing_admin.adapters.sqlite.core import get_db


class ExpenseRepository:
    """Repository for clinic operating expenses."""

    def insert(self, data: Dict) -> int:
        db = get_db()
        columns = list(data.keys())
        cur = db.execute(
            f"INSERT INTO expenses ({', '.join(columns)}) VALUES ({', '.join(':' + c for c in columns)})",
            data,
        )
        db.commit()
        return cur.lastrowid

    def get_by_id(self, expense_id: int) -> Optional[Dict]:
        db = get_db()
        row = db.execute(
            """SELECT e.*, u.full_name AS created_by_name
               FROM expenses e LEFT JOIN users u ON u.id = e.created_by
               WHERE e.id = ?""",
            (expense_id,),
        ).fetchone()
        return dict(row) if row else None

    def find(self, status: Optional[str] = None, category: Optional[str] = None,
             date_from: Optional[str] = None, date_to: Optional[str] = None) -> List[Dict]:
        db = get_db()
        params = {}
        where = ["1=1"]
        if status:
            where.append("status = :status"); params['status'] = status
        if category:
            where.append("expense_category = :category"); params['category'] = category
        if date_from:
            where.append("expense_date >= :date_from"); params['date_from'] = date_from
        if date_to:
            where.append("expense_date <= :date_to"); params['date_to'] = date_to
        where_sql = " AND ".join(where)

        rows = db.execute(
            f"SELECT * FROM expenses WHERE {where_sql} ORDER BY expense_date DESC, id DESC",
            params,
        ).fetchall()
        return [dict(r) for r in rows]

    def update(self, expense_id: int, fields: Dict):
        if not fields:
            return
        db = get_db()
        assignments = ', '.join(f"{k} = :{k}" for k in fields)
        db.execute(
            f"UPDATE expenses SET {assignments} WHERE id = :_id",
            {**fields, '_id': expense_id},
        )
        db.commit()

    def delete(self, expense_id: int):
        db = get_db()
        db.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
        db.commit()

    def total_approved(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> float:
        db = get_db()
        params = []
        where = "status = 'approved'"
        if date_from and date_to:
            where += " AND expense_date BETWEEN ? AND ?"
            params = [date_from, date_to]
        row = db.execute(
            f"SELECT COALESCE(SUM(amount), 0) AS total FROM expenses WHERE {where}",
            params,
        ).fetchone()
        return row['total']
