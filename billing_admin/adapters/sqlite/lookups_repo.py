from typing import Optional, List, Dict

from billing_admin.adapters.sqlite.core import get_db


class SpecialistRepository:
    """Doctors who receive payments and are credited with revenue."""

    def get_active(self) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            "SELECT id, name, specialization FROM specialists WHERE is_active = 1 ORDER BY name"
        ).fetchall()
        return [dict(r) for r in rows]

    def get_by_id(self, specialist_id: int) -> Optional[Dict]:
        db = get_db()
        row = db.execute("SELECT * FROM specialists WHERE id = ?", (specialist_id,)).fetchone()
        return dict(row) if row else None

    def exists(self, specialist_id: int) -> bool:
        return self.get_by_id(specialist_id) is not None

    def create(self, name: str, specialization: Optional[str] = None) -> int:
        db = get_db()
        cur = db.execute(
            "INSERT INTO specialists (name, specialization) VALUES (?, ?)",
            (name, specialization),
        )
        db.commit()
        return cur.lastrowid


class HmoProviderRepository:
    """HMO companies a transaction can be charged to."""

    def get_active(self) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            "SELECT id, name, code FROM hmo_providers WHERE is_active = 1 ORDER BY name"
        ).fetchall()
        return [dict(r) for r in rows]

    def get_active_names(self) -> List[str]:
        return [p['name'] for p in self.get_active()]

    def get_all(self, is_active: Optional[bool] = None) -> List[Dict]:
        db = get_db()
        where, params = "", ()
        if is_active is not None:
            where, params = "WHERE p.is_active = ?", (1 if is_active else 0,)
        rows = db.execute(
            f"""SELECT p.*,
                       (SELECT COUNT(*) FROM billing_transactions t WHERE t.hmo_provider = p.name) AS transactions_count
                FROM hmo_providers p {where}
                ORDER BY p.name""",
            params,
        ).fetchall()
        return [dict(r) for r in rows]

    def get_by_id(self, provider_id: int) -> Optional[Dict]:
        db = get_db()
        row = db.execute("SELECT * FROM hmo_providers WHERE id = ?", (provider_id,)).fetchone()
        return dict(row) if row else None

    def find_by(self, column: str, value: str, exclude_id: Optional[int] = None) -> Optional[Dict]:
        """Case-insensitive lookup on `name` or `code`, for uniqueness checks."""
        if column not in ('name', 'code'):
            raise ValueError(f"Cannot look up HMO providers by {column}")
        db = get_db()
        row = db.execute(
            f"SELECT * FROM hmo_providers WHERE LOWER({column}) = LOWER(?) AND id != ?",
            (value, exclude_id or 0),
        ).fetchone()
        return dict(row) if row else None

    def create(self, name: str, code: Optional[str] = None, **details) -> int:
        db = get_db()
        data = {'name': name, 'code': code, **details}
        columns = list(data.keys())
        cur = db.execute(
            f"INSERT INTO hmo_providers ({', '.join(columns)}) VALUES ({', '.join(':' + c for c in columns)})",
            data,
        )
        db.commit()
        return cur.lastrowid

    def update(self, provider_id: int, fields: Dict):
        if not fields:
            return
        db = get_db()
        assignments = ', '.join(f"{k} = :{k}" for k in fields)
        db.execute(f"UPDATE hmo_providers SET {assignments} WHERE id = :_id", {**fields, '_id': provider_id})
        db.commit()

    def rename_on_transactions(self, old_name: str, new_name: str):
        db = get_db()
        db.execute("UPDATE billing_transactions SET hmo_provider = ? WHERE hmo_provider = ?", (new_name, old_name))
        db.commit()

    def delete(self, provider_id: int):
        db = get_db()
        db.execute("DELETE FROM hmo_providers WHERE id = ?", (provider_id,))
        db.commit()

    def transaction_stats(self, name: str) -> Dict:
        db = get_db()
        row = db.execute(
            """SELECT COUNT(*) AS transactions_count,
                      COALESCE(SUM(amount), 0) AS total_amount,
                      COALESCE(SUM(CASE WHEN status = 'paid' THEN 1 ELSE 0 END), 0) AS paid_count,
                      COALESCE(SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END), 0) AS pending_count
               FROM billing_transactions WHERE hmo_provider = ?""",
            (name,),
        ).fetchone()
        return dict(row)

    def recent_transactions(self, name: str, limit: int = 10) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            """SELECT id, transaction_id, amount, status, transaction_date
               FROM billing_transactions WHERE hmo_provider = ?
               ORDER BY transaction_date DESC, id DESC LIMIT ?""",
            (name, limit),
        ).fetchall()
        return [dict(r) for r in rows]


class PatientRepository:

    def get_all(self) -> List[Dict]:
        db = get_db()
        rows = db.execute(
            "SELECT id, patient_no, first_name, last_name, is_senior_citizen FROM patients ORDER BY last_name, first_name"
        ).fetchall()
        return [dict(r) for r in rows]

    def get_by_id(self, patient_id: int) -> Optional[Dict]:
        db = get_db()
        row = db.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
        return dict(row) if row else None

    def create(self, patient_no: str, first_name: str, last_name: str,
               birthdate: Optional[str] = None, is_senior_citizen: bool = False, phone: Optional[str] = None) -> int:
        db = get_db()
        cur = db.execute(
            """INSERT INTO patients (patient_no, first_name, last_name, birthdate, is_senior_citizen, phone)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (patient_no, first_name, last_name, birthdate, 1 if is_senior_citizen else 0, phone),
        )
        db.commit()
        return cur.lastrowid
