from typing import List, Dict, Iterable, Optional

from billing_admin.adapters.sqlite.core import get_db
from billing_admin.domain.appointments import Appointment, LabTest, BILLABLE_STATUS


class AppointmentRepository:
    """Read access to appointments plus the billing_status bookkeeping."""

    _SELECT = """
        SELECT a.*, p.first_name, p.last_name, p.patient_no, p.is_senior_citizen,
               p.first_name || ' ' || p.last_name AS patient_name,
               s.name AS specialist_name
        FROM appointments a
        JOIN patients p ON p.id = a.patient_id
        LEFT JOIN specialists s ON s.id = a.specialist_id
    """

    def _to_appointment(self, row, lab_tests: Optional[List[LabTest]] = None) -> Appointment:
        return Appointment(
            id=row['id'],
            patient_id=row['patient_id'],
            appointment_type=row['appointment_type'],
            price=float(row['price'] or 0),
            appointment_date=row['appointment_date'],
            status=row['status'],
            billing_status=row['billing_status'],
            specialist_id=row['specialist_id'],
            appointment_time=row['appointment_time'],
            patient_name=row['patient_name'],
            specialist_name=row['specialist_name'],
            lab_tests=lab_tests or [],
        )

    def get_lab_tests(self, appointment_ids: Iterable[int]) -> Dict[int, List[LabTest]]:
        ids = list(appointment_ids)
        if not ids:
            return {}
        db = get_db()
        placeholders = ','.join('?' for _ in ids)
        rows = db.execute(
            f"SELECT * FROM appointment_lab_tests WHERE appointment_id IN ({placeholders}) ORDER BY id",
            ids,
        ).fetchall()
        grouped: Dict[int, List[LabTest]] = {}
        for r in rows:
            grouped.setdefault(r['appointment_id'], []).append(
                LabTest(id=r['id'], test_name=r['test_name'], unit_price=float(r['unit_price'] or 0))
            )
        return grouped

    def get_by_ids(self, appointment_ids: List[int]) -> List[Appointment]:
        if not appointment_ids:
            return []
        db = get_db()
        placeholders = ','.join('?' for _ in appointment_ids)
        rows = db.execute(
            f"{self._SELECT} WHERE a.id IN ({placeholders}) ORDER BY a.appointment_date, a.id",
            appointment_ids,
        ).fetchall()
        labs = self.get_lab_tests(r['id'] for r in rows)
        return [self._to_appointment(r, labs.get(r['id'])) for r in rows]

    def get_pending_billing(self) -> List[Appointment]:
        """Confirmed appointments that have not been pulled into a transaction yet."""
        db = get_db()
        rows = db.execute(
            f"""{self._SELECT}
                WHERE a.status = ?
                  AND (a.billing_status IS NULL OR a.billing_status IN ('', 'pending', 'not_billed'))
                ORDER BY a.appointment_date DESC, a.appointment_time DESC""",
            (BILLABLE_STATUS,),
        ).fetchall()
        labs = self.get_lab_tests(r['id'] for r in rows)
        return [self._to_appointment(r, labs.get(r['id'])) for r in rows]

    def set_billing_status(self, appointment_ids: List[int], billing_status: str, commit: bool = True):
        if not appointment_ids:
            return
        db = get_db()
        placeholders = ','.join('?' for _ in appointment_ids)
        db.execute(
            f"UPDATE appointments SET billing_status = ? WHERE id IN ({placeholders})",
            [billing_status, *appointment_ids],
        )
        if commit:
            db.commit()

    def create(self, patient_id: int, specialist_id: Optional[int], appointment_type: str, price: float,
               appointment_date: str, appointment_time: Optional[str] = None,
               status: str = 'Pending', billing_status: Optional[str] = 'pending') -> int:
        db = get_db()
        cur = db.execute(
            """INSERT INTO appointments (
                patient_id, specialist_id, appointment_type, price,
                appointment_date, appointment_time, status, billing_status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (patient_id, specialist_id, appointment_type, price, appointment_date, appointment_time, status, billing_status),
        )
        db.commit()
        return cur.lastrowid

    def add_lab_test(self, appointment_id: int, test_name: str, unit_price: float) -> int:
        db = get_db()
        cur = db.execute(
            "INSERT INTO appointment_lab_tests (appointment_id, test_name, unit_price) VALUES (?, ?, ?)",
            (appointment_id, test_name, unit_price),
        )
        db.commit()
        return cur.lastrowid
