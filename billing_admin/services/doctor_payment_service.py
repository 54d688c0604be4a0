from typing import Dict, Optional

from billing_admin.adapters.sqlite.doctor_payments_repo import DoctorPaymentRepository
from billing_admin.adapters.sqlite.lookups_repo import SpecialistRepository
from billing_admin.common.utils import clinic_today, now_str
from billing_admin.common.validators import (
    ValidationError, BillingError, optional, parse_amount, parse_choice, parse_int, parse_iso_date,
)
from billing_admin.domain.doctor_payments import DoctorPayment, STATUSES, PAYMENT_METHODS, compute_net_payment
from billing_admin.services.listing import (
    DOCTOR_PAYMENT_SEARCH_FIELDS, filter_rows, paginate, parse_sort, sort_rows,
)

SORTABLE_FIELDS = ('payment_date', 'net_payment', 'doctor_name', 'status')


class DoctorPaymentService:
    def __init__(self, repo=None, specialist_repo=None):
        self.repo = repo or DoctorPaymentRepository()
        self.specialist_repo = specialist_repo or SpecialistRepository()

    def list_payments(self, filters: Dict, page_size: int = 15) -> Dict:
        rows = self.repo.find(
            status=filters.get('status') or None,
            doctor_id=filters.get('doctor_id') or None,
            date_from=filters.get('date_from') or None,
            date_to=filters.get('date_to') or None,
        )
        rows = filter_rows(rows, filters.get('search'), DOCTOR_PAYMENT_SEARCH_FIELDS)
        sort_key, descending = parse_sort(filters.get('sort'), SORTABLE_FIELDS)
        rows = sort_rows(rows, sort_key, descending)
        return {'page': paginate(rows, filters.get('page'), page_size), 'summary': self.summary()}

    def summary(self) -> Dict:
        rows = self.repo.find()
        paid = [r for r in rows if r['status'] == 'paid']
        pending = [r for r in rows if r['status'] == 'pending']
        return {
            'total_paid': sum(r['net_payment'] or 0 for r in paid),
            'pending_amount': sum(r['net_payment'] or 0 for r in pending),
            'total_payments': len(rows),
            'paid_payments': len(paid),
        }

    def get_payment(self, payment_id: int) -> Optional[Dict]:
        return self.repo.get_by_id(payment_id)

    def _require(self, payment_id: int) -> Dict:
        row = self.repo.get_by_id(payment_id)
        if row is None:
            raise LookupError(f"Doctor payment {payment_id} not found")
        return row

    def _parse(self, data: Dict, simple: bool) -> Dict:
        errors: Dict[str, str] = {}
        doctor_id = parse_int(data, 'doctor_id', errors)
        if doctor_id is not None and not self.specialist_repo.exists(doctor_id):
            errors['doctor_id'] = 'The selected doctor is invalid.'

        if simple:
            basic_salary = deductions = holiday_pay = 0
            incentives = parse_amount(data, 'incentives', errors)
        else:
            basic_salary = parse_amount(data, 'basic_salary', errors)
            deductions = parse_amount(data, 'deductions', errors, required=False)
            holiday_pay = parse_amount(data, 'holiday_pay', errors, required=False)
            incentives = parse_amount(data, 'incentives', errors, required=False)

        payment = {
            'doctor_id': doctor_id,
            'basic_salary': basic_salary,
            'deductions': deductions,
            'holiday_pay': holiday_pay,
            'incentives': incentives,
            'payment_date': parse_iso_date(data, 'payment_date', errors),
            'payment_method': parse_choice(data, 'payment_method', PAYMENT_METHODS, errors, default='cash'),
            'payment_reference': optional(data, 'payment_reference', errors, 255),
            'status': parse_choice(data, 'status', STATUSES, errors),
            'notes': optional(data, 'notes', errors),
        }
        if errors:
            raise ValidationError(errors)

        net = compute_net_payment(basic_salary, holiday_pay, incentives, deductions)
        if net < 0:
            raise ValidationError({'deductions': 'Deductions may not exceed the gross payment.'})

        for key in ('basic_salary', 'deductions', 'holiday_pay', 'incentives'):
            payment[key] = float(payment[key] or 0)
        payment['net_payment'] = float(net)
        return payment

    def create_payment(self, data: Dict, user_id: Optional[int], simple: bool = False) -> Dict:
        payment = self._parse(data, simple)
        stamp = now_str()
        payment_id = self.repo.insert({
            **payment,
            'paid_date': clinic_today().isoformat() if payment['status'] == 'paid' else None,
            'created_by': user_id,
            'created_at': stamp,
            'updated_at': stamp,
        })
        return self.repo.get_by_id(payment_id)

    def create_simple(self, data: Dict, user_id: Optional[int]) -> Dict:
        return self.create_payment(data, user_id, simple=True)

    def update_payment(self, payment_id: int, data: Dict) -> Dict:
        row = self._require(payment_id)
        if not DoctorPayment(id=row['id'], doctor_id=row['doctor_id'], payment_date=row['payment_date'],
                             status=row['status']).can_be_edited():
            raise BillingError('Only pending doctor payments can be edited.')
        payment = self._parse(data, simple=False)
        if payment['status'] == 'paid':
            payment['paid_date'] = clinic_today().isoformat()
        self.repo.update(payment_id, {**payment, 'updated_at': now_str()})
        return self.repo.get_by_id(payment_id)

    def update_status(self, payment_id: int, status: str) -> tuple[str, Dict]:
        if status not in STATUSES:
            raise ValidationError({'status': 'The selected status is invalid.'})
        row = self._require(payment_id)
        old_status = row['status']
        fields = {'status': status, 'updated_at': now_str()}
        if status == 'paid' and old_status != 'paid':
            fields['paid_date'] = clinic_today().isoformat()
        elif status != 'paid':
            fields['paid_date'] = None
        self.repo.update(payment_id, fields)
        return old_status, self.repo.get_by_id(payment_id)

    def mark_as_paid(self, payment_id: int) -> Dict:
        row = self._require(payment_id)
        if row['status'] != 'pending':
            raise BillingError('Only pending doctor payments can be marked as paid.')
        _, updated = self.update_status(payment_id, 'paid')
        return updated

    def delete_payment(self, payment_id: int) -> Dict:
        row = self._require(payment_id)
        self.repo.delete(payment_id)
        return row
