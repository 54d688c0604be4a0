from decimal import Decimal
from typing import Dict, List, Optional

from billing_admin.adapters.sqlite.core import get_db
from billing_admin.adapters.sqlite.appointments_repo import AppointmentRepository
from billing_admin.adapters.sqlite.doctor_payments_repo import DoctorPaymentRepository
from billing_admin.adapters.sqlite.expenses_repo import ExpenseRepository
from billing_admin.adapters.sqlite.transactions_repo import TransactionRepository
from billing_admin.common.utils import clinic_now, now_str, to_money
from billing_admin.common.validators import (
    ValidationError, BillingError, optional, parse_amount, parse_bool, parse_choice,
    parse_id_list, parse_int, parse_iso_date, require,
)
from billing_admin.domain.appointments import BILLABLE_STATUS
from billing_admin.domain.transactions import (
    BillingTransaction, STATUSES, PAYMENT_METHODS, PAYMENT_TYPES, ITEM_TYPES, format_transaction_code,
)
from billing_admin.services.listing import (
    TRANSACTION_SEARCH_FIELDS, filter_rows, paginate, parse_sort, sort_rows,
)
from billing_admin.services.export_service import build_export_response
from billing_admin.services.pricing import SENIOR_DISCOUNT_RATE, compute_totals

APPOINTMENT_PAYMENT_METHODS = ('cash', 'hmo')
SORTABLE_FIELDS = ('transaction_id', 'transaction_date', 'amount', 'total_amount', 'status', 'payment_method')

NOT_APPROVED_MESSAGE = (
    'Selected appointments have not been approved yet. '
    'Please approve the appointments before creating a transaction.'
)
NO_PENDING_MESSAGE = 'No valid pending appointments selected.'


class BillingService:
    """Billing transactions: listing, creation from appointments or by hand, and lifecycle."""

    def __init__(self, repo=None, appointment_repo=None, doctor_payment_repo=None, expense_repo=None,
                 senior_discount_rate=SENIOR_DISCOUNT_RATE):
        self.repo = repo or TransactionRepository()
        self.appointment_repo = appointment_repo or AppointmentRepository()
        self.doctor_payment_repo = doctor_payment_repo or DoctorPaymentRepository()
        self.expense_repo = expense_repo or ExpenseRepository()
        self.senior_discount_rate = Decimal(str(senior_discount_rate))

    # ---- Listing ----
    def list_transactions(self, filters: Dict, page_size: int = 15) -> Dict:
        rows = self.repo.find(
            status=filters.get('status') or None,
            payment_method=filters.get('payment_method') or None,
            doctor_id=filters.get('doctor_id') or None,
            date_from=filters.get('date_from') or None,
            date_to=filters.get('date_to') or None,
        )
        rows = filter_rows(rows, filters.get('search'), TRANSACTION_SEARCH_FIELDS)
        sort_key, descending = parse_sort(filters.get('sort'), SORTABLE_FIELDS)
        rows = sort_rows(rows, sort_key, descending)
        return {
            'page': paginate(rows, filters.get('page'), page_size),
            'summary': self.summary(),
        }

    def summary(self) -> Dict:
        by_status = self.repo.totals_by_status()
        total_revenue = by_status.get('paid', {}).get('amount', 0)
        pending_amount = by_status.get('pending', {}).get('amount', 0)
        total_doctor_payments = self.doctor_payment_repo.total_paid()
        total_expenses = self.expense_repo.total_approved()
        return {
            'total_revenue': total_revenue,
            'pending_amount': pending_amount,
            'total_transactions': sum(v['count'] for v in by_status.values()),
            'paid_transactions': by_status.get('paid', {}).get('count', 0),
            'total_doctor_payments': total_doctor_payments,
            'total_expenses': total_expenses,
            'net_profit': total_revenue - total_doctor_payments - total_expenses,
        }

    def export_rows(self, filters: Dict) -> tuple[List[str], List[List]]:
        rows = self.repo.find(
            status=filters.get('status') or None,
            payment_method=filters.get('payment_method') or None,
            doctor_id=filters.get('doctor_id') or None,
            date_from=filters.get('date_from') or None,
            date_to=filters.get('date_to') or None,
        )
        rows = filter_rows(rows, filters.get('search'), TRANSACTION_SEARCH_FIELDS)
        headers = ['Transaction ID', 'Patient', 'Patient No', 'Doctor', 'Payment Method', 'HMO Provider',
                   'Total Amount', 'Senior Discount', 'Amount', 'Status', 'Date']
        data = []
        for r in rows:
            patient = r.get('patient') or {}
            doctor = r.get('doctor') or {}
            data.append([
                r['transaction_id'],
                f"{patient.get('first_name') or ''} {patient.get('last_name') or ''}".strip(),
                patient.get('patient_no') or '',
                doctor.get('name') or '',
                r.get('payment_method') or '',
                r.get('hmo_provider') or '',
                float(r.get('total_amount') or 0),
                float(r.get('senior_discount_amount') or 0),
                float(r.get('amount') or 0),
                r.get('status') or '',
                (r.get('transaction_date') or '')[:10],
            ])
        return headers, data

    def export_transactions(self, filters: Dict, fmt: str):
        headers, rows = self.export_rows(filters)
        return build_export_response(
            fmt, f"billing-transactions-{clinic_now():%Y-%m-%d}", 'Billing Transactions', headers, rows,
        )

    # ---- Lookup ----
    def get_transaction(self, transaction_id: int) -> Optional[Dict]:
        tx = self.repo.get_by_id(transaction_id)
        if tx is None:
            return None
        tx['items'] = self.repo.get_items(transaction_id)
        tx['links'] = self.repo.get_links(transaction_id)
        model = BillingTransaction.from_row(tx)
        tx['can_be_edited'] = model.can_be_edited()
        tx['can_be_cancelled'] = model.can_be_cancelled()
        tx['can_be_paid'] = model.can_be_paid()
        return tx

    def _require(self, transaction_id: int) -> BillingTransaction:
        row = self.repo.get_by_id(transaction_id)
        if row is None:
            raise LookupError(f"Transaction {transaction_id} not found")
        return BillingTransaction.from_row(row)

    # ---- Create from appointments ----
    def pending_appointments(self):
        return self.appointment_repo.get_pending_billing()

    def preview_totals(self, appointment_ids: List[int], is_senior_citizen: bool, payment_method: str):
        appointments = [a for a in self.appointment_repo.get_by_ids(appointment_ids) if a.is_billable]
        labs = [t.unit_price for a in appointments for t in a.lab_tests]
        return compute_totals(appointments, is_senior_citizen, payment_method, labs, self.senior_discount_rate)

    def create_from_appointments(self, data: Dict, user_id: Optional[int]) -> Dict:
        errors: Dict[str, str] = {}
        appointment_ids = parse_id_list(data.get('appointment_ids'), 'appointment_ids', errors)
        payment_method = parse_choice(data, 'payment_method', APPOINTMENT_PAYMENT_METHODS, errors)
        payment_reference = optional(data, 'payment_reference', errors, 255)
        hmo_provider = optional(data, 'hmo_provider', errors, 255)
        hmo_reference_number = optional(data, 'hmo_reference_number', errors, 255)
        is_senior_citizen = parse_bool(data, 'is_senior_citizen')
        notes = optional(data, 'notes', errors)
        if payment_method == 'hmo' and not hmo_provider and 'hmo_provider' not in errors:
            errors['hmo_provider'] = 'The hmo provider field is required when payment method is HMO.'
        if errors:
            raise ValidationError(errors)

        selected = self.appointment_repo.get_by_ids(appointment_ids)
        eligible = [a for a in selected if a.is_billable]
        if not eligible:
            if any(a.status != BILLABLE_STATUS for a in selected):
                raise ValidationError({'appointment_ids': NOT_APPROVED_MESSAGE})
            raise ValidationError({'appointment_ids': NO_PENDING_MESSAGE})
        if len({a.patient_id for a in eligible}) > 1:
            raise ValidationError({'appointment_ids': 'Selected appointments must belong to the same patient.'})

        lab_amounts = [t.unit_price for a in eligible for t in a.lab_tests]
        totals = compute_totals(eligible, is_senior_citizen, payment_method, lab_amounts, self.senior_discount_rate)

        db = get_db()
        stamp = now_str()
        count = len(eligible)
        try:
            tx_id = self.repo.insert({
                'transaction_id': format_transaction_code(self.repo.next_transaction_number()),
                'patient_id': eligible[0].patient_id,
                'doctor_id': eligible[0].specialist_id,
                'payment_type': 'health_card' if payment_method == 'hmo' else 'cash',
                'payment_method': payment_method,
                'payment_reference': payment_reference,
                'hmo_provider': hmo_provider if payment_method == 'hmo' else None,
                'hmo_reference_number': hmo_reference_number if payment_method == 'hmo' else None,
                'total_amount': float(totals.subtotal),
                'amount': float(totals.final_total),
                'discount_amount': 0,
                'senior_discount_amount': float(totals.senior_discount),
                'senior_discount_percentage': float(totals.discount_percentage),
                'is_senior_citizen': 1 if is_senior_citizen else 0,
                'status': 'pending',
                'description': f"Payment for {count} appointment(s)",
                'notes': notes,
                'transaction_date': stamp,
                'created_by': user_id,
                'created_at': stamp,
                'updated_at': stamp,
            }, commit=False)

            for a in eligible:
                price = to_money(a.price)
                self.repo.insert_item(tx_id, {
                    'item_type': 'consultation',
                    'item_name': f"{a.type_label} Appointment",
                    'item_description': f"Appointment on {a.appointment_date}",
                    'quantity': 1,
                    'unit_price': price,
                    'total_price': price,
                }, commit=False)
                for test in a.lab_tests:
                    lab_price = to_money(test.unit_price)
                    self.repo.insert_item(tx_id, {
                        'item_type': 'laboratory',
                        'item_name': test.test_name,
                        'item_description': f"Lab test for appointment #{a.id}",
                        'quantity': 1,
                        'unit_price': lab_price,
                        'total_price': lab_price,
                        'lab_test_id': test.id,
                    }, commit=False)
                self.repo.insert_link(
                    tx_id, a.id, a.appointment_type, float(price), float(price + to_money(a.lab_amount)),
                    commit=False,
                )

            self.appointment_repo.set_billing_status([a.id for a in eligible], 'in_transaction', commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        print(f"[BillingService] Created transaction #{tx_id} for {count} appointment(s), total {totals.final_total}")
        result = self.repo.get_by_id(tx_id)
        result['appointments_count'] = count
        return result

    # ---- Manual transactions ----
    def _parse_items(self, raw_items: List[Dict], errors: Dict[str, str]) -> List[Dict]:
        items = []
        for index, raw in enumerate(raw_items or []):
            if not any((str(v or '').strip() for v in raw.values())):
                continue
            item_errors: Dict[str, str] = {}
            item_type = parse_choice(raw, 'item_type', ITEM_TYPES, item_errors)
            item_name = require(raw, 'item_name', item_errors, max_length=255)
            quantity = parse_int(raw, 'quantity', item_errors, minimum=1)
            unit_price = parse_amount(raw, 'unit_price', item_errors)
            for key, message in item_errors.items():
                errors[f"items.{index}.{key}"] = message
            if item_errors:
                continue
            items.append({
                'item_type': item_type,
                'item_name': item_name,
                'item_description': (raw.get('item_description') or '').strip() or None,
                'quantity': quantity,
                'unit_price': to_money(unit_price),
                'total_price': to_money(Decimal(quantity) * unit_price),
            })
        if not items and not any(k.startswith('items.') for k in errors):
            errors['items'] = 'At least one item is required.'
        return items

    def _header_fields(self, data: Dict, errors: Dict[str, str]) -> Dict:
        payment_method = parse_choice(data, 'payment_method', PAYMENT_METHODS, errors)
        fields = {
            'payment_type': parse_choice(data, 'payment_type', PAYMENT_TYPES, errors, default='cash'),
            'payment_method': payment_method,
            'payment_reference': optional(data, 'payment_reference', errors, 255),
            'hmo_provider': optional(data, 'hmo_provider', errors, 255),
            'hmo_reference_number': optional(data, 'hmo_reference_number', errors, 255),
            'is_senior_citizen': parse_bool(data, 'is_senior_citizen'),
            'discount_amount': parse_amount(data, 'discount_amount', errors, required=False),
            'description': optional(data, 'description', errors, 500),
            'notes': optional(data, 'notes', errors),
            'due_date': parse_iso_date(data, 'due_date', errors, required=False),
            'status': parse_choice(data, 'status', ('draft', 'pending'), errors, default='pending'),
        }
        if payment_method == 'hmo' and not fields['hmo_provider']:
            errors['hmo_provider'] = 'The hmo provider field is required when payment method is HMO.'
        if payment_method != 'hmo':
            fields['hmo_provider'] = None
            fields['hmo_reference_number'] = None
        return fields

    @staticmethod
    def _item_lines(items: List[Dict]) -> List[Dict]:
        return [{'price': i['total_price'], 'appointment_type': i['item_type']} for i in items]

    def _stored_lines(self, transaction_id: int) -> tuple[List[Dict], List]:
        """Pricing lines for an existing transaction.

        Appointment-based transactions are priced from their links, which keep
        the real appointment type, with lab items added undiscounted. Manual
        transactions are priced from their items.
        """
        items = self.repo.get_items(transaction_id)
        links = self.repo.get_links(transaction_id)
        if not links:
            return self._item_lines(items), []
        lines = [{'price': l['appointment_price'], 'appointment_type': l['appointment_type']} for l in links]
        labs = [i['total_price'] for i in items if i['item_type'] == 'laboratory']
        return lines, labs

    def _amounts(self, lines: List[Dict], fields: Dict, errors: Dict[str, str], lab_amounts=None) -> Dict:
        totals = compute_totals(lines, fields['is_senior_citizen'], fields['payment_method'], lab_amounts,
                                rate=self.senior_discount_rate)
        discount = to_money(fields['discount_amount'] or 0)
        if discount > totals.final_total:
            errors['discount_amount'] = 'The discount amount may not be greater than the total.'
        return {
            'total_amount': float(totals.subtotal),
            'senior_discount_amount': float(totals.senior_discount),
            'senior_discount_percentage': float(totals.discount_percentage),
            'discount_amount': float(discount),
            'amount': float(totals.final_total - discount),
        }

    def create_manual(self, data: Dict, items: List[Dict], user_id: Optional[int]) -> Dict:
        errors: Dict[str, str] = {}
        patient_id = parse_int(data, 'patient_id', errors)
        doctor_id = parse_int(data, 'doctor_id', errors, required=False)
        fields = self._header_fields(data, errors)
        parsed_items = self._parse_items(items, errors)
        amounts = {}
        if parsed_items and fields['payment_method']:
            amounts = self._amounts(self._item_lines(parsed_items), fields, errors)
        if errors:
            raise ValidationError(errors)

        db = get_db()
        stamp = now_str()
        try:
            tx_id = self.repo.insert({
                'transaction_id': format_transaction_code(self.repo.next_transaction_number()),
                'patient_id': patient_id,
                'doctor_id': doctor_id,
                **fields,
                **amounts,
                'is_senior_citizen': 1 if fields['is_senior_citizen'] else 0,
                'description': fields['description'] or f"Manual transaction ({len(parsed_items)} item(s))",
                'transaction_date': stamp,
                'created_by': user_id,
                'created_at': stamp,
                'updated_at': stamp,
            }, commit=False)
            for item in parsed_items:
                self.repo.insert_item(tx_id, item, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return self.repo.get_by_id(tx_id)

    def update_transaction(self, transaction_id: int, data: Dict, user_id: Optional[int]) -> Dict:
        tx = self._require(transaction_id)
        if not tx.can_be_edited():
            raise BillingError(f"Transaction {tx.transaction_id} can no longer be edited.")

        errors: Dict[str, str] = {}
        fields = self._header_fields(data, errors)
        doctor_id = parse_int(data, 'doctor_id', errors, required=False)
        amounts = {}
        if fields['payment_method']:
            lines, labs = self._stored_lines(transaction_id)
            amounts = self._amounts(lines, fields, errors, lab_amounts=labs)
        if errors:
            raise ValidationError(errors)

        self.repo.update(transaction_id, {
            **fields,
            **amounts,
            'doctor_id': doctor_id or tx.doctor_id,
            'is_senior_citizen': 1 if fields['is_senior_citizen'] else 0,
            'description': fields['description'] or tx.description,
            'updated_by': user_id,
            'updated_at': now_str(),
        })
        return self.repo.get_by_id(transaction_id)

    # ---- Lifecycle ----
    def mark_as_paid(self, transaction_id: int, user_id: Optional[int]) -> Dict:
        tx = self._require(transaction_id)
        if not tx.can_be_paid():
            raise BillingError(f"Only pending transactions can be marked as paid ({tx.transaction_id} is {tx.status}).")

        db = get_db()
        try:
            self.repo.update(transaction_id, {
                'status': 'paid', 'updated_by': user_id, 'updated_at': now_str(),
            }, commit=False)
            self.repo.set_links_status(transaction_id, 'paid', commit=False)
            self.appointment_repo.set_billing_status(
                self.repo.get_linked_appointment_ids(transaction_id), 'paid', commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return self.repo.get_by_id(transaction_id)

    def update_status(self, transaction_id: int, status: str, user_id: Optional[int]) -> tuple[str, Dict]:
        """Returns (old_status, transaction)."""
        if status not in STATUSES:
            raise ValidationError({'status': 'The selected status is invalid.'})
        tx = self._require(transaction_id)
        old_status = tx.status
        if status == old_status:
            return old_status, self.repo.get_by_id(transaction_id)

        if status == 'paid':
            return old_status, self.mark_as_paid(transaction_id, user_id)
        if status == 'cancelled' and not tx.can_be_cancelled():
            raise BillingError(f"Transaction {tx.transaction_id} cannot be cancelled once it is {old_status}.")
        if status == 'refunded' and old_status != 'paid':
            raise BillingError('Only paid transactions can be refunded.')
        if status in ('draft', 'pending') and not tx.can_be_edited():
            raise BillingError(f"Cannot move a {old_status} transaction back to {status}.")

        db = get_db()
        try:
            self.repo.update(transaction_id, {
                'status': status, 'updated_by': user_id, 'updated_at': now_str(),
            }, commit=False)
            if status in ('cancelled', 'refunded'):
                # Linked appointments become billable again
                self.repo.set_links_status(transaction_id, status, commit=False)
                self.appointment_repo.set_billing_status(
                    self.repo.get_linked_appointment_ids(transaction_id), 'pending', commit=False,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return old_status, self.repo.get_by_id(transaction_id)

    def delete_transaction(self, transaction_id: int) -> BillingTransaction:
        tx = self._require(transaction_id)
        if tx.status == 'paid':
            raise BillingError('Paid transactions cannot be deleted. Refund the transaction instead.')

        db = get_db()
        try:
            appointment_ids = self.repo.get_linked_appointment_ids(transaction_id)
            self.appointment_repo.set_billing_status(appointment_ids, 'pending', commit=False)
            self.repo.delete(transaction_id, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return tx
