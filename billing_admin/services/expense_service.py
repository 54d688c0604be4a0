from typing import Dict, Optional

from billing_admin.adapters.sqlite.expenses_repo import ExpenseRepository
from billing_admin.common.utils import now_str
from billing_admin.common.validators import (
    ValidationError, BillingError, optional, parse_amount, parse_choice, parse_iso_date, require,
)
from billing_admin.domain.expenses import CATEGORIES, PAYMENT_METHODS, STATUSES
from billing_admin.services.listing import EXPENSE_SEARCH_FIELDS, filter_rows, paginate, parse_sort, sort_rows

SORTABLE_FIELDS = ('expense_date', 'amount', 'expense_name', 'expense_category', 'status')


class ExpenseService:
    def __init__(self, repo=None):
        self.repo = repo or ExpenseRepository()

    def list_expenses(self, filters: Dict, page_size: int = 15) -> Dict:
        rows = self.repo.find(
            status=filters.get('status') or None,
            category=filters.get('category') or None,
            date_from=filters.get('date_from') or None,
            date_to=filters.get('date_to') or None,
        )
        rows = filter_rows(rows, filters.get('search'), EXPENSE_SEARCH_FIELDS)
        sort_key, descending = parse_sort(filters.get('sort'), SORTABLE_FIELDS)
        rows = sort_rows(rows, sort_key, descending)
        return {'page': paginate(rows, filters.get('page'), page_size), 'summary': self.summary()}

    def summary(self) -> Dict:
        rows = self.repo.find()
        approved = [r for r in rows if r['status'] == 'approved']
        return {
            'total_expenses': sum(r['amount'] or 0 for r in approved),
            'pending_amount': sum(r['amount'] or 0 for r in rows if r['status'] == 'pending'),
            'total_count': len(rows),
            'approved_count': len(approved),
        }

    def get_expense(self, expense_id: int) -> Optional[Dict]:
        return self.repo.get_by_id(expense_id)

    def _require(self, expense_id: int) -> Dict:
        row = self.repo.get_by_id(expense_id)
        if row is None:
            raise LookupError(f"Expense {expense_id} not found")
        return row

    def _parse(self, data: Dict) -> Dict:
        errors: Dict[str, str] = {}
        amount = parse_amount(data, 'amount', errors)
        expense = {
            'expense_category': parse_choice(data, 'expense_category', CATEGORIES, errors),
            'expense_name': require(data, 'expense_name', errors, max_length=255),
            'description': optional(data, 'description', errors),
            'amount': float(amount) if amount is not None else None,
            'expense_date': parse_iso_date(data, 'expense_date', errors),
            'payment_method': parse_choice(data, 'payment_method', PAYMENT_METHODS, errors),
            'payment_reference': optional(data, 'payment_reference', errors, 255),
            'vendor_name': optional(data, 'vendor_name', errors, 255),
            'vendor_contact': optional(data, 'vendor_contact', errors, 255),
            'receipt_number': optional(data, 'receipt_number', errors, 255),
            'status': parse_choice(data, 'status', STATUSES, errors),
            'notes': optional(data, 'notes', errors),
        }
        if errors:
            raise ValidationError(errors)
        return expense

    def create_expense(self, data: Dict, user_id: Optional[int]) -> Dict:
        expense = self._parse(data)
        stamp = now_str()
        expense_id = self.repo.insert({
            **expense, 'created_by': user_id, 'updated_by': user_id, 'created_at': stamp, 'updated_at': stamp,
        })
        return self.repo.get_by_id(expense_id)

    def update_expense(self, expense_id: int, data: Dict, user_id: Optional[int]) -> Dict:
        row = self._require(expense_id)
        if row['status'] == 'cancelled':
            raise BillingError('Cancelled expenses cannot be edited.')
        expense = self._parse(data)
        self.repo.update(expense_id, {**expense, 'updated_by': user_id, 'updated_at': now_str()})
        return self.repo.get_by_id(expense_id)

    def update_status(self, expense_id: int, status: str, user_id: Optional[int]) -> tuple[str, Dict]:
        if status not in STATUSES:
            raise ValidationError({'status': 'The selected status is invalid.'})
        row = self._require(expense_id)
        self.repo.update(expense_id, {'status': status, 'updated_by': user_id, 'updated_at': now_str()})
        return row['status'], self.repo.get_by_id(expense_id)

    def delete_expense(self, expense_id: int) -> Dict:
        row = self._require(expense_id)
        self.repo.delete(expense_id)
        return row
