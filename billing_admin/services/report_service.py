"""Daily / monthly / yearly billing reports, HMO and doctor summaries.

A report is a list of ledger entries (billing income, doctor payments and
expenses, the latter two as negative amounts) plus a summary. Only settled
entries (paid transactions, paid doctor payments, approved expenses) count
toward the money totals; every entry in the period is listed.
"""
from collections import OrderedDict
from typing import Dict, List, Optional

from billing_admin.adapters.sqlite.reports_repo import ReportRepository
from billing_admin.common.utils import (
    clinic_today, current_month_range, default_range, month_bounds, now_str, year_bounds,
)
from billing_admin.common.validators import ValidationError, is_iso_date, is_month, is_year

SETTLED = {
    'billing': ('paid',),
    'doctor_payment': ('paid',),
    'expense': ('approved',),
}

EXPORT_HEADERS = [
    'Type', 'Transaction ID', 'Patient Name', 'Specialist', 'Amount', 'Payment Method',
    'Status', 'Description', 'Date', 'Time', 'Items Count', 'Appointments Count',
]

DOCTOR_SUMMARY_HEADERS = [
    'Doctor', 'Specialization', 'Total Revenue', 'Transactions',
    'Total Paid', 'Pending Amount', 'Payments', 'Paid Payments',
]

HMO_HEADERS = ['Provider', 'Total Amount', 'Paid Amount', 'Transactions', 'Paid', 'Pending']

MONTH_NAMES = ['January', 'February', 'March', 'April', 'May', 'June', 'July',
               'August', 'September', 'October', 'November', 'December']


def is_settled(entry: Dict) -> bool:
    return entry['status'] in SETTLED.get(entry['type'], ())


def summarize(entries: List[Dict]) -> Dict:
    revenue = sum(e['amount'] for e in entries if e['type'] == 'billing' and is_settled(e))
    doctor_payments = sum(e['amount'] for e in entries if e['type'] == 'doctor_payment' and is_settled(e))
    expenses = sum(e['amount'] for e in entries if e['type'] == 'expense' and is_settled(e))
    return {
        'total_revenue': round(revenue, 2),
        'total_doctor_payments': round(abs(doctor_payments), 2),
        'total_expenses': round(abs(expenses), 2),
        'net_profit': round(revenue + doctor_payments + expenses, 2),
        'transaction_count': sum(1 for e in entries if e['type'] == 'billing'),
        'expense_count': sum(1 for e in entries if e['type'] == 'expense'),
        'doctor_payment_count': sum(1 for e in entries if e['type'] == 'doctor_payment'),
    }


class ReportService:
    def __init__(self, repo=None):
        self.repo = repo or ReportRepository()

    # ---- Ledger entries ----
    def collect_entries(self, date_from: str, date_to: str) -> List[Dict]:
        entries = []
        for t in self.repo.billing_entries(date_from, date_to):
            entries.append({
                'id': t['id'],
                'type': 'billing',
                'transaction_id': t['transaction_id'],
                'patient_name': t['patient_name'] or 'Walk-in',
                'specialist_name': t['specialist_name'] or '—',
                'amount': float(t['amount'] or 0),
                'payment_method': t['payment_method'],
                'status': t['status'],
                'description': t['description'] or f"Payment for {t['appointments_count']} appointment(s)",
                'time': t['transaction_date'],
                'items_count': t['items_count'],
                'appointments_count': t['appointments_count'],
                'original_id': t['id'],
                'original_table': 'billing_transactions',
            })
        for p in self.repo.doctor_payment_entries(date_from, date_to):
            entries.append({
                'id': p['id'],
                'type': 'doctor_payment',
                'transaction_id': f"DP-{p['id']}",
                'patient_name': 'Doctor Payment',
                'specialist_name': p['specialist_name'] or 'Unknown Doctor',
                'amount': -float(p['net_payment'] or 0),
                'payment_method': p['payment_method'] or 'cash',
                'status': p['status'],
                'description': f"Doctor Payment - {p['notes']}" if p['notes'] else 'Doctor Payment',
                'time': p['created_at'] if (p['created_at'] or '').startswith(p['payment_date']) else f"{p['payment_date']} 00:00:00",
                'items_count': 0,
                'appointments_count': 0,
                'original_id': p['id'],
                'original_table': 'doctor_payments',
            })
        for x in self.repo.expense_entries(date_from, date_to):
            entries.append({
                'id': x['id'],
                'type': 'expense',
                'transaction_id': f"EXP-{x['id']}",
                'patient_name': x['vendor_name'] or 'Expense',
                'specialist_name': '—',
                'amount': -float(x['amount'] or 0),
                'payment_method': x['payment_method'] or 'cash',
                'status': x['status'],
                'description': f"{x['expense_name']} ({x['expense_category'].replace('_', ' ')})",
                'time': x['created_at'] if (x['created_at'] or '').startswith(x['expense_date']) else f"{x['expense_date']} 00:00:00",
                'items_count': 0,
                'appointments_count': 0,
                'original_id': x['id'],
                'original_table': 'expenses',
            })
        entries.sort(key=lambda e: (e['time'] or '', e['type'], e['id']))
        return entries

    def sync_daily_ledger(self, date: str) -> int:
        """Rebuild daily_transactions for one date from the source tables."""
        entries = self.collect_entries(date, date)
        self.repo.replace_daily(date, entries, now_str())
        return len(entries)

    # ---- Period reports ----
    def daily_report(self, date: Optional[str] = None) -> Dict:
        date = date or clinic_today().isoformat()
        if not is_iso_date(date):
            raise ValidationError({'date': 'Invalid date format. Expected YYYY-MM-DD'})

        self.sync_daily_ledger(date)
        entries = [{
            'id': r['id'],
            'type': r['transaction_type'],
            'transaction_id': r['transaction_id'],
            'patient_name': r['patient_name'],
            'specialist_name': r['specialist_name'],
            'amount': r['amount'],
            'payment_method': r['payment_method'],
            'status': r['status'],
            'description': r['description'],
            'time': r['created_at'],
            'items_count': r['items_count'],
            'appointments_count': r['appointments_count'],
        } for r in self.repo.get_daily(date)]
        return {'date': date, 'transactions': entries, 'summary': summarize(entries)}

    def monthly_report(self, month: Optional[str] = None) -> Dict:
        month = month or clinic_today().strftime('%Y-%m')
        if not is_month(month):
            raise ValidationError({'month': 'Invalid month format. Expected YYYY-MM'})
        date_from, date_to = month_bounds(month)
        entries = self.collect_entries(date_from, date_to)

        breakdown = OrderedDict()
        for e in entries:
            day = (e['time'] or '')[:10]
            breakdown.setdefault(day, []).append(e)
        return {
            'month': month,
            'date_from': date_from,
            'date_to': date_to,
            'transactions': entries,
            'summary': summarize(entries),
            'breakdown': [{'label': day, **summarize(items)} for day, items in breakdown.items()],
        }

    def yearly_report(self, year=None) -> Dict:
        year = str(year or clinic_today().year)
        if not is_year(year):
            raise ValidationError({'year': 'Invalid year.'})
        date_from, date_to = year_bounds(int(year))
        entries = self.collect_entries(date_from, date_to)

        breakdown = []
        for index, name in enumerate(MONTH_NAMES, start=1):
            prefix = f"{year}-{index:02d}"
            items = [e for e in entries if (e['time'] or '').startswith(prefix)]
            breakdown.append({'label': name, 'month': prefix, **summarize(items)})
        return {
            'year': year,
            'date_from': date_from,
            'date_to': date_to,
            'transactions': entries,
            'summary': summarize(entries),
            'breakdown': breakdown,
        }

    def billing_reports_index(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> Dict:
        default_from, default_to = current_month_range()
        date_from, date_to = self._check_range(date_from or default_from, date_to or default_to)
        entries = self.collect_entries(date_from, date_to)
        totals = summarize(entries)
        paid = [e for e in entries if e['type'] == 'billing' and is_settled(e)]

        by_method: Dict[str, Dict] = {}
        for e in paid:
            bucket = by_method.setdefault(e['payment_method'] or 'cash', {'count': 0, 'amount': 0.0})
            bucket['count'] += 1
            bucket['amount'] += e['amount']
        return {
            'date_from': date_from,
            'date_to': date_to,
            'summary': {
                'total_revenue': totals['total_revenue'],
                'total_doctor_payments': totals['total_doctor_payments'],
                'total_expenses': totals['total_expenses'],
                'net_profit': totals['net_profit'],
                'revenue_count': len(paid),
            },
            'by_payment_method': by_method,
            'transactions': entries,
        }

    # ---- HMO ----
    def hmo_report(self, date_from: Optional[str] = None, date_to: Optional[str] = None,
                   provider: Optional[str] = None) -> Dict:
        default_from, default_to = current_month_range()
        date_from, date_to = self._check_range(date_from or default_from, date_to or default_to)
        providers = self.repo.hmo_by_provider(date_from, date_to, provider or None)
        return {
            'date_from': date_from,
            'date_to': date_to,
            'provider': provider or '',
            'providers': providers,
            'transactions': self.repo.hmo_transactions(date_from, date_to, provider or None),
            'summary': {
                'total_hmo_revenue': round(sum(p['paid_amount'] for p in providers), 2),
                'total_hmo_amount': round(sum(p['total_amount'] for p in providers), 2),
                'total_hmo_transactions': sum(p['transaction_count'] for p in providers),
                'hmo_providers_count': len(providers),
                'paid_hmo_transactions': sum(p['paid_count'] for p in providers),
                'pending_hmo_transactions': sum(p['pending_count'] for p in providers),
            },
        }

    # ---- Doctor summary ----
    def doctor_summary(self, date_from: Optional[str] = None, date_to: Optional[str] = None,
                       doctor_id='all') -> Dict:
        default_from, default_to = default_range(30)
        date_from, date_to = self._check_range(date_from or default_from, date_to or default_to)
        selected = None if doctor_id in (None, '', 'all') else int(doctor_id)

        doctors: Dict[int, Dict] = {}

        def bucket(row):
            return doctors.setdefault(row['doctor_id'], {
                'doctor_id': row['doctor_id'],
                'doctor_name': row['doctor_name'] or 'Unknown Doctor',
                'specialization': row['specialization'],
                'total_paid': 0.0, 'pending_amount': 0.0, 'payment_count': 0, 'paid_payments': 0,
                'total_revenue': 0.0, 'transaction_count': 0,
            })

        for row in self.repo.doctor_payment_totals(date_from, date_to, selected):
            d = bucket(row)
            d.update(total_paid=row['total_paid'], pending_amount=row['pending_amount'],
                     payment_count=row['payment_count'], paid_payments=row['paid_payments'])
        for row in self.repo.doctor_revenue_totals(date_from, date_to, selected):
            d = bucket(row)
            d.update(total_revenue=row['total_revenue'], transaction_count=row['transaction_count'])

        rows = sorted(doctors.values(), key=lambda d: d['doctor_name'].casefold())
        return {
            'date_from': date_from,
            'date_to': date_to,
            'doctor_id': 'all' if selected is None else selected,
            'doctors': rows,
            'summary': {
                'total_doctor_payments': round(sum(d['total_paid'] for d in rows), 2),
                'total_doctor_revenue': round(sum(d['total_revenue'] for d in rows), 2),
                'doctors_count': len(rows),
            },
        }

    def doctor_summary_for_period(self, period: str, value: Optional[str] = None, doctor_id='all') -> Dict:
        """daily / monthly / yearly variants of the doctor summary."""
        date_from, date_to = self.period_range(period, value)
        report = self.doctor_summary(date_from, date_to, doctor_id)
        report['period'] = period
        report['period_value'] = value or self._default_period_value(period)
        return report

    # ---- Export helpers ----
    def export_rows(self, entries: List[Dict]) -> List[List]:
        rows = []
        for e in entries:
            stamp = e['time'] or ''
            rows.append([
                e['type'].replace('_', ' ').title(),
                e['transaction_id'],
                e['patient_name'] or '',
                e['specialist_name'] or '',
                round(float(e['amount'] or 0), 2),
                (e['payment_method'] or '').replace('_', ' ').title(),
                (e['status'] or '').title(),
                e['description'] or '',
                stamp[:10],
                stamp[11:16],
                e['items_count'],
                e['appointments_count'],
            ])
        return rows

    def doctor_summary_rows(self, report: Dict) -> List[List]:
        return [[
            d['doctor_name'], d['specialization'] or '', round(d['total_revenue'], 2), d['transaction_count'],
            round(d['total_paid'], 2), round(d['pending_amount'], 2), d['payment_count'], d['paid_payments'],
        ] for d in report['doctors']]

    def hmo_rows(self, report: Dict) -> List[List]:
        return [[
            p['provider'], round(p['total_amount'], 2), round(p['paid_amount'], 2),
            p['transaction_count'], p['paid_count'], p['pending_count'],
        ] for p in report['providers']]

    def period_entries(self, period: str, value: Optional[str] = None) -> tuple[str, Dict]:
        """Return (filename stem, report) for a daily/monthly/yearly export."""
        if period == 'daily':
            report = self.daily_report(value)
            return f"daily-report-{report['date']}", report
        if period == 'monthly':
            report = self.monthly_report(value)
            return f"monthly-report-{report['month']}", report
        if period == 'yearly':
            report = self.yearly_report(value)
            return f"yearly-report-{report['year']}", report
        raise ValidationError({'period': f"Unknown report period: {period}"})

    # ---- Ranges ----
    def period_range(self, period: str, value: Optional[str]) -> tuple[str, str]:
        value = value or self._default_period_value(period)
        if period == 'daily':
            if not is_iso_date(value):
                raise ValidationError({'date': 'Invalid date format. Expected YYYY-MM-DD'})
            return value, value
        if period == 'monthly':
            if not is_month(value):
                raise ValidationError({'month': 'Invalid month format. Expected YYYY-MM'})
            return month_bounds(value)
        if period == 'yearly':
            if not is_year(value):
                raise ValidationError({'year': 'Invalid year.'})
            return year_bounds(int(value))
        raise ValidationError({'period': f"Unknown report period: {period}"})

    @staticmethod
    def _default_period_value(period: str) -> str:
        today = clinic_today()
        return {'daily': today.isoformat(), 'monthly': today.strftime('%Y-%m')}.get(period, str(today.year))

    @staticmethod
    def _check_range(date_from: str, date_to: str) -> tuple[str, str]:
        errors = {}
        if not is_iso_date(date_from):
            errors['date_from'] = 'Invalid date format. Expected YYYY-MM-DD'
        if not is_iso_date(date_to):
            errors['date_to'] = 'Invalid date format. Expected YYYY-MM-DD'
        if errors:
            raise ValidationError(errors)
        if date_from > date_to:
            date_from, date_to = date_to, date_from
        return date_from, date_to
