from datetime import date
from decimal import Decimal

import pytest

from billing_admin.common.utils import (
    default_range, format_currency, format_date, get_datetime_range_for_date_range, month_bounds, parse_date,
    to_money, year_bounds,
)
from billing_admin.common.validators import (
    ValidationError, is_email, is_iso_date, is_month, is_year, parse_amount, parse_bool, parse_choice, parse_id_list,
    parse_int, require,
)


@pytest.mark.parametrize(('value', 'expected'), (
    (1234.5, '₱1,234.50'),
    ('0.005', '₱0.01'),
    (-300, '-₱300.00'),
    (None, '₱0.00'),
    ('n/a', 'n/a'),
))
def test_format_currency(value, expected):
    assert format_currency(value) == expected


def test_to_money_rounds_half_up():
    assert to_money('2.675') == Decimal('2.68')
    assert to_money(None) == Decimal('0.00')


def test_month_and_year_bounds():
    assert month_bounds('2024-02') == ('2024-02-01', '2024-02-29')
    assert month_bounds('2025-12') == ('2025-12-01', '2025-12-31')
    assert year_bounds(2025) == ('2025-01-01', '2025-12-31')


def test_date_helpers():
    assert default_range(7, today=date(2025, 3, 3)) == ('2025-02-24', '2025-03-03')
    assert get_datetime_range_for_date_range('2025-12-31', '2025-12-31') == ('2025-12-31 00:00:00', '2026-01-01 00:00:00')
    assert parse_date('2025-03-03 10:15:00') == date(2025, 3, 3)
    assert parse_date('garbage') is None
    assert format_date('2025-03-03') == 'Mar 03, 2025'
    assert format_date(None) == '—'


def test_calendar_validators():
    assert is_iso_date('2024-02-29')
    assert not is_iso_date('2025-02-29')
    assert is_month('2025-01') and not is_month('2025-1')
    assert is_year('2025') and not is_year('20x5')


def test_is_email():
    assert is_email('claims@maxicare.com.ph')
    assert not is_email('claims@maxicare')
    assert not is_email('claims maxicare@mail.com')
    assert not is_email('')


def test_field_parsers_collect_errors():
    errors = {}
    form = {'name': '  ', 'qty': '2', 'price': '1,000.50', 'bad': 'abc', 'method': 'cash', 'flag': 'on'}
    assert require(form, 'name', errors) is None
    assert parse_int(form, 'qty', errors, minimum=1) == 2
    assert parse_amount(form, 'price', errors) == Decimal('1000.50')
    assert parse_amount(form, 'bad', errors) is None
    assert parse_amount(form, 'missing', errors, required=False) == Decimal('0')
    assert parse_choice(form, 'method', ('cash', 'card'), errors) == 'cash'
    assert parse_choice(form, 'other', ('a',), errors, default='a') == 'a'
    assert parse_bool(form, 'flag') is True
    assert parse_bool(form, 'missing') is False
    assert errors == {
        'name': 'The name field is required.',
        'bad': 'The bad must be a number.',
    }


def test_parse_amount_rejects_non_finite():
    errors = {}
    assert parse_amount({'amount': 'NaN'}, 'amount', errors) is None
    assert errors['amount'] == 'The amount must be a number.'


@pytest.mark.parametrize(('raw', 'ids', 'error'), (
    (['3', '1', '3'], [3, 1], None),
    ('4,5', [4, 5], None),
    ([], [], 'The appointment ids field must have at least 1 item.'),
    (['1', 'x'], [], 'The appointment ids must contain valid ids.'),
))
def test_parse_id_list(raw, ids, error):
    errors = {}
    assert parse_id_list(raw, 'appointment_ids', errors) == ids
    assert errors.get('appointment_ids') == error


def test_validation_error_first_message():
    error = ValidationError({'a': 'First.', 'b': 'Second.'})
    assert error.first_message == 'First.'
    assert ValidationError({}).first_message == 'Invalid input.'
