from decimal import Decimal

import pytest

from billing_admin.domain.appointments import Appointment, LabTest
from billing_admin.services.pricing import compute_totals, is_consultation


def _appointment(appointment_type, price):
    return {'appointment_type': appointment_type, 'price': price}


def test_empty_selection_is_all_zero():
    totals = compute_totals([], True, 'cash')
    assert totals.subtotal == Decimal('0.00')
    assert totals.senior_discount == Decimal('0')
    assert totals.final_total == Decimal('0.00')
    assert totals.discount_percentage == Decimal('0')


def test_subtotal_is_sum_of_prices_and_labs():
    totals = compute_totals(
        [_appointment('consultation', 800), _appointment('follow_up', '500.50')],
        False, 'cash', lab_amounts=[350, 150],
    )
    assert totals.subtotal == Decimal('1800.50')
    assert totals.lab_amount == Decimal('500.00')
    assert totals.appointment_amount == Decimal('1300.50')
    assert totals.final_total == totals.subtotal


def test_senior_discount_only_on_consultation_types():
    totals = compute_totals(
        [_appointment('consultation', 800), _appointment('general_consultation', 700), _appointment('follow_up', 500)],
        True, 'cash', lab_amounts=[350],
    )
    assert totals.consultation_amount == Decimal('1500.00')
    assert totals.senior_discount == Decimal('300.00')
    assert totals.subtotal == Decimal('2350.00')
    assert totals.final_total == Decimal('2050.00')
    assert totals.discount_percentage == Decimal('20.00')


@pytest.mark.parametrize('method', ['hmo', 'HMO'])
def test_no_senior_discount_for_hmo(method):
    totals = compute_totals([_appointment('consultation', 800)], True, method)
    assert totals.senior_discount == Decimal('0')
    assert totals.final_total == Decimal('800.00')


def test_no_discount_without_senior_flag():
    totals = compute_totals([_appointment('consultation', 800)], False, 'cash')
    assert totals.senior_discount == Decimal('0')


def test_discount_rounds_half_up():
    totals = compute_totals([_appointment('consultation', '100.025')], True, 'cash')
    # 100.03 * 0.20 = 20.006 -> 20.01
    assert totals.senior_discount == Decimal('20.01')


def test_accepts_appointment_objects():
    appointment = Appointment(id=1, patient_id=1, appointment_type='Consultation', price=1000,
                              appointment_date='2025-01-10', lab_tests=[LabTest(id=1, test_name='CBC', unit_price=200)])
    totals = compute_totals([appointment], True, 'cash', lab_amounts=[t.unit_price for t in appointment.lab_tests])
    assert totals.senior_discount == Decimal('200.00')
    assert totals.final_total == Decimal('1000.00')
    assert totals.as_dict()['final_total'] == 1000.0


def test_is_consultation():
    assert is_consultation('consultation')
    assert is_consultation(' General_Consultation ')
    assert not is_consultation('follow_up')
    assert not is_consultation(None)
