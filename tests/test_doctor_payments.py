import pytest

from billing_admin.adapters.sqlite.doctor_payments_repo import DoctorPaymentRepository
from billing_admin.common.validators import BillingError, ValidationError
from billing_admin.services.doctor_payment_service import DoctorPaymentService

URL = '/admin/billing/doctor-payments'


def _form(data, **overrides):
    form = {
        'doctor_id': str(data['santos']),
        'basic_salary': '5000',
        'holiday_pay': '500',
        'incentives': '1000',
        'deductions': '250',
        'payment_date': data['today'],
        'payment_method': 'bank_transfer',
        'payment_reference': 'BT-2025-001',
        'status': 'pending',
    }
    form.update(overrides)
    return form


def test_create_computes_net_payment(app, client, auth, data):
    auth.login()
    response = client.post(f'{URL}/create', data=_form(data), follow_redirects=True)
    assert b'Doctor payment recorded successfully.' in response.data

    with app.app_context():
        payment = DoctorPaymentRepository().find()[0]
    assert payment['net_payment'] == 6250
    assert payment['doctor_name'] == 'Dr. Maria Santos'
    assert payment['paid_date'] is None


def test_simple_entry_only_takes_incentives(app, client, auth, data):
    auth.login()
    response = client.post(f'{URL}/simple', data=_form(data, incentives='1200', status='paid'))
    assert response.status_code == 302

    with app.app_context():
        payment = DoctorPaymentRepository().find()[0]
    assert payment['basic_salary'] == 0
    assert payment['deductions'] == 0
    assert payment['net_payment'] == 1200
    assert payment['paid_date'] == data['today']


@pytest.mark.parametrize(('overrides', 'message'), (
    ({'doctor_id': '999'}, b'The selected doctor is invalid.'),
    ({'basic_salary': ''}, b'The basic salary field is required.'),
    ({'deductions': '9000'}, b'Deductions may not exceed the gross payment.'),
    ({'payment_date': '2025-02-30'}, b'The payment date must be a valid date (YYYY-MM-DD).'),
    ({'payment_method': 'hmo'}, b'The selected payment method is invalid.'),
))
def test_create_validation(client, auth, data, overrides, message):
    auth.login()
    response = client.post(f'{URL}/create', data=_form(data, **overrides))
    assert response.status_code == 422
    assert message in response.data


def test_mark_paid_and_edit_rules(app, data):
    with app.app_context():
        service = DoctorPaymentService()
        payment = service.create_payment(_form(data), 1)
        paid = service.mark_as_paid(payment['id'])
        assert paid['status'] == 'paid'
        assert paid['paid_date'] == data['today']

        with pytest.raises(BillingError):
            service.mark_as_paid(payment['id'])
        with pytest.raises(BillingError):
            service.update_payment(payment['id'], _form(data))

        old, cancelled = service.update_status(payment['id'], 'cancelled')
        assert (old, cancelled['status'], cancelled['paid_date']) == ('paid', 'cancelled', None)
        with pytest.raises(ValidationError):
            service.update_status(payment['id'], 'approved')
        with pytest.raises(LookupError):
            service.mark_as_paid(999)


def test_update_pending_payment(app, client, auth, data):
    with app.app_context():
        payment = DoctorPaymentService().create_payment(_form(data), 1)
    auth.login()
    response = client.post(f"{URL}/{payment['id']}/edit", data=_form(data, incentives='0', deductions='0'))
    assert response.status_code == 302
    with app.app_context():
        assert DoctorPaymentRepository().get_by_id(payment['id'])['net_payment'] == 5500


def test_index_filters_and_summary(app, client, auth, data):
    with app.app_context():
        service = DoctorPaymentService()
        service.create_payment(_form(data, status='paid'), 1)
        service.create_payment(_form(data, doctor_id=str(data['reyes']), payment_reference='CHK-77'), 1)
        summary = service.summary()
    assert summary == {'total_paid': 6250, 'pending_amount': 6250, 'total_payments': 2, 'paid_payments': 1}

    auth.login()
    response = client.get(f'{URL}/', query_string={'search': 'chk-77'})
    assert response.status_code == 200
    assert b'Showing 1 to 1 of 1 results' in response.data
    assert b'Pediatrics' in response.data
    assert b'Internal Medicine' not in response.data


def test_delete_is_admin_only(app, client, auth, data):
    with app.app_context():
        payment = DoctorPaymentService().create_payment(_form(data), 1)

    auth.login('cashier', 'cashier123')
    assert client.post(f"{URL}/{payment['id']}/delete").status_code == 403
    auth.logout()

    auth.login()
    response = client.post(f"{URL}/{payment['id']}/delete", follow_redirects=True)
    assert b'Doctor payment deleted.' in response.data
    with app.app_context():
        assert DoctorPaymentRepository().get_by_id(payment['id']) is None
