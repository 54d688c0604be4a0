import pytest

from billing_admin.adapters.sqlite.appointments_repo import AppointmentRepository
from billing_admin.adapters.sqlite.transactions_repo import TransactionRepository
from billing_admin.common.validators import BillingError, ValidationError
from billing_admin.services.billing_service import BillingService

CREATE_URL = '/admin/billing/create-from-appointments'


def _billing_statuses(app, *appointment_ids):
    with app.app_context():
        return [a.billing_status for a in AppointmentRepository().get_by_ids(list(appointment_ids))]


def _create(app, appointment_ids, **form):
    with app.app_context():
        data = {'payment_method': 'cash', **form, 'appointment_ids': [str(i) for i in appointment_ids]}
        return BillingService().create_from_appointments(data, 1)


def test_create_from_appointments_applies_senior_discount(app, client, auth, data):
    auth.login()
    response = client.post(CREATE_URL, data={
        'appointment_ids': [data['consult'], data['follow_up']],
        'payment_method': 'cash',
        'is_senior_citizen': '1',
    }, follow_redirects=True)
    assert b'Transaction created successfully for 2 appointment(s)!' in response.data

    with app.app_context():
        rows = TransactionRepository().find()
        assert len(rows) == 1
        tx = rows[0]
        assert tx['transaction_id'] == 'TXN-000001'
        assert tx['patient_id'] == data['juan']
        assert tx['doctor_id'] == data['santos']
        # 800 consultation + 350 lab + 500 follow-up, 20% off the consultation only
        assert tx['total_amount'] == 1650
        assert tx['senior_discount_amount'] == 160
        assert tx['senior_discount_percentage'] == 20
        assert tx['amount'] == 1490
        assert tx['status'] == 'pending'
        assert tx['payment_type'] == 'cash'
        assert tx['items_count'] == 3
        assert tx['appointments_count'] == 2

    assert _billing_statuses(app, data['consult'], data['follow_up']) == ['in_transaction', 'in_transaction']


def test_hmo_requires_provider(client, auth, data):
    auth.login()
    response = client.post(CREATE_URL, data={
        'appointment_ids': [data['consult']],
        'payment_method': 'hmo',
    })
    assert response.status_code == 422
    assert b'The hmo provider field is required when payment method is HMO.' in response.data


def test_hmo_transactions_skip_senior_discount(app, data):
    tx = _create(app, [data['consult']], payment_method='hmo', hmo_provider='Maxicare',
                 hmo_reference_number='MX-1', is_senior_citizen='1')
    assert tx['appointments_count'] == 1
    assert tx['senior_discount_amount'] == 0
    assert tx['amount'] == 1150
    assert tx['payment_type'] == 'health_card'
    assert tx['hmo_provider'] == 'Maxicare'


def test_cash_drops_hmo_fields(app, data):
    tx = _create(app, [data['liza_consult']], hmo_provider='Maxicare')
    assert tx['hmo_provider'] is None
    assert tx['amount'] == 700


@pytest.mark.parametrize(('ids', 'message'), (
    ((), b'The appointment ids field must have at least 1 item.'),
    (('consult', 'liza_consult'), b'Selected appointments must belong to the same patient.'),
    (('unconfirmed',), b'have not been approved yet'),
))
def test_create_from_appointments_rejects_bad_selection(client, auth, data, ids, message):
    auth.login()
    response = client.post(CREATE_URL, data={
        'appointment_ids': [data[key] for key in ids],
        'payment_method': 'cash',
    })
    assert response.status_code == 422
    assert message in response.data


def test_billed_appointments_cannot_be_billed_twice(app, data):
    _create(app, [data['follow_up']])
    with pytest.raises(ValidationError) as excinfo:
        _create(app, [data['follow_up']])
    assert excinfo.value.errors['appointment_ids'] == 'No valid pending appointments selected.'


def test_create_page_lists_only_billable_appointments(client, auth, data):
    auth.login()
    response = client.get(CREATE_URL)
    assert response.status_code == 200
    assert b'Juan Dela Cruz' in response.data
    assert b'Liza Soberano' in response.data
    assert f'value="{data["unconfirmed"]}"'.encode() not in response.data


def test_preview_totals(client, auth, data):
    auth.login()
    response = client.get(CREATE_URL + '/preview', query_string={
        'appointment_ids': [data['consult'], data['follow_up']],
        'is_senior_citizen': '1',
        'payment_method': 'cash',
    })
    assert response.json == {
        'subtotal': 1650.0,
        'consultation_amount': 800.0,
        'lab_amount': 350.0,
        'senior_discount': 160.0,
        'final_total': 1490.0,
        'discount_percentage': 20.0,
    }


def test_manual_transaction(app, client, auth, data):
    auth.login()
    response = client.post('/admin/billing/create', data={
        'patient_id': data['juan'],
        'doctor_id': data['santos'],
        'payment_method': 'card',
        'is_senior_citizen': 'on',
        'discount_amount': '50',
        'item_type[]': ['consultation', 'medicine'],
        'item_name[]': ['Consultation', 'Amoxicillin'],
        'item_description[]': ['', '500mg'],
        'quantity[]': ['1', '2'],
        'unit_price[]': ['1000', '125.50'],
    })
    assert response.status_code == 302

    with app.app_context():
        tx = TransactionRepository().find()[0]
        items = TransactionRepository().get_items(tx['id'])
    assert [i['total_price'] for i in items] == [1000, 251]
    assert tx['total_amount'] == 1251
    assert tx['senior_discount_amount'] == 200
    assert tx['discount_amount'] == 50
    assert tx['amount'] == 1001


def test_manual_transaction_validation(client, auth, data):
    auth.login()
    response = client.post('/admin/billing/create', data={
        'patient_id': data['juan'],
        'payment_method': 'cash',
        'item_type[]': ['medicine'],
        'item_name[]': [''],
        'quantity[]': ['0'],
        'unit_price[]': ['abc'],
    })
    assert response.status_code == 422
    assert b'The item name field is required.' in response.data


def test_mark_paid_updates_links_and_appointments(app, client, auth, data):
    tx = _create(app, [data['consult']])
    auth.login()
    response = client.post(f"/admin/billing/{tx['id']}/mark-paid", follow_redirects=True)
    assert b'marked as paid' in response.data

    with app.app_context():
        repo = TransactionRepository()
        assert repo.get_by_id(tx['id'])['status'] == 'paid'
        assert [link['status'] for link in repo.get_links(tx['id'])] == ['paid']
    assert _billing_statuses(app, data['consult']) == ['paid']

    # Paying twice is refused
    response = client.post(f"/admin/billing/{tx['id']}/mark-paid", follow_redirects=True)
    assert b'Only pending transactions can be marked as paid' in response.data


def test_paid_transactions_cannot_be_deleted(app, client, auth, data):
    tx = _create(app, [data['consult']])
    with app.app_context():
        BillingService().mark_as_paid(tx['id'], 1)

    auth.login()
    response = client.post(f"/admin/billing/{tx['id']}/delete", follow_redirects=True)
    assert b'Paid transactions cannot be deleted. Refund the transaction instead.' in response.data
    with app.app_context():
        assert TransactionRepository().get_by_id(tx['id']) is not None


def test_delete_releases_appointments(app, client, auth, data):
    tx = _create(app, [data['consult'], data['follow_up']])
    auth.login()
    response = client.delete(f"/admin/billing/{tx['id']}")
    assert response.status_code == 302

    with app.app_context():
        assert TransactionRepository().get_by_id(tx['id']) is None
        assert TransactionRepository().get_items(tx['id']) == []
    assert _billing_statuses(app, data['consult'], data['follow_up']) == ['pending', 'pending']


def test_cashier_cannot_delete(app, client, auth, data):
    tx = _create(app, [data['consult']])
    auth.login('cashier', 'cashier123')
    assert client.post(f"/admin/billing/{tx['id']}/delete").status_code == 403
    with app.app_context():
        assert TransactionRepository().get_by_id(tx['id']) is not None


def test_status_transitions(app, data):
    tx = _create(app, [data['consult']])
    with app.app_context():
        service = BillingService()
        old, updated = service.update_status(tx['id'], 'cancelled', 1)
        assert (old, updated['status']) == ('pending', 'cancelled')

        with pytest.raises(BillingError):
            service.update_status(tx['id'], 'pending', 1)
        with pytest.raises(BillingError):
            service.update_status(tx['id'], 'refunded', 1)
        with pytest.raises(ValidationError):
            service.update_status(tx['id'], 'lost', 1)
    assert _billing_statuses(app, data['consult']) == ['pending']


def test_refund_reopens_appointments(app, data):
    tx = _create(app, [data['consult']])
    with app.app_context():
        service = BillingService()
        service.mark_as_paid(tx['id'], 1)
        old, updated = service.update_status(tx['id'], 'refunded', 1)
    assert (old, updated['status']) == ('paid', 'refunded')
    assert _billing_statuses(app, data['consult']) == ['pending']


def test_edit_recomputes_header_amounts(app, client, auth, data):
    tx = _create(app, [data['consult']], is_senior_citizen='1')
    assert tx['amount'] == 990

    auth.login()
    response = client.post(f"/admin/billing/{tx['id']}/edit", data={
        'payment_method': 'hmo',
        'hmo_provider': 'Maxicare',
        'notes': 'Switched to HMO',
    })
    assert response.status_code == 302

    with app.app_context():
        updated = TransactionRepository().get_by_id(tx['id'])
    assert updated['payment_method'] == 'hmo'
    assert updated['senior_discount_amount'] == 0
    assert updated['amount'] == 1150
    assert updated['notes'] == 'Switched to HMO'


def test_edit_keeps_discount_on_consultations_only(app, client, auth, data):
    tx = _create(app, [data['consult'], data['follow_up']], is_senior_citizen='1')
    assert tx['senior_discount_amount'] == 160
    assert tx['amount'] == 1490

    auth.login()
    response = client.post(f"/admin/billing/{tx['id']}/edit", data={
        'payment_method': 'cash',
        'is_senior_citizen': '1',
        'notes': 'Paid at the front desk',
    })
    assert response.status_code == 302

    with app.app_context():
        updated = TransactionRepository().get_by_id(tx['id'])
    assert updated['total_amount'] == 1650
    assert updated['senior_discount_amount'] == 160
    assert updated['amount'] == 1490
    assert updated['notes'] == 'Paid at the front desk'


def test_index_search_sort_and_pages(app, client, auth, data):
    _create(app, [data['consult']])
    _create(app, [data['liza_consult']])
    auth.login()

    response = client.get('/admin/billing/', query_string={'search': 'soberano'})
    assert response.status_code == 200
    assert b'TXN-000002' in response.data
    assert b'TXN-000001' not in response.data

    response = client.get('/admin/billing/', query_string={'sort': '-amount'})
    assert response.data.index(b'TXN-000001') < response.data.index(b'TXN-000002')

    response = client.get('/admin/billing/', query_string={'page': 9})
    assert b'Page 1 of 1' in response.data


def test_index_tabs_redirect(client, auth):
    auth.login()
    assert client.get('/admin/billing/?tab=expenses').headers['Location'].endswith('/admin/billing/expenses/')
    assert client.get('/admin/billing/?tab=doctor-payments').headers['Location'].endswith(
        '/admin/billing/doctor-payments/')


def test_show_and_receipt(app, client, auth, data):
    tx = _create(app, [data['consult']])
    auth.login()
    for path in (f"/admin/billing/{tx['id']}", f"/admin/billing/{tx['id']}/receipt"):
        response = client.get(path)
        assert response.status_code == 200
        assert b'TXN-000001' in response.data
        assert b'Complete Blood Count' in response.data
    assert client.get('/admin/billing/999').status_code == 404


def test_transaction_export(app, client, auth, data):
    _create(app, [data['consult']])
    auth.login()
    response = client.get('/admin/billing/export', query_string={'format': 'csv'})
    assert response.status_code == 200
    assert response.data.startswith(b'\xef\xbb\xbf')
    assert b'TXN-000001' in response.data
