import pytest

from billing_admin.adapters.sqlite.lookups_repo import HmoProviderRepository
from billing_admin.adapters.sqlite.transactions_repo import TransactionRepository
from billing_admin.common.validators import BillingError
from billing_admin.services.billing_service import BillingService
from billing_admin.services.hmo_provider_service import HmoProviderService

URL = '/admin/billing/hmo-providers'


def _form(**overrides):
    form = {
        'name': 'Intellicare',
        'code': 'icare',
        'contact_number': '(02) 8789-4000',
        'email': 'claims@intellicare.com.ph',
        'address': 'Makati City',
        'is_active': '1',
    }
    form.update(overrides)
    return form


def _maxicare(app):
    with app.app_context():
        return next(p for p in HmoProviderRepository().get_all() if p['name'] == 'Maxicare')


def _hmo_transaction(app, data):
    with app.app_context():
        return BillingService().create_from_appointments({
            'appointment_ids': [str(data['liza_consult'])],
            'payment_method': 'hmo',
            'hmo_provider': 'Maxicare',
        }, 1)


def test_create_provider(app, client, auth, data):
    auth.login()
    response = client.post(f'{URL}/create', data=_form(), follow_redirects=True)
    assert b'HMO provider Intellicare created successfully.' in response.data

    with app.app_context():
        provider = HmoProviderRepository().find_by('name', 'intellicare')
        assert provider['code'] == 'ICARE'
        assert provider['is_active'] == 1
        assert 'Intellicare' in HmoProviderRepository().get_active_names()


@pytest.mark.parametrize(('overrides', 'message'), (
    ({'name': ''}, b'The name field is required.'),
    ({'code': ''}, b'The code field is required.'),
    ({'name': 'MAXICARE'}, b'The name has already been taken.'),
    ({'code': 'maxi'}, b'The code has already been taken.'),
    ({'email': 'claims-at-intellicare'}, b'The email must be a valid email address.'),
))
def test_create_validation(client, auth, data, overrides, message):
    auth.login()
    response = client.post(f'{URL}/create', data=_form(**overrides))
    assert response.status_code == 422
    assert message in response.data


def test_index_search_and_status_filter(app, client, auth, data):
    with app.app_context():
        HmoProviderService().create_provider(_form(is_active=''))

    auth.login()
    response = client.get(f'{URL}/', query_string={'search': 'maxi'})
    assert b'Maxicare' in response.data
    assert b'Intellicare' not in response.data

    response = client.get(f'{URL}/', query_string={'status': 'inactive'})
    assert b'Intellicare' in response.data
    assert b'Maxicare' not in response.data


def test_toggle_status_hides_provider_from_billing(app, client, auth, data):
    provider = _maxicare(app)
    auth.login()

    response = client.post(f"{URL}/{provider['id']}/toggle-status", follow_redirects=True)
    assert b'HMO provider Maxicare is now inactive.' in response.data
    with app.app_context():
        assert 'Maxicare' not in HmoProviderRepository().get_active_names()

    client.put(f"{URL}/{provider['id']}/toggle-status")
    with app.app_context():
        assert 'Maxicare' in HmoProviderRepository().get_active_names()


def test_edit_renames_provider_on_transactions(app, client, auth, data):
    provider = _maxicare(app)
    tx = _hmo_transaction(app, data)

    auth.login()
    response = client.post(f"{URL}/{provider['id']}/edit",
                           data=_form(name='Maxicare Healthcare', code='MAXI', email=''))
    assert response.status_code == 302

    with app.app_context():
        assert HmoProviderRepository().get_by_id(provider['id'])['name'] == 'Maxicare Healthcare'
        assert TransactionRepository().get_by_id(tx['id'])['hmo_provider'] == 'Maxicare Healthcare'

    response = client.get(f"{URL}/{provider['id']}")
    assert tx['transaction_id'].encode() in response.data


def test_edit_keeps_own_code(app, data):
    provider = _maxicare(app)
    with app.app_context():
        updated = HmoProviderService().update_provider(provider['id'], _form(name='Maxicare', code='MAXI'))
    assert updated['contact_number'] == '(02) 8789-4000'


def test_provider_with_transactions_cannot_be_deleted(app, data):
    provider = _maxicare(app)
    _hmo_transaction(app, data)
    with app.app_context():
        with pytest.raises(BillingError):
            HmoProviderService().delete_provider(provider['id'])
        assert HmoProviderRepository().get_by_id(provider['id']) is not None


def test_delete_is_admin_only(app, client, auth, data):
    provider = _maxicare(app)

    auth.login('cashier', 'cashier123')
    assert client.delete(f"{URL}/{provider['id']}").status_code == 403

    auth.logout()
    auth.login()
    response = client.post(f"{URL}/{provider['id']}/delete", follow_redirects=True)
    assert b'HMO provider Maxicare deleted.' in response.data
    with app.app_context():
        assert HmoProviderRepository().get_by_id(provider['id']) is None
    assert client.get(f"{URL}/{provider['id']}").status_code == 404
