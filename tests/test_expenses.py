import pytest

from billing_admin.adapters.sqlite.expenses_repo import ExpenseRepository
from billing_admin.common.validators import BillingError
from billing_admin.services.expense_service import ExpenseService

URL = '/admin/billing/expenses'


def _form(data, **overrides):
    form = {
        'expense_category': 'medical_supplies',
        'expense_name': 'Syringes',
        'description': 'Box of 100',
        'amount': '1,250.75',
        'expense_date': data['today'],
        'payment_method': 'cash',
        'vendor_name': 'MedSupply Co.',
        'receipt_number': 'OR-5512',
        'status': 'approved',
    }
    form.update(overrides)
    return form


def test_create_expense(app, client, auth, data):
    auth.login()
    response = client.post(f'{URL}/create', data=_form(data), follow_redirects=True)
    assert b'Expense recorded successfully.' in response.data

    with app.app_context():
        expense = ExpenseRepository().find()[0]
    assert expense['amount'] == 1250.75
    assert expense['vendor_name'] == 'MedSupply Co.'


@pytest.mark.parametrize(('overrides', 'message'), (
    ({'expense_name': ''}, b'The expense name field is required.'),
    ({'amount': '-5'}, b'The amount must be at least 0.'),
    ({'expense_category': 'travel'}, b'The selected expense category is invalid.'),
    ({'status': ''}, b'The status field is required.'),
))
def test_create_validation(client, auth, data, overrides, message):
    auth.login()
    response = client.post(f'{URL}/create', data=_form(data, **overrides))
    assert response.status_code == 422
    assert message in response.data


def test_status_and_edit_rules(app, data):
    with app.app_context():
        service = ExpenseService()
        expense = service.create_expense(_form(data, status='pending'), 1)
        old, approved = service.update_status(expense['id'], 'approved', 1)
        assert (old, approved['status']) == ('pending', 'approved')

        updated = service.update_expense(expense['id'], _form(data, amount='99.90'), 1)
        assert updated['amount'] == 99.9

        service.update_status(expense['id'], 'cancelled', 1)
        with pytest.raises(BillingError):
            service.update_expense(expense['id'], _form(data), 1)


def test_edit_form_updates_expense(app, client, auth, data):
    with app.app_context():
        expense = ExpenseService().create_expense(_form(data, status='pending'), 1)

    auth.login()
    response = client.post(f"{URL}/{expense['id']}/edit", data=_form(data, amount='980', vendor_name='Mercury'),
                           follow_redirects=True)
    assert b'Expense updated successfully.' in response.data
    with app.app_context():
        updated = ExpenseRepository().get_by_id(expense['id'])
    assert updated['amount'] == 980
    assert updated['vendor_name'] == 'Mercury'

    response = client.post(f"{URL}/{expense['id']}/edit", data=_form(data, amount='-1'))
    assert response.status_code == 422


def test_summary_counts_approved_only(app, data):
    with app.app_context():
        service = ExpenseService()
        service.create_expense(_form(data, amount='100'), 1)
        service.create_expense(_form(data, amount='40', status='pending'), 1)
        service.create_expense(_form(data, amount='15', status='draft'), 1)
        summary = service.summary()
    assert summary == {'total_expenses': 100, 'pending_amount': 40, 'total_count': 3, 'approved_count': 1}


def test_index_filters(app, client, auth, data):
    with app.app_context():
        service = ExpenseService()
        service.create_expense(_form(data), 1)
        service.create_expense(_form(data, expense_category='utilities', expense_name='Water bill',
                                     vendor_name='Maynilad'), 1)

    auth.login()
    response = client.get(f'{URL}/', query_string={'category': 'utilities'})
    assert b'Water bill' in response.data
    assert b'Syringes' not in response.data

    response = client.get(f'{URL}/', query_string={'search': 'or-5512', 'sort': '-amount'})
    assert b'Syringes' in response.data


def test_show_and_delete(app, client, auth, data):
    with app.app_context():
        expense = ExpenseService().create_expense(_form(data), 1)

    auth.login()
    assert b'Syringes' in client.get(f"{URL}/{expense['id']}").data
    response = client.delete(f"{URL}/{expense['id']}")
    assert response.status_code == 302
    with app.app_context():
        assert ExpenseRepository().get_by_id(expense['id']) is None
    assert client.get(f"{URL}/{expense['id']}").status_code == 404
