import pytest
from flask import g, session

from billing_admin.adapters.sqlite.auth_repo import AuthRepository
from billing_admin.services.auth_service import AuthService


def test_login_page(client):
    assert client.get('/auth/login').status_code == 200


def test_login_and_logout(client, auth):
    response = auth.login()
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/admin/billing/')

    with client:
        client.get('/admin/billing/')
        assert session['user_id'] == g.user['id']
        assert g.user['username'] == 'admin'

    auth.logout()
    with client:
        client.get('/auth/login')
        assert 'user_id' not in session


@pytest.mark.parametrize(('username', 'password'), (
    ('admin', 'wrong-password'),
    ('nobody', 'admin123'),
    ('', ''),
))
def test_login_rejects_bad_credentials(auth, username, password):
    response = auth.login(username, password)
    assert response.status_code == 401
    assert b'Invalid username or password' in response.data


def test_login_redirects_to_safe_next(client):
    response = client.post('/auth/login?next=/admin/billing/expenses/',
                           data={'username': 'admin', 'password': 'admin123'})
    assert response.headers['Location'].endswith('/admin/billing/expenses/')

    client.get('/auth/logout')
    response = client.post('/auth/login?next=//evil.example.com/',
                           data={'username': 'admin', 'password': 'admin123'})
    assert response.headers['Location'].endswith('/admin/billing/')


def test_lockout_after_repeated_failures(app):
    with app.app_context():
        service = AuthService(max_attempts=5, lock_minutes=15)
        for _ in range(5):
            assert service.authenticate('cashier', 'nope') is None

        row = AuthRepository().get_raw_by_username('cashier')
        assert row['locked_until'] is not None
        assert row['failed_attempts'] == 0

        # Correct password is refused while the lock is active
        assert service.authenticate('cashier', 'cashier123') is None


def test_successful_login_resets_failures(app):
    with app.app_context():
        service = AuthService()
        service.authenticate('cashier', 'nope')
        service.authenticate('cashier', 'nope')
        assert AuthRepository().get_raw_by_username('cashier')['failed_attempts'] == 2

        user = service.authenticate('cashier', 'cashier123')
        assert user['role'] == 'cashier'
        row = AuthRepository().get_raw_by_username('cashier')
        assert row['failed_attempts'] == 0
        assert row['last_login'] is not None


def test_register_user_rejects_duplicates_and_unknown_roles(app):
    with app.app_context():
        service = AuthService()
        assert service.register_user('admin', 'whatever', 'admin') is False
        assert service.register_user('nurse', 'whatever', 'nurse') is False
        assert service.register_user('cashier2', 'whatever', 'cashier', 'Second Cashier') is True


@pytest.mark.parametrize('path', (
    '/admin/billing/',
    '/admin/billing/doctor-payments/',
    '/admin/billing/expenses/',
    '/admin/billing/daily-report',
    '/admin/billing/hmo-report',
    '/admin/activity-logs',
))
def test_anonymous_users_are_sent_to_login(client, path):
    response = client.get(path)
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_root_redirects(client, auth):
    assert '/auth/login' in client.get('/').headers['Location']
    auth.login()
    assert client.get('/').headers['Location'].endswith('/admin/billing/')


def test_activity_log_is_admin_only(client, auth):
    auth.login('cashier', 'cashier123')
    assert client.get('/admin/activity-logs').status_code == 403

    auth.logout()
    auth.login()
    response = client.get('/admin/activity-logs')
    assert response.status_code == 200
    assert b'Signed in as admin' in response.data
