import pytest

from billing_admin.app import create_app
from billing_admin.adapters.sqlite.appointments_repo import AppointmentRepository
from billing_admin.adapters.sqlite.lookups_repo import HmoProviderRepository, PatientRepository, SpecialistRepository
from billing_admin.common.utils import clinic_today
from billing_admin.services.auth_service import AuthService


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'DATABASE_PATH': str(tmp_path / 'billing.db'),
        'PAGE_SIZE': 15,
    })
    with app.app_context():
        auth = AuthService()
        auth.register_user('admin', 'admin123', 'admin', 'Admin User')
        auth.register_user('cashier', 'cashier123', 'cashier', 'Front Desk')
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def data(app):
    """Two doctors, an HMO provider, a senior and a regular patient, and confirmed appointments."""
    today = clinic_today().isoformat()
    with app.app_context():
        specialists = SpecialistRepository()
        patients = PatientRepository()
        appointments = AppointmentRepository()

        santos = specialists.create('Dr. Maria Santos', 'Internal Medicine')
        reyes = specialists.create('Dr. Jose Reyes', 'Pediatrics')
        HmoProviderRepository().create('Maxicare', 'MAXI')

        juan = patients.create('P-0001', 'Juan', 'Dela Cruz', '1950-04-12', True)
        liza = patients.create('P-0002', 'Liza', 'Soberano', '1996-01-04', False)

        consult = appointments.create(juan, santos, 'consultation', 800, today, '09:00', status='Confirmed')
        appointments.add_lab_test(consult, 'Complete Blood Count', 350)
        follow_up = appointments.create(juan, santos, 'follow_up', 500, today, '10:00', status='Confirmed')
        liza_consult = appointments.create(liza, reyes, 'general_consultation', 700, today, '11:00',
                                           status='Confirmed')
        unconfirmed = appointments.create(liza, reyes, 'consultation', 900, today, '13:00')

    return {
        'santos': santos,
        'reyes': reyes,
        'juan': juan,
        'liza': liza,
        'consult': consult,
        'follow_up': follow_up,
        'liza_consult': liza_consult,
        'unconfirmed': unconfirmed,
        'today': today,
    }


class AuthActions:
    def __init__(self, client):
        self._client = client

    def login(self, username='admin', password='admin123'):
        return self._client.post('/auth/login', data={'username': username, 'password': password})

    def logout(self):
        return self._client.get('/auth/logout')


@pytest.fixture
def auth(client):
    return AuthActions(client)
