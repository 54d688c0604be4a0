import os


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-prod'

    # billing_admin/config -> billing_admin -> project root
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    PROJECT_ROOT = os.path.dirname(os.path.dirname(BASE_DIR))

    # Database file location
    DATABASE_PATH = os.environ.get('BILLING_DB_PATH') or os.path.join(PROJECT_ROOT, 'clinic_billing.db')

    DEBUG = True
    TESTING = False

    # Listing pages show this many rows per page
    PAGE_SIZE = int(os.environ.get('BILLING_PAGE_SIZE', 15))

    # Senior citizen discount applies to consultation charges only
    SENIOR_DISCOUNT_RATE = 0.20

    CURRENCY_SYMBOL = '₱'

    # Lock an account for LOGIN_LOCK_MINUTES after this many bad passwords
    LOGIN_MAX_ATTEMPTS = 5
    LOGIN_LOCK_MINUTES = 15

